"""
Entry point for the gaze calibration capture wizard
"""

import argparse
import asyncio
import sys
from typing import Optional

from gaze_capture.capture.frame_source import CameraFrameSource
from gaze_capture.capture.settings import CaptureSettings
from gaze_capture.capture.state_machine import CaptureStateMachine
from gaze_capture.capture.upload_client import UploadClient
from gaze_capture.capture.view import CaptureWindow, HeadlessRunner
from gaze_capture.utils.config_loader import load_config
from gaze_capture.utils.logger import setup_from_config


class CalibrationCaptureApp:
    """
    Wires camera, upload client and state machine together and runs the
    wizard either in an OpenCV window or headless.
    """

    def __init__(
        self,
        config_path: str = "config/config.yaml",
        camera_index: Optional[int] = None,
        upload_url: Optional[str] = None
    ):
        """
        Args:
            config_path: Path to configuration YAML file
            camera_index: Camera device index (overrides config)
            upload_url: Upload endpoint (overrides config)
        """
        self.config = load_config(config_path, required=False)

        self.logger = setup_from_config(self.config)

        self.settings = CaptureSettings.from_config(self.config)
        if camera_index is not None:
            self.settings.camera_index = camera_index
        if upload_url is not None:
            self.settings.upload_url = upload_url

        self.upload_client = UploadClient(
            url=self.settings.upload_url,
            timeout=self.settings.upload_timeout
        )
        self.logger.info(f"Uploading frames to {self.settings.upload_url}")

    def open_camera(self) -> CameraFrameSource:
        source = CameraFrameSource(
            camera_index=self.settings.camera_index,
            width=self.settings.camera_width,
            height=self.settings.camera_height,
            mirror=self.settings.mirror,
        )
        return source.open()

    def build_machine(self, listener) -> CaptureStateMachine:
        return CaptureStateMachine(
            source_factory=self.open_camera,
            uploader=self.upload_client.submit,
            settings=self.settings,
            listener=listener,
        )

    async def run(self, headless: bool = False) -> bool:
        """
        Run the wizard.

        Returns:
            True unless a headless run failed to reach completion
        """
        if headless:
            runner = HeadlessRunner()
            self.logger.info("Running in headless mode (no display)")
            completed = await runner.run(self.build_machine(runner))
            if not completed:
                self.logger.error("Calibration did not complete")
            return completed

        window = CaptureWindow()
        self.logger.info("Press SPACE to start, 'r' to retake, 'q' to quit")
        await window.run(self.build_machine(window))
        return True

    def cleanup(self):
        self.upload_client.close()
        self.logger.info("Capture wizard stopped.")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Gaze calibration capture wizard")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config.yaml",
        help="Path to configuration file (default: config/config.yaml)"
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=None,
        help="Camera device index (overrides config)"
    )
    parser.add_argument(
        "--upload-url",
        type=str,
        default=None,
        help="Upload endpoint URL (overrides config)"
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run the capture sequence without a window"
    )
    args = parser.parse_args(argv)

    app = CalibrationCaptureApp(
        config_path=args.config,
        camera_index=args.camera,
        upload_url=args.upload_url
    )
    try:
        ok = asyncio.run(app.run(headless=args.headless))
    except KeyboardInterrupt:
        app.logger.info("\nStopping capture...")
        ok = True
    finally:
        app.cleanup()
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
