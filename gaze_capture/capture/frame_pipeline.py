"""
Frame pipeline: crop the live frame to the eye region, upscale, JPEG-encode
and submit it for upload.

The eye region is a fixed geometric heuristic that assumes a centered face;
there is no face or eye detection here.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from gaze_capture import constants as const
from gaze_capture.capture.frame_source import FrameSource
from gaze_capture.capture.settings import CropRegion
from gaze_capture.capture.upload_client import UploadResult
from gaze_capture.errors import EncodingFailed, ErrorKind


# (label, jpeg bytes, filename) -> UploadResult
Uploader = Callable[[str, bytes, str], UploadResult]


@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in frame pixel coordinates (may be fractional)"""
    x: float
    y: float
    width: float
    height: float

    def to_pixels(self, frame_width: int, frame_height: int) -> Tuple[int, int, int, int]:
        """Round to integer (x0, y0, x1, y1) bounds clamped to the frame, at least 1px each way."""
        x0 = int(max(0, min(frame_width - 1, round(self.x))))
        y0 = int(max(0, min(frame_height - 1, round(self.y))))
        x1 = int(max(x0 + 1, min(frame_width, round(self.x + self.width))))
        y1 = int(max(y0 + 1, min(frame_height, round(self.y + self.height))))
        return x0, y0, x1, y1


@dataclass
class CaptureOutcome:
    """Result of one capture tick"""
    label: str
    success: bool
    name: str = ""
    filename: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""


def compute_crop_rect(width: float, height: float, region: CropRegion = CropRegion()) -> CropRect:
    """
    Compute the eye-region crop for a frame.

    With the default region the rectangle covers the horizontal center 40%
    and the vertical band from 10% to 60% of the frame.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Frame dimensions must be positive, got {width}x{height}")

    crop_width = region.width_fraction * width
    crop_height = (region.bottom - region.top) * height
    return CropRect(
        x=(width - crop_width) / 2,
        y=region.top * height,
        width=crop_width,
        height=crop_height,
    )


def render_eye_region(frame: np.ndarray, region: CropRegion = CropRegion()) -> np.ndarray:
    """Crop the eye region and scale it up to the full frame size."""
    frame_height, frame_width = frame.shape[:2]
    rect = compute_crop_rect(frame_width, frame_height, region)
    x0, y0, x1, y1 = rect.to_pixels(frame_width, frame_height)
    cropped = frame[y0:y1, x0:x1]
    return cv2.resize(cropped, (frame_width, frame_height), interpolation=cv2.INTER_LINEAR)


def encode_jpeg(image: np.ndarray, quality: int = const.DEFAULT_JPEG_QUALITY) -> bytes:
    """
    Encode an image as JPEG.

    Raises:
        EncodingFailed: if OpenCV produces no data
    """
    ok, buffer = cv2.imencode('.jpg', image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok or buffer is None or buffer.size == 0:
        raise EncodingFailed("JPEG encoding produced no data")
    return buffer.tobytes()


def frame_name(label: str, timestamp_ms: int) -> str:
    return f"{label}_{timestamp_ms}.jpg"


class FramePipeline:
    """
    Captures, crops, encodes and uploads single frames.

    At most one upload is in flight per pipeline: captures are serialized by a
    lock and each upload is awaited before `capture_frame` returns.
    """

    def __init__(
        self,
        frame_source: FrameSource,
        uploader: Uploader,
        crop_region: CropRegion = CropRegion(),
        jpeg_quality: int = const.DEFAULT_JPEG_QUALITY,
        clock: Callable[[], float] = time.time
    ):
        self.frame_source = frame_source
        self.uploader = uploader
        self.crop_region = crop_region
        self.jpeg_quality = jpeg_quality
        self.clock = clock
        self.logger = logging.getLogger(__name__)
        self._lock: Optional[asyncio.Lock] = None

    async def capture_frame(self, label: str) -> CaptureOutcome:
        """
        Capture the current frame for `label` and upload it.

        Never raises for encoding or upload failures; they are reported in the
        returned outcome and not retried.
        """
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            frame = self.frame_source.current_frame()
            if frame is None:
                self.logger.debug("Frame source not ready, waiting for first frame")
                await self.frame_source.wait_ready()
                frame = self.frame_source.current_frame()

            name = frame_name(label, int(self.clock() * 1000))

            if frame is None:
                self.logger.error(f"No frame available for '{label}'")
                return CaptureOutcome(
                    label=label, success=False, name=name,
                    error_kind=ErrorKind.ENCODING_FAILED, message="No frame available",
                )

            try:
                jpeg = encode_jpeg(render_eye_region(frame, self.crop_region), self.jpeg_quality)
            except EncodingFailed as e:
                self.logger.error(f"Skipping upload for '{label}': {e}")
                return CaptureOutcome(
                    label=label, success=False, name=name,
                    error_kind=e.kind, message=e.message,
                )

            try:
                result = await asyncio.to_thread(self.uploader, label, jpeg, name)
            except Exception as e:
                self.logger.error(f"Error uploading image: {e}", exc_info=True)
                result = UploadResult(success=False, error_kind=ErrorKind.NETWORK_FAILURE, message=str(e))

            if not result.success:
                self.logger.warning(f"Upload failed for '{label}' ({name}): {result.message}")
            else:
                self.logger.debug(f"Uploaded '{label}' frame as {result.filename}")

            return CaptureOutcome(
                label=label,
                success=result.success,
                name=name,
                filename=result.filename,
                error_kind=result.error_kind,
                message=result.message,
            )
