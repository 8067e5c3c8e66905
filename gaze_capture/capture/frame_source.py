"""
Live frame sources for the capture wizard.

A `FrameSource` hands out the most recent video frame (or None while the
device is still warming up) and lets async callers wait for the first frame.
`CameraFrameSource` reads an OpenCV camera on a background thread.
"""

import asyncio
import logging
import threading
import time
from typing import List, Optional, Tuple

import cv2
import numpy as np

from gaze_capture import constants as const
from gaze_capture.errors import CameraUnavailable


def frame_is_ready(frame: Optional[np.ndarray]) -> bool:
    """True if the frame has non-zero height and width."""
    return frame is not None and frame.ndim >= 2 and frame.shape[0] > 0 and frame.shape[1] > 0


class FrameSource:
    """
    Base frame source. Subclasses call `publish()` whenever a new frame arrives;
    publishing may happen from any thread.
    """

    def __init__(self):
        self._frame_lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []
        self.stopped = False

    def current_frame(self) -> Optional[np.ndarray]:
        """Latest frame, or None if the source has not produced a usable frame yet."""
        with self._frame_lock:
            frame = self._frame
        return frame if frame_is_ready(frame) else None

    def publish(self, frame: Optional[np.ndarray]) -> None:
        with self._frame_lock:
            self._frame = frame
            waiters = self._waiters if frame_is_ready(frame) else []
            if waiters:
                self._waiters = []
        for loop, event in waiters:
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(event.set)

    async def wait_ready(self) -> None:
        """Suspend until the first usable frame is published. There is no timeout."""
        if self.current_frame() is not None:
            return
        event = asyncio.Event()
        with self._frame_lock:
            if frame_is_ready(self._frame):
                return
            self._waiters.append((asyncio.get_running_loop(), event))
        await event.wait()

    def stop(self) -> None:
        self.stopped = True


class CameraFrameSource(FrameSource):
    """
    OpenCV webcam source.

    A daemon thread keeps reading the camera and publishes the latest frame;
    readers never block on the device.
    """

    def __init__(
        self,
        camera_index: int = const.DEFAULT_CAMERA_INDEX,
        width: Optional[int] = None,
        height: Optional[int] = None,
        mirror: bool = False
    ):
        super().__init__()
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.mirror = mirror
        self.logger = logging.getLogger(__name__)

        self.camera: Optional[cv2.VideoCapture] = None
        self._reader_thread: Optional[threading.Thread] = None
        self._running = False
        self.frames_read = 0

    def open(self) -> "CameraFrameSource":
        """
        Open the camera and start the reader thread.

        Raises:
            CameraUnavailable: if the device cannot be opened or the capture
                backend fails while opening it
        """
        try:
            camera = cv2.VideoCapture(self.camera_index)
        except (cv2.error, OSError) as e:
            self.logger.error(f"Camera backend error for camera {self.camera_index}: {e}")
            raise CameraUnavailable(f"Failed to open camera {self.camera_index}: {e}") from e

        if not camera.isOpened():
            camera.release()
            self.logger.error(f"Failed to open camera {self.camera_index}")
            raise CameraUnavailable(f"Failed to open camera {self.camera_index}")

        if self.width:
            camera.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            camera.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        self.camera = camera
        self._running = True
        self._reader_thread = threading.Thread(target=self._read_frames, daemon=True)
        self._reader_thread.start()
        self.logger.info(f"Camera {self.camera_index} opened")
        return self

    def _read_frames(self):
        """Background thread that continuously reads camera frames."""
        while self._running and self.camera is not None:
            ret, frame = self.camera.read()
            if not ret:
                time.sleep(const.CAMERA_READ_RETRY_DELAY)
                continue

            if self.mirror:
                frame = cv2.flip(frame, 1)

            self.frames_read += 1
            self.publish(frame)

        self.logger.debug("Camera reader thread stopped")

    def stop(self) -> None:
        """Stop the reader thread and release the device."""
        super().stop()
        self._running = False

        if self._reader_thread and self._reader_thread.is_alive():
            self._reader_thread.join(timeout=2.0)
        self._reader_thread = None

        if self.camera is not None:
            self.camera.release()
            self.camera = None
            self.logger.info(f"Camera {self.camera_index} released after {self.frames_read} frames")
