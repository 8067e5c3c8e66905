"""
Shared fakes for the capture and upload tests
"""

import asyncio
import itertools
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pytest

from gaze_capture.capture.frame_source import FrameSource
from gaze_capture.capture.scheduler import Scheduler
from gaze_capture.capture.state_machine import CaptureListener, CaptureSession
from gaze_capture.capture.upload_client import UploadResult
from gaze_capture.errors import ErrorKind, StoreWriteFailed


def make_frame(width: int = 64, height: int = 48, value: int = 128) -> np.ndarray:
    return np.full((height, width, 3), value, dtype=np.uint8)


class FakeFrameSource(FrameSource):
    """Frame source fed by the test"""

    def __init__(self, frame: Optional[np.ndarray] = None):
        super().__init__()
        if frame is not None:
            self.publish(frame)


class ImmediateScheduler(Scheduler):
    """Scheduler whose sleeps only yield to the event loop; records requested delays"""

    def __init__(self):
        super().__init__()
        self.sleeps: List[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        await asyncio.sleep(0)


@dataclass
class UploadCall:
    label: str
    name: str
    size: int
    started: int
    finished: int = -1


class RecordingUploader:
    """
    Thread-safe fake uploader. Records an ordered start/finish sequence number
    per call so tests can check that uploads never overlap.
    """

    def __init__(self, succeed: bool = True, delay: float = 0.001, block: bool = False):
        self.succeed = succeed
        self.delay = delay
        self.calls: List[UploadCall] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()
        self._lock = threading.Lock()
        self._sequence = itertools.count()

    def __call__(self, label: str, image: bytes, name: str) -> UploadResult:
        with self._lock:
            call = UploadCall(label=label, name=name, size=len(image), started=next(self._sequence))
            self.calls.append(call)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.started.set()

        self.release.wait(timeout=5.0)
        time.sleep(self.delay)

        with self._lock:
            self.in_flight -= 1
            call.finished = next(self._sequence)

        if self.succeed:
            return UploadResult(success=True, status_code=200, filename=f"user1/{label}/{name}")
        return UploadResult(
            success=False,
            status_code=500,
            error_kind=ErrorKind.STORE_WRITE_FAILED,
            message="upload rejected",
        )

    @property
    def completed(self) -> List[UploadCall]:
        return [call for call in self.calls if call.finished >= 0]


class RecordingListener(CaptureListener):
    def __init__(self):
        self.stages = []
        self.captured_labels: List[str] = []
        self.transitions = []
        self.alerts: List[str] = []
        self.countdowns: List[int] = []

    def on_stage_changed(self, session: CaptureSession) -> None:
        self.stages.append((session.stage, session.label))

    def on_countdown(self, session: CaptureSession) -> None:
        self.countdowns.append(session.countdown)

    def on_frame_captured(self, session, outcome) -> None:
        self.captured_labels.append(outcome.label)

    def on_transition(self, session, next_direction) -> None:
        self.transitions.append(next_direction)

    def on_alert(self, message: str) -> None:
        self.alerts.append(message)


class FakeBlobStore:
    """In-memory create-only blob store with call counters"""

    def __init__(self, buckets=("calibration",), list_error: bool = False):
        self.buckets = list(buckets)
        self.list_error = list_error
        self.objects: Dict[str, bytes] = {}
        self.list_calls = 0
        self.upload_calls = 0
        self.upserts: List[bool] = []

    def list_buckets(self):
        self.list_calls += 1
        if self.list_error:
            raise StoreWriteFailed("listing not permitted")
        return [{'name': name, 'id': name} for name in self.buckets]

    def upload(self, bucket, path, data, content_type="image/jpeg", upsert=False):
        self.upload_calls += 1
        self.upserts.append(upsert)
        key = f"{bucket}/{path}"
        if bucket not in self.buckets:
            raise StoreWriteFailed("Bucket not found", details={'errorName': 'NoSuchBucket'})
        if key in self.objects and not upsert:
            raise StoreWriteFailed("The resource already exists", details={'errorName': 'Duplicate'})
        self.objects[key] = data
        return {'path': path, 'id': f"id-{self.upload_calls}", 'fullPath': key}


class FixedClock:
    def __init__(self, now: float = 1700000000.5):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def scheduler():
    return ImmediateScheduler()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def store_env():
    return {
        'SUPABASE_URL': 'https://example.supabase.co',
        'SUPABASE_SECRET_KEY': 'service-key',
    }
