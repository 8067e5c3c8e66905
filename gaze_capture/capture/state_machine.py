"""
Capture sequencing state machine.

Walks the user through the fixed list of gaze directions:

    NOT_STARTED -> ALIGNING -> CAPTURING(0..n-1) -> COMPLETE
                                     ^                  |
                                     +---- retake ------+

Transitions inside the capture run are time based rather than driven by frame
completion: each direction shows a cosmetic countdown, waits for the same
duration, captures a fixed number of frames strictly one after another, then
settles before the next direction. Upload failures are reported but never stop
the sequence, so the wizard always reaches COMPLETE.
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Dict, List, Optional, Sequence

from gaze_capture import constants as const
from gaze_capture.capture.directions import DIRECTIONS, Direction
from gaze_capture.capture.frame_pipeline import CaptureOutcome, FramePipeline, Uploader
from gaze_capture.capture.frame_source import FrameSource
from gaze_capture.capture.scheduler import Scheduler
from gaze_capture.capture.settings import CaptureSettings
from gaze_capture.errors import CameraUnavailable


CAMERA_ALERT = "Camera permission needed."

# Opens the camera; raises CameraUnavailable on failure
FrameSourceFactory = Callable[[], FrameSource]


class CaptureStage(Enum):
    NOT_STARTED = auto()
    ALIGNING = auto()
    CAPTURING = auto()
    COMPLETE = auto()


@dataclass
class CaptureSession:
    """In-memory state of one calibration run. Never persisted."""
    stage: CaptureStage = CaptureStage.NOT_STARTED
    direction_index: int = -1
    label: str = ""
    countdown: int = 0
    captured: int = 0
    outcomes: List[CaptureOutcome] = field(default_factory=list)
    frame_source: Optional[FrameSource] = None

    @property
    def direction(self) -> Optional[Direction]:
        if self.stage is not CaptureStage.CAPTURING or not self.label:
            return None
        return Direction(self.label)

    def reset_progress(self):
        self.direction_index = -1
        self.label = ""
        self.countdown = 0
        self.captured = 0
        self.outcomes = []

    def summary(self) -> Dict[str, Dict[str, int]]:
        """Per-label counts of successful and failed frame uploads, in capture order."""
        counts: Dict[str, Dict[str, int]] = OrderedDict()
        for outcome in self.outcomes:
            entry = counts.setdefault(outcome.label, {'succeeded': 0, 'failed': 0})
            entry['succeeded' if outcome.success else 'failed'] += 1
        return counts


class CaptureListener:
    """Receives state machine notifications. All hooks are optional."""

    def on_stage_changed(self, session: CaptureSession) -> None:
        pass

    def on_countdown(self, session: CaptureSession) -> None:
        pass

    def on_frame_captured(self, session: CaptureSession, outcome: CaptureOutcome) -> None:
        pass

    def on_transition(self, session: CaptureSession, next_direction: Optional[Direction]) -> None:
        pass

    def on_alert(self, message: str) -> None:
        pass


class CaptureStateMachine:
    """
    Drives the calibration wizard.

    The machine owns its scheduler; `close()` cancels every timer it started
    and stops the camera. Uploads already running in a worker thread are left
    to finish or fail on their own.
    """

    def __init__(
        self,
        source_factory: FrameSourceFactory,
        uploader: Uploader,
        settings: Optional[CaptureSettings] = None,
        scheduler: Optional[Scheduler] = None,
        listener: Optional[CaptureListener] = None,
        directions: Sequence[Direction] = DIRECTIONS,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            source_factory: Opens the frame source (camera)
            uploader: Callable submitting (label, jpeg, filename) to the upload endpoint
            settings: Capture timing/encoding settings
            scheduler: Timer scheduler (tests inject one with instant sleeps)
            listener: Receives progress notifications
            directions: Ordered directions to capture
            clock: Wall clock used to name frames
        """
        self.source_factory = source_factory
        self.uploader = uploader
        self.settings = settings or CaptureSettings()
        self.scheduler = scheduler or Scheduler()
        self.listener = listener or CaptureListener()
        self.directions = tuple(directions)
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        self.session = CaptureSession()
        self.pipeline: Optional[FramePipeline] = None
        self.closed = False
        self._sequence_task: Optional[asyncio.Task] = None
        # Guards `closed` against the camera being handed over from the opening thread
        self._source_lock = threading.Lock()

    @property
    def stage(self) -> CaptureStage:
        return self.session.stage

    def _set_stage(self, stage: CaptureStage):
        if self.session.stage is not stage:
            self.logger.debug(f"Stage {self.session.stage.name} -> {stage.name}")
        self.session.stage = stage
        self.listener.on_stage_changed(self.session)

    async def start(self) -> bool:
        """
        Acquire the camera and move to ALIGNING.

        Returns:
            True if the camera was acquired. On failure an alert is raised and
            the machine stays in NOT_STARTED.
        """
        if self.closed or self.session.stage is not CaptureStage.NOT_STARTED:
            self.logger.warning(f"Cannot start calibration from stage {self.session.stage.name}")
            return False

        try:
            source = await asyncio.to_thread(self._open_source)
        except CameraUnavailable as e:
            self.logger.error(f"Camera unavailable: {e}")
            self.listener.on_alert(CAMERA_ALERT)
            return False
        except Exception as e:
            self.logger.error(f"Error opening camera: {e}", exc_info=True)
            self.listener.on_alert(CAMERA_ALERT)
            return False

        if source is None:
            self.logger.info("Session closed while the camera was opening")
            return False

        self.pipeline = FramePipeline(
            source,
            self.uploader,
            crop_region=self.settings.crop_region,
            jpeg_quality=self.settings.jpeg_quality,
            clock=self.clock,
        )
        self.logger.info("Camera ready, waiting for face alignment")
        self._set_stage(CaptureStage.ALIGNING)
        return True

    def _open_source(self) -> Optional[FrameSource]:
        """
        Runs in a worker thread. The opened source is attached to the session
        under the lock; if the machine was closed meanwhile (including when the
        awaiting `start()` was cancelled) the source is stopped here instead.
        """
        source = self.source_factory()
        with self._source_lock:
            if not self.closed:
                self.session.frame_source = source
                return source
        source.stop()
        return None

    async def confirm_alignment(self) -> bool:
        """User confirmed the face is centered: run the full capture sequence."""
        if self.session.stage is not CaptureStage.ALIGNING:
            self.logger.warning(f"Cannot confirm alignment from stage {self.session.stage.name}")
            return False
        await self._run_in_task()
        return True

    async def retake(self) -> bool:
        """Run the capture sequence again from the first direction."""
        if self.session.stage is not CaptureStage.COMPLETE:
            self.logger.warning(f"Cannot retake from stage {self.session.stage.name}")
            return False
        self.logger.info("Retaking calibration")
        await self._run_in_task()
        return True

    async def _run_in_task(self):
        self._sequence_task = self.scheduler.spawn(self._run_sequence())
        await self._sequence_task

    async def _run_sequence(self):
        self.session.reset_progress()
        self.logger.info(f"Starting capture of {len(self.directions)} directions")

        for index, direction in enumerate(self.directions):
            await self._capture_direction(index, direction)

        self.session.label = ""
        self._set_stage(CaptureStage.COMPLETE)

        summary = self.session.summary()
        failed = sum(entry['failed'] for entry in summary.values())
        self.logger.info(
            f"Calibration complete: {len(self.session.outcomes) - failed}/{len(self.session.outcomes)} frames uploaded"
        )
        for label, entry in summary.items():
            self.logger.debug(f"  {label}: {entry['succeeded']} ok, {entry['failed']} failed")

    async def _capture_direction(self, index: int, direction: Direction):
        settings = self.settings
        session = self.session

        session.direction_index = index
        session.label = direction.label
        session.captured = 0
        session.countdown = settings.countdown_seconds
        self._set_stage(CaptureStage.CAPTURING)
        self.logger.info(f"Capturing '{direction.label}' ({index + 1}/{len(self.directions)})")

        async with self.scheduler.stage() as scope:
            scope.spawn(self._run_countdown())
            await scope.sleep(settings.countdown_seconds * const.COUNTDOWN_TICK_SECONDS)
            session.countdown = 0
            self.listener.on_countdown(session)

            for frame_number in range(settings.frames_per_direction):
                outcome = await self.pipeline.capture_frame(direction.label)
                session.outcomes.append(outcome)
                session.captured = frame_number + 1
                self.listener.on_frame_captured(session, outcome)

                if not outcome.success:
                    self.listener.on_alert(f"Failed to upload image for '{direction.label}': {outcome.message}")

                if frame_number < settings.frames_per_direction - 1:
                    await scope.sleep(settings.frame_interval)

        next_direction = self.directions[index + 1] if index + 1 < len(self.directions) else None
        self.listener.on_transition(session, next_direction)
        await self.scheduler.sleep(settings.settle_delay)

    async def _run_countdown(self):
        """Cosmetic countdown; does not gate the capture."""
        while self.session.countdown > 0:
            self.listener.on_countdown(self.session)
            await self.scheduler.sleep(const.COUNTDOWN_TICK_SECONDS)
            self.session.countdown = max(0, self.session.countdown - 1)

    async def close(self):
        """Tear down: cancel timers and the running sequence, stop the camera."""
        with self._source_lock:
            if self.closed:
                return
            self.closed = True
            source = self.session.frame_source

        task = self._sequence_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self.scheduler.cancel_all()

        if source is not None:
            await asyncio.to_thread(source.stop)
        self.logger.info("Capture session closed")
