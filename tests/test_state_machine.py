"""
Tests for the capture sequencing state machine
"""

import asyncio
import threading

import pytest

from gaze_capture.capture.directions import DIRECTIONS, Direction
from gaze_capture.capture.settings import CaptureSettings
from gaze_capture.capture.state_machine import (
    CAMERA_ALERT,
    CaptureStage,
    CaptureStateMachine,
)
from gaze_capture.errors import CameraUnavailable, ErrorKind

from conftest import FakeFrameSource, RecordingUploader, make_frame


def build_machine(uploader, scheduler, listener=None, source=None, settings=None):
    source = source or FakeFrameSource(make_frame())
    machine = CaptureStateMachine(
        source_factory=lambda: source,
        uploader=uploader,
        settings=settings,
        scheduler=scheduler,
        listener=listener,
    )
    return machine, source


def run_to_completion(machine):
    async def scenario():
        assert await machine.start()
        assert machine.stage is CaptureStage.ALIGNING
        assert await machine.confirm_alignment()
        stage = machine.stage
        await machine.close()
        return stage

    return asyncio.run(scenario())


class TestCaptureSequence:
    """End-to-end runs with a fake camera and uploader"""

    def test_directions_captured_in_fixed_order(self, scheduler, listener):
        """Test six directions, five uploads each, in catalog order"""
        uploader = RecordingUploader()
        machine, _ = build_machine(uploader, scheduler, listener)

        assert run_to_completion(machine) is CaptureStage.COMPLETE

        expected = [d.value for d in DIRECTIONS for _ in range(5)]
        assert [call.label for call in uploader.calls] == expected
        assert listener.captured_labels == expected
        assert len(uploader.calls) == 30
        assert [d.value for d in DIRECTIONS] == ["up", "down", "left", "right", "straight", "closed"]

        capturing = [label for stage, label in listener.stages if stage is CaptureStage.CAPTURING]
        assert capturing == [d.value for d in DIRECTIONS]
        assert listener.stages[-1][0] is CaptureStage.COMPLETE

    def test_uploads_never_overlap(self, scheduler):
        """Test each upload finishes before the next one starts"""
        uploader = RecordingUploader(delay=0.002)
        machine, _ = build_machine(uploader, scheduler)

        run_to_completion(machine)

        assert uploader.max_in_flight == 1
        for previous, following in zip(uploader.calls, uploader.calls[1:]):
            assert previous.finished < following.started

    def test_timed_steps(self, scheduler):
        """Test countdown delay, frame pauses and settle delays are requested"""
        uploader = RecordingUploader()
        machine, _ = build_machine(uploader, scheduler)

        run_to_completion(machine)

        assert scheduler.sleeps.count(3.0) == 6
        assert scheduler.sleeps.count(0.3) == 6 * 4
        assert scheduler.sleeps.count(2.0) == 6

    def test_upload_failures_do_not_stop_sequence(self, scheduler, listener):
        """Test the wizard reaches COMPLETE when every upload fails"""
        uploader = RecordingUploader(succeed=False)
        machine, _ = build_machine(uploader, scheduler, listener)

        assert run_to_completion(machine) is CaptureStage.COMPLETE

        assert len(uploader.calls) == 30
        assert len(machine.session.outcomes) == 30
        assert not any(outcome.success for outcome in machine.session.outcomes)
        assert all(outcome.error_kind is ErrorKind.STORE_WRITE_FAILED for outcome in machine.session.outcomes)
        assert len(listener.alerts) == 30

    def test_summary_counts(self, scheduler):
        """Test per-direction summary after a successful run"""
        machine, _ = build_machine(RecordingUploader(), scheduler)

        run_to_completion(machine)

        summary = machine.session.summary()
        assert list(summary) == [d.value for d in DIRECTIONS]
        assert all(entry == {'succeeded': 5, 'failed': 0} for entry in summary.values())

    def test_custom_frame_count(self, scheduler):
        """Test frames_per_direction is honored"""
        uploader = RecordingUploader()
        machine, _ = build_machine(uploader, scheduler, settings=CaptureSettings(frames_per_direction=2))

        run_to_completion(machine)

        assert len(uploader.calls) == 12
        assert machine.session.captured == 2

    def test_transition_cues(self, scheduler, listener):
        """Test a transition cue names the next direction, and None after the last"""
        machine, _ = build_machine(RecordingUploader(), scheduler, listener)

        run_to_completion(machine)

        assert listener.transitions == list(DIRECTIONS[1:]) + [None]

    def test_countdown_reaches_zero(self, scheduler, listener):
        """Test countdown starts at three and ends at zero"""
        machine, _ = build_machine(RecordingUploader(), scheduler, listener)

        run_to_completion(machine)

        assert listener.countdowns[0] == 3
        assert machine.session.countdown == 0
        assert 0 in listener.countdowns


class TestTransitions:
    """Tests for stage guards, camera failure, retake and teardown"""

    def test_camera_failure_stays_not_started(self, scheduler, listener):
        """Test camera denial raises an alert and keeps the start screen"""
        def deny():
            raise CameraUnavailable("permission denied")

        machine = CaptureStateMachine(deny, RecordingUploader(), scheduler=scheduler, listener=listener)

        started = asyncio.run(machine.start())

        assert started is False
        assert machine.stage is CaptureStage.NOT_STARTED
        assert listener.alerts == [CAMERA_ALERT]

    def test_confirm_requires_alignment(self, scheduler):
        """Test confirming before start does nothing"""
        uploader = RecordingUploader()
        machine, _ = build_machine(uploader, scheduler)

        assert asyncio.run(machine.confirm_alignment()) is False
        assert machine.stage is CaptureStage.NOT_STARTED
        assert uploader.calls == []

    def test_start_twice(self, scheduler):
        """Test start is only valid from NOT_STARTED"""
        machine, _ = build_machine(RecordingUploader(), scheduler)

        async def scenario():
            first = await machine.start()
            second = await machine.start()
            return first, second

        assert asyncio.run(scenario()) == (True, False)
        assert machine.stage is CaptureStage.ALIGNING

    def test_retake_restarts_from_first_direction(self, scheduler):
        """Test retake reruns the whole sequence and resets counters"""
        uploader = RecordingUploader()
        machine, _ = build_machine(uploader, scheduler)

        async def scenario():
            await machine.start()
            await machine.confirm_alignment()
            assert await machine.retake()
            await machine.close()

        asyncio.run(scenario())

        assert machine.stage is CaptureStage.COMPLETE
        assert len(uploader.calls) == 60
        assert uploader.calls[30].label == Direction.UP.value
        assert len(machine.session.outcomes) == 30

    def test_retake_requires_complete(self, scheduler):
        """Test retake is rejected before the sequence completes"""
        machine, _ = build_machine(RecordingUploader(), scheduler)

        async def scenario():
            await machine.start()
            return await machine.retake()

        assert asyncio.run(scenario()) is False
        assert machine.stage is CaptureStage.ALIGNING

    def test_close_stops_camera(self, scheduler):
        """Test teardown stops the frame source"""
        machine, source = build_machine(RecordingUploader(), scheduler)

        run_to_completion(machine)

        assert source.stopped is True
        assert machine.closed is True

    def test_close_mid_capture_leaves_upload_running(self, scheduler):
        """Test teardown cancels the sequence but the in-flight upload still finishes"""
        uploader = RecordingUploader(block=True)
        machine, source = build_machine(uploader, scheduler)

        async def scenario():
            await machine.start()
            task = asyncio.ensure_future(machine.confirm_alignment())
            while not uploader.started.is_set():
                await asyncio.sleep(0.001)

            await machine.close()
            uploader.release.set()
            results = await asyncio.gather(task, return_exceptions=True)
            return results[0]

        result = asyncio.run(scenario())

        assert isinstance(result, asyncio.CancelledError)
        assert source.stopped is True
        assert machine.stage is CaptureStage.CAPTURING
        assert len(uploader.calls) == 1
        # asyncio.run waits for the worker thread, so the upload has completed by now
        assert len(uploader.completed) == 1

    def test_waits_for_first_frame(self, scheduler):
        """Test capture suspends until the camera publishes a frame"""
        uploader = RecordingUploader()
        source = FakeFrameSource()
        machine, _ = build_machine(uploader, scheduler, source=source)

        async def scenario():
            await machine.start()
            task = asyncio.ensure_future(machine.confirm_alignment())
            for _ in range(20):
                await asyncio.sleep(0)
            assert uploader.calls == []
            source.publish(make_frame())
            await task
            await machine.close()

        asyncio.run(scenario())

        assert machine.stage is CaptureStage.COMPLETE
        assert len(uploader.calls) == 30


class TestCameraAcquisition:
    """Camera opening failures and teardown while the camera is still opening"""

    def test_unexpected_camera_error_raises_alert(self, scheduler, listener):
        """Test a backend error other than CameraUnavailable is reported, not propagated"""
        def broken_backend():
            raise RuntimeError("cv2.error: backend failure")

        machine = CaptureStateMachine(broken_backend, RecordingUploader(), scheduler=scheduler, listener=listener)

        assert asyncio.run(machine.start()) is False
        assert machine.stage is CaptureStage.NOT_STARTED
        assert listener.alerts == [CAMERA_ALERT]

    @staticmethod
    def blocking_factory(source):
        opening = threading.Event()
        release = threading.Event()

        def factory():
            opening.set()
            release.wait(timeout=5.0)
            return source

        return factory, opening, release

    def test_close_while_opening_releases_camera(self, scheduler):
        """Test a camera that finishes opening after close() is stopped"""
        source = FakeFrameSource(make_frame())
        factory, opening, release = self.blocking_factory(source)
        machine = CaptureStateMachine(factory, RecordingUploader(), scheduler=scheduler)

        async def scenario():
            task = asyncio.ensure_future(machine.start())
            while not opening.is_set():
                await asyncio.sleep(0.001)
            await machine.close()
            release.set()
            return await task

        assert asyncio.run(scenario()) is False
        assert source.stopped is True
        assert machine.stage is CaptureStage.NOT_STARTED

    def test_cancelled_start_then_close_releases_camera(self, scheduler):
        """Test the camera is stopped even when the waiting start() was cancelled"""
        source = FakeFrameSource(make_frame())
        factory, opening, release = self.blocking_factory(source)
        machine = CaptureStateMachine(factory, RecordingUploader(), scheduler=scheduler)

        async def scenario():
            task = asyncio.ensure_future(machine.start())
            while not opening.is_set():
                await asyncio.sleep(0.001)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            await machine.close()
            release.set()

        # asyncio.run joins the worker thread that was opening the camera
        asyncio.run(scenario())

        assert machine.closed is True
        assert source.stopped is True
