"""
OpenCV window for the calibration wizard.

Renders the current stage over the live camera frame and maps key presses
to state machine actions:

    SPACE      start calibration / continue after alignment
    r          retake once complete
    q / ESC    quit
"""

import asyncio
import logging
from typing import List, Optional

import cv2
import numpy as np

from gaze_capture import constants as const
from gaze_capture.capture.directions import Direction
from gaze_capture.capture.frame_pipeline import CaptureOutcome, compute_crop_rect
from gaze_capture.capture.state_machine import (
    CaptureListener,
    CaptureSession,
    CaptureStage,
    CaptureStateMachine,
)


DEFAULT_CANVAS_SIZE = (480, 640)

KEY_SPACE = ord(' ')
KEY_RETAKE = ord('r')
KEY_QUIT = ord('q')
KEY_ESC = 27


def _draw_centered_text(canvas, text, y, scale, color, thickness):
    (text_width, _), _ = cv2.getTextSize(text, const.TEXT_FONT, scale, thickness)
    x = max(const.TEXT_MARGIN_X, (canvas.shape[1] - text_width) // 2)
    cv2.putText(canvas, text, (x, y), const.TEXT_FONT, scale, color, thickness, cv2.LINE_AA)


def compose_frame(
    session: CaptureSession,
    frame: Optional[np.ndarray],
    frames_per_direction: int,
    alert: Optional[str] = None,
    transition_text: Optional[str] = None
) -> np.ndarray:
    """
    Draw the wizard screen for the current session state.

    Args:
        session: Current capture session
        frame: Latest camera frame (None before the camera is open)
        frames_per_direction: Used for the "Capturing... (n/N)" progress text
        alert: Message shown in a modal panel until dismissed
        transition_text: Cue shown while settling between directions

    Returns:
        BGR image ready for cv2.imshow
    """
    if frame is not None:
        canvas = frame.copy()
        h, w = canvas.shape[:2]
    else:
        h, w = DEFAULT_CANVAS_SIZE
        canvas = np.full((h, w, 3), const.COLOR_BACKGROUND, dtype=np.uint8)

    stage = session.stage

    if stage is CaptureStage.NOT_STARTED:
        canvas[:] = const.COLOR_BACKGROUND
        _draw_centered_text(canvas, "Gaze Calibration", h // 3,
                            const.TEXT_FONT_SCALE_LARGE, const.COLOR_WHITE, const.TEXT_THICKNESS_BOLD)
        _draw_centered_text(canvas, "We will take a few pictures of your eyes.", h // 2,
                            const.TEXT_FONT_SCALE_SMALL, const.COLOR_GRAY, const.TEXT_THICKNESS_NORMAL)
        _draw_centered_text(canvas, "Press SPACE to start calibration", h // 2 + const.TEXT_LINE_HEIGHT * 2,
                            const.TEXT_FONT_SCALE_MEDIUM, const.COLOR_BLUE, const.TEXT_THICKNESS_BOLD)

    elif stage is CaptureStage.ALIGNING:
        # Face guide: the eye region the pipeline will crop
        rect = compute_crop_rect(w, h)
        x0, y0, x1, y1 = rect.to_pixels(w, h)
        cv2.ellipse(canvas, (w // 2, h // 2), (w // 5, int(h * 0.4)), 0, 0, 360,
                    const.COLOR_BLUE, 2, cv2.LINE_AA)
        cv2.rectangle(canvas, (x0, y0), (x1, y1), const.COLOR_GREEN, 1)
        _draw_centered_text(canvas, "Center your face in the frame", h - const.TEXT_LINE_HEIGHT * 2,
                            const.TEXT_FONT_SCALE_MEDIUM, const.COLOR_WHITE, const.TEXT_THICKNESS_BOLD)
        _draw_centered_text(canvas, "Press SPACE to continue", h - const.TEXT_LINE_HEIGHT,
                            const.TEXT_FONT_SCALE_SMALL, const.COLOR_GREEN, const.TEXT_THICKNESS_NORMAL)

    elif stage is CaptureStage.CAPTURING:
        # Dim the video behind the prompt panel
        canvas = cv2.addWeighted(canvas, 0.4, np.zeros_like(canvas), 0.6, 0)
        panel_top, panel_bottom = h // 3, h // 3 + const.TEXT_LINE_HEIGHT * 4
        cv2.rectangle(canvas, (w // 6, panel_top), (w - w // 6, panel_bottom), const.COLOR_PANEL, -1)

        direction = session.direction
        prompt = direction.prompt if direction is not None else ""
        _draw_centered_text(canvas, prompt, panel_top + const.TEXT_LINE_HEIGHT + 10,
                            const.TEXT_FONT_SCALE_LARGE, const.COLOR_WHITE, const.TEXT_THICKNESS_BOLD)

        if transition_text:
            status, color = transition_text, const.COLOR_GREEN
        elif session.countdown > 0:
            status, color = str(session.countdown), const.COLOR_BLUE
        elif session.captured > 0:
            status, color = f"Capturing... ({session.captured}/{frames_per_direction})", const.COLOR_GRAY
        else:
            status, color = "Hold still...", const.COLOR_GRAY
        _draw_centered_text(canvas, status, panel_top + const.TEXT_LINE_HEIGHT * 3,
                            const.TEXT_FONT_SCALE_MEDIUM, color, const.TEXT_THICKNESS_BOLD)

    elif stage is CaptureStage.COMPLETE:
        canvas[:] = const.COLOR_BACKGROUND
        summary = session.summary()
        total = sum(entry['succeeded'] + entry['failed'] for entry in summary.values())
        saved = sum(entry['succeeded'] for entry in summary.values())
        _draw_centered_text(canvas, "Calibration complete!", h // 3,
                            const.TEXT_FONT_SCALE_LARGE, const.COLOR_WHITE, const.TEXT_THICKNESS_BOLD)
        _draw_centered_text(canvas, f"{saved} of {total} images saved", h // 2,
                            const.TEXT_FONT_SCALE_SMALL, const.COLOR_GRAY, const.TEXT_THICKNESS_NORMAL)
        _draw_centered_text(canvas, "Press r to retake, q to quit", h // 2 + const.TEXT_LINE_HEIGHT * 2,
                            const.TEXT_FONT_SCALE_SMALL, const.COLOR_BLUE, const.TEXT_THICKNESS_NORMAL)

    if alert:
        top = h - const.TEXT_LINE_HEIGHT * 4
        cv2.rectangle(canvas, (0, top), (w, h), const.COLOR_PANEL, -1)
        cv2.putText(canvas, alert[:80], (const.TEXT_MARGIN_X, top + const.TEXT_LINE_HEIGHT),
                    const.TEXT_FONT, const.TEXT_FONT_SCALE_SMALL, const.COLOR_RED, const.TEXT_THICKNESS_BOLD)
        cv2.putText(canvas, const.ALERT_KEY_HINT, (const.TEXT_MARGIN_X, top + const.TEXT_LINE_HEIGHT * 2),
                    const.TEXT_FONT, const.TEXT_FONT_SCALE_SMALL, const.COLOR_GRAY, const.TEXT_THICKNESS_NORMAL)

    return canvas


class CaptureWindow(CaptureListener):
    """Listener that shows the wizard in an OpenCV window and dispatches key presses."""

    def __init__(self, window_name: str = const.WINDOW_NAME):
        self.window_name = window_name
        self.machine: Optional[CaptureStateMachine] = None
        self.logger = logging.getLogger(__name__)

        self.alerts: List[str] = []
        self.transition_text: Optional[str] = None
        self.running = False
        self._action: Optional[asyncio.Task] = None

    # Listener hooks

    def on_stage_changed(self, session: CaptureSession) -> None:
        self.transition_text = None

    def on_transition(self, session: CaptureSession, next_direction: Optional[Direction]) -> None:
        self.transition_text = f"Next: {next_direction.prompt}" if next_direction else "Done!"

    def on_alert(self, message: str) -> None:
        self.alerts.append(message)

    def on_frame_captured(self, session: CaptureSession, outcome: CaptureOutcome) -> None:
        if not outcome.success:
            self.logger.warning(f"Frame {outcome.name} not saved: {outcome.message}")

    # Key handling

    def handle_key(self, key: int) -> None:
        """Map a key code to a state machine action."""
        if key in (KEY_QUIT, KEY_ESC):
            self.running = False
            return

        if self.alerts:
            if key != 255:
                self.alerts.pop(0)
            return

        machine = self.machine
        if machine is None or (self._action is not None and not self._action.done()):
            return

        if key == KEY_SPACE and machine.stage is CaptureStage.NOT_STARTED:
            self._action = asyncio.ensure_future(machine.start())
        elif key == KEY_SPACE and machine.stage is CaptureStage.ALIGNING:
            self._action = asyncio.ensure_future(machine.confirm_alignment())
        elif key == KEY_RETAKE and machine.stage is CaptureStage.COMPLETE:
            self._action = asyncio.ensure_future(machine.retake())

    async def run(self, machine: CaptureStateMachine) -> None:
        """Render loop. Returns when the user quits."""
        self.machine = machine
        self.running = True
        cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)

        try:
            while self.running:
                source = machine.session.frame_source
                frame = source.current_frame() if source is not None else None
                canvas = compose_frame(
                    machine.session,
                    frame,
                    machine.settings.frames_per_direction,
                    alert=self.alerts[0] if self.alerts else None,
                    transition_text=self.transition_text,
                )
                cv2.imshow(self.window_name, canvas)

                key = cv2.waitKey(1) & 0xFF
                self.handle_key(key)
                await asyncio.sleep(const.VIEW_REFRESH_SECONDS)
        finally:
            if self._action is not None and not self._action.done():
                self._action.cancel()
                await asyncio.gather(self._action, return_exceptions=True)
            await machine.close()
            cv2.destroyWindow(self.window_name)


class HeadlessRunner(CaptureListener):
    """Runs the whole wizard without a window: auto-start, auto-confirm, log progress."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.alerts: List[str] = []

    def on_countdown(self, session: CaptureSession) -> None:
        if session.countdown > 0:
            self.logger.info(f"{session.direction.prompt}... {session.countdown}")

    def on_frame_captured(self, session: CaptureSession, outcome: CaptureOutcome) -> None:
        status = "saved" if outcome.success else f"failed ({outcome.message})"
        self.logger.info(f"  [{session.label}] frame {session.captured}: {status}")

    def on_alert(self, message: str) -> None:
        self.alerts.append(message)
        self.logger.warning(message)

    async def run(self, machine: CaptureStateMachine) -> bool:
        """
        Returns:
            True if the sequence reached COMPLETE
        """
        try:
            if not await machine.start():
                return False
            await machine.confirm_alignment()
            return machine.stage is CaptureStage.COMPLETE
        finally:
            await machine.close()
