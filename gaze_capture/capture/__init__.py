"""
Capture Module
Drives the gaze calibration wizard: direction catalog, state machine,
frame pipeline, camera source and upload client
"""

from gaze_capture.capture.directions import Direction, DIRECTIONS
from gaze_capture.capture.frame_pipeline import (
    CaptureOutcome,
    CropRect,
    FramePipeline,
    compute_crop_rect,
)
from gaze_capture.capture.frame_source import FrameSource, CameraFrameSource
from gaze_capture.capture.scheduler import Scheduler
from gaze_capture.capture.settings import CaptureSettings, CropRegion
from gaze_capture.capture.state_machine import (
    CaptureListener,
    CaptureSession,
    CaptureStage,
    CaptureStateMachine,
)
from gaze_capture.capture.upload_client import UploadClient, UploadResult

__all__ = [
    'Direction',
    'DIRECTIONS',
    'CaptureOutcome',
    'CropRect',
    'FramePipeline',
    'compute_crop_rect',
    'FrameSource',
    'CameraFrameSource',
    'Scheduler',
    'CaptureSettings',
    'CropRegion',
    'CaptureListener',
    'CaptureSession',
    'CaptureStage',
    'CaptureStateMachine',
    'UploadClient',
    'UploadResult',
]
