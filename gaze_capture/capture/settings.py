"""
Typed settings for the capture wizard, built from the YAML config.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from gaze_capture import constants as const
from gaze_capture.utils.config_loader import get_section


@dataclass(frozen=True)
class CropRegion:
    """Eye region heuristic, as fractions of the frame. Horizontally centered."""

    width_fraction: float = const.DEFAULT_CROP_WIDTH_FRACTION
    top: float = const.DEFAULT_CROP_TOP
    bottom: float = const.DEFAULT_CROP_BOTTOM

    def __post_init__(self):
        if not 0.0 < self.width_fraction <= 1.0:
            raise ValueError(f"width_fraction must be in (0, 1], got {self.width_fraction}")
        if not 0.0 <= self.top < self.bottom <= 1.0:
            raise ValueError(f"Expected 0 <= top < bottom <= 1, got top={self.top} bottom={self.bottom}")


@dataclass
class CaptureSettings:
    """Timing and encoding parameters of the capture sequence."""

    frames_per_direction: int = const.DEFAULT_FRAMES_PER_DIRECTION
    countdown_seconds: int = const.DEFAULT_COUNTDOWN_SECONDS
    frame_interval: float = const.DEFAULT_FRAME_INTERVAL
    settle_delay: float = const.DEFAULT_SETTLE_DELAY
    jpeg_quality: int = const.DEFAULT_JPEG_QUALITY
    crop_region: CropRegion = field(default_factory=CropRegion)

    # Upload endpoint
    upload_url: str = const.DEFAULT_UPLOAD_URL
    upload_timeout: float = const.DEFAULT_UPLOAD_TIMEOUT

    # Camera
    camera_index: int = const.DEFAULT_CAMERA_INDEX
    camera_width: Optional[int] = None
    camera_height: Optional[int] = None
    mirror: bool = False

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "CaptureSettings":
        """Build settings from the `capture`, `upload` and `camera` config sections."""
        capture_cfg = get_section(config, 'capture')
        upload_cfg = get_section(config, 'upload')
        camera_cfg = get_section(config, 'camera')
        crop_cfg = capture_cfg.get('crop_region') or {}

        return cls(
            frames_per_direction=int(capture_cfg.get('frames_per_direction', const.DEFAULT_FRAMES_PER_DIRECTION)),
            countdown_seconds=int(capture_cfg.get('countdown_seconds', const.DEFAULT_COUNTDOWN_SECONDS)),
            frame_interval=float(capture_cfg.get('frame_interval', const.DEFAULT_FRAME_INTERVAL)),
            settle_delay=float(capture_cfg.get('settle_delay', const.DEFAULT_SETTLE_DELAY)),
            jpeg_quality=int(capture_cfg.get('jpeg_quality', const.DEFAULT_JPEG_QUALITY)),
            crop_region=CropRegion(
                width_fraction=float(crop_cfg.get('width_fraction', const.DEFAULT_CROP_WIDTH_FRACTION)),
                top=float(crop_cfg.get('top', const.DEFAULT_CROP_TOP)),
                bottom=float(crop_cfg.get('bottom', const.DEFAULT_CROP_BOTTOM)),
            ),
            upload_url=str(upload_cfg.get('url', const.DEFAULT_UPLOAD_URL)),
            upload_timeout=float(upload_cfg.get('timeout', const.DEFAULT_UPLOAD_TIMEOUT)),
            camera_index=int(camera_cfg.get('index', const.DEFAULT_CAMERA_INDEX)),
            camera_width=camera_cfg.get('width'),
            camera_height=camera_cfg.get('height'),
            mirror=bool(camera_cfg.get('mirror', False)),
        )
