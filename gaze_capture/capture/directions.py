"""
Fixed catalog of gaze directions captured during calibration
"""

from enum import Enum
from typing import Tuple


class Direction(str, Enum):
    """A gaze direction. The value doubles as upload label and storage path segment."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    STRAIGHT = "straight"
    CLOSED = "closed"

    @property
    def label(self) -> str:
        return self.value

    @property
    def prompt(self) -> str:
        if self is Direction.CLOSED:
            return "Close your eyes"
        if self is Direction.STRAIGHT:
            return "Look straight ahead"
        return f"Look {self.value}"


# Capture order
DIRECTIONS: Tuple[Direction, ...] = (
    Direction.UP,
    Direction.DOWN,
    Direction.LEFT,
    Direction.RIGHT,
    Direction.STRAIGHT,
    Direction.CLOSED,
)
