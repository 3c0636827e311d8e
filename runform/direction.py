"""Facing-direction inference for side-view running clips.

The runner faces right (+1) when the nose is to the right of the hip
midpoint and left (-1) otherwise. Offsets inside a small deadband are
indeterminate (0): a runner seen nearly head-on gives no usable sign.

During sampling a run locks the direction from its first detection and
collects one vote per detected frame; after sampling the direction is
re-resolved by majority vote and the vote split is used by the
direction gates.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .constants import Landmark
from .geometry import midpoint

logger = logging.getLogger(__name__)

DIRECTION_MODES = ("auto", "right", "left")


def direction_sign(landmarks: Optional[np.ndarray], deadband: float = 0.015) -> int:
    """Return +1 (facing right), -1 (facing left) or 0 (indeterminate)."""
    if landmarks is None:
        return 0
    nose = landmarks[Landmark.NOSE]
    hip = midpoint(landmarks[Landmark.LEFT_HIP], landmarks[Landmark.RIGHT_HIP])
    dx = float(nose[0] - hip[0])
    if not math.isfinite(dx) or abs(dx) < deadband:
        return 0
    return 1 if dx > 0 else -1


def estimate_direction(landmarks: Optional[np.ndarray], deadband: float = 0.015) -> int:
    """Facing sign for a single pose, defaulting to +1 when indeterminate."""
    return direction_sign(landmarks, deadband) or 1


def resolve_direction(landmarks: Optional[np.ndarray], mode: str = "auto",
                      deadband: float = 0.015) -> int:
    """Direction for a pose under a direction *mode*.

    ``"right"`` and ``"left"`` force +1 and -1; ``"auto"`` infers it.
    """
    if mode == "right":
        return 1
    if mode == "left":
        return -1
    if mode != "auto":
        raise ValueError(f"Unknown direction mode: {mode}. Available: {', '.join(DIRECTION_MODES)}")
    return estimate_direction(landmarks, deadband)


@dataclass
class DirectionVotes:
    """Per-frame facing votes collected during one sampling run."""

    right: int = 0
    left: int = 0

    def add(self, sign: int) -> None:
        if sign > 0:
            self.right += 1
        elif sign < 0:
            self.left += 1

    @property
    def total(self) -> int:
        return self.right + self.left

    @property
    def flip_ratio(self) -> float:
        """Minority share of the votes, 0 when only one direction was seen."""
        if self.right == 0 or self.left == 0:
            return 0.0
        return min(self.right, self.left) / self.total

    def majority(self) -> int:
        return 1 if self.right >= self.left else -1
