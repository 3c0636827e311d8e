"""Per-contact running-form metrics.

For every contact event of a leg the pose at that frame yields:

- **overstride**: horizontal ankle offset ahead of the hip midpoint along
  the running direction, also as a ratio of leg length;
- **knee angle**: hip-knee-ankle angle (180 = fully straight);
- **trunk lean**: shoulder-midpoint tilt from vertical, positive when
  leaning into the running direction;
- **foot strike**: heel, midfoot or forefoot from heel vs. toe height;
- **retraction speed**: how fast the ankle was moving back towards the
  hip just before contact, in leg-offset units per real second.

Every metric is NaN when its inputs are invalid; contacts on frames
without landmarks are skipped.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .constants import Landmark, leg_landmarks
from .geometry import angle_deg, dist_2d, midpoint

logger = logging.getLogger(__name__)

STRIKE_TYPES = ("heel", "midfoot", "forefoot", "unknown")


@dataclass(frozen=True)
class ContactMetric:
    """Metrics of one ground contact."""
    t: float
    leg: str
    overstride_ratio: float
    knee_angle: float
    trunk_lean_deg: float
    strike: str
    retract_speed: float
    leg_len: float
    overstride: float

    def __post_init__(self):
        if self.strike not in STRIKE_TYPES:
            raise ValueError(f"Unknown strike type: {self.strike}. Available: {', '.join(STRIKE_TYPES)}")

    def to_dict(self) -> dict:
        return {
            "t": self.t,
            "leg": self.leg,
            "overstride_ratio": self.overstride_ratio,
            "knee_angle": self.knee_angle,
            "trunk_lean_deg": self.trunk_lean_deg,
            "strike": self.strike,
            "retract_speed": self.retract_speed,
            "leg_len": self.leg_len,
            "overstride": self.overstride,
        }


def classify_foot_strike(
    heel: Optional[Sequence[float]],
    toe: Optional[Sequence[float]],
    threshold: float = 0.012,
) -> str:
    """Classify the strike pattern from heel and toe positions.

    ``dy = heel.y - toe.y``: above *threshold* the heel is lower (heel
    strike), below ``-threshold`` the toe is lower (forefoot), otherwise
    midfoot. ``"unknown"`` when a point is missing or ``dy`` is not finite.
    """
    if heel is None or toe is None:
        return "unknown"
    dy = float(heel[1]) - float(toe[1])
    if not math.isfinite(dy):
        return "unknown"
    if dy > threshold:
        return "heel"
    if dy < -threshold:
        return "forefoot"
    return "midfoot"


def _hip_mid(landmarks: np.ndarray) -> np.ndarray:
    return midpoint(landmarks[Landmark.LEFT_HIP], landmarks[Landmark.RIGHT_HIP])


def _trunk_lean(landmarks: np.ndarray, hip: np.ndarray, direction: int) -> float:
    shoulder = midpoint(landmarks[Landmark.LEFT_SHOULDER], landmarks[Landmark.RIGHT_SHOULDER])
    dx = (shoulder[0] - hip[0]) * direction
    dy = hip[1] - shoulder[1]  # > 0 when the shoulders are above the hips
    if dy == 0 or not math.isfinite(dy):
        return float("nan")
    return math.degrees(math.atan(dx / dy))


def compute_contact_metrics(
    frames: Sequence,
    contacts: Sequence[int],
    leg: str,
    direction: int,
    time_scale: float = 1.0,
    strike_threshold: float = 0.012,
    retract_window_s: float = 0.12,
) -> List[ContactMetric]:
    """Compute metrics for the contact events of one leg.

    Parameters
    ----------
    frames : sequence of FrameRecord
        Full sampled sequence.
    contacts : sequence of int
        Contact frame indices for *leg*.
    leg : str
        ``"L"`` or ``"R"``.
    direction : int
        +1 when running to the right, -1 to the left.
    time_scale : float, optional
        Slow-motion factor (1 for real-time footage). Scales the
        retraction window and converts video time to real time.
    strike_threshold : float, optional
        Heel-toe height difference separating strike types.
    retract_window_s : float, optional
        Real-time look-back for the retraction speed (default 0.12 s).

    Returns
    -------
    list of ContactMetric
        One entry per contact whose frame has landmarks, in input order.
    """
    lm = leg_landmarks(leg)
    window_s = retract_window_s * time_scale
    out = []

    for i in contacts:
        f = frames[i]
        if f.landmarks is None:
            continue
        L = f.landmarks

        hip = _hip_mid(L)
        knee = L[lm["knee"]]
        ankle = L[lm["ankle"]]

        leg_len = dist_2d(hip, knee) + dist_2d(knee, ankle)
        overstride = float((ankle[0] - hip[0]) * direction)
        overstride_ratio = overstride / leg_len if leg_len > 0 else float("nan")

        knee_angle = angle_deg(hip, knee, ankle)
        trunk_lean = _trunk_lean(L, hip, direction)
        strike = classify_foot_strike(L[lm["heel"]], L[lm["toe"]], strike_threshold)

        # Window sized with the nominal sample rate, not the capture rate
        w = max(2, math.floor(f.sample_fps * window_s)) if f.sample_fps else 2
        f0 = frames[max(0, i - w)]
        retract_speed = float("nan")
        if f0.landmarks is not None:
            rel0 = (f0.landmarks[lm["ankle"]][0] - _hip_mid(f0.landmarks)[0]) * direction
            rel1 = (ankle[0] - hip[0]) * direction
            dt = (f.t - f0.t) / time_scale
            if math.isfinite(dt) and dt > 0:
                retract_speed = float(-(rel1 - rel0) / dt)

        out.append(ContactMetric(
            t=f.t,
            leg=leg,
            overstride_ratio=float(overstride_ratio),
            knee_angle=float(knee_angle),
            trunk_lean_deg=float(trunk_lean),
            strike=strike,
            retract_speed=retract_speed,
            leg_len=float(leg_len),
            overstride=overstride,
        ))

    logger.debug(f"Leg {leg}: {len(out)}/{len(contacts)} contacts with metrics")
    return out
