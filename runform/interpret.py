"""Interpretation of the summary metrics.

Maps each metric to a level (``good``, ``warn``, ``bad`` or ``na`` when
the metric is NaN) and a message key. Keys are stable identifiers for a
presentation layer to translate; no user-facing text lives here.

Thresholds:

- overstride ratio: >= 0.20 severe, >= 0.12 moderate, >= 0.06 mild;
- knee angle at contact: >= 170 deg locked, >= 160 deg extended;
- trunk lean: < -2 deg backward, < 0 deg slightly backward,
  <= 12 deg reasonable, above that large forward lean;
- retraction speed: < -0.02 still reaching forward, < 0.02 slow pull.

The summary flags and advice use a single cut-off per metric (overstride
0.12, knee 165 deg, trunk -1 deg, retraction 0.02) and the heel-strike
rate (>= 0.6 mostly heel, <= 0.2 mostly not).
"""

import math
from dataclasses import dataclass
from typing import List

from .analysis import AnalysisSummary

LEVELS = ("good", "warn", "bad", "na")


@dataclass(frozen=True)
class Finding:
    key: str
    level: str

    def __post_init__(self):
        if self.level not in LEVELS:
            raise ValueError(f"Unknown level: {self.level}. Available: {', '.join(LEVELS)}")

    def to_dict(self) -> dict:
        return {"key": self.key, "level": self.level}


def _finite(x) -> bool:
    return x is not None and math.isfinite(x)


def interpret_overstride(ratio: float) -> Finding:
    if not _finite(ratio):
        return Finding("overstride.unknown", "na")
    if ratio >= 0.20:
        return Finding("overstride.severe", "bad")
    if ratio >= 0.12:
        return Finding("overstride.moderate", "warn")
    if ratio >= 0.06:
        return Finding("overstride.mild", "warn")
    return Finding("overstride.good", "good")


def interpret_knee(angle: float) -> Finding:
    if not _finite(angle):
        return Finding("knee.unknown", "na")
    if angle >= 170:
        return Finding("knee.locked", "bad")
    if angle >= 160:
        return Finding("knee.extended", "warn")
    return Finding("knee.good", "good")


def interpret_trunk_lean(deg: float) -> Finding:
    """Positive lean is forward along the running direction."""
    if not _finite(deg):
        return Finding("trunk.unknown", "na")
    if deg < -2:
        return Finding("trunk.backward", "bad")
    if deg < 0:
        return Finding("trunk.slight_backward", "warn")
    if deg <= 12:
        return Finding("trunk.reasonable", "good")
    return Finding("trunk.large_forward", "warn")


def interpret_retraction(speed: float) -> Finding:
    """Positive speed means the foot is pulled back before contact."""
    if not _finite(speed):
        return Finding("retraction.unknown", "na")
    if speed < -0.02:
        return Finding("retraction.forward_reach", "bad")
    if speed < 0.02:
        return Finding("retraction.slow_pull", "warn")
    return Finding("retraction.good", "good")


def build_flags(summary: AnalysisSummary) -> List[Finding]:
    """One pass/fail flag per summary metric."""
    if not summary.contact_count:
        return [Finding("flags.no_contacts", "warn")]

    s = summary
    flags = []

    if _finite(s.overstride_ratio_median):
        flags.append(Finding("flags.overstride_bad", "bad") if s.overstride_ratio_median >= 0.12
                     else Finding("flags.overstride_good", "good"))
    else:
        flags.append(Finding("flags.overstride_unknown", "warn"))

    if _finite(s.knee_angle_median):
        flags.append(Finding("flags.knee_bad", "bad") if s.knee_angle_median >= 165
                     else Finding("flags.knee_good", "good"))
    else:
        flags.append(Finding("flags.knee_unknown", "warn"))

    if _finite(s.trunk_lean_median):
        flags.append(Finding("flags.trunk_bad", "bad") if s.trunk_lean_median < -1
                     else Finding("flags.trunk_good", "good"))
    else:
        flags.append(Finding("flags.trunk_unknown", "warn"))

    if _finite(s.heel_strike_rate):
        if s.heel_strike_rate >= 0.6:
            flags.append(Finding("flags.heel_mostly", "warn"))
        elif s.heel_strike_rate <= 0.2:
            flags.append(Finding("flags.heel_mostly_non", "good"))
        else:
            flags.append(Finding("flags.heel_mixed", "warn"))
    else:
        flags.append(Finding("flags.heel_unknown", "warn"))

    if _finite(s.retract_speed_median):
        flags.append(Finding("flags.retraction_slow", "warn") if s.retract_speed_median < 0.02
                     else Finding("flags.retraction_good", "good"))
    else:
        flags.append(Finding("flags.retraction_unknown", "warn"))

    return flags


def build_advice(summary: AnalysisSummary) -> List[str]:
    """Ordered advice keys, most important first."""
    if not summary.contact_count:
        return ["advice.no_contacts"]

    s = summary
    out = []
    overstride_known = _finite(s.overstride_ratio_median)
    if overstride_known:
        if s.overstride_ratio_median >= 0.12:
            out += ["advice.overstride_priority_1", "advice.overstride_priority_2"]
        else:
            out.append("advice.overstride_good")
    else:
        out.append("advice.overstride_unknown")

    if _finite(s.knee_angle_median) and s.knee_angle_median >= 165:
        out.append("advice.knee")
    if _finite(s.trunk_lean_median) and s.trunk_lean_median < -1:
        out.append("advice.trunk")

    if _finite(s.heel_strike_rate) and overstride_known and s.heel_strike_rate >= 0.6:
        out.append("advice.heel_overstride" if s.overstride_ratio_median >= 0.12 else "advice.heel_ok")

    out.append("advice.strength")
    return out
