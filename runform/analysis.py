"""Validity gates, summary aggregation and the analysis result.

A run ends either with an :class:`AnalysisResult` or with the first
:class:`AnalysisIssue` raised by a gate. Gates are checked in a fixed
order so that a video failing several of them always reports the same
issue:

1. ``resolution_low``: long edge < 1920 or short edge < 1080.
2. ``fps_unknown``: the frame-rate probe gave no estimate.
3. ``fps_unsupported``: neither the normal nor the slow-motion band.
4. ``video_too_short``: real-time duration below 3 s.
5. ``no_runner``: no frame with a detected pose.
6. ``low_detection``: fewer than 8 detected frames or ratio below 0.2.
7. ``direction_unclear``: fewer than 8 direction votes.
8. ``direction_inconsistent``: minority direction share above 0.25.
9. ``few_strides``: fewer than 4 contacts over both legs.

Functions
---------
check_resolution, check_frame_rate, check_duration, check_detection,
check_direction, check_contacts
    Individual gates returning None or an AnalysisIssue.
summarize_contacts
    Medians and heel-strike rate over all contacts.
build_result
    Assemble the terminal AnalysisResult.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence, Tuple

from .direction import DirectionVotes
from .framerate import FrameRateProfile
from .geometry import median
from .metrics import ContactMetric

logger = logging.getLogger(__name__)

ISSUE_CODES = (
    "resolution_low",
    "fps_unknown",
    "fps_unsupported",
    "video_too_short",
    "no_runner",
    "low_detection",
    "direction_unclear",
    "direction_inconsistent",
    "few_strides",
)


@dataclass(frozen=True)
class AnalysisIssue:
    """Gating outcome that ends a run early (the video is unusable)."""
    code: str
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.code not in ISSUE_CODES:
            raise ValueError(f"Unknown issue code: {self.code}")

    def to_dict(self) -> dict:
        return {"issue": self.code, "params": dict(self.params)}


@dataclass(frozen=True)
class AnalysisSummary:
    overstride_ratio_median: float
    knee_angle_median: float
    trunk_lean_median: float
    heel_strike_rate: float
    retract_speed_median: float
    contact_count: int

    def to_dict(self) -> dict:
        return {
            "overstride_ratio_median": self.overstride_ratio_median,
            "knee_angle_median": self.knee_angle_median,
            "trunk_lean_median": self.trunk_lean_median,
            "heel_strike_rate": self.heel_strike_rate,
            "retract_speed_median": self.retract_speed_median,
            "contact_count": self.contact_count,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Terminal output of a successful run.

    ``contacts`` maps ``"left"``, ``"right"`` and ``"all"`` (both legs,
    sorted by time) to tuples of :class:`ContactMetric`.
    """
    meta: Dict[str, Any]
    contacts: Dict[str, Tuple[ContactMetric, ...]]
    summary: AnalysisSummary

    def to_dict(self) -> dict:
        meta = dict(self.meta)
        meta["model"] = dict(meta.get("model", {}))
        return {
            "meta": meta,
            "contacts": {
                key: [c.to_dict() for c in self.contacts[key]]
                for key in ("left", "right", "all")
            },
            "summary": self.summary.to_dict(),
        }


# ── Gates ────────────────────────────────────────────────────────────


def check_resolution(width: int, height: int,
                     min_long: int = 1920, min_short: int = 1080) -> Optional[AnalysisIssue]:
    long_edge, short_edge = max(width, height), min(width, height)
    if long_edge < min_long or short_edge < min_short:
        return AnalysisIssue("resolution_low", {
            "width": width, "height": height,
            "min_long": min_long, "min_short": min_short,
        })
    return None


def check_frame_rate(profile: FrameRateProfile) -> Optional[AnalysisIssue]:
    """Reject unknown and out-of-band frame rates."""
    if profile.mode == "unknown":
        return AnalysisIssue("fps_unknown", {"fps": None})
    if profile.mode == "unsupported":
        return AnalysisIssue("fps_unsupported", {"fps": profile.fps})
    return None


def check_duration(duration_s: float, slowmo_factor: int = 1,
                   min_duration_s: float = 3.0) -> Optional[AnalysisIssue]:
    """Reject clips shorter than *min_duration_s* of real time.

    Slow-motion footage is converted to real time by dividing the video
    duration by *slowmo_factor*.
    """
    real_duration = duration_s / slowmo_factor
    if real_duration < min_duration_s:
        return AnalysisIssue("video_too_short", {
            "min": min_duration_s, "detected": real_duration, "video": duration_s,
        })
    return None


def check_detection(detected: int, total: int, min_detected_frames: int = 8,
                    min_ratio: float = 0.2) -> Optional[AnalysisIssue]:
    ratio = detected / total if total else 0.0
    params = {"detected": detected, "total": total, "ratio": ratio}
    if detected == 0:
        return AnalysisIssue("no_runner", params)
    if detected < min_detected_frames or ratio < min_ratio:
        return AnalysisIssue("low_detection", params)
    return None


def check_direction(votes: DirectionVotes, min_samples: int = 8,
                    max_flip_ratio: float = 0.25) -> Optional[AnalysisIssue]:
    params = {"left": votes.left, "right": votes.right, "flip_ratio": votes.flip_ratio}
    if votes.total < min_samples:
        return AnalysisIssue("direction_unclear", params)
    if votes.flip_ratio > max_flip_ratio:
        return AnalysisIssue("direction_inconsistent", params)
    return None


def check_contacts(left: Sequence, right: Sequence, min_contacts: int = 4) -> Optional[AnalysisIssue]:
    if len(left) + len(right) < min_contacts:
        return AnalysisIssue("few_strides", {"left": len(left), "right": len(right)})
    return None


# ── Summary ──────────────────────────────────────────────────────────


def summarize_contacts(metrics: Sequence[ContactMetric]) -> AnalysisSummary:
    """Aggregate per-contact metrics over both legs.

    Medians skip NaN values. The heel-strike rate counts heel strikes
    among contacts with a known strike type and is NaN when every strike
    is unknown.
    """
    strikes = [m.strike for m in metrics if m.strike != "unknown"]
    heel_rate = (
        sum(1 for s in strikes if s == "heel") / len(strikes)
        if strikes else float("nan")
    )
    return AnalysisSummary(
        overstride_ratio_median=median([m.overstride_ratio for m in metrics]),
        knee_angle_median=median([m.knee_angle for m in metrics]),
        trunk_lean_median=median([m.trunk_lean_deg for m in metrics]),
        heel_strike_rate=heel_rate,
        retract_speed_median=median([m.retract_speed for m in metrics]),
        contact_count=len(metrics),
    )


def build_result(
    left: Sequence[ContactMetric],
    right: Sequence[ContactMetric],
    duration_s: float,
    profile: FrameRateProfile,
    sample_fps: int,
    min_step_sec: float,
    direction: int,
    direction_mode: str = "auto",
    steps: int = 0,
    detected_frames: int = 0,
    detection_ratio: float = 0.0,
    model: Optional[dict] = None,
    created_at: Optional[str] = None,
) -> AnalysisResult:
    """Assemble the :class:`AnalysisResult` of a successful run."""
    all_contacts = tuple(sorted([*left, *right], key=lambda m: m.t))
    model = model or {}
    meta = {
        "created_at": created_at or datetime.now(timezone.utc).isoformat(),
        "duration_s": duration_s,
        "real_duration_s": duration_s / profile.slowmo_factor,
        "input_fps_estimate": profile.fps,
        "slowmo_factor": profile.slowmo_factor,
        "sample_fps": sample_fps,
        "min_step_sec": min_step_sec,
        "direction": direction,
        "direction_mode": direction_mode,
        "steps": steps,
        "detected_frames": detected_frames,
        "detection_ratio": detection_ratio,
        "model": {
            "name": model.get("name"),
            "model_type": model.get("model_type"),
            "backend": model.get("backend"),
        },
    }
    summary = summarize_contacts(all_contacts)
    logger.info(
        f"Analysis complete: {summary.contact_count} contacts "
        f"(L={len(left)}, R={len(right)}), direction={direction:+d}"
    )
    return AnalysisResult(
        meta=meta,
        contacts={"left": tuple(left), "right": tuple(right), "all": all_contacts},
        summary=summary,
    )
