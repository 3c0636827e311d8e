"""runform -- Running-form analysis from side-view video.

Quick start::

    from runform import AnalysisIssue, analyze_video, save_json
    outcome = analyze_video("run.mp4", model="mediapipe")
    if isinstance(outcome, AnalysisIssue):
        print(outcome.code, outcome.params)
    else:
        print(outcome.summary.overstride_ratio_median)
        save_json(outcome, "run.json")

Async use with your own video source and pose model::

    import asyncio
    from runform import CvVideoSource, analyze, get_extractor
    extractor = get_extractor("mediapipe", model_type="full")
    extractor.setup()
    with CvVideoSource("run.mp4") as source:
        outcome = asyncio.run(analyze(source, extractor, {"constrained": True}))
    extractor.teardown()

Interpretation::

    from runform import build_flags, build_advice
    flags = build_flags(outcome.summary)
    advice = build_advice(outcome.summary)
"""

__version__ = "0.1.0"

from .constants import Landmark, leg_landmarks
from .geometry import midpoint, dist_2d, angle_deg, percentile, median, mean
from .framerate import FrameRateProfile, classify_fps, estimate_video_fps
from .direction import DirectionVotes, direction_sign, estimate_direction, resolve_direction
from .extract import FrameRecord, SamplingRun, plan_samples, normalize_pose, sample_frames
from .events import heel_series, find_contact_peaks
from .metrics import ContactMetric, classify_foot_strike, compute_contact_metrics
from .analysis import (
    AnalysisIssue,
    AnalysisResult,
    AnalysisSummary,
    summarize_contacts,
    build_result,
)
from .pipeline import analyze, analyze_video
from .interpret import (
    interpret_overstride,
    interpret_knee,
    interpret_trunk_lean,
    interpret_retraction,
    build_flags,
    build_advice,
)
from .schema import load_json, save_json
from .video import (
    BaseVideoSource,
    CvVideoSource,
    PipelineError,
    VideoSeekError,
    FrameRateProbeTimeout,
    AnalysisBusyError,
)
from .models import get_extractor, list_models
from .config import load_config, save_config, DEFAULT_CONFIG

__all__ = [
    # Core pipeline
    "analyze",
    "analyze_video",
    "sample_frames",
    "plan_samples",
    "normalize_pose",
    "estimate_video_fps",
    "classify_fps",
    "heel_series",
    "find_contact_peaks",
    "compute_contact_metrics",
    "classify_foot_strike",
    "summarize_contacts",
    "build_result",
    # Direction
    "direction_sign",
    "estimate_direction",
    "resolve_direction",
    "DirectionVotes",
    # Geometry
    "midpoint",
    "dist_2d",
    "angle_deg",
    "percentile",
    "median",
    "mean",
    # Data types
    "Landmark",
    "leg_landmarks",
    "FrameRecord",
    "SamplingRun",
    "FrameRateProfile",
    "ContactMetric",
    "AnalysisIssue",
    "AnalysisResult",
    "AnalysisSummary",
    # Interpretation
    "interpret_overstride",
    "interpret_knee",
    "interpret_trunk_lean",
    "interpret_retraction",
    "build_flags",
    "build_advice",
    # I/O
    "load_json",
    "save_json",
    "BaseVideoSource",
    "CvVideoSource",
    "get_extractor",
    "list_models",
    # Errors
    "PipelineError",
    "VideoSeekError",
    "FrameRateProbeTimeout",
    "AnalysisBusyError",
    # Config
    "load_config",
    "save_config",
    "DEFAULT_CONFIG",
]
