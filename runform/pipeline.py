"""Analysis orchestration: video in, result or issue out.

Runs the stages in order, stopping at the first failed gate:

resolution -> frame rate (probe + classification) -> duration ->
sampling -> detection -> direction -> contacts and metrics -> strides
-> summary.

Gating issues are returned as :class:`~runform.analysis.AnalysisIssue`
values. Resource failures (seek errors, probe timeout, a second run on
the same video) raise :class:`~runform.video.PipelineError` subclasses
after the video's read position has been restored.

Functions
---------
analyze
    Coroutine running one analysis on an open source (main entry point).
analyze_video
    Blocking convenience wrapper for a video file on disk.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Union

from .analysis import (
    AnalysisIssue,
    AnalysisResult,
    build_result,
    check_contacts,
    check_detection,
    check_direction,
    check_duration,
    check_frame_rate,
    check_resolution,
)
from .config import profile_value, resolve_config
from .direction import DIRECTION_MODES, resolve_direction
from .events import find_contact_peaks, frame_times, heel_series
from .extract import sample_frames
from .framerate import classify_fps, estimate_video_fps
from .metrics import compute_contact_metrics
from .models import get_extractor
from .models.base import BasePoseExtractor
from .video import BaseVideoSource, CvVideoSource

logger = logging.getLogger(__name__)

Outcome = Union[AnalysisResult, AnalysisIssue]


async def analyze(
    source: BaseVideoSource,
    extractor: BasePoseExtractor,
    config: Optional[Union[dict, str, Path]] = None,
    progress_callback: Optional[Callable[[float], None]] = None,
) -> Outcome:
    """Analyse the running form in *source*.

    Parameters
    ----------
    source : BaseVideoSource
        Open video. Claimed exclusively for the duration of the run.
    extractor : BasePoseExtractor
        Pose estimator, already set up.
    config : dict, str or Path, optional
        Configuration overrides (merged with ``DEFAULT_CONFIG``).
    progress_callback : callable, optional
        Callback ``fn(float)`` receiving progress from 0.0 to 1.0.

    Returns
    -------
    AnalysisResult or AnalysisIssue
        The result, or the first gating issue hit.

    Raises
    ------
    AnalysisBusyError
        If another analysis already runs on *source*.
    VideoSeekError, FrameRateProbeTimeout
        On resource failures.
    ValueError
        If the configured direction mode is unknown.
    """
    cfg = resolve_config(config)
    mode = cfg["direction"]["mode"]
    if mode not in DIRECTION_MODES:
        raise ValueError(f"Unknown direction mode: {mode}. Available: {', '.join(DIRECTION_MODES)}")

    with source.claim():
        # A timed-out probe of an earlier run may still be reading
        await asyncio.to_thread(source.wait_released)
        with source.borrowed_position():
            outcome = await _run(source, extractor, cfg, progress_callback)

    if progress_callback:
        progress_callback(1.0)
    if isinstance(outcome, AnalysisIssue):
        logger.info(f"Analysis stopped: {outcome.code} {outcome.params}")
    return outcome


async def _run(source, extractor, cfg, progress_callback) -> Outcome:
    constrained = bool(cfg["constrained"])
    fps_cfg = cfg["fps"]
    gates = cfg["gates"]

    issue = check_resolution(
        source.width, source.height,
        cfg["video"]["min_long_edge"], cfg["video"]["min_short_edge"],
    )
    if issue:
        return issue

    # Probe from the start so the measured window is always decodable
    await asyncio.to_thread(source.seek, 0.0)
    fps = await estimate_video_fps(
        source,
        constrained=constrained,
        probe_window_s=profile_value(cfg, "fps", "probe_window_s", constrained),
        min_frames=profile_value(cfg, "fps", "min_probe_frames", constrained),
        timeout_extra_s=fps_cfg["probe_timeout_extra_s"],
        fallback_fps=fps_cfg["fallback_fps"],
    )
    profile = classify_fps(
        fps,
        normal_fps=fps_cfg["normal_fps"],
        normal_tolerance=fps_cfg["normal_tolerance"],
        slowmo_fps=fps_cfg["slowmo_fps"],
        slowmo_tolerance=fps_cfg["slowmo_tolerance"],
        slowmo_factor=fps_cfg["slowmo_factor"],
    )
    logger.info(f"Frame rate: {profile.fps:.1f}fps ({profile.mode}, x{profile.slowmo_factor})")
    issue = check_frame_rate(profile)
    if issue:
        return issue

    issue = check_duration(source.duration_s, profile.slowmo_factor, gates["min_duration_s"])
    if issue:
        return issue

    if progress_callback:
        progress_callback(0.15)

    def _sampling_progress(p: float) -> None:
        if progress_callback:
            progress_callback(0.15 + 0.7 * p)

    sampling = cfg["sampling"]
    mode = cfg["direction"]["mode"]
    run = await sample_frames(
        source,
        extractor,
        sample_fps=sampling["sample_fps"],
        max_samples=profile_value(cfg, "sampling", "max_samples", constrained),
        infer_long_edge=profile_value(cfg, "sampling", "infer_long_edge", constrained),
        min_pose_score=sampling["min_pose_score"],
        direction_mode=mode,
        deadband=cfg["direction"]["deadband"],
        yield_every=sampling["yield_every"],
        progress_callback=_sampling_progress,
    )

    if progress_callback:
        progress_callback(0.9)

    issue = check_detection(
        run.detected_frames, len(run.frames),
        gates["min_detected_frames"], gates["min_detection_ratio"],
    )
    if issue:
        return issue

    issue = check_direction(run.votes, cfg["direction"]["min_samples"], cfg["direction"]["max_flip_ratio"])
    if issue:
        return issue

    # Metrics use the whole-run direction, never the one locked on the first frame
    if mode == "auto":
        direction = run.votes.majority()
    else:
        direction = resolve_direction(None, mode)
    logger.info(
        f"Direction {direction:+d} ({mode}; locked {run.locked_direction:+d}, "
        f"votes R={run.votes.right} L={run.votes.left})"
    )

    min_step_sec = cfg["events"]["min_step_sec"] * profile.slowmo_factor
    times = frame_times(run.frames)
    per_leg = {}
    for leg in ("L", "R"):
        peaks = find_contact_peaks(
            heel_series(run.frames, leg), times, min_step_sec,
            cfg["events"]["threshold_pct"],
        )
        per_leg[leg] = compute_contact_metrics(
            run.frames, peaks, leg, direction,
            time_scale=profile.slowmo_factor,
            strike_threshold=cfg["metrics"]["strike_threshold"],
            retract_window_s=cfg["metrics"]["retract_window_s"],
        )

    issue = check_contacts(per_leg["L"], per_leg["R"], gates["min_contacts"])
    if issue:
        return issue

    return build_result(
        per_leg["L"], per_leg["R"],
        duration_s=source.duration_s,
        profile=profile,
        sample_fps=run.sample_fps,
        min_step_sec=min_step_sec,
        direction=direction,
        direction_mode=mode,
        steps=run.steps,
        detected_frames=run.detected_frames,
        detection_ratio=run.detection_ratio,
        model=extractor.describe(),
    )


def analyze_video(
    video_path: Union[str, Path],
    model: str = "mediapipe",
    config: Optional[Union[dict, str, Path]] = None,
    progress_callback: Optional[Callable[[float], None]] = None,
    **extractor_kwargs,
) -> Outcome:
    """Analyse a video file with a registered pose model.

    Opens the file with OpenCV, sets the extractor up, runs
    :func:`analyze` on a fresh event loop and releases everything.

    Parameters
    ----------
    video_path : str or Path
        Path to the video file.
    model : str, optional
        Registered pose model name (default ``"mediapipe"``).
    config : dict, str or Path, optional
        Configuration overrides.
    progress_callback : callable, optional
        Callback ``fn(float)`` receiving progress from 0.0 to 1.0.
    **extractor_kwargs
        Passed to the extractor constructor (e.g. ``model_type="full"``).

    Returns
    -------
    AnalysisResult or AnalysisIssue

    Raises
    ------
    FileNotFoundError
        If the video file does not exist.
    ValueError
        If the video cannot be opened or the model is unknown.
    ImportError
        If the model's optional dependencies are missing.
    """
    cfg = resolve_config(config)
    extractor = get_extractor(model, **extractor_kwargs)
    with CvVideoSource(video_path) as source:
        extractor.setup()
        try:
            return asyncio.run(analyze(source, extractor, cfg, progress_callback))
        finally:
            extractor.teardown()
