"""Frame sampling: video to a time-ordered sequence of pose records.

Samples the video at a fixed cadence by seeking, runs the pose
extractor on a downscaled copy of each frame, and records normalised
landmarks (or their absence) per sampled instant. The loop is a single
coroutine: seeks and detections are awaited one at a time because the
video has a single read cursor, and control is handed back to the event
loop every few samples.

Functions
---------
plan_samples
    Number of sampling steps and their spacing for a video duration.
normalize_pose
    Convert a raw pose estimate into a score-gated ``(33, 3)`` array.
sample_frames
    Run the sampling loop (main entry point).
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from .constants import N_LANDMARKS
from .direction import DirectionVotes, direction_sign, resolve_direction
from .models.base import BasePoseExtractor, PoseEstimate
from .video import BaseVideoSource, downscale_for_inference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameRecord:
    """One sampled instant of the video."""
    t: float
    landmarks: Optional[np.ndarray]  # (33, 3) x, y, score in [0, 1], read-only
    sample_fps: int

    @property
    def detected(self) -> bool:
        return self.landmarks is not None


@dataclass
class SamplingRun:
    """Mutable state of one sampling run, discarded once the run ends."""
    sample_fps: int
    steps: int
    dt: float
    direction_mode: str = "auto"
    deadband: float = 0.015
    frames: List[FrameRecord] = field(default_factory=list)
    votes: DirectionVotes = field(default_factory=DirectionVotes)
    detected_frames: int = 0
    locked_direction: int = 1
    direction_locked: bool = False
    infer_size: Optional[Tuple[int, int]] = None

    @property
    def detection_ratio(self) -> float:
        return self.detected_frames / len(self.frames) if self.frames else 0.0

    def record(self, t: float, landmarks: Optional[np.ndarray]) -> FrameRecord:
        """Append a frame, feed the direction votes and lock the direction."""
        if self.frames and t <= self.frames[-1].t:
            raise ValueError(f"Frame times must increase: {t} after {self.frames[-1].t}")
        if landmarks is not None:
            self.detected_frames += 1
            self.votes.add(direction_sign(landmarks, self.deadband))
            if not self.direction_locked:
                self.locked_direction = resolve_direction(landmarks, self.direction_mode, self.deadband)
                self.direction_locked = True
        frame = FrameRecord(t=t, landmarks=landmarks, sample_fps=self.sample_fps)
        self.frames.append(frame)
        return frame


def plan_samples(duration: float, sample_fps: int = 24, max_samples: int = 240) -> Tuple[int, float]:
    """Return ``(steps, dt)`` for sampling a clip of *duration* seconds.

    ``steps`` is the number of intervals (``steps + 1`` frames are
    sampled), capped at *max_samples*; *sample_fps* is clamped to
    ``[5, 60]``.

    Raises
    ------
    ValueError
        If *duration* is not a positive finite number.
    """
    if duration is None or not math.isfinite(duration) or duration <= 0:
        raise ValueError(f"Video duration must be positive, got {duration}")
    rate = max(5, min(60, sample_fps))
    steps = max(1, math.ceil(duration * rate))
    steps = min(steps, max_samples)
    return steps, duration / steps


def normalize_pose(
    pose: Optional[PoseEstimate],
    width: int,
    height: int,
    min_score: float = 0.2,
) -> Optional[np.ndarray]:
    """Normalise a pixel-space pose against the image it was detected in.

    The pose score is the per-pose score when available, else the mean
    keypoint score (missing scores count as 0). Poses scoring below
    *min_score*, or without exactly 33 keypoints, are discarded.

    Returns
    -------
    np.ndarray or None
        Read-only ``(33, 3)`` array of ``x, y`` clamped to ``[0, 1]``
        (non-finite coordinates become NaN) and keypoint ``score``.
    """
    if pose is None:
        return None
    kps = np.asarray(pose.keypoints, dtype=float)
    if kps.ndim != 2 or kps.shape[0] == 0 or kps.shape[1] < 2:
        return None
    if kps.shape[0] != N_LANDMARKS:
        logger.debug(f"Discarding pose with {kps.shape[0]} keypoints (expected {N_LANDMARKS})")
        return None

    scores = kps[:, 2] if kps.shape[1] >= 3 else np.zeros(len(kps))
    scores = np.where(np.isfinite(scores), scores, 0.0)

    score = pose.score
    if score is None or not math.isfinite(score):
        score = float(np.mean(scores))
    if score < min_score:
        logger.debug(f"Discarding pose with score {score:.3f} < {min_score}")
        return None

    x = kps[:, 0] / width if width > 0 else np.full(len(kps), np.nan)
    y = kps[:, 1] / height if height > 0 else np.full(len(kps), np.nan)
    x = np.where(np.isfinite(kps[:, 0]), x, np.nan)
    y = np.where(np.isfinite(kps[:, 1]), y, np.nan)

    landmarks = np.column_stack([np.clip(x, 0.0, 1.0), np.clip(y, 0.0, 1.0), scores])
    landmarks.setflags(write=False)
    return landmarks


def _detect_frame(
    source: BaseVideoSource,
    extractor: BasePoseExtractor,
    long_edge: int,
    min_score: float,
) -> Tuple[Optional[np.ndarray], Optional[Tuple[int, int]]]:
    """Read the current frame and run pose detection on it (blocking)."""
    item = source.read()
    if item is None:
        return None, None
    buffer = downscale_for_inference(item[0], long_edge)
    h, w = buffer.shape[:2]
    pose = extractor.estimate(buffer, max_poses=1)
    return normalize_pose(pose, w, h, min_score), (w, h)


async def sample_frames(
    source: BaseVideoSource,
    extractor: BasePoseExtractor,
    sample_fps: int = 24,
    max_samples: int = 240,
    infer_long_edge: int = 640,
    min_pose_score: float = 0.2,
    direction_mode: str = "auto",
    deadband: float = 0.015,
    yield_every: int = 8,
    progress_callback: Optional[Callable[[float], None]] = None,
) -> SamplingRun:
    """Sample poses from *source* at a fixed cadence.

    Parameters
    ----------
    source : BaseVideoSource
        Video with known duration. Must not be shared with another run.
    extractor : BasePoseExtractor
        Pose estimator, already set up.
    sample_fps : int, optional
        Nominal sampling rate in video time (default 24).
    max_samples : int, optional
        Cap on sampling steps to bound total latency (default 240).
    infer_long_edge : int, optional
        Long edge of the inference buffer in pixels (default 640).
    min_pose_score : float, optional
        Poses scoring below this are treated as no detection (default 0.2).
    direction_mode : str, optional
        ``"auto"``, ``"right"`` or ``"left"`` for the locked direction.
    deadband : float, optional
        Nose-to-hip offset under which a frame casts no direction vote.
    yield_every : int, optional
        Hand control back to the event loop every N samples (default 8).
    progress_callback : callable, optional
        Callback ``fn(float)`` receiving progress from 0.0 to 1.0.

    Returns
    -------
    SamplingRun
        Frames in increasing time order plus detection and direction counts.

    Raises
    ------
    ValueError
        If the source duration is not positive.
    VideoSeekError
        If the video cannot be positioned.
    """
    duration = source.duration_s
    steps, dt = plan_samples(duration, sample_fps, max_samples)
    run = SamplingRun(
        sample_fps=sample_fps, steps=steps, dt=dt,
        direction_mode=direction_mode, deadband=deadband,
    )
    log_interval = max(1, steps // 10)  # log every ~10%

    logger.info(
        f"Sampling {steps + 1} frames over {duration:.2f}s "
        f"(dt={dt:.4f}s, sample_fps={sample_fps}, long edge <= {infer_long_edge}px)"
    )

    # The frame-rate probe may have left a read in flight on timeout
    await asyncio.to_thread(source.wait_released)

    for k in range(steps + 1):
        t = min(duration, k * dt)

        await asyncio.to_thread(source.seek, t)

        landmarks = None
        try:
            landmarks, infer_size = await asyncio.to_thread(
                _detect_frame, source, extractor, infer_long_edge, min_pose_score,
            )
            if infer_size is not None:
                run.infer_size = infer_size
        except Exception as e:
            logger.warning(f"Pose detection failed at t={t:.2f}s: {e}")
            landmarks = None

        run.record(t, landmarks)

        if k % yield_every == 0:
            if progress_callback:
                progress_callback(k / steps)
            await asyncio.sleep(0)

        if k > 0 and k % log_interval == 0:
            pct = 100 * k / steps
            det_pct = 100 * run.detected_frames / len(run.frames)
            logger.info(f"  {k}/{steps} ({pct:.0f}%) - {det_pct:.0f}% detected")

    if progress_callback:
        progress_callback(1.0)
    logger.info(
        f"Sampling done: {run.detected_frames}/{len(run.frames)} frames detected "
        f"({100 * run.detection_ratio:.0f}%), votes right={run.votes.right} left={run.votes.left}, "
        f"inference buffer {run.infer_size}"
    )
    return run
