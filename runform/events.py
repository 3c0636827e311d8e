"""Ground-contact event detection from the heel trajectory.

In image coordinates ``y`` grows downwards, so the heel is closest to the
ground at local maxima of its ``y`` series. Initial contact is
approximated by those maxima, restricted to the top 20 % of the series
to drop shallow swing-phase bumps and thinned greedily so that two
accepted contacts are never closer than one minimum step time.

Functions
---------
heel_series
    Heel ``y`` series of one leg (NaN where the pose is missing).
frame_times
    Timestamps of a frame sequence.
find_contact_peaks
    Indices of contact events in a ``y`` series.
"""

import logging
import math
from typing import List, Sequence

import numpy as np

from .constants import leg_landmarks
from .geometry import percentile

logger = logging.getLogger(__name__)


def heel_series(frames: Sequence, leg: str) -> np.ndarray:
    """Heel ``y`` of *leg* per frame, NaN where no landmarks were detected."""
    idx = leg_landmarks(leg)["heel"]
    return np.array([
        float(f.landmarks[idx, 1]) if f.landmarks is not None else np.nan
        for f in frames
    ], dtype=float)


def frame_times(frames: Sequence) -> np.ndarray:
    """Timestamps of *frames* in seconds."""
    return np.array([f.t for f in frames], dtype=float)


def find_contact_peaks(
    y: Sequence[float],
    t: Sequence[float],
    min_step_sec: float,
    threshold_pct: float = 0.8,
) -> List[int]:
    """Detect contact events as thresholded local maxima of *y*.

    Parameters
    ----------
    y : sequence of float
        Heel ``y`` per frame (NaN where undetected).
    t : sequence of float
        Frame timestamps, same length as *y*.
    min_step_sec : float
        Minimum time between two accepted contacts, in video seconds.
    threshold_pct : float, optional
        Percentile (0-1) of the finite ``y`` values a peak must reach
        (default 0.8).

    Returns
    -------
    list of int
        Increasing indices ``i`` with ``y[i-1] < y[i] >= y[i+1]`` and
        ``y[i]`` at or above the threshold. When two candidates are
        closer than *min_step_sec* the earlier one wins.
    """
    y = np.asarray(y, dtype=float)
    t = np.asarray(t, dtype=float)
    if y.shape != t.shape:
        raise ValueError(f"y and t must have the same length ({len(y)} != {len(t)})")

    thr = percentile(y, threshold_pct)
    if not math.isfinite(thr):
        return []

    peaks = []
    last_t = -math.inf
    for i in range(1, len(y) - 1):
        y0, y1, y2 = y[i - 1], y[i], y[i + 1]
        if not (np.isfinite(y0) and np.isfinite(y1) and np.isfinite(y2) and np.isfinite(t[i])):
            continue
        if y1 < thr:
            continue
        if y1 > y0 and y1 >= y2 and t[i] - last_t >= min_step_sec:
            peaks.append(i)
            last_t = t[i]

    logger.debug(f"Contact peaks: {len(peaks)} (threshold y={thr:.3f}, min step {min_step_sec:.2f}s)")
    return peaks
