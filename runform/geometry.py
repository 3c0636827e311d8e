"""Vector, angle and robust-statistics primitives.

All functions are pure. Points are any sequence or array whose first two
entries are ``x`` and ``y`` in normalised image coordinates (a row of a
``(33, 3)`` pose array works directly).

Functions
---------
midpoint
    Midpoint of two points.
dist_2d
    Euclidean distance in the image plane.
angle_deg
    Angle at a vertex, in degrees.
percentile
    Linear-interpolation percentile over finite values.
median
    ``percentile(xs, 0.5)``.
mean
    Mean over finite values.
"""

import math
from typing import Iterable, Sequence

import numpy as np


def midpoint(a: Sequence[float], b: Sequence[float]) -> np.ndarray:
    """Return the element-wise midpoint of *a* and *b*."""
    return (np.asarray(a, dtype=float) + np.asarray(b, dtype=float)) / 2.0


def dist_2d(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the Euclidean distance between the ``x, y`` of *a* and *b*."""
    return float(math.hypot(a[0] - b[0], a[1] - b[1]))


def angle_deg(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Angle ABC at vertex *b*, in degrees within ``[0, 180]``.

    The cosine is clamped to ``[-1, 1]`` before ``acos``. Returns NaN when
    either ray has zero length.
    """
    abx, aby = a[0] - b[0], a[1] - b[1]
    cbx, cby = c[0] - b[0], c[1] - b[1]

    ab = math.hypot(abx, aby)
    cb = math.hypot(cbx, cby)
    if ab == 0 or cb == 0:
        return float("nan")

    cos = (abx * cbx + aby * cby) / (ab * cb)
    cos = max(-1.0, min(1.0, cos))
    return math.degrees(math.acos(cos))


def _finite(xs: Iterable[float]) -> np.ndarray:
    arr = np.asarray(list(xs) if not isinstance(xs, np.ndarray) else xs, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def percentile(xs: Iterable[float], p: float) -> float:
    """Percentile of the finite values of *xs*, ``p`` in ``[0, 1]``.

    Uses linear interpolation at rank ``(n - 1) * p``. Non-finite values
    are ignored. Returns NaN when no finite value remains.
    """
    vals = _finite(xs)
    if vals.size == 0:
        return float("nan")
    return float(np.percentile(vals, p * 100.0, method="linear"))


def median(xs: Iterable[float]) -> float:
    """Median of the finite values of *xs* (NaN if none)."""
    return percentile(xs, 0.5)


def mean(xs: Iterable[float]) -> float:
    """Mean of the finite values of *xs* (NaN if none)."""
    vals = _finite(xs)
    if vals.size == 0:
        return float("nan")
    return float(np.mean(vals))
