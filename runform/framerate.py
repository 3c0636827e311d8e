"""Frame-rate probing and normal / slow-motion classification.

Container metadata is unreliable for phone footage (slow-motion clips
are often tagged with their playback rate), so the rate is measured by
decoding a short window of frames and counting them against their decode
timestamps. When too few frames arrive the container's frame counter is
used instead, and on constrained devices a fixed fallback rate is
assumed as a last resort.

The probe borrows the video: its read position is restored on every
exit path. On the hard timeout the probe returns at once and the
restore happens when the abandoned read returns; a read error counts as
an unknown rate.
"""

import asyncio
import logging
import math
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .video import BaseVideoSource, FrameRateProbeTimeout

logger = logging.getLogger(__name__)

FPS_MODES = ("normal", "slowmo", "unsupported", "unknown")


@dataclass(frozen=True)
class FrameRateProfile:
    """Classified capture rate of a video."""

    fps: float
    mode: str
    slowmo_factor: int = 1

    def __post_init__(self):
        if self.mode not in FPS_MODES:
            raise ValueError(f"Unknown frame-rate mode: {self.mode}. Available: {', '.join(FPS_MODES)}")

    @property
    def supported(self) -> bool:
        return self.mode in ("normal", "slowmo")


def classify_fps(
    fps: float,
    normal_fps: float = 30.0,
    normal_tolerance: float = 6.0,
    slowmo_fps: float = 240.0,
    slowmo_tolerance: float = 20.0,
    slowmo_factor: int = 8,
) -> FrameRateProfile:
    """Classify an estimated frame rate.

    Returns
    -------
    FrameRateProfile
        ``mode`` is ``"normal"`` within ``normal_tolerance`` of
        ``normal_fps``, ``"slowmo"`` within ``slowmo_tolerance`` of
        ``slowmo_fps`` (with ``slowmo_factor`` set), ``"unknown"`` for a
        non-finite rate and ``"unsupported"`` otherwise.
    """
    if fps is None or not math.isfinite(fps):
        return FrameRateProfile(fps=float("nan"), mode="unknown")
    if abs(fps - normal_fps) <= normal_tolerance:
        return FrameRateProfile(fps=fps, mode="normal", slowmo_factor=1)
    if abs(fps - slowmo_fps) <= slowmo_tolerance:
        return FrameRateProfile(fps=fps, mode="slowmo", slowmo_factor=slowmo_factor)
    return FrameRateProfile(fps=fps, mode="unsupported")


def _read_window(source: BaseVideoSource, window_s: float, stop: threading.Event) -> List[float]:
    """Decode frames until *window_s* seconds of media time are covered (blocking)."""
    timestamps = []
    while not stop.is_set():
        item = source.read()
        if item is None:
            break
        timestamps.append(item[1])
        if timestamps[-1] - timestamps[0] >= window_s:
            break
    return timestamps


def _start_reader(source: BaseVideoSource, window_s: float, stop: threading.Event) -> asyncio.Future:
    """Run :func:`_read_window` on a daemon thread, resolving a loop future.

    The thread holds the source position for its whole life, so a probe
    abandoned on timeout restores the position only once the in-flight
    read has returned.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()
    release = source.hold_position()

    def _deliver(result, error):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _work():
        result, error = None, None
        try:
            result = _read_window(source, window_s, stop)
        except Exception as e:
            error = e
        finally:
            release()
        try:
            loop.call_soon_threadsafe(_deliver, result, error)
        except RuntimeError:
            logger.debug("FPS probe finished after its event loop closed")

    threading.Thread(target=_work, name="runform-fps-probe", daemon=True).start()
    return future


def _rate_from_probe(source: BaseVideoSource, timestamps: List[float], min_frames: int) -> Tuple[float, str]:
    span = timestamps[-1] - timestamps[0] if len(timestamps) >= 2 else 0.0
    if len(timestamps) >= min_frames and span > 0:
        return (len(timestamps) - 1) / span, "frames"

    counter_fps = source.reported_fps
    if (counter_fps is not None and math.isfinite(counter_fps) and counter_fps > 0
            and source.frame_count >= min_frames):
        return float(counter_fps), "counter"

    return float("nan"), "none"


async def estimate_video_fps(
    source: BaseVideoSource,
    constrained: bool = False,
    probe_window_s: Optional[float] = None,
    min_frames: Optional[int] = None,
    timeout_extra_s: float = 2.0,
    fallback_fps: float = 30.0,
) -> float:
    """Estimate the capture frame rate of *source*.

    Frames are decoded from the current read position, so callers seek
    to the start first.

    Parameters
    ----------
    source : BaseVideoSource
        Video to probe. Its read position is restored afterwards.
    constrained : bool, optional
        Low-power profile: shorter probe, fewer required frames, and
        *fallback_fps* instead of NaN when probing fails.
    probe_window_s : float, optional
        Media time to decode (default 0.6 s, 0.35 s when constrained).
    min_frames : int, optional
        Frames required before a measurement is trusted (default 8,
        4 when constrained).
    timeout_extra_s : float, optional
        Wall-clock slack added to the window for the hard timeout.
    fallback_fps : float, optional
        Rate assumed on constrained devices when probing fails.

    Returns
    -------
    float
        Estimated frames per second, or NaN if unknown.

    Raises
    ------
    FrameRateProbeTimeout
        If the probe times out and the run is not constrained.
    """
    if probe_window_s is None:
        probe_window_s = 0.35 if constrained else 0.6
    if min_frames is None:
        min_frames = 4 if constrained else 8
    timeout_s = probe_window_s + timeout_extra_s

    stop = threading.Event()
    timed_out = False
    read_error = None
    with source.borrowed_position():
        reader = _start_reader(source, probe_window_s, stop)
        try:
            timestamps = await asyncio.wait_for(reader, timeout=timeout_s)
        except asyncio.TimeoutError:
            timed_out = True
        except Exception as e:
            read_error = e
        finally:
            stop.set()

    if timed_out:
        if constrained:
            logger.warning(f"FPS probe timeout after {timeout_s:.2f}s; using fallback {fallback_fps}fps")
            return fallback_fps
        raise FrameRateProbeTimeout(f"FPS probe did not finish within {timeout_s:.2f}s")

    if read_error is not None:
        if constrained:
            logger.warning(f"FPS probe failed ({read_error}); using fallback {fallback_fps}fps")
            return fallback_fps
        logger.warning(f"FPS probe failed: {read_error}")
        return float("nan")

    fps, method = _rate_from_probe(source, timestamps, min_frames)
    logger.info(f"FPS probe done: method={method}, fps={fps:.2f} ({len(timestamps)} frames decoded)")
    if not math.isfinite(fps) and constrained:
        logger.warning(f"FPS probe returned no estimate; using fallback {fallback_fps}fps")
        return fallback_fps
    return fps
