"""Video source collaborator: seekable frame access for one analysis run.

The analysis core only needs a handful of operations from a video: its
size and duration, a frame-accurate seek, sequential reads with decode
timestamps, and a way to put the read cursor back where it was. This
module defines that contract and an OpenCV implementation.

Classes
-------
BaseVideoSource
    Abstract seekable source with exclusive per-run ownership.
CvVideoSource
    ``cv2.VideoCapture`` backed source.

Functions
---------
downscale_for_inference
    Shrink a frame into the bounded inference buffer.
"""

import logging
import math
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """Resource-level failure of an analysis run (not a gating issue)."""


class VideoSeekError(PipelineError):
    """The video could not be positioned at the requested time."""


class FrameRateProbeTimeout(PipelineError):
    """The frame-rate probe did not finish within its time budget."""


class AnalysisBusyError(PipelineError):
    """A second analysis tried to use a source that is already claimed."""


class BaseVideoSource(ABC):
    """Abstract seekable video.

    Subclasses set ``width``, ``height``, ``duration_s``, ``reported_fps``
    and ``frame_count`` and implement :meth:`seek`, :meth:`read` and
    :meth:`tell`.
    """

    width: int = 0
    height: int = 0
    duration_s: float = 0.0
    reported_fps: float = float("nan")
    frame_count: int = 0

    def __init__(self):
        self._claim_lock = threading.Lock()
        self._hold_lock = threading.Lock()
        self._holds = set()
        self._deferred_position = None
        self._released = threading.Event()
        self._released.set()

    @abstractmethod
    def seek(self, t: float) -> None:
        """Position the read cursor at *t* seconds.

        Raises
        ------
        VideoSeekError
            If the position cannot be reached.
        """

    @abstractmethod
    def read(self) -> Optional[Tuple[np.ndarray, float]]:
        """Decode the next frame.

        Returns
        -------
        tuple or None
            ``(frame_bgr, timestamp_s)``, or None at end of stream.
        """

    @abstractmethod
    def tell(self) -> float:
        """Current read position in seconds."""

    @property
    def long_edge(self) -> int:
        return max(self.width, self.height)

    @property
    def short_edge(self) -> int:
        return min(self.width, self.height)

    @contextmanager
    def claim(self):
        """Hold exclusive use of the source for one analysis run.

        Raises
        ------
        AnalysisBusyError
            If another run already holds the source.
        """
        if not self._claim_lock.acquire(blocking=False):
            raise AnalysisBusyError("An analysis is already running on this video")
        try:
            yield self
        finally:
            self._claim_lock.release()

    @contextmanager
    def borrowed_position(self):
        """Restore the read position on exit, whatever happens inside."""
        position = self.tell()
        try:
            yield position
        finally:
            self.restore_position(position)

    def restore_position(self, position: float) -> None:
        """Seek back to *position*, or once the last detached read is released.

        While a read runs detached from its caller (see :meth:`hold_position`)
        the restore is deferred; a later restore replaces an earlier one.
        """
        with self._hold_lock:
            if self._holds:
                self._deferred_position = position
                return
        self._seek_back(position)

    def hold_position(self) -> Callable[[], None]:
        """Defer position restores until the returned callable is invoked.

        Used for reads that may outlive the coroutine that started them.
        The release callable is idempotent and applies the pending
        restore once no hold remains.
        """
        token = object()
        with self._hold_lock:
            self._holds.add(token)
            self._released.clear()

        def release() -> None:
            with self._hold_lock:
                if token not in self._holds:
                    return
                self._holds.discard(token)
                if self._holds:
                    return
                position, self._deferred_position = self._deferred_position, None
            if position is not None:
                self._seek_back(position)
            with self._hold_lock:
                if not self._holds:
                    self._released.set()

        return release

    def wait_released(self, timeout: Optional[float] = None) -> bool:
        """Block until no detached read holds the source (True if released)."""
        return self._released.wait(timeout)

    def _seek_back(self, position: float) -> None:
        try:
            self.seek(position)
        except PipelineError as e:
            logger.warning(f"Could not restore video position to {position:.3f}s: {e}")


class CvVideoSource(BaseVideoSource):
    """OpenCV-backed video source.

    Seeks are frame-index based and clamped to the last decodable frame,
    so seeking to the full duration yields the final frame. All capture
    access goes through a lock because reads are dispatched to worker
    threads.

    Parameters
    ----------
    video_path : str or Path
        Path to a video file (mp4, mov, avi).

    Raises
    ------
    FileNotFoundError
        If the video file does not exist.
    ValueError
        If the video cannot be opened by OpenCV.
    """

    def __init__(self, video_path):
        super().__init__()
        self.video_path = str(video_path)
        if not Path(self.video_path).exists():
            raise FileNotFoundError(f"Video not found: {self.video_path}")

        self._cap = cv2.VideoCapture(self.video_path)
        if not self._cap.isOpened():
            raise ValueError(f"Cannot open video: {self.video_path}")

        self._io_lock = threading.Lock()
        self.reported_fps = float(self._cap.get(cv2.CAP_PROP_FPS) or float("nan"))
        self.width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.frame_count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
        if self.frame_count > 0 and self.reported_fps > 0:
            self.duration_s = self.frame_count / self.reported_fps
        else:
            self.duration_s = 0.0
        self._next_index = 0

        logger.info(
            f"Opened {self.video_path}: {self.width}x{self.height}, "
            f"{self.frame_count} frames @ {self.reported_fps:.2f}fps "
            f"({self.duration_s:.2f}s)"
        )

    def _index_for(self, t: float) -> int:
        if not math.isfinite(t) or t < 0:
            raise VideoSeekError(f"Invalid seek time: {t}")
        fps = self.reported_fps if self.reported_fps > 0 else 30.0
        idx = int(round(t * fps))
        if self.frame_count > 0:
            idx = min(idx, self.frame_count - 1)
        return max(0, idx)

    def seek(self, t: float) -> None:
        idx = self._index_for(t)
        with self._io_lock:
            if self._cap is None:
                raise VideoSeekError("Video source is closed")
            if not self._cap.set(cv2.CAP_PROP_POS_FRAMES, idx):
                raise VideoSeekError(f"Seek to {t:.3f}s (frame {idx}) failed")
            self._next_index = idx

    def read(self) -> Optional[Tuple[np.ndarray, float]]:
        with self._io_lock:
            if self._cap is None:
                return None
            ret, frame = self._cap.read()
            if not ret:
                return None
            pos_ms = self._cap.get(cv2.CAP_PROP_POS_MSEC)
            fps = self.reported_fps if self.reported_fps > 0 else 30.0
            index = self._next_index
            self._next_index += 1
            # Some backends report 0 ms for every frame; fall back to the index
            if pos_ms and pos_ms > 0:
                timestamp = pos_ms / 1000.0
            else:
                timestamp = index / fps
            return frame, timestamp

    def tell(self) -> float:
        fps = self.reported_fps if self.reported_fps > 0 else 30.0
        return self._next_index / fps

    def close(self) -> None:
        with self._io_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def downscale_for_inference(frame_bgr: np.ndarray, long_edge: int) -> np.ndarray:
    """Resize a BGR frame so its long edge is at most *long_edge* pixels.

    Aspect ratio is preserved and frames are never upscaled.

    Returns
    -------
    np.ndarray
        RGB image of shape ``(out_h, out_w, 3)``.
    """
    h, w = frame_bgr.shape[:2]
    if h == 0 or w == 0:
        raise ValueError("Cannot downscale an empty frame")
    scale = min(1.0, long_edge / max(w, h))
    out_w = max(1, int(round(w * scale)))
    out_h = max(1, int(round(h * scale)))
    if (out_w, out_h) != (w, h):
        frame_bgr = cv2.resize(frame_bgr, (out_w, out_h), interpolation=cv2.INTER_AREA)
    return cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
