"""Shared test fixtures for the runform test suite.

Provides synthetic running poses, an in-memory video source and a
scripted pose extractor so the pipeline can run without real footage
or a pose model.
"""

import math
import time

import numpy as np
import pytest

from runform.constants import Landmark, N_LANDMARKS
from runform.models.base import BasePoseExtractor, PoseEstimate
from runform.video import BaseVideoSource, VideoSeekError

# Contact times of the synthetic runner (seconds, on the 24 fps sampling grid)
LEFT_CONTACTS = (0.5, 2.0, 3.5)
RIGHT_CONTACTS = (1.25, 2.75, 4.25)


def make_pose(score=0.9, facing=1, heel_y=(0.70, 0.70), nose_x=None):
    """Create a normalised ``(33, 3)`` side-view pose.

    Hips sit at (0.5, 0.5), the runner faces right for ``facing=1``. The
    heel of each leg is at ``heel_y`` (left, right) with the toe 0.02
    higher, i.e. a heel strike.
    """
    lm = np.full((N_LANDMARKS, 3), 0.5)
    lm[:, 2] = score
    if nose_x is None:
        nose_x = 0.5 + 0.05 * facing
    lm[Landmark.NOSE, :2] = (nose_x, 0.15)
    lm[Landmark.LEFT_SHOULDER, :2] = (0.5 + 0.02 * facing, 0.30)
    lm[Landmark.RIGHT_SHOULDER, :2] = (0.5 + 0.02 * facing, 0.30)
    lm[Landmark.LEFT_HIP, :2] = (0.5, 0.5)
    lm[Landmark.RIGHT_HIP, :2] = (0.5, 0.5)
    for knee, ankle, heel, toe, y in (
        (Landmark.LEFT_KNEE, Landmark.LEFT_ANKLE, Landmark.LEFT_HEEL,
         Landmark.LEFT_FOOT_INDEX, heel_y[0]),
        (Landmark.RIGHT_KNEE, Landmark.RIGHT_ANKLE, Landmark.RIGHT_HEEL,
         Landmark.RIGHT_FOOT_INDEX, heel_y[1]),
    ):
        lm[knee, :2] = (0.5 + 0.03 * facing, 0.62)
        lm[ankle, :2] = (0.5 + 0.08 * facing, 0.76)
        lm[heel, :2] = (0.5 + 0.07 * facing, y)
        lm[toe, :2] = (0.5 + 0.11 * facing, y - 0.02)
    return lm


def heel_height(t, contacts, base=0.70, amplitude=0.15, width=0.08):
    """Heel ``y`` at time *t*: a narrow bump at each contact time."""
    return base + sum(amplitude * math.exp(-((t - tc) / width) ** 2) for tc in contacts)


def make_running_pose(t, facing=1, score=0.9):
    """Pose of the synthetic runner at time *t*."""
    return make_pose(
        score=score,
        facing=facing,
        heel_y=(heel_height(t, LEFT_CONTACTS), heel_height(t, RIGHT_CONTACTS)),
    )


class FakeVideoSource(BaseVideoSource):
    """In-memory video: black frames stamped with their media time.

    Seeks land exactly on the requested time and every read advances
    the position by one frame period.
    """

    def __init__(self, width=1920, height=1080, fps=30.0, duration_s=5.0,
                 frame_size=(192, 108), read_delay=0.0, readable=True):
        super().__init__()
        self.width = width
        self.height = height
        self.reported_fps = fps
        self.duration_s = duration_s
        self.frame_count = int(round(duration_s * fps))
        self.frame_size = frame_size
        self.read_delay = read_delay
        self.readable = readable
        self.position = 0.0
        self.last_timestamp = None
        self.seeks = []
        self.reads = 0
        self.fail_seek_at = None

    def seek(self, t):
        if self.fail_seek_at is not None and t >= self.fail_seek_at:
            raise VideoSeekError(f"Seek to {t:.3f}s failed")
        self.seeks.append(t)
        self.position = t

    def read(self):
        if self.read_delay:
            time.sleep(self.read_delay)
        if not self.readable or self.position > self.duration_s + 1e-9:
            return None
        self.reads += 1
        ts = self.position
        self.last_timestamp = ts
        self.position = ts + 1.0 / self.reported_fps
        w, h = self.frame_size
        return np.zeros((h, w, 3), dtype=np.uint8), ts

    def tell(self):
        return self.position


class FakeExtractor(BasePoseExtractor):
    """Extractor returning scripted poses for the source's current time.

    ``pose_fn(t, call_index)`` returns a normalised ``(33, 3)`` array or
    None; it is scaled to the pixel space of the frame it receives.
    """

    name = "fake"
    n_landmarks = N_LANDMARKS

    def __init__(self, source, pose_fn=None, fail_on=()):
        self.source = source
        self.pose_fn = pose_fn or (lambda t, i: make_running_pose(t))
        self.fail_on = set(fail_on)
        self.calls = 0
        self.shapes = []

    def estimate(self, frame_rgb, max_poses=1):
        index = self.calls
        self.calls += 1
        self.shapes.append(frame_rgb.shape)
        if index in self.fail_on:
            raise RuntimeError("detector crashed")
        lm = self.pose_fn(self.source.last_timestamp, index)
        if lm is None:
            return None
        h, w = frame_rgb.shape[:2]
        keypoints = np.array(lm, dtype=float)
        keypoints[:, 0] *= w
        keypoints[:, 1] *= h
        return PoseEstimate(keypoints=keypoints)

    def describe(self):
        return {"name": "fake", "model_type": "test", "backend": "numpy"}


def make_frames(poses, sample_fps=24, dt=None):
    """Build FrameRecords from a list of poses (None for no detection)."""
    from runform.extract import FrameRecord

    dt = dt or 1.0 / sample_fps
    return [FrameRecord(t=i * dt, landmarks=p, sample_fps=sample_fps) for i, p in enumerate(poses)]


@pytest.fixture
def running_source():
    return FakeVideoSource()


@pytest.fixture
def running_extractor(running_source):
    return FakeExtractor(running_source)
