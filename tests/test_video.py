"""Tests for the OpenCV video source and frame downscaling."""

import asyncio

import cv2
import numpy as np
import pytest

from runform.framerate import estimate_video_fps
from runform.video import (
    AnalysisBusyError,
    CvVideoSource,
    VideoSeekError,
    downscale_for_inference,
)


# ── Helpers ──────────────────────────────────────────────────────


def _make_synthetic_video(path, n_frames=30, width=320, height=240, fps=30.0):
    """Create a short synthetic video for testing."""
    fourcc = cv2.VideoWriter_fourcc(*"mp4v")
    writer = cv2.VideoWriter(str(path), fourcc, fps, (width, height))
    for i in range(n_frames):
        frame = np.zeros((height, width, 3), dtype=np.uint8)
        # Draw a gradient to make frames distinguishable
        frame[:, :, 0] = int(255 * i / max(n_frames - 1, 1))
        writer.write(frame)
    writer.release()


@pytest.fixture
def video_path(tmp_path):
    path = tmp_path / "clip.mp4"
    _make_synthetic_video(path)
    return path


# ── CvVideoSource ────────────────────────────────────────────────


def test_open_reports_geometry(video_path):
    with CvVideoSource(video_path) as source:
        assert (source.width, source.height) == (320, 240)
        assert source.reported_fps == pytest.approx(30.0, abs=0.5)
        assert source.frame_count > 0
        assert source.duration_s == pytest.approx(source.frame_count / source.reported_fps)
        assert source.long_edge == 320
        assert source.short_edge == 240


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        CvVideoSource(tmp_path / "nope.mp4")


def test_unreadable_file_raises(tmp_path):
    path = tmp_path / "garbage.mp4"
    path.write_bytes(b"not a video")
    with pytest.raises(ValueError, match="Cannot open video"):
        CvVideoSource(path)


def test_seek_read_and_tell(video_path):
    with CvVideoSource(video_path) as source:
        source.seek(0.5)
        assert source.tell() == pytest.approx(0.5, abs=1 / 30)
        frame, ts = source.read()
        assert frame.shape == (240, 320, 3)
        assert ts >= 0
        # seeking past the end clamps to the last frame
        source.seek(source.duration_s + 10)
        assert source.read() is not None


def test_invalid_seek_raises(video_path):
    with CvVideoSource(video_path) as source:
        with pytest.raises(VideoSeekError):
            source.seek(-1.0)
        with pytest.raises(VideoSeekError):
            source.seek(float("nan"))


def test_closed_source(video_path):
    source = CvVideoSource(video_path)
    source.close()
    assert source.read() is None
    with pytest.raises(VideoSeekError):
        source.seek(0.0)


def test_probe_on_real_file(video_path):
    with CvVideoSource(video_path) as source:
        fps = asyncio.run(estimate_video_fps(source))
        assert fps == pytest.approx(30.0, abs=1.0)
        assert source.tell() == 0.0


def test_claim_is_exclusive(video_path):
    with CvVideoSource(video_path) as source:
        with source.claim():
            with pytest.raises(AnalysisBusyError):
                with source.claim():
                    pass
        with source.claim():
            pass


# ── Downscaling ──────────────────────────────────────────────────


def test_downscale_keeps_aspect_and_converts_to_rgb():
    frame = np.zeros((1080, 1920, 3), dtype=np.uint8)
    frame[:, :, 0] = 255  # blue in BGR
    out = downscale_for_inference(frame, 640)
    assert out.shape == (360, 640, 3)
    assert out[0, 0, 2] == 255
    assert out[0, 0, 0] == 0


def test_downscale_never_upscales():
    frame = np.zeros((100, 200, 3), dtype=np.uint8)
    assert downscale_for_inference(frame, 640).shape == (100, 200, 3)


def test_downscale_portrait():
    frame = np.zeros((1920, 1080, 3), dtype=np.uint8)
    assert downscale_for_inference(frame, 384).shape == (384, 216, 3)


def test_downscale_empty_frame_raises():
    with pytest.raises(ValueError):
        downscale_for_inference(np.zeros((0, 0, 3), dtype=np.uint8), 640)
