"""Tests for contact-event detection."""

import numpy as np
import pytest

from conftest import heel_height, make_frames, make_pose
from runform.events import find_contact_peaks, frame_times, heel_series


def _series(contacts, fps=24, duration=5.0):
    t = np.arange(int(duration * fps) + 1) / fps
    y = np.array([heel_height(ti, contacts) for ti in t])
    return y, t


def test_periodic_peaks_found_at_known_times():
    contacts = (0.5, 1.5, 2.5, 3.5)
    y, t = _series(contacts)
    peaks = find_contact_peaks(y, t, min_step_sec=0.3)
    assert [t[i] for i in peaks] == pytest.approx(list(contacts))


def test_close_peaks_collapse_to_earlier():
    # 0.2 s apart with a 0.3 s minimum step: only the first survives
    y = np.array([0.1, 0.9, 0.5, 0.9, 0.1, 0.1, 0.1, 0.1, 0.1, 0.1])
    t = np.arange(len(y)) * 0.1
    assert find_contact_peaks(y, t, min_step_sec=0.3) == [1]


def test_peaks_below_threshold_are_ignored():
    y = np.array([0.1, 0.3, 0.1, 0.1, 0.9, 0.1, 0.1, 0.9, 0.1, 0.1])
    t = np.arange(len(y)) * 0.2
    # the small bump at index 1 is under the 80th percentile
    assert find_contact_peaks(y, t, min_step_sec=0.3) == [4, 7]


def test_plateau_start_counts_once():
    y = np.array([0.1, 0.2, 0.9, 0.9, 0.2, 0.1, 0.1])
    t = np.arange(len(y)) * 0.5
    assert find_contact_peaks(y, t, min_step_sec=0.3) == [2]


def test_nan_neighbourhood_skipped():
    y = np.array([0.1, np.nan, 0.9, 0.1, 0.1, 0.2, 0.9, 0.1])
    t = np.arange(len(y)) * 0.5
    assert find_contact_peaks(y, t, min_step_sec=0.3) == [6]


def test_no_finite_values():
    y = np.full(10, np.nan)
    assert find_contact_peaks(y, np.arange(10.0), min_step_sec=0.3) == []


def test_length_mismatch_raises():
    with pytest.raises(ValueError):
        find_contact_peaks([0.1, 0.2, 0.1], [0.0, 1.0], min_step_sec=0.3)


def test_heel_series_from_frames():
    frames = make_frames([make_pose(heel_y=(0.8, 0.7)), None, make_pose(heel_y=(0.75, 0.72))])
    left = heel_series(frames, "L")
    right = heel_series(frames, "R")
    assert left[0] == pytest.approx(0.8)
    assert np.isnan(left[1])
    assert right[2] == pytest.approx(0.72)
    assert frame_times(frames) == pytest.approx([0.0, 1 / 24, 2 / 24])
