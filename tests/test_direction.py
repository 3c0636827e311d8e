"""Tests for facing-direction inference and votes."""

import numpy as np
import pytest

from conftest import make_pose
from runform.constants import Landmark
from runform.direction import (
    DirectionVotes,
    direction_sign,
    estimate_direction,
    resolve_direction,
)


def test_sign_follows_nose_offset():
    assert direction_sign(make_pose(facing=1)) == 1
    assert direction_sign(make_pose(facing=-1)) == -1


def test_sign_deadband():
    assert direction_sign(make_pose(nose_x=0.51)) == 0
    assert direction_sign(make_pose(nose_x=0.49)) == 0
    assert direction_sign(make_pose(nose_x=0.52)) == 1


def test_sign_missing_or_nan():
    assert direction_sign(None) == 0
    lm = make_pose()
    lm[Landmark.NOSE, 0] = np.nan
    assert direction_sign(lm) == 0


def test_estimate_defaults_to_right():
    assert estimate_direction(make_pose(nose_x=0.5)) == 1
    assert estimate_direction(None) == 1
    assert estimate_direction(make_pose(facing=-1)) == -1


def test_resolve_forced_modes():
    lm = make_pose(facing=-1)
    assert resolve_direction(lm, "auto") == -1
    assert resolve_direction(lm, "right") == 1
    assert resolve_direction(make_pose(facing=1), "left") == -1
    with pytest.raises(ValueError, match="Unknown direction mode"):
        resolve_direction(lm, "up")


def test_votes_counting_and_flip_ratio():
    votes = DirectionVotes()
    for sign in (1, 1, 1, 0, -1):
        votes.add(sign)
    assert (votes.right, votes.left, votes.total) == (3, 1, 4)
    assert votes.flip_ratio == pytest.approx(0.25)
    assert votes.majority() == 1


def test_votes_single_direction_has_no_flips():
    votes = DirectionVotes(right=0, left=9)
    assert votes.flip_ratio == 0.0
    assert votes.majority() == -1


def test_votes_tie_goes_right():
    assert DirectionVotes(right=4, left=4).majority() == 1
