"""Landmark topology for the 33-point BlazePose / MediaPipe skeleton."""

from enum import IntEnum
from typing import Dict


class Landmark(IntEnum):
    """Named row index into a ``(33, 3)`` pose array."""

    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


# MediaPipe Pose landmarks (33 total)
MP_LANDMARK_NAMES = [lm.name for lm in Landmark]

N_LANDMARKS = len(MP_LANDMARK_NAMES)

LEGS = ("L", "R")

_LEG_LANDMARKS = {
    "L": {
        "knee": Landmark.LEFT_KNEE,
        "ankle": Landmark.LEFT_ANKLE,
        "heel": Landmark.LEFT_HEEL,
        "toe": Landmark.LEFT_FOOT_INDEX,
    },
    "R": {
        "knee": Landmark.RIGHT_KNEE,
        "ankle": Landmark.RIGHT_ANKLE,
        "heel": Landmark.RIGHT_HEEL,
        "toe": Landmark.RIGHT_FOOT_INDEX,
    },
}


def leg_landmarks(leg: str) -> Dict[str, Landmark]:
    """Return the knee/ankle/heel/toe landmarks of leg ``"L"`` or ``"R"``.

    Raises
    ------
    ValueError
        If *leg* is not ``"L"`` or ``"R"``.
    """
    try:
        return dict(_LEG_LANDMARKS[leg])
    except KeyError:
        raise ValueError(f"Unknown leg: {leg!r}. Expected one of {LEGS}") from None
