"""Tests for metric interpretation, flags and advice."""

import pytest

from runform.analysis import AnalysisSummary
from runform.interpret import (
    build_advice,
    build_flags,
    interpret_knee,
    interpret_overstride,
    interpret_retraction,
    interpret_trunk_lean,
)

NAN = float("nan")


def _summary(overstride=0.05, knee=155.0, trunk=5.0, heel=0.1, retract=0.1, count=6):
    return AnalysisSummary(
        overstride_ratio_median=overstride,
        knee_angle_median=knee,
        trunk_lean_median=trunk,
        heel_strike_rate=heel,
        retract_speed_median=retract,
        contact_count=count,
    )


@pytest.mark.parametrize("ratio, key, level", [
    (0.25, "overstride.severe", "bad"),
    (0.20, "overstride.severe", "bad"),
    (0.15, "overstride.moderate", "warn"),
    (0.08, "overstride.mild", "warn"),
    (0.01, "overstride.good", "good"),
    (NAN, "overstride.unknown", "na"),
])
def test_interpret_overstride(ratio, key, level):
    f = interpret_overstride(ratio)
    assert (f.key, f.level) == (key, level)


def test_interpret_knee():
    assert interpret_knee(172).level == "bad"
    assert interpret_knee(165).key == "knee.extended"
    assert interpret_knee(150).level == "good"
    assert interpret_knee(NAN).level == "na"


def test_interpret_trunk_lean():
    assert interpret_trunk_lean(-3).key == "trunk.backward"
    assert interpret_trunk_lean(-1).key == "trunk.slight_backward"
    assert interpret_trunk_lean(0).key == "trunk.reasonable"
    assert interpret_trunk_lean(12).key == "trunk.reasonable"
    assert interpret_trunk_lean(15).key == "trunk.large_forward"


def test_interpret_retraction():
    assert interpret_retraction(-0.05).key == "retraction.forward_reach"
    assert interpret_retraction(0.0).key == "retraction.slow_pull"
    assert interpret_retraction(0.02).key == "retraction.good"
    assert interpret_retraction(None).level == "na"


def test_flags_good_runner():
    flags = build_flags(_summary())
    assert [f.level for f in flags] == ["good"] * 5
    assert flags[3].key == "flags.heel_mostly_non"


def test_flags_problem_runner():
    keys = [f.key for f in build_flags(_summary(overstride=0.15, knee=168, trunk=-2, heel=0.8, retract=0.0))]
    assert keys == [
        "flags.overstride_bad",
        "flags.knee_bad",
        "flags.trunk_bad",
        "flags.heel_mostly",
        "flags.retraction_slow",
    ]


def test_flags_unknown_and_no_contacts():
    flags = build_flags(_summary(overstride=NAN, heel=0.4))
    assert flags[0].key == "flags.overstride_unknown"
    assert flags[3].key == "flags.heel_mixed"
    assert [f.key for f in build_flags(_summary(count=0))] == ["flags.no_contacts"]


def test_advice():
    assert build_advice(_summary()) == ["advice.overstride_good", "advice.strength"]
    assert build_advice(_summary(overstride=0.15, knee=170, trunk=-2, heel=0.7)) == [
        "advice.overstride_priority_1",
        "advice.overstride_priority_2",
        "advice.knee",
        "advice.trunk",
        "advice.heel_overstride",
        "advice.strength",
    ]
    assert "advice.heel_ok" in build_advice(_summary(heel=0.9))
    assert build_advice(_summary(count=0)) == ["advice.no_contacts"]


def test_finding_rejects_unknown_level():
    from runform.interpret import Finding

    assert Finding("knee.good", "good").to_dict() == {"key": "knee.good", "level": "good"}
    with pytest.raises(ValueError, match="Unknown level"):
        Finding("knee.good", "fine")
