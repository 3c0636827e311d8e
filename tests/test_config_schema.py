"""Tests for configuration and result persistence."""

import json
import math

import pytest

from runform.analysis import AnalysisIssue, AnalysisSummary
from runform.config import (
    DEFAULT_CONFIG,
    load_config,
    profile_value,
    resolve_config,
    save_config,
)
from runform.schema import load_json, save_json, summary_from_dict


# ── Config ───────────────────────────────────────────────────────────


def test_json_config_merges_defaults(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"sampling": {"sample_fps": 30}}), encoding="utf-8")
    cfg = load_config(path)
    assert cfg["sampling"]["sample_fps"] == 30
    assert cfg["sampling"]["max_samples"] == 240
    assert cfg["gates"] == DEFAULT_CONFIG["gates"]


def test_yaml_config_roundtrip(tmp_path):
    pytest.importorskip("yaml")
    cfg = resolve_config({"constrained": True, "direction": {"mode": "left"}})
    path = tmp_path / "cfg.yaml"
    save_config(cfg, path)
    loaded = load_config(path)
    assert loaded["constrained"] is True
    assert loaded["direction"]["mode"] == "left"
    assert loaded["direction"]["deadband"] == 0.015


def test_config_non_dict_raises(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError, match="Config must be a dict"):
        load_config(path)


def test_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json")


def test_resolve_config_does_not_alias_defaults():
    cfg = resolve_config()
    cfg["sampling"]["sample_fps"] = 1
    assert DEFAULT_CONFIG["sampling"]["sample_fps"] == 24
    with pytest.raises(TypeError):
        resolve_config(42)


def test_profile_value_constrained_variants():
    cfg = resolve_config()
    assert profile_value(cfg, "sampling", "max_samples") == 240
    assert profile_value(cfg, "sampling", "max_samples", constrained=True) == 150
    assert profile_value(cfg, "fps", "probe_window_s", constrained=True) == 0.35
    assert profile_value(cfg, "sampling", "sample_fps", constrained=True) == 24
    cfg["constrained"] = True
    assert profile_value(cfg, "sampling", "infer_long_edge") == 384


# ── Schema ───────────────────────────────────────────────────────────


def _result_doc():
    return {
        "meta": {"created_at": "2024-01-01T00:00:00+00:00", "duration_s": 5.0},
        "contacts": {"left": [], "right": [], "all": []},
        "summary": {
            "overstride_ratio_median": 0.1,
            "knee_angle_median": float("nan"),
            "trunk_lean_median": 4.0,
            "heel_strike_rate": 0.5,
            "retract_speed_median": 0.05,
            "contact_count": 6,
        },
    }


def test_save_writes_nan_as_null(tmp_path):
    path = tmp_path / "out" / "result.json"
    save_json(_result_doc(), path)
    text = path.read_text(encoding="utf-8")
    assert "NaN" not in text
    assert json.loads(text)["summary"]["knee_angle_median"] is None


def test_load_and_rebuild_summary(tmp_path):
    path = tmp_path / "result.json"
    save_json(_result_doc(), path)
    data = load_json(path)
    summary = summary_from_dict(data["summary"])
    assert isinstance(summary, AnalysisSummary)
    assert math.isnan(summary.knee_angle_median)
    assert summary.contact_count == 6


def test_save_issue(tmp_path):
    path = tmp_path / "issue.json"
    save_json(AnalysisIssue("low_detection", {"detected": 3, "total": 100, "ratio": 0.03}), path)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["issue"] == "low_detection"


def test_load_rejects_incomplete_documents(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps([1]), encoding="utf-8")
    with pytest.raises(ValueError, match="JSON root must be a dict"):
        load_json(path)

    doc = _result_doc()
    del doc["contacts"]["all"]
    path.write_text(json.dumps(doc), encoding="utf-8")
    with pytest.raises(ValueError, match="contacts.all"):
        load_json(path)

    doc = _result_doc()
    del doc["summary"]["contact_count"]
    save_json(doc, path)
    with pytest.raises(ValueError, match="contact_count"):
        load_json(path)


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_json(tmp_path / "missing.json")
