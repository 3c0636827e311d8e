"""JSON persistence of analysis results.

The result document has three top-level keys:

- ``meta``: run metadata (durations, frame rates, direction, model);
- ``contacts``: ``left``, ``right`` and time-sorted ``all`` lists of
  per-contact metrics;
- ``summary``: medians, heel-strike rate and contact count.

Numeric fields may be missing values: NaN is written as ``null`` so the
file is strict JSON, and read back as NaN by :func:`summary_from_dict`.

Functions
---------
save_json
    Save a result (or any dict) to file with numpy type conversion.
load_json
    Load and validate a result file.
summary_from_dict
    Rebuild an AnalysisSummary from its dict form.
"""

import json
import math
from pathlib import Path
from typing import Any, Union

import numpy as np

from .analysis import AnalysisIssue, AnalysisResult, AnalysisSummary

_SUMMARY_KEYS = (
    "overstride_ratio_median",
    "knee_angle_median",
    "trunk_lean_median",
    "heel_strike_rate",
    "retract_speed_median",
    "contact_count",
)


def _convert_numpy(obj: Any) -> Any:
    """Recursively convert numpy types to Python types, NaN and inf to None."""
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        value = float(obj)
        return value if math.isfinite(value) else None
    if isinstance(obj, np.ndarray):
        return _convert_numpy(obj.tolist())
    if isinstance(obj, dict):
        return {k: _convert_numpy(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_convert_numpy(v) for v in obj]
    if isinstance(obj, np.bool_):
        return bool(obj)
    return obj


def save_json(data: Union[AnalysisResult, AnalysisIssue, dict],
              path: Union[str, Path], indent: int = 2) -> str:
    """Save an analysis outcome to a JSON file.

    Parameters
    ----------
    data : AnalysisResult, AnalysisIssue or dict
        Outcome to save; dataclasses are converted with ``to_dict()``.
    path : str or Path
        Output file path. Parent directories are created if needed.
    indent : int, optional
        JSON indentation level (default 2).

    Returns
    -------
    str
        Path to the saved file.
    """
    if isinstance(data, (AnalysisResult, AnalysisIssue)):
        data = data.to_dict()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    converted = _convert_numpy(data)
    with open(path, "w") as f:
        json.dump(converted, f, indent=indent, ensure_ascii=False, allow_nan=False)
    return str(path)


def load_json(path: Union[str, Path]) -> dict:
    """Load and validate an analysis result file.

    Parameters
    ----------
    path : str or Path
        Path to JSON file.

    Returns
    -------
    dict
        Result dictionary (missing values as ``None``).

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the JSON content is not a valid result document.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with open(path) as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("JSON root must be a dict")
    for key in ("meta", "contacts", "summary"):
        if key not in data:
            raise ValueError(f"Missing '{key}' key in JSON")

    contacts = data["contacts"]
    if not isinstance(contacts, dict):
        raise ValueError("'contacts' must be a dict")
    for key in ("left", "right", "all"):
        if not isinstance(contacts.get(key), list):
            raise ValueError(f"'contacts.{key}' must be a list")

    summary = data["summary"]
    if not isinstance(summary, dict):
        raise ValueError("'summary' must be a dict")
    missing = [k for k in _SUMMARY_KEYS if k not in summary]
    if missing:
        raise ValueError(f"Missing summary keys: {', '.join(missing)}")

    return data


def summary_from_dict(summary: dict) -> AnalysisSummary:
    """Build an :class:`AnalysisSummary` from its JSON form (``None`` -> NaN)."""
    def _num(key):
        value = summary.get(key)
        return float("nan") if value is None else float(value)

    return AnalysisSummary(
        overstride_ratio_median=_num("overstride_ratio_median"),
        knee_angle_median=_num("knee_angle_median"),
        trunk_lean_median=_num("trunk_lean_median"),
        heel_strike_rate=_num("heel_strike_rate"),
        retract_speed_median=_num("retract_speed_median"),
        contact_count=int(summary.get("contact_count") or 0),
    )
