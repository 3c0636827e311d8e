"""Pipeline configuration management.

Supports JSON and YAML config files for reproducible analyses.
Configuration is merged against ``DEFAULT_CONFIG`` so partial
overrides work seamlessly.

Keys ending in ``_constrained`` hold the value used when the analysis
runs with ``constrained=True`` (low-power devices: shorter frame-rate
probe, fewer samples, smaller inference buffer).

Functions
---------
load_config
    Load pipeline config from a JSON or YAML file.
save_config
    Save pipeline config to a JSON or YAML file.
resolve_config
    Merge ``None``, a partial dict or a config file against the defaults.
profile_value
    Look up a key, honouring its ``_constrained`` variant.

Attributes
----------
DEFAULT_CONFIG : dict
    Default configuration values for all pipeline stages.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


DEFAULT_CONFIG = {
    "constrained": False,
    "video": {
        "min_long_edge": 1920,
        "min_short_edge": 1080,
    },
    "fps": {
        "normal_fps": 30.0,
        "normal_tolerance": 6.0,
        "slowmo_fps": 240.0,
        "slowmo_tolerance": 20.0,
        "slowmo_factor": 8,
        "probe_window_s": 0.6,
        "probe_window_s_constrained": 0.35,
        "min_probe_frames": 8,
        "min_probe_frames_constrained": 4,
        "probe_timeout_extra_s": 2.0,
        "fallback_fps": 30.0,
    },
    "sampling": {
        "sample_fps": 24,
        "max_samples": 240,
        "max_samples_constrained": 150,
        "infer_long_edge": 640,
        "infer_long_edge_constrained": 384,
        "min_pose_score": 0.2,
        "yield_every": 8,
    },
    "direction": {
        "mode": "auto",
        "deadband": 0.015,
        "min_samples": 8,
        "max_flip_ratio": 0.25,
    },
    "events": {
        "min_step_sec": 0.3,
        "threshold_pct": 0.8,
    },
    "metrics": {
        "strike_threshold": 0.012,
        "retract_window_s": 0.12,
    },
    "gates": {
        "min_duration_s": 3.0,
        "min_detected_frames": 8,
        "min_detection_ratio": 0.2,
        "min_contacts": 4,
    },
}


def load_config(path: Union[str, Path]) -> dict:
    """Load pipeline config from a JSON or YAML file.

    The loaded configuration is merged against ``DEFAULT_CONFIG``
    so partial overrides work correctly.

    Parameters
    ----------
    path : str or Path
        Path to config file (``.json`` or ``.yaml``/``.yml``).

    Returns
    -------
    dict
        Merged configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If the config file does not exist.
    ImportError
        If YAML is requested but ``pyyaml`` is not installed.
    ValueError
        If the file content is not a dict.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            import yaml
        except ImportError:
            raise ImportError("PyYAML required for YAML configs: pip install runform[yaml]")
        with open(path) as f:
            cfg = yaml.safe_load(f)
    else:
        with open(path) as f:
            cfg = json.load(f)

    if not isinstance(cfg, dict):
        raise ValueError("Config must be a dict")

    merged = _deep_merge(DEFAULT_CONFIG, cfg)
    logger.info(f"Loaded config from {path}")
    return merged


def save_config(config: dict, path: Union[str, Path]) -> str:
    """Save pipeline config to a JSON or YAML file.

    Parameters
    ----------
    config : dict
        Configuration dictionary.
    path : str or Path
        Output file path (``.json`` or ``.yaml``/``.yml``).

    Returns
    -------
    str
        Path to the saved file.

    Raises
    ------
    ImportError
        If YAML is requested but ``pyyaml`` is not installed.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            import yaml
        except ImportError:
            raise ImportError("PyYAML required for YAML configs: pip install runform[yaml]")
        with open(path, "w") as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    else:
        with open(path, "w") as f:
            json.dump(config, f, indent=2, ensure_ascii=False)

    logger.info(f"Saved config to {path}")
    return str(path)


def resolve_config(config: Optional[Union[dict, str, Path]] = None) -> dict:
    """Return a full configuration from ``None``, a partial dict or a file path."""
    if config is None:
        return copy.deepcopy(DEFAULT_CONFIG)
    if isinstance(config, (str, Path)):
        return load_config(config)
    if not isinstance(config, dict):
        raise TypeError("config must be a dict, a path or None")
    return _deep_merge(DEFAULT_CONFIG, config)


def profile_value(config: dict, section: str, key: str, constrained: Optional[bool] = None) -> Any:
    """Return ``config[section][key]``, or its ``_constrained`` variant.

    When *constrained* is ``None`` the top-level ``constrained`` flag of
    *config* decides.
    """
    if constrained is None:
        constrained = bool(config.get("constrained", False))
    values = config[section]
    if constrained and f"{key}_constrained" in values:
        return values[f"{key}_constrained"]
    return values[key]


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into a deep copy of base."""
    result = copy.deepcopy(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = copy.deepcopy(v)
    return result
