from __future__ import annotations

"""
YAML configuration for the alignment tool.

    detection: {method, nfeatures, fast_threshold}
    matching:  {ratio}
    ransac:    {threshold, max_iterations, confidence, min_inliers, seed}
    cache:     {dir}
    logging:   {level}

Missing file or missing keys fall back to the defaults below.
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_PATH = "config/aligndem.yaml"

_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "detection": {"method": "orb", "nfeatures": 500, "fast_threshold": 12},
    "matching": {"ratio": 0.8},
    "ransac": {
        "threshold": 0.0001,
        "max_iterations": 2000,
        "confidence": 0.999,
        "min_inliers": 10,
        "seed": None,
    },
    "cache": {"dir": None},
    "logging": {"level": "INFO"},
}


@dataclass
class DetectionConfig:
    method: str = "orb"
    nfeatures: int = 500
    fast_threshold: int = 12


@dataclass
class MatchingConfig:
    ratio: float = 0.8

    def __post_init__(self) -> None:
        if not 0.0 < self.ratio <= 1.0:
            raise ValueError("matching.ratio must be in (0, 1]")


@dataclass
class RansacConfig:
    threshold: float = 0.0001
    max_iterations: int = 2000
    confidence: float = 0.999
    min_inliers: int = 10
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ValueError("ransac.threshold must be > 0")
        if self.max_iterations < 1:
            raise ValueError("ransac.max_iterations must be >= 1")
        if not 0.0 < self.confidence < 1.0:
            raise ValueError("ransac.confidence must be in (0, 1)")


@dataclass
class AlignConfig:
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    ransac: RansacConfig = field(default_factory=RansacConfig)
    cache_dir: Optional[str] = None
    log_level: str = "INFO"


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def _pick(section: Dict[str, Any], cls) -> Any:
    known = cls.__dataclass_fields__.keys()
    return cls(**{k: v for k, v in section.items() if k in known})


def config_from_dict(raw: Optional[Dict[str, Any]]) -> AlignConfig:
    P = _merge(_DEFAULTS, raw or {})
    return AlignConfig(
        detection=_pick(P["detection"], DetectionConfig),
        matching=_pick(P["matching"], MatchingConfig),
        ransac=_pick(P["ransac"], RansacConfig),
        cache_dir=P["cache"].get("dir"),
        log_level=str(P["logging"].get("level", "INFO")),
    )


def load_config(path: Optional[str] = None) -> AlignConfig:
    """
    Read a YAML config file; an absent file yields the defaults.
    An explicitly named file that does not exist is an error.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
        if not Path(path).exists():
            return config_from_dict(None)
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config {path} must be a YAML mapping")
    return config_from_dict(raw)
