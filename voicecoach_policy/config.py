"""
Coach configuration loader.

Supports:
  - no path: defaults
  - JSON file: {"pitch_engine": {...}, "coach_policy": {...}, "prosody": {...}}
  - YAML file with the same sections, optionally in the ROS2-style param layout:
        coach_policy:
          ros__parameters:
            rate_limit_ms: 1000
            ...
Keys may be snake_case or camelCase (inputSampleRate, qSemitones2, ...).
Unknown keys are logged and ignored; bad values fail in the dataclass checks.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

import yaml

from voicecoach_pitch.engine import EngineConfig, KalmanConfig
from voicecoach_pitch.prosody import ProsodyOptions

from .policy import PolicyConfig

logger = logging.getLogger(__name__)

_CAMEL = re.compile(r"(?<=[a-z0-9])([A-Z])")


@dataclass(frozen=True)
class CoachConfig:
    engine: EngineConfig = field(default_factory=EngineConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    prosody: ProsodyOptions = field(default_factory=ProsodyOptions)


def snake_case(key: str) -> str:
    return _CAMEL.sub(r"_\1", key).lower()


def _section(data: Dict[str, Any], name: str, path: str) -> Dict[str, Any]:
    params = data.get(name) or {}
    if not isinstance(params, dict):
        raise ValueError(f"{path}: section {name!r} must be a mapping")
    ros_params = params.get("ros__parameters")
    if isinstance(ros_params, dict):
        params = ros_params
    return {snake_case(str(k)): v for k, v in params.items()}


def _build(cls, params: Dict[str, Any], where: str):
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(params) - known)
    if unknown:
        logger.warning("%s: ignoring unknown keys %s", where, unknown)
    return cls(**{k: v for k, v in params.items() if k in known})


def config_from_dict(data: Dict[str, Any], path: str = "<dict>") -> CoachConfig:
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")

    engine_params = _section(data, "pitch_engine", path)
    kalman = engine_params.pop("kalman", None)
    if kalman is not None:
        if not isinstance(kalman, dict):
            raise ValueError(f"{path}: pitch_engine.kalman must be a mapping")
        engine_params["kalman"] = _build(
            KalmanConfig, {snake_case(str(k)): v for k, v in kalman.items()}, f"{path}:kalman")

    return CoachConfig(
        engine=_build(EngineConfig, engine_params, f"{path}:pitch_engine"),
        policy=_build(PolicyConfig, _section(data, "coach_policy", path), f"{path}:coach_policy"),
        prosody=_build(ProsodyOptions, _section(data, "prosody", path), f"{path}:prosody"),
    )


def load_coach_config(path: Optional[str]) -> CoachConfig:
    if not path:
        return CoachConfig()

    with open(path, "r", encoding="utf-8") as f:
        if path.endswith(".json"):
            data = json.load(f)
        elif path.endswith(".yaml") or path.endswith(".yml"):
            data = yaml.safe_load(f) or {}
        else:
            raise ValueError(f"Unknown config format for {path} (expected .json, .yaml or .yml)")

    return config_from_dict(data, path)
