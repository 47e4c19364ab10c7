from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping

from .hints import Hint, HintCandidate


@dataclass(frozen=True)
class EnvironmentState:
    fallback_detector_active: bool = False
    device_changed: bool = False
    enhancements_on: bool = False
    audio_suspended: bool = False


# (flag, hint id, severity, priority), in emission order
_CHECKS = (
    ("fallback_detector_active", "isolation-dropped", "warning", 1),
    ("device_changed", "device-changed", "info", 2),
    ("enhancements_on", "enhancements-on", "info", 2),
    ("audio_suspended", "audio-suspended", "warning", 1),
)


def environment_candidates(state: EnvironmentState, now: float,
                           copy: Mapping[str, str]) -> List[HintCandidate]:
    """Env-bucket candidates for every raised flag; cooldowns are the policy's job."""
    out = []
    for flag, hint_id, severity, priority in _CHECKS:
        if getattr(state, flag):
            text = copy.get(hint_id, hint_id)
            hint = Hint(id=hint_id, text=text, severity=severity, aria=text, priority=priority)
            out.append(HintCandidate(bucket="env", hint=hint, timestamp=now))
    return out
