"""
Value types exchanged with the coach policy.

Everything here is immutable; the policy keeps its own small mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from voicecoach_pitch.prosody import RISING


@dataclass(frozen=True)
class Hint:
    id: str
    text: str
    severity: Optional[str] = None   # info | success | gentle | warning
    aria: Optional[str] = None
    priority: Optional[int] = None


@dataclass(frozen=True)
class HintCandidate:
    bucket: str
    hint: Hint
    timestamp: float


@dataclass(frozen=True)
class CoachSnapshot:
    t: float                                   # ms
    loud_norm: Optional[float] = None          # 0..1
    jitter_ema: Optional[float] = None         # lower is smoother
    time_in_target_hit: Optional[bool] = None  # current frame inside the target band
    confidence: Optional[float] = None         # 0..1

    @classmethod
    def from_engine(cls, snap, in_target: Optional[bool] = None) -> "CoachSnapshot":
        """Build from an EngineSnapshot; `in_target` comes from the drill's band check."""
        return cls(
            t=snap.t,
            loud_norm=snap.loud_norm,
            jitter_ema=snap.jitter_ema,
            time_in_target_hit=in_target,
            confidence=snap.raw.confidence,
        )


@dataclass(frozen=True)
class PhraseSummary:
    dtw_tier: Optional[int] = None             # 1..5, produced externally
    end_rise_detected: Optional[bool] = None

    @classmethod
    def from_prosody(cls, result, dtw_tier: Optional[int] = None) -> "PhraseSummary":
        return cls(dtw_tier=dtw_tier, end_rise_detected=result.label == RISING)
