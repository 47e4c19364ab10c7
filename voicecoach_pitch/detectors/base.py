"""
Pitch detector backends (pluggable).

The idea:
- Keep pitch inference independent from hop accumulation and smoothing.
- Provide a small, stable interface so the engine can swap:
  - an autocorrelation baseline (YIN)
  - a learned model (CREPE exported to TorchScript)

Detectors are stateless per call; `reset` exists for backends that cache.
This module is pure Python and can be tested without a model runtime.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

# Anything outside this band is treated as a detector glitch.
MIN_PLAUSIBLE_HZ = 20.0
MAX_PLAUSIBLE_HZ = 4000.0


class DetectorInitError(RuntimeError):
    """Raised when a detector cannot load its runtime or model asset."""


@dataclass(frozen=True)
class PitchFrame:
    """Raw detector output for one analysis frame."""
    pitch_hz: Optional[float]   # None when unvoiced
    confidence: float           # [0, 1]

    @property
    def voiced(self) -> bool:
        return self.pitch_hz is not None


UNVOICED = PitchFrame(pitch_hz=None, confidence=0.0)


class PitchDetector(Protocol):
    """
    Pitch detector protocol.

    Implementations should be:
      - stateless per frame
      - cheap enough to run once per ~10 ms hop
      - robust to silence/noise (report unvoiced rather than raise)

    `initialize` may fetch assets and must be idempotent.
    """
    name: str

    async def initialize(self, config: Optional[Dict[str, Any]] = None) -> None:
        ...

    def process_frame(self, frame, sample_rate: int) -> PitchFrame:
        ...

    def reset(self) -> None:
        ...


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def safe_prob(x: Optional[float]) -> float:
    """Clamp to a safe [0,1] range; missing or NaN becomes 0."""
    if x is None:
        return 0.0
    x = float(x)
    if not math.isfinite(x):
        return 0.0
    return clamp(x, 0.0, 1.0)


def sanitize_hz(hz: Optional[float],
                lo: float = MIN_PLAUSIBLE_HZ, hi: float = MAX_PLAUSIBLE_HZ) -> Optional[float]:
    """Non-finite or out-of-range readings become None (unvoiced)."""
    if hz is None:
        return None
    hz = float(hz)
    if not math.isfinite(hz) or hz < lo or hz > hi:
        return None
    return hz


def make_frame(hz: Optional[float], confidence: Optional[float]) -> PitchFrame:
    return PitchFrame(pitch_hz=sanitize_hz(hz), confidence=safe_prob(confidence))
