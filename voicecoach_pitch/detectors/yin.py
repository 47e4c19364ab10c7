"""
YIN pitch detector.

This is the "engineering baseline" backend:
- no ML dependencies
- runs everywhere
- deterministic, so it is the fallback when a model cannot be loaded

What it does:
- difference function d(tau) over the lag range [1, sr/min_hz]
- cumulative-mean normalisation d'(tau)
- first lag >= sr/max_hz with d'(tau) below the threshold, followed down to
  its local minimum
- parabolic interpolation over the three neighbouring d' values

NOTE: confidence = 1 - d'(tau) is a heuristic, not a calibrated probability.
"""

from __future__ import annotations

import numpy as np
from typing import Any, Dict, Optional

from .base import PitchFrame, UNVOICED, clamp, make_frame


def rms(audio_f32: np.ndarray, eps: float = 1e-12) -> float:
    audio_f32 = np.asarray(audio_f32, dtype=np.float32)
    if audio_f32.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(audio_f32 * audio_f32) + eps))


def difference_function(x: np.ndarray, tau_max: int) -> np.ndarray:
    """d(tau) = sum_i (x[i] - x[i+tau])^2 for tau in [0, tau_max)."""
    n = x.size
    diff = np.zeros(tau_max, dtype=np.float64)
    for tau in range(1, tau_max):
        d = x[:n - tau] - x[tau:]
        diff[tau] = float(np.dot(d, d))
    return diff


def cumulative_mean_normalized(diff: np.ndarray) -> np.ndarray:
    """d'(0) = 1, d'(tau) = d(tau) * tau / sum_{j<=tau} d(j)."""
    cmnd = np.ones_like(diff)
    if diff.size < 2:
        return cmnd
    running = np.cumsum(diff[1:])
    taus = np.arange(1, diff.size, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        cmnd[1:] = np.where(running > 0.0, diff[1:] * taus / running, 1.0)
    return cmnd


def parabolic_offset(s0: float, s1: float, s2: float) -> float:
    """Vertex offset of the parabola through (-1, s0), (0, s1), (1, s2)."""
    denom = s0 - 2.0 * s1 + s2
    if denom <= 0.0:
        return 0.0
    return clamp((s0 - s2) / (2.0 * denom), -1.0, 1.0)


class YinDetector:
    name = "YIN (numpy)"

    def __init__(self, threshold: float = 0.1, min_hz: float = 60.0, max_hz: float = 800.0):
        if not 0.0 < threshold < 1.0:
            raise ValueError(f"YIN threshold must be in (0, 1), got {threshold}")
        if not 0.0 < min_hz < max_hz:
            raise ValueError(f"YIN needs 0 < min_hz < max_hz, got {min_hz}..{max_hz}")
        self.threshold = threshold
        self.min_hz = min_hz
        self.max_hz = max_hz

    async def initialize(self, config: Optional[Dict[str, Any]] = None) -> None:
        # nothing to load
        return None

    def reset(self) -> None:
        return None

    def process_frame(self, frame, sample_rate: int) -> PitchFrame:
        x = np.asarray(frame, dtype=np.float64)
        if x.size < 4 or not np.all(np.isfinite(x)):
            return UNVOICED

        tau_min = max(1, int(sample_rate / self.max_hz))
        # Lags beyond half the frame sum too few terms to be meaningful
        tau_max = min(int(sample_rate / self.min_hz), x.size // 2)
        if tau_max <= tau_min + 1:
            return UNVOICED

        cmnd = cumulative_mean_normalized(difference_function(x, tau_max))

        below = np.nonzero(cmnd[tau_min:tau_max] < self.threshold)[0]
        if below.size == 0:
            return UNVOICED
        tau = tau_min + int(below[0])
        while tau + 1 < tau_max and cmnd[tau + 1] < cmnd[tau]:
            tau += 1

        t0 = max(1, tau - 1)
        t2 = min(tau + 1, tau_max - 1)
        offset = 0.0
        if t0 < tau < t2:
            offset = parabolic_offset(float(cmnd[t0]), float(cmnd[tau]), float(cmnd[t2]))
        better_tau = tau + offset

        return make_frame(sample_rate / better_tau, 1.0 - float(cmnd[tau]))
