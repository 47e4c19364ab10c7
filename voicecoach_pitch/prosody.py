"""
Phrase-end intonation classifier.

Pure math on (t, f0) pairs, no audio I/O:
- keep the trailing `window_ms` of frames, voiced only
- express f0 in cents relative to the window's median pitch
- least-squares slope in cents/second, preferring the last ~400 ms so the
  label reflects how the phrase *ends* (question vs. statement)
- rising / falling / flat against fixed thresholds

Timestamps are milliseconds, like the engine snapshots.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

RISING = "rising"
FALLING = "falling"
FLAT = "flat"


@dataclass(frozen=True)
class ProsodyFrame:
    t: float                 # ms since stream start
    f0_hz: Optional[float]   # None for unvoiced


@dataclass(frozen=True)
class ProsodyOptions:
    window_ms: float = 1200.0
    min_voiced_ms: float = 300.0
    rise_cents_per_sec: float = 250.0
    fall_cents_per_sec: float = -250.0
    ema_alpha: float = 0.0          # 0 disables smoothing
    min_samples: int = 6

    def __post_init__(self):
        if self.window_ms <= 0.0:
            raise ValueError(f"window_ms must be > 0, got {self.window_ms}")
        if self.min_voiced_ms < 0.0:
            raise ValueError(f"min_voiced_ms must be >= 0, got {self.min_voiced_ms}")
        if self.fall_cents_per_sec > self.rise_cents_per_sec:
            raise ValueError("fall_cents_per_sec must not exceed rise_cents_per_sec")
        if not 0.0 <= self.ema_alpha <= 1.0:
            raise ValueError(f"ema_alpha must be in [0, 1], got {self.ema_alpha}")


@dataclass(frozen=True)
class ProsodyResult:
    label: str
    slope_cents_per_sec: float
    voiced_ms: float
    sample_count: int
    insufficient_voiced: bool
    ref_hz: float


def _is_voiced(f0: Optional[float]) -> bool:
    return f0 is not None and math.isfinite(f0) and f0 > 0.0


def hz_to_cents_relative(f0_hz: float, ref_hz: float) -> float:
    if not (math.isfinite(f0_hz) and math.isfinite(ref_hz)) or f0_hz <= 0.0 or ref_hz <= 0.0:
        return 0.0
    return 1200.0 * math.log2(f0_hz / ref_hz)


def median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    a = sorted(values)
    mid = len(a) // 2
    return a[mid] if len(a) % 2 else 0.5 * (a[mid - 1] + a[mid])


def ema(values: Sequence[float], alpha: float) -> List[float]:
    out: List[float] = []
    for v in values:
        out.append(v if not out else alpha * v + (1.0 - alpha) * out[-1])
    return out


def slope_per_second(times_ms: Sequence[float], y: Sequence[float]) -> float:
    """Least-squares slope of y over time in seconds (units/sec)."""
    n = min(len(times_ms), len(y))
    if n < 2:
        return 0.0
    t0 = times_ms[0] / 1000.0
    t = [times_ms[i] / 1000.0 - t0 for i in range(n)]
    mean_t = sum(t) / n
    mean_y = sum(y[:n]) / n
    num = sum((t[i] - mean_t) * (y[i] - mean_y) for i in range(n))
    den = sum((t[i] - mean_t) ** 2 for i in range(n))
    return 0.0 if den == 0.0 else num / den


def window_voiced(frames: Sequence[ProsodyFrame], window_ms: float) -> List[ProsodyFrame]:
    """Voiced frames within `window_ms` of the last frame (voiced or not)."""
    if not frames:
        return []
    t_start = frames[-1].t - window_ms
    return [f for f in frames if f.t >= t_start and _is_voiced(f.f0_hz)]


def voiced_duration_ms(frames: Sequence[ProsodyFrame]) -> float:
    total = 0.0
    for prev, cur in zip(frames, frames[1:]):
        dt = cur.t - prev.t
        if dt > 0:
            total += dt
    return total


def frames_from_snapshots(snapshots: Iterable) -> List[ProsodyFrame]:
    """Adapt engine snapshots (anything with `t` and `pitch_hz`) to prosody frames."""
    return [ProsodyFrame(t=s.t, f0_hz=s.pitch_hz) for s in snapshots]


def classify_prosody(frames: Sequence[ProsodyFrame],
                     opts: ProsodyOptions | None = None) -> ProsodyResult:
    opts = opts or ProsodyOptions()

    win = window_voiced(frames, opts.window_ms)
    v_ms = voiced_duration_ms(win)
    insufficient = v_ms < opts.min_voiced_ms

    if len(win) < max(2, opts.min_samples):
        return ProsodyResult(FLAT, 0.0, v_ms, len(win), True, 0.0)

    f0s = [f.f0_hz for f in win]
    ref = median(f0s) or 1.0
    if 0.0 < opts.ema_alpha <= 1.0:
        f0s = ema(f0s, opts.ema_alpha)

    cents = [hz_to_cents_relative(hz, ref) for hz in f0s]
    times = [f.t for f in win]

    trailing_ms = min(400.0, opts.window_ms * 0.4)
    cutoff = times[-1] - trailing_ms
    tail = [i for i, t in enumerate(times) if t >= cutoff]
    if len(tail) >= 3:
        slope = slope_per_second([times[i] for i in tail], [cents[i] for i in tail])
    else:
        slope = slope_per_second(times, cents)

    label = FLAT
    if not insufficient:
        if slope >= opts.rise_cents_per_sec:
            label = RISING
        elif slope <= opts.fall_cents_per_sec:
            label = FALLING

    return ProsodyResult(label, slope, v_ms, len(win), insufficient, ref)
