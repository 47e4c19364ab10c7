from __future__ import annotations

import math
from collections import deque
from typing import Optional


def hz_to_semitones(hz: float, baseline_hz: float) -> float:
    return 12.0 * math.log2(hz / baseline_hz)


def semitones_to_hz(semi: float, baseline_hz: float) -> float:
    return baseline_hz * 2.0 ** (semi / 12.0)


class MedianFilter:
    """
    Rolling median over the last `window` raw pitches, unvoiced (None) included.
    Returns the median of the voiced subset, or None if nothing in the window is voiced.
    """
    def __init__(self, window: int):
        if window < 1 or window % 2 == 0:
            raise ValueError(f"MedianFilter window must be odd >= 1, got {window}")
        self.window = window
        self.buf: deque = deque(maxlen=window)

    def reset(self) -> None:
        self.buf.clear()

    def update(self, pitch_hz: Optional[float]) -> Optional[float]:
        self.buf.append(pitch_hz)
        vals = sorted(v for v in self.buf if v is not None)
        if not vals:
            return None
        return vals[(len(vals) - 1) // 2]


class Kalman1D:
    """
    1-D Kalman filter on semitones relative to a (slowly drifting) baseline.
    State: x (semitones, None until primed), P (variance).

    Unvoiced input only zeroes `frames_since_voiced`; x and P carry over to the
    next voiced run, which then gets the fast-lock gain boost again.
    """
    FAST_LOCK_GAIN = 1.6

    def __init__(self, q_semitones2: float, r_semitones2: float,
                 fast_lock_frames: int, baseline_hz: float = 160.0):
        if q_semitones2 < 0.0:
            raise ValueError(f"process variance must be >= 0, got {q_semitones2}")
        if r_semitones2 <= 0.0:
            raise ValueError(f"measurement variance must be > 0, got {r_semitones2}")
        if fast_lock_frames < 0:
            raise ValueError(f"fast_lock_frames must be >= 0, got {fast_lock_frames}")
        if baseline_hz <= 0.0:
            raise ValueError(f"baseline must be > 0 Hz, got {baseline_hz}")
        self.q = q_semitones2
        self.r = r_semitones2
        self.fast_lock_frames = fast_lock_frames
        self.baseline_hz = baseline_hz

        self.x: Optional[float] = None
        self.P = 0.0
        self.frames_since_voiced = 0

    def reset(self) -> None:
        self.x = None
        self.P = 0.0
        self.frames_since_voiced = 0

    def set_baseline_hz(self, hz: float) -> None:
        self.baseline_hz = hz

    def update(self, pitch_hz: Optional[float], is_voiced: bool) -> Optional[float]:
        if not is_voiced or pitch_hz is None or not math.isfinite(pitch_hz) or pitch_hz <= 0.0:
            self.frames_since_voiced = 0
            return None

        z = hz_to_semitones(pitch_hz, self.baseline_hz)

        if self.x is None:
            self.x = z
            self.P = self.r
            self.frames_since_voiced = 1
            return semitones_to_hz(self.x, self.baseline_hz)

        x_pred = self.x
        p_pred = self.P + self.q

        k = p_pred / (p_pred + self.r)
        if self.frames_since_voiced < self.fast_lock_frames:
            k = min(1.0, k * self.FAST_LOCK_GAIN)

        self.x = x_pred + k * (z - x_pred)
        self.P = max(0.0, (1.0 - k) * p_pred)
        self.frames_since_voiced += 1

        return semitones_to_hz(self.x, self.baseline_hz)
