from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from .detectors.base import DetectorInitError, PitchDetector, PitchFrame, clamp
from .detectors.crepe import CrepeDetector
from .detectors.yin import YinDetector, rms
from .smoothing import Kalman1D, MedianFilter, hz_to_semitones

logger = logging.getLogger(__name__)

DETECTORS = ("yin", "crepe")


@dataclass(frozen=True)
class KalmanConfig:
    q_semitones2: float = 0.04
    r_semitones2: float = 0.25
    fast_lock_frames: int = 4

    def __post_init__(self):
        if self.q_semitones2 < 0.0:
            raise ValueError(f"kalman.q_semitones2 must be >= 0, got {self.q_semitones2}")
        if self.r_semitones2 <= 0.0:
            raise ValueError(f"kalman.r_semitones2 must be > 0, got {self.r_semitones2}")
        if self.fast_lock_frames < 0:
            raise ValueError(f"kalman.fast_lock_frames must be >= 0, got {self.fast_lock_frames}")


@dataclass(frozen=True)
class EngineConfig:
    input_sample_rate: int = 48000
    model_sample_rate: int = 16000
    hop_sec: float = 0.010
    frame_sec: float = 0.064
    median_window: int = 5
    kalman: KalmanConfig = field(default_factory=KalmanConfig)
    confidence_gate: float = 0.5
    rms_gate: Optional[float] = None
    detector: str = "yin"
    history_len: int = 1000

    # Loudness normalisation (dBFS -> [0, 1])
    loud_db_silence: float = -60.0
    loud_db_full: float = 0.0

    def __post_init__(self):
        if not isinstance(self.kalman, KalmanConfig):
            raise ValueError(f"kalman must be a KalmanConfig, got {type(self.kalman).__name__}")
        if self.input_sample_rate <= 0 or self.model_sample_rate <= 0:
            raise ValueError("sample rates must be positive")
        if self.hop_sec <= 0.0:
            raise ValueError(f"hop_sec must be > 0, got {self.hop_sec}")
        if int(round(self.input_sample_rate * self.hop_sec)) < 1:
            raise ValueError("hop_sec is shorter than one input sample")
        if self.frame_sec <= 0.0:
            raise ValueError(f"frame_sec must be > 0, got {self.frame_sec}")
        if self.median_window < 1 or self.median_window % 2 == 0:
            raise ValueError(f"median_window must be odd >= 1, got {self.median_window}")
        if not 0.0 <= self.confidence_gate <= 1.0:
            raise ValueError(f"confidence_gate must be in [0, 1], got {self.confidence_gate}")
        if self.rms_gate is not None and self.rms_gate < 0.0:
            raise ValueError(f"rms_gate must be >= 0, got {self.rms_gate}")
        if self.detector not in DETECTORS:
            raise ValueError(f"detector must be one of {DETECTORS}, got {self.detector!r}")
        if self.history_len < 1:
            raise ValueError(f"history_len must be >= 1, got {self.history_len}")
        if self.loud_db_full <= self.loud_db_silence:
            raise ValueError("loud_db_full must be above loud_db_silence")

    @property
    def hop_samples(self) -> int:
        return int(round(self.input_sample_rate * self.hop_sec))

    @property
    def frame_samples(self) -> int:
        return max(self.hop_samples, int(round(self.input_sample_rate * self.frame_sec)))

    @property
    def hop_ms(self) -> float:
        return 1000.0 * self.hop_samples / self.input_sample_rate


@dataclass(frozen=True)
class EngineSnapshot:
    t: float                        # ms of audio time at the end of the hop
    pitch_hz: Optional[float]       # smoothed; None if unvoiced/gated
    semitone_rel: Optional[float]   # relative to baseline_hz
    jitter_ema: float
    baseline_hz: Optional[float]
    rms_ema: float
    loud_norm: float                # [0, 1]
    raw: PitchFrame


class PitchEngine:
    """
    Hop-synchronous pitch pipeline.

    Buffers arbitrary-size sample chunks into fixed hops; per hop it runs the
    detector over the most recent analysis window, gates on confidence, then
    median -> baseline -> Kalman (semitones) -> jitter EMA, and records one
    EngineSnapshot.
    """
    JITTER_ALPHA = 0.1
    BASELINE_ALPHA = 0.005
    RMS_ALPHA = 0.05

    def __init__(self, detector: PitchDetector, cfg: EngineConfig | None = None):
        self.cfg = cfg or EngineConfig()
        self.detector = detector
        self.fallback_active = False

        self.median = MedianFilter(self.cfg.median_window)
        # Baseline is unknown until the first confident voiced hop
        self.kalman = Kalman1D(
            q_semitones2=self.cfg.kalman.q_semitones2,
            r_semitones2=self.cfg.kalman.r_semitones2,
            fast_lock_frames=self.cfg.kalman.fast_lock_frames,
        )

        self.hop_samples = self.cfg.hop_samples
        self.hop_buf = np.zeros(self.hop_samples, dtype=np.float32)
        self.hop_fill = 0
        self.window = np.zeros(self.cfg.frame_samples, dtype=np.float32)
        self.window_fill = 0

        self.history: deque = deque(maxlen=self.cfg.history_len)
        self.hops = 0
        self.rms_ema = 0.0
        self.jitter_ema = 0.0
        self.baseline_hz: Optional[float] = None
        self.last_semi: Optional[float] = None

        logger.info("PitchEngine: detector=%s, hop=%d samples, window=%d samples @ %d Hz",
                    getattr(detector, "name", type(detector).__name__),
                    self.hop_samples, self.window.size, self.cfg.input_sample_rate)

    async def initialize(self, detector_config: Optional[Dict[str, Any]] = None) -> None:
        await self.detector.initialize(detector_config)

    def reset(self) -> None:
        self.median.reset()
        self.kalman.reset()
        self.hop_fill = 0
        self.window_fill = 0
        self.history.clear()
        self.hops = 0
        self.rms_ema = 0.0
        self.jitter_ema = 0.0
        self.baseline_hz = None
        self.last_semi = None
        self.detector.reset()
        logger.debug("PitchEngine reset")

    def push_samples(self, chunk) -> Optional[EngineSnapshot]:
        """
        Push raw mono PCM at input_sample_rate (any chunk size).
        Returns the snapshot of the most recent completed hop, or None if no hop
        completed during this call.
        """
        x = np.asarray(chunk, dtype=np.float32).ravel()
        out: Optional[EngineSnapshot] = None
        i = 0
        while i < x.size:
            take = min(self.hop_samples - self.hop_fill, x.size - i)
            self.hop_buf[self.hop_fill:self.hop_fill + take] = x[i:i + take]
            self.hop_fill += take
            i += take
            if self.hop_fill == self.hop_samples:
                out = self._process_hop(self.hop_buf)
                self.hop_fill = 0
        return out

    def _shift_window(self, hop: np.ndarray) -> np.ndarray:
        h = hop.size
        if h >= self.window.size:
            self.window[:] = hop[-self.window.size:]
        else:
            self.window[:-h] = self.window[h:]
            self.window[-h:] = hop
        self.window_fill = min(self.window.size, self.window_fill + h)
        return self.window[self.window.size - self.window_fill:]

    def loud_norm(self, rms_value: float) -> float:
        db = 20.0 * math.log10(max(rms_value, 1e-12))
        lo, hi = self.cfg.loud_db_silence, self.cfg.loud_db_full
        return clamp((db - lo) / (hi - lo), 0.0, 1.0)

    def _process_hop(self, hop: np.ndarray) -> EngineSnapshot:
        # non-finite samples count as silence
        hop = np.nan_to_num(hop, nan=0.0, posinf=0.0, neginf=0.0)
        hop_rms = rms(hop)
        self.rms_ema = (1.0 - self.RMS_ALPHA) * self.rms_ema + self.RMS_ALPHA * hop_rms

        frame = self._shift_window(hop)
        raw = self.detector.process_frame(frame, self.cfg.input_sample_rate)

        gated = raw.confidence >= self.cfg.confidence_gate
        if self.cfg.rms_gate is not None and hop_rms < self.cfg.rms_gate:
            gated = False
        med_hz = self.median.update(raw.pitch_hz if gated else None)

        if med_hz is not None:
            if self.baseline_hz is None:
                self.baseline_hz = med_hz
            # Slow drift: robust to brief excursions, follows sustained register shifts
            self.baseline_hz = (1.0 - self.BASELINE_ALPHA) * self.baseline_hz + self.BASELINE_ALPHA * med_hz
            self.kalman.set_baseline_hz(self.baseline_hz)

        smooth_hz = self.kalman.update(med_hz, med_hz is not None)

        semi: Optional[float] = None
        if smooth_hz is not None and self.baseline_hz is not None:
            semi = hz_to_semitones(smooth_hz, self.baseline_hz)
            if self.last_semi is not None:
                delta = abs(semi - self.last_semi)
                self.jitter_ema = (1.0 - self.JITTER_ALPHA) * self.jitter_ema + self.JITTER_ALPHA * delta
        self.last_semi = semi

        self.hops += 1
        snap = EngineSnapshot(
            t=self.hops * self.cfg.hop_ms,
            pitch_hz=smooth_hz,
            semitone_rel=semi,
            jitter_ema=self.jitter_ema,
            baseline_hz=self.baseline_hz,
            rms_ema=self.rms_ema,
            loud_norm=self.loud_norm(self.rms_ema),
            raw=raw,
        )
        self.history.append(snap)
        return snap


def build_detector(cfg: EngineConfig) -> PitchDetector:
    if cfg.detector == "crepe":
        return CrepeDetector(model_rate=cfg.model_sample_rate)
    return YinDetector()


async def create_engine(cfg: EngineConfig | None = None,
                        detector_config: Optional[Dict[str, Any]] = None) -> PitchEngine:
    """
    Build and initialise an engine with the detector named in `cfg.detector`.
    A model detector that fails to initialise is replaced by YIN.
    """
    cfg = cfg or EngineConfig()
    detector = build_detector(cfg)
    fallback = False
    try:
        await detector.initialize(detector_config)
    except DetectorInitError as e:
        logger.warning("%s unavailable (%s); falling back to YIN",
                       getattr(detector, "name", cfg.detector), e)
        detector = YinDetector()
        await detector.initialize(None)
        fallback = True

    engine = PitchEngine(detector, cfg)
    engine.fallback_active = fallback
    return engine
