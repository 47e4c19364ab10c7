from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from itertools import islice
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from .copy_table import COPY
from .environment import EnvironmentState, environment_candidates
from .hints import CoachSnapshot, Hint, HintCandidate, PhraseSummary

logger = logging.getLogger(__name__)

# Real-time resolution order, highest first
BUCKET_ORDER = ("safety", "env", "technique-target", "technique-confidence", "praise")


class Clock(Protocol):
    def now(self) -> float:
        """Milliseconds on a monotonic timeline."""
        ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic() * 1000.0


@dataclass(frozen=True)
class PolicyConfig:
    hop_ms: float = 10.0                # config compatibility only; timing comes from the clock
    rate_limit_ms: float = 1000.0
    anti_repeat_ms: float = 4000.0
    dwell_ms_first_hint: float = 0.0
    dwell_ms_after_first: float = 1000.0
    loudness_threshold: float = 0.80
    loud_window_ms: float = 5000.0
    target_check_after_ms: float = 15000.0
    confidence_min_frames: int = 100
    confidence_threshold: float = 0.30
    jitter_threshold: float = 0.35
    target_ratio_min: float = 0.5

    def __post_init__(self):
        for name in ("hop_ms", "rate_limit_ms", "anti_repeat_ms", "dwell_ms_first_hint",
                     "dwell_ms_after_first", "loud_window_ms", "target_check_after_ms",
                     "jitter_threshold"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.confidence_min_frames < 1:
            raise ValueError(f"confidence_min_frames must be >= 1, got {self.confidence_min_frames}")
        for name in ("loudness_threshold", "confidence_threshold", "target_ratio_min"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {getattr(self, name)}")


@dataclass
class PolicyState:
    step_started_at: Optional[float] = None
    last_hint_at: float = -math.inf
    last_hint_time_by_id: Dict[str, float] = field(default_factory=dict)


class CoachPolicy:
    """
    Deterministic coaching-hint policy.

    `realtime()` is pulled by the caller (typically once per hop) with the rolling
    snapshot history and returns at most one hint:
      - global rate limit, dwell since step start (first hint of a step exempt)
      - buckets: safety > env > technique-target > technique-confidence > praise
      - per-id anti-repeat cooldown
    `post_phrase()` always returns exactly one end-of-phrase hint.
    """
    def __init__(self, cfg: PolicyConfig | None = None, clock: Clock | None = None,
                 copy: Mapping[str, str] | None = None):
        self.cfg = cfg or PolicyConfig()
        self.clock = clock or MonotonicClock()
        self.copy = dict(COPY)
        if copy:
            self.copy.update(copy)
        self._state = PolicyState()

    @property
    def state(self) -> PolicyState:
        s = self._state
        return PolicyState(s.step_started_at, s.last_hint_at, dict(s.last_hint_time_by_id))

    def hint(self, hint_id: str, severity: Optional[str] = None) -> Hint:
        return Hint(id=hint_id, text=self.copy.get(hint_id, hint_id), severity=severity)

    def start_step(self) -> None:
        """Call at the start of every practice step (warm-up, glide, phrase)."""
        self._state.step_started_at = self.clock.now()
        self._state.last_hint_at = -math.inf
        self._state.last_hint_time_by_id.clear()

    def pre(self, step_title: str) -> List[Hint]:
        tips: List[Hint] = []
        lower = step_title.lower()
        if "phrase" in lower:
            tips.append(self.hint("goal-phrase"))
        elif "glide" in lower:
            tips.append(self.hint("goal-glide"))
        elif "warm" in lower:
            tips.append(self.hint("goal-warmup"))
        tips.append(self.hint("setup"))
        return tips

    def realtime(self, history: Sequence[CoachSnapshot],
                 environment: EnvironmentState | None = None) -> Optional[Hint]:
        if self._state.step_started_at is None:
            self.start_step()
        st = self._state
        cfg = self.cfg
        now = self.clock.now()

        # Rate limit + dwell; the first hint of a step only needs dwell_ms_first_hint
        first = st.last_hint_at == -math.inf
        dwell = cfg.dwell_ms_first_hint if first else cfg.dwell_ms_after_first
        if now - st.last_hint_at < cfg.rate_limit_ms or now - st.step_started_at < dwell:
            return None
        if not history:
            return None
        tail = history[-1]
        candidates: List[HintCandidate] = []

        if self._loud_ms(history, now) >= cfg.loud_window_ms:
            candidates.append(HintCandidate("safety", self.hint("tooLoud", "gentle"), now))
            return self._resolve(candidates, now)

        if environment is not None:
            candidates.extend(environment_candidates(environment, now, self.copy))

        if (tail.jitter_ema or 0.0) > cfg.jitter_threshold:
            candidates.append(HintCandidate("technique-target", self.hint("jitter"), now))

        if now - st.step_started_at >= cfg.target_check_after_ms:
            hits = sum(1 for s in history if s.time_in_target_hit is True)
            if hits / max(1, len(history)) < cfg.target_ratio_min:
                candidates.append(HintCandidate("technique-target", self.hint("target"), now))

        if not any(c.bucket == "technique-target" for c in candidates):
            n = cfg.confidence_min_frames
            if len(history) >= n:
                last_n = list(islice(history, len(history) - n, None))
                avg = sum(1.0 if s.confidence is None else s.confidence for s in last_n) / n
                if avg < cfg.confidence_threshold:
                    candidates.append(HintCandidate("technique-confidence", self.hint("confidence"), now))

        return self._resolve(candidates, now)

    def post_phrase(self, summary: PhraseSummary) -> Hint:
        """End-of-phrase one-liner: praise first, then rise, then nudge/retry."""
        tier = summary.dtw_tier
        if tier is not None and tier >= 4:
            return self.hint("praise", "success")
        if summary.end_rise_detected is False:
            return self.hint("rise")
        if tier == 3:
            return self.hint("nudge")
        return self.hint("retry")

    def _loud_ms(self, history: Sequence[CoachSnapshot], now: float) -> float:
        """Time within the trailing loud window spent at or above the loudness threshold."""
        window_start = now - self.cfg.loud_window_ms
        loud = 0.0
        next_t = now
        for s in reversed(history):
            if s.t < window_start:
                break
            if (s.loud_norm or 0.0) >= self.cfg.loudness_threshold:
                loud += max(0.0, next_t - s.t)
            next_t = s.t
        return loud

    def _resolve(self, candidates: List[HintCandidate], now: float) -> Optional[Hint]:
        st = self._state
        for bucket in BUCKET_ORDER:
            cand = next((c for c in candidates if c.bucket == bucket), None)
            if cand is None:
                continue
            last = st.last_hint_time_by_id.get(cand.hint.id, -math.inf)
            if now - last < self.cfg.anti_repeat_ms:
                continue
            st.last_hint_at = now
            st.last_hint_time_by_id[cand.hint.id] = now
            logger.debug("hint %s (%s) at %.0f ms", cand.hint.id, bucket, now)
            return cand.hint
        return None
