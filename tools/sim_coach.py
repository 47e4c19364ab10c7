#!/usr/bin/env python3
"""
tools/sim_coach.py

Pure-Python simulator for "voice -> pitch engine -> coach hints".
Synthesises a sung/spoken contour, pushes it through the pitch engine in
small audio-callback sized chunks, and pulls the coach policy once per hop on
a clock tied to audio time:
  - confidence gating + median/Kalman smoothing
  - jitter / loudness / target-band hints with rate limit and anti-repeat
  - phrase-end prosody classification -> post-phrase hint

Usage:
  python tools/sim_coach.py --scenario glide
  python tools/sim_coach.py --scenario loud --config config/coach.yaml
  python tools/sim_coach.py --scenario phrase --chunk 128
  python tools/sim_coach.py --scenario smoke
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
from collections import deque
from typing import List, Optional, Tuple

import numpy as np

from voicecoach_pitch.engine import create_engine
from voicecoach_pitch.prosody import classify_prosody, frames_from_snapshots
from voicecoach_policy.config import load_coach_config
from voicecoach_policy.environment import EnvironmentState
from voicecoach_policy.hints import CoachSnapshot, PhraseSummary
from voicecoach_policy.policy import CoachPolicy

# (duration_s, start_hz, end_hz, amplitude, wobble_semitones); start_hz None = silence
Segment = Tuple[float, Optional[float], Optional[float], float, float]


class AudioClock:
    """Policy clock that follows the engine's audio time (ms)."""
    def __init__(self):
        self.t = 0.0

    def now(self) -> float:
        return self.t


def synth(segments: List[Segment], sr: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    out = []
    phase = 0.0
    for dur, f_start, f_end, amp, wobble in segments:
        n = int(dur * sr)
        if f_start is None:
            out.append(0.001 * rng.standard_normal(n).astype(np.float32))
            continue
        t = np.arange(n) / sr
        semis = 12.0 * np.log2(f_end / f_start) * (t / max(dur, 1e-9))
        if wobble > 0.0:
            # 9 Hz pitch wobble reads as unsteady glide
            semis = semis + wobble * np.sin(2 * np.pi * 9.0 * t)
        f = f_start * 2.0 ** (semis / 12.0)
        ph = phase + 2 * np.pi * np.cumsum(f) / sr
        phase = float(ph[-1]) if n else phase
        out.append((amp * np.sin(ph)).astype(np.float32))
    return np.concatenate(out) if out else np.zeros(0, dtype=np.float32)


def scenario(name: str) -> Tuple[List[Segment], Optional[int]]:
    """Returns (segments, dtw tier for the phrase end or None)."""
    if name == "glide":
        return [
            (0.3, None, None, 0.0, 0.0),
            (2.0, 180.0, 260.0, 0.3, 0.0),     # smooth glide
            (3.0, 260.0, 180.0, 0.3, 1.5),     # wobbly glide
        ], None
    if name == "loud":
        return [
            (0.2, None, None, 0.0, 0.0),
            (6.5, 220.0, 220.0, 0.95, 0.0),
        ], None
    if name == "phrase":
        return [
            (0.2, None, None, 0.0, 0.0),
            (0.8, 200.0, 190.0, 0.3, 0.0),
            (0.4, 190.0, 240.0, 0.3, 0.0),     # end rise
        ], random.choice([2, 3, 4])
    # smoke
    return [(0.1, None, None, 0.0, 0.0), (0.6, 200.0, 210.0, 0.3, 0.0)], 3


def print_row(t_ms: float, pitch: Optional[float], jitter: float, loud: float, hint_id: str, text: str) -> None:
    p = f"{pitch:7.1f}" if pitch is not None else "   None"
    print(f"{t_ms:8.0f} | f0={p} jit={jitter:.3f} loud={loud:.2f} -> {hint_id:18s} {text}")


async def run(args) -> int:
    cfg = load_coach_config(args.config)
    engine = await create_engine(cfg.engine)
    clock = AudioClock()
    policy = CoachPolicy(cfg.policy, clock=clock)
    policy.start_step()

    segments, tier = scenario(args.scenario)
    audio = synth(segments, cfg.engine.input_sample_rate, seed=args.seed)
    env = EnvironmentState(fallback_detector_active=engine.fallback_active)
    history: deque = deque(maxlen=cfg.engine.history_len)

    print("t_ms     | engine output                       -> hint")
    print("-" * 100)

    n_hints = 0
    seen = 0
    for i in range(0, audio.size, args.chunk):
        engine.push_samples(audio[i:i + args.chunk])
        # every completed hop gets its own policy pull
        new = engine.hops - seen
        seen = engine.hops
        for snap in list(engine.history)[-new:] if new else []:
            clock.t = snap.t
            history.append(CoachSnapshot.from_engine(snap, in_target=snap.pitch_hz is not None))
            hint = policy.realtime(history, env)
            if hint is not None:
                n_hints += 1
                print_row(snap.t, snap.pitch_hz, snap.jitter_ema, snap.loud_norm, hint.id, hint.text)

    if tier is not None:
        res = classify_prosody(frames_from_snapshots(engine.history), cfg.prosody)
        summary = PhraseSummary.from_prosody(res, dtw_tier=tier)
        hint = policy.post_phrase(summary)
        print("-" * 100)
        print(f"phrase end: label={res.label} slope={res.slope_cents_per_sec:+.0f} c/s "
              f"voiced={res.voiced_ms:.0f} ms tier={tier} -> {hint.id}: {hint.text}")

    print(f"{engine.hops} hops, {n_hints} realtime hints")
    return 0


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--scenario", choices=["glide", "loud", "phrase", "smoke"], default="glide")
    ap.add_argument("--chunk", type=int, default=128, help="Samples per simulated audio callback")
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--config", type=str, default=None, help="Optional path to coach.yaml or coach.json")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    random.seed(args.seed)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
