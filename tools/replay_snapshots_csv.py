#!/usr/bin/env python3
"""
tools/replay_snapshots_csv.py

Replay coach snapshots from CSV through the coach policy (no audio).
Writes one row per emitted hint.

Inputs:
- CSV columns: t_ms, loud_norm, jitter_ema, in_target, confidence
  (empty cells are treated as missing)

Outputs:
- CSV columns: t_ms, hint_id, text

Usage:
  python tools/replay_snapshots_csv.py --in snaps.csv --out hints.csv
  python tools/replay_snapshots_csv.py --in snaps.csv --out hints.csv --config config/coach.yaml
"""

from __future__ import annotations

import argparse
import csv
import sys
from collections import deque
from typing import Optional

from voicecoach_policy.config import load_coach_config
from voicecoach_policy.hints import CoachSnapshot
from voicecoach_policy.policy import CoachPolicy

OUT_FIELDS = ["t_ms", "hint_id", "text"]


class ReplayClock:
    def __init__(self):
        self.t = 0.0

    def now(self) -> float:
        return self.t


def opt_float(x) -> Optional[float]:
    if x is None or str(x).strip() == "":
        return None
    return float(x)


def opt_bool(x) -> Optional[bool]:
    if x is None or str(x).strip() == "":
        return None
    return str(x).strip().lower() in ("1", "true", "yes")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--in", dest="inp", required=True, help="Input snapshot CSV")
    ap.add_argument("--out", dest="out", required=True, help="Output hints CSV")
    ap.add_argument("--config", default=None, help="Optional coach yaml/json config (same as sim)")
    ap.add_argument("--history", type=int, default=1000, help="Rolling history length (snapshots)")
    args = ap.parse_args()

    cfg = load_coach_config(args.config)
    clock = ReplayClock()
    policy = CoachPolicy(cfg.policy, clock=clock)

    with open(args.inp, "r", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    if not rows:
        print("No rows found.", file=sys.stderr)
        return 2

    clock.t = float(rows[0]["t_ms"])
    policy.start_step()
    history: deque = deque(maxlen=args.history)
    n = 0

    with open(args.out, "w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=OUT_FIELDS)
        w.writeheader()

        for row in rows:
            snap = CoachSnapshot(
                t=float(row["t_ms"]),
                loud_norm=opt_float(row.get("loud_norm")),
                jitter_ema=opt_float(row.get("jitter_ema")),
                time_in_target_hit=opt_bool(row.get("in_target")),
                confidence=opt_float(row.get("confidence")),
            )
            clock.t = snap.t
            history.append(snap)
            hint = policy.realtime(history)
            if hint is not None:
                w.writerow({"t_ms": f"{snap.t:.1f}", "hint_id": hint.id, "text": hint.text})
                n += 1

    print(f"Wrote {n} hints from {len(rows)} snapshots -> {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
