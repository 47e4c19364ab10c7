#!/usr/bin/env python3
"""
tools/eval_hints.py

Compute quantitative metrics from a hints CSV, e.g. produced by
tools/replay_snapshots_csv.py:

Metrics:
- hint count and cadence (hints per second over the covered span)
- per-id counts
- minimum gap between any two hints (rate limit check)
- minimum gap between repeats of the same id (anti-repeat check)

Optional plotting:
- If matplotlib is installed, save:
    --plot out.png

Usage:
  python tools/replay_snapshots_csv.py --in snaps.csv --out hints.csv
  python tools/eval_hints.py --hints hints.csv
  python tools/eval_hints.py --hints hints.csv --span-ms 10000 --plot report.png
"""

from __future__ import annotations

import argparse
import csv
import sys
from collections import Counter, defaultdict
from typing import Dict, List, Optional


def read_csv(path: str) -> List[dict]:
    with open(path, "r", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def min_gap(stamps: List[float]) -> Optional[float]:
    if len(stamps) < 2:
        return None
    return min(b - a for a, b in zip(stamps, stamps[1:]))


def min_repeat_gaps(stamps: List[float], ids: List[str]) -> Dict[str, float]:
    by_id: Dict[str, List[float]] = defaultdict(list)
    for t, i in zip(stamps, ids):
        by_id[i].append(t)
    out = {}
    for i, ts in sorted(by_id.items()):
        g = min_gap(ts)
        if g is not None:
            out[i] = g
    return out


def maybe_plot(stamps: List[float], ids: List[str], out_png: str) -> None:
    try:
        import matplotlib.pyplot as plt  # type: ignore
    except Exception:
        print("matplotlib not installed; skipping plot. Install with: pip install matplotlib")
        return

    uniq = sorted(set(ids))
    id_to_i = {h: i for i, h in enumerate(uniq)}

    plt.figure()
    plt.scatter([t / 1000.0 for t in stamps], [id_to_i[h] for h in ids], marker="|", s=200)
    plt.yticks(list(range(len(uniq))), uniq)
    plt.xlabel("time (s)")
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    print(f"Wrote plot -> {out_png}")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--hints", required=True, help="Hints CSV (t_ms, hint_id, text)")
    ap.add_argument("--span-ms", type=float, default=None,
                    help="Session length for cadence; defaults to first..last hint")
    ap.add_argument("--plot", default=None, help="Optional output PNG path")
    args = ap.parse_args()

    rows = read_csv(args.hints)
    if not rows:
        print("Missing rows in input.", file=sys.stderr)
        return 2

    stamps = [float(r["t_ms"]) for r in rows]
    ids = [r["hint_id"] for r in rows]

    span_ms = args.span_ms if args.span_ms else max(1.0, stamps[-1] - stamps[0])
    gap = min_gap(stamps)

    print("=== Hint Evaluation ===")
    print(f"hints: {len(ids)}")
    print(f"cadence: {1000.0 * len(ids) / span_ms:.3f} hints/sec")
    print("count_by_id:")
    for k, v in sorted(Counter(ids).items()):
        print(f"  - {k}: {v}")
    print("min_gap: " + ("(single hint)" if gap is None else f"{gap:.0f} ms"))
    print("min_repeat_gap:")
    for k, v in min_repeat_gaps(stamps, ids).items():
        print(f"  - {k}: {v:.0f} ms")

    if args.plot:
        maybe_plot(stamps, ids, args.plot)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
