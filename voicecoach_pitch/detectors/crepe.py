"""
CREPE pitch detector (optional, TorchScript).

This is intentionally optional so the repo stays lightweight by default.
If you want to use it:
  pip install torch
and export a CREPE model (tiny is enough for speech) with `torch.jit.save`.

The detector:
- linearly resamples the analysis frame to 16 kHz and centre-crops/pads it
  to 1024 samples
- runs one forward pass
- uses named frequency/confidence outputs when the export provides them,
  otherwise decodes the 360-bin activation (softmax argmax, log-spaced bins)

NOTE: the bin constants (360 bins, 50-2000 Hz) follow the reference export.
Revalidate them against whatever model asset you ship.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Any, Dict, Optional

import numpy as np

from .base import DetectorInitError, PitchFrame, make_frame

logger = logging.getLogger(__name__)

_FREQ_NAME = re.compile(r"freq|pitch", re.IGNORECASE)
_CONF_NAME = re.compile(r"conf|prob|periodicity", re.IGNORECASE)
_BINS_NAME = re.compile(r"logit|bin|activation", re.IGNORECASE)


def linear_resample(x: np.ndarray, sr_in: int, sr_out: int) -> np.ndarray:
    x = np.asarray(x, dtype=np.float32)
    if sr_in == sr_out or x.size == 0:
        return x
    out_len = max(1, int(round(x.size * sr_out / sr_in)))
    t_out = np.arange(out_len, dtype=np.float64) * (sr_in / sr_out)
    return np.interp(t_out, np.arange(x.size, dtype=np.float64), x).astype(np.float32)


def center_fit(x: np.ndarray, length: int) -> np.ndarray:
    """Centre-crop or zero-pad to exactly `length` samples."""
    if x.size == length:
        return x
    if x.size > length:
        start = (x.size - length) // 2
        return x[start:start + length]
    out = np.zeros(length, dtype=np.float32)
    start = (length - x.size) // 2
    out[start:start + x.size] = x
    return out


def decode_bins(bins: np.ndarray, hz_min: float = 50.0, hz_max: float = 2000.0,
                voicing_threshold: float = 0.5) -> tuple[Optional[float], float]:
    """Softmax argmax over log-spaced bins. Returns (hz or None, confidence)."""
    b = np.asarray(bins, dtype=np.float64).ravel()
    if b.size < 2 or not np.all(np.isfinite(b)):
        return None, 0.0
    e = np.exp(b - np.max(b))
    p = e / np.sum(e)
    idx = int(np.argmax(p))
    conf = float(p[idx])
    if conf < voicing_threshold:
        return None, conf
    frac = idx / (b.size - 1)
    return float(hz_min * (hz_max / hz_min) ** frac), conf


class CrepeDetector:
    name = "CREPE (TorchScript)"

    def __init__(self, input_len: int = 1024, model_rate: int = 16000,
                 hz_min: float = 50.0, hz_max: float = 2000.0,
                 voicing_threshold: float = 0.5, device: str = "cpu"):
        self.input_len = input_len
        self.model_rate = model_rate
        self.hz_min = hz_min
        self.hz_max = hz_max
        self.voicing_threshold = voicing_threshold
        self.device = device
        self.torch = None
        self.model = None

    async def initialize(self, config: Optional[Dict[str, Any]] = None) -> None:
        cfg = config or {}
        if self.model is not None:
            return
        try:
            import torch  # type: ignore
        except Exception as e:
            raise DetectorInitError(
                "CrepeDetector requires `torch`.\n"
                "Install with: pip install torch\n"
                f"Import error: {e}"
            ) from e
        self.torch = torch

        if cfg.get("threads"):
            torch.set_num_threads(int(cfg["threads"]))

        model = cfg.get("model")
        if model is None:
            path = cfg.get("model_path")
            if not path or not os.path.exists(path):
                raise DetectorInitError(f"CREPE model asset not found: {path!r}")
            try:
                model = await asyncio.to_thread(torch.jit.load, path, map_location=self.device)
            except Exception as e:
                raise DetectorInitError(f"Failed to load CREPE model from {path}: {e}") from e

        if hasattr(model, "eval"):
            model.eval()
        self.model = model
        logger.info("%s ready (device=%s, input=%d @ %d Hz)",
                    self.name, self.device, self.input_len, self.model_rate)

    def reset(self) -> None:
        # stateless per frame
        return None

    def ensure_model_frame(self, frame, sample_rate: int) -> np.ndarray:
        x = np.asarray(frame, dtype=np.float32)
        if sample_rate == self.model_rate and x.size == self.input_len:
            return x
        return center_fit(linear_resample(x, sample_rate, self.model_rate), self.input_len)

    def _collect_outputs(self, out) -> Dict[str, np.ndarray]:
        def to_np(t) -> np.ndarray:
            if hasattr(t, "detach"):
                t = t.detach().cpu().numpy()
            return np.asarray(t, dtype=np.float64).ravel()

        if isinstance(out, dict):
            return {str(k): to_np(v) for k, v in out.items()}
        if isinstance(out, (tuple, list)):
            return {f"output_{i}": to_np(v) for i, v in enumerate(out)}
        arr = to_np(out)
        return {"frequency" if arr.size == 1 else "activation": arr}

    def process_frame(self, frame, sample_rate: int) -> PitchFrame:
        if self.model is None or self.torch is None:
            raise RuntimeError("CREPE detector not initialized")

        x = self.ensure_model_frame(frame, sample_rate)
        inp = self.torch.from_numpy(np.ascontiguousarray(x)).unsqueeze(0).to(self.device)
        with self.torch.no_grad():
            out = self.model(inp)
        outputs = self._collect_outputs(out)
        if not outputs:
            return make_frame(None, 0.0)

        def pick(pattern: re.Pattern) -> Optional[np.ndarray]:
            for name, arr in outputs.items():
                if pattern.search(name):
                    return arr
            return None

        freq = pick(_FREQ_NAME)
        conf_arr = pick(_CONF_NAME)
        hz = float(freq[0]) if freq is not None and freq.size else None
        conf = float(conf_arr[0]) if conf_arr is not None and conf_arr.size else None

        if hz is None:
            bins = pick(_BINS_NAME)
            if bins is None:
                bins = next(iter(outputs.values()))
            hz, decoded_conf = decode_bins(bins, self.hz_min, self.hz_max, self.voicing_threshold)
            if conf is None:
                conf = decoded_conf

        return make_frame(hz, conf)
