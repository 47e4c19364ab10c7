import json
import logging
from pathlib import Path

import pytest

from voicecoach_policy.config import CoachConfig, config_from_dict, load_coach_config, snake_case

REPO_CONFIG = Path(__file__).resolve().parents[1] / "config" / "coach.yaml"


def test_no_path_gives_defaults():
    cfg = load_coach_config(None)
    assert cfg == CoachConfig()
    assert cfg.engine.hop_samples == 480
    assert cfg.policy.rate_limit_ms == 1000
    assert cfg.prosody.min_samples == 6


def test_shipped_yaml_loads():
    cfg = load_coach_config(str(REPO_CONFIG))
    assert cfg.engine.detector == "yin"
    assert cfg.engine.kalman.fast_lock_frames == 4
    assert cfg.policy.anti_repeat_ms == 4000
    assert cfg.prosody.ema_alpha == 0.25
    assert cfg.prosody.min_samples == 8


def test_yaml_ros_layout_and_camel_case(tmp_path):
    p = tmp_path / "coach.yml"
    p.write_text(
        "pitch_engine:\n"
        "  ros__parameters:\n"
        "    inputSampleRate: 44100\n"
        "    medianWindow: 7\n"
        "    kalman:\n"
        "      qSemitones2: 0.1\n"
        "coach_policy:\n"
        "  ros__parameters:\n"
        "    rateLimitMs: 1500\n",
        encoding="utf-8",
    )
    cfg = load_coach_config(str(p))
    assert cfg.engine.input_sample_rate == 44100
    assert cfg.engine.median_window == 7
    assert cfg.engine.kalman.q_semitones2 == 0.1
    assert cfg.engine.kalman.r_semitones2 == 0.25
    assert cfg.policy.rate_limit_ms == 1500


def test_json(tmp_path):
    p = tmp_path / "coach.json"
    p.write_text(json.dumps({
        "coach_policy": {"loudWindowMs": 3000},
        "prosody": {"riseCentsPerSec": 300},
    }), encoding="utf-8")
    cfg = load_coach_config(str(p))
    assert cfg.policy.loud_window_ms == 3000
    assert cfg.prosody.rise_cents_per_sec == 300
    assert cfg.engine == CoachConfig().engine


def test_empty_yaml_is_defaults(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("", encoding="utf-8")
    assert load_coach_config(str(p)) == CoachConfig()


def test_unknown_extension(tmp_path):
    p = tmp_path / "coach.toml"
    p.write_text("x = 1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_coach_config(str(p))


def test_invalid_values_raise():
    with pytest.raises(ValueError):
        config_from_dict({"pitch_engine": {"median_window": 4}})
    with pytest.raises(ValueError):
        config_from_dict({"pitch_engine": {"kalman": [1, 2]}})
    with pytest.raises(ValueError):
        config_from_dict({"coach_policy": "fast"})
    with pytest.raises(ValueError):
        config_from_dict(["not", "a", "mapping"])


def test_unknown_keys_are_ignored_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="voicecoach_policy.config"):
        cfg = config_from_dict({"coach_policy": {"rate_limit_ms": 500, "volume": 11}})
    assert cfg.policy.rate_limit_ms == 500
    assert "volume" in caplog.text


def test_policy_hop_ms_is_a_known_key(caplog):
    with caplog.at_level(logging.WARNING, logger="voicecoach_policy.config"):
        cfg = config_from_dict({"coach_policy": {"hopMs": 20}})
    assert cfg.policy.hop_ms == 20
    assert caplog.text == ""


def test_kalman_section_becomes_kalman_config():
    cfg = config_from_dict({"pitch_engine": {"kalman": {"fastLockFrames": 2}}})
    assert cfg.engine.kalman.fast_lock_frames == 2


def test_snake_case():
    assert snake_case("inputSampleRate") == "input_sample_rate"
    assert snake_case("qSemitones2") == "q_semitones2"
    assert snake_case("hop_sec") == "hop_sec"
