import pytest

from voicecoach_pitch.prosody import FLAT, RISING, ProsodyResult
from voicecoach_policy.environment import EnvironmentState
from voicecoach_policy.hints import CoachSnapshot, PhraseSummary
from voicecoach_policy.policy import CoachPolicy, PolicyConfig


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def now(self):
        return self.t

    def advance(self, ms):
        self.t += ms


def make_policy(**overrides):
    clock = FakeClock()
    policy = CoachPolicy(PolicyConfig(**overrides), clock=clock)
    policy.start_step()
    return policy, clock


def push(history, clock, n, **fields):
    snap = dict(loud_norm=0.5, jitter_ema=0.5, time_in_target_hit=True, confidence=0.8)
    snap.update(fields)
    for _ in range(n):
        history.append(CoachSnapshot(t=clock.now(), **snap))
        clock.advance(10)
    return history


def test_first_hint_is_immediate():
    policy, clock = make_policy()
    hint = policy.realtime([CoachSnapshot(t=0.0, jitter_ema=0.5, loud_norm=0.5,
                                          time_in_target_hit=True, confidence=0.8)])
    assert hint is not None and hint.id == "jitter"


def test_rate_limit_then_anti_repeat():
    policy, clock = make_policy()
    history = push([], clock, 10)
    assert policy.realtime(history).id == "jitter"

    push(history, clock, 90)
    assert policy.realtime(history) is None

    # 4000 ms after the first jitter hint
    clock.advance(3000)
    push(history, clock, 10)
    assert policy.realtime(history).id == "jitter"


def test_same_id_held_back_inside_anti_repeat():
    policy, clock = make_policy()
    history = push([], clock, 10)
    assert policy.realtime(history).id == "jitter"

    clock.advance(1000)
    push(history, clock, 10)
    # rate limit has passed, jitter is still cooling down
    assert policy.realtime(history) is None

    clock.advance(3000)
    push(history, clock, 10)
    assert policy.realtime(history).id == "jitter"


def test_at_most_one_hint_per_second():
    policy, clock = make_policy()
    history = []
    emitted = []
    env = EnvironmentState(device_changed=True, enhancements_on=True)
    for _ in range(1000):
        push(history, clock, 1, jitter_ema=0.9, confidence=0.1)
        hint = policy.realtime(history, env)
        if hint is not None:
            emitted.append(clock.now())
    assert len(emitted) >= 2
    assert all(b - a >= 1000 for a, b in zip(emitted, emitted[1:]))


def test_safety_outranks_technique():
    policy, clock = make_policy()
    history = push([], clock, 500, loud_norm=0.9)
    hint = policy.realtime(history, EnvironmentState(device_changed=True))
    assert hint.id == "tooLoud"
    assert "lighter" in hint.text
    assert hint.severity == "gentle"


def test_brief_loudness_is_not_a_safety_issue():
    policy, clock = make_policy()
    history = push([], clock, 200, loud_norm=0.9, jitter_ema=0.2)
    assert policy.realtime(history) is None


def test_target_miss_beats_low_confidence():
    policy, clock = make_policy()
    history = push([], clock, 1600, time_in_target_hit=False, confidence=0.2, jitter_ema=0.2)
    hint = policy.realtime(history)
    assert hint.id == "target"
    assert "sweep" in hint.text


def test_target_not_checked_before_check_time():
    policy, clock = make_policy()
    history = push([], clock, 1400, time_in_target_hit=False, jitter_ema=0.2)
    assert policy.realtime(history) is None


def test_low_confidence_hint():
    policy, clock = make_policy()
    history = push([], clock, 150, confidence=0.2, jitter_ema=0.1)
    assert policy.realtime(history).id == "confidence"


def test_confidence_needs_enough_frames():
    policy, clock = make_policy()
    history = push([], clock, 99, confidence=0.0, jitter_ema=0.1)
    assert policy.realtime(history) is None


def test_missing_confidence_counts_as_confident():
    policy, clock = make_policy()
    history = push([], clock, 150, confidence=None, jitter_ema=0.1)
    assert policy.realtime(history) is None


def test_environment_outranks_technique():
    policy, clock = make_policy()
    history = push([], clock, 10)
    hint = policy.realtime(history, EnvironmentState(fallback_detector_active=True))
    assert hint.id == "isolation-dropped"
    assert hint.severity == "warning"
    assert hint.aria == hint.text


def test_only_first_candidate_of_a_bucket_is_considered():
    policy, clock = make_policy()
    env = EnvironmentState(fallback_detector_active=True, device_changed=True)
    history = push([], clock, 10)
    assert policy.realtime(history, env).id == "isolation-dropped"

    clock.advance(1000)
    push(history, clock, 10)
    # isolation-dropped is cooling down; device-changed is never reached
    assert policy.realtime(history, env).id == "jitter"


def test_dwell_before_first_hint():
    policy, clock = make_policy(dwell_ms_first_hint=500)
    history = push([], clock, 10)
    assert policy.realtime(history) is None
    push(history, clock, 40)
    assert policy.realtime(history).id == "jitter"


def test_dwell_after_first_hint():
    policy, clock = make_policy(rate_limit_ms=100)
    env = EnvironmentState(device_changed=True)
    history = push([], clock, 1)
    assert policy.realtime(history).id == "jitter"
    push(history, clock, 20)
    assert policy.realtime(history, env) is None
    push(history, clock, 80)
    assert policy.realtime(history, env).id == "device-changed"


def test_start_step_clears_cooldowns():
    policy, clock = make_policy()
    history = push([], clock, 10)
    assert policy.realtime(history).id == "jitter"
    clock.advance(10)
    policy.start_step()
    state = policy.state
    assert state.last_hint_time_by_id == {}
    assert state.step_started_at == clock.now()
    assert policy.realtime(history).id == "jitter"


def test_realtime_starts_step_when_not_started():
    clock = FakeClock()
    clock.advance(250)
    policy = CoachPolicy(clock=clock)
    history = push([], clock, 5)
    assert policy.realtime(history).id == "jitter"
    assert policy.state.step_started_at == clock.now() == 300


def test_state_is_a_copy():
    policy, clock = make_policy()
    policy.state.last_hint_time_by_id["jitter"] = 0.0
    assert policy.state.last_hint_time_by_id == {}


def test_empty_and_unvoiced_history():
    policy, clock = make_policy()
    assert policy.realtime([]) is None
    snap = CoachSnapshot(t=0.0, loud_norm=0.1, jitter_ema=None, time_in_target_hit=False, confidence=0.1)
    assert policy.realtime([snap]) is None


@pytest.mark.parametrize("tier, end_rise, hint_id, words", [
    (5, False, "praise", "Lovely"),
    (4, False, "praise", "Lovely"),
    (2, False, "rise", "float up"),
    (3, True, "nudge", "shape"),
    (1, True, "retry", "Good effort"),
    (None, None, "retry", "Good effort"),
])
def test_post_phrase(tier, end_rise, hint_id, words):
    policy, _ = make_policy()
    hint = policy.post_phrase(PhraseSummary(dtw_tier=tier, end_rise_detected=end_rise))
    assert hint.id == hint_id
    assert words in hint.text


def test_post_phrase_ignores_rate_limit():
    policy, clock = make_policy()
    policy.realtime(push([], clock, 1))
    assert policy.post_phrase(PhraseSummary(dtw_tier=5)).id == "praise"
    assert policy.post_phrase(PhraseSummary(dtw_tier=5)).id == "praise"


def test_phrase_summary_from_prosody():
    rising = ProsodyResult(RISING, 400.0, 500.0, 30, False, 200.0)
    flat = ProsodyResult(FLAT, 10.0, 500.0, 30, False, 200.0)
    policy, _ = make_policy()
    assert policy.post_phrase(PhraseSummary.from_prosody(rising, dtw_tier=3)).id == "nudge"
    assert policy.post_phrase(PhraseSummary.from_prosody(flat, dtw_tier=3)).id == "rise"


def test_pre_briefs():
    policy, _ = make_policy()
    assert [h.id for h in policy.pre("SOVT Warm-Up")] == ["goal-warmup", "setup"]
    assert [h.id for h in policy.pre("Glide Practice")] == ["goal-glide", "setup"]
    assert [h.id for h in policy.pre("Prosody Phrase")] == ["goal-phrase", "setup"]
    assert [h.id for h in policy.pre("Free play")] == ["setup"]


def test_copy_override():
    policy = CoachPolicy(clock=FakeClock(), copy={"jitter": "Smoother, please."})
    assert policy.hint("jitter").text == "Smoother, please."
    assert policy.hint("unknown-id").text == "unknown-id"


def test_policy_config_validation():
    with pytest.raises(ValueError):
        PolicyConfig(rate_limit_ms=-1)
    with pytest.raises(ValueError):
        PolicyConfig(loudness_threshold=1.2)
    with pytest.raises(ValueError):
        PolicyConfig(confidence_min_frames=0)
