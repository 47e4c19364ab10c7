from .copy_table import COPY
from .environment import EnvironmentState
from .hints import CoachSnapshot, Hint, HintCandidate, PhraseSummary
from .policy import BUCKET_ORDER, Clock, CoachPolicy, MonotonicClock, PolicyConfig, PolicyState

__all__ = [
    "COPY",
    "EnvironmentState",
    "CoachSnapshot",
    "Hint",
    "HintCandidate",
    "PhraseSummary",
    "BUCKET_ORDER",
    "Clock",
    "CoachPolicy",
    "MonotonicClock",
    "PolicyConfig",
    "PolicyState",
]
