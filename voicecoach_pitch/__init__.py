from .detectors import CrepeDetector, DetectorInitError, PitchFrame, YinDetector
from .engine import EngineConfig, EngineSnapshot, KalmanConfig, PitchEngine, create_engine
from .prosody import ProsodyFrame, ProsodyOptions, ProsodyResult, classify_prosody
from .smoothing import Kalman1D, MedianFilter

__all__ = [
    "CrepeDetector",
    "DetectorInitError",
    "PitchFrame",
    "YinDetector",
    "EngineConfig",
    "EngineSnapshot",
    "KalmanConfig",
    "PitchEngine",
    "create_engine",
    "ProsodyFrame",
    "ProsodyOptions",
    "ProsodyResult",
    "classify_prosody",
    "Kalman1D",
    "MedianFilter",
]
