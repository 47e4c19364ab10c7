from .base import PitchFrame, PitchDetector, DetectorInitError, UNVOICED
from .yin import YinDetector
from .crepe import CrepeDetector

__all__ = [
    "PitchFrame",
    "PitchDetector",
    "DetectorInitError",
    "UNVOICED",
    "YinDetector",
    "CrepeDetector",
]
