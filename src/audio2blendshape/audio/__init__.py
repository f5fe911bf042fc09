"""Audio normalization and resampling."""

from audio2blendshape.audio.config import AudioConfig
from audio2blendshape.audio.preprocess import normalize_audio, resample

__all__ = [
    "AudioConfig",
    "normalize_audio",
    "resample",
]
