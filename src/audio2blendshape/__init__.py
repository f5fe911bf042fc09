"""Audio to facial blendshapes - preprocessing, chunked decoder, post-processing, pipeline."""

from audio2blendshape.audio import AudioConfig, normalize_audio, resample
from audio2blendshape.decoder import ChunkedOverlapDecoder, DecoderConfig, blend_chunks
from audio2blendshape.errors import (
    Audio2BlendshapeError,
    ConfigurationError,
    DecodeCancelled,
    ShapeMismatchError,
)
from audio2blendshape.pipeline import BlendshapePipeline
from audio2blendshape.postprocess import OutputPostProcessor, PostProcessConfig

__version__ = "0.1.0"

__all__ = [
    "AudioConfig",
    "normalize_audio",
    "resample",
    "ChunkedOverlapDecoder",
    "DecoderConfig",
    "blend_chunks",
    "OutputPostProcessor",
    "PostProcessConfig",
    "BlendshapePipeline",
    "Audio2BlendshapeError",
    "ConfigurationError",
    "DecodeCancelled",
    "ShapeMismatchError",
]
