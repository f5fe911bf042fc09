"""Exceptions raised by the audio -> blendshape pipeline."""


class Audio2BlendshapeError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(Audio2BlendshapeError, ValueError):
    """Invalid decoder configuration (e.g. overlap >= frame_size)."""


class ShapeMismatchError(Audio2BlendshapeError, ValueError):
    """A feature matrix or decoded chunk does not have the expected shape."""


class DecodeCancelled(Audio2BlendshapeError):
    """Chunked decode was stopped by the caller between windows."""
