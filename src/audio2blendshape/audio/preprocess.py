"""Audio preprocessing: mono mix, peak normalization, linear resampling."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


def _mix_to_mono(samples: np.ndarray, channels: int) -> np.ndarray:
    """Average channels per frame.

    Accepts interleaved 1-D buffers or (n_samples, channels) arrays.
    """
    if samples.ndim == 2:
        if samples.shape[1] == 1:
            return samples[:, 0].copy()
        return samples.mean(axis=1)
    if channels <= 1:
        return samples.copy()
    n_frames = samples.shape[0] // channels
    # Trailing partial frame is dropped
    frames = samples[: n_frames * channels].reshape(n_frames, channels)
    return frames.mean(axis=1)


def normalize_audio(
    samples: Optional[np.ndarray],
    channels: int = 1,
) -> Optional[np.ndarray]:
    """Mix to mono and peak-normalize.

    Args:
        samples: Raw samples, interleaved if multi-channel, or shaped
                 (n_samples, channels). None is passed through.
        channels: Channel count for interleaved 1-D input.

    Returns:
        New mono float32 array scaled so that max |x| == 1, or unchanged
        (but copied) when the input is all silence. None if samples is None.
    """
    if samples is None:
        return None
    data = np.asarray(samples, dtype=np.float32)
    mono = _mix_to_mono(data, channels).astype(np.float32, copy=False)
    if mono.size == 0:
        return mono

    peak = float(np.max(np.abs(mono)))
    if peak > 0:
        mono = mono / np.float32(peak)
    else:
        logger.debug("Silent input (%d samples), skipping normalization", mono.size)
    return mono


def resample(audio: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """Resample by linear interpolation between neighbouring samples.

    No anti-aliasing filter is applied. Output length is
    floor(len(audio) * to_rate / from_rate); the upper interpolation index is
    clamped to the last input sample.

    Source positions are computed in float64, not float32, so on clips of
    several seconds frac (and occasionally i0) differs slightly from a
    single-precision implementation.

    Returns the input object itself when the rates are equal.
    """
    if from_rate <= 0 or to_rate <= 0:
        raise ValueError(f"Sample rates must be positive, got {from_rate} -> {to_rate}")
    if from_rate == to_rate:
        return audio

    ratio = to_rate / from_rate
    n = len(audio)
    new_length = int(n * ratio)
    if new_length == 0:
        return np.zeros(0, dtype=np.float32)

    t = np.arange(new_length, dtype=np.float64) / ratio
    i0 = np.floor(t).astype(np.int64)
    i1 = np.minimum(i0 + 1, n - 1)
    frac = (t - i0).astype(np.float32)

    x = np.asarray(audio, dtype=np.float32)
    return x[i0] + (x[i1] - x[i0]) * frac
