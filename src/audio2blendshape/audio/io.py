"""WAV loading for the CLI and scripts."""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np


def load_wav(path: str | Path) -> Tuple[np.ndarray, int, int]:
    """Read a WAV file as float samples.

    Returns:
        (samples, sample_rate, channels): samples is float32, shape (n,) for
        mono or (n, channels) otherwise; int16 / int32 PCM is scaled to [-1, 1].
    """
    import scipy.io.wavfile as wavfile

    sr, audio = wavfile.read(str(path))
    if audio.dtype == np.int16:
        audio = audio.astype(np.float32) / 32768.0
    elif audio.dtype == np.int32:
        audio = audio.astype(np.float32) / 2147483648.0
    elif audio.dtype == np.uint8:
        audio = (audio.astype(np.float32) - 128.0) / 128.0
    else:
        audio = audio.astype(np.float32)
    channels = 1 if audio.ndim == 1 else audio.shape[1]
    return audio, int(sr), channels
