"""Post-processing for decoder output (scaling, fade-in, channel zeroing).

The constants describe the output column layout of the bundled decoder and
are not derived from the input.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

# Output channels the avatar rig does not drive (eye blink/look, tongue)
ZEROED_COLUMNS = (
    0, 1, 2, 3, 4,
    7, 8, 9, 10, 11,
    51, 52, 53, 54, 55, 56, 57, 58, 59, 60,
)


@dataclass(frozen=True)
class PostProcessConfig:
    """Model-specific post-processing constants."""

    # Decoder emits the first 61 columns in percent
    scale_columns: int = 61
    scale_divisor: float = 100.0

    # Fade-in: 0.1 s at 60 fps
    ease_duration_sec: float = 0.1
    frame_rate: int = 60

    zeroed_columns: tuple[int, ...] = ZEROED_COLUMNS

    @property
    def ease_frames(self) -> int:
        """Fade-in length in frames."""
        return int(self.ease_duration_sec * self.frame_rate)


class OutputPostProcessor:
    """Apply scale, fade-in and channel zeroing to a decoded matrix in place.

    Not idempotent: running it twice divides the scaled columns again.

    Interface:
      post = OutputPostProcessor()
      post(output)   # output: (num_frames, num_features), modified in place
    """

    def __init__(self, config: PostProcessConfig | None = None):
        self.config = config or PostProcessConfig()

    def __call__(self, data: np.ndarray) -> np.ndarray:
        return self.apply(data)

    def apply(self, data: np.ndarray) -> np.ndarray:
        """Post-process data in place and return it."""
        if data.ndim != 2 or data.size == 0:
            return data
        num_frames, num_features = data.shape
        cfg = self.config

        n_scaled = min(cfg.scale_columns, num_features)
        data[:, :n_scaled] /= cfg.scale_divisor

        ease = min(cfg.ease_frames, num_frames)
        if ease > 0:
            factors = np.arange(ease, dtype=data.dtype) / ease
            data[:ease, :] *= factors[:, None]

        cols = [c for c in cfg.zeroed_columns if c < num_features]
        if cols:
            data[:, cols] = 0
        return data


def post_process(data: np.ndarray, config: PostProcessConfig | None = None) -> np.ndarray:
    """Functional shortcut for OutputPostProcessor(config).apply(data)."""
    return OutputPostProcessor(config).apply(data)
