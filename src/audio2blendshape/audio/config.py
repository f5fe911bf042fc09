"""Centralized audio preprocessing configuration.

Encoding standards:
- Audio: mono, peak-normalized float32
- Target rate: 88.2 kHz (what the bundled feature extractor was exported at)
- Resampling: linear interpolation, no anti-aliasing filter
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class AudioConfig:
    """Audio preprocessing configuration."""

    # Rate expected by the feature extractor
    target_sample_rate: int = 88_200
