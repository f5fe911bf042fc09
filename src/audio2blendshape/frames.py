"""Convert the output matrix into named blendshape frames for playback.

This is the hand-off to a renderer: one {name: value} dict per 60 fps frame,
with a short fade-out tail so the face settles after the last real frame.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List

import numpy as np

# Decoder output column order
ARKIT_BLENDSHAPE_NAMES = (
    "eyeBlinking_Left", "eyeBlinking_Right",
    "eyeLookDown_L", "eyeLookDown_R", "eyeLookIn_L", "eyeLookIn_R",
    "eyeLookOut_L", "eyeLookOut_R", "eyeLookUp_L", "eyeLookUp_R",
    "eyeSquint_L", "eyeSquint_R", "eyeWide_Left", "eyeWide_Right",
    "jawForward", "jawLeft", "jawRight", "jawOpen",
    "mouthClosed", "mouthFunnel", "mouthPucker", "mouthLeft", "mouthRight",
    "mouthSmile_L", "mouthSmile_R", "mouthFrown_L", "mouthFrown_R",
    "mouthDimple_L", "mouthDimple_R", "mouthStretch_L", "mouthStretch_R",
    "mouthRollLower", "mouthRollUpper", "mouthShrugLower", "mouthShrugUpper",
    "mouthPress_L", "mouthPress_R", "mouthLowerDown_L", "mouthLowerDown_R",
    "mouthUpperUp_L", "mouthUpperUp_R",
    "browDown_Left", "browDown_Right", "browInnerUp", "browOuterUp_L", "browOuterUp_R",
    "cheekPuff", "cheekSquint_L", "cheekSquint_R", "noseSneer_L", "noseSneer_R",
    "tongue_jawOpen", "tongue_jawForward", "tongue_jawLeft", "tongue_jawRight",
    "tongue_tongueOut",
)

BlendshapeFrame = Dict[str, float]


@dataclass(frozen=True)
class PlaybackConfig:
    """Playback-side frame layout."""

    frame_rate: int = 60
    # Only the 52 ARKit channels are emitted
    channel_count: int = 52
    fade_out_frames: int = 20


def to_blendshape_frames(
    output: np.ndarray,
    config: PlaybackConfig | None = None,
) -> List[BlendshapeFrame]:
    """Map each output row to a {name: value} frame and append a fade-out tail.

    The tail repeats the last row scaled by 1 - i / fade_out_frames for
    i in [0, fade_out_frames). Empty output gives an empty list.
    """
    cfg = config or PlaybackConfig()
    if output.ndim != 2 or output.shape[0] == 0:
        return []

    n_channels = min(cfg.channel_count, output.shape[1], len(ARKIT_BLENDSHAPE_NAMES))
    names = ARKIT_BLENDSHAPE_NAMES[:n_channels]

    frames: List[BlendshapeFrame] = [
        {name: float(v) for name, v in zip(names, row[:n_channels])}
        for row in output
    ]

    last = output[-1, :n_channels]
    for i in range(cfg.fade_out_frames):
        fade = 1.0 - i / cfg.fade_out_frames
        frames.append({name: float(v) * fade for name, v in zip(names, last)})
    return frames


def frame_index_at(playback_time: float, frame_rate: int = PlaybackConfig.frame_rate) -> int:
    """Frame to show playback_time seconds after playback started."""
    return int(math.floor(playback_time * frame_rate))
