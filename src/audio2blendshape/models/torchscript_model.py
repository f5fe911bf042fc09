"""TorchScript model loader for the feature extractor and the decoder.

Both models take a batched tensor and return a batched tensor; the returned
callable hides the batch axis so it plugs straight into the pipeline:

- feature extractor: audio (samples,) -> features (T, F)
- decoder: window (frame_size, F) -> blendshapes (frame_size, C)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)


def _get_torch():
    import torch
    return torch


def load_torchscript_model(
    path: str | Path,
    device: Optional[str] = None,
    half_precision: bool = False,
) -> Callable[[np.ndarray], np.ndarray]:
    """Load a TorchScript module and return a numpy -> numpy forward callable.

    Args:
        path: Path to a TorchScript file (torch.jit.save output).
        device: Optional device string ('cuda', 'cpu', etc.). If None,
                uses CUDA if available else CPU.
        half_precision: Run in float16 (CUDA only; ignored on CPU).

    Returns:
        forward(x: np.ndarray) -> np.ndarray. A batch axis of size 1 is added
        to x and removed from the result, which is float32.
    """
    torch = _get_torch()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"TorchScript model not found: {path}")

    if device is None:
        device = "cuda" if torch.cuda.is_available() else "cpu"
    torch_device = torch.device(device)
    use_half = half_precision and torch_device.type == "cuda"
    dtype = torch.float16 if use_half else torch.float32

    model = torch.jit.load(str(path), map_location=torch_device)
    model.eval()
    if use_half:
        model = model.half()
    logger.info("Loaded %s on %s (%s)", path.name, device, "fp16" if use_half else "fp32")

    def forward(x: np.ndarray) -> np.ndarray:
        with torch.no_grad():
            x_t = torch.from_numpy(np.ascontiguousarray(x, dtype=np.float32)).unsqueeze(0)
            x_t = x_t.to(device=torch_device, dtype=dtype)
            out = model(x_t)
            if isinstance(out, (tuple, list)):
                out = out[0]
            return out.squeeze(0).float().cpu().numpy()

    return forward
