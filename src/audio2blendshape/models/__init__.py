"""Model loaders for the feature extractor and decoder (TorchScript)."""

from audio2blendshape.models.torchscript_model import load_torchscript_model

__all__ = ["load_torchscript_model"]
