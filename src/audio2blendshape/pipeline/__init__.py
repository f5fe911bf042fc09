"""End-to-end audio to blendshape pipeline."""

from audio2blendshape.pipeline.blendshape_pipeline import BlendshapePipeline, FeatureExtractor

__all__ = ["BlendshapePipeline", "FeatureExtractor"]
