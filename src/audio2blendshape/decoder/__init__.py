"""Chunked overlap decoder for long feature matrices."""

from audio2blendshape.decoder.chunked_overlap import (
    ChunkedOverlapDecoder,
    DecoderConfig,
    InferenceFn,
    blend_chunks,
)

__all__ = ["ChunkedOverlapDecoder", "DecoderConfig", "InferenceFn", "blend_chunks"]
