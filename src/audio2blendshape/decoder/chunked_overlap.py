"""Chunked overlap decoder: sliding-window inference with seam blending.

Long feature matrices are decoded in fixed-size windows (frame_size rows)
that advance by frame_size - overlap. The last window is padded by repeating
its final row, decoded outputs are trimmed back to the real rows, and the
overlap between consecutive chunks is cross-faded linearly.

The inference backend is a callable (run_inference) so you can plug
PyTorch / ONNX / a stub in tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from audio2blendshape.errors import ConfigurationError, DecodeCancelled, ShapeMismatchError
from audio2blendshape.postprocess import OutputPostProcessor

logger = logging.getLogger(__name__)

# (frame_size, num_features) -> (frame_size, output_features)
InferenceFn = Callable[[np.ndarray], np.ndarray]
StopCheck = Callable[[], bool]


@dataclass(frozen=True)
class DecoderConfig:
    """Window geometry for chunked decoding."""

    frame_size: int = 128
    overlap: int = 32

    def __post_init__(self) -> None:
        if self.frame_size < 1:
            raise ConfigurationError(f"frame_size must be >= 1, got {self.frame_size}")
        if self.overlap < 0:
            raise ConfigurationError(f"overlap must be >= 0, got {self.overlap}")
        if self.overlap >= self.frame_size:
            raise ConfigurationError(
                f"overlap ({self.overlap}) must be smaller than frame_size ({self.frame_size})"
            )

    @property
    def step(self) -> int:
        """Window advance in frames."""
        return self.frame_size - self.overlap


def pad_window(window: np.ndarray, frame_size: int) -> np.ndarray:
    """Extend window to frame_size rows by repeating its last row.

    Always returns a new array, so the caller's features never reach the model.
    """
    n = window.shape[0]
    if n >= frame_size:
        return window.copy()
    tail = np.repeat(window[-1:], frame_size - n, axis=0)
    return np.concatenate([window, tail], axis=0)


def blend_chunks(chunk1: np.ndarray, chunk2: np.ndarray, overlap: int) -> np.ndarray:
    """Cross-fade the tail of chunk1 into the head of chunk2.

    Over k = min(overlap, len(chunk1), len(chunk2)) rows, row
    len(chunk1) - k + i becomes lerp(chunk1_row, chunk2[i], i / k), so the
    blend starts as pure chunk1 and ramps toward chunk2. The rest of chunk2
    (rows k onward) is appended. With k <= 0 the chunks are concatenated.

    chunk1 is not modified.
    """
    k = min(overlap, len(chunk1), len(chunk2))
    if k <= 0:
        return np.concatenate([chunk1, chunk2], axis=0)

    blended = np.array(chunk1, copy=True)
    alpha = (np.arange(k, dtype=np.float32) / k)[:, None]
    head = blended[-k:]
    blended[-k:] = head + (chunk2[:k] - head) * alpha
    return np.concatenate([blended, chunk2[k:]], axis=0)


def concatenate_chunks(chunks: List[np.ndarray], total_frames: int) -> np.ndarray:
    """Join chunks in order, stopping at exactly total_frames rows."""
    if not chunks:
        return np.zeros((0, 0), dtype=np.float32)
    num_features = chunks[0].shape[1]
    result = np.zeros((total_frames, num_features), dtype=np.float32)
    row = 0
    for chunk in chunks:
        n = min(chunk.shape[0], total_frames - row)
        if n <= 0:
            break
        result[row : row + n] = chunk[:n]
        row += n
    return result


class _BlendAccumulator:
    """Committed prefix plus a mutable tail of at most `overlap` rows.

    Only the tail can still be touched by a future blend; everything before
    it is final and appended once.
    """

    def __init__(self, overlap: int):
        self.overlap = overlap
        self._committed: List[np.ndarray] = []
        self._tail: Optional[np.ndarray] = None

    def push(self, chunk: np.ndarray) -> None:
        merged = chunk if self._tail is None else blend_chunks(self._tail, chunk, self.overlap)
        keep = min(self.overlap, merged.shape[0])
        split = merged.shape[0] - keep
        if split > 0:
            self._committed.append(merged[:split])
        self._tail = merged[split:]

    def chunks(self) -> List[np.ndarray]:
        if self._tail is None:
            return []
        return self._committed + [self._tail]


class ChunkedOverlapDecoder:
    """Decode a feature matrix window by window and blend the seams.

    Holds configuration only; every buffer lives inside a single
    process_features call.

    Interface:
      decoder = ChunkedOverlapDecoder(frame_size=128, overlap=32)
      output = decoder.process_features(features, run_inference)

    run_inference receives (frame_size, num_features) and must return
    (frame_size, output_features). It is called once per window, in order.
    """

    def __init__(
        self,
        frame_size: int = 128,
        overlap: int = 32,
        post_processor: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        config: Optional[DecoderConfig] = None,
    ):
        """
        Args:
            frame_size: Window length in frames (default 128).
            overlap: Rows shared by consecutive windows (default 32).
            post_processor: Applied once, in place, to the concatenated output
                            (default OutputPostProcessor()).
            config: Overrides frame_size / overlap when given.
        """
        self.config = config or DecoderConfig(frame_size=frame_size, overlap=overlap)
        self.post_processor = post_processor if post_processor is not None else OutputPostProcessor()

    @property
    def frame_size(self) -> int:
        return self.config.frame_size

    @property
    def overlap(self) -> int:
        return self.config.overlap

    def window_plan(self, num_frames: int) -> List[Tuple[int, int]]:
        """(start, chunk_len) for every window the sweep visits."""
        plan = []
        start = 0
        while start < num_frames:
            plan.append((start, min(self.frame_size, num_frames - start)))
            start += self.config.step
        return plan

    def process_features(
        self,
        features: np.ndarray,
        run_inference: InferenceFn,
        num_frames: Optional[int] = None,
        num_features: Optional[int] = None,
        should_stop: Optional[StopCheck] = None,
    ) -> np.ndarray:
        """Run windowed inference and return the post-processed output.

        Args:
            features: (num_frames, num_features) matrix, or a flat row-major
                      buffer together with num_features.
            run_inference: Decoder callable, see class docstring.
            num_frames: Rows to decode (default: all rows of features).
            num_features: Columns per row; required for flat input.
            should_stop: Checked before each window; True aborts with
                         DecodeCancelled.

        Returns:
            (num_frames, output_features) float32 matrix. Empty (0, 0) when
            there are no frames.
        """
        matrix = self._as_matrix(features, num_frames, num_features)
        total = matrix.shape[0]
        if total == 0:
            logger.warning("No feature frames to decode")
            return np.zeros((0, 0), dtype=np.float32)

        frame_size = self.frame_size
        acc = _BlendAccumulator(self.overlap)
        out_features: Optional[int] = None

        for start, chunk_len in self.window_plan(total):
            if should_stop is not None and should_stop():
                raise DecodeCancelled(f"Decode stopped at frame {start} of {total}")

            window = matrix[start : start + chunk_len]
            padded = pad_window(window, frame_size)
            decoded = self._check_decoded(run_inference(padded), out_features)
            out_features = decoded.shape[1]
            logger.debug("Window at %d: %d real rows, %d padded", start, chunk_len, frame_size - chunk_len)

            # Models may reuse their output buffer between calls
            acc.push(decoded[:chunk_len].copy())

        output = concatenate_chunks(acc.chunks(), total)
        self.post_processor(output)
        return output

    def _as_matrix(
        self,
        features: np.ndarray,
        num_frames: Optional[int],
        num_features: Optional[int],
    ) -> np.ndarray:
        arr = np.asarray(features, dtype=np.float32)
        if arr.ndim == 1:
            if not num_features:
                raise ShapeMismatchError("num_features is required for a flat feature buffer")
            if num_frames is None:
                num_frames = arr.size // num_features
            matrix = np.zeros((num_frames, num_features), dtype=np.float32)
            n = min(arr.size, num_frames * num_features)
            # Rows past the end of a short buffer stay zero
            matrix.reshape(-1)[:n] = arr[:n]
            return matrix
        if arr.ndim != 2:
            raise ShapeMismatchError(f"Expected 2-D features, got shape {arr.shape}")
        if num_features is not None and arr.shape[1] != num_features:
            raise ShapeMismatchError(
                f"Features have {arr.shape[1]} columns, expected {num_features}"
            )
        if num_frames is not None:
            if num_frames > arr.shape[0]:
                missing = np.zeros((num_frames - arr.shape[0], arr.shape[1]), dtype=np.float32)
                return np.concatenate([arr, missing], axis=0)
            arr = arr[:num_frames]
        return arr

    def _check_decoded(self, decoded: np.ndarray, out_features: Optional[int]) -> np.ndarray:
        out = np.asarray(decoded, dtype=np.float32)
        # Handle (1, T, F) from some frameworks
        if out.ndim == 3 and out.shape[0] == 1:
            out = out.squeeze(0)
        if out.ndim != 2:
            raise ShapeMismatchError(f"Decoder returned shape {out.shape}, expected 2-D")
        if out.shape[0] != self.frame_size:
            raise ShapeMismatchError(
                f"Decoder returned {out.shape[0]} rows, expected {self.frame_size}"
            )
        if out_features is not None and out.shape[1] != out_features:
            raise ShapeMismatchError(
                f"Decoder output width changed from {out_features} to {out.shape[1]}"
            )
        return out
