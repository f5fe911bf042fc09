"""Unit tests and toy example for the chunked overlap decoder."""

from __future__ import annotations

import unittest
from typing import List

import numpy as np

from audio2blendshape.decoder import ChunkedOverlapDecoder, DecoderConfig, blend_chunks
from audio2blendshape.decoder.chunked_overlap import concatenate_chunks, pad_window
from audio2blendshape.errors import ConfigurationError, DecodeCancelled, ShapeMismatchError


NUM_FEATURES = 8
NUM_OUTPUTS = 68


def _identity_post(data: np.ndarray) -> np.ndarray:
    return data


class _RecordingModel:
    """Stub decoder: records every window and echoes a deterministic output."""

    def __init__(self, num_outputs: int = NUM_OUTPUTS):
        self.num_outputs = num_outputs
        self.windows: List[np.ndarray] = []

    def __call__(self, window: np.ndarray) -> np.ndarray:
        self.windows.append(window.copy())
        # Column 0 of the features repeated across all outputs
        return np.repeat(window[:, :1], self.num_outputs, axis=1)


def _ramp_features(num_frames: int, num_features: int = NUM_FEATURES) -> np.ndarray:
    rows = np.arange(num_frames, dtype=np.float32)[:, None]
    return np.repeat(rows, num_features, axis=1)


class TestDecoderConfig(unittest.TestCase):
    """Construction-time validation."""

    def test_defaults(self) -> None:
        cfg = DecoderConfig()
        self.assertEqual((cfg.frame_size, cfg.overlap, cfg.step), (128, 32, 96))

    def test_overlap_must_be_smaller(self) -> None:
        """overlap >= frame_size is rejected."""
        with self.assertRaises(ConfigurationError):
            ChunkedOverlapDecoder(frame_size=32, overlap=32)
        with self.assertRaises(ConfigurationError):
            ChunkedOverlapDecoder(frame_size=16, overlap=40)

    def test_negative_overlap(self) -> None:
        with self.assertRaises(ConfigurationError):
            DecoderConfig(frame_size=16, overlap=-1)

    def test_configuration_error_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            DecoderConfig(frame_size=0, overlap=0)


class TestBlendChunks(unittest.TestCase):
    """Tests for the seam cross-fade."""

    def test_linear_ramp_constant_chunks(self) -> None:
        """Constant a/b chunks blend to a + (b - a) * i / k over the overlap."""
        a, b, k = 2.0, 10.0, 4
        c1 = np.full((10, 3), a, dtype=np.float32)
        c2 = np.full((7, 3), b, dtype=np.float32)
        out = blend_chunks(c1, c2, k)

        self.assertEqual(out.shape, (10 + 7 - k, 3))
        np.testing.assert_allclose(out[: 10 - k], a)
        for i in range(k):
            np.testing.assert_allclose(out[10 - k + i], a + (b - a) * i / k, rtol=1e-6)
        np.testing.assert_allclose(out[10:], b)

    def test_first_blended_row_is_chunk1(self) -> None:
        """alpha starts at 0, so the first overlap row equals chunk1."""
        c1 = np.random.default_rng(1).random((6, 2)).astype(np.float32)
        c2 = np.random.default_rng(2).random((6, 2)).astype(np.float32)
        out = blend_chunks(c1, c2, 3)
        np.testing.assert_array_equal(out[3], c1[3])

    def test_overlap_clamped_to_shorter_chunk(self) -> None:
        """Overlap shrinks to the length of a short chunk."""
        c1 = np.zeros((10, 1), dtype=np.float32)
        c2 = np.ones((2, 1), dtype=np.float32)
        out = blend_chunks(c1, c2, 4)
        self.assertEqual(out.shape, (10, 1))
        np.testing.assert_allclose(out[-2:, 0], [0.0, 0.5])

    def test_zero_overlap_concatenates(self) -> None:
        c1 = np.zeros((3, 2), dtype=np.float32)
        c2 = np.ones((2, 2), dtype=np.float32)
        out = blend_chunks(c1, c2, 0)
        np.testing.assert_array_equal(out, np.concatenate([c1, c2]))

    def test_inputs_not_modified(self) -> None:
        c1 = np.zeros((4, 1), dtype=np.float32)
        c2 = np.ones((4, 1), dtype=np.float32)
        blend_chunks(c1, c2, 2)
        self.assertTrue(np.all(c1 == 0))
        self.assertTrue(np.all(c2 == 1))


class TestHelpers(unittest.TestCase):
    """Padding and concatenation helpers."""

    def test_pad_repeats_last_row(self) -> None:
        window = np.array([[1.0, 2.0], [3.0, 4.0]], dtype=np.float32)
        padded = pad_window(window, 5)
        self.assertEqual(padded.shape, (5, 2))
        np.testing.assert_array_equal(padded[2:], [[3.0, 4.0]] * 3)

    def test_pad_full_window_is_copy(self) -> None:
        """A full window is copied, never handed over as a view."""
        window = np.zeros((4, 2), dtype=np.float32)
        padded = pad_window(window, 4)
        self.assertIsNot(padded, window)
        padded[:] = 7.0
        self.assertTrue(np.all(window == 0))

    def test_concatenate_truncates(self) -> None:
        chunks = [np.ones((5, 2), dtype=np.float32), 2 * np.ones((5, 2), dtype=np.float32)]
        out = concatenate_chunks(chunks, 7)
        self.assertEqual(out.shape, (7, 2))
        np.testing.assert_array_equal(out[5:], 2)

    def test_concatenate_empty(self) -> None:
        self.assertEqual(concatenate_chunks([], 10).shape, (0, 0))


class TestChunkedOverlapDecoder(unittest.TestCase):
    """Tests for ChunkedOverlapDecoder.process_features."""

    def setUp(self) -> None:
        self.decoder = ChunkedOverlapDecoder(frame_size=128, overlap=32, post_processor=_identity_post)

    def test_frame_conservation(self) -> None:
        """Output has exactly num_frames rows for awkward lengths."""
        for n in (1, 5, 95, 96, 97, 100, 127, 128, 129, 224, 300, 1000):
            model = _RecordingModel()
            out = self.decoder.process_features(_ramp_features(n), model)
            self.assertEqual(out.shape, (n, NUM_OUTPUTS), msg=f"num_frames={n}")

    def test_zero_frames(self) -> None:
        """No frames: empty result and the model is never called."""
        model = _RecordingModel()
        out = self.decoder.process_features(np.zeros((0, NUM_FEATURES), dtype=np.float32), model)
        self.assertEqual(out.shape, (0, 0))
        self.assertEqual(model.windows, [])

    def test_window_plan_300(self) -> None:
        """300 frames, 128/32: starts 0, 96, 192, 288."""
        self.assertEqual(
            self.decoder.window_plan(300),
            [(0, 128), (96, 128), (192, 108), (288, 12)],
        )

    def test_windows_are_padded_by_edge_replication(self) -> None:
        """Every window is frame_size rows; the short last one repeats row 299."""
        model = _RecordingModel()
        features = _ramp_features(300)
        self.decoder.process_features(features, model)

        self.assertEqual(len(model.windows), 4)
        for w in model.windows:
            self.assertEqual(w.shape, (128, NUM_FEATURES))
        last = model.windows[-1]
        np.testing.assert_array_equal(last[:12], features[288:300])
        np.testing.assert_array_equal(last[12:], np.repeat(features[299:300], 116, axis=0))
        np.testing.assert_array_equal(model.windows[1], features[96:224])

    def test_consistent_model_is_seamless(self) -> None:
        """A model that agrees across windows gives back its input signal."""
        features = _ramp_features(300)
        out = self.decoder.process_features(features, _RecordingModel())
        np.testing.assert_allclose(out[:, 0], features[:, 0], atol=1e-3)

    def test_single_window_no_blend(self) -> None:
        """num_frames <= step: output is the single trimmed chunk."""
        decoded = np.random.default_rng(3).random((128, NUM_OUTPUTS)).astype(np.float32)
        out = self.decoder.process_features(_ramp_features(50), lambda w: decoded)
        np.testing.assert_array_equal(out, decoded[:50])

    def test_full_frame_size_still_blends_tail(self) -> None:
        """128 frames: the sweep also visits (96, 32), so rows 96-127 are blended."""
        calls = []

        def model(window: np.ndarray) -> np.ndarray:
            calls.append(window)
            return np.full((128, 4), float(len(calls)), dtype=np.float32)

        self.assertEqual(self.decoder.window_plan(128), [(0, 128), (96, 32)])
        out = self.decoder.process_features(_ramp_features(128), model)
        self.assertEqual(len(calls), 2)
        self.assertEqual(out.shape, (128, 4))
        np.testing.assert_allclose(out[:96], 1.0)
        for i in range(32):
            np.testing.assert_allclose(out[96 + i], 1.0 + i / 32, rtol=1e-6)

    def test_model_reusing_output_buffer(self) -> None:
        """A model that returns the same buffer every call gives the same output as fresh arrays."""
        shared = np.zeros((128, 4), dtype=np.float32)
        calls = []

        def reusing(window: np.ndarray) -> np.ndarray:
            calls.append(1)
            shared[:] = float(len(calls))
            return shared

        fresh_calls = []

        def fresh(window: np.ndarray) -> np.ndarray:
            fresh_calls.append(1)
            return np.full((128, 4), float(len(fresh_calls)), dtype=np.float32)

        features = _ramp_features(300)
        np.testing.assert_array_equal(
            self.decoder.process_features(features, reusing),
            self.decoder.process_features(features, fresh),
        )

    def test_model_writing_into_window_leaves_features_alone(self) -> None:
        """In-place edits by the model never reach the caller's features or later windows."""
        features = _ramp_features(300)
        original = features.copy()
        model = _RecordingModel()

        def scribbling(window: np.ndarray) -> np.ndarray:
            out = model(window)
            window[:] = -1.0
            return out

        self.decoder.process_features(features, scribbling)
        np.testing.assert_array_equal(features, original)
        np.testing.assert_array_equal(model.windows[1], original[96:224])

    def test_seam_blend_between_windows(self) -> None:
        """Constant per-window outputs ramp linearly across the 32-row seam."""
        calls = []

        def model(window: np.ndarray) -> np.ndarray:
            calls.append(window)
            return np.full((128, 4), float(len(calls)), dtype=np.float32)

        # Windows: (0, 128), (96, 128), (192, 32)
        out = self.decoder.process_features(_ramp_features(224), model)
        self.assertEqual(len(calls), 3)
        self.assertEqual(out.shape, (224, 4))
        np.testing.assert_allclose(out[:96], 1.0)
        for i in range(32):
            np.testing.assert_allclose(out[96 + i], 1.0 + i / 32, rtol=1e-6)
        np.testing.assert_allclose(out[128:192], 2.0)
        for i in range(32):
            np.testing.assert_allclose(out[192 + i], 2.0 + i / 32, rtol=1e-6)

    def test_post_processor_called_once(self) -> None:
        """Post-processing runs exactly once per decode."""
        seen = []

        def post(data: np.ndarray) -> np.ndarray:
            seen.append(data.shape)
            return data

        decoder = ChunkedOverlapDecoder(post_processor=post)
        decoder.process_features(_ramp_features(700), _RecordingModel())
        self.assertEqual(seen, [(700, NUM_OUTPUTS)])

    def test_default_post_processing_applied(self) -> None:
        """The default post-processor zeroes the unused channels."""
        decoder = ChunkedOverlapDecoder()
        out = decoder.process_features(_ramp_features(200), lambda w: np.full((128, 68), 50.0, dtype=np.float32))
        self.assertTrue(np.all(out[:, [0, 1, 2, 3, 4, 7, 51, 60]] == 0))
        np.testing.assert_allclose(out[10, 20], 0.5)
        np.testing.assert_allclose(out[10, 61], 50.0)

    def test_flat_buffer_input(self) -> None:
        """Flat row-major features match the 2-D path; missing rows read as zero."""
        features = _ramp_features(40, 3)
        model = _RecordingModel()
        out_flat = self.decoder.process_features(features.reshape(-1), model, num_frames=40, num_features=3)
        out_2d = self.decoder.process_features(features, _RecordingModel())
        np.testing.assert_array_equal(out_flat, out_2d)

        model = _RecordingModel()
        self.decoder.process_features(features.reshape(-1)[:30], model, num_frames=12, num_features=3)
        np.testing.assert_array_equal(model.windows[0][10:12], 0)

    def test_flat_buffer_requires_num_features(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            self.decoder.process_features(np.zeros(10, dtype=np.float32), _RecordingModel())

    def test_wrong_row_count_raises(self) -> None:
        """A decoder returning the wrong number of rows is a contract violation."""
        with self.assertRaises(ShapeMismatchError):
            self.decoder.process_features(_ramp_features(50), lambda w: np.zeros((64, 4), dtype=np.float32))

    def test_batched_output_squeezed(self) -> None:
        """(1, frame_size, C) outputs are accepted."""
        out = self.decoder.process_features(_ramp_features(20), lambda w: np.ones((1, 128, 4), dtype=np.float32))
        self.assertEqual(out.shape, (20, 4))

    def test_changing_output_width_raises(self) -> None:
        widths = iter([4, 5])
        with self.assertRaises(ShapeMismatchError):
            self.decoder.process_features(
                _ramp_features(200),
                lambda w: np.zeros((128, next(widths)), dtype=np.float32),
            )

    def test_callback_failure_propagates(self) -> None:
        """Model errors propagate unchanged, no partial output."""
        calls = []

        def model(window: np.ndarray) -> np.ndarray:
            calls.append(1)
            if len(calls) == 2:
                raise RuntimeError("accelerator fault")
            return np.zeros((128, 4), dtype=np.float32)

        with self.assertRaises(RuntimeError):
            self.decoder.process_features(_ramp_features(300), model)
        self.assertEqual(len(calls), 2)

    def test_should_stop_between_windows(self) -> None:
        """should_stop aborts before the next window is decoded."""
        model = _RecordingModel()
        with self.assertRaises(DecodeCancelled):
            self.decoder.process_features(
                _ramp_features(300),
                model,
                should_stop=lambda: len(model.windows) >= 2,
            )
        self.assertEqual(len(model.windows), 2)

    def test_zero_overlap(self) -> None:
        """overlap=0 tiles windows back to back."""
        decoder = ChunkedOverlapDecoder(frame_size=16, overlap=0, post_processor=_identity_post)
        features = _ramp_features(40)
        out = decoder.process_features(features, _RecordingModel())
        self.assertEqual(decoder.window_plan(40), [(0, 16), (16, 16), (32, 8)])
        np.testing.assert_array_equal(out[:, 0], features[:, 0])

    def test_reusable_across_calls(self) -> None:
        """The decoder keeps no state between calls."""
        features = _ramp_features(250)
        first = self.decoder.process_features(features, _RecordingModel())
        self.decoder.process_features(_ramp_features(33), _RecordingModel())
        second = self.decoder.process_features(features, _RecordingModel())
        np.testing.assert_array_equal(first, second)


def run_toy_example() -> None:
    """Decode 300 frames with a stub model and show the window plan."""
    print("=== Toy example: chunked overlap decoder ===\n")
    decoder = ChunkedOverlapDecoder(frame_size=128, overlap=32)
    for start, chunk_len in decoder.window_plan(300):
        print(f"  window start={start:4d} chunk_len={chunk_len:4d}")
    out = decoder.process_features(_ramp_features(300), _RecordingModel())
    print(f"\nOutput: {out.shape[0]} frames x {out.shape[1]} channels")
    print("Done.")


if __name__ == "__main__":
    run_toy_example()
    print("\n--- Running unit tests ---")
    unittest.main(argv=[""], exit=False, verbosity=2)
