"""End-to-end pipeline: audio -> normalize -> resample -> features -> chunked decoder -> output.

Glue that wires existing components with minimal deps. The feature extractor
and the decoder are callables so you can plug PyTorch / ONNX / stubs.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import numpy as np

from audio2blendshape.audio import normalize_audio, resample
from audio2blendshape.audio.config import AudioConfig
from audio2blendshape.decoder import ChunkedOverlapDecoder, InferenceFn
from audio2blendshape.errors import ShapeMismatchError

logger = logging.getLogger(__name__)

# Mono audio at the target rate -> (num_frames, num_features)
FeatureExtractor = Callable[[np.ndarray], np.ndarray]


class BlendshapePipeline:
    """Turns a raw waveform into a (num_frames, num_outputs) blendshape matrix.

    Components are injected so you can use real models or stubs.

    Interface:
      pipeline = BlendshapePipeline(
          feature_extractor=extract_fn,
          run_inference=decoder_fn,
      )
      output = pipeline.generate(samples, sample_rate=44_100, channels=2)
      pipeline.stop()  # from another thread; aborts before the next window
    """

    def __init__(
        self,
        feature_extractor: FeatureExtractor,
        run_inference: InferenceFn,
        audio_config: Optional[AudioConfig] = None,
        decoder: Optional[ChunkedOverlapDecoder] = None,
    ):
        self.feature_extractor = feature_extractor
        self.run_inference = run_inference
        self.audio_config = audio_config or AudioConfig()
        self.decoder = decoder or ChunkedOverlapDecoder()
        self._stopped = False

    def stop(self) -> None:
        """Signal the running decode to abort (checked before each window)."""
        self._stopped = True

    def preprocess(
        self,
        samples: Optional[np.ndarray],
        sample_rate: int,
        channels: int = 1,
    ) -> np.ndarray:
        """Mono, peak-normalized audio at the target sample rate."""
        mono = normalize_audio(samples, channels=channels)
        if mono is None:
            return np.zeros(0, dtype=np.float32)
        return resample(mono, sample_rate, self.audio_config.target_sample_rate)

    def extract_features(self, audio: np.ndarray) -> np.ndarray:
        """Run the feature extractor and check it returned a matrix."""
        if audio.size == 0:
            return np.zeros((0, 0), dtype=np.float32)
        features = np.asarray(self.feature_extractor(audio), dtype=np.float32)
        # Handle (1, T, F) from some frameworks
        if features.ndim == 3 and features.shape[0] == 1:
            features = features.squeeze(0)
        if features.ndim != 2:
            raise ShapeMismatchError(
                f"Feature extractor returned shape {features.shape}, expected 2-D"
            )
        return features

    def generate(
        self,
        samples: Optional[np.ndarray],
        sample_rate: int,
        channels: int = 1,
    ) -> np.ndarray:
        """Run the full pipeline on one clip.

        Args:
            samples: Raw samples, interleaved if multi-channel, or shaped
                     (n_samples, channels).
            sample_rate: Rate of samples in Hz.
            channels: Channel count for interleaved input.

        Returns:
            Post-processed (num_frames, num_outputs) float32 matrix; empty
            when there is nothing to play. Exceptions from the callables
            propagate and no partial output is returned.
        """
        self._stopped = False
        t0 = time.perf_counter()

        audio = self.preprocess(samples, sample_rate, channels)
        features = self.extract_features(audio)
        if features.shape[0] == 0:
            logger.warning("No audio features extracted, nothing to decode")
            return np.zeros((0, 0), dtype=np.float32)

        output = self.decoder.process_features(
            features,
            self.run_inference,
            should_stop=lambda: self._stopped,
        )
        logger.info(
            "Generated %d frames x %d channels from %d samples in %.2fs",
            output.shape[0],
            output.shape[1],
            audio.size,
            time.perf_counter() - t0,
        )
        return output
