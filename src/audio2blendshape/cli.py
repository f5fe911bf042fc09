"""CLI: WAV file -> blendshape matrix (.npy) and optional named frames (.json)."""

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

from audio2blendshape.audio.config import AudioConfig
from audio2blendshape.audio.io import load_wav
from audio2blendshape.decoder import ChunkedOverlapDecoder
from audio2blendshape.errors import Audio2BlendshapeError
from audio2blendshape.frames import to_blendshape_frames
from audio2blendshape.logging_utils import setup_logging
from audio2blendshape.pipeline import BlendshapePipeline


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate facial blendshape frames from a WAV file")
    parser.add_argument("input", type=Path, help="Input WAV file")
    parser.add_argument(
        "--feature-model",
        type=Path,
        required=True,
        help="TorchScript audio feature extractor",
    )
    parser.add_argument(
        "--decoder-model",
        type=Path,
        required=True,
        help="TorchScript blendshape decoder",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=Path("blendshapes.npy"),
        help="Output .npy path (default: blendshapes.npy)",
    )
    parser.add_argument(
        "--frames-json",
        type=Path,
        default=None,
        help="Also write named frames (with fade-out tail) as JSON",
    )
    parser.add_argument("--frame-size", type=int, default=128, help="Decoder window in frames (default: 128)")
    parser.add_argument("--overlap", type=int, default=32, help="Window overlap in frames (default: 32)")
    parser.add_argument(
        "--target-rate",
        type=int,
        default=AudioConfig().target_sample_rate,
        help="Feature extractor sample rate in Hz (default: 88200)",
    )
    parser.add_argument("--device", default=None, help="Torch device (default: cuda if available)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        decoder = ChunkedOverlapDecoder(frame_size=args.frame_size, overlap=args.overlap)
    except Audio2BlendshapeError as e:
        parser.error(str(e))

    if not args.input.exists():
        print(f"File not found: {args.input}", file=sys.stderr)
        sys.exit(1)

    try:
        from audio2blendshape.models import load_torchscript_model

        feature_extractor = load_torchscript_model(args.feature_model, device=args.device)
        run_inference = load_torchscript_model(args.decoder_model, device=args.device)
    except ImportError:
        print("torch not installed: pip install 'audio2blendshape[torch]'", file=sys.stderr)
        sys.exit(1)
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    pipeline = BlendshapePipeline(
        feature_extractor=feature_extractor,
        run_inference=run_inference,
        audio_config=AudioConfig(target_sample_rate=args.target_rate),
        decoder=decoder,
    )

    samples, sample_rate, channels = load_wav(args.input)
    print(f"Processing {args.input} ({channels} ch, {sample_rate} Hz, {len(samples)} samples)...")
    output = pipeline.generate(samples, sample_rate, channels)

    if output.shape[0] == 0:
        print("No frames generated (empty input).")
        return

    np.save(str(args.output), output)
    print(f"Saved: {args.output} ({output.shape[0]} frames x {output.shape[1]} channels)")

    if args.frames_json is not None:
        frames = to_blendshape_frames(output)
        args.frames_json.write_text(json.dumps(frames), encoding="utf-8")
        print(f"Saved: {args.frames_json} ({len(frames)} frames incl. fade-out)")


if __name__ == "__main__":
    main()
