"""
Main Entry Point for Nines
Provides command-line interface and GUI launcher
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from PIL import Image, UnidentifiedImageError

from .constants import PipelineConfig, resolve_symbols
from .exceptions import ModelLoadError
from .models import ModelStore
from .pipeline import NinesPipeline
from .raster import RasterBuffer
from .validation import validate

logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    labels = resolve_symbols(args.labels.split(",")) if args.labels else None
    return PipelineConfig.from_env().with_overrides(
        model_path=args.model,
        threshold=args.threshold,
        min_area=args.min_area,
        connectivity=args.connectivity,
        interpolation=args.interpolation,
        labels=labels,
    )


def check_image(image_path: str, target: int, config: PipelineConfig) -> int:
    """Recognise an expression image and validate it against ``target``."""
    try:
        with Image.open(image_path) as image:
            buffer = RasterBuffer.from_image(image.convert("RGBA"))
    except (OSError, UnidentifiedImageError) as e:
        print(f"Error: Could not load image from {image_path}: {e}")
        return 2

    print(f"Processing image: {image_path}")
    pipeline = NinesPipeline(ModelStore(config))
    try:
        outcome = asyncio.run(pipeline.check(buffer, target))
    except ModelLoadError as e:
        print(f"Error: {e}")
        return 2

    if outcome.recognition and outcome.recognition.symbols:
        print(f"Recognized expression: {outcome.expression}")
        print("Individual predictions:")
        for i, symbol in enumerate(outcome.recognition.symbols):
            print(f"  Symbol {i+1}: {symbol.symbol} (confidence: {symbol.confidence:.3f}, x={symbol.anchor_x})")
    else:
        print("No symbols detected in image")
    print(outcome.result.message)
    return 0 if outcome.result.valid else 1


def check_expression(expression: str, target: int) -> int:
    result = validate(expression, target)
    print(result.message)
    return 0 if result.valid else 1


def launch_gui(config: PipelineConfig) -> int:
    from .gui import run

    try:
        run(NinesPipeline(ModelStore(config)))
    except Exception as e:
        logger.exception("GUI terminated")
        print(f"Error launching GUI: {e}")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Nines: draw three 9s to hit the target")
    parser.add_argument("--model", type=str, help="Path to the Keras symbol classifier")
    parser.add_argument("--labels", type=str, help="Comma-separated classifier label order")
    parser.add_argument("--threshold", type=int, help="Luminance threshold for drawn pixels (0-255)")
    parser.add_argument("--min-area", type=int, help="Minimum component pixel count")
    parser.add_argument("--connectivity", type=int, choices=[4, 8], help="Pixel connectivity")
    parser.add_argument("--interpolation", choices=["nearest", "bilinear"], help="Glyph resize interpolation")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...)")

    sub = parser.add_subparsers(dest="command")
    check = sub.add_parser("check", help="Recognise an image and validate it")
    check.add_argument("image", type=str)
    check.add_argument("--target", type=int, required=True)

    evaluate = sub.add_parser("eval", help="Validate a typed expression")
    evaluate.add_argument("expression", type=str)
    evaluate.add_argument("--target", type=int, required=True)

    sub.add_parser("gui", help="Launch the game board (default)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function with command line interface"""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
    except ValueError as e:
        parser.error(str(e))

    if args.command == "eval":
        return check_expression(args.expression, args.target)

    if args.command == "check":
        if not os.path.exists(args.image):
            print(f"Error: Image file {args.image} not found")
            return 2
        return check_image(args.image, args.target, config)

    print("Launching GUI application...")
    return launch_gui(config)


if __name__ == "__main__":
    sys.exit(main())
