"""Command-line interface for unmark.

This module provides the main CLI entry point that runs detection and/or
manual region removal over one image or a directory of images.
"""

import logging
import argparse
import time
import sys
import cv2
from pathlib import Path
from typing import List, Optional, Tuple

from omegaconf.errors import OmegaConfBaseException
from tqdm import tqdm

from .buffer import PixelBuffer, Region
from .config import UnmarkConfig, load_config
from .detector import RegionDetector
from .errors import UnmarkError
from .inpaint import RegionInpainter
from .utils import (
    Color, EXPORT_FORMATS, get_image_files, load_image, parse_color, save_image, setup_logger
)

logger = setup_logger(__name__)

RegionSpec = Tuple[float, float, float, float]

def parse_region(value: str) -> RegionSpec:
    """Parse an ``x,y,width,height`` string into four numbers."""
    parts = value.split(',')
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("Region must have exactly 4 values: x,y,width,height")
    try:
        numbers = tuple(float(p.strip()) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Region values must be numbers: {value}") from None
    if any(n < 0 for n in numbers):
        raise argparse.ArgumentTypeError("Region values must be non-negative")
    if numbers[2] <= 0 or numbers[3] <= 0:
        raise argparse.ArgumentTypeError("Width and height must be positive")
    return numbers

def build_regions(specs: List[RegionSpec], buffer: PixelBuffer, pixels: bool) -> List[Region]:
    """Turn ``--region`` values into manual regions for one image."""
    if pixels:
        return [
            Region.from_pixels(int(x), int(y), int(w), int(h), buffer.width, buffer.height)
            for x, y, w, h in specs
        ]
    return [Region(x, y, w, h) for x, y, w, h in specs]

def draw_overlay(buffer: PixelBuffer, regions: List[Region], color: Color) -> PixelBuffer:
    """Return a copy of the buffer with each region outlined."""
    overlay = buffer.copy()
    rgba = (int(color[0]), int(color[1]), int(color[2]), 255)
    for region in regions:
        try:
            x, y, w, h = region.to_pixel_rect(buffer.width, buffer.height)
        except UnmarkError:
            continue
        cv2.rectangle(overlay.pixels, (x, y), (x + w - 1, y + h - 1), rgba, 1)
    return overlay

def process_single_image(
    image_path: Path,
    output_dir: Path,
    config: UnmarkConfig,
    region_specs: List[RegionSpec],
    pixel_regions: bool = False,
    detect: bool = False,
    overlay_color: Optional[Color] = None
) -> dict:
    """Process a single image: detect, inpaint, save.

    Args:
        image_path: Path to input image
        output_dir: Directory to save outputs
        config: Detection, inpainting and export settings
        region_specs: Manual regions from the command line
        pixel_regions: Whether region_specs are pixel coordinates
        detect: Whether to run automatic detection
        overlay_color: If set, also save a preview with regions outlined

    Returns:
        Dictionary with timing details and region counts
    """
    timings = {
        'image_name': image_path.name,
        'load_time': 0.0,
        'detection_time': 0.0,
        'inpaint_time': 0.0,
        'total_time': 0.0,
        'regions_count': 0,
    }
    start_time = time.time()

    load_start = time.time()
    buffer = load_image(image_path)
    timings['load_time'] = time.time() - load_start
    logger.info(f"Loaded {image_path.name} ({buffer.width}×{buffer.height})")

    regions = build_regions(region_specs, buffer, pixel_regions)

    if detect:
        detection_start = time.time()
        detected = RegionDetector(config.detector).detect(buffer)
        regions.extend(detected)
        timings['detection_time'] = time.time() - detection_start
        if not detected:
            logger.warning(f"No watermark regions detected in {image_path.name}")

    timings['regions_count'] = len(regions)

    if overlay_color is not None:
        overlay_path = output_dir / f"{image_path.stem}_regions.png"
        save_image(draw_overlay(buffer, regions, overlay_color), overlay_path)
        logger.info(f"Saved region overlay to: {overlay_path.name}")

    inpaint_start = time.time()
    if regions:
        RegionInpainter(config.inpaint).remove(buffer, regions, skip_invalid=True)
    else:
        logger.info("No regions to remove - saving image unchanged")
    timings['inpaint_time'] = time.time() - inpaint_start

    extension = EXPORT_FORMATS[config.export.format]
    output_path = output_dir / f"{image_path.stem}_clean{extension}"
    save_image(buffer, output_path, quality=config.export.quality)
    logger.info(f"Saved result to: {output_path.name}")

    timings['total_time'] = time.time() - start_time
    return timings

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Remove watermarks and logos from images using block detection and context inpainting."
    )

    parser.add_argument(
        "-i", "--input",
        required=True,
        help="Path to input image file or directory of images"
    )

    parser.add_argument(
        "-o", "--output",
        required=True,
        help="Path to output directory"
    )

    parser.add_argument(
        "-d", "--detect",
        action="store_true",
        help="Detect watermark regions automatically"
    )

    parser.add_argument(
        "-r", "--region",
        type=parse_region,
        action="append",
        default=[],
        help="Region to remove as x,y,width,height, normalized to 0-1 unless --pixels is given "
             "(e.g., 0.8,0.9,0.2,0.1 selects the bottom-right corner). May be repeated."
    )

    parser.add_argument(
        "--pixels",
        action="store_true",
        help="Interpret --region values as pixel coordinates"
    )

    parser.add_argument(
        "--merge",
        action="store_true",
        help="Merge adjacent detected blocks into a single region"
    )

    parser.add_argument(
        "-g", "--block-size",
        type=int,
        help="Detection block size in pixels (default: 32)"
    )

    parser.add_argument(
        "-s", "--seed",
        type=int,
        help="Seed for the sampling step, for reproducible output"
    )

    parser.add_argument(
        "-f", "--format",
        choices=sorted(set(EXPORT_FORMATS)),
        help="Output format (default: png)"
    )

    parser.add_argument(
        "-q", "--quality",
        type=int,
        help="Output quality 0-100 for jpg/webp (default: 95)"
    )

    parser.add_argument(
        "-c", "--config",
        help="Path to YAML config file"
    )

    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a config value, e.g. --set detector.extreme_ratio=0.6"
    )

    parser.add_argument(
        "-k", "--keep-overlays",
        action="store_true",
        help="Save a preview with the processed regions outlined"
    )

    parser.add_argument(
        "--overlay-color",
        default="red",
        help="Outline color in hex format (#FF0000) or HTML color name (default: red)"
    )

    parser.add_argument(
        "-l", "--logfile",
        help="Path to log file for detailed logging"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    return parser.parse_args(argv)

def _cli_overrides(args: argparse.Namespace) -> List[str]:
    """Translate dedicated flags into config dotlist overrides."""
    overrides = list(args.overrides)
    if args.merge:
        overrides.append("detector.merge_adjacent=true")
    if args.block_size is not None:
        overrides.append(f"detector.block_size={args.block_size}")
    if args.seed is not None:
        overrides.append(f"inpaint.seed={args.seed}")
    if args.format is not None:
        overrides.append(f"export.format={args.format}")
    if args.quality is not None:
        overrides.append(f"export.quality={args.quality}")
    return overrides

def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the watermark removal tool."""
    args = parse_args(argv)

    # Setup logging
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        # Module loggers carry their own INFO level from setup_logger
        for name, module_logger in logging.root.manager.loggerDict.items():
            if name.startswith("unmark") and isinstance(module_logger, logging.Logger):
                module_logger.setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")

    # Setup file logging if requested
    if args.logfile:
        log_path = Path(args.logfile)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode='w')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        logging.getLogger().addHandler(file_handler)
        logger.info(f"Logging to file: {log_path}")

    if not args.detect and not args.region:
        logger.error("Nothing to do: pass --detect and/or at least one --region")
        sys.exit(1)

    try:
        config = load_config(args.config, _cli_overrides(args))
    except (FileNotFoundError, ValueError, OmegaConfBaseException) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    overlay_color = None
    if args.keep_overlays:
        try:
            overlay_color = parse_color(args.overlay_color)
        except ValueError as e:
            logger.error(f"Invalid overlay color '{args.overlay_color}': {e}")
            sys.exit(1)

    # Validate input path
    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input path '{args.input}' does not exist")
        sys.exit(1)

    # Get list of images to process
    image_files = get_image_files(input_path)
    if not image_files:
        logger.error(f"No valid image files found in '{args.input}'")
        sys.exit(1)

    # Setup output directory
    output_path = Path(args.output)
    output_path.mkdir(parents=True, exist_ok=True)

    logger.info(f"Found {len(image_files)} image(s) to process")
    if args.detect:
        logger.info(f"Detection block size: {config.detector.block_size}px"
                    f"{' (merging adjacent blocks)' if config.detector.merge_adjacent else ''}")

    start_time = time.time()
    failures = 0
    is_batch_mode = len(image_files) > 1

    # Use TQDM only for batch mode and when not verbose
    use_tqdm = is_batch_mode and not args.verbose
    files_iter = tqdm(image_files, desc="Processing images") if use_tqdm else image_files

    for i, image_path in enumerate(files_iter, 1):
        if not use_tqdm:
            logger.info(f"Processing image {i}/{len(image_files)}: {image_path.name}")

        try:
            timing = process_single_image(
                image_path, output_path, config, args.region, args.pixels, args.detect, overlay_color
            )
            logger.debug(f"{image_path.name}: {timing['regions_count']} region(s) in {timing['total_time']:.2f}s")
        except Exception as e:
            failures += 1
            logger.error(f"Error processing {image_path.name}: {e}")
            continue

        if use_tqdm:
            files_iter.set_postfix({'failed': failures, 'last_time': f"{timing['total_time']:.1f}s"})

    total_time = time.time() - start_time
    logger.info("Processing complete:")
    logger.info(f"Total elapsed time: {total_time:.1f} seconds")
    logger.info(f"Images processed: {len(image_files) - failures}/{len(image_files)}")

    if failures:
        sys.exit(1)

if __name__ == "__main__":
    main()
