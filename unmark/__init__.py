"""Unmark: watermark and logo removal for raster images.

This package detects likely watermark regions from block pixel statistics
and removes regions by rebuilding them from the surrounding pixels.
"""

__version__ = "0.1.0"
__author__ = "Unmark Team"

# Core types
from .buffer import PixelBuffer, Region
from .errors import UnmarkError, DecodeError, OutOfBoundsError, RemovalCancelled
from .config import DetectorConfig, InpaintConfig, ExportOptions, UnmarkConfig, load_config

# Main pipeline components
from .detector import RegionDetector, detect_regions
from .inpaint import (
    RegionInpainter,
    inpaint_region,
    remove_regions,
    collect_context_pool,
    fill_from_context,
    box_blur,
)
from .pipeline import ProcessingStatus, RemovalSession, detect_watermarks, remove_watermarks
from .utils import decode_image, encode_image, load_image, save_image, setup_logger

# CLI entry point
from .cli import main

__all__ = [
    "PixelBuffer",
    "Region",
    "UnmarkError",
    "DecodeError",
    "OutOfBoundsError",
    "RemovalCancelled",
    "DetectorConfig",
    "InpaintConfig",
    "ExportOptions",
    "UnmarkConfig",
    "load_config",
    "RegionDetector",
    "detect_regions",
    "RegionInpainter",
    "inpaint_region",
    "remove_regions",
    "collect_context_pool",
    "fill_from_context",
    "box_blur",
    "ProcessingStatus",
    "RemovalSession",
    "detect_watermarks",
    "remove_watermarks",
    "decode_image",
    "encode_image",
    "load_image",
    "save_image",
    "setup_logger",
    "main",
]
