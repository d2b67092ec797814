"""Watermark region detection from block pixel statistics.

The image is cut into square blocks (32px by default). A block is reported as
a candidate watermark region when enough of its pixels are semi-transparent,
or when enough of them are very bright or very dark. Logos and stamped text
overlays tend to trip one of the two rules; flat photographic content tends
not to.

Flagged blocks are returned one region per block in row-major order. Adjacent
blocks are not merged unless ``merge_adjacent`` is enabled.
"""

import dataclasses
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .buffer import PixelBuffer, Region
from .config import DetectorConfig
from .utils import ImageSource, read_source, setup_logger

logger = setup_logger(__name__)

# Type alias for detection results
DetectionResult = List[Region]


class RegionDetector:
    """Flags fixed-size blocks whose transparency or brightness looks like a watermark.

    The detector holds only its configuration and can be reused across images.
    """

    def __init__(self, config: Optional[DetectorConfig] = None, **overrides) -> None:
        """Create a detector.

        Args:
            config: Detector configuration, defaults if omitted
            **overrides: Individual ``DetectorConfig`` fields to override
        """
        config = config or DetectorConfig()
        if overrides:
            config = dataclasses.replace(config, **overrides)
        self.config = config

    def detect(self, buffer: PixelBuffer) -> DetectionResult:
        """Find candidate watermark regions in a pixel buffer.

        The buffer is not modified and the result depends only on its pixels.

        Args:
            buffer: Image to scan

        Returns:
            Regions of kind "auto", in row-major block order
        """
        flags = self.block_flags(buffer)
        block_size = self.config.block_size

        if self.config.merge_adjacent:
            rects = _merged_block_rects(flags, block_size, buffer.width, buffer.height)
        else:
            rects = [
                _block_rect(row, col, block_size, buffer.width, buffer.height)
                for row, col in np.argwhere(flags)
            ]

        regions = [
            Region.from_pixels(x, y, w, h, buffer.width, buffer.height, kind="auto")
            for x, y, w, h in rects
        ]

        logger.info(
            f"Flagged {int(flags.sum())}/{flags.size} blocks on {buffer.width}×{buffer.height} image, "
            f"{len(regions)} region(s)"
        )
        for x, y, w, h in rects:
            logger.debug(f"  Candidate region at ({x},{y}) size {w}×{h}")

        return regions

    def block_flags(self, buffer: PixelBuffer) -> np.ndarray:
        """Evaluate both block rules over the whole image.

        Args:
            buffer: Image to scan

        Returns:
            Boolean array of shape (block rows, block columns)
        """
        cfg = self.config
        pixels = buffer.pixels

        transparent = pixels[:, :, 3] < cfg.alpha_threshold
        brightness = pixels[:, :, :3].sum(axis=2, dtype=np.uint16) / 3.0
        extreme = (brightness > cfg.bright_threshold) | (brightness < cfg.dark_threshold)

        transparent_counts = _block_sums(transparent, cfg.block_size)
        extreme_counts = _block_sums(extreme, cfg.block_size)
        totals = _block_totals(buffer.height, buffer.width, cfg.block_size)

        return (
            (transparent_counts > cfg.transparency_ratio * totals)
            | (extreme_counts > cfg.extreme_ratio * totals)
        )


def detect_regions(source: ImageSource, config: Optional[DetectorConfig] = None) -> DetectionResult:
    """Detect watermark regions in an image.

    This is the main entry point for detection. It accepts encoded bytes, a
    file path or an already decoded buffer.

    Args:
        source: Image bytes, path, or PixelBuffer
        config: Optional detector configuration

    Returns:
        Detected regions of kind "auto"

    Raises:
        DecodeError: If the image cannot be decoded
    """
    buffer = read_source(source)
    return RegionDetector(config).detect(buffer)


def _block_sums(mask: np.ndarray, block_size: int) -> np.ndarray:
    """Count true pixels per block; edge blocks are clipped to the image."""
    row_starts = np.arange(0, mask.shape[0], block_size)
    col_starts = np.arange(0, mask.shape[1], block_size)
    per_row = np.add.reduceat(mask.astype(np.int64), row_starts, axis=0)
    return np.add.reduceat(per_row, col_starts, axis=1)


def _block_totals(height: int, width: int, block_size: int) -> np.ndarray:
    heights = np.minimum(block_size, height - np.arange(0, height, block_size))
    widths = np.minimum(block_size, width - np.arange(0, width, block_size))
    return np.outer(heights, widths)


def _block_rect(row: int, col: int, block_size: int, width: int, height: int) -> Tuple[int, int, int, int]:
    x = int(col) * block_size
    y = int(row) * block_size
    return (x, y, min(block_size, width - x), min(block_size, height - y))


def _merged_block_rects(flags: np.ndarray, block_size: int, width: int, height: int) -> List[Tuple[int, int, int, int]]:
    """Join 4-connected flagged blocks and return each group's bounding rectangle.

    The bounding rectangle of an L-shaped group also covers the unflagged
    blocks in its corner.
    """
    num_labels, _, stats, _ = cv2.connectedComponentsWithStats(flags.astype(np.uint8), connectivity=4)

    rects = []
    for label in range(1, num_labels):
        col, row, cols, rows = (int(v) for v in stats[label, :4])
        x = col * block_size
        y = row * block_size
        rects.append((x, y, min((col + cols) * block_size, width) - x, min((row + rows) * block_size, height) - y))

    # Label order follows the first pixel of each component, keep row-major order explicit
    rects.sort(key=lambda r: (r[1], r[0]))
    logger.debug(f"Merged {int(flags.sum())} flagged blocks into {len(rects)} region(s)")
    return rects
