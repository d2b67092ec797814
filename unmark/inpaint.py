"""Context-sampling inpainting of rectangular regions.

Each region is rebuilt from the pixels that surround it:

1. A ring of pixels just outside the region (at most 20px thick, and no
   thicker than a quarter of the region's shorter side) is collected into a
   context pool.
2. Every pixel inside the region becomes the mean of a few random draws from
   that pool. This gives a noisy texture in the colors of the surroundings.
3. A box blur (5×5 by default) smooths the filled block. The blur reads from a
   snapshot of the fill and only averages neighbours inside the block, so
   edge pixels use fewer samples.

If the ring is empty (the region covers the whole image, or is too small to
have a ring at all) the region is painted opaque white instead.

Regions are processed strictly one after the other on the same buffer, so a
later region can sample pixels an earlier one has already rewritten.
"""

import dataclasses
from typing import Callable, Iterable, Optional, Sequence

import numpy as np

from .buffer import PixelBuffer, PixelRect, Region
from .config import InpaintConfig
from .errors import OutOfBoundsError, RemovalCancelled
from .utils import setup_logger

logger = setup_logger(__name__)

ProgressCallback = Callable[[float], None]
CancelCheck = Callable[[], bool]

# Output pixels filled per batch of random draws
FILL_CHUNK_PIXELS = 1 << 16


def sample_radius(width: int, height: int, max_radius: int = 20) -> int:
    """Thickness of the context ring for a region of the given size."""
    return min(max_radius, min(width, height) // 4)


def collect_context_pool(pixels: np.ndarray, rect: PixelRect, radius: int) -> np.ndarray:
    """Gather the ring of pixels surrounding a rectangle.

    The top and bottom strips extend ``radius`` pixels past both sides of the
    rectangle so the corners are covered; the left and right strips span the
    rectangle's height. Pixels outside the image are skipped.

    Args:
        pixels: H×W×4 RGBA array
        rect: Region rectangle as (x, y, width, height), inside the image
        radius: Ring thickness in pixels

    Returns:
        N×4 uint8 array of RGBA samples (N may be 0)
    """
    img_h, img_w = pixels.shape[:2]
    x, y, w, h = rect

    if radius <= 0:
        return np.empty((0, 4), dtype=np.uint8)

    left = max(0, x - radius)
    right = min(img_w, x + w + radius)

    strips = [
        pixels[max(0, y - radius):y, left:right],                 # top
        pixels[y + h:min(img_h, y + h + radius), left:right],     # bottom
        pixels[y:y + h, max(0, x - radius):x],                    # left
        pixels[y:y + h, x + w:min(img_w, x + w + radius)],        # right
    ]
    return np.concatenate([strip.reshape(-1, 4) for strip in strips], axis=0)


def fill_from_context(
    pool: np.ndarray,
    height: int,
    width: int,
    rng: np.random.Generator,
    samples: int = 5,
    chunk_pixels: int = FILL_CHUNK_PIXELS
) -> np.ndarray:
    """Synthesize a block by averaging random draws from the context pool.

    Each draw picks a whole RGBA pixel, so channels stay correlated. Rows are
    filled in chunks of about ``chunk_pixels`` pixels to bound memory use.

    Args:
        pool: N×4 uint8 context samples, N > 0
        height: Block height
        width: Block width
        rng: Random source for the draws
        samples: Number of draws averaged per output pixel
        chunk_pixels: Approximate number of output pixels drawn at once

    Returns:
        height×width×4 uint8 block
    """
    block = np.empty((height, width, 4), dtype=np.uint8)
    rows_per_chunk = max(1, chunk_pixels // max(1, width))

    for top in range(0, height, rows_per_chunk):
        rows = min(rows_per_chunk, height - top)
        indices = rng.integers(0, len(pool), size=(rows, width, samples))
        drawn = pool[indices]  # rows×W×samples×4
        mean = drawn.sum(axis=2, dtype=np.uint32) / samples
        block[top:top + rows] = np.rint(mean).astype(np.uint8)

    return block


def box_blur(block: np.ndarray, radius: int = 2) -> np.ndarray:
    """Box blur a block, averaging only neighbours that lie inside it.

    Reads exclusively from ``block`` and returns a new array, so results never
    depend on already-blurred neighbours.

    Args:
        block: H×W×C uint8 array
        radius: Kernel radius; the neighbourhood is (2*radius+1)²

    Returns:
        Blurred H×W×C uint8 array
    """
    if radius <= 0:
        return block.copy()

    h, w = block.shape[:2]
    integral = np.zeros((h + 1, w + 1, block.shape[2]), dtype=np.float64)
    integral[1:, 1:] = block.astype(np.float64).cumsum(axis=0).cumsum(axis=1)

    rows = np.arange(h)
    cols = np.arange(w)
    y0 = np.clip(rows - radius, 0, h)[:, None]
    y1 = np.clip(rows + radius + 1, 0, h)[:, None]
    x0 = np.clip(cols - radius, 0, w)[None, :]
    x1 = np.clip(cols + radius + 1, 0, w)[None, :]

    sums = integral[y1, x1] - integral[y0, x1] - integral[y1, x0] + integral[y0, x0]
    counts = (y1 - y0) * (x1 - x0)
    return np.rint(sums / counts[:, :, None]).astype(np.uint8)


class RegionInpainter:
    """Rebuilds regions of a pixel buffer from their surrounding context.

    The inpainter keeps no state between calls besides its configuration.
    Pass an explicit ``rng`` (or set ``config.seed``) for reproducible output.
    """

    def __init__(self, config: Optional[InpaintConfig] = None, **overrides) -> None:
        config = config or InpaintConfig()
        if overrides:
            config = dataclasses.replace(config, **overrides)
        self.config = config

    def _make_rng(self, rng: Optional[np.random.Generator]) -> np.random.Generator:
        if rng is not None:
            return rng
        return np.random.default_rng(self.config.seed)

    def inpaint(
        self,
        buffer: PixelBuffer,
        region: Region,
        rng: Optional[np.random.Generator] = None
    ) -> PixelRect:
        """Inpaint one region in place.

        Only pixels inside the region's pixel rectangle are written.

        Args:
            buffer: Image to modify
            region: Normalized region to rebuild
            rng: Optional random source for the sampling step

        Returns:
            The pixel rectangle that was rewritten

        Raises:
            OutOfBoundsError: If the region maps to an empty rectangle
        """
        cfg = self.config
        rect = region.to_pixel_rect(buffer.width, buffer.height)
        x, y, w, h = rect
        radius = sample_radius(w, h, cfg.max_sample_radius)

        pool = collect_context_pool(buffer.pixels, rect, radius)
        if len(pool) == 0:
            logger.debug(f"No context around ({x},{y}) {w}×{h}, filling with {tuple(cfg.fallback_color)}")
            buffer.pixels[y:y + h, x:x + w] = np.asarray(cfg.fallback_color, dtype=np.uint8)
            return rect

        filled = fill_from_context(pool, h, w, self._make_rng(rng), cfg.samples_per_pixel)
        buffer.pixels[y:y + h, x:x + w] = box_blur(filled, cfg.blur_radius)

        logger.debug(f"Inpainted ({x},{y}) {w}×{h} from {len(pool)} context pixels (radius {radius})")
        return rect

    def remove(
        self,
        buffer: PixelBuffer,
        regions: Sequence[Region],
        on_progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
        skip_invalid: bool = False,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        """Inpaint a sequence of regions in order.

        Each region sees the buffer as left by the ones before it. After every
        region the progress callback receives ``(index + 1) / total * 100``.

        Args:
            buffer: Image to modify in place
            regions: Regions in processing order
            on_progress: Optional callback receiving a percentage
            should_cancel: Optional check run before each region
            skip_invalid: Log and skip regions that map to empty rectangles
                instead of raising
            rng: Optional random source shared by all regions

        Raises:
            OutOfBoundsError: If a region is degenerate and skip_invalid is False
            RemovalCancelled: If should_cancel returns True
        """
        total = len(regions)
        rng = self._make_rng(rng)
        logger.info(f"Removing {total} region(s) from {buffer.width}×{buffer.height} image")

        for index, region in enumerate(regions):
            if should_cancel is not None and should_cancel():
                logger.warning(f"Removal cancelled after {index}/{total} regions")
                raise RemovalCancelled(index, total)

            try:
                self.inpaint(buffer, region, rng=rng)
            except OutOfBoundsError as e:
                if not skip_invalid:
                    raise
                logger.warning(f"Skipping region {index + 1}/{total}: {e}")

            if on_progress is not None:
                on_progress((index + 1) / total * 100)

        logger.info(f"Removed {total} region(s)")


def inpaint_region(
    buffer: PixelBuffer,
    region: Region,
    rng: Optional[np.random.Generator] = None,
    config: Optional[InpaintConfig] = None
) -> PixelRect:
    """Inpaint a single region in place with the given or default settings."""
    return RegionInpainter(config).inpaint(buffer, region, rng=rng)


def remove_regions(
    buffer: PixelBuffer,
    regions: Iterable[Region],
    on_progress: Optional[ProgressCallback] = None,
    rng: Optional[np.random.Generator] = None,
    config: Optional[InpaintConfig] = None,
    should_cancel: Optional[CancelCheck] = None,
    skip_invalid: bool = False
) -> PixelBuffer:
    """Inpaint regions in sequence and return the (same, mutated) buffer.

    Args:
        buffer: Image to modify in place
        regions: Regions in processing order
        on_progress: Optional callback receiving a percentage per region
        rng: Optional random source for the sampling step
        config: Optional inpainting configuration
        should_cancel: Optional check run before each region
        skip_invalid: Skip degenerate regions instead of raising

    Returns:
        The input buffer
    """
    RegionInpainter(config).remove(
        buffer,
        list(regions),
        on_progress=on_progress,
        should_cancel=should_cancel,
        skip_invalid=skip_invalid,
        rng=rng,
    )
    return buffer
