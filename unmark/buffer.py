"""Pixel buffer and region value types.

A ``PixelBuffer`` is the in-memory RGBA raster every other module works on.
A ``Region`` is a normalized rectangle over such a buffer. Regions are
resolution independent, so the same list can be applied to an image at any
size; ``Region.to_pixel_rect`` maps one onto a concrete buffer.
"""

import math
from dataclasses import dataclass
from typing import Literal, Tuple

import numpy as np

from .errors import OutOfBoundsError

RGBA = Tuple[int, int, int, int]
PixelRect = Tuple[int, int, int, int]  # (x, y, width, height) in pixels
RegionKind = Literal["manual", "auto"]

REGION_KINDS = ("manual", "auto")

# Guards floor() against values like 0.29 * 100 == 28.999999999999996 when a
# pixel offset is normalized and then mapped back onto the same image.
_DENORMALIZE_EPSILON = 1e-9


class PixelBuffer:
    """Interleaved 8-bit RGBA samples for one image.

    The samples live in ``pixels``, a C-contiguous ``uint8`` array of shape
    ``(height, width, 4)``. The buffer is mutated in place by the inpainter
    and never resized.
    """

    def __init__(self, pixels: np.ndarray) -> None:
        if not isinstance(pixels, np.ndarray):
            raise ValueError("pixels must be a numpy array")
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"pixels must be H×W×4 RGBA, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"pixels must be uint8, got {pixels.dtype}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError("PixelBuffer must have positive width and height")
        self.pixels = np.ascontiguousarray(pixels)

    @classmethod
    def from_bytes(cls, raw: bytes, width: int, height: int) -> "PixelBuffer":
        """Build a buffer from raw interleaved RGBA bytes.

        Args:
            raw: ``width * height * 4`` bytes, row-major RGBA
            width: Image width in pixels
            height: Image height in pixels

        Returns:
            New buffer owning a copy of the samples

        Raises:
            ValueError: If the byte count does not match the dimensions
        """
        if width <= 0 or height <= 0:
            raise ValueError("width and height must be positive")
        expected = width * height * 4
        if len(raw) != expected:
            raise ValueError(f"Expected {expected} bytes for {width}×{height} RGBA, got {len(raw)}")
        pixels = np.frombuffer(raw, dtype=np.uint8).reshape(height, width, 4).copy()
        return cls(pixels)

    @classmethod
    def blank(cls, width: int, height: int, color: RGBA = (0, 0, 0, 0)) -> "PixelBuffer":
        """Allocate a buffer filled with a single color."""
        if width <= 0 or height <= 0:
            raise ValueError("width and height must be positive")
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = color
        return cls(pixels)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def length(self) -> int:
        """Number of 8-bit samples, always ``width * height * 4``."""
        return self.pixels.size

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy())

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.pixels.shape == other.pixels.shape and bool(np.array_equal(self.pixels, other.pixels))

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}×{self.height})"


def _clamp_unit(value: float) -> float:
    return min(1.0, max(0.0, value))


@dataclass(frozen=True)
class Region:
    """Normalized rectangle marking an area to detect or remove.

    All four coordinates are fractions of the image size. They are clamped on
    construction so that ``x + width <= 1`` and ``y + height <= 1`` always
    hold; a rectangle that ends up with zero extent is still a valid value but
    is rejected by ``to_pixel_rect``.
    """

    x: float
    y: float
    width: float
    height: float
    kind: RegionKind = "manual"

    def __post_init__(self) -> None:
        if self.kind not in REGION_KINDS:
            raise ValueError(f"Invalid region kind: {self.kind}. Must be 'manual' or 'auto'")
        values = (self.x, self.y, self.width, self.height)
        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"Region coordinates must be finite, got {values}")

        x = _clamp_unit(float(self.x))
        y = _clamp_unit(float(self.y))
        width = min(_clamp_unit(float(self.width)), 1.0 - x)
        height = min(_clamp_unit(float(self.height)), 1.0 - y)

        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)
        object.__setattr__(self, "width", width)
        object.__setattr__(self, "height", height)

    @classmethod
    def from_pixels(
        cls,
        x: int,
        y: int,
        width: int,
        height: int,
        image_width: int,
        image_height: int,
        kind: RegionKind = "manual",
    ) -> "Region":
        """Normalize a pixel rectangle against an image size."""
        if image_width <= 0 or image_height <= 0:
            raise ValueError("image dimensions must be positive")
        return cls(
            x=x / image_width,
            y=y / image_height,
            width=width / image_width,
            height=height / image_height,
            kind=kind,
        )

    def to_pixel_rect(self, image_width: int, image_height: int) -> PixelRect:
        """Denormalize to an integer pixel rectangle clipped to the image.

        Every coordinate is mapped with ``floor(coord * dimension)``.

        Args:
            image_width: Width of the target image in pixels
            image_height: Height of the target image in pixels

        Returns:
            Pixel rectangle as (x, y, width, height)

        Raises:
            OutOfBoundsError: If the rectangle has zero width or height
        """
        px = _denormalize(self.x, image_width)
        py = _denormalize(self.y, image_height)
        pw = _denormalize(self.width, image_width)
        ph = _denormalize(self.height, image_height)

        x1, y1 = min(px, image_width), min(py, image_height)
        x2, y2 = min(px + pw, image_width), min(py + ph, image_height)
        if x2 <= x1 or y2 <= y1:
            raise OutOfBoundsError(
                f"Region {self} maps to an empty rectangle on a {image_width}×{image_height} image"
            )
        return (x1, y1, x2 - x1, y2 - y1)

    def with_kind(self, kind: RegionKind) -> "Region":
        return Region(self.x, self.y, self.width, self.height, kind)


def _denormalize(value: float, dimension: int) -> int:
    return int(math.floor(value * dimension + _DENORMALIZE_EPSILON))
