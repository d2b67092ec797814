"""Common test fixtures."""

import pytest
import numpy as np

from unmark.buffer import PixelBuffer


def make_buffer(width, height, color=(128, 128, 128, 255)):
    """Create a solid-color RGBA buffer."""
    return PixelBuffer.blank(width, height, color)


@pytest.fixture
def buffer_factory():
    """Return the solid-color buffer constructor."""
    return make_buffer


@pytest.fixture
def gray_buffer():
    """A 64×64 opaque mid-gray image."""
    return make_buffer(64, 64)


@pytest.fixture
def watermarked_buffer():
    """A 64×64 opaque mid-gray image with a 16×16 fully transparent square at (24, 24)."""
    buffer = make_buffer(64, 64)
    buffer.pixels[24:40, 24:40, 3] = 0
    return buffer


@pytest.fixture
def noisy_buffer():
    """A 48×40 image of reproducible random RGBA noise."""
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(40, 48, 4), dtype=np.uint8)
    return PixelBuffer(pixels)
