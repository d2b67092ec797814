"""Tests for the region detector module.

These tests check the two block rules (transparency and brightness
extremity) at their boundaries, the block layout at image edges, and the
optional merging of adjacent flagged blocks.
"""

import numpy as np
import pytest

from unmark.buffer import PixelBuffer, Region
from unmark.config import DetectorConfig
from unmark.detector import RegionDetector, detect_regions
from unmark.errors import DecodeError
from unmark.utils import encode_image


def test_detector_initialization() -> None:
    """Defaults match the tuned values and overrides are validated."""
    detector = RegionDetector()
    assert detector.config.block_size == 32
    assert detector.config.alpha_threshold == 200
    assert detector.config.transparency_ratio == 0.3
    assert detector.config.bright_threshold == 200
    assert detector.config.dark_threshold == 50
    assert detector.config.extreme_ratio == 0.5
    assert detector.config.merge_adjacent is False

    detector = RegionDetector(block_size=16, extreme_ratio=0.6)
    assert detector.config.block_size == 16
    assert detector.config.extreme_ratio == 0.6

    with pytest.raises(ValueError, match="block_size must be positive"):
        RegionDetector(block_size=0)
    with pytest.raises(ValueError, match="transparency_ratio must be between 0 and 1"):
        RegionDetector(transparency_ratio=1.5)
    with pytest.raises(ValueError, match="thresholds must satisfy"):
        RegionDetector(dark_threshold=220)


def _transparency_block(transparent_pixels: int) -> PixelBuffer:
    """A 32×32 mid-gray block with the first N pixels at alpha 150."""
    buffer = PixelBuffer.blank(32, 32, (128, 128, 128, 255))
    buffer.pixels.reshape(-1, 4)[:transparent_pixels, 3] = 150
    return buffer


def test_transparency_threshold_boundary() -> None:
    """A block is flagged only when transparent pixels exceed 0.3 × 1024 = 307.2."""
    detector = RegionDetector()

    assert detector.detect(_transparency_block(308)) == [Region(0.0, 0.0, 1.0, 1.0, kind="auto")]
    assert detector.detect(_transparency_block(307)) == []
    assert detector.detect(_transparency_block(306)) == []


def test_alpha_exactly_at_threshold_is_opaque() -> None:
    buffer = PixelBuffer.blank(32, 32, (128, 128, 128, 200))
    assert RegionDetector().detect(buffer) == []

    buffer.pixels[:, :, 3] = 199
    assert len(RegionDetector().detect(buffer)) == 1


def test_extreme_brightness_threshold_boundary() -> None:
    """More than half of the block must be very bright or very dark."""
    buffer = PixelBuffer.blank(32, 32, (128, 128, 128, 255))
    flat = buffer.pixels.reshape(-1, 4)

    flat[:512, :3] = 255
    assert RegionDetector().detect(buffer) == []

    flat[512, :3] = 10  # dark pixels count as extreme too
    assert len(RegionDetector().detect(buffer)) == 1


def test_luminance_uses_channel_mean() -> None:
    """(250 + 250 + 100) / 3 = 200 is not above the bright threshold."""
    buffer = PixelBuffer.blank(32, 32, (250, 250, 100, 255))
    assert RegionDetector().detect(buffer) == []

    buffer.pixels[:, :, 2] = 101
    assert len(RegionDetector().detect(buffer)) == 1


def test_uniform_midtone_image_has_no_regions(gray_buffer) -> None:
    assert RegionDetector().detect(gray_buffer) == []


def test_uniform_white_image_flags_every_block(buffer_factory) -> None:
    buffer = buffer_factory(64, 64, (255, 255, 255, 255))
    regions = RegionDetector().detect(buffer)
    assert len(regions) == 4
    assert all(region.kind == "auto" for region in regions)


def test_regions_in_row_major_order(buffer_factory) -> None:
    buffer = buffer_factory(96, 64)
    # Flag blocks (row 0, col 2), (row 1, col 0) and (row 1, col 1)
    buffer.pixels[0:32, 64:96] = (255, 255, 255, 255)
    buffer.pixels[32:64, 0:64] = (0, 0, 0, 255)

    rects = [r.to_pixel_rect(96, 64) for r in RegionDetector().detect(buffer)]
    assert rects == [(64, 0, 32, 32), (0, 32, 32, 32), (32, 32, 32, 32)]


def test_edge_blocks_are_clipped(buffer_factory) -> None:
    """Blocks in the last row/column shrink to the image bounds."""
    buffer = buffer_factory(40, 36, (255, 255, 255, 255))
    regions = RegionDetector().detect(buffer)

    rects = [r.to_pixel_rect(40, 36) for r in regions]
    assert rects == [(0, 0, 32, 32), (32, 0, 8, 32), (0, 32, 32, 4), (32, 32, 8, 4)]
    assert regions[1].width == pytest.approx(8 / 40)
    assert regions[3].height == pytest.approx(4 / 36)


def test_image_smaller_than_block(buffer_factory) -> None:
    buffer = buffer_factory(10, 5, (0, 0, 0, 255))
    assert RegionDetector().detect(buffer) == [Region(0.0, 0.0, 1.0, 1.0, kind="auto")]


def test_detection_is_deterministic_and_pure(noisy_buffer) -> None:
    before = noisy_buffer.copy()
    detector = RegionDetector(block_size=8)

    first = detector.detect(noisy_buffer)
    second = detector.detect(noisy_buffer)

    assert first == second
    assert noisy_buffer == before


def test_adjacent_blocks_stay_separate_by_default(buffer_factory) -> None:
    buffer = buffer_factory(64, 32)
    buffer.pixels[:, :, 3] = 0
    assert len(RegionDetector().detect(buffer)) == 2


def test_merge_adjacent_blocks(buffer_factory) -> None:
    """Connected flagged blocks collapse into their bounding rectangle."""
    buffer = buffer_factory(96, 96)
    # L-shape: (0,0), (0,1), (1,0); separate block at (2,2)
    buffer.pixels[0:32, 0:64, 3] = 0
    buffer.pixels[32:64, 0:32, 3] = 0
    buffer.pixels[64:96, 64:96, 3] = 0

    regions = RegionDetector(merge_adjacent=True).detect(buffer)
    rects = [r.to_pixel_rect(96, 96) for r in regions]
    assert rects == [(0, 0, 64, 64), (64, 64, 32, 32)]
    assert all(r.kind == "auto" for r in regions)


def test_merge_clips_to_image(buffer_factory) -> None:
    buffer = buffer_factory(40, 40, (255, 255, 255, 255))
    regions = RegionDetector(merge_adjacent=True).detect(buffer)
    assert regions == [Region(0.0, 0.0, 1.0, 1.0, kind="auto")]


def test_diagonal_blocks_do_not_merge(buffer_factory) -> None:
    buffer = buffer_factory(64, 64)
    buffer.pixels[0:32, 0:32, 3] = 0
    buffer.pixels[32:64, 32:64, 3] = 0
    assert len(RegionDetector(merge_adjacent=True).detect(buffer)) == 2


def test_detect_regions_from_encoded_bytes(buffer_factory) -> None:
    buffer = buffer_factory(64, 32)
    buffer.pixels[:, 32:, 3] = 0
    data = encode_image(buffer, "png")

    regions = detect_regions(data)
    assert [r.to_pixel_rect(64, 32) for r in regions] == [(32, 0, 32, 32)]

    regions = detect_regions(data, DetectorConfig(block_size=16))
    assert len(regions) == 4


def test_detect_regions_decode_failure() -> None:
    with pytest.raises(DecodeError):
        detect_regions(b"definitely not an image")
    with pytest.raises(DecodeError):
        detect_regions(b"")


def test_block_flags_shape(noisy_buffer) -> None:
    flags = RegionDetector(block_size=16).block_flags(noisy_buffer)
    # 48×40 image in 16px blocks -> 3 rows × 3 columns
    assert flags.shape == (3, 3)
    assert flags.dtype == np.bool_
