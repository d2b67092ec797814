"""Tests for configuration loading."""

import pytest
from omegaconf.errors import OmegaConfBaseException

from unmark.config import DetectorConfig, ExportOptions, InpaintConfig, UnmarkConfig, load_config


def test_defaults():
    config = load_config()
    assert isinstance(config, UnmarkConfig)
    assert config.detector == DetectorConfig()
    assert config.inpaint == InpaintConfig()
    assert config.inpaint.fallback_color == [255, 255, 255, 255]
    assert config.inpaint.seed is None
    assert config.export == ExportOptions(format="png", quality=95)


def test_yaml_file_and_overrides(tmp_path):
    path = tmp_path / "unmark.yaml"
    path.write_text(
        "detector:\n"
        "  block_size: 16\n"
        "  merge_adjacent: true\n"
        "inpaint:\n"
        "  seed: 7\n"
    )

    config = load_config(path, ["detector.block_size=8", "export.format=JPG"])

    assert config.detector.block_size == 8
    assert config.detector.merge_adjacent is True
    assert config.detector.transparency_ratio == 0.3
    assert config.inpaint.seed == 7
    assert config.export.format == "jpg"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_unknown_key_rejected():
    with pytest.raises(OmegaConfBaseException):
        load_config(overrides=["detector.grid=4"])


def test_wrong_type_rejected():
    with pytest.raises(OmegaConfBaseException):
        load_config(overrides=["detector.block_size=large"])


def test_invalid_values_rejected():
    with pytest.raises(ValueError, match="block_size must be positive"):
        load_config(overrides=["detector.block_size=0"])
    with pytest.raises(ValueError, match="quality must be between 0 and 100"):
        load_config(overrides=["export.quality=101"])
    with pytest.raises(ValueError, match="Invalid export format"):
        ExportOptions(format="gif")
    with pytest.raises(ValueError, match="fallback_color"):
        InpaintConfig(fallback_color=[255, 255, 255])
    with pytest.raises(ValueError, match="samples_per_pixel must be positive"):
        InpaintConfig(samples_per_pixel=0)
