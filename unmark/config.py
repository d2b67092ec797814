"""Configuration schemas for detection, inpainting and export.

The defaults below are the tuned values the engine ships with. They can be
overridden from a YAML file and/or ``key=value`` dotlist overrides, e.g.::

    detector:
      block_size: 16
      merge_adjacent: true
    inpaint:
      seed: 1234

OmegaConf validates the merged values against the dataclass schemas, so a
typo in a key or a string where an int is expected fails at load time.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from omegaconf import OmegaConf

from .utils import EXPORT_FORMATS, setup_logger

logger = setup_logger(__name__)

@dataclass
class DetectorConfig:
    """Block-statistics watermark detector parameters.

    The two ratios are heuristics without a documented derivation; they are
    exposed so they can be recalibrated against a real watermark corpus.
    """
    block_size: int = 32
    alpha_threshold: int = 200       # alpha below this counts as transparent
    transparency_ratio: float = 0.3  # flag when transparent > ratio * total
    bright_threshold: int = 200      # luminance above this counts as extreme
    dark_threshold: int = 50         # luminance below this counts as extreme
    extreme_ratio: float = 0.5       # flag when extreme > ratio * total
    merge_adjacent: bool = False

    def __post_init__(self) -> None:
        if self.block_size <= 0:
            raise ValueError("block_size must be positive")
        if not 0 <= self.alpha_threshold <= 256:
            raise ValueError("alpha_threshold must be between 0 and 256")
        if not 0.0 <= self.transparency_ratio <= 1.0:
            raise ValueError("transparency_ratio must be between 0 and 1")
        if not 0.0 <= self.extreme_ratio <= 1.0:
            raise ValueError("extreme_ratio must be between 0 and 1")
        if not 0 <= self.dark_threshold <= self.bright_threshold <= 255:
            raise ValueError("thresholds must satisfy 0 <= dark_threshold <= bright_threshold <= 255")

@dataclass
class InpaintConfig:
    """Context-sampling inpainter parameters."""
    samples_per_pixel: int = 5
    max_sample_radius: int = 20
    blur_radius: int = 2
    fallback_color: List[int] = field(default_factory=lambda: [255, 255, 255, 255])
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.samples_per_pixel <= 0:
            raise ValueError("samples_per_pixel must be positive")
        if self.max_sample_radius < 0:
            raise ValueError("max_sample_radius must be non-negative")
        if self.blur_radius < 0:
            raise ValueError("blur_radius must be non-negative")
        if len(self.fallback_color) != 4 or any(not 0 <= int(c) <= 255 for c in self.fallback_color):
            raise ValueError("fallback_color must be four values between 0 and 255")

@dataclass
class ExportOptions:
    """Output encoding. PNG is lossless and keeps alpha."""
    format: str = "png"
    quality: int = 95

    def __post_init__(self) -> None:
        self.format = self.format.lower()
        if self.format not in EXPORT_FORMATS:
            raise ValueError(f"Invalid export format: {self.format}. Must be one of {sorted(set(EXPORT_FORMATS))}")
        if not 0 <= self.quality <= 100:
            raise ValueError("quality must be between 0 and 100")

@dataclass
class UnmarkConfig:
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    inpaint: InpaintConfig = field(default_factory=InpaintConfig)
    export: ExportOptions = field(default_factory=ExportOptions)

def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Sequence[str]] = None
) -> UnmarkConfig:
    """Load configuration from defaults, an optional YAML file and overrides.

    Args:
        path: Optional YAML file with any subset of the config keys
        overrides: Optional dotlist such as ["detector.block_size=16"]

    Returns:
        Fully populated configuration

    Raises:
        FileNotFoundError: If ``path`` does not exist
        ValueError: If a value fails validation
        omegaconf.errors.OmegaConfBaseException: If a key is unknown or a
            value has the wrong type
    """
    schema = OmegaConf.structured(UnmarkConfig)
    sources = [schema]

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        logger.info(f"Loading config from {path}")
        sources.append(OmegaConf.load(path))

    if overrides:
        logger.debug(f"Applying config overrides: {list(overrides)}")
        sources.append(OmegaConf.from_dotlist(list(overrides)))

    merged = OmegaConf.merge(*sources)
    return OmegaConf.to_object(merged)
