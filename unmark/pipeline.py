"""Detection and removal pipeline for one image.

``detect_watermarks`` and ``remove_watermarks`` are one-shot helpers that go
from encoded bytes (or a path) to regions and back to encoded bytes.
``RemovalSession`` keeps the state of one editing session: the decoded
image, the ordered list of regions the user has drawn or accepted, the
processing status and the export options.
"""

from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence

import numpy as np

from .buffer import PixelBuffer, Region
from .config import DetectorConfig, ExportOptions, InpaintConfig, UnmarkConfig
from .detector import RegionDetector, detect_regions
from .inpaint import CancelCheck, ProgressCallback, RegionInpainter
from .utils import ImageSource, encode_image, read_source, setup_logger

logger = setup_logger(__name__)

Stage = Literal["idle", "detecting", "removing", "exporting", "complete"]


@dataclass
class ProcessingStatus:
    is_processing: bool = False
    progress: float = 0.0
    stage: Stage = "idle"
    error: Optional[str] = None


def detect_watermarks(source: ImageSource, config: Optional[DetectorConfig] = None) -> List[Region]:
    """Decode an image and return candidate watermark regions.

    Raises:
        DecodeError: If the image cannot be decoded
    """
    return detect_regions(source, config)


def remove_watermarks(
    source: ImageSource,
    regions: Sequence[Region],
    on_progress: Optional[ProgressCallback] = None,
    seed: Optional[int] = None,
    export: Optional[ExportOptions] = None,
    config: Optional[InpaintConfig] = None
) -> bytes:
    """Remove regions from an image and return the re-encoded result.

    A PixelBuffer source is copied first, so the caller's pixels are left
    untouched.

    Args:
        source: Image bytes, path, or PixelBuffer
        regions: Regions in processing order
        on_progress: Optional callback receiving a percentage per region
        seed: Optional seed for the sampling step
        export: Output format and quality, PNG by default
        config: Optional inpainting configuration

    Returns:
        Encoded image bytes

    Raises:
        DecodeError: If the image cannot be decoded
        OutOfBoundsError: If a region maps to an empty rectangle
    """
    buffer = read_source(source)
    if isinstance(source, PixelBuffer):
        buffer = buffer.copy()

    export = export or ExportOptions()
    # Without an explicit seed the configured one (if any) applies
    rng = np.random.default_rng(seed) if seed is not None else None
    RegionInpainter(config).remove(buffer, regions, on_progress=on_progress, rng=rng)
    return encode_image(buffer, export.format, export.quality)


class RemovalSession:
    """Editing state for removing watermarks from a single image.

    Regions are kept in the order they were added; detection appends its
    results after any manual regions without deduplicating them.
    """

    def __init__(self, source: ImageSource, config: Optional[UnmarkConfig] = None) -> None:
        """Open a session.

        Args:
            source: Image bytes, path, or PixelBuffer (copied)
            config: Optional configuration for detection, inpainting and export

        Raises:
            DecodeError: If the image cannot be decoded
        """
        self.config = config or UnmarkConfig()
        self.original = read_source(source).copy()
        self.processed: Optional[PixelBuffer] = None
        self.regions: List[Region] = []
        self.status = ProcessingStatus()
        self.export_options = self.config.export

    def add_region(self, region: Region) -> None:
        self.regions.append(region)

    def remove_region(self, index: int) -> Region:
        """Remove and return the region at ``index``.

        Raises:
            IndexError: If there is no region at ``index``
        """
        return self.regions.pop(index)

    def clear_regions(self) -> None:
        self.regions.clear()

    def set_export_options(self, format: Optional[str] = None, quality: Optional[int] = None) -> ExportOptions:
        self.export_options = ExportOptions(
            format=format if format is not None else self.export_options.format,
            quality=quality if quality is not None else self.export_options.quality,
        )
        return self.export_options

    def detect(self) -> List[Region]:
        """Run detection on the original image and append the results.

        Returns:
            The newly detected regions
        """
        self._update(is_processing=True, stage="detecting", progress=0.0, error=None)
        try:
            detected = RegionDetector(self.config.detector).detect(self.original)
        except Exception as e:
            self._fail(e)
            raise

        self.regions.extend(detected)
        self._update(is_processing=False, stage="idle")
        logger.info(f"Session now holds {len(self.regions)} region(s) ({len(detected)} detected)")
        return detected

    def remove(
        self,
        on_progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None
    ) -> bytes:
        """Remove all session regions from a fresh copy of the original image.

        Args:
            on_progress: Optional callback receiving a percentage per region
            should_cancel: Optional check run before each region

        Returns:
            The processed image encoded with the session's export options
        """
        if not self.regions:
            raise ValueError("No regions selected for removal")

        self._update(is_processing=True, stage="removing", progress=0.0, error=None)
        buffer = self.original.copy()

        def report(percent: float) -> None:
            self.status.progress = percent
            if on_progress is not None:
                on_progress(percent)

        try:
            RegionInpainter(self.config.inpaint).remove(
                buffer, self.regions, on_progress=report, should_cancel=should_cancel
            )
            self._update(stage="exporting")
            encoded = encode_image(buffer, self.export_options.format, self.export_options.quality)
        except Exception as e:
            self._fail(e)
            raise

        self.processed = buffer
        self._update(is_processing=False, stage="complete", progress=100.0)
        return encoded

    def reset(self) -> None:
        """Drop regions, results and status; keep the loaded image."""
        self.regions.clear()
        self.processed = None
        self.status = ProcessingStatus()
        self.export_options = self.config.export

    def _update(self, **changes) -> None:
        for key, value in changes.items():
            setattr(self.status, key, value)

    def _fail(self, error: Exception) -> None:
        logger.error(f"{self.status.stage.capitalize()} failed: {error}")
        self._update(is_processing=False, error=str(error))
