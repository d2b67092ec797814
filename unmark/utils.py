"""Shared utilities and type definitions for unmark."""

import cv2
import numpy as np
from pathlib import Path
from typing import List, Tuple, Union
import logging

from .buffer import PixelBuffer
from .errors import DecodeError

# Type aliases for clarity
ImageArray = np.ndarray  # H×W×4 RGBA uint8
Color = Tuple[int, int, int]  # RGB color tuple
ImagePath = Union[str, Path]
ImageSource = Union[bytes, str, Path, PixelBuffer]

# Supported image extensions
IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.tiff', '.tif', '.webp'}

# Export formats and the extension cv2.imencode expects for each
EXPORT_FORMATS = {'png': '.png', 'jpg': '.jpg', 'jpeg': '.jpg', 'webp': '.webp'}

def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Set up a logger with consistent formatting.

    Args:
        name: Logger name
        level: Logging level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:  # Avoid duplicate handlers
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger

def decode_image(data: bytes) -> PixelBuffer:
    """Decode encoded image bytes (PNG, JPEG, WEBP, BMP, TIFF) into RGBA.

    Args:
        data: Encoded image file contents

    Returns:
        Decoded pixel buffer

    Raises:
        DecodeError: If the bytes are empty, corrupt, or not a supported raster
    """
    if not data:
        raise DecodeError("Could not decode image: no data")

    try:
        decoded = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DecodeError(f"Could not decode image: {e}") from e

    if decoded is None or decoded.size == 0:
        raise DecodeError("Could not decode image: unsupported format or corrupt data")

    return PixelBuffer(_to_rgba(decoded))

def _to_rgba(decoded: np.ndarray) -> ImageArray:
    """Convert an OpenCV decode result (gray, BGR or BGRA, 8 or 16 bit) to RGBA uint8."""
    if decoded.dtype == np.uint16:
        decoded = (decoded >> 8).astype(np.uint8)
    elif decoded.dtype != np.uint8:
        raise DecodeError(f"Could not decode image: unsupported sample type {decoded.dtype}")

    if decoded.ndim == 2:
        return cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGBA)

    channels = decoded.shape[2]
    if channels == 1:
        return cv2.cvtColor(decoded[:, :, 0], cv2.COLOR_GRAY2RGBA)
    if channels == 3:
        return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGBA)
    if channels == 4:
        return cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)

    raise DecodeError(f"Could not decode image: unsupported channel count {channels}")

def load_image(image_path: ImagePath) -> PixelBuffer:
    """Load an image from file path.

    Args:
        image_path: Path to image file

    Returns:
        Decoded RGBA pixel buffer

    Raises:
        DecodeError: If image cannot be read or decoded
    """
    try:
        data = Path(image_path).read_bytes()
    except OSError as e:
        raise DecodeError(f"Could not load image: {image_path}") from e

    try:
        return decode_image(data)
    except DecodeError as e:
        raise DecodeError(f"Could not load image: {image_path} ({e})") from e

def read_source(source: ImageSource) -> PixelBuffer:
    """Turn bytes, a path, or an existing buffer into a pixel buffer.

    Buffers are returned as-is so callers share the same pixels.
    """
    if isinstance(source, PixelBuffer):
        return source
    if isinstance(source, (bytes, bytearray, memoryview)):
        return decode_image(bytes(source))
    return load_image(source)

def encode_image(buffer: PixelBuffer, fmt: str = "png", quality: int = 95) -> bytes:
    """Encode a pixel buffer into an image file format.

    PNG and WEBP keep the alpha channel; JPEG drops it.

    Args:
        buffer: Pixel buffer to encode
        fmt: Output format ("png", "jpg"/"jpeg" or "webp")
        quality: Quality 0-100 for lossy formats

    Returns:
        Encoded file contents

    Raises:
        ValueError: If the format is unsupported or encoding fails
    """
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}. Must be one of {sorted(set(EXPORT_FORMATS))}")

    extension = EXPORT_FORMATS[fmt]
    if extension == '.jpg':
        image = cv2.cvtColor(buffer.pixels, cv2.COLOR_RGBA2BGR)
        params = [cv2.IMWRITE_JPEG_QUALITY, quality]
    elif extension == '.webp':
        image = cv2.cvtColor(buffer.pixels, cv2.COLOR_RGBA2BGRA)
        # OpenCV switches WEBP to lossless above 100
        params = [cv2.IMWRITE_WEBP_QUALITY, max(1, quality)]
    else:
        image = cv2.cvtColor(buffer.pixels, cv2.COLOR_RGBA2BGRA)
        # PNG with high compression (0-9, where 9 is max compression)
        params = [cv2.IMWRITE_PNG_COMPRESSION, 8]

    success, encoded = cv2.imencode(extension, image, params)
    if not success:
        raise ValueError(f"Could not encode image as {fmt}")
    return encoded.tobytes()

def format_for_path(path: ImagePath) -> str:
    """Export format implied by a file suffix, defaulting to PNG."""
    suffix = Path(path).suffix.lower().lstrip('.')
    return suffix if suffix in EXPORT_FORMATS else "png"

def save_image(buffer: PixelBuffer, output_path: ImagePath, quality: int = 95) -> None:
    """Save a pixel buffer to file, choosing the format from the suffix.

    Args:
        buffer: Pixel buffer to save
        output_path: Path where to save the image
        quality: Quality 0-100 for lossy formats

    Raises:
        ValueError: If image cannot be encoded
    """
    output_path = Path(output_path)
    output_path.write_bytes(encode_image(buffer, format_for_path(output_path), quality))

def get_image_files(path: Path) -> List[Path]:
    """Get list of image files from path (file or directory).

    Args:
        path: Path to file or directory

    Returns:
        List of image file paths
    """
    if path.is_file():
        if path.suffix.lower() in IMAGE_EXTENSIONS:
            return [path]
        else:
            return []

    return sorted(f for f in path.glob("*") if f.suffix.lower() in IMAGE_EXTENSIONS)

def parse_color(color: str) -> Color:
    """Parse a hex string (#FF0000) or HTML color name (red) into RGB.

    Args:
        color: Hex color string or HTML color name

    Returns:
        RGB color tuple

    Raises:
        ValueError: If the color is not recognised
    """
    from PIL import ImageColor
    rgb = ImageColor.getrgb(color)
    return (rgb[0], rgb[1], rgb[2])
