"""
Pixel Grid Module

A pixel grid is a read-only numpy array of shape (height, width, 4) holding
R, G, B, A samples at 16-bit precision. 8-bit sources are widened with
v * 257 (v << 8 | v) so that full intensity 255 maps to 65535.
"""

import logging
from typing import Sequence, Union

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

CHANNEL_MAX = np.iinfo(np.uint16).max
WIDEN_FACTOR = 257


def color_from_rgba8(
    red: int,
    green: int,
    blue: int,
    alpha: int = 255
) -> np.ndarray:
    """
    Build a 16-bit RGBA color from 8-bit channel values.

    Example:
        >>> color_from_rgba8(255, 0, 0)
        array([65535,     0,     0, 65535], dtype=uint16)
    """
    values = np.array([red, green, blue, alpha], dtype=np.int64)
    if values.min() < 0 or values.max() > 255:
        raise ValueError(f"8-bit channel values must be within 0-255, got {values.tolist()}")
    return (values * WIDEN_FACTOR).astype(np.uint16)


def parse_color(value: Sequence[int]) -> np.ndarray:
    """Convert an [r, g, b] or [r, g, b, a] list of 8-bit values into a 16-bit color."""
    channels = list(value)
    if len(channels) == 3:
        channels.append(255)
    if len(channels) != 4:
        raise ValueError(f"Color must have 3 or 4 channels, got {len(channels)}")
    return color_from_rgba8(*(int(c) for c in channels))


def as_pixel_grid(image: Union[np.ndarray, Image.Image]) -> np.ndarray:
    """
    Convert an image into a 16-bit RGBA pixel grid.

    Args:
        image: PIL Image or numpy array (uint8 or uint16; grayscale, RGB or RGBA)

    Returns:
        Array of shape (height, width, 4), dtype uint16

    Raises:
        TypeError: If image type is not supported
        ValueError: If image shape or dtype is not supported
    """
    if isinstance(image, Image.Image):
        if image.mode not in ("RGB", "RGBA", "L"):
            image = image.convert("RGBA")
        image = np.array(image)
    elif not isinstance(image, np.ndarray):
        raise TypeError(f"Image must be PIL Image or numpy array, got {type(image)}")

    if image.size == 0:
        raise ValueError("Input image is empty")

    if image.dtype == np.uint8:
        widened = image.astype(np.uint16) * WIDEN_FACTOR
    elif image.dtype == np.uint16:
        widened = image.copy()
    else:
        raise ValueError(f"Unsupported image dtype: {image.dtype}")

    if widened.ndim == 2:
        widened = np.repeat(widened[:, :, np.newaxis], 3, axis=2)
    elif widened.ndim != 3 or widened.shape[2] not in (3, 4):
        raise ValueError(f"Unexpected image shape: {image.shape}")

    if widened.shape[2] == 3:
        alpha = np.full(widened.shape[:2] + (1,), CHANNEL_MAX, dtype=np.uint16)
        widened = np.concatenate([widened, alpha], axis=2)

    logger.debug(f"Built pixel grid: shape={widened.shape}")

    return widened


def validate_pixel_grid(grid: np.ndarray) -> bool:
    """Check that an array has the pixel grid layout."""
    if not isinstance(grid, np.ndarray):
        return False

    if grid.ndim != 3 or grid.shape[2] != 4:
        return False

    if grid.dtype != np.uint16:
        return False

    return True
