"""
Frame Preprocessing Module

Optional smoothing of a pixel grid before the deviation profiles are built.
A Gaussian blur spreads a thin, speckled laser line into a smoother valley,
which lets a wider min_through_width be used on noisy cameras.
"""

import logging

import cv2
import numpy as np

from .errors import ConfigurationError
from .pixel_grid import validate_pixel_grid

logger = logging.getLogger(__name__)


def blur_pixel_grid(grid: np.ndarray, kernel_size: int) -> np.ndarray:
    """
    Apply a square Gaussian blur to every channel of a pixel grid.

    Args:
        grid: Pixel grid of shape (height, width, 4), dtype uint16
        kernel_size: Positive odd kernel width; sigma is derived by OpenCV

    Returns:
        New blurred pixel grid; the input is left untouched

    Raises:
        ConfigurationError: If kernel_size is not a positive odd integer
        ValueError: If grid is not a pixel grid

    Example:
        >>> blurred = blur_pixel_grid(grid, 15)
        >>> blurred.shape == grid.shape
        True
    """
    if kernel_size < 1 or kernel_size % 2 != 1:
        raise ConfigurationError(
            f"Blur kernel size must be a positive odd number, got {kernel_size}",
            stage="preprocessing"
        )

    if not validate_pixel_grid(grid):
        raise ValueError(f"Expected a uint16 (height, width, 4) pixel grid, got {grid.shape} {grid.dtype}")

    blurred = cv2.GaussianBlur(grid, (kernel_size, kernel_size), 0)

    logger.debug(f"Blurred pixel grid with {kernel_size}x{kernel_size} kernel")

    return blurred.astype(np.uint16)
