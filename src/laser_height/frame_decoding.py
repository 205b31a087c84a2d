"""
Frame Decoding Module

Converts encoded frames (JPEG, PNG, ...) and OpenCV video frames into pixel
grids.
"""

import io
import logging

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError
from .pixel_grid import as_pixel_grid

logger = logging.getLogger(__name__)


def decode_frame(data: bytes) -> np.ndarray:
    """
    Decode an encoded image into a pixel grid.

    Args:
        data: Encoded image bytes

    Returns:
        Pixel grid of shape (height, width, 4), dtype uint16

    Raises:
        DecodeError: If the bytes are not a decodable image

    Example:
        >>> with open("frame.png", "rb") as f:
        ...     grid = decode_frame(f.read())
    """
    if not data:
        raise DecodeError("Frame is empty")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            grid = as_pixel_grid(image)
    except (UnidentifiedImageError, OSError, SyntaxError, EOFError, ValueError, TypeError) as e:
        raise DecodeError(f"Failed to decode frame ({len(data)} bytes): {e}") from e

    logger.debug(f"Decoded frame: {grid.shape[1]}x{grid.shape[0]}")

    return grid


def load_frame(image_path: str) -> np.ndarray:
    """
    Read an image file and decode it into a pixel grid.

    Raises:
        FileNotFoundError: If the image file doesn't exist
        DecodeError: If the file is not a decodable image
    """
    with open(image_path, "rb") as f:
        data = f.read()
    return decode_frame(data)


def bgr_frame_to_pixel_grid(frame: np.ndarray) -> np.ndarray:
    """
    Convert an OpenCV frame (BGR or BGRA, uint8 or uint16) into a pixel grid.

    Raises:
        DecodeError: If the frame does not have a BGR layout
    """
    if not isinstance(frame, np.ndarray) or frame.ndim != 3 or frame.shape[2] not in (3, 4):
        shape = getattr(frame, "shape", None)
        raise DecodeError(f"Expected a BGR frame, got shape {shape}")

    if frame.shape[2] == 4:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGRA2RGBA)
    else:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    try:
        return as_pixel_grid(rgb)
    except ValueError as e:
        raise DecodeError(f"Unsupported frame: {e}") from e
