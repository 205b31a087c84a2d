"""
Debug Output Module

Builds debug visualizations of a processed frame and persists them through a
sink, so the measurement core stays free of filesystem access.

Artifacts:
- debugimage: grayscale image, one value per column per row, taken from the
  clipped deviation profile (dark = close to the laser color)
- troughimage: the debug image in color with detected troughs marked red
"""

import logging
import os
from typing import Dict, Mapping, Protocol, Sequence

import cv2
import numpy as np

from .errors import SinkError

logger = logging.getLogger(__name__)

DEBUG_IMAGE_KEY = "debugimage"
TROUGH_IMAGE_KEY = "troughimage"


class DebugSink(Protocol):
    def write(self, image: np.ndarray, name: str) -> None:
        ...


def render_debug_image(profiles: np.ndarray) -> np.ndarray:
    """
    Render clipped deviation profiles as a grayscale image.

    Args:
        profiles: uint16 array of shape (height, width), one profile per row

    Returns:
        uint8 grayscale image with the high byte of every score

    Example:
        >>> image = render_debug_image(np.array([[65535, 0, 65535]], dtype=np.uint16))
        >>> image.tolist()
        [[255, 0, 255]]
    """
    return (np.asarray(profiles, dtype=np.uint16) >> 8).astype(np.uint8)


def render_trough_image(
    debug_image: np.ndarray,
    troughs_per_row: Sequence[Sequence[int]],
    color: tuple = (0, 0, 255)
) -> np.ndarray:
    """
    Mark trough positions on a grayscale debug image.

    Args:
        debug_image: uint8 grayscale image from render_debug_image
        troughs_per_row: Trough column indices for every row
        color: Marker color in BGR (default: red)

    Returns:
        BGR image
    """
    annotated = cv2.cvtColor(debug_image, cv2.COLOR_GRAY2BGR)

    for y, troughs in enumerate(troughs_per_row):
        for x in troughs:
            annotated[y, x] = color

    return annotated


class FileDebugSink:
    """Writes debug images to the files named in the debug options."""

    def __init__(self, filenames: Mapping[str, str]) -> None:
        self.filenames = dict(filenames)

    def write(self, image: np.ndarray, name: str) -> None:
        """
        Persist an image under the path configured for name.

        Existing files are replaced.

        Raises:
            SinkError: If no path is configured or the image can't be written
        """
        path = self.filenames.get(name)
        if not path:
            raise SinkError(f"No debug filename configured for '{name}'")

        try:
            if os.path.exists(path):
                os.remove(path)
            written = cv2.imwrite(path, image)
        except (OSError, cv2.error) as e:
            raise SinkError(f"Failed to write debug image {path}: {e}") from e

        if not written:
            raise SinkError(f"Failed to encode debug image {path}")

        logger.info(f"Saved debug image '{name}' to {path}")


class MemoryDebugSink:
    """Keeps debug images in memory, keyed by name."""

    def __init__(self) -> None:
        self.images: Dict[str, np.ndarray] = {}

    def write(self, image: np.ndarray, name: str) -> None:
        self.images[name] = image.copy()
