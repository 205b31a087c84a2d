"""
Color Distance Module

Scores how far a pixel is from the reference laser color. Both metrics return
uint16 distances where 0 means identical and larger means more dissimilar.
They accept single colors or arrays of colors with RGBA on the last axis, all
at 16-bit channel precision.

Metrics:
- euclidean: straight-line distance in 16-bit RGB space, halved
- redmean: low-cost perceptual approximation on 8-bit channels

The rest of the pipeline only relies on "smaller = closer to the laser".
"""

import logging
from typing import Callable, Dict

import numpy as np

from .errors import ConfigurationError, RangeError

logger = logging.getLogger(__name__)

DISTANCE_MAX = int(np.iinfo(np.uint16).max)

# sqrt(3) * 65535 / 2 is ~56755; anything past this bound is a bug, not a color
EUCLIDEAN_HARD_LIMIT = 65601.0

# Empirical maximum of the raw redmean formula used for scaling to 16 bit
REDMEAN_RAW_MAX = 675.0

ColorDistance = Callable[[np.ndarray, np.ndarray], np.ndarray]


def _rgb_channels(color: np.ndarray):
    color = np.asarray(color)
    return (
        color[..., 0].astype(np.float64),
        color[..., 1].astype(np.float64),
        color[..., 2].astype(np.float64),
    )


def euclidean_distance(color1: np.ndarray, color2: np.ndarray) -> np.ndarray:
    """
    Euclidean RGB distance at 16-bit precision, divided by 2 to fit uint16.

    Args:
        color1: RGBA color(s), 16-bit channels
        color2: RGBA color(s), 16-bit channels, broadcastable against color1

    Returns:
        uint16 distance(s)

    Raises:
        RangeError: If a distance is negative or exceeds EUCLIDEAN_HARD_LIMIT

    Example:
        >>> red = color_from_rgba8(255, 0, 0)
        >>> int(euclidean_distance(red, red))
        0
    """
    r1, g1, b1 = _rgb_channels(color1)
    r2, g2, b2 = _rgb_channels(color2)

    distance = np.sqrt((r1 - r2) ** 2 + (g1 - g2) ** 2 + (b1 - b2) ** 2) / 2

    if np.any(distance < 0):
        raise RangeError(f"Distance is < 0 ({float(np.min(distance))}) which should not be possible")

    if np.any(distance > EUCLIDEAN_HARD_LIMIT):
        raise RangeError(
            f"Distance is > {EUCLIDEAN_HARD_LIMIT} ({float(np.max(distance))}) "
            f"which should not be possible"
        )

    return np.minimum(distance, DISTANCE_MAX).astype(np.uint16)


def redmean_distance(color1: np.ndarray, color2: np.ndarray) -> np.ndarray:
    """
    Redmean color difference on 8-bit reduced channels, scaled to uint16.

    The red and blue weights follow the mean red level of both colors:
        r_mean = (r1 + r2) / 2
        raw = sqrt((2 + r_mean/256) * dR^2 + 4 * dG^2 + (2 + (255 - r_mean)/256) * dB^2)
        distance = round(raw * 65535 / 675)

    The raw formula can exceed 675 for extreme color pairs (black against
    white), so the scaled result is clipped to the uint16 range.

    Example:
        >>> black = color_from_rgba8(0, 0, 0, 0)
        >>> int(redmean_distance(black, color_from_rgba8(255, 0, 0))) > 10000
        True
    """
    r1, g1, b1 = (np.floor(c / 256) for c in _rgb_channels(color1))
    r2, g2, b2 = (np.floor(c / 256) for c in _rgb_channels(color2))

    r_mean = 0.5 * (r1 + r2)
    raw = np.sqrt(
        (2 + r_mean / 256) * (r1 - r2) ** 2
        + 4 * (g1 - g2) ** 2
        + (2 + (255 - r_mean) / 256) * (b1 - b2) ** 2
    )

    scaled = np.rint(raw * DISTANCE_MAX / REDMEAN_RAW_MAX)

    return np.clip(scaled, 0, DISTANCE_MAX).astype(np.uint16)


COLOR_METRICS: Dict[str, ColorDistance] = {
    'euclidean': euclidean_distance,
    'redmean': redmean_distance,
}


def get_color_metric(name: str) -> ColorDistance:
    """
    Look up a color distance function by name.

    Raises:
        ConfigurationError: If no metric is registered under that name
    """
    try:
        return COLOR_METRICS[name]
    except KeyError:
        valid = ", ".join(sorted(COLOR_METRICS))
        raise ConfigurationError(
            f"Color metric \"{name}\" is invalid. Valid values are: {valid}"
        ) from None
