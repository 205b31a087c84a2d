"""
Deviation Profile Module

Turns one image row into a sequence of distances to the laser color.
Distances above the configured maximum collapse onto a single plateau
(DISTANCE_MAX) so the trough detector only has to tell "near" from "far".
"""

import logging
from typing import NamedTuple

import numpy as np

from .color_distance import DISTANCE_MAX, ColorDistance, redmean_distance

logger = logging.getLogger(__name__)


class DeviationProfile(NamedTuple):
    """Clipped profile of one row plus the range of its unclipped distances."""
    values: np.ndarray
    min_deviation: int
    max_deviation: int


def compute_raw_profile(
    row_pixels: np.ndarray,
    laser_color: np.ndarray,
    metric: ColorDistance = redmean_distance
) -> np.ndarray:
    """
    Distance of every pixel in a row to the laser color, without clipping.

    Args:
        row_pixels: Array of shape (width, 4), 16-bit RGBA
        laser_color: 16-bit RGBA reference color
        metric: Color distance function

    Returns:
        uint16 array of length width
    """
    return metric(row_pixels, laser_color)


def clip_profile(profile: np.ndarray, max_color_deviation: int) -> np.ndarray:
    """Replace every distance above max_color_deviation with DISTANCE_MAX."""
    return np.where(
        profile > max_color_deviation,
        np.uint16(DISTANCE_MAX),
        profile
    ).astype(np.uint16)


def build_deviation_profile(
    row_pixels: np.ndarray,
    laser_color: np.ndarray,
    max_color_deviation: int,
    metric: ColorDistance = redmean_distance
) -> DeviationProfile:
    """
    Build the clipped deviation profile of one row.

    Args:
        row_pixels: Array of shape (width, 4), 16-bit RGBA
        laser_color: 16-bit RGBA reference color
        max_color_deviation: Distances above this become DISTANCE_MAX
        metric: Color distance function

    Returns:
        DeviationProfile whose values hold one uint16 score per column (same
        length as the row); min/max are taken before clipping

    Example:
        >>> row = as_pixel_grid(image)[0]
        >>> profile = build_deviation_profile(row, red, max_color_deviation=10000)
        >>> profile.values.shape == (row.shape[0],)
        True
    """
    raw = compute_raw_profile(row_pixels, laser_color, metric)

    return DeviationProfile(
        values=clip_profile(raw, max_color_deviation),
        min_deviation=int(raw.min()) if raw.size else 0,
        max_deviation=int(raw.max()) if raw.size else 0
    )
