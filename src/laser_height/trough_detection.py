"""
Trough Detection Module

Finds the columns of a deviation profile where the laser line sits. A laser
line shows up as a local minimum in "distance to laser color". To count, the
minimum has to look like a valley of at least min_through_width columns:

    ideal trough      trough with noise

    xx         xx     x         x
      xx     xx        xx    x x
        xx xx            xx x x
          x                x

- both window edges are at least min_through_height above the centre
- walking from the centre to an edge, no value drops below the centre
- and no value rises above that edge

Per-pixel jitter smaller than min_through_height therefore does not create
or remove troughs. The first and last (width - 1) / 2 columns can never be
the centre of a full window and are never reported.
"""

import logging
from typing import List

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def validate_trough_width(min_through_width: int) -> int:
    """
    Check the trough window width and return its half width.

    Raises:
        ConfigurationError: If the width is not a positive odd integer
    """
    if (
        isinstance(min_through_width, bool)
        or not isinstance(min_through_width, (int, np.integer))
        or min_through_width < 1
        or min_through_width % 2 != 1
    ):
        raise ConfigurationError(
            f"The minimum trough width needs to be a positive odd number, got {min_through_width!r}",
            stage="trough_detection"
        )
    return (int(min_through_width) - 1) // 2


def trough_mask(
    profile: np.ndarray,
    min_through_width: int,
    min_through_height: int
) -> np.ndarray:
    """
    Evaluate the trough predicate for every column.

    Returns:
        Boolean array of the profile's length; edge columns are always False
    """
    half = validate_trough_width(min_through_width)
    values = np.asarray(profile).astype(np.int64)
    mask = np.zeros(values.shape[0], dtype=bool)

    if values.shape[0] < min_through_width:
        return mask

    # One row per candidate centre, columns are the window [i - half, i + half]
    windows = sliding_window_view(values, min_through_width)
    center = windows[:, half][:, np.newaxis]
    left_edge = windows[:, 0][:, np.newaxis]
    right_edge = windows[:, -1][:, np.newaxis]

    deep_enough = (
        (left_edge[:, 0] - center[:, 0] >= min_through_height)
        & (right_edge[:, 0] - center[:, 0] >= min_through_height)
    )

    left_inner = windows[:, 1:half]
    right_inner = windows[:, half + 1:-1]

    left_ok = np.all((left_inner >= center) & (left_inner <= left_edge), axis=1)
    right_ok = np.all((right_inner >= center) & (right_inner <= right_edge), axis=1)

    mask[half:values.shape[0] - half] = deep_enough & left_ok & right_ok

    return mask


def find_troughs(
    profile: np.ndarray,
    min_through_width: int,
    min_through_height: int
) -> List[int]:
    """
    Find the column indices of all troughs in a deviation profile.

    Args:
        profile: uint16 deviation profile of one row
        min_through_width: Window width, positive and odd
        min_through_height: Minimum depth of the centre below both edges

    Returns:
        Ascending list of column indices

    Raises:
        ConfigurationError: If min_through_width is not a positive odd integer

    Example:
        >>> find_troughs(np.array([9, 9, 0, 9, 9], dtype=np.uint16), 3, 1)
        [2]
    """
    mask = trough_mask(profile, min_through_width, min_through_height)
    troughs = np.flatnonzero(mask).tolist()

    logger.debug(f"Found {len(troughs)} troughs: {troughs}")

    return troughs
