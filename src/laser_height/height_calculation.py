"""
Height Calculation Module

Maps the troughs of one row to a physical height:
- 1 trough: the surface is at the calibration baseline, height 0
- 2 troughs: height is the pixel distance between them over pixel_per_mm
- anything else: ambiguous row

Only pixel_per_mm is used. distance_at_0, distance_at_10 and width_of_laser
are carried in CalibrationResults for a non-linear calibration curve that
interpolates between the two calibrated heights.
"""

import logging
from typing import Optional, Sequence

from .errors import AmbiguousRowError
from .options import CalibrationResults

logger = logging.getLogger(__name__)

AMBIGUOUS_ROW_HEIGHT = -1.0


def calculate_height(
    troughs: Sequence[int],
    calibration: CalibrationResults,
    strict: bool = False,
    row: Optional[int] = None
) -> float:
    """
    Calculate the height in millimeters for one row.

    Args:
        troughs: Trough column indices of the row
        calibration: Calibration results providing pixel_per_mm
        strict: Raise instead of returning the sentinel for ambiguous rows
        row: Row index, used in messages only

    Returns:
        Height in mm, or AMBIGUOUS_ROW_HEIGHT for rows without 1 or 2 troughs

    Raises:
        AmbiguousRowError: If strict and the trough count is not 1 or 2

    Example:
        >>> calculate_height([10, 50], CalibrationResults(pixel_per_mm=2.0))
        20.0
    """
    if len(troughs) == 1:
        return 0.0

    if len(troughs) == 2:
        pixel_distance = abs(troughs[0] - troughs[1])
        return pixel_distance / calibration.pixel_per_mm

    message = f"Required 1 or 2 troughs but got {len(troughs)} for line {row} ({list(troughs)})"
    if strict:
        raise AmbiguousRowError(message, row=row, trough_count=len(troughs))

    logger.debug(message)
    return AMBIGUOUS_ROW_HEIGHT


def is_ambiguous(height: float) -> bool:
    """Whether a height is the ambiguous-row sentinel."""
    return height == AMBIGUOUS_ROW_HEIGHT
