"""
Shared fixtures for laser height tests
"""

import pytest

from laser_height.options import CalibrationResults, ProcessorOptions

from frame_builders import SCENARIO_ROWS, grid_from_rows


@pytest.fixture
def scenario_options():
    """Options for the 7x3 scenario frames"""
    return ProcessorOptions(
        line_direction="horizontal",
        max_color_deviation=10000,
        min_through_width=3,
        min_through_height=1,
        calibration=CalibrationResults(
            distance_at_0=0,
            distance_at_10=10,
            width_of_laser=1,
            pixel_per_mm=1,
        ),
    )


@pytest.fixture
def scenario_grid():
    """Clean scenario frame with transparent background"""
    return grid_from_rows(SCENARIO_ROWS)
