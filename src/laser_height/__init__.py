"""
Laser Line Height Measurement

Reconstructs per-row surface height from a camera frame showing one or two
projected laser lines. With one line the surface is at the calibration
baseline; with two lines their pixel distance, divided by the calibrated
pixels per millimeter, is the height.

Main components:
- color_distance: Euclidean and redmean distances to the laser color
- deviation_profile: per-row distance profiles, clipped to near/far
- trough_detection: valley detection under width/depth constraints
- height_calculation: troughs -> millimeters
- options: processor options, validation and YAML loading
- frame_processor: frame, encoded frame and video orchestration
- frame_decoding, video_reader, preprocessing, debug_output: frame I/O and debugging

Example usage:
    from laser_height import compute_heights, load_processor_options
    from laser_height.frame_decoding import load_frame

    options = load_processor_options("scanner.yaml")
    heights = compute_heights(load_frame("frame.png"), options)

    for row, height in heights.items():
        print(f"row {row}: {height:.2f}mm")
"""

__version__ = "0.1.0"

from .errors import (
    AmbiguousRowError,
    ConfigurationError,
    DecodeError,
    LaserHeightError,
    RangeError,
    SinkError,
)
from .frame_processor import compute_heights, process_frame
from .options import (
    CalibrationResults,
    DebugOptions,
    ProcessorOptions,
    load_processor_options,
)

__all__ = [
    'compute_heights',
    'process_frame',
    'load_processor_options',
    'ProcessorOptions',
    'CalibrationResults',
    'DebugOptions',
    'LaserHeightError',
    'ConfigurationError',
    'RangeError',
    'DecodeError',
    'AmbiguousRowError',
    'SinkError',
]
