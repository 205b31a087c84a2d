#!/usr/bin/env python3
"""
Example usage script for laser line height measurement

Demonstrates:
1. Loading options from YAML
2. Measuring a synthetic frame
3. Handling ambiguous rows
4. Capturing the debug image in memory
"""

import logging
import sys
from dataclasses import replace
from pathlib import Path

import numpy as np

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from laser_height import CalibrationResults, load_processor_options, process_frame
from laser_height.debug_output import DEBUG_IMAGE_KEY, MemoryDebugSink
from laser_height.errors import AmbiguousRowError
from laser_height.height_calculation import is_ambiguous
from laser_height.options import DebugOptions

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def make_frame(width=200, rows=50, baseline=100, step_rows=25, step_px=42, line_px=1):
    """
    Synthetic frame: one red line at the baseline for the first rows, then a
    second line step_px to the right for the rest (a 10mm step at 4.2px/mm).
    """
    frame = np.zeros((rows, width, 4), dtype=np.uint8)
    frame[..., 3] = 255

    half = line_px // 2
    frame[:, baseline - half:baseline + half + 1, 0] = 255
    frame[step_rows:, baseline + step_px - half:baseline + step_px + half + 1, 0] = 255

    # Darker shoulders so every line is a valley, not a plateau
    for offset in range(half + 1, half + 8):
        level = max(0, 255 - 30 * (offset - half))
        frame[:, baseline - offset, 0] = level
        frame[:, baseline + offset, 0] = level
        frame[step_rows:, baseline + step_px - offset, 0] = level
        frame[step_rows:, baseline + step_px + offset, 0] = level

    return frame


def example_1_load_options(config_path):
    """
    Example 1: Load processor options from YAML
    """
    print("\n" + "=" * 70)
    print("EXAMPLE 1: Options from YAML")
    print("=" * 70)

    options = load_processor_options(str(config_path))

    print(f"  Config: {config_path}")
    print(f"  Metric: {options.color_metric}")
    print(f"  Trough width/height: {options.min_through_width}/{options.min_through_height}")
    print(f"  Pixel per mm: {options.calibration.pixel_per_mm}")

    return options


def example_2_synthetic_frame(options):
    """
    Example 2: Measure a synthetic frame with a 10mm step
    """
    print("\n" + "=" * 70)
    print("EXAMPLE 2: Synthetic Frame")
    print("=" * 70)

    result = process_frame(make_frame(), options)

    heights = [h for h in result.heights.values() if not is_ambiguous(h)]
    print(f"  Rows: {len(result.heights)}")
    print(f"  Ambiguous rows: {len(result.ambiguous_rows)}")
    if heights:
        print(f"  Height range: {min(heights):.2f}mm - {max(heights):.2f}mm")
    print(f"  Processing Time: {result.processing_time_ms:.1f}ms")


def example_3_ambiguous_rows(options):
    """
    Example 3: Rows without a laser line, lenient and strict
    """
    print("\n" + "=" * 70)
    print("EXAMPLE 3: Ambiguous Rows")
    print("=" * 70)

    frame = make_frame()
    frame[:10, :, 0] = 0  # laser blocked in the first rows

    result = process_frame(frame, options)
    print(f"  Lenient: {len(result.ambiguous_rows)} ambiguous rows, first height {result.heights[0]}")

    try:
        process_frame(frame, replace(options, strict_rows=True))
    except AmbiguousRowError as e:
        print(f"  Strict: {e}")


def example_4_debug_image(options):
    """
    Example 4: Keep the deviation debug image in memory
    """
    print("\n" + "=" * 70)
    print("EXAMPLE 4: Debug Image")
    print("=" * 70)

    sink = MemoryDebugSink()
    options = replace(options, debug=DebugOptions(enabled=True))

    process_frame(make_frame(), options, sink=sink)

    image = sink.images[DEBUG_IMAGE_KEY]
    print(f"  Debug image: {image.shape[1]}x{image.shape[0]}, darkest value {image.min()}")


def main():
    options = example_1_load_options(Path(__file__).parent / "scanner.yaml")

    # The synthetic lines are narrow, use a smaller window than the camera config
    options = replace(
        options,
        min_through_width=5,
        min_through_height=1,
        calibration=CalibrationResults(pixel_per_mm=4.2),
    )

    example_2_synthetic_frame(options)
    example_3_ambiguous_rows(options)
    example_4_debug_image(options)


if __name__ == "__main__":
    main()
