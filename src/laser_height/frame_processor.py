"""
Frame Processing Module

Orchestrates the height measurement of a frame:
1. Validate options (fails before any row is touched)
2. Optional Gaussian blur of the frame
3. Per row: deviation profile, trough detection, height calculation
4. Assemble the row -> height map
5. Optional debug image through a sink

Rows are pure functions of their own pixels and the options, so they can be
computed on a thread pool. Results land in arrays preallocated per row index,
which needs no locking.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from .color_distance import ColorDistance, get_color_metric
from .debug_output import (
    DEBUG_IMAGE_KEY,
    TROUGH_IMAGE_KEY,
    DebugSink,
    FileDebugSink,
    render_debug_image,
    render_trough_image,
)
from .deviation_profile import build_deviation_profile
from .errors import AmbiguousRowError, DecodeError, RangeError, SinkError
from .frame_decoding import bgr_frame_to_pixel_grid, decode_frame
from .height_calculation import AMBIGUOUS_ROW_HEIGHT, calculate_height
from .options import ProcessorOptions, validate_options
from .pixel_grid import as_pixel_grid, validate_pixel_grid
from .preprocessing import blur_pixel_grid
from .trough_detection import find_troughs
from .video_reader import VideoReader

logger = logging.getLogger(__name__)


@dataclass
class RowResult:
    profile: np.ndarray
    troughs: List[int]
    height: float
    min_deviation: int
    max_deviation: int


@dataclass
class FrameResult:
    heights: Dict[int, float]
    troughs: Dict[int, List[int]]
    ambiguous_rows: List[int]
    min_deviation: int
    max_deviation: int
    processing_time_ms: float
    debug_image: Optional[np.ndarray] = None
    debug_error: Optional[SinkError] = None


@dataclass
class VideoFrameResult:
    frame_index: int
    result: Optional[FrameResult] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def compute_row_height(
    row_pixels: np.ndarray,
    options: ProcessorOptions,
    metric: Optional[ColorDistance] = None,
    row: Optional[int] = None
) -> RowResult:
    """
    Measure the height of a single row.

    Args:
        row_pixels: Array of shape (width, 4), 16-bit RGBA
        options: Processor options (assumed validated)
        metric: Color distance function, defaults to options.color_metric
        row: Row index, used in messages only

    Returns:
        RowResult with the clipped profile, troughs and height

    Raises:
        RangeError: If the color metric leaves the uint16 range
        ConfigurationError: If min_through_width is not a positive odd number
        AmbiguousRowError: If options.strict_rows and the row is ambiguous
    """
    if metric is None:
        metric = get_color_metric(options.color_metric)
    laser_color = np.asarray(options.laser_color, dtype=np.uint16)

    deviation = build_deviation_profile(row_pixels, laser_color, options.max_color_deviation, metric)

    troughs = find_troughs(deviation.values, options.min_through_width, options.min_through_height)

    height = calculate_height(
        troughs,
        options.calibration,
        strict=options.strict_rows,
        row=row
    )

    return RowResult(
        profile=deviation.values,
        troughs=troughs,
        height=height,
        min_deviation=deviation.min_deviation,
        max_deviation=deviation.max_deviation
    )


def process_frame(
    grid: np.ndarray,
    options: ProcessorOptions,
    sink: Optional[DebugSink] = None
) -> FrameResult:
    """
    Measure the height of every row of a frame.

    Args:
        grid: Pixel grid (height, width, 4) uint16, or any image as_pixel_grid accepts
        options: Processor options
        sink: Debug sink; defaults to a FileDebugSink over options.debug.filenames

    Returns:
        FrameResult with the row -> height map. Ambiguous rows hold
        AMBIGUOUS_ROW_HEIGHT unless options.strict_rows is set.

    Raises:
        ConfigurationError: If the options are invalid
        RangeError: If a color distance leaves the uint16 range
        AmbiguousRowError: If options.strict_rows and a row is ambiguous

    Example:
        >>> result = process_frame(grid, options)
        >>> result.heights
        {0: 0.0, 1: 2.0, 2: 4.0}
    """
    start_time = time.time()

    validate_options(options)

    if not validate_pixel_grid(grid):
        grid = as_pixel_grid(grid)

    if options.blur_kernel_size:
        grid = blur_pixel_grid(grid, options.blur_kernel_size)

    metric = get_color_metric(options.color_metric)
    row_count, width = grid.shape[:2]

    logger.debug(f"Processing frame {width}x{row_count} with {options.color_metric} metric")

    heights = np.full(row_count, AMBIGUOUS_ROW_HEIGHT, dtype=np.float64)
    profiles = np.empty((row_count, width), dtype=np.uint16)
    min_deviations = np.zeros(row_count, dtype=np.int64)
    max_deviations = np.zeros(row_count, dtype=np.int64)
    troughs_per_row: List[List[int]] = [[] for _ in range(row_count)]

    def run_row(y: int) -> None:
        try:
            row_result = compute_row_height(grid[y], options, metric=metric, row=y)
        except RangeError as e:
            raise RangeError(f"Failed to calculate diff to laser color for line {y}: {e}") from e

        heights[y] = row_result.height
        profiles[y] = row_result.profile
        min_deviations[y] = row_result.min_deviation
        max_deviations[y] = row_result.max_deviation
        troughs_per_row[y] = row_result.troughs

    if options.max_workers and options.max_workers > 1 and row_count > 1:
        with ThreadPoolExecutor(max_workers=options.max_workers) as executor:
            # list() re-raises the first row failure
            list(executor.map(run_row, range(row_count)))
    else:
        for y in range(row_count):
            run_row(y)

    result_heights = {y: float(heights[y]) for y in range(row_count)}
    ambiguous_rows = [y for y, h in result_heights.items() if h == AMBIGUOUS_ROW_HEIGHT]

    if ambiguous_rows:
        logger.warning(f"{len(ambiguous_rows)}/{row_count} rows are ambiguous")

    min_deviation = int(min_deviations.min()) if row_count else 0
    max_deviation = int(max_deviations.max()) if row_count else 0
    logger.debug(f"MinDiff: {min_deviation}, MaxDiff: {max_deviation}")

    debug_image = None
    debug_error = None

    if options.debug.enabled:
        if sink is None:
            sink = FileDebugSink(options.debug.filenames)

        debug_image = render_debug_image(profiles)

        try:
            sink.write(debug_image, DEBUG_IMAGE_KEY)
            if TROUGH_IMAGE_KEY in options.debug.filenames:
                sink.write(render_trough_image(debug_image, troughs_per_row), TROUGH_IMAGE_KEY)
        except SinkError as e:
            logger.warning(f"Failed to save debug image: {e}")
            debug_error = e

    processing_time = (time.time() - start_time) * 1000

    logger.info(
        f"Frame complete: rows={row_count}, ambiguous={len(ambiguous_rows)}, "
        f"time={processing_time:.1f}ms"
    )

    return FrameResult(
        heights=result_heights,
        troughs={y: troughs_per_row[y] for y in range(row_count)},
        ambiguous_rows=ambiguous_rows,
        min_deviation=min_deviation,
        max_deviation=max_deviation,
        processing_time_ms=processing_time,
        debug_image=debug_image,
        debug_error=debug_error
    )


def compute_heights(
    grid: np.ndarray,
    options: ProcessorOptions,
    sink: Optional[DebugSink] = None
) -> Dict[int, float]:
    """
    Row index -> height in mm for a frame.

    Same as process_frame(...).heights; debug sink failures are logged and
    never affect the returned heights.
    """
    return process_frame(grid, options, sink=sink).heights


def process_encoded_frame(
    data: bytes,
    options: ProcessorOptions,
    sink: Optional[DebugSink] = None
) -> FrameResult:
    """
    Decode an encoded image and measure its rows.

    Raises:
        ConfigurationError: If the options are invalid
        DecodeError: If the bytes are not a decodable image
    """
    validate_options(options)
    grid = decode_frame(data)
    return process_frame(grid, options, sink=sink)


def process_video(
    filename: str,
    options: ProcessorOptions,
    sink: Optional[DebugSink] = None,
    max_frames: Optional[int] = None,
    reader: Optional[VideoReader] = None,
    on_frame: Optional[Callable[[VideoFrameResult], None]] = None,
    on_open: Optional[Callable[[Optional[int]], None]] = None
) -> List[VideoFrameResult]:
    """
    Measure every frame of a video independently.

    A frame that fails to decode or trips a frame-level error is logged and
    recorded with its error; later frames are still processed. Invalid
    options abort the whole run.

    Args:
        filename: Video file to read
        options: Processor options
        sink: Debug sink passed to every frame
        max_frames: Stop after this many frames
        reader: Frame source, defaults to VideoReader()
        on_frame: Called with every VideoFrameResult as it completes
        on_open: Called once the video is open with the number of frames
            that will be processed, or None if the container does not report it

    Returns:
        List of per-frame results in frame order

    Raises:
        ConfigurationError: If the options are invalid
        VideoSourceError: If the video cannot be opened
    """
    validate_options(options)

    if reader is None:
        reader = VideoReader()

    results = []

    with reader.read(filename) as handle:
        if on_open is not None:
            total = handle.frame_count
            if max_frames is not None:
                total = max_frames if total is None else min(total, max_frames)
            on_open(total)

        for frame_index, frame in enumerate(handle):
            if max_frames is not None and frame_index >= max_frames:
                break

            try:
                grid = bgr_frame_to_pixel_grid(frame)
                frame_result = VideoFrameResult(
                    frame_index=frame_index,
                    result=process_frame(grid, options, sink=sink)
                )
            except (DecodeError, RangeError, AmbiguousRowError) as e:
                logger.error(f"Failed to process frame {frame_index} of {filename}: {e}")
                frame_result = VideoFrameResult(frame_index=frame_index, error=e)

            results.append(frame_result)
            if on_frame is not None:
                on_frame(frame_result)

    failed = sum(1 for r in results if not r.ok)
    logger.info(f"Processed {len(results)} frames of {filename} ({failed} failed)")

    return results
