"""
Integration tests for the frame processing pipeline
"""

from dataclasses import replace

import cv2
import numpy as np
import pytest

from laser_height import color_distance
from laser_height.debug_output import (
    DEBUG_IMAGE_KEY,
    TROUGH_IMAGE_KEY,
    FileDebugSink,
    MemoryDebugSink,
    render_debug_image,
)
from laser_height.errors import (
    AmbiguousRowError,
    ConfigurationError,
    DecodeError,
    RangeError,
    SinkError,
)
from laser_height.frame_processor import (
    compute_heights,
    compute_row_height,
    process_encoded_frame,
    process_frame,
    process_video,
)
from laser_height.height_calculation import AMBIGUOUS_ROW_HEIGHT
from laser_height.options import DebugOptions
from laser_height.video_reader import VideoHandle

from frame_builders import R, SCENARIO_HEIGHTS, SCENARIO_ROWS, T, encode_png, grid_from_rows, rgba8_array

# Fixed jittered version of the scenario frame
VARIED_ROWS = [
    [(9, 0, 3, 0), (0, 2, 9, 0), (0, 0, 9, 0), (254, 0, 0, 255), (3, 0, 7, 0), (0, 8, 6, 0), (1, 0, 0, 0)],
    [(0, 0, 6, 0), (8, 9, 1, 0), (255, 0, 7, 255), (0, 0, 3, 0), (252, 9, 0, 255), (1, 0, 8, 0), (0, 0, 0, 0)],
    [(0, 7, 2, 0), (255, 7, 0, 255), (0, 9, 5, 0), (2, 2, 1, 0), (0, 9, 0, 0), (254, 0, 8, 255), (9, 0, 4, 0)],
]


class FailingSink:
    def write(self, image, name):
        raise SinkError("disk full")


class TestScenarios:
    """End-to-end scenarios on small synthetic frames"""

    def test_clean_lines(self, scenario_grid, scenario_options):
        """Test one line at baseline and two lines at increasing distance"""
        assert compute_heights(scenario_grid, scenario_options) == SCENARIO_HEIGHTS

    def test_fixed_color_variation(self, scenario_options):
        """Test slightly off colors on laser and background"""
        grid = grid_from_rows(VARIED_ROWS)

        assert compute_heights(grid, scenario_options) == SCENARIO_HEIGHTS

    def test_random_color_variation(self, scenario_options):
        """Test random jitter of +-10 per channel with a deeper min_through_height"""
        options = replace(scenario_options, min_through_height=25)
        rng = np.random.default_rng(1234)

        for _ in range(10):
            grid = grid_from_rows(SCENARIO_ROWS, variance=10, rng=rng)
            assert compute_heights(grid, options) == SCENARIO_HEIGHTS

    def test_three_lines_is_ambiguous(self, scenario_options):
        """Test that an ambiguous row gets the sentinel and other rows still compute"""
        rows = SCENARIO_ROWS + [[T, R, T, R, T, R, T]]

        result = process_frame(grid_from_rows(rows), scenario_options)

        assert result.heights == {0: 0.0, 1: 2.0, 2: 4.0, 3: AMBIGUOUS_ROW_HEIGHT}
        assert result.ambiguous_rows == [3]
        assert result.troughs[3] == [1, 3, 5]

    def test_empty_row_is_ambiguous(self, scenario_options):
        rows = [[T] * 7, SCENARIO_ROWS[1]]

        assert compute_heights(grid_from_rows(rows), scenario_options) == {0: -1.0, 1: 2.0}

    def test_euclidean_metric(self, scenario_grid, scenario_options):
        options = replace(scenario_options, color_metric="euclidean")

        assert compute_heights(scenario_grid, options) == SCENARIO_HEIGHTS

    def test_pixel_per_mm_scaling(self, scenario_grid, scenario_options):
        options = replace(
            scenario_options,
            calibration=replace(scenario_options.calibration, pixel_per_mm=4.0)
        )

        assert compute_heights(scenario_grid, options) == {0: 0.0, 1: 0.5, 2: 1.0}

    def test_accepts_uint8_image(self, scenario_options):
        """Test that plain 8-bit arrays are converted to pixel grids"""
        assert compute_heights(rgba8_array(SCENARIO_ROWS), scenario_options) == SCENARIO_HEIGHTS

    def test_input_grid_not_mutated(self, scenario_grid, scenario_options):
        original = scenario_grid.copy()

        compute_heights(scenario_grid, replace(scenario_options, blur_kernel_size=3))

        np.testing.assert_array_equal(scenario_grid, original)


class TestFailurePolicy:
    """Tests for frame-level errors"""

    def test_strict_mode_aborts_frame(self, scenario_options):
        rows = SCENARIO_ROWS + [[T, R, T, R, T, R, T]]

        with pytest.raises(AmbiguousRowError) as exc_info:
            process_frame(grid_from_rows(rows), replace(scenario_options, strict_rows=True))

        assert exc_info.value.row == 3

    def test_strict_mode_passes_valid_frame(self, scenario_grid, scenario_options):
        options = replace(scenario_options, strict_rows=True)

        assert compute_heights(scenario_grid, options) == SCENARIO_HEIGHTS

    @pytest.mark.parametrize("rows", [SCENARIO_ROWS, [[T] * 20] * 4])
    def test_even_trough_width_independent_of_image(self, scenario_options, rows):
        with pytest.raises(ConfigurationError):
            compute_heights(grid_from_rows(rows), replace(scenario_options, min_through_width=4))

    def test_invalid_direction_fails_before_rows(self, scenario_grid, scenario_options, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "laser_height.frame_processor.compute_row_height",
            lambda *args, **kwargs: calls.append(args)
        )

        with pytest.raises(ConfigurationError):
            process_frame(scenario_grid, replace(scenario_options, line_direction="vertical"))

        assert calls == []

    def test_range_error_names_row(self, scenario_grid, scenario_options, monkeypatch):
        def broken_metric(color1, color2):
            raise RangeError("dist is > max")

        monkeypatch.setitem(color_distance.COLOR_METRICS, "redmean", broken_metric)

        with pytest.raises(RangeError, match="line 0"):
            process_frame(scenario_grid, scenario_options)


class TestRowParallelism:
    """Tests for threaded row processing"""

    def test_threads_match_sequential(self, scenario_options):
        rng = np.random.default_rng(99)
        rows = []
        for _ in range(40):
            row = [T] * 31
            first, second = sorted(rng.choice(np.arange(2, 29), size=2, replace=False))
            row[first] = R
            if rng.random() < 0.7:
                row[second] = R
            rows.append(row)
        grid = grid_from_rows(rows)

        sequential = process_frame(grid, scenario_options)
        threaded = process_frame(grid, replace(scenario_options, max_workers=4))

        assert threaded.heights == sequential.heights
        assert threaded.troughs == sequential.troughs
        assert list(threaded.heights) == list(range(40))

    def test_compute_row_height_is_pure(self, scenario_grid, scenario_options):
        first = compute_row_height(scenario_grid[2], scenario_options)
        second = compute_row_height(scenario_grid[2], scenario_options)

        assert first.troughs == second.troughs == [1, 5]
        assert first.height == second.height == 4.0
        np.testing.assert_array_equal(first.profile, second.profile)


class TestDebugOutput:
    """Tests for the debug image side channel"""

    def _debug_options(self, options, filenames=None):
        return replace(options, debug=DebugOptions(enabled=True, filenames=filenames or {}))

    def test_memory_sink_receives_image(self, scenario_grid, scenario_options):
        sink = MemoryDebugSink()

        result = process_frame(scenario_grid, self._debug_options(scenario_options), sink=sink)

        image = sink.images[DEBUG_IMAGE_KEY]
        assert image.shape == (3, 7)
        assert image.dtype == np.uint8
        assert image[0].tolist() == [255, 255, 255, 0, 255, 255, 255]
        np.testing.assert_array_equal(image, result.debug_image)

    def test_trough_image_written_when_configured(self, scenario_grid, scenario_options):
        sink = MemoryDebugSink()
        options = self._debug_options(scenario_options, {TROUGH_IMAGE_KEY: "unused.png"})

        process_frame(scenario_grid, options, sink=sink)

        trough_image = sink.images[TROUGH_IMAGE_KEY]
        assert trough_image.shape == (3, 7, 3)
        assert trough_image[1, 2].tolist() == [0, 0, 255]

    def test_disabled_debug_writes_nothing(self, scenario_grid, scenario_options):
        sink = MemoryDebugSink()

        result = process_frame(scenario_grid, scenario_options, sink=sink)

        assert sink.images == {}
        assert result.debug_image is None

    def test_sink_failure_keeps_heights(self, scenario_grid, scenario_options):
        result = process_frame(
            scenario_grid,
            self._debug_options(scenario_options),
            sink=FailingSink()
        )

        assert result.heights == SCENARIO_HEIGHTS
        assert isinstance(result.debug_error, SinkError)

    def test_file_sink(self, scenario_grid, scenario_options, tmp_path):
        output = tmp_path / "debug.png"
        output.write_bytes(b"stale")
        options = self._debug_options(scenario_options, {DEBUG_IMAGE_KEY: str(output)})

        result = process_frame(scenario_grid, options)

        assert result.debug_error is None
        written = cv2.imread(str(output), cv2.IMREAD_GRAYSCALE)
        np.testing.assert_array_equal(written, result.debug_image)

    def test_file_sink_without_filename(self, scenario_grid, scenario_options):
        result = process_frame(scenario_grid, self._debug_options(scenario_options))

        assert result.heights == SCENARIO_HEIGHTS
        assert isinstance(result.debug_error, SinkError)

    def test_file_sink_bad_directory(self, tmp_path):
        sink = FileDebugSink({DEBUG_IMAGE_KEY: str(tmp_path / "missing" / "debug.png")})

        with pytest.raises(SinkError):
            sink.write(np.zeros((2, 2), dtype=np.uint8), DEBUG_IMAGE_KEY)

    def test_render_debug_image(self):
        profiles = np.array([[65535, 0, 10000]], dtype=np.uint16)

        assert render_debug_image(profiles).tolist() == [[255, 0, 39]]


class TestEncodedFrames:
    """Tests for processing encoded frames"""

    def test_png_frame(self, scenario_options):
        result = process_encoded_frame(encode_png(SCENARIO_ROWS), scenario_options)

        assert result.heights == SCENARIO_HEIGHTS

    def test_undecodable_frame(self, scenario_options):
        with pytest.raises(DecodeError):
            process_encoded_frame(b"\x00\x01garbage", scenario_options)

    def test_config_error_before_decode(self, scenario_options):
        with pytest.raises(ConfigurationError):
            process_encoded_frame(b"garbage", replace(scenario_options, line_direction="diagonal"))


class FakeReader:
    """Frame source yielding prepared frames"""

    def __init__(self, frames):
        self.frames = frames
        self.opened = []

    def read(self, filename):
        self.opened.append(filename)
        return VideoHandle(_ListCapture(self.frames), filename)


class _ListCapture:
    def __init__(self, frames):
        self.frames = list(frames)
        self.total = len(self.frames)

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def get(self, prop):
        return self.total

    def release(self):
        pass


def bgr_frame(rows):
    rgba = rgba8_array(rows)
    return np.ascontiguousarray(rgba[..., [2, 1, 0]])


class TestVideoProcessing:
    """Tests for per-frame video processing"""

    def test_every_frame_processed(self, scenario_options):
        reader = FakeReader([bgr_frame(SCENARIO_ROWS)] * 3)

        results = process_video("scan.mp4", scenario_options, reader=reader)

        assert [r.frame_index for r in results] == [0, 1, 2]
        assert all(r.ok for r in results)
        assert all(r.result.heights == SCENARIO_HEIGHTS for r in results)
        assert reader.opened == ["scan.mp4"]

    def test_bad_frame_does_not_stop_video(self, scenario_options):
        frames = [bgr_frame(SCENARIO_ROWS), np.zeros((3, 7), dtype=np.uint8), bgr_frame(SCENARIO_ROWS)]
        seen = []

        results = process_video(
            "scan.mp4",
            scenario_options,
            reader=FakeReader(frames),
            on_frame=seen.append
        )

        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, DecodeError)
        assert results[2].result.heights == SCENARIO_HEIGHTS
        assert seen == results

    def test_strict_ambiguity_fails_only_that_frame(self, scenario_options):
        ambiguous = bgr_frame([[T, R, T, R, T, R, T]])
        frames = [ambiguous, bgr_frame(SCENARIO_ROWS)]
        options = replace(scenario_options, strict_rows=True)

        results = process_video("scan.mp4", options, reader=FakeReader(frames))

        assert isinstance(results[0].error, AmbiguousRowError)
        assert results[1].ok

    def test_max_frames(self, scenario_options):
        reader = FakeReader([bgr_frame(SCENARIO_ROWS)] * 5)

        results = process_video("scan.mp4", scenario_options, reader=reader, max_frames=2)

        assert len(results) == 2

    def test_configuration_error_aborts_run(self, scenario_options):
        reader = FakeReader([bgr_frame(SCENARIO_ROWS)] * 2)

        with pytest.raises(ConfigurationError):
            process_video("scan.mp4", replace(scenario_options, min_through_width=2), reader=reader)

    def test_on_open_reports_frame_total(self, scenario_options):
        totals = []

        process_video("scan.mp4", scenario_options, reader=FakeReader([bgr_frame(SCENARIO_ROWS)] * 3),
                      on_open=totals.append)
        process_video("scan.mp4", scenario_options, reader=FakeReader([bgr_frame(SCENARIO_ROWS)] * 3),
                      max_frames=2, on_open=totals.append)

        assert totals == [3, 2]

    def test_unknown_frame_total(self, scenario_options):
        totals = []
        reader = FakeReader([])

        process_video("scan.mp4", scenario_options, reader=reader, on_open=totals.append)

        assert totals == [None]
