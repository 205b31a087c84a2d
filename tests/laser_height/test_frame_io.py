"""
Tests for pixel grids, frame decoding, preprocessing and the video reader
"""

import numpy as np
import pytest
from PIL import Image

from laser_height.errors import ConfigurationError, DecodeError, EndOfStream, VideoSourceError
from laser_height.frame_decoding import bgr_frame_to_pixel_grid, decode_frame, load_frame
from laser_height.pixel_grid import as_pixel_grid, color_from_rgba8, parse_color, validate_pixel_grid
from laser_height.preprocessing import blur_pixel_grid
from laser_height.video_reader import VideoHandle, VideoReader

from frame_builders import SCENARIO_ROWS, encode_png, grid_from_rows


class TestPixelGrid:
    """Tests for pixel grid conversion"""

    def test_widen_8bit(self):
        """Test that 8-bit channels are widened so 255 maps to 65535"""
        image = np.array([[[255, 128, 0, 255]]], dtype=np.uint8)

        grid = as_pixel_grid(image)

        assert grid.dtype == np.uint16
        assert grid[0, 0].tolist() == [65535, 128 * 257, 0, 65535]

    def test_rgb_gets_opaque_alpha(self):
        grid = as_pixel_grid(np.zeros((2, 3, 3), dtype=np.uint8))

        assert grid.shape == (2, 3, 4)
        assert (grid[..., 3] == 65535).all()

    def test_grayscale_pil_image(self):
        grid = as_pixel_grid(Image.new("L", (4, 2), color=10))

        assert grid.shape == (2, 4, 4)
        assert grid[0, 0].tolist() == [2570, 2570, 2570, 65535]

    def test_uint16_passthrough(self):
        source = np.full((1, 2, 4), 1234, dtype=np.uint16)

        assert as_pixel_grid(source).tolist() == source.tolist()

    def test_invalid_inputs(self):
        with pytest.raises(TypeError):
            as_pixel_grid("not an image")
        with pytest.raises(ValueError):
            as_pixel_grid(np.array([]))
        with pytest.raises(ValueError):
            as_pixel_grid(np.zeros((2, 2), dtype=np.float32))

    def test_validate_pixel_grid(self):
        assert validate_pixel_grid(np.zeros((2, 2, 4), dtype=np.uint16)) is True
        assert validate_pixel_grid(np.zeros((2, 2, 3), dtype=np.uint16)) is False
        assert validate_pixel_grid(np.zeros((2, 2, 4), dtype=np.uint8)) is False

    def test_colors(self):
        assert color_from_rgba8(255, 0, 0).tolist() == [65535, 0, 0, 65535]
        assert parse_color([0, 0, 255]).tolist() == [0, 0, 65535, 65535]
        with pytest.raises(ValueError):
            color_from_rgba8(256, 0, 0)


class TestDecodeFrame:
    """Tests for decoding encoded frames"""

    def test_decode_png(self):
        grid = decode_frame(encode_png(SCENARIO_ROWS))

        np.testing.assert_array_equal(grid, grid_from_rows(SCENARIO_ROWS))

    def test_garbage_bytes(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_frame(b"definitely not an image")

        assert exc_info.value.stage == "decode"

    def test_empty_bytes(self):
        with pytest.raises(DecodeError):
            decode_frame(b"")

    def test_truncated_png(self):
        data = encode_png(SCENARIO_ROWS * 10)

        with pytest.raises(DecodeError):
            decode_frame(data[:len(data) // 2])

    def test_load_frame(self, tmp_path):
        path = tmp_path / "frame.png"
        path.write_bytes(encode_png(SCENARIO_ROWS))

        assert load_frame(str(path)).shape == (3, 7, 4)

    def test_load_missing_frame(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_frame(str(tmp_path / "missing.png"))


class TestBgrFrames:
    """Tests for OpenCV frame conversion"""

    def test_bgr_to_rgba(self):
        frame = np.zeros((1, 2, 3), dtype=np.uint8)
        frame[0, 0] = (0, 0, 255)  # red in BGR

        grid = bgr_frame_to_pixel_grid(frame)

        assert grid[0, 0].tolist() == [65535, 0, 0, 65535]
        assert grid[0, 1].tolist() == [0, 0, 0, 65535]

    def test_invalid_frame(self):
        with pytest.raises(DecodeError):
            bgr_frame_to_pixel_grid(np.zeros((4, 4), dtype=np.uint8))


class TestBlur:
    """Tests for Gaussian pre-blur"""

    def test_uniform_grid_unchanged(self):
        grid = np.full((9, 9, 4), 30000, dtype=np.uint16)

        blurred = blur_pixel_grid(grid, 5)

        assert blurred.dtype == np.uint16
        assert blurred.shape == grid.shape
        assert (blurred == 30000).all()

    def test_input_not_mutated(self, scenario_grid):
        original = scenario_grid.copy()

        blur_pixel_grid(scenario_grid, 3)

        np.testing.assert_array_equal(scenario_grid, original)

    def test_spreads_line(self):
        grid = np.zeros((5, 9, 4), dtype=np.uint16)
        grid[:, 4, 0] = 65535

        blurred = blur_pixel_grid(grid, 3)

        assert blurred[2, 3, 0] > 0
        assert blurred[2, 4, 0] < 65535

    @pytest.mark.parametrize("kernel", [0, 4, -1])
    def test_invalid_kernel(self, scenario_grid, kernel):
        with pytest.raises(ConfigurationError):
            blur_pixel_grid(scenario_grid, kernel)


class FakeCapture:
    def __init__(self, frames):
        self.frames = list(frames)
        self.released = False

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def get(self, prop):
        return len(self.frames)

    def release(self):
        self.released = True


class TestVideoHandle:
    """Tests for sequential frame reading"""

    def test_frames_then_end_of_stream(self):
        frames = [np.zeros((2, 2, 3), dtype=np.uint8) for _ in range(2)]
        handle = VideoHandle(FakeCapture(frames), "fake.mp4")

        handle.get_next_frame()
        handle.get_next_frame()
        with pytest.raises(EndOfStream):
            handle.get_next_frame()

        assert handle.frame_index == 2

    def test_iteration_and_close(self):
        capture = FakeCapture([np.zeros((2, 2, 3), dtype=np.uint8)] * 3)

        with VideoHandle(capture, "fake.mp4") as handle:
            assert len(list(handle)) == 3

        assert capture.released is True

    def test_missing_video(self, tmp_path):
        with pytest.raises(VideoSourceError):
            VideoReader().read(str(tmp_path / "missing.mp4"))
