"""
Video Reader Module

Sequential frame source backed by OpenCV. The end of a video is signalled
with EndOfStream, which is not an error and is distinct from a failure to
open the file.
"""

import logging
from typing import Iterator, Optional

import cv2
import numpy as np

from .errors import EndOfStream, VideoSourceError

logger = logging.getLogger(__name__)


class VideoHandle:
    """An opened video, yielding BGR frames in order."""

    def __init__(self, capture: "cv2.VideoCapture", filename: str) -> None:
        self._capture = capture
        self.filename = filename
        self.frame_index = 0

    @property
    def frame_count(self) -> Optional[int]:
        """Number of frames reported by the container, if known."""
        count = int(self._capture.get(cv2.CAP_PROP_FRAME_COUNT))
        return count if count > 0 else None

    def get_next_frame(self) -> np.ndarray:
        """
        Read the next frame.

        Raises:
            EndOfStream: If no frames are left
        """
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise EndOfStream(f"No more frames in {self.filename} after {self.frame_index}")
        self.frame_index += 1
        return frame

    def close(self) -> None:
        self._capture.release()

    def __iter__(self) -> Iterator[np.ndarray]:
        while True:
            try:
                yield self.get_next_frame()
            except EndOfStream:
                return

    def __enter__(self) -> "VideoHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class VideoReader:
    """Opens video files as VideoHandles."""

    def read(self, filename: str) -> VideoHandle:
        """
        Open a video file.

        Raises:
            VideoSourceError: If OpenCV cannot open the file
        """
        capture = cv2.VideoCapture(filename)
        if not capture.isOpened():
            capture.release()
            raise VideoSourceError(f"Failed to read video from file: {filename}")

        logger.info(f"Opened video {filename}")
        return VideoHandle(capture, filename)
