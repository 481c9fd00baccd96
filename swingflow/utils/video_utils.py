"""Video decoding for swing clips."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Optional, Tuple

import cv2
import numpy as np
from tqdm import tqdm

from swingflow.errors import InvalidSeriesError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VideoInfo:
    """Frame geometry and timing of a clip, as reported by the container."""
    path: str
    width: int
    height: int
    fps: float
    total_frames: int

    @property
    def duration_seconds(self) -> float:
        return self.total_frames / self.fps if self.fps > 0 else 0.0


def read_video_info(video_path: str) -> Optional[VideoInfo]:
    """
    Read clip metadata without decoding frames.

    Returns:
        VideoInfo, or None if OpenCV cannot open the file.
    """
    cap = cv2.VideoCapture(str(video_path))
    try:
        if not cap.isOpened():
            logger.error(f"Could not open video: {video_path}")
            return None
        return VideoInfo(
            path=str(video_path),
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            fps=float(cap.get(cv2.CAP_PROP_FPS)),
            total_frames=int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
        )
    finally:
        cap.release()


class VideoProcessor:
    """
    Sequential frame reader for swing clips.

    Frames are yielded as ``(frame_index, timestamp_ms, image)`` with
    timestamps derived from the frame rate, so they are strictly increasing.
    """

    def __init__(
        self,
        video_path: str,
        max_duration_s: Optional[float] = 60.0,
        start_frame: int = 0,
        end_frame: Optional[int] = None,
    ):
        """
        Initialize the video processor.

        Args:
            video_path: Path to the video file.
            max_duration_s: Clips longer than this are rejected.
            start_frame: Starting frame number.
            end_frame: Ending frame number (None for all frames).
        """
        self.video_path = Path(video_path)
        self.max_duration_s = max_duration_s
        self.start_frame = start_frame
        self.end_frame = end_frame

        self._cap = None
        self._info = None

    @property
    def info(self) -> Optional[VideoInfo]:
        """Get video information."""
        if self._info is None:
            self._info = read_video_info(str(self.video_path))
        return self._info

    @property
    def fps(self) -> float:
        info = self.info
        if info is None or info.fps <= 0:
            raise ValueError(f"Could not determine frame rate of {self.video_path}")
        return info.fps

    def open(self) -> None:
        """Open the video file, enforcing the duration cap."""
        if self._cap is not None:
            return

        info = self.info
        if info is None:
            raise ValueError(f"Could not open video: {self.video_path}")
        if self.max_duration_s is not None and info.duration_seconds > self.max_duration_s:
            raise InvalidSeriesError(
                f"video is {info.duration_seconds:.1f}s long, limit is {self.max_duration_s:.0f}s",
                video=str(self.video_path),
            )

        self._cap = cv2.VideoCapture(str(self.video_path))
        if not self._cap.isOpened():
            raise ValueError(f"Could not open video: {self.video_path}")

        if self.start_frame > 0:
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, self.start_frame)

        logger.debug(f"Opened video: {self.video_path}")

    def close(self) -> None:
        """Close the video file."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug(f"Closed video: {self.video_path}")

    def iterate_frames(
        self,
        show_progress: bool = False,
    ) -> Generator[Tuple[int, float, np.ndarray], None, None]:
        """
        Iterate over the frames of the clip.

        Args:
            show_progress: Whether to show progress bar.

        Yields:
            Tuple of (frame_index, timestamp_ms, frame).
        """
        self.open()
        interval_ms = 1000.0 / self.fps

        total = self.info.total_frames
        if self.end_frame is not None:
            total = min(total, self.end_frame - self.start_frame)

        frame_index = self.start_frame
        try:
            with tqdm(total=total, desc="Decoding video", disable=not show_progress) as pbar:
                while self.end_frame is None or frame_index < self.end_frame:
                    ret, frame = self._cap.read()
                    if not ret:
                        break
                    yield frame_index, frame_index * interval_ms, frame
                    frame_index += 1
                    pbar.update(1)
        finally:
            self.close()

    def get_frame_at(self, frame_number: int) -> Optional[np.ndarray]:
        """
        Get a specific frame by number.

        Args:
            frame_number: Frame number to retrieve.

        Returns:
            Frame as numpy array or None if not found.
        """
        self.open()
        self._cap.set(cv2.CAP_PROP_POS_FRAMES, frame_number)
        ret, frame = self._cap.read()
        return frame if ret else None

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
