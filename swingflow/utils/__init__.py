"""Utility modules for swing analysis."""

from swingflow.utils.logging_config import (
    ProgressLogger,
    get_logger,
    setup_logging,
    setup_logging_from_config,
)
from swingflow.utils.parallel import CancellationToken, map_frames
from swingflow.utils.series_io import load_series, save_series, series_from_dict, series_to_dict
from swingflow.utils.video_utils import VideoInfo, VideoProcessor, read_video_info

__all__ = [
    "ProgressLogger",
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
    "CancellationToken",
    "map_frames",
    "load_series",
    "save_series",
    "series_from_dict",
    "series_to_dict",
    "VideoInfo",
    "VideoProcessor",
    "read_video_info",
]
