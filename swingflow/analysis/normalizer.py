"""Rescaling and alignment of joint series to a canonical body frame."""

import logging
from typing import Optional

import numpy as np

from swingflow.errors import CameraAngleMismatchError, InsufficientDataError, InvalidSeriesError
from swingflow.pose.base import Frame, Joint, JointId, JointSeries

logger = logging.getLogger(__name__)

CANONICAL_HEIGHT = 180.0

MIN_FPS = 24.0
MAX_FPS = 120.0
MAX_DURATION_MS = 60_000.0


def validate_series_input(series: JointSeries) -> None:
    """
    Check a series against the analysis input contract.

    Raises:
        InvalidSeriesError: fps outside [24, 120] or duration above 60 s.
    """
    if not MIN_FPS <= series.fps <= MAX_FPS:
        raise InvalidSeriesError(
            f"fps {series.fps} outside supported range [{MIN_FPS:g}, {MAX_FPS:g}]",
            fps=series.fps,
        )
    if series.duration_ms > MAX_DURATION_MS:
        raise InvalidSeriesError(
            f"series covers {series.duration_ms / 1000:.1f}s, limit is "
            f"{MAX_DURATION_MS / 1000:.0f}s",
            duration_ms=series.duration_ms,
        )


def validate_comparable(a: JointSeries, b: JointSeries) -> None:
    """
    Ensure two series can be compared.

    Raises:
        CameraAngleMismatchError: The series were recorded from different angles.
    """
    if a.camera_angle != b.camera_angle:
        logger.error(
            f"Refusing to compare {a.camera_angle.value} view with {b.camera_angle.value} view"
        )
        raise CameraAngleMismatchError(
            f"cannot compare {a.camera_angle.value} view with {b.camera_angle.value} view",
            first=a.camera_angle.value,
            second=b.camera_angle.value,
        )


def body_extent(series: JointSeries) -> Optional[float]:
    """
    Median vertical extent of the visible joints over usable frames.

    Returns:
        Extent in the series' units, or None if no usable frame has extent.
    """
    extents = []
    for frame in series.frames:
        if not frame.is_usable():
            continue
        ys = [joint.y for joint in frame.joints if joint.is_visible()]
        extent = max(ys) - min(ys)
        if extent > 0:
            extents.append(extent)

    if not extents:
        return None
    return float(np.median(extents))


def _origin(series: JointSeries) -> np.ndarray:
    """Mid-hip of the first usable frame that shows both hips."""
    for frame in series.frames:
        if not frame.is_usable():
            continue
        mid_hip = frame.midpoint(JointId.LEFT_HIP, JointId.RIGHT_HIP)
        if mid_hip is not None:
            return mid_hip
    return np.zeros(2)


def _transform(frame: Frame, origin: np.ndarray, scale: float) -> Frame:
    return Frame(
        index=frame.index,
        timestamp_ms=frame.timestamp_ms,
        joints=tuple(
            Joint(
                joint.joint_id,
                (joint.x - origin[0]) * scale,
                (joint.y - origin[1]) * scale,
                joint.z * scale if joint.z is not None else None,
                joint.confidence,
            )
            for joint in frame.joints
        ),
    )


def normalize(series: JointSeries, canonical_height: float = CANONICAL_HEIGHT) -> JointSeries:
    """
    Rescale a series to a canonical body height and mid-hip origin.

    The median body extent over usable frames is mapped to
    ``canonical_height``; the first usable frame's mid-hip becomes the origin.
    Confidences, frame indices, timestamps and metadata are unchanged.

    Args:
        series: Input joint series.
        canonical_height: Target body extent.

    Returns:
        New, normalized JointSeries.

    Raises:
        InsufficientDataError: No usable frame to measure the body from.
    """
    if canonical_height <= 0:
        raise ValueError(f"canonical_height must be positive, got {canonical_height}")

    extent = body_extent(series)
    if extent is None:
        logger.error("Cannot normalize series: no usable frames")
        raise InsufficientDataError("no usable frames to measure body extent")

    scale = canonical_height / extent
    origin = _origin(series)
    logger.debug(f"Normalizing series: extent={extent:.2f}, scale={scale:.4f}")

    return JointSeries(
        frames=tuple(_transform(frame, origin, scale) for frame in series.frames),
        fps=series.fps,
        camera_angle=series.camera_angle,
        impact_frame_index=series.impact_frame_index,
    )
