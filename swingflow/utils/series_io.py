"""JSON reading and writing of joint series."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from swingflow.errors import InvalidSeriesError
from swingflow.pose.base import (
    LANDMARK_COUNT,
    CameraAngle,
    Frame,
    Joint,
    JointId,
    JointSeries,
)

logger = logging.getLogger(__name__)


def _joint_id(data: Dict[str, Any], position: int, positional: bool) -> JointId:
    if "joint_id" in data:
        return JointId(int(data["joint_id"]))
    if "name" in data:
        try:
            return JointId.from_name(str(data["name"]))
        except KeyError:
            raise InvalidSeriesError(f"Unknown joint name: {data['name']}")
    if positional:
        return JointId(position)
    raise InvalidSeriesError("Joint entries need a 'name' or 'joint_id'")


def _joint_from_dict(data: Dict[str, Any], position: int, positional: bool) -> Joint:
    z = data.get("z")
    return Joint(
        joint_id=_joint_id(data, position, positional),
        x=float(data.get("x", 0.0)),
        y=float(data.get("y", 0.0)),
        z=float(z) if z is not None else None,
        confidence=float(data.get("confidence", data.get("visibility", 0.0))),
    )


def _frame_from_dict(data: Dict[str, Any]) -> Frame:
    raw_joints = data.get("joints") or []
    # A full 33-entry list may omit names and rely on position
    positional = len(raw_joints) == LANDMARK_COUNT
    joints = [
        _joint_from_dict(joint, position, positional)
        for position, joint in enumerate(raw_joints)
    ]
    return Frame.from_joints(
        index=int(data["index"]),
        timestamp_ms=float(data["timestamp_ms"]),
        joints=joints,
    )


def series_from_dict(data: Dict[str, Any]) -> JointSeries:
    """
    Build a joint series from its dictionary form.

    Joints may be given as a full 33-element list in landmark order or as a
    list of named joints (``name`` or ``joint_id``); missing landmarks get
    zero confidence.

    Args:
        data: Dictionary with ``fps``, ``frames`` and optionally
            ``camera_angle`` and ``impact_frame_index``.

    Returns:
        Validated JointSeries.

    Raises:
        InvalidSeriesError: If required fields are missing or malformed.
    """
    try:
        fps = float(data["fps"])
        raw_frames: List[Dict[str, Any]] = data["frames"]
        camera_angle = CameraAngle(data.get("camera_angle", CameraAngle.SIDE.value))
        impact = data.get("impact_frame_index")
        impact = int(impact) if impact is not None else None
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise InvalidSeriesError(f"Malformed series: {e}")

    try:
        frames = [_frame_from_dict(frame) for frame in raw_frames]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise InvalidSeriesError(f"Malformed frame: {e}")

    return JointSeries(
        frames=tuple(frames),
        fps=fps,
        camera_angle=camera_angle,
        impact_frame_index=impact,
    )


def series_to_dict(series: JointSeries) -> Dict[str, Any]:
    """Convert a joint series to its dictionary form."""
    return {
        "fps": series.fps,
        "camera_angle": series.camera_angle.value,
        "impact_frame_index": series.impact_frame_index,
        "frames": [frame.to_dict() for frame in series.frames],
    }


def load_series(path: Union[str, Path]) -> JointSeries:
    """
    Load a joint series from a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        Validated JointSeries.
    """
    path = Path(path)
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidSeriesError(f"{path} is not valid JSON: {e}")

    series = series_from_dict(data)
    logger.debug(f"Loaded {len(series)} frames from {path}")
    return series


def save_series(series: JointSeries, path: Union[str, Path]) -> Path:
    """
    Write a joint series to a JSON file.

    Args:
        series: Series to write.
        path: Destination path; parent directories are created.

    Returns:
        Path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(series_to_dict(series), f)
    logger.info(f"Saved {len(series)} frames to {path}")
    return path
