"""Per-frame feature extraction and derived time-series signals."""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.signal import savgol_filter

from swingflow.config import Handedness
from swingflow.pose.base import Frame, JointId, JointSeries
from swingflow.utils.parallel import CancellationToken, map_frames

logger = logging.getLogger(__name__)

# Kinetic chain links, proximal to distal
LINKS = ("pelvis", "torso", "hands", "bat")

POINTS = ("hip_mid", "shoulder_mid", "hand_mid", "lead_wrist", "rear_elbow", "head")

Point = Tuple[float, float]
_MISSING: Point = (math.nan, math.nan)


@dataclass(frozen=True)
class FrameFeatures:
    """
    Geometric features of a single frame.

    Angles are in degrees from the image x-axis; missing values are NaN.
    """
    index: int
    usable: bool
    angles: Dict[str, float]
    points: Dict[str, Point]


def _side_joints(handedness: Handedness) -> Dict[str, JointId]:
    # A right-handed hitter leads with the left side
    if handedness == Handedness.RIGHT:
        return {
            "lead_elbow": JointId.LEFT_ELBOW,
            "lead_wrist": JointId.LEFT_WRIST,
            "lead_index": JointId.LEFT_INDEX,
            "rear_elbow": JointId.RIGHT_ELBOW,
        }
    return {
        "lead_elbow": JointId.RIGHT_ELBOW,
        "lead_wrist": JointId.RIGHT_WRIST,
        "lead_index": JointId.RIGHT_INDEX,
        "rear_elbow": JointId.LEFT_ELBOW,
    }


def _line_angle(frame: Frame, start: JointId, end: JointId) -> float:
    a = frame.visible_joint(start)
    b = frame.visible_joint(end)
    if a is None or b is None:
        return math.nan
    return math.degrees(math.atan2(b.y - a.y, b.x - a.x))


def _point(frame: Frame, joint_id: JointId) -> Point:
    joint = frame.visible_joint(joint_id)
    return (joint.x, joint.y) if joint is not None else _MISSING


def _mid(frame: Frame, a: JointId, b: JointId) -> Point:
    mid = frame.midpoint(a, b)
    return (float(mid[0]), float(mid[1])) if mid is not None else _MISSING


def frame_features(job: Tuple[Frame, str]) -> FrameFeatures:
    """
    Extract link angles and key points from one frame.

    Takes a ``(frame, handedness)`` tuple so it can be mapped over worker pools.
    """
    frame, handedness = job
    sides = _side_joints(Handedness(handedness))

    if not frame.is_usable():
        return FrameFeatures(
            index=frame.index,
            usable=False,
            angles={link: math.nan for link in LINKS},
            points={name: _MISSING for name in POINTS},
        )

    head = _point(frame, JointId.NOSE)
    if math.isnan(head[0]):
        head = _mid(frame, JointId.LEFT_EYE, JointId.RIGHT_EYE)

    return FrameFeatures(
        index=frame.index,
        usable=True,
        angles={
            "pelvis": _line_angle(frame, JointId.LEFT_HIP, JointId.RIGHT_HIP),
            "torso": _line_angle(frame, JointId.LEFT_SHOULDER, JointId.RIGHT_SHOULDER),
            "hands": _line_angle(frame, sides["lead_elbow"], sides["lead_wrist"]),
            "bat": _line_angle(frame, sides["lead_wrist"], sides["lead_index"]),
        },
        points={
            "hip_mid": _mid(frame, JointId.LEFT_HIP, JointId.RIGHT_HIP),
            "shoulder_mid": _mid(frame, JointId.LEFT_SHOULDER, JointId.RIGHT_SHOULDER),
            "hand_mid": _mid(frame, JointId.LEFT_WRIST, JointId.RIGHT_WRIST),
            "lead_wrist": _point(frame, sides["lead_wrist"]),
            "rear_elbow": _point(frame, sides["rear_elbow"]),
            "head": head,
        },
    )


def make_window(n: int, length: int) -> int:
    """Make a valid odd window length for the Savitzky-Golay filter."""
    w = n if n % 2 == 1 else n + 1
    if w >= length:
        w = length if length % 2 == 1 else length - 1
    return max(3, w)


def smooth_signal(values: np.ndarray, window: int, polyorder: int = 2) -> np.ndarray:
    """Savitzky-Golay smoothing; series too short to filter are returned as-is."""
    if len(values) < 5:
        return values.copy()
    w = make_window(window, len(values))
    return savgol_filter(values, window_length=w, polyorder=min(polyorder, w - 1), mode="interp")


def fill_gaps(values: np.ndarray) -> np.ndarray:
    """Linearly interpolate NaN gaps; edges hold the nearest valid value."""
    values = np.asarray(values, dtype=float)
    valid = ~np.isnan(values)
    if valid.all():
        return values.copy()
    if not valid.any():
        return np.zeros_like(values)
    positions = np.arange(len(values))
    return np.interp(positions, positions[valid], values[valid])


def unwrap_angles(angles: np.ndarray) -> np.ndarray:
    """Unwrap valid angle samples (degrees), then interpolate across gaps."""
    angles = np.asarray(angles, dtype=float)
    valid = ~np.isnan(angles)
    if not valid.any():
        return np.zeros_like(angles)
    unwrapped = angles.copy()
    unwrapped[valid] = np.degrees(np.unwrap(np.radians(angles[valid])))
    return fill_gaps(unwrapped)


def angular_velocity(angles: np.ndarray, fps: float) -> np.ndarray:
    """Absolute central-difference angular velocity (deg/s), edges padded."""
    n = len(angles)
    if n < 3:
        return np.zeros(n)
    velocity = np.empty(n)
    velocity[1:-1] = np.abs(angles[2:] - angles[:-2]) * fps / 2.0
    velocity[0] = velocity[1]
    velocity[-1] = velocity[-2]
    return velocity


def point_speed(points: np.ndarray, fps: float) -> np.ndarray:
    """Frame-to-frame speed of a filled (N, 2) trajectory; first sample is 0."""
    speed = np.zeros(len(points))
    if len(points) > 1:
        speed[1:] = np.linalg.norm(np.diff(points, axis=0), axis=1) * fps
    return speed


@dataclass(frozen=True, eq=False)
class SeriesSignals:
    """
    Time-series signals aligned with the positions of a JointSeries.

    Attributes:
        fps: Frame rate the derivatives were taken at.
        usable: Per-frame usability flags.
        angles: Unwrapped, gap-filled link angles (degrees).
        velocity: Smoothed absolute angular velocity per link (deg/s).
        points: Gap-filled (N, 2) trajectories of key points.
        raw_points: Same trajectories with NaN where the point was not seen.
        hand_speed: Smoothed speed of the wrist midpoint.
    """
    fps: float
    usable: np.ndarray
    angles: Dict[str, np.ndarray]
    velocity: Dict[str, np.ndarray]
    points: Dict[str, np.ndarray]
    raw_points: Dict[str, np.ndarray]
    hand_speed: np.ndarray

    def __len__(self) -> int:
        return len(self.usable)

    @classmethod
    def from_features(cls, features: Sequence[FrameFeatures], fps: float) -> "SeriesSignals":
        """Assemble signals from per-frame features in frame order."""
        window = max(5, int(round(fps * 0.08)))

        angles = {}
        velocity = {}
        for link in LINKS:
            raw = np.array([f.angles[link] for f in features], dtype=float)
            angles[link] = unwrap_angles(raw)
            velocity[link] = smooth_signal(angular_velocity(angles[link], fps), window)

        raw_points = {}
        points = {}
        for name in POINTS:
            raw = np.array([f.points[name] for f in features], dtype=float).reshape(-1, 2)
            raw_points[name] = raw
            points[name] = np.column_stack([fill_gaps(raw[:, 0]), fill_gaps(raw[:, 1])])

        hand_speed = smooth_signal(point_speed(points["hand_mid"], fps), window)

        return cls(
            fps=fps,
            usable=np.array([f.usable for f in features], dtype=bool),
            angles=angles,
            velocity=velocity,
            points=points,
            raw_points=raw_points,
            hand_speed=hand_speed,
        )


def extract_signals(
    series: JointSeries,
    handedness: Handedness = Handedness.RIGHT,
    max_workers: int = 1,
    use_processes: bool = False,
    cancel_token: Optional[CancellationToken] = None,
    show_progress: bool = False,
) -> SeriesSignals:
    """
    Extract per-frame features (in parallel) and derive series signals.

    Args:
        series: Joint series, normally already normalized.
        handedness: Batting side, selects the lead arm.
        max_workers: Worker count for per-frame extraction.
        use_processes: Use a process pool instead of threads.
        cancel_token: Optional cancellation token, checked between frames.
        show_progress: Show a progress bar.

    Returns:
        SeriesSignals aligned with ``series.frames``.
    """
    jobs = [(frame, Handedness(handedness).value) for frame in series.frames]
    features: List[FrameFeatures] = map_frames(
        frame_features,
        jobs,
        max_workers=max_workers,
        use_processes=use_processes,
        cancel_token=cancel_token,
        desc="Extracting features",
        show_progress=show_progress,
    )
    signals = SeriesSignals.from_features(features, series.fps)
    logger.debug(f"Extracted signals for {len(signals)} frames ({int(signals.usable.sum())} usable)")
    return signals
