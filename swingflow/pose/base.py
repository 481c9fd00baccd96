"""Joint series data model and the abstract pose estimation backend."""

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from swingflow.errors import InvalidSeriesError

logger = logging.getLogger(__name__)

# Per-joint confidence a landmark must exceed to count as visible
CONFIDENCE_FLOOR = 0.5

# Visible landmarks a frame needs to count as usable pose data
MIN_VISIBLE_JOINTS = 12


class JointId(enum.IntEnum):
    """Pose landmark identifiers (33-point BlazePose topology)."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32

    @property
    def landmark_name(self) -> str:
        """Lower-case landmark name (e.g., "left_shoulder")."""
        return self.name.lower()

    @classmethod
    def from_name(cls, name: str) -> "JointId":
        """Look up a landmark by its lower- or upper-case name."""
        return cls[name.strip().upper()]


LANDMARK_COUNT = len(JointId)


class CameraAngle(str, enum.Enum):
    """Camera placement relative to the hitter."""
    SIDE = "side"
    FRONT = "front"
    BACK = "back"
    OVERHEAD = "overhead"


@dataclass(frozen=True)
class Joint:
    """
    A single tracked anatomical landmark.

    Attributes:
        joint_id: Landmark identifier.
        x: X coordinate (pixels or canonical units).
        y: Y coordinate, growing downward.
        z: Depth coordinate, None for 2D detectors.
        confidence: Detection confidence (0-1).
    """
    joint_id: JointId
    x: float
    y: float
    z: Optional[float] = None
    confidence: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "joint_id", JointId(self.joint_id))

    @property
    def name(self) -> str:
        """Landmark name of this joint."""
        return self.joint_id.landmark_name

    def is_visible(self, floor: float = CONFIDENCE_FLOOR) -> bool:
        """Whether this joint's confidence exceeds the floor."""
        return self.confidence > floor

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "confidence": self.confidence,
        }

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y, z, confidence]."""
        return np.array([
            self.x,
            self.y,
            self.z if self.z is not None else 0.0,
            self.confidence,
        ])


@dataclass(frozen=True)
class Frame:
    """
    Pose landmarks for one video frame.

    Attributes:
        index: Frame index in the source video.
        timestamp_ms: Timestamp in milliseconds.
        joints: One joint per landmark, ordered by JointId.
    """
    index: int
    timestamp_ms: float
    joints: Tuple[Joint, ...]

    def __post_init__(self):
        joints = tuple(self.joints)
        if len(joints) != LANDMARK_COUNT:
            raise InvalidSeriesError(
                f"Frame {self.index} has {len(joints)} joints, expected {LANDMARK_COUNT}",
                frame_index=self.index,
            )
        for position, joint in enumerate(joints):
            if int(joint.joint_id) != position:
                raise InvalidSeriesError(
                    f"Frame {self.index} joint at position {position} is {joint.name}",
                    frame_index=self.index,
                )
        object.__setattr__(self, "joints", joints)

    @classmethod
    def empty(cls, index: int, timestamp_ms: float) -> "Frame":
        """Frame with no usable landmarks (all confidences zero)."""
        return cls(
            index=index,
            timestamp_ms=timestamp_ms,
            joints=tuple(Joint(jid, 0.0, 0.0, None, 0.0) for jid in JointId),
        )

    @classmethod
    def from_joints(
        cls,
        index: int,
        timestamp_ms: float,
        joints: Iterable[Joint],
    ) -> "Frame":
        """Build a frame from a partial joint list; missing landmarks get zero confidence."""
        by_id = {joint.joint_id: joint for joint in joints}
        return cls(
            index=index,
            timestamp_ms=timestamp_ms,
            joints=tuple(
                by_id.get(jid, Joint(jid, 0.0, 0.0, None, 0.0)) for jid in JointId
            ),
        )

    def get_joint(self, joint_id: JointId) -> Joint:
        """Get a joint by identifier."""
        return self.joints[int(joint_id)]

    def visible_joint(
        self,
        joint_id: JointId,
        floor: float = CONFIDENCE_FLOOR,
    ) -> Optional[Joint]:
        """Get a joint only if it is visible."""
        joint = self.joints[int(joint_id)]
        return joint if joint.is_visible(floor) else None

    def visible_count(self, floor: float = CONFIDENCE_FLOOR) -> int:
        """Number of joints whose confidence exceeds the floor."""
        return sum(1 for joint in self.joints if joint.is_visible(floor))

    def is_usable(
        self,
        floor: float = CONFIDENCE_FLOOR,
        min_joints: int = MIN_VISIBLE_JOINTS,
    ) -> bool:
        """Whether this frame carries usable pose data."""
        return self.visible_count(floor) >= min_joints

    def midpoint(
        self,
        joint_a: JointId,
        joint_b: JointId,
        floor: float = CONFIDENCE_FLOOR,
    ) -> Optional[np.ndarray]:
        """
        Midpoint of two visible joints.

        Returns:
            Array [x, y] or None if either joint is not visible.
        """
        a = self.visible_joint(joint_a, floor)
        b = self.visible_joint(joint_b, floor)
        if a is None or b is None:
            return None
        return np.array([(a.x + b.x) / 2.0, (a.y + b.y) / 2.0])

    def get_keypoints_array(self) -> np.ndarray:
        """
        Get all joints as a numpy array.

        Returns:
            Array of shape (33, 4) with [x, y, z, confidence] for each joint.
        """
        return np.stack([joint.to_array() for joint in self.joints])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "index": self.index,
            "timestamp_ms": self.timestamp_ms,
            "joints": [joint.to_dict() for joint in self.joints],
        }


@dataclass(frozen=True)
class JointSeries:
    """
    Ordered pose landmarks for one recorded swing.

    Attributes:
        frames: Frames ordered by index and timestamp.
        fps: Source frame rate.
        camera_angle: Camera placement.
        impact_frame_index: Optional position in ``frames`` of ball contact.
    """
    frames: Tuple[Frame, ...]
    fps: float
    camera_angle: CameraAngle = CameraAngle.SIDE
    impact_frame_index: Optional[int] = None

    def __post_init__(self):
        frames = tuple(self.frames)
        object.__setattr__(self, "frames", frames)
        object.__setattr__(self, "camera_angle", CameraAngle(self.camera_angle))

        if self.fps <= 0:
            raise InvalidSeriesError(f"fps must be positive, got {self.fps}")

        for previous, current in zip(frames, frames[1:]):
            if current.index <= previous.index or current.timestamp_ms <= previous.timestamp_ms:
                raise InvalidSeriesError(
                    f"Frames must be strictly increasing: frame {current.index} "
                    f"({current.timestamp_ms} ms) follows frame {previous.index} "
                    f"({previous.timestamp_ms} ms)",
                    frame_index=current.index,
                )

        if self.impact_frame_index is not None and not 0 <= self.impact_frame_index < len(frames):
            raise InvalidSeriesError(
                f"impact_frame_index {self.impact_frame_index} outside "
                f"0..{len(frames) - 1}",
            )

    def __len__(self) -> int:
        return len(self.frames)

    @property
    def duration_ms(self) -> float:
        """Duration covered by the series, in milliseconds."""
        return len(self.frames) * 1000.0 / self.fps

    def usable_flags(self) -> List[bool]:
        """Per-frame usability flags, in frame order."""
        return [frame.is_usable() for frame in self.frames]

    def usable_count(self) -> int:
        """Number of frames carrying usable pose data."""
        return sum(self.usable_flags())


class PoseBackend(ABC):
    """
    Abstract base class for pose estimation backends.

    Backends are external collaborators: they may be slow and are not
    assumed re-entrant, so callers go through a ``PoseDetectorHandle``.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        """
        Initialize the pose backend.

        Args:
            min_detection_confidence: Minimum confidence for pose detection.
            min_tracking_confidence: Minimum confidence for pose tracking.
        """
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self._is_initialized = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the pose estimation backend."""
        pass

    @property
    def is_initialized(self) -> bool:
        """Whether ``initialize`` has completed."""
        return self._is_initialized

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the pose estimation model.

        This should be called before processing any frames.
        """
        pass

    @abstractmethod
    def process_frame(
        self,
        frame: np.ndarray,
        frame_index: int = 0,
        timestamp_ms: float = 0.0,
    ) -> Frame:
        """
        Detect pose landmarks in a single image.

        Args:
            frame: Input image (BGR format from OpenCV).
            frame_index: Frame index for result tracking.
            timestamp_ms: Timestamp in milliseconds.

        Returns:
            Frame in the image's pixel coordinates; ``Frame.empty`` when no
            pose was found.
        """
        pass

    def cleanup(self) -> None:
        """
        Clean up resources.

        Override this method to release any resources held by the backend.
        """
        self._is_initialized = False

    def __enter__(self):
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.cleanup()
        return False


def offset_frame(frame: Frame, dx: float, dy: float) -> Frame:
    """Translate every joint of a frame by (dx, dy), e.g. from crop to full-frame pixels."""
    return Frame(
        index=frame.index,
        timestamp_ms=frame.timestamp_ms,
        joints=tuple(
            Joint(j.joint_id, j.x + dx, j.y + dy, j.z, j.confidence)
            for j in frame.joints
        ),
    )


def torso_joints(joints: Sequence[Joint]) -> List[Joint]:
    """Shoulder and hip joints from an arbitrary joint collection."""
    torso_ids = (
        JointId.LEFT_SHOULDER,
        JointId.RIGHT_SHOULDER,
        JointId.LEFT_HIP,
        JointId.RIGHT_HIP,
    )
    return [joint for joint in joints if joint.joint_id in torso_ids]
