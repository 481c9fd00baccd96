"""Pose data model and pluggable pose estimation backends."""

from swingflow.pose.base import (
    CameraAngle,
    Frame,
    Joint,
    JointId,
    JointSeries,
    PoseBackend,
)
from swingflow.pose.detector import DetectionOutcome, DetectionStatus, PoseDetectorHandle
from swingflow.pose.mediapipe_backend import MediaPipeBackend

__all__ = [
    "CameraAngle",
    "Frame",
    "Joint",
    "JointId",
    "JointSeries",
    "PoseBackend",
    "DetectionOutcome",
    "DetectionStatus",
    "PoseDetectorHandle",
    "MediaPipeBackend",
]
