"""Shared fixtures: synthetic swings, images and a fake pose backend."""

import math
import time
from typing import Dict, Iterable, Optional

import numpy as np
import pytest

from swingflow.pose.base import Frame, Joint, JointId, JointSeries, PoseBackend

# Velocity peak frames of a clean proximal-to-distal swing (30 fps)
CLEAN_PEAKS = {"pelvis": 44, "torso": 48, "hands": 52, "bat": 56}
TRIGGER_FRAME = 30
CONTACT_FRAME = 60

BASE_VELOCITY = 30.0
PEAK_VELOCITY = 400.0
PEAK_WIDTH = 3.0

# Static landmarks of a side-on hitter, image pixels at scale 1
STATIC_JOINTS = {
    JointId.NOSE: (300.0, 120.0),
    JointId.LEFT_EYE_INNER: (297.0, 115.0),
    JointId.LEFT_EYE: (295.0, 115.0),
    JointId.LEFT_EYE_OUTER: (293.0, 115.0),
    JointId.RIGHT_EYE_INNER: (303.0, 115.0),
    JointId.RIGHT_EYE: (305.0, 115.0),
    JointId.RIGHT_EYE_OUTER: (307.0, 115.0),
    JointId.LEFT_EAR: (290.0, 118.0),
    JointId.RIGHT_EAR: (310.0, 118.0),
    JointId.MOUTH_LEFT: (297.0, 128.0),
    JointId.MOUTH_RIGHT: (303.0, 128.0),
    JointId.LEFT_ELBOW: (340.0, 260.0),
    JointId.RIGHT_ELBOW: (270.0, 270.0),
    JointId.RIGHT_WRIST: (280.0, 300.0),
    JointId.RIGHT_PINKY: (284.0, 308.0),
    JointId.RIGHT_INDEX: (285.0, 310.0),
    JointId.RIGHT_THUMB: (283.0, 306.0),
    JointId.LEFT_KNEE: (290.0, 430.0),
    JointId.RIGHT_KNEE: (310.0, 430.0),
    JointId.LEFT_ANKLE: (285.0, 500.0),
    JointId.RIGHT_ANKLE: (315.0, 500.0),
    JointId.LEFT_HEEL: (280.0, 505.0),
    JointId.RIGHT_HEEL: (320.0, 505.0),
    JointId.LEFT_FOOT_INDEX: (295.0, 505.0),
    JointId.RIGHT_FOOT_INDEX: (325.0, 505.0),
}

HIP_CENTER = (300.0, 350.0)
SHOULDER_CENTER = (300.0, 220.0)


def _bump(t: np.ndarray, centre: float, amplitude: float, width: float) -> np.ndarray:
    return amplitude * np.exp(-((t - centre) ** 2) / (2.0 * width ** 2))


def link_angles(
    n_frames: int,
    fps: float,
    peaks: Dict[str, int],
    trigger: int,
) -> Dict[str, np.ndarray]:
    """Link angles (degrees) whose angular velocities peak at the given frames."""
    t = np.arange(n_frames, dtype=float)
    angles = {}
    for link, offset in (("pelvis", 0.0), ("torso", 0.0), ("hands", 90.0), ("bat", 10.0)):
        velocity = BASE_VELOCITY + _bump(t, peaks[link], PEAK_VELOCITY, PEAK_WIDTH)
        if link == "pelvis":
            # Load: the pelvis nearly stops at the trigger
            velocity = velocity - _bump(t, trigger, 25.0, PEAK_WIDTH)
        angles[link] = offset + np.cumsum(velocity) / fps
    return angles


def _rotated_pair(centre, radius, angle_deg, scale):
    c, s = math.cos(math.radians(angle_deg)), math.sin(math.radians(angle_deg))
    left = ((centre[0] - radius * c) * scale, (centre[1] - radius * s) * scale)
    right = ((centre[0] + radius * c) * scale, (centre[1] + radius * s) * scale)
    return left, right


def swing_frame(
    index: int,
    fps: float,
    angles: Dict[str, float],
    scale: float = 1.0,
    confidence: float = 0.9,
) -> Frame:
    """One frame of the synthetic right-handed hitter."""
    positions = {jid: (x * scale, y * scale) for jid, (x, y) in STATIC_JOINTS.items()}

    positions[JointId.LEFT_HIP], positions[JointId.RIGHT_HIP] = _rotated_pair(
        HIP_CENTER, 30.0, angles["pelvis"], scale
    )
    positions[JointId.LEFT_SHOULDER], positions[JointId.RIGHT_SHOULDER] = _rotated_pair(
        SHOULDER_CENTER, 40.0, angles["torso"], scale
    )

    elbow = STATIC_JOINTS[JointId.LEFT_ELBOW]
    hands = math.radians(angles["hands"])
    wrist = (elbow[0] + 50.0 * math.cos(hands), elbow[1] + 50.0 * math.sin(hands))
    bat = math.radians(angles["bat"])
    index_tip = (wrist[0] + 25.0 * math.cos(bat), wrist[1] + 25.0 * math.sin(bat))
    positions[JointId.LEFT_WRIST] = (wrist[0] * scale, wrist[1] * scale)
    positions[JointId.LEFT_INDEX] = (index_tip[0] * scale, index_tip[1] * scale)
    positions[JointId.LEFT_PINKY] = ((index_tip[0] - 2.0) * scale, (index_tip[1] + 2.0) * scale)
    positions[JointId.LEFT_THUMB] = ((index_tip[0] - 3.0) * scale, (index_tip[1] - 2.0) * scale)

    return Frame(
        index=index,
        timestamp_ms=index * 1000.0 / fps,
        joints=tuple(
            Joint(jid, positions[jid][0], positions[jid][1], None, confidence)
            for jid in JointId
        ),
    )


def make_swing(
    n_frames: int = 90,
    fps: float = 30.0,
    peaks: Optional[Dict[str, int]] = None,
    trigger: int = TRIGGER_FRAME,
    camera_angle: str = "side",
    dropout: Iterable[int] = (),
    scale: float = 1.0,
    impact_frame_index: Optional[int] = None,
) -> JointSeries:
    """
    Build a deterministic swing.

    Args:
        n_frames: Number of frames.
        fps: Frame rate.
        peaks: Angular-velocity peak frame per link.
        trigger: Frame where the pelvis nearly stops (load).
        camera_angle: Camera placement.
        dropout: Frame positions whose joints all fall below the confidence floor.
        scale: Uniform scale of every coordinate.
        impact_frame_index: Optional impact frame carried by the series.
    """
    peaks = dict(CLEAN_PEAKS if peaks is None else peaks)
    angles = link_angles(n_frames, fps, peaks, trigger)
    dropped = set(dropout)

    frames = tuple(
        swing_frame(
            i,
            fps,
            {link: float(values[i]) for link, values in angles.items()},
            scale=scale,
            confidence=0.1 if i in dropped else 0.9,
        )
        for i in range(n_frames)
    )
    return JointSeries(
        frames=frames,
        fps=fps,
        camera_angle=camera_angle,
        impact_frame_index=impact_frame_index,
    )


def jitter(series: JointSeries, sigma: float, seed: int) -> JointSeries:
    """Copy of ``series`` with Gaussian pixel noise on every joint position."""
    rng = np.random.default_rng(seed)
    frames = []
    for frame in series.frames:
        noise = rng.normal(0.0, sigma, size=(len(frame.joints), 2))
        frames.append(Frame(
            index=frame.index,
            timestamp_ms=frame.timestamp_ms,
            joints=tuple(
                Joint(j.joint_id, j.x + dx, j.y + dy, j.z, j.confidence)
                for j, (dx, dy) in zip(frame.joints, noise)
            ),
        ))
    return JointSeries(
        frames=tuple(frames),
        fps=series.fps,
        camera_angle=series.camera_angle,
        impact_frame_index=series.impact_frame_index,
    )


@pytest.fixture
def clean_swing() -> JointSeries:
    return make_swing()


@pytest.fixture
def person_image() -> np.ndarray:
    """Grey background with a solid dark figure in the middle."""
    image = np.full((200, 200, 3), 200, dtype=np.uint8)
    image[70:130, 80:120] = (40, 40, 40)
    return image


class FakeBackend(PoseBackend):
    """Pose backend returning a fixed pose relative to the image it is given."""

    def __init__(self, delay_s: float = 0.0, fail_on: Iterable[int] = (), no_pose_on: Iterable[int] = ()):
        super().__init__()
        self.delay_s = delay_s
        self.fail_on = set(fail_on)
        self.no_pose_on = set(no_pose_on)
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.cleaned_up = False

    @property
    def name(self) -> str:
        return "fake"

    def initialize(self) -> None:
        self._is_initialized = True

    def process_frame(self, frame, frame_index=0, timestamp_ms=0.0):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.calls.append((frame_index, frame.shape))
            if self.delay_s:
                time.sleep(self.delay_s)
            if frame_index in self.fail_on:
                raise RuntimeError(f"backend crashed on frame {frame_index}")
            if frame_index in self.no_pose_on:
                return Frame.empty(frame_index, timestamp_ms)
            return Frame(
                index=frame_index,
                timestamp_ms=timestamp_ms,
                joints=tuple(
                    Joint(jid, 5.0 + int(jid), 7.0 + int(jid), None, 0.9) for jid in JointId
                ),
            )
        finally:
            self.in_flight -= 1

    def cleanup(self) -> None:
        self.cleaned_up = True
        super().cleanup()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
