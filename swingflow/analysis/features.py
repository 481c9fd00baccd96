"""Swing-level biomechanical features derived from signals and events."""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from swingflow.analysis.events import SwingEvents
from swingflow.analysis.kinematics import OrderingReport, SegmentGaps, ab_ratio
from swingflow.analysis.normalizer import CANONICAL_HEIGHT
from swingflow.analysis.signals import SeriesSignals

logger = logging.getLogger(__name__)

# Frames before the trigger taken as the stance position
STANCE_LEAD_FRAMES = 10

# Upstream velocity must drop below this fraction of its peak by the time
# the downstream link peaks
DECEL_FRACTION = 0.7

INCHES_TO_CM = 2.54


@dataclass(frozen=True)
class SwingFeatures:
    """
    Raw feature values feeding the scorer.

    Distances are in centimetres of the hitter's body (canonical units scaled
    by the player's height), angles in degrees, durations in milliseconds.
    """
    load_duration_ms: float
    launch_to_contact_ms: float
    swing_duration_ms: float
    ab_ratio: Optional[float]
    firing_order: List[str]
    pelvis_to_torso_ms: float
    torso_to_hands_ms: float
    hands_to_bat_ms: float
    decel_quality: float
    pelvis_jerk: float
    head_displacement: float
    weight_transfer_pct: float
    path_efficiency: float
    barrel_angle_deviation: float
    rear_elbow_distance: float
    spine_angle_change: float
    shoulder_tilt: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return asdict(self)


def length_scale(
    player_height_inches: Optional[float],
    canonical_height: float = CANONICAL_HEIGHT,
) -> float:
    """Centimetres per canonical unit; a missing height assumes a 180 cm hitter."""
    if player_height_inches is None:
        return CANONICAL_HEIGHT / canonical_height
    return player_height_inches * INCHES_TO_CM / canonical_height


def fold_to_level(angle: float) -> float:
    """Deviation of a line angle from horizontal, in [0, 90] degrees."""
    return abs(((angle + 90.0) % 180.0) - 90.0)


def mean_jerk(points: np.ndarray, fps: float) -> float:
    """
    Mean absolute change in path speed, a jerk proxy for path smoothness.

    Only samples where the point was actually seen are used.
    """
    valid = points[~np.isnan(points).any(axis=1)]
    if len(valid) < 3:
        return 0.0
    speeds = np.linalg.norm(np.diff(valid, axis=0), axis=1) * fps
    return float(np.mean(np.abs(np.diff(speeds)) * fps))


def path_efficiency(points: np.ndarray, start: int, end: int) -> float:
    """Arc length over chord of a trajectory between two frames."""
    if end <= start:
        return 1.0
    segment = points[start:end + 1]
    arc = float(np.linalg.norm(np.diff(segment, axis=0), axis=1).sum())
    chord = float(np.linalg.norm(segment[-1] - segment[0]))
    if chord <= 1e-9:
        return 1.0
    return arc / chord


def spine_angle(shoulder_mid: np.ndarray, hip_mid: np.ndarray) -> float:
    """Trunk lean from vertical, in degrees (image y grows downward)."""
    dx = shoulder_mid[0] - hip_mid[0]
    dy = hip_mid[1] - shoulder_mid[1]
    return abs(math.degrees(math.atan2(dx, dy)))


def decel_quality(signals: SeriesSignals, frames: Dict[str, int]) -> float:
    """
    Score how well upstream links brake while the next link peaks.

    Starts at 100; 15 points off for each link that has not slowed to
    DECEL_FRACTION of its peak when its successor peaks, 20 points off for
    each pair that fired out of order.
    """
    quality = 100.0
    for upstream, downstream in (("pelvis", "torso"), ("torso", "hands")):
        up_peak = frames[upstream]
        down_peak = frames[downstream]
        if down_peak > up_peak:
            velocity = signals.velocity[upstream]
            if not velocity[down_peak] < velocity[up_peak] * DECEL_FRACTION:
                quality -= 15.0
        else:
            quality -= 20.0
    return max(0.0, quality)


def weight_transfer(hip_x: np.ndarray, stance: int, fire: int, contact: int) -> float:
    """
    Share of the load-phase pelvis shift completed by contact, as a percentage.

    The direction of the stance -> fire shift defines "forward".
    """
    total = hip_x[fire] - hip_x[stance]
    if abs(total) < 1e-6:
        return 0.0
    completed = hip_x[contact] - hip_x[stance]
    return float(np.clip(completed / total * 100.0, 0.0, 100.0))


def extract_swing_features(
    signals: SeriesSignals,
    events: SwingEvents,
    gaps: SegmentGaps,
    ordering: OrderingReport,
    player_height_inches: Optional[float] = None,
    canonical_height: float = CANONICAL_HEIGHT,
) -> SwingFeatures:
    """
    Compute tempo, sequence, balance, hand-path and posture features.

    Args:
        signals: Signals of a normalized series.
        events: Detected swing events.
        gaps: Inter-segment timing gaps.
        ordering: Firing-order report.
        player_height_inches: Hitter's height; rescales distances.
        canonical_height: Body extent the series was normalized to.

    Returns:
        SwingFeatures.
    """
    fps = signals.fps
    ms_per_frame = 1000.0 / fps
    scale = length_scale(player_height_inches, canonical_height)

    trigger, fire, contact = events.trigger_frame, events.fire_frame, events.contact_frame
    stance = max(0, trigger - STANCE_LEAD_FRAMES)
    points = signals.points

    head = points["head"]
    head_displacement = float(np.linalg.norm(head[contact] - head[stance])) * scale

    rear_elbow_distance = float(
        np.linalg.norm(points["rear_elbow"][contact] - points["shoulder_mid"][contact])
    ) * scale

    spine_change = abs(
        spine_angle(points["shoulder_mid"][contact], points["hip_mid"][contact])
        - spine_angle(points["shoulder_mid"][fire], points["hip_mid"][fire])
    )

    return SwingFeatures(
        load_duration_ms=(fire - trigger) * ms_per_frame,
        launch_to_contact_ms=(contact - fire) * ms_per_frame,
        swing_duration_ms=contact * ms_per_frame,
        ab_ratio=ab_ratio(events, fps),
        firing_order=list(ordering.firing_order),
        pelvis_to_torso_ms=gaps.pelvis_to_torso_ms,
        torso_to_hands_ms=gaps.torso_to_hands_ms,
        hands_to_bat_ms=gaps.hands_to_bat_ms,
        decel_quality=decel_quality(signals, ordering.firing_frames),
        pelvis_jerk=mean_jerk(signals.raw_points["hip_mid"], fps) * scale,
        head_displacement=head_displacement,
        weight_transfer_pct=weight_transfer(points["hip_mid"][:, 0], stance, fire, contact),
        path_efficiency=path_efficiency(points["lead_wrist"], fire, contact),
        barrel_angle_deviation=fold_to_level(float(signals.angles["bat"][contact])),
        rear_elbow_distance=rear_elbow_distance,
        spine_angle_change=spine_change,
        shoulder_tilt=fold_to_level(float(signals.angles["torso"][contact])),
    )
