"""Kinematic sequence timing and proximal-to-distal order verification."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from swingflow.analysis.events import SwingEvents
from swingflow.analysis.signals import LINKS, SeriesSignals, extract_signals
from swingflow.config import Handedness
from swingflow.pose.base import JointSeries

logger = logging.getLogger(__name__)

CHAIN: Tuple[Tuple[str, str, str], ...] = (
    ("pelvis_to_torso", "pelvis", "torso"),
    ("torso_to_hands", "torso", "hands"),
    ("hands_to_bat", "hands", "bat"),
)


@dataclass(frozen=True)
class SegmentGaps:
    """
    Timing gaps between successive link velocity peaks, in milliseconds.

    The public gaps are clamped at zero; ``raw`` keeps the signed values,
    where a negative gap means the distal link fired first.
    """
    pelvis_to_torso_ms: float
    torso_to_hands_ms: float
    hands_to_bat_ms: float
    raw: Dict[str, float] = field(default_factory=dict)

    def as_mapping(self) -> Dict[str, float]:
        """Clamped gaps keyed by chain link name."""
        return {
            "pelvis_to_torso": self.pelvis_to_torso_ms,
            "torso_to_hands": self.torso_to_hands_ms,
            "hands_to_bat": self.hands_to_bat_ms,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        data: Dict[str, Any] = self.as_mapping()
        data["raw"] = dict(self.raw)
        return data


@dataclass(frozen=True)
class OrderingReport:
    """
    Result of verifying the pelvis -> torso -> hands -> bat firing order.

    Attributes:
        firing_order: Links sorted by firing frame (chain order breaks ties).
        firing_frames: Frame of each link's angular-velocity peak.
        inversions: Chain links whose distal segment fired first.
        broken_sequence: True when any inversion was found.
        order_score: 25 points per link in its ideal position.
        mismatches: Positions where the firing order differs from ideal.
    """
    firing_order: List[str]
    firing_frames: Dict[str, int]
    inversions: List[str]
    broken_sequence: bool
    order_score: float
    mismatches: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "firing_order": list(self.firing_order),
            "firing_frames": dict(self.firing_frames),
            "inversions": list(self.inversions),
            "broken_sequence": self.broken_sequence,
            "order_score": self.order_score,
            "mismatches": self.mismatches,
        }


def firing_frames(signals: SeriesSignals, events: SwingEvents) -> Dict[str, int]:
    """Frame of peak angular velocity for each link within [trigger, contact]."""
    start = events.trigger_frame
    end = events.contact_frame + 1
    return {
        link: start + int(np.argmax(signals.velocity[link][start:end]))
        for link in LINKS
    }


def _signals(
    series: JointSeries,
    signals: Optional[SeriesSignals],
    handedness: Handedness,
) -> SeriesSignals:
    return signals if signals is not None else extract_signals(series, handedness)


def compute_gaps(
    series: JointSeries,
    events: SwingEvents,
    signals: Optional[SeriesSignals] = None,
    handedness: Handedness = Handedness.RIGHT,
) -> SegmentGaps:
    """
    Compute inter-segment timing gaps.

    Args:
        series: Joint series the events were detected on.
        events: Detected swing events.
        signals: Precomputed signals; extracted when omitted.
        handedness: Batting side, used when signals are extracted here.

    Returns:
        SegmentGaps with clamped and raw values.
    """
    frames = firing_frames(_signals(series, signals, handedness), events)
    ms_per_frame = 1000.0 / series.fps

    raw = {
        name: (frames[distal] - frames[proximal]) * ms_per_frame
        for name, proximal, distal in CHAIN
    }
    return SegmentGaps(
        pelvis_to_torso_ms=max(0.0, raw["pelvis_to_torso"]),
        torso_to_hands_ms=max(0.0, raw["torso_to_hands"]),
        hands_to_bat_ms=max(0.0, raw["hands_to_bat"]),
        raw=raw,
    )


def score_sequence_order(order: List[str]) -> float:
    """25 points for each link in its ideal chain position."""
    return 25.0 * sum(1 for actual, ideal in zip(order, LINKS) if actual == ideal)


def verify_order(
    series: JointSeries,
    events: SwingEvents,
    signals: Optional[SeriesSignals] = None,
    handedness: Handedness = Handedness.RIGHT,
) -> OrderingReport:
    """
    Verify proximal-to-distal sequencing.

    Any distal link peaking before its proximal neighbour is an inversion
    and marks the sequence as broken.
    """
    frames = firing_frames(_signals(series, signals, handedness), events)

    order = sorted(LINKS, key=lambda link: (frames[link], LINKS.index(link)))
    inversions = [name for name, proximal, distal in CHAIN if frames[distal] < frames[proximal]]
    mismatches = sum(1 for actual, ideal in zip(order, LINKS) if actual != ideal)

    if inversions:
        logger.warning(f"Broken kinematic sequence: {', '.join(inversions)} (order {order})")

    return OrderingReport(
        firing_order=order,
        firing_frames=frames,
        inversions=inversions,
        broken_sequence=bool(inversions),
        order_score=score_sequence_order(order),
        mismatches=mismatches,
    )


def ab_ratio(events: SwingEvents, fps: float) -> Optional[float]:
    """
    Load-to-launch tempo ratio, duration(trigger -> fire) / duration(fire -> contact).

    Returns:
        The ratio, or None when fire and contact coincide.
    """
    load = (events.fire_frame - events.trigger_frame) / fps
    launch = (events.contact_frame - events.fire_frame) / fps
    if launch <= 0:
        return None
    return load / launch
