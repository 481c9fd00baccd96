"""Detection of the trigger (A), fire (B) and contact (C) swing events."""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import numpy as np
from scipy.signal import find_peaks

from swingflow.analysis.signals import SeriesSignals, extract_signals
from swingflow.config import Handedness
from swingflow.errors import InsufficientDataError, InvalidSeriesError
from swingflow.pose.base import JointSeries

logger = logging.getLogger(__name__)

# Absolute prominence floor (deg/s) for a velocity extremum
EXTREMUM_PROMINENCE = 1.0

# Prominence required of an extremum, as a fraction of the link's peak
# velocity inside the search window
FIRE_PROMINENCE_RATIO = 0.25
TRIGGER_PROMINENCE_RATIO = 0.04

# Offsets used when no extremum is found
FIRE_FALLBACK_MS = 150.0
TRIGGER_FALLBACK_MS = 250.0


@dataclass(frozen=True)
class SwingEvents:
    """
    Key swing events, as positions in the series' frames.

    Attributes:
        trigger_frame: Start of the load (A).
        fire_frame: Launch of the swing (B).
        contact_frame: Ball contact (C).
        contact_source: "manual", "impact_index" or "hand_speed".
        trigger_detected: False when the trigger came from the fallback offset.
        fire_detected: False when fire came from the fallback offset.
        sequence_anomaly: True when detected events were reordered.
    """
    trigger_frame: int
    fire_frame: int
    contact_frame: int
    contact_source: str = "manual"
    trigger_detected: bool = True
    fire_detected: bool = True
    sequence_anomaly: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return asdict(self)


def _last_peak_before(values: np.ndarray, end: int, ratio: float) -> Optional[int]:
    """
    Latest prominent local maximum in ``values[:end + 1]``.

    The required prominence is ``ratio`` times the largest absolute value in
    the window, so it scales with how hard the link moves in this swing.
    """
    window = values[:end + 1]
    if len(window) < 3:
        return None
    prominence = max(EXTREMUM_PROMINENCE, ratio * float(np.max(np.abs(window))))
    peaks, _ = find_peaks(window, prominence=prominence)
    if len(peaks) == 0:
        return None
    return int(peaks[-1])


def _resolve_contact(
    series: JointSeries,
    signals: SeriesSignals,
    manual_contact_frame: Optional[int],
):
    if manual_contact_frame is not None:
        if not 0 <= manual_contact_frame < len(series):
            raise InvalidSeriesError(
                f"manual contact frame {manual_contact_frame} outside 0..{len(series) - 1}",
                manual_contact_frame=manual_contact_frame,
            )
        return int(manual_contact_frame), "manual"

    if series.impact_frame_index is not None:
        return int(series.impact_frame_index), "impact_index"

    return int(np.argmax(signals.hand_speed)), "hand_speed"


def detect_events(
    series: JointSeries,
    manual_contact_frame: Optional[int] = None,
    signals: Optional[SeriesSignals] = None,
    handedness: Handedness = Handedness.RIGHT,
) -> SwingEvents:
    """
    Locate trigger, fire and contact.

    Contact is the manual frame when given (trusted), else the series'
    impact index, else the hand-speed peak. Fire is the nearest prominent
    local maximum of torso angular velocity scanning backward from contact;
    trigger is the nearest prominent local minimum of pelvis angular velocity
    scanning backward from fire. Results that come out of order are clamped
    to ``trigger <= fire <= contact`` and flagged.

    Args:
        series: Joint series (normally normalized).
        manual_contact_frame: Trusted contact position in ``series.frames``.
        signals: Precomputed signals; extracted when omitted.
        handedness: Batting side, used when signals are extracted here.

    Returns:
        SwingEvents.
    """
    if len(series) == 0:
        raise InsufficientDataError("cannot detect events in an empty series")

    if signals is None:
        signals = extract_signals(series, handedness)

    contact, contact_source = _resolve_contact(series, signals, manual_contact_frame)

    fire = _last_peak_before(signals.velocity["torso"], contact, FIRE_PROMINENCE_RATIO)
    fire_detected = fire is not None
    if fire is None:
        fire = max(0, contact - int(round(FIRE_FALLBACK_MS * series.fps / 1000.0)))
        logger.warning(f"No torso velocity peak before contact {contact}, fire set to {fire}")

    # The load happens before launch, so the trigger is searched up to fire
    trigger = _last_peak_before(-signals.velocity["pelvis"], fire, TRIGGER_PROMINENCE_RATIO)
    trigger_detected = trigger is not None
    if trigger is None:
        trigger = max(0, fire - int(round(TRIGGER_FALLBACK_MS * series.fps / 1000.0)))
        logger.warning(f"No pelvis velocity minimum before fire {fire}, trigger set to {trigger}")

    anomaly = False
    if fire > contact:
        fire = contact
        anomaly = True
    if trigger > fire:
        trigger = fire
        anomaly = True

    if anomaly:
        logger.warning(
            f"Swing events out of order, clamped to trigger={trigger} fire={fire} contact={contact}"
        )

    events = SwingEvents(
        trigger_frame=trigger,
        fire_frame=fire,
        contact_frame=contact,
        contact_source=contact_source,
        trigger_detected=trigger_detected,
        fire_detected=fire_detected,
        sequence_anomaly=anomaly,
    )
    logger.info(
        f"Events: trigger={trigger} fire={fire} contact={contact} ({contact_source})"
    )
    return events
