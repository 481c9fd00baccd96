"""Confidence and data-quality assessment of a joint series."""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Tuple

from swingflow.analysis.events import SwingEvents
from swingflow.errors import InsufficientDataError
from swingflow.pose.base import JointSeries

logger = logging.getLogger(__name__)

LOW_CONFIDENCE = 0.5
HIGH_CONFIDENCE = 0.85

# Usable frames a series needs before any scoring is attempted
MIN_USABLE_FRAMES = 3

# Usable frames wanted within EVENT_WINDOW frames of each event
EVENT_WINDOW = 5
MIN_EVENT_SUPPORT = 3


def quality_tag(confidence: float) -> str:
    """Map a confidence to high / medium / low."""
    if confidence < LOW_CONFIDENCE:
        return "low"
    if confidence < HIGH_CONFIDENCE:
        return "medium"
    return "high"


@dataclass(frozen=True)
class QualityReport:
    """
    Data-quality summary attached to a result; never alters the scores.

    Attributes:
        confidence: Usable frames / total frames (possibly reduced for thin
            event support).
        data_quality: "high", "medium" or "low".
        usable_frames: Frames carrying usable pose data.
        total_frames: Frames in the series, failed frames included.
        event_support: Usable frames around each event.
        flags: Informational quality flags.
    """
    confidence: float
    data_quality: str
    usable_frames: int
    total_frames: int
    event_support: Dict[str, int] = field(default_factory=dict)
    flags: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "confidence": self.confidence,
            "data_quality": self.data_quality,
            "usable_frames": self.usable_frames,
            "total_frames": self.total_frames,
            "event_support": dict(self.event_support),
            "flags": list(self.flags),
        }


def assess(series: JointSeries) -> QualityReport:
    """
    Assess the fraction of usable frames.

    Args:
        series: Joint series; frames that failed detection count in the total.

    Returns:
        QualityReport with ``confidence = usable / total``.
    """
    total = len(series)
    usable = series.usable_count()
    confidence = usable / total if total else 0.0
    return QualityReport(
        confidence=confidence,
        data_quality=quality_tag(confidence),
        usable_frames=usable,
        total_frames=total,
    )


def require_usable(report: QualityReport) -> None:
    """
    Raise when a series has too little usable pose data to score.

    Raises:
        InsufficientDataError: Fewer than MIN_USABLE_FRAMES usable frames.
    """
    if report.usable_frames == 0:
        logger.error(f"No usable frames out of {report.total_frames}")
        raise InsufficientDataError(
            "no usable frames",
            usable_frames=0,
            total_frames=report.total_frames,
        )
    if report.usable_frames < MIN_USABLE_FRAMES:
        logger.error(f"Only {report.usable_frames} usable frames out of {report.total_frames}")
        raise InsufficientDataError(
            f"only {report.usable_frames} usable frames, need {MIN_USABLE_FRAMES}",
            usable_frames=report.usable_frames,
            total_frames=report.total_frames,
        )


def event_support(series: JointSeries, events: SwingEvents) -> Dict[str, int]:
    """Usable frames within EVENT_WINDOW frames of each event."""
    flags = series.usable_flags()
    support = {}
    for name, position in (
        ("trigger", events.trigger_frame),
        ("fire", events.fire_frame),
        ("contact", events.contact_frame),
    ):
        start = max(0, position - EVENT_WINDOW)
        end = min(len(flags), position + EVENT_WINDOW + 1)
        support[name] = sum(flags[start:end])
    return support


def assess_event_support(
    series: JointSeries,
    events: SwingEvents,
    report: QualityReport,
) -> QualityReport:
    """
    Fold event support into a quality report.

    An event with no usable frame nearby is fatal. Thin support (below
    MIN_EVENT_SUPPORT) downgrades the report to low quality and scales the
    confidence by the weakest support.

    Raises:
        InsufficientDataError: An event has no usable frame around it.
    """
    support = event_support(series, events)
    weakest = min(support, key=lambda name: (support[name], name))

    if support[weakest] == 0:
        logger.error(f"No usable frames around the {weakest} event")
        raise InsufficientDataError(
            f"no usable frames around the {weakest} event",
            event=weakest,
            window=EVENT_WINDOW,
        )

    if support[weakest] < MIN_EVENT_SUPPORT:
        logger.warning(
            f"Thin data around the {weakest} event ({support[weakest]} usable frames), "
            "reporting low quality"
        )
        return replace(
            report,
            confidence=report.confidence * support[weakest] / MIN_EVENT_SUPPORT,
            data_quality="low",
            event_support=support,
            flags=report.flags + ("thin_event_support",),
        )

    return replace(report, event_support=support)
