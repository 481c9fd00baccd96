"""Swing analysis: normalization, events, kinematic sequence, scoring and quality."""

from swingflow.analysis.events import SwingEvents, detect_events
from swingflow.analysis.kinematics import (
    OrderingReport,
    SegmentGaps,
    ab_ratio,
    compute_gaps,
    verify_order,
)
from swingflow.analysis.normalizer import normalize, validate_comparable, validate_series_input
from swingflow.analysis.quality import QualityReport, assess
from swingflow.analysis.scoring import (
    FlowScore,
    LeakSeverity,
    MomentumTransferResult,
    compare_results,
    legacy_leaks,
    legacy_scores,
    rank_leaks,
    score,
)
from swingflow.analysis.signals import SeriesSignals, extract_signals

__all__ = [
    "SwingEvents",
    "detect_events",
    "OrderingReport",
    "SegmentGaps",
    "ab_ratio",
    "compute_gaps",
    "verify_order",
    "normalize",
    "validate_comparable",
    "validate_series_input",
    "QualityReport",
    "assess",
    "FlowScore",
    "LeakSeverity",
    "MomentumTransferResult",
    "compare_results",
    "legacy_leaks",
    "legacy_scores",
    "rank_leaks",
    "score",
    "SeriesSignals",
    "extract_signals",
]
