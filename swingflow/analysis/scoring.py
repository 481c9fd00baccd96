"""
Momentum-transfer scoring.

Feature scores are combined into category scores, the category scores into
ground / power / barrel flow sub-scores, and those with the momentum-transfer
feature score into a weighted composite, a band and leak diagnostics. All
coefficients are module-level constants.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from swingflow.analysis.coaching import coaching_summary
from swingflow.analysis.events import SwingEvents
from swingflow.analysis.features import SwingFeatures, extract_swing_features
from swingflow.analysis.kinematics import OrderingReport, SegmentGaps, verify_order
from swingflow.analysis.normalizer import CANONICAL_HEIGHT
from swingflow.analysis.quality import (
    QualityReport,
    assess,
    assess_event_support,
    require_usable,
)
from swingflow.analysis.signals import SeriesSignals, extract_signals
from swingflow.config import Handedness, PlayerLevel
from swingflow.errors import CameraAngleMismatchError
from swingflow.pose.base import JointSeries

logger = logging.getLogger(__name__)

# Tolerance bands: (ideal_min, ideal_max), (soft_min, soft_max)
Band = Tuple[Tuple[float, float], Tuple[float, float]]
# Directional thresholds: (optimal, acceptable, poor)
Directional = Tuple[float, float, float]

THRESHOLDS: Dict[str, Any] = {
    "load_duration": ((180.0, 280.0), (150.0, 320.0)),
    "launch_to_contact": ((140.0, 180.0), (120.0, 200.0)),
    "ab_ratio": ((1.2, 1.8), (1.0, 2.2)),
    "pelvis_to_torso": ((30.0, 50.0), (20.0, 60.0)),
    "torso_to_hands": ((35.0, 55.0), (25.0, 65.0)),
    "hands_to_bat": ((20.0, 40.0), (15.0, 50.0)),
    "pelvis_jerk": (5000.0, 10000.0, 20000.0),
    "head_displacement": (5.0, 10.0, 15.0),
    "weight_transfer": (80.0, 60.0, 40.0),
    "path_efficiency": ((1.1, 1.3), (1.0, 1.5)),
    "barrel_angle": (5.0, 15.0, 25.0),
    "rear_elbow": (15.0, 25.0, 35.0),
    "spine_change": (10.0, 18.0, 30.0),
    "shoulder_tilt": ((8.0, 20.0), (5.0, 25.0)),
}

FEATURE_WEIGHTS: Dict[str, Dict[str, float]] = {
    "tempo": {"load_duration": 0.35, "launch_to_contact": 0.35, "ab_ratio": 0.30},
    "sequence": {
        "order": 0.40,
        "pelvis_to_torso": 0.20,
        "torso_to_hands": 0.20,
        "hands_to_bat": 0.20,
    },
    "balance": {"pelvis_jerk": 0.40, "head_displacement": 0.30, "weight_transfer": 0.30},
    "hand_path": {"path_efficiency": 0.40, "barrel_angle": 0.35, "rear_elbow": 0.25},
    "posture": {"spine_change": 0.55, "shoulder_tilt": 0.45},
}

SUB_SCORE_WEIGHTS: Dict[str, Dict[str, float]] = {
    "ground": {"balance": 0.70, "posture": 0.30},
    "power": {"sequence": 0.60, "tempo": 0.40},
    "barrel": {"hand_path": 1.0},
}

MOMENTUM_WEIGHTS: Dict[str, float] = {
    "order": 0.30,
    "pelvis_to_torso": 0.15,
    "torso_to_hands": 0.15,
    "hands_to_bat": 0.10,
    "decel_quality": 0.15,
    "smoothness": 0.10,
    "abc_tempo": 0.05,
}

# Momentum-transfer order score by number of out-of-place links
ORDER_MISMATCH_SCORES = {0: 100.0, 1: 75.0, 2: 50.0}
ORDER_BROKEN_SCORE = 25.0

COMPOSITE_WEIGHTS: Dict[str, float] = {
    "momentum_transfer": 0.60,
    "ground": 0.15,
    "power": 0.15,
    "barrel": 0.10,
}

# (momentum-transfer score below, composite cap)
MOMENTUM_CAPS: List[Tuple[float, float]] = [(40.0, 60.0), (50.0, 70.0)]

BANDS: List[Tuple[float, int, str]] = [
    (92.0, 3, "Elite"),
    (85.0, 2, "Advanced"),
    (75.0, 1, "Above Average"),
    (60.0, 0, "Average"),
    (50.0, -1, "Below Average"),
    (40.0, -2, "Developing"),
    (0.0, -3, "Needs Work"),
]

# Deficit below the reference score at which each severity starts
LEAK_THRESHOLDS: List[Tuple[float, str]] = [
    (30.0, "severe"),
    (20.0, "moderate"),
    (10.0, "mild"),
]

# Minimum reference score per competitive level
LEVEL_FLOORS: Dict[PlayerLevel, float] = {
    PlayerLevel.YOUTH: 45.0,
    PlayerLevel.HIGH_SCHOOL: 55.0,
    PlayerLevel.COLLEGE: 65.0,
    PlayerLevel.PRO: 75.0,
}

# Sub-scores in tie-break priority order
SUB_SCORES = ("ground", "power", "barrel")

LEGACY_NAMES = {"ground": "anchor", "power": "engine", "barrel": "whip"}


class LeakSeverity(str, enum.Enum):
    """Leak severity, ordered none < mild < moderate < severe."""
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"

    @property
    def rank(self) -> int:
        return list(LeakSeverity).index(self)


def score_tolerance_band(value: float, band: Band) -> float:
    """100 inside the ideal band, 75-100 inside the soft band, steep falloff outside."""
    (ideal_min, ideal_max), (soft_min, soft_max) = band
    if ideal_min <= value <= ideal_max:
        return 100.0
    if soft_min <= value < ideal_min:
        return 75.0 + (value - soft_min) / (ideal_min - soft_min) * 25.0
    if ideal_max < value <= soft_max:
        return 75.0 + (soft_max - value) / (soft_max - ideal_max) * 25.0
    if value < soft_min:
        return max(0.0, 50.0 - (soft_min - value) * 2.0)
    return max(0.0, 50.0 - (value - soft_max) * 2.0)


def score_less_is_better(value: float, threshold: Directional) -> float:
    optimal, acceptable, poor = threshold
    if value <= optimal:
        return 100.0
    if value <= acceptable:
        return 75.0 + (acceptable - value) / (acceptable - optimal) * 25.0
    if value <= poor:
        return 50.0 + (poor - value) / (poor - acceptable) * 25.0
    return max(0.0, 50.0 - (value - poor))


def score_more_is_better(value: float, threshold: Directional) -> float:
    optimal, acceptable, poor = threshold
    if value >= optimal:
        return 100.0
    if value >= acceptable:
        return 75.0 + (value - acceptable) / (optimal - acceptable) * 25.0
    if value >= poor:
        return 50.0 + (value - poor) / (acceptable - poor) * 25.0
    return max(0.0, 50.0 - (poor - value))


def score_ab_ratio(ratio: Optional[float]) -> float:
    """Tempo-ratio score; an undefined ratio (no launch phase) scores 0."""
    if ratio is None:
        return 0.0
    return score_tolerance_band(ratio, THRESHOLDS["ab_ratio"])


def score_order_mismatches(mismatches: int) -> float:
    return ORDER_MISMATCH_SCORES.get(mismatches, ORDER_BROKEN_SCORE)


def clamp_score(value: float) -> float:
    return min(100.0, max(0.0, value))


def band_for(composite: float) -> Tuple[int, str]:
    """Map a composite score to its band and label; monotonic in the score."""
    for minimum, band, label in BANDS:
        if composite >= minimum:
            return band, label
    return BANDS[-1][1], BANDS[-1][2]


def leak_severity(
    sub_score: float,
    composite: float,
    player_level: Optional[PlayerLevel] = None,
) -> LeakSeverity:
    """
    Severity of a sub-score's shortfall.

    The deficit is measured below the composite or the level floor,
    whichever is higher, and is monotonic in the deficit.
    """
    floor = LEVEL_FLOORS[PlayerLevel(player_level)] if player_level is not None else 0.0
    deficit = max(composite, floor) - sub_score
    for minimum, severity in LEAK_THRESHOLDS:
        if deficit >= minimum:
            return LeakSeverity(severity)
    return LeakSeverity.NONE


def feature_scores(features: SwingFeatures, order_score: float) -> Dict[str, Dict[str, float]]:
    """Per-feature scores grouped by category."""
    return {
        "tempo": {
            "load_duration": score_tolerance_band(features.load_duration_ms, THRESHOLDS["load_duration"]),
            "launch_to_contact": score_tolerance_band(
                features.launch_to_contact_ms, THRESHOLDS["launch_to_contact"]
            ),
            "ab_ratio": score_ab_ratio(features.ab_ratio),
        },
        "sequence": {
            "order": order_score,
            "pelvis_to_torso": score_tolerance_band(features.pelvis_to_torso_ms, THRESHOLDS["pelvis_to_torso"]),
            "torso_to_hands": score_tolerance_band(features.torso_to_hands_ms, THRESHOLDS["torso_to_hands"]),
            "hands_to_bat": score_tolerance_band(features.hands_to_bat_ms, THRESHOLDS["hands_to_bat"]),
        },
        "balance": {
            "pelvis_jerk": score_less_is_better(features.pelvis_jerk, THRESHOLDS["pelvis_jerk"]),
            "head_displacement": score_less_is_better(
                features.head_displacement, THRESHOLDS["head_displacement"]
            ),
            "weight_transfer": score_more_is_better(
                features.weight_transfer_pct, THRESHOLDS["weight_transfer"]
            ),
        },
        "hand_path": {
            "path_efficiency": score_tolerance_band(features.path_efficiency, THRESHOLDS["path_efficiency"]),
            "barrel_angle": score_less_is_better(features.barrel_angle_deviation, THRESHOLDS["barrel_angle"]),
            "rear_elbow": score_less_is_better(features.rear_elbow_distance, THRESHOLDS["rear_elbow"]),
        },
        "posture": {
            "spine_change": score_less_is_better(features.spine_angle_change, THRESHOLDS["spine_change"]),
            "shoulder_tilt": score_tolerance_band(features.shoulder_tilt, THRESHOLDS["shoulder_tilt"]),
        },
    }


def _weighted(scores: Dict[str, float], weights: Dict[str, float]) -> float:
    total = sum(weights.values())
    return sum(scores[name] * weight for name, weight in weights.items()) / total


def momentum_components(
    features: SwingFeatures,
    ordering: OrderingReport,
    scores: Dict[str, Dict[str, float]],
) -> Dict[str, float]:
    """Component scores of the momentum-transfer feature score."""
    tempo = scores["tempo"]
    return {
        "order": score_order_mismatches(ordering.mismatches),
        "pelvis_to_torso": scores["sequence"]["pelvis_to_torso"],
        "torso_to_hands": scores["sequence"]["torso_to_hands"],
        "hands_to_bat": scores["sequence"]["hands_to_bat"],
        "decel_quality": features.decel_quality,
        "smoothness": scores["balance"]["pelvis_jerk"],
        "abc_tempo": (tempo["load_duration"] + tempo["launch_to_contact"] + tempo["ab_ratio"]) / 3.0,
    }


def _round(value: Optional[float], digits: int = 1) -> Optional[float]:
    return None if value is None else round(float(value), digits)


@dataclass(frozen=True)
class FlowScore:
    """A ground / power / barrel sub-score and its leak severity."""
    score: float
    leak_severity: LeakSeverity = LeakSeverity.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "leak_severity": self.leak_severity.value}


@dataclass(frozen=True)
class SwingTiming:
    """Tempo summary of a swing, in milliseconds."""
    ab_ratio: Optional[float]
    load_duration_ms: float
    swing_duration_ms: float
    launch_to_contact_ms: float
    segment_gaps: SegmentGaps

    def to_dict(self) -> Dict[str, Any]:
        gaps = self.segment_gaps
        return {
            "ab_ratio": _round(self.ab_ratio, 3),
            "load_duration_ms": _round(self.load_duration_ms),
            "swing_duration_ms": _round(self.swing_duration_ms),
            "launch_to_contact_ms": _round(self.launch_to_contact_ms),
            "segment_gaps": {
                name: _round(value) for name, value in gaps.as_mapping().items()
            },
            "segment_gaps_raw": {
                name: _round(value) for name, value in sorted(gaps.raw.items())
            },
        }


@dataclass(frozen=True)
class MomentumTransferResult:
    """
    Terminal assessment of one swing.

    Instances are never mutated; ``to_json`` of equal inputs is byte-identical.
    """
    composite_score: float
    band: int
    band_label: str
    momentum_transfer_score: float
    sub_scores: Dict[str, FlowScore]
    timing: SwingTiming
    main_leak: str
    confidence: float
    data_quality: str
    sequence_anomaly: bool
    events: SwingEvents
    ordering: OrderingReport
    coaching_summary: str
    camera_angle: str = "side"
    category_scores: Dict[str, float] = field(default_factory=dict)
    momentum_components: Dict[str, float] = field(default_factory=dict)
    composite_cap: Optional[float] = None
    flags: Tuple[str, ...] = ()
    secondary_leak: Optional[str] = None

    def legacy_scores(self) -> Dict[str, float]:
        """Legacy projection of the sub-scores onto anchor / engine / whip."""
        return legacy_scores(self)

    def legacy_leaks(self) -> Dict[str, Optional[str]]:
        """Legacy projection of the main and secondary leaks."""
        return legacy_leaks(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "composite_score": self.composite_score,
            "band": self.band,
            "band_label": self.band_label,
            "momentum_transfer_score": self.momentum_transfer_score,
            "sub_scores": {name: self.sub_scores[name].to_dict() for name in SUB_SCORES},
            "timing": self.timing.to_dict(),
            "main_leak": self.main_leak,
            "secondary_leak": self.secondary_leak,
            "confidence": round(self.confidence, 3),
            "data_quality": self.data_quality,
            "sequence_anomaly": self.sequence_anomaly,
            "flags": list(self.flags),
            "events": self.events.to_dict(),
            "ordering": self.ordering.to_dict(),
            "coaching_summary": self.coaching_summary,
            "camera_angle": self.camera_angle,
            "category_scores": dict(self.category_scores),
            "momentum_components": dict(self.momentum_components),
            "composite_cap": self.composite_cap,
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        """Serialize to JSON with stable key order."""
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent)


def legacy_scores(result: MomentumTransferResult) -> Dict[str, float]:
    """Named legacy projection: anchor = ground, engine = power, whip = barrel."""
    return {LEGACY_NAMES[name]: result.sub_scores[name].score for name in SUB_SCORES}


def legacy_leaks(result: MomentumTransferResult) -> Dict[str, Optional[str]]:
    """Main and secondary leak under the anchor / engine / whip names."""
    main = result.main_leak
    secondary = result.secondary_leak
    return {
        "main_leak": LEGACY_NAMES.get(main, main),
        "secondary_leak": LEGACY_NAMES[secondary] if secondary is not None else None,
    }


def rank_leaks(sub_scores: Dict[str, FlowScore]) -> List[str]:
    """
    Leaking sub-scores, worst first.

    Sub-scores are ordered by score (ties broken ground > power > barrel) and
    those without a leak severity are dropped.
    """
    ranked = sorted(SUB_SCORES, key=lambda name: (sub_scores[name].score, SUB_SCORES.index(name)))
    return [name for name in ranked if sub_scores[name].leak_severity != LeakSeverity.NONE]


def main_leak_for(sub_scores: Dict[str, FlowScore]) -> str:
    """Lowest sub-score (ties broken ground > power > barrel), or "none" without a leak."""
    leaks = rank_leaks(sub_scores)
    return leaks[0] if leaks else "none"


def secondary_leak_for(sub_scores: Dict[str, FlowScore]) -> Optional[str]:
    """Second-ranked leak, or None when fewer than two sub-scores leak."""
    leaks = rank_leaks(sub_scores)
    return leaks[1] if len(leaks) > 1 else None


def apply_momentum_cap(composite: float, momentum: float) -> Tuple[float, Optional[float]]:
    """
    Cap the composite when momentum transfer is poor.

    Returns:
        Tuple of (composite, applied cap or None).
    """
    cap = next((value for below, value in MOMENTUM_CAPS if momentum < below), None)
    if cap is not None and composite > cap:
        return cap, cap
    return composite, None


def score(
    series: JointSeries,
    events: SwingEvents,
    gaps: SegmentGaps,
    player_height_inches: Optional[float] = None,
    player_level: Optional[PlayerLevel] = None,
    signals: Optional[SeriesSignals] = None,
    ordering: Optional[OrderingReport] = None,
    quality: Optional[QualityReport] = None,
    handedness: Handedness = Handedness.RIGHT,
    canonical_height: float = CANONICAL_HEIGHT,
) -> MomentumTransferResult:
    """
    Score a swing.

    Args:
        series: Normalized joint series.
        events: Detected swing events.
        gaps: Inter-segment timing gaps.
        player_height_inches: Hitter's height; rescales distance features.
        player_level: Competitive level; sets the leak-severity floor.
        signals: Precomputed signals; extracted when omitted.
        ordering: Precomputed ordering report; verified when omitted.
        quality: Precomputed quality report; assessed when omitted.
        handedness: Batting side.
        canonical_height: Body extent the series was normalized to.

    Returns:
        MomentumTransferResult.

    Raises:
        InsufficientDataError: Too little usable data to score.
    """
    if quality is None:
        quality = assess(series)
        require_usable(quality)
        quality = assess_event_support(series, events, quality)

    if signals is None:
        signals = extract_signals(series, handedness)
    if ordering is None:
        ordering = verify_order(series, events, signals)

    features = extract_swing_features(
        signals, events, gaps, ordering, player_height_inches, canonical_height
    )
    scores = feature_scores(features, ordering.order_score)
    categories = {
        category: clamp_score(_weighted(values, FEATURE_WEIGHTS[category]))
        for category, values in scores.items()
    }

    sub_values = {
        name: round(clamp_score(_weighted(categories, weights)), 1)
        for name, weights in SUB_SCORE_WEIGHTS.items()
    }

    components = momentum_components(features, ordering, scores)
    momentum = round(clamp_score(_weighted(components, MOMENTUM_WEIGHTS)), 1)

    composite = (
        momentum * COMPOSITE_WEIGHTS["momentum_transfer"]
        + sum(sub_values[name] * COMPOSITE_WEIGHTS[name] for name in SUB_SCORES)
    )

    flags: List[str] = list(quality.flags)
    composite, applied_cap = apply_momentum_cap(composite, momentum)
    if applied_cap is not None:
        flags.append(f"momentum_cap_{int(applied_cap)}")
        logger.info(f"Momentum transfer {momentum} caps composite at {applied_cap:g}")
    composite = round(clamp_score(composite), 1)

    band, band_label = band_for(composite)

    sub_scores = {
        name: FlowScore(
            score=sub_values[name],
            leak_severity=leak_severity(sub_values[name], composite, player_level),
        )
        for name in SUB_SCORES
    }
    main_leak = main_leak_for(sub_scores)
    secondary_leak = secondary_leak_for(sub_scores)
    main_severity = sub_scores[main_leak].leak_severity if main_leak != "none" else LeakSeverity.NONE

    if events.sequence_anomaly:
        flags.append("sequence_anomaly")
    if ordering.broken_sequence:
        flags.append("broken_sequence")
    if not events.fire_detected:
        flags.append("fire_fallback")
    if not events.trigger_detected:
        flags.append("trigger_fallback")
    if features.ab_ratio is None:
        flags.append("ab_ratio_undefined")

    result = MomentumTransferResult(
        composite_score=composite,
        band=band,
        band_label=band_label,
        momentum_transfer_score=momentum,
        sub_scores=sub_scores,
        timing=SwingTiming(
            ab_ratio=features.ab_ratio,
            load_duration_ms=features.load_duration_ms,
            swing_duration_ms=features.swing_duration_ms,
            launch_to_contact_ms=features.launch_to_contact_ms,
            segment_gaps=gaps,
        ),
        main_leak=main_leak,
        secondary_leak=secondary_leak,
        confidence=quality.confidence,
        data_quality=quality.data_quality,
        sequence_anomaly=events.sequence_anomaly or ordering.broken_sequence,
        events=events,
        ordering=ordering,
        coaching_summary=coaching_summary(composite, main_leak, main_severity.value),
        camera_angle=series.camera_angle.value,
        category_scores={name: round(value, 1) for name, value in categories.items()},
        momentum_components={name: round(value, 1) for name, value in components.items()},
        composite_cap=applied_cap,
        flags=tuple(flags),
    )
    logger.info(
        f"Scored swing: composite={composite} band={band} ({band_label}) "
        f"momentum={momentum} main_leak={main_leak}"
    )
    return result


def compare_results(
    a: MomentumTransferResult,
    b: MomentumTransferResult,
) -> Dict[str, Any]:
    """
    Score deltas (b - a) between two results from the same camera angle.

    Raises:
        CameraAngleMismatchError: The results come from different camera angles.
    """
    if a.camera_angle != b.camera_angle:
        raise CameraAngleMismatchError(
            f"cannot compare {a.camera_angle} view with {b.camera_angle} view",
            first=a.camera_angle,
            second=b.camera_angle,
        )

    return {
        "composite_score": round(b.composite_score - a.composite_score, 1),
        "momentum_transfer_score": round(b.momentum_transfer_score - a.momentum_transfer_score, 1),
        "band": b.band - a.band,
        "sub_scores": {
            name: round(b.sub_scores[name].score - a.sub_scores[name].score, 1)
            for name in SUB_SCORES
        },
    }
