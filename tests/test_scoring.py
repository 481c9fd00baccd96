"""Tests for momentum-transfer scoring."""

import json

import pytest

from conftest import CONTACT_FRAME, jitter, make_swing
from swingflow.analysis import scoring
from swingflow.analysis.coaching import BALANCED_LEAK_LINE, coaching_summary
from swingflow.analysis.events import detect_events
from swingflow.analysis.kinematics import compute_gaps
from swingflow.analysis.normalizer import normalize
from swingflow.analysis.scoring import (
    BANDS,
    COMPOSITE_WEIGHTS,
    FEATURE_WEIGHTS,
    MOMENTUM_WEIGHTS,
    LeakSeverity,
    FlowScore,
    apply_momentum_cap,
    band_for,
    compare_results,
    leak_severity,
    legacy_leaks,
    legacy_scores,
    main_leak_for,
    rank_leaks,
    secondary_leak_for,
    score,
    score_ab_ratio,
    score_less_is_better,
    score_more_is_better,
    score_tolerance_band,
)
from swingflow.config import PlayerLevel
from swingflow.errors import CameraAngleMismatchError, InsufficientDataError

ARMS_EARLY = {"pelvis": 44, "torso": 48, "hands": 46, "bat": 56}


def _score(series, contact=CONTACT_FRAME, **kwargs):
    normalized = normalize(series)
    events = detect_events(normalized, contact)
    gaps = compute_gaps(normalized, events)
    return score(normalized, events, gaps, **kwargs)


def test_swing_duration_is_measured_to_contact(clean_swing):
    result = _score(clean_swing)

    assert result.timing.swing_duration_ms == pytest.approx(2000.0)
    assert result.events.contact_frame == 60


def test_result_shape(clean_swing):
    result = _score(clean_swing)

    assert 0.0 <= result.composite_score <= 100.0
    assert (result.band, result.band_label) == band_for(result.composite_score)
    assert set(result.sub_scores) == {"ground", "power", "barrel"}
    for sub in result.sub_scores.values():
        assert 0.0 <= sub.score <= 100.0
    assert result.main_leak in ("ground", "power", "barrel", "none")
    assert result.data_quality == "high"
    assert result.confidence == 1.0
    assert not result.sequence_anomaly
    assert result.coaching_summary.count(".") >= 3


def test_arm_before_torso_still_scores():
    result = _score(make_swing(peaks=ARMS_EARLY))

    assert result.sequence_anomaly
    assert "broken_sequence" in result.flags
    assert result.main_leak in ("ground", "power", "barrel", "none")
    assert result.ordering.inversions == ["torso_to_hands"]


def test_broken_sequence_scores_below_clean(clean_swing):
    clean = _score(clean_swing)
    broken = _score(make_swing(peaks=ARMS_EARLY))

    assert broken.momentum_transfer_score < clean.momentum_transfer_score


def test_scoring_is_deterministic(clean_swing):
    first = _score(clean_swing, player_height_inches=72, player_level=PlayerLevel.COLLEGE)
    second = _score(clean_swing, player_height_inches=72, player_level=PlayerLevel.COLLEGE)

    assert first.to_json() == second.to_json()
    assert json.loads(first.to_json())["composite_score"] == first.composite_score


def test_no_usable_frames_is_insufficient():
    series = make_swing(dropout=range(90))
    events = detect_events(series, CONTACT_FRAME)
    gaps = compute_gaps(series, events)

    with pytest.raises(InsufficientDataError):
        score(series, events, gaps)


def test_legacy_projection(clean_swing):
    result = _score(clean_swing)

    legacy = legacy_scores(result)

    assert legacy == result.legacy_scores()
    assert legacy == {
        "anchor": result.sub_scores["ground"].score,
        "engine": result.sub_scores["power"].score,
        "whip": result.sub_scores["barrel"].score,
    }


def test_band_is_monotonic():
    previous = -4
    for tenth in range(0, 1001):
        band, _ = band_for(tenth / 10.0)
        assert band >= previous
        previous = band

    assert band_for(100.0) == (3, "Elite")
    assert band_for(92.0) == (3, "Elite")
    assert band_for(91.9) == (2, "Advanced")
    assert band_for(0.0) == (-3, "Needs Work")
    assert [label for _, _, label in BANDS][-1] == "Needs Work"


def test_leak_severity_is_monotonic_in_deficit():
    previous = LeakSeverity.NONE.rank
    for deficit in range(0, 60):
        severity = leak_severity(80.0 - deficit, 80.0)
        assert severity.rank >= previous
        previous = severity.rank

    assert leak_severity(75.0, 80.0) == LeakSeverity.NONE
    assert leak_severity(70.0, 80.0) == LeakSeverity.MILD
    assert leak_severity(60.0, 80.0) == LeakSeverity.MODERATE
    assert leak_severity(50.0, 80.0) == LeakSeverity.SEVERE


def test_level_floor_raises_the_reference():
    assert leak_severity(60.0, 50.0) == LeakSeverity.NONE
    assert leak_severity(60.0, 50.0, PlayerLevel.PRO) == LeakSeverity.MILD
    assert leak_severity(40.0, 50.0, "youth") == LeakSeverity.MILD


def test_main_leak_ties_prefer_ground_then_power():
    tied = {
        name: FlowScore(50.0, LeakSeverity.MILD) for name in ("ground", "power", "barrel")
    }
    assert main_leak_for(tied) == "ground"

    tied["ground"] = FlowScore(70.0, LeakSeverity.NONE)
    assert main_leak_for(tied) == "power"


def test_main_leak_none_without_severity():
    balanced = {
        name: FlowScore(80.0, LeakSeverity.NONE) for name in ("ground", "power", "barrel")
    }
    assert main_leak_for(balanced) == "none"


def test_score_curves():
    band = ((180.0, 280.0), (150.0, 320.0))
    assert score_tolerance_band(200.0, band) == 100.0
    assert score_tolerance_band(165.0, band) == pytest.approx(87.5)
    assert score_tolerance_band(140.0, band) == pytest.approx(30.0)
    assert score_tolerance_band(1000.0, band) == 0.0

    assert score_less_is_better(5.0, (5.0, 10.0, 15.0)) == 100.0
    assert score_less_is_better(10.0, (5.0, 10.0, 15.0)) == 75.0
    assert score_less_is_better(15.0, (5.0, 10.0, 15.0)) == 50.0

    assert score_more_is_better(80.0, (80.0, 60.0, 40.0)) == 100.0
    assert score_more_is_better(60.0, (80.0, 60.0, 40.0)) == 75.0
    assert score_more_is_better(40.0, (80.0, 60.0, 40.0)) == 50.0

    assert score_ab_ratio(None) == 0.0
    assert score_ab_ratio(1.5) == 100.0


def test_compare_results_rejects_mixed_angles():
    side = _score(make_swing(camera_angle="side"))
    front = _score(make_swing(camera_angle="front"))

    with pytest.raises(CameraAngleMismatchError):
        compare_results(side, front)


def test_compare_results_deltas(clean_swing):
    clean = _score(clean_swing)
    broken = _score(make_swing(peaks=ARMS_EARLY))

    deltas = compare_results(clean, broken)

    assert deltas["composite_score"] == pytest.approx(
        broken.composite_score - clean.composite_score, abs=0.05
    )
    assert set(deltas["sub_scores"]) == {"ground", "power", "barrel"}
    assert compare_results(clean, clean)["composite_score"] == 0.0


def test_coaching_summary_is_deterministic():
    first = coaching_summary(68.0, "power", "moderate")

    assert first == coaching_summary(68.0, "power", "moderate")
    assert "a moderate leak in power flow" in first
    assert BALANCED_LEAK_LINE in coaching_summary(95.0, "none", "none")


def test_composite_is_weighted_blend(clean_swing):
    result = _score(clean_swing)

    assert result.composite_cap is None
    expected = (
        COMPOSITE_WEIGHTS["momentum_transfer"] * result.momentum_transfer_score
        + COMPOSITE_WEIGHTS["ground"] * result.sub_scores["ground"].score
        + COMPOSITE_WEIGHTS["power"] * result.sub_scores["power"].score
        + COMPOSITE_WEIGHTS["barrel"] * result.sub_scores["barrel"].score
    )
    assert result.composite_score == pytest.approx(expected, abs=0.051)
    assert COMPOSITE_WEIGHTS == {
        "momentum_transfer": 0.60, "ground": 0.15, "power": 0.15, "barrel": 0.10,
    }


@pytest.mark.parametrize(
    "composite, momentum, expected",
    [
        (75.0, 39.9, (60.0, 60.0)),
        (75.0, 45.0, (70.0, 70.0)),
        (55.0, 35.0, (55.0, None)),
        (65.0, 45.0, (65.0, None)),
        (90.0, 50.0, (90.0, None)),
    ],
)
def test_momentum_caps(composite, momentum, expected):
    assert apply_momentum_cap(composite, momentum) == expected


def test_poor_momentum_caps_composite(clean_swing, monkeypatch):
    perfect = {
        category: {name: 100.0 for name in weights}
        for category, weights in FEATURE_WEIGHTS.items()
    }
    monkeypatch.setattr(scoring, "feature_scores", lambda features, order_score: perfect)
    monkeypatch.setattr(
        scoring,
        "momentum_components",
        lambda features, ordering, scores: {name: 38.0 for name in MOMENTUM_WEIGHTS},
    )

    result = _score(clean_swing)

    # 0.60 * 38 + 0.40 * 100 = 62.8 before the cap
    assert result.momentum_transfer_score == 38.0
    assert result.composite_score == 60.0
    assert result.composite_cap == 60.0
    assert "momentum_cap_60" in result.flags
    assert result.band_label == "Average"


def test_leaks_are_ranked_worst_first():
    sub_scores = {
        "ground": FlowScore(55.0, LeakSeverity.MODERATE),
        "power": FlowScore(48.0, LeakSeverity.SEVERE),
        "barrel": FlowScore(55.0, LeakSeverity.MODERATE),
    }

    assert rank_leaks(sub_scores) == ["power", "ground", "barrel"]
    assert main_leak_for(sub_scores) == "power"
    assert secondary_leak_for(sub_scores) == "ground"

    sub_scores["ground"] = FlowScore(80.0, LeakSeverity.NONE)
    sub_scores["barrel"] = FlowScore(78.0, LeakSeverity.NONE)
    assert rank_leaks(sub_scores) == ["power"]
    assert secondary_leak_for(sub_scores) is None


def test_secondary_leak_in_result(clean_swing):
    result = _score(clean_swing, player_level=PlayerLevel.PRO)
    data = result.to_dict()

    assert data["main_leak"] == result.main_leak
    assert data["secondary_leak"] == result.secondary_leak
    if result.secondary_leak is not None:
        assert result.secondary_leak != result.main_leak
        assert result.main_leak != "none"
    assert legacy_leaks(result) == result.legacy_leaks()


def test_legacy_leak_names():
    result = _score(make_swing())
    renamed = {"ground": "anchor", "power": "engine", "barrel": "whip", "none": "none"}

    legacy = legacy_leaks(result)

    assert legacy["main_leak"] == renamed[result.main_leak]
    assert legacy["secondary_leak"] == (
        None if result.secondary_leak is None else renamed[result.secondary_leak]
    )


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_noisy_swing_scores_without_anomaly(clean_swing, seed):
    result = _score(jitter(clean_swing, sigma=1.0, seed=seed))

    assert not result.events.sequence_anomaly
    assert result.data_quality == "high"
    assert 0.0 <= result.composite_score <= 100.0
