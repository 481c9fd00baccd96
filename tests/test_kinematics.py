"""Tests for kinematic sequence timing and order verification."""

import pytest

from conftest import CONTACT_FRAME, make_swing
from swingflow.analysis.events import SwingEvents, detect_events
from swingflow.analysis.kinematics import ab_ratio, compute_gaps, score_sequence_order, verify_order
from swingflow.analysis.normalizer import normalize
from swingflow.analysis.signals import LINKS, extract_signals

ARMS_EARLY = {"pelvis": 44, "torso": 48, "hands": 46, "bat": 56}


def _analyze(series):
    normalized = normalize(series)
    signals = extract_signals(normalized)
    events = detect_events(normalized, CONTACT_FRAME, signals)
    return normalized, signals, events


def test_clean_swing_fires_proximal_to_distal(clean_swing):
    series, signals, events = _analyze(clean_swing)

    report = verify_order(series, events, signals)

    assert report.firing_order == list(LINKS)
    assert report.inversions == []
    assert not report.broken_sequence
    assert report.order_score == 100.0
    assert report.mismatches == 0
    for link, peak in {"pelvis": 44, "torso": 48, "hands": 52, "bat": 56}.items():
        assert abs(report.firing_frames[link] - peak) <= 1


def test_clean_swing_gaps(clean_swing):
    series, signals, events = _analyze(clean_swing)

    gaps = compute_gaps(series, events, signals)

    # Four frames at 30 fps between each link
    for value in gaps.as_mapping().values():
        assert value == pytest.approx(133.3, abs=34.0)
    assert gaps.raw["pelvis_to_torso"] == gaps.pelvis_to_torso_ms


def test_arm_before_torso_is_an_inversion():
    series, signals, events = _analyze(make_swing(peaks=ARMS_EARLY))

    report = verify_order(series, events, signals)
    gaps = compute_gaps(series, events, signals)

    assert report.broken_sequence
    assert report.inversions == ["torso_to_hands"]
    assert report.firing_order == ["pelvis", "hands", "torso", "bat"]
    assert report.mismatches == 2
    assert gaps.torso_to_hands_ms == 0.0
    assert gaps.raw["torso_to_hands"] < 0


def test_sequence_order_score():
    assert score_sequence_order(["pelvis", "torso", "hands", "bat"]) == 100.0
    assert score_sequence_order(["pelvis", "hands", "torso", "bat"]) == 50.0
    assert score_sequence_order(["bat", "hands", "torso", "pelvis"]) == 0.0


def test_ab_ratio():
    assert ab_ratio(SwingEvents(10, 30, 40), fps=30.0) == pytest.approx(2.0)
    assert ab_ratio(SwingEvents(10, 20, 20), fps=30.0) is None


def test_verify_order_extracts_signals_when_missing(clean_swing):
    events = detect_events(clean_swing, CONTACT_FRAME)

    report = verify_order(clean_swing, events)

    assert not report.broken_sequence
