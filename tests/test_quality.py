"""Tests for confidence and data-quality assessment."""

import pytest

from conftest import make_swing
from swingflow.analysis.events import SwingEvents
from swingflow.analysis.quality import (
    assess,
    assess_event_support,
    event_support,
    quality_tag,
    require_usable,
)
from swingflow.errors import InsufficientDataError


@pytest.mark.parametrize(
    "confidence,tag",
    [(0.0, "low"), (0.49, "low"), (0.5, "medium"), (0.84, "medium"), (0.85, "high"), (1.0, "high")],
)
def test_quality_tag_thresholds(confidence, tag):
    assert quality_tag(confidence) == tag


def test_half_usable_frames_is_medium():
    series = make_swing(n_frames=90, dropout=range(0, 90, 2))

    report = assess(series)

    assert report.usable_frames == 45
    assert report.total_frames == 90
    assert report.confidence == pytest.approx(0.5)
    assert report.data_quality == "medium"


def test_all_usable_is_high(clean_swing):
    report = assess(clean_swing)

    assert report.confidence == 1.0
    assert report.data_quality == "high"


def test_zero_usable_frames_is_insufficient():
    report = assess(make_swing(n_frames=20, dropout=range(20)))

    assert report.confidence == 0.0
    with pytest.raises(InsufficientDataError) as excinfo:
        require_usable(report)
    assert excinfo.value.kind == "insufficient_data"


def test_too_few_usable_frames_is_insufficient():
    report = assess(make_swing(n_frames=20, dropout=range(2, 20)))

    with pytest.raises(InsufficientDataError):
        require_usable(report)


def test_event_support_counts_window():
    series = make_swing(n_frames=40, dropout=range(0, 40, 2))
    events = SwingEvents(trigger_frame=10, fire_frame=20, contact_frame=30)

    assert event_support(series, events) == {"trigger": 6, "fire": 6, "contact": 6}


def test_thin_event_support_degrades_quality():
    # Only frames 28 and 32 are usable around contact
    dropped = [i for i in range(24, 40) if i not in (28, 32)]
    series = make_swing(n_frames=40, dropout=dropped)
    events = SwingEvents(trigger_frame=5, fire_frame=10, contact_frame=30)
    report = assess(series)

    degraded = assess_event_support(series, events, report)

    assert degraded.data_quality == "low"
    assert degraded.confidence == pytest.approx(report.confidence * 2 / 3)
    assert "thin_event_support" in degraded.flags
    assert degraded.event_support["contact"] == 2


def test_event_without_support_is_insufficient():
    series = make_swing(n_frames=40, dropout=range(20, 40))
    events = SwingEvents(trigger_frame=5, fire_frame=10, contact_frame=35)

    with pytest.raises(InsufficientDataError):
        assess_event_support(series, events, assess(series))
