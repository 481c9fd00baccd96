"""Tests for input validation and normalization."""

import numpy as np
import pytest

from conftest import make_swing
from swingflow.analysis.normalizer import (
    body_extent,
    normalize,
    validate_comparable,
    validate_series_input,
)
from swingflow.errors import CameraAngleMismatchError, InsufficientDataError, InvalidSeriesError
from swingflow.pose.base import Frame, JointId, JointSeries


def test_side_vs_front_is_rejected():
    side = make_swing(n_frames=20, camera_angle="side")
    front = make_swing(n_frames=20, camera_angle="front")

    with pytest.raises(CameraAngleMismatchError) as excinfo:
        validate_comparable(side, front)

    assert excinfo.value.kind == "camera_angle_mismatch"
    assert excinfo.value.to_dict()["details"] == {"first": "side", "second": "front"}


def test_same_angle_is_comparable():
    validate_comparable(make_swing(n_frames=20), make_swing(n_frames=30))


@pytest.mark.parametrize("fps", [10.0, 23.9, 121.0, 240.0])
def test_fps_outside_range_is_invalid(fps):
    series = JointSeries(frames=(Frame.empty(0, 0.0),), fps=fps)

    with pytest.raises(InvalidSeriesError):
        validate_series_input(series)


@pytest.mark.parametrize("fps", [24.0, 30.0, 60.0, 120.0])
def test_fps_inside_range_is_valid(fps):
    validate_series_input(JointSeries(frames=(Frame.empty(0, 0.0),), fps=fps))


def test_series_longer_than_a_minute_is_invalid():
    frames = tuple(Frame.empty(i, i * 1000.0 / 24.0) for i in range(24 * 60 + 1))

    with pytest.raises(InvalidSeriesError) as excinfo:
        validate_series_input(JointSeries(frames=frames, fps=24.0))

    assert excinfo.value.kind == "invalid_series"


def test_non_monotonic_frames_are_invalid():
    with pytest.raises(InvalidSeriesError):
        JointSeries(frames=(Frame.empty(1, 10.0), Frame.empty(0, 20.0)), fps=30.0)
    with pytest.raises(InvalidSeriesError):
        JointSeries(frames=(Frame.empty(0, 10.0), Frame.empty(1, 10.0)), fps=30.0)


def test_normalize_maps_extent_to_canonical_height(clean_swing):
    normalized = normalize(clean_swing, canonical_height=180.0)

    assert body_extent(normalized) == pytest.approx(180.0)
    first = normalized.frames[0]
    mid_hip = first.midpoint(JointId.LEFT_HIP, JointId.RIGHT_HIP)
    assert np.allclose(mid_hip, [0.0, 0.0])


def test_normalize_keeps_confidences_and_metadata():
    series = make_swing(n_frames=30, dropout=[3, 4], impact_frame_index=20)

    normalized = normalize(series)

    assert normalized.fps == series.fps
    assert normalized.camera_angle == series.camera_angle
    assert normalized.impact_frame_index == 20
    for before, after in zip(series.frames, normalized.frames):
        assert after.index == before.index
        assert after.timestamp_ms == before.timestamp_ms
        assert [j.confidence for j in after.joints] == [j.confidence for j in before.joints]


def test_normalize_removes_camera_distance():
    near = normalize(make_swing(n_frames=30, scale=2.0))
    far = normalize(make_swing(n_frames=30, scale=0.5))

    for a, b in zip(near.frames, far.frames):
        assert np.allclose(a.get_keypoints_array(), b.get_keypoints_array())


def test_normalize_without_usable_frames_fails():
    series = make_swing(n_frames=10, dropout=range(10))

    with pytest.raises(InsufficientDataError):
        normalize(series)


def test_normalize_rejects_bad_canonical_height(clean_swing):
    with pytest.raises(ValueError):
        normalize(clean_swing, canonical_height=0)
