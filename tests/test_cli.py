"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from cli import cli
from conftest import CONTACT_FRAME, make_swing
from swingflow.utils.series_io import save_series


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def series_file(tmp_path):
    return str(save_series(make_swing(), tmp_path / "swing.json"))


def test_version(runner):
    result = runner.invoke(cli, ["version"])

    assert result.exit_code == 0
    assert "Swing Flow Analysis v" in result.output


def test_analyze_outputs_json(runner, series_file):
    result = runner.invoke(cli, ["analyze", series_file, "--contact-frame", str(CONTACT_FRAME)])

    assert result.exit_code == 0, result.stderr
    data = json.loads(result.stdout)
    assert data["timing"]["swing_duration_ms"] == 2000.0
    assert set(data["sub_scores"]) == {"ground", "power", "barrel"}


def test_analyze_legacy(runner, series_file, tmp_path):
    output = tmp_path / "result.json"

    result = runner.invoke(
        cli,
        [
            "analyze", series_file,
            "--contact-frame", "60",
            "--player-height", "72",
            "--player-level", "college",
            "--legacy",
            "--output", str(output),
        ],
    )

    assert result.exit_code == 0, result.stderr
    data = json.loads(output.read_text())
    assert set(data) == {"anchor", "engine", "whip", "main_leak", "secondary_leak"}
    assert data["main_leak"] in ("anchor", "engine", "whip", "none")


def test_analyze_error_is_json_on_stderr(runner, tmp_path):
    path = save_series(make_swing(dropout=range(90)), tmp_path / "empty.json")

    result = runner.invoke(cli, ["analyze", str(path)])

    assert result.exit_code == 1
    error = json.loads(result.stderr.strip().splitlines()[-1])["error"]
    assert error["kind"] == "insufficient_data"
    assert result.stdout == ""


def test_analyze_malformed_series_is_json_error(runner, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"fps": 30, "frames": [], "camera_angle": "diagonal"}))

    result = runner.invoke(cli, ["analyze", str(path)])

    assert result.exit_code == 1
    error = json.loads(result.stderr.strip().splitlines()[-1])["error"]
    assert error["kind"] == "invalid_series"
    assert result.stdout == ""


def test_compare_mismatched_angles(runner, tmp_path):
    side = save_series(make_swing(camera_angle="side"), tmp_path / "side.json")
    front = save_series(make_swing(camera_angle="front"), tmp_path / "front.json")

    result = runner.invoke(cli, ["compare", str(side), str(front)])

    assert result.exit_code == 1
    assert "camera_angle_mismatch" in result.stderr


def test_compare_outputs_deltas(runner, series_file):
    result = runner.invoke(cli, ["compare", series_file, series_file])

    assert result.exit_code == 0, result.stderr
    data = json.loads(result.stdout)
    assert data["deltas"]["composite_score"] == 0.0
    assert data["a"]["composite_score"] == data["b"]["composite_score"]


def test_invalid_player_height(runner, series_file):
    result = runner.invoke(cli, ["analyze", series_file, "--player-height", "-3"])

    assert result.exit_code == 2


def test_analysis_options_come_from_config(runner, series_file, tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("analysis:\n  player_height_inches: -5\n  handedness: null\n")

    from_config = runner.invoke(cli, ["-c", str(config_file), "analyze", series_file])
    overridden = runner.invoke(
        cli, ["-c", str(config_file), "analyze", series_file, "--player-height", "70"]
    )

    assert from_config.exit_code == 2
    assert overridden.exit_code == 0, overridden.stderr
    assert json.loads(overridden.stdout)["composite_score"] > 0
