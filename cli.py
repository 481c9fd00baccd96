#!/usr/bin/env python3
"""Command-line interface for swing flow analysis."""

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from swingflow import __version__
from swingflow.config import DEFAULT_CONFIG_PATH, Handedness, PlayerLevel, load_config
from swingflow.errors import SwingAnalysisError


def _setup_logging(ctx: click.Context) -> None:
    from swingflow.utils.logging_config import setup_logging_from_config

    # stdout carries JSON output, so logs go to stderr
    setup_logging_from_config(ctx.obj["config"], verbose=ctx.obj["verbose"], stream=sys.stderr)


def _pipeline_config(ctx: click.Context):
    from swingflow.pipeline.orchestrator import PipelineConfig

    return PipelineConfig.from_dict(ctx.obj["config"])


def _analysis_options(ctx: click.Context, **overrides: Any):
    """Analysis options from the config's analysis section, overridden by CLI values."""
    from swingflow.config import AnalysisOptions

    values = dict(ctx.obj["config"].get("analysis") or {})
    values.update({key: value for key, value in overrides.items() if value is not None})
    return AnalysisOptions.from_dict(values)


def _emit(data: Dict[str, Any], output: Optional[str]) -> None:
    text = json.dumps(data, indent=2, sort_keys=True)
    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(text + "\n")
        click.echo(f"Wrote {output}", err=True)
    else:
        click.echo(text)


def _fail(ctx: click.Context, error: SwingAnalysisError) -> None:
    click.echo(json.dumps({"error": error.to_dict()}, sort_keys=True), err=True)
    ctx.exit(1)


@click.group()
@click.option(
    "--config",
    "-c",
    default=DEFAULT_CONFIG_PATH,
    help="Path to configuration file",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool) -> None:
    """Swing Flow Analysis.

    Score how cleanly a baseball swing transfers momentum from the ground
    through the hips, torso and hands into the barrel.
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("series_json", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--contact-frame",
    type=int,
    help="Trusted contact frame (position in the series)",
)
@click.option(
    "--player-height",
    type=float,
    help="Player height in inches",
)
@click.option(
    "--player-level",
    type=click.Choice([level.value for level in PlayerLevel]),
    help="Competitive level, sets the leak-severity floor",
)
@click.option(
    "--handedness",
    type=click.Choice([side.value for side in Handedness]),
    default=None,
    help="Batting side (default: right)",
)
@click.option(
    "--legacy",
    is_flag=True,
    help="Output the legacy anchor/engine/whip scores and leaks only",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write the result JSON to this file",
)
@click.pass_context
def analyze(
    ctx: click.Context,
    series_json: str,
    contact_frame: Optional[int],
    player_height: Optional[float],
    player_level: Optional[str],
    handedness: Optional[str],
    legacy: bool,
    output: Optional[str],
) -> None:
    """Score a swing from a joint series JSON file."""
    from swingflow.pipeline.orchestrator import SwingAnalysisPipeline
    from swingflow.utils.series_io import load_series

    _setup_logging(ctx)

    try:
        options = _analysis_options(
            ctx,
            player_height_inches=player_height,
            player_level=player_level,
            manual_contact_frame_index=contact_frame,
            handedness=handedness,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    try:
        series = load_series(series_json)
        result = SwingAnalysisPipeline(config=_pipeline_config(ctx)).analyze(series, options)
    except SwingAnalysisError as e:
        _fail(ctx, e)
        return

    if legacy:
        _emit({**result.legacy_scores(), **result.legacy_leaks()}, output)
    else:
        _emit(result.to_dict(), output)


@cli.command()
@click.argument("series_a", type=click.Path(exists=True, dir_okay=False))
@click.argument("series_b", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--player-height",
    type=float,
    help="Player height in inches",
)
@click.option(
    "--player-level",
    type=click.Choice([level.value for level in PlayerLevel]),
    help="Competitive level, sets the leak-severity floor",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write the comparison JSON to this file",
)
@click.pass_context
def compare(
    ctx: click.Context,
    series_a: str,
    series_b: str,
    player_height: Optional[float],
    player_level: Optional[str],
    output: Optional[str],
) -> None:
    """Compare two swings recorded from the same camera angle."""
    from swingflow.pipeline.orchestrator import SwingAnalysisPipeline
    from swingflow.utils.series_io import load_series

    _setup_logging(ctx)

    try:
        options = _analysis_options(
            ctx, player_height_inches=player_height, player_level=player_level
        )
    except ValueError as e:
        raise click.BadParameter(str(e))
    try:
        first = load_series(series_a)
        second = load_series(series_b)
        comparison = SwingAnalysisPipeline(config=_pipeline_config(ctx)).compare(
            first, second, options
        )
    except SwingAnalysisError as e:
        _fail(ctx, e)
        return

    _emit(
        {
            "a": {"composite_score": comparison["a"]["composite_score"]},
            "b": {"composite_score": comparison["b"]["composite_score"]},
            "deltas": comparison["deltas"],
        },
        output,
    )


@cli.command()
@click.argument("video", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--camera-angle",
    type=click.Choice(["side", "front", "back", "overhead"]),
    default="side",
    help="Camera placement relative to the hitter",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Where to write the joint series JSON (default: VIDEO with .json suffix)",
)
@click.option(
    "--no-segment",
    is_flag=True,
    help="Run pose detection on full frames",
)
@click.pass_context
def extract(
    ctx: click.Context,
    video: str,
    camera_angle: str,
    output: Optional[str],
    no_segment: bool,
) -> None:
    """Extract a joint series from a swing video."""
    from swingflow.pipeline.orchestrator import SwingAnalysisPipeline
    from swingflow.pose.base import CameraAngle
    from swingflow.pose.detector import PoseDetectorHandle
    from swingflow.pose.mediapipe_backend import MediaPipeBackend
    from swingflow.utils.series_io import save_series

    _setup_logging(ctx)

    pipeline_config = _pipeline_config(ctx)
    if no_segment:
        pipeline_config.segment = False

    pose_cfg = ctx.obj["config"].get("pose") or {}
    backend = MediaPipeBackend(
        min_detection_confidence=pose_cfg.get("min_detection_confidence", 0.5),
        min_tracking_confidence=pose_cfg.get("min_tracking_confidence", 0.5),
        model_complexity=pose_cfg.get("model_complexity", 1),
        model_cache_dir=pose_cfg.get("model_cache_dir"),
    )

    output_path = output or str(Path(video).with_suffix(".json"))
    click.echo(f"Extracting pose from: {video}", err=True)

    with PoseDetectorHandle(backend, timeout_s=pipeline_config.detector_timeout_s) as detector:
        pipeline = SwingAnalysisPipeline(detector=detector, config=pipeline_config)
        try:
            series = pipeline.extract_series(video, CameraAngle(camera_angle))
        except SwingAnalysisError as e:
            _fail(ctx, e)
            return

    save_series(series, output_path)
    progress = pipeline.progress
    click.echo(
        f"  {progress.pose_detected}/{progress.total_frames} frames with pose, "
        f"{progress.segmentation_fallbacks} segmentation fallbacks",
        err=True,
    )
    click.echo(output_path)


@cli.command()
@click.argument("video", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--frame",
    "-f",
    "frame_number",
    required=True,
    type=int,
    help="Frame number to segment",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write the binary mask to this image file",
)
@click.pass_context
def segment(
    ctx: click.Context,
    video: str,
    frame_number: int,
    output: Optional[str],
) -> None:
    """Segment the hitter in a single video frame."""
    import cv2

    from swingflow.segmentation.region_grow import FrameSegmenter
    from swingflow.utils.video_utils import VideoProcessor

    _setup_logging(ctx)

    try:
        with VideoProcessor(video, max_duration_s=None) as vp:
            image = vp.get_frame_at(frame_number)
    except ValueError as e:
        raise click.ClickException(str(e))

    if image is None:
        raise click.ClickException(f"Frame {frame_number} not found in {video}")

    result = FrameSegmenter().segment(image, frame_index=frame_number)
    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        cv2.imwrite(output, result.mask.bitmap)
        click.echo(f"Wrote mask to {output}", err=True)

    _emit(result.to_dict(), None)


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"Swing Flow Analysis v{__version__}")


if __name__ == "__main__":
    cli()
