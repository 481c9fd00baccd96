"""Pipeline orchestrator for end-to-end swing analysis."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from swingflow.analysis.events import detect_events
from swingflow.analysis.kinematics import compute_gaps, verify_order
from swingflow.analysis.normalizer import (
    CANONICAL_HEIGHT,
    normalize,
    validate_comparable,
    validate_series_input,
)
from swingflow.analysis.quality import assess, assess_event_support, require_usable
from swingflow.analysis.scoring import MomentumTransferResult, compare_results, score
from swingflow.analysis.signals import extract_signals
from swingflow.config import AnalysisOptions
from swingflow.pose.base import CameraAngle, Frame, JointSeries, offset_frame
from swingflow.pose.detector import DetectionStatus, PoseDetectorHandle
from swingflow.segmentation.region_grow import SegmentationResult, crop_to_bbox, segment_frame
from swingflow.utils.logging_config import ProgressLogger, get_logger
from swingflow.utils.parallel import CancellationToken, map_frames
from swingflow.utils.video_utils import VideoProcessor

logger = get_logger(__name__)


@dataclass
class PipelineConfig:
    """
    Configuration for the swing analysis pipeline.

    Attributes:
        max_workers: Worker count for per-frame segmentation and features.
        use_processes: Use a process pool instead of threads.
        detector_timeout_s: Per-call pose detector timeout.
        canonical_height: Body extent series are normalized to.
        segment: Crop frames to the hitter's silhouette before pose detection.
        crop_padding: Padding around the silhouette bounding box, in pixels.
        chunk_size: Frames decoded and segmented per batch.
        max_duration_s: Longest accepted clip.
        show_progress: Whether to show progress bars.
    """
    max_workers: int = 4
    use_processes: bool = False
    detector_timeout_s: float = 5.0
    canonical_height: float = CANONICAL_HEIGHT
    segment: bool = True
    crop_padding: int = 20
    chunk_size: int = 64
    max_duration_s: float = 60.0
    show_progress: bool = False

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> "PipelineConfig":
        """
        Build a pipeline config from the loaded YAML configuration.

        Reads the ``pipeline`` section, plus ``pose.timeout_s``,
        ``segmentation.enabled``/``segmentation.padding`` and
        ``analysis.canonical_height``. Unknown keys are ignored.
        """
        config = config or {}
        values: Dict[str, Any] = {}

        pipeline = config.get("pipeline") or {}
        for key in cls.__dataclass_fields__:
            if key in pipeline:
                values[key] = pipeline[key]

        pose = config.get("pose") or {}
        if "timeout_s" in pose:
            values["detector_timeout_s"] = float(pose["timeout_s"])

        segmentation = config.get("segmentation") or {}
        if "enabled" in segmentation:
            values["segment"] = bool(segmentation["enabled"])
        if "padding" in segmentation:
            values["crop_padding"] = int(segmentation["padding"])

        analysis = config.get("analysis") or {}
        if "canonical_height" in analysis:
            values["canonical_height"] = float(analysis["canonical_height"])

        return cls(**values)


@dataclass
class PipelineProgress:
    """
    Track progress of a video extraction run.

    Attributes:
        total_frames: Frames decoded so far.
        segmented: Frames segmented without falling back.
        segmentation_fallbacks: Frames that used the full-frame mask.
        pose_detected: Frames with a detected pose.
        failed: Frames whose pose detection failed.
        current_stage: Current processing stage.
    """
    total_frames: int = 0
    segmented: int = 0
    segmentation_fallbacks: int = 0
    pose_detected: int = 0
    failed: int = 0
    current_stage: str = ""
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_frames": self.total_frames,
            "segmented": self.segmented,
            "segmentation_fallbacks": self.segmentation_fallbacks,
            "pose_detected": self.pose_detected,
            "failed": self.failed,
            "current_stage": self.current_stage,
            "error_count": len(self.errors),
        }


class SwingAnalysisPipeline:
    """
    End-to-end swing analysis.

    ``extract_series`` turns a video into a joint series (segmentation, then
    serialized pose detection); ``analyze`` scores a joint series. The pose
    detector handle is constructed by the caller and only needed for video
    extraction.
    """

    def __init__(
        self,
        detector: Optional[PoseDetectorHandle] = None,
        config: Optional[PipelineConfig] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            detector: Pose detector handle, owned by the caller.
            config: Pipeline configuration. Uses defaults if not provided.
        """
        self.detector = detector
        self.config = config or PipelineConfig()
        self.progress = PipelineProgress()

    def _segment_chunk(
        self,
        chunk: List[Tuple[int, float, np.ndarray]],
        cancel_token: Optional[CancellationToken],
    ) -> List[Optional[SegmentationResult]]:
        if not self.config.segment:
            return [None] * len(chunk)

        results = map_frames(
            segment_frame,
            [(frame_index, image, None) for frame_index, _, image in chunk],
            max_workers=self.config.max_workers,
            use_processes=self.config.use_processes,
            cancel_token=cancel_token,
            desc="Segmenting frames",
        )
        for result in results:
            if result.used_fallback:
                self.progress.segmentation_fallbacks += 1
            else:
                self.progress.segmented += 1
        return results

    def _detect(
        self,
        frame_index: int,
        timestamp_ms: float,
        image: np.ndarray,
        segmentation: Optional[SegmentationResult],
    ) -> Frame:
        dx, dy = 0, 0
        if segmentation is not None and not segmentation.used_fallback:
            image, (dx, dy) = crop_to_bbox(image, segmentation.bbox, self.config.crop_padding)

        outcome = self.detector.detect(
            image, frame_index, timestamp_ms, timeout_s=self.config.detector_timeout_s
        )
        if outcome.status != DetectionStatus.OK:
            self.progress.failed += 1
            self.progress.errors.append(outcome.error.to_dict())
            logger.debug(f"Frame {frame_index}: {outcome.status.value}")
            return Frame.empty(frame_index, timestamp_ms)

        self.progress.pose_detected += 1
        if dx or dy:
            return offset_frame(outcome.frame, dx, dy)
        return outcome.frame

    def _process_chunk(
        self,
        chunk: List[Tuple[int, float, np.ndarray]],
        cancel_token: Optional[CancellationToken],
        progress_log: ProgressLogger,
    ) -> List[Frame]:
        self.progress.current_stage = "segmenting"
        segmentations = self._segment_chunk(chunk, cancel_token)

        self.progress.current_stage = "pose"
        frames = []
        for (frame_index, timestamp_ms, image), segmentation in zip(chunk, segmentations):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled("pose detection")
            frames.append(self._detect(frame_index, timestamp_ms, image, segmentation))
            progress_log.update()
        return frames

    def extract_series(
        self,
        video_path: str,
        camera_angle: CameraAngle = CameraAngle.SIDE,
        cancel_token: Optional[CancellationToken] = None,
    ) -> JointSeries:
        """
        Extract a joint series from a swing video.

        Frames whose pose detection fails (no pose, timeout, backend error)
        become zero-confidence frames so the series stays aligned with the
        video.

        Args:
            video_path: Path to the video file.
            camera_angle: Camera placement of the recording.
            cancel_token: Optional cooperative cancellation token.

        Returns:
            JointSeries in full-frame pixel coordinates.

        Raises:
            PipelineCancelledError: If cancelled between frames.
            InvalidSeriesError: If the clip is too long.
        """
        if self.detector is None:
            raise ValueError("extract_series requires a pose detector handle")

        self.progress = PipelineProgress(current_stage="decoding")
        processor = VideoProcessor(video_path, max_duration_s=self.config.max_duration_s)
        processor.open()
        fps = processor.fps
        progress_log = ProgressLogger(
            logger, processor.info.total_frames, description="Extracting pose"
        )

        logger.info(f"Extracting joint series from {video_path} at {fps:.1f} fps")

        frames: List[Frame] = []
        chunk: List[Tuple[int, float, np.ndarray]] = []
        for frame_index, timestamp_ms, image in processor.iterate_frames(
            show_progress=self.config.show_progress
        ):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled("decoding")
            chunk.append((frame_index, timestamp_ms, image))
            self.progress.total_frames += 1
            if len(chunk) >= self.config.chunk_size:
                frames.extend(self._process_chunk(chunk, cancel_token, progress_log))
                chunk = []
        if chunk:
            frames.extend(self._process_chunk(chunk, cancel_token, progress_log))

        progress_log.finish()
        self.progress.current_stage = "complete"
        logger.info(
            f"Extraction complete: {self.progress.pose_detected}/{self.progress.total_frames} "
            f"frames with pose, {self.progress.segmentation_fallbacks} segmentation fallbacks"
        )

        return JointSeries(frames=tuple(frames), fps=fps, camera_angle=camera_angle)

    def analyze(
        self,
        series: JointSeries,
        options: Optional[AnalysisOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> MomentumTransferResult:
        """
        Analyze a joint series.

        Runs input validation, quality assessment, normalization, parallel
        feature extraction, event detection, kinematic sequencing and scoring.

        Args:
            series: Joint series of one swing.
            options: Call-time analysis options.
            cancel_token: Optional cooperative cancellation token.

        Returns:
            MomentumTransferResult.

        Raises:
            InvalidSeriesError: If the series violates the input contract.
            InsufficientDataError: If too little usable data remains.
            PipelineCancelledError: If cancelled between frames.
        """
        options = options or AnalysisOptions()

        validate_series_input(series)
        quality = assess(series)
        require_usable(quality)

        normalized = normalize(series, self.config.canonical_height)
        signals = extract_signals(
            normalized,
            options.handedness,
            max_workers=self.config.max_workers,
            use_processes=self.config.use_processes,
            cancel_token=cancel_token,
            show_progress=self.config.show_progress,
        )
        if cancel_token is not None:
            cancel_token.raise_if_cancelled("analysis")

        events = detect_events(
            normalized,
            manual_contact_frame=options.manual_contact_frame_index,
            signals=signals,
            handedness=options.handedness,
        )
        gaps = compute_gaps(normalized, events, signals, options.handedness)
        ordering = verify_order(normalized, events, signals, options.handedness)
        quality = assess_event_support(normalized, events, quality)

        return score(
            normalized,
            events,
            gaps,
            player_height_inches=options.player_height_inches,
            player_level=options.player_level,
            signals=signals,
            ordering=ordering,
            quality=quality,
            handedness=options.handedness,
            canonical_height=self.config.canonical_height,
        )

    def compare(
        self,
        series_a: JointSeries,
        series_b: JointSeries,
        options: Optional[AnalysisOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Dict[str, Any]:
        """
        Analyze two swings and compare them.

        Raises:
            CameraAngleMismatchError: If the series were recorded from
                different camera angles; checked before any analysis.
        """
        validate_comparable(series_a, series_b)
        # The manual contact index belongs to one series, not both
        if options is not None and options.manual_contact_frame_index is not None:
            logger.warning("Ignoring manual contact frame for comparison")
            options = AnalysisOptions(
                player_height_inches=options.player_height_inches,
                player_level=options.player_level,
                handedness=options.handedness,
            )

        result_a = self.analyze(series_a, options, cancel_token)
        result_b = self.analyze(series_b, options, cancel_token)
        return {
            "a": result_a.to_dict(),
            "b": result_b.to_dict(),
            "deltas": compare_results(result_a, result_b),
        }
