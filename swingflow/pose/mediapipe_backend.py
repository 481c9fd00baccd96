"""MediaPipe Pose estimation backend using the Tasks API."""

import logging
from pathlib import Path
from typing import Optional

import numpy as np

from swingflow.pose.base import Frame, Joint, JointId, PoseBackend

logger = logging.getLogger(__name__)

MODEL_URLS = {
    0: "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_lite/float16/1/pose_landmarker_lite.task",
    1: "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_full/float16/1/pose_landmarker_full.task",
    2: "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_heavy/float16/1/pose_landmarker_heavy.task",
}


class MediaPipeBackend(PoseBackend):
    """
    MediaPipe Pose Landmarker backend.

    Produces the 33 BlazePose landmarks in pixel coordinates, with depth taken
    from the world landmarks when available. The landmarker is not
    re-entrant; share it only through a ``PoseDetectorHandle``.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        model_complexity: int = 1,
        model_cache_dir: Optional[str] = None,
    ):
        """
        Initialize the MediaPipe backend.

        Args:
            min_detection_confidence: Minimum confidence for pose detection.
            min_tracking_confidence: Minimum confidence for pose tracking.
            model_complexity: Model complexity (0=lite, 1=full, 2=heavy).
            model_cache_dir: Where downloaded model files are kept.
        """
        super().__init__(min_detection_confidence, min_tracking_confidence)
        self.model_complexity = model_complexity
        self.model_cache_dir = (
            Path(model_cache_dir) if model_cache_dir
            else Path.home() / ".cache" / "mediapipe"
        )
        self._landmarker = None
        self._mp = None

    @property
    def name(self) -> str:
        """Name of the pose estimation backend."""
        return "mediapipe"

    def initialize(self) -> None:
        """Initialize the MediaPipe Pose Landmarker."""
        if self._is_initialized:
            return

        try:
            import mediapipe as mp
            from mediapipe.tasks import python
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise ImportError(
                f"mediapipe package error: {e}. "
                "Install with: pip install mediapipe"
            )

        self._mp = mp
        base_options = python.BaseOptions(model_asset_path=self._get_model_path())
        options = vision.PoseLandmarkerOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.IMAGE,
            num_poses=1,
            min_pose_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence,
            output_segmentation_masks=False,
        )

        try:
            self._landmarker = vision.PoseLandmarker.create_from_options(options)
        except Exception as e:
            logger.error(f"Failed to initialize MediaPipe: {e}")
            raise

        self._is_initialized = True
        logger.info("MediaPipe Pose Landmarker initialized successfully")

    def _get_model_path(self) -> str:
        """Download (once) and return the path to the landmarker model."""
        import urllib.request

        self.model_cache_dir.mkdir(parents=True, exist_ok=True)

        url = MODEL_URLS.get(self.model_complexity, MODEL_URLS[1])
        model_path = self.model_cache_dir / url.rsplit("/", 1)[-1]

        if not model_path.exists():
            logger.info(f"Downloading MediaPipe model from {url}...")
            # Download beside the target and rename, so a cut-off transfer is never cached
            partial_path = model_path.with_name(model_path.name + ".part")
            try:
                urllib.request.urlretrieve(url, partial_path)
                partial_path.replace(model_path)
            finally:
                if partial_path.exists():
                    partial_path.unlink()
            logger.info(f"Model downloaded to {model_path}")

        return str(model_path)

    def process_frame(
        self,
        frame: np.ndarray,
        frame_index: int = 0,
        timestamp_ms: float = 0.0,
    ) -> Frame:
        """
        Detect the hitter's landmarks in a single image.

        Args:
            frame: Input image (BGR format from OpenCV).
            frame_index: Frame index for result tracking.
            timestamp_ms: Timestamp in milliseconds.

        Returns:
            Frame in pixel coordinates, or ``Frame.empty`` if no pose was found.
        """
        if not self._is_initialized:
            self.initialize()

        import cv2

        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        mp_image = self._mp.Image(
            image_format=self._mp.ImageFormat.SRGB,
            data=frame_rgb,
        )

        detection_result = self._landmarker.detect(mp_image)

        if not detection_result.pose_landmarks:
            logger.debug(f"No pose detected in frame {frame_index}")
            return Frame.empty(frame_index, timestamp_ms)

        landmarks = detection_result.pose_landmarks[0]
        world_landmarks = (
            detection_result.pose_world_landmarks[0]
            if detection_result.pose_world_landmarks else None
        )

        h, w = frame.shape[:2]
        joints = []
        for idx, landmark in enumerate(landmarks[:len(JointId)]):
            z_coord = None
            if world_landmarks and idx < len(world_landmarks):
                z_coord = float(world_landmarks[idx].z)

            joints.append(Joint(
                joint_id=JointId(idx),
                x=float(landmark.x * w),
                y=float(landmark.y * h),
                z=z_coord,
                confidence=float(getattr(landmark, "visibility", 1.0) or 0.0),
            ))

        return Frame.from_joints(frame_index, timestamp_ms, joints)

    def cleanup(self) -> None:
        """Clean up MediaPipe resources."""
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
        self._is_initialized = False
        logger.debug("MediaPipe Pose Landmarker resources cleaned up")
