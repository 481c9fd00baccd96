"""Serialized, timeout-bounded access to a pose estimation backend."""

import enum
import logging
import threading
from concurrent.futures import (
    Future,
    ThreadPoolExecutor,
    TimeoutError as FutureTimeoutError,
    wait,
)
from dataclasses import dataclass
from typing import Optional

import numpy as np

from swingflow.errors import FrameProcessingError
from swingflow.pose.base import Frame, PoseBackend

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 5.0


class DetectionStatus(str, enum.Enum):
    """Outcome of a single detector call."""
    OK = "ok"
    NO_POSE = "no_pose"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class DetectionOutcome:
    """
    Typed result of one detector call.

    Attributes:
        frame_index: Frame index the call was made for.
        status: Outcome of the call.
        frame: Detected landmarks when status is OK.
        error: Frame-level error for every other status.
    """
    frame_index: int
    status: DetectionStatus
    frame: Optional[Frame] = None
    error: Optional[FrameProcessingError] = None

    @property
    def ok(self) -> bool:
        return self.status == DetectionStatus.OK


class PoseDetectorHandle:
    """
    Single-owner handle around a pose backend.

    Calls are serialized (one in flight at a time) and each call is bounded
    by a timeout. A timed-out call keeps running on the handle's worker
    thread and its result is discarded. The next call waits for it to finish
    before starting its own clock, so a slow frame never times out the frame
    after it.
    """

    def __init__(self, backend: PoseBackend, timeout_s: float = DEFAULT_TIMEOUT_S):
        """
        Initialize the handle.

        Args:
            backend: Pose backend owned by this handle.
            timeout_s: Default per-call timeout in seconds.
        """
        self.backend = backend
        self.timeout_s = timeout_s
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[Future] = None

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"pose-{self.backend.name}"
            )
        return self._executor

    def _drain_pending(self) -> None:
        if self._pending is None:
            return
        logger.debug("Waiting for a timed-out pose detector call to finish")
        wait([self._pending])
        self._pending = None

    def detect(
        self,
        image: np.ndarray,
        frame_index: int,
        timestamp_ms: float,
        timeout_s: Optional[float] = None,
    ) -> DetectionOutcome:
        """
        Run the backend on one image.

        Args:
            image: Input image (BGR).
            frame_index: Frame index for result tracking.
            timestamp_ms: Timestamp in milliseconds.
            timeout_s: Per-call timeout; defaults to the handle's timeout.

        Returns:
            DetectionOutcome; never raises for backend failures.
        """
        timeout = self.timeout_s if timeout_s is None else timeout_s

        with self._lock:
            self._drain_pending()
            if not self.backend.is_initialized:
                self.backend.initialize()

            future = self._ensure_executor().submit(
                self.backend.process_frame, image, frame_index, timestamp_ms
            )
            try:
                frame = future.result(timeout=timeout)
            except FutureTimeoutError:
                self._pending = future
                logger.warning(
                    f"Pose detector timed out after {timeout:.2f}s on frame {frame_index}"
                )
                return DetectionOutcome(
                    frame_index=frame_index,
                    status=DetectionStatus.TIMEOUT,
                    error=FrameProcessingError(
                        f"pose detector timed out after {timeout:.2f}s",
                        frame_index=frame_index,
                    ),
                )
            except Exception as e:
                logger.warning(f"Pose detector failed on frame {frame_index}: {e}")
                return DetectionOutcome(
                    frame_index=frame_index,
                    status=DetectionStatus.ERROR,
                    error=FrameProcessingError(str(e), frame_index=frame_index),
                )

        if frame.visible_count() == 0:
            return DetectionOutcome(
                frame_index=frame_index,
                status=DetectionStatus.NO_POSE,
                error=FrameProcessingError("no pose detected", frame_index=frame_index),
            )

        return DetectionOutcome(
            frame_index=frame_index,
            status=DetectionStatus.OK,
            frame=frame,
        )

    def close(self) -> None:
        """Release the backend and the worker thread."""
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None
            self._pending = None
            self.backend.cleanup()
        logger.debug("Pose detector handle closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
