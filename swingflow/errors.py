"""Error taxonomy for the swing analysis pipeline."""

from typing import Any, Dict, Optional


class SwingAnalysisError(Exception):
    """
    Base class for structured analysis errors.

    Attributes:
        kind: Machine-readable error kind.
        reason: Short human-readable reason.
    """

    kind = "swing_analysis_error"

    def __init__(self, reason: str, **details: Any):
        super().__init__(reason)
        self.reason = reason
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat, JSON-serializable dictionary."""
        data: Dict[str, Any] = {"kind": self.kind, "reason": self.reason}
        if self.details:
            data["details"] = dict(self.details)
        return data


class FrameProcessingError(SwingAnalysisError):
    """A single frame could not be processed (recovered locally)."""

    kind = "frame_processing"

    def __init__(self, reason: str, frame_index: Optional[int] = None, **details: Any):
        super().__init__(reason, frame_index=frame_index, **details)
        self.frame_index = frame_index


class InsufficientDataError(SwingAnalysisError):
    """Not enough usable pose data to produce a score."""

    kind = "insufficient_data"


class CameraAngleMismatchError(SwingAnalysisError):
    """Two series recorded from different camera angles were compared."""

    kind = "camera_angle_mismatch"


class InvalidSeriesError(SwingAnalysisError):
    """A joint series violates the input contract."""

    kind = "invalid_series"


class PipelineCancelledError(SwingAnalysisError):
    """A batch job was cancelled by its caller."""

    kind = "cancelled"
