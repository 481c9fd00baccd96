"""Silhouette segmentation seeded by pose joints."""

from swingflow.segmentation.region_grow import (
    FrameSegmenter,
    SegmentationMask,
    SegmentationResult,
    apply_mask,
    crop_to_bbox,
    segment_frame,
)

__all__ = [
    "FrameSegmenter",
    "SegmentationMask",
    "SegmentationResult",
    "apply_mask",
    "crop_to_bbox",
    "segment_frame",
]
