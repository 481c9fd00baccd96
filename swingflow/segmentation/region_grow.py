"""Seeded region-growing segmentation of the hitter's silhouette."""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from swingflow.pose.base import CONFIDENCE_FLOOR, Joint, torso_joints

logger = logging.getLogger(__name__)

# Annexation thresholds (sum of absolute channel differences, Sobel magnitude)
COLOR_THRESHOLD = 45 * 1.5
EDGE_THRESHOLD = 120

# Growth stops after min(MAX_ITERATION_FRACTION * w * h, MAX_ITERATIONS) pops
MAX_ITERATION_FRACTION = 0.1
MAX_ITERATIONS = 20000

GROWN_CONFIDENCE = 0.85
FALLBACK_CONFIDENCE = 1.0

_NEIGHBOURS = ((-1, 0), (1, 0), (0, -1), (0, 1))


@dataclass(eq=False)
class SegmentationMask:
    """
    Binary silhouette mask.

    Attributes:
        width: Mask width in pixels (equals the source frame width).
        height: Mask height in pixels (equals the source frame height).
        bitmap: uint8 array of shape (height, width), 0 or 255 per pixel.
    """
    width: int
    height: int
    bitmap: np.ndarray

    @classmethod
    def full(cls, width: int, height: int) -> "SegmentationMask":
        """Mask covering the whole frame."""
        return cls(width, height, np.full((height, width), 255, dtype=np.uint8))

    @property
    def coverage(self) -> float:
        """Fraction of pixels inside the mask."""
        if self.bitmap.size == 0:
            return 0.0
        return float(np.count_nonzero(self.bitmap)) / self.bitmap.size


@dataclass(eq=False)
class SegmentationResult:
    """
    Result of segmenting a single frame.

    Attributes:
        frame_index: Frame index in the video.
        mask: Silhouette mask with the frame's dimensions.
        bbox: Bounding box (x, y, width, height) of the set pixels.
        confidence: Segmentation confidence score.
        used_fallback: True when the full-frame mask was returned.
        seed_count: Number of seed points growth started from.
    """
    frame_index: int
    mask: SegmentationMask
    bbox: Tuple[float, float, float, float]  # x, y, width, height
    confidence: float
    used_fallback: bool = False
    seed_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (excluding the bitmap)."""
        return {
            "frame_index": self.frame_index,
            "width": self.mask.width,
            "height": self.mask.height,
            "bbox": {
                "x": self.bbox[0],
                "y": self.bbox[1],
                "width": self.bbox[2],
                "height": self.bbox[3],
            },
            "coverage": self.mask.coverage,
            "confidence": self.confidence,
            "used_fallback": self.used_fallback,
        }


def edge_strength(image: np.ndarray) -> np.ndarray:
    """
    Sobel edge magnitude of the channel-mean grey image.

    Border pixels are left at zero; the magnitude is clipped to 255.

    Args:
        image: HxWx3 image.

    Returns:
        float32 array of shape (H, W).
    """
    grey = image.astype(np.float32).mean(axis=2)
    gx = cv2.Sobel(grey, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(grey, cv2.CV_32F, 0, 1, ksize=3)
    magnitude = np.minimum(np.sqrt(gx * gx + gy * gy), 255.0)

    magnitude[0, :] = 0.0
    magnitude[-1, :] = 0.0
    magnitude[:, 0] = 0.0
    magnitude[:, -1] = 0.0
    return magnitude


def unsupported_image_reason(image: np.ndarray) -> Optional[str]:
    """
    Describe why an image cannot be region-grown, or None if it can.

    Accepts non-empty HxWxC uint8 arrays with at least three channels.
    """
    if image.ndim != 3:
        return f"expected HxWxC, got shape {image.shape}"
    if image.shape[0] == 0 or image.shape[1] == 0:
        return f"empty image of shape {image.shape}"
    if image.shape[2] < 3:
        return f"expected 3 channels, got {image.shape[2]}"
    if image.dtype != np.uint8:
        return f"expected uint8 pixels, got {image.dtype}"
    return None


def mask_to_bbox(bitmap: np.ndarray) -> Tuple[float, float, float, float]:
    """
    Calculate bounding box from a mask bitmap.

    Args:
        bitmap: Mask array.

    Returns:
        Bounding box (x, y, width, height).
    """
    if not bitmap.any():
        return (0.0, 0.0, 0.0, 0.0)

    rows = np.any(bitmap, axis=1)
    cols = np.any(bitmap, axis=0)

    y_min, y_max = np.where(rows)[0][[0, -1]]
    x_min, x_max = np.where(cols)[0][[0, -1]]

    return (
        float(x_min),
        float(y_min),
        float(x_max - x_min),
        float(y_max - y_min),
    )


def seed_points(
    seed_joints: Optional[Sequence[Joint]],
    width: int,
    height: int,
) -> List[Tuple[int, int]]:
    """
    Pick region-growing seeds from torso joints.

    Shoulders and hips above the confidence floor that land inside the frame
    are used; otherwise the frame's geometric centre.
    """
    seeds = []
    for joint in torso_joints(seed_joints or ()):
        if not joint.is_visible(CONFIDENCE_FLOOR):
            continue
        x, y = int(np.floor(joint.x)), int(np.floor(joint.y))
        if 0 <= x < width and 0 <= y < height and (x, y) not in seeds:
            seeds.append((x, y))

    if not seeds:
        seeds = [(width // 2, height // 2)]
    return seeds


def grow_region(
    image: np.ndarray,
    edges: np.ndarray,
    seeds: Sequence[Tuple[int, int]],
) -> np.ndarray:
    """
    4-connected breadth-first region growing.

    A neighbour is annexed when its summed absolute channel difference to the
    current pixel is below COLOR_THRESHOLD and its edge strength is below
    EDGE_THRESHOLD.

    Returns:
        uint8 bitmap (0/255) of the grown region.
    """
    height, width = image.shape[:2]
    pixels = image.astype(np.int32)
    bitmap = np.zeros((height, width), dtype=np.uint8)
    visited = np.zeros((height, width), dtype=bool)

    queue = deque()
    for x, y in seeds:
        bitmap[y, x] = 255
        visited[y, x] = True
        queue.append((x, y))

    max_iterations = min(width * height * MAX_ITERATION_FRACTION, MAX_ITERATIONS)
    iterations = 0

    while queue and iterations < max_iterations:
        x, y = queue.popleft()
        iterations += 1
        current = pixels[y, x]

        for dx, dy in _NEIGHBOURS:
            nx, ny = x + dx, y + dy
            if nx < 0 or nx >= width or ny < 0 or ny >= height:
                continue
            if visited[ny, nx]:
                continue

            color_diff = int(np.abs(current - pixels[ny, nx]).sum())
            if color_diff < COLOR_THRESHOLD and edges[ny, nx] < EDGE_THRESHOLD:
                bitmap[ny, nx] = 255
                visited[ny, nx] = True
                queue.append((nx, ny))

    if queue:
        logger.debug(f"Region growing stopped at iteration cap ({int(max_iterations)})")
    return bitmap


class FrameSegmenter:
    """
    Isolates the hitter's silhouette using pose joints as seed hints.

    ``segment`` always returns a mask with the frame's dimensions; any
    unsupported image or internal failure yields the full-frame mask
    instead of an exception.
    """

    def segment(
        self,
        image: np.ndarray,
        seed_joints: Optional[Sequence[Joint]] = None,
        frame_index: int = 0,
    ) -> SegmentationResult:
        """
        Segment a single frame.

        Args:
            image: Input frame (BGR), HxWx3 or HxW.
            seed_joints: Joints whose torso landmarks seed the region.
            frame_index: Frame index for result tracking.

        Returns:
            SegmentationResult, falling back to the full-frame mask.
        """
        image = np.asarray(image)
        if image.ndim == 2:
            image = np.stack([image] * 3, axis=-1)

        height = image.shape[0] if image.ndim >= 2 else 0
        width = image.shape[1] if image.ndim >= 2 else 0
        problem = unsupported_image_reason(image)
        if problem:
            logger.warning(
                f"Frame {frame_index}: cannot segment image ({problem}), "
                "using full-frame mask"
            )
            return self._fallback(frame_index, width, height)

        try:
            edges = edge_strength(image[:, :, :3])
            seeds = seed_points(seed_joints, width, height)
            bitmap = grow_region(image[:, :, :3], edges, seeds)
        except Exception as e:
            # Inputs are validated above; this only guards OpenCV internals
            logger.exception(
                f"Frame {frame_index}: segmentation failed ({e}), using full-frame mask"
            )
            return self._fallback(frame_index, width, height)

        mask = SegmentationMask(width=width, height=height, bitmap=bitmap)
        return SegmentationResult(
            frame_index=frame_index,
            mask=mask,
            bbox=mask_to_bbox(bitmap),
            confidence=GROWN_CONFIDENCE,
            used_fallback=False,
            seed_count=len(seeds),
        )

    @staticmethod
    def _fallback(frame_index: int, width: int, height: int) -> SegmentationResult:
        return SegmentationResult(
            frame_index=frame_index,
            mask=SegmentationMask.full(width, height),
            bbox=(0.0, 0.0, float(width), float(height)),
            confidence=FALLBACK_CONFIDENCE,
            used_fallback=True,
        )


def segment_frame(
    job: Tuple[int, np.ndarray, Optional[Sequence[Joint]]],
) -> SegmentationResult:
    """Picklable entry point for worker pools: ``(frame_index, image, seed_joints)``."""
    frame_index, image, seed_joints = job
    return FrameSegmenter().segment(image, seed_joints, frame_index)


def apply_mask(
    image: np.ndarray,
    mask: SegmentationMask,
    background_color: Tuple[int, int, int] = (0, 0, 0),
) -> np.ndarray:
    """
    Apply a mask to a frame, removing background.

    Args:
        image: Input frame (BGR).
        mask: Silhouette mask.
        background_color: Color for masked out regions.

    Returns:
        Masked frame.
    """
    bitmap = mask.bitmap
    if bitmap.shape[:2] != image.shape[:2]:
        bitmap = cv2.resize(
            bitmap,
            (image.shape[1], image.shape[0]),
            interpolation=cv2.INTER_NEAREST,
        )

    mask_3ch = np.stack([bitmap > 0] * 3, axis=-1)
    result = np.where(mask_3ch, image, np.array(background_color, dtype=image.dtype))
    return result.astype(np.uint8)


def crop_to_bbox(
    image: np.ndarray,
    bbox: Tuple[float, float, float, float],
    padding: int = 20,
) -> Tuple[np.ndarray, Tuple[int, int]]:
    """
    Crop a frame to a bounding box with padding.

    Returns:
        (cropped frame, (x offset, y offset)) so crop coordinates can be mapped
        back to the full frame.
    """
    x, y, w, h = bbox
    h_frame, w_frame = image.shape[:2]
    x1 = max(0, int(x) - padding)
    y1 = max(0, int(y) - padding)
    x2 = min(w_frame, int(x + w) + padding)
    y2 = min(h_frame, int(y + h) + padding)

    if x2 <= x1 or y2 <= y1:
        return image, (0, 0)
    return image[y1:y2, x1:x2].copy(), (x1, y1)
