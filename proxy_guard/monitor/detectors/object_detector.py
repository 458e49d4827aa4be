"""
Device Heuristic Detector - Flags frames that likely show a phone or tablet

Not a trained classifier. Screens and device bezels show up as a mix of
hard edges, flat color runs and saturated pixels; a frame scoring high on
all three while the face covers little of it is a candidate.

Metrics (all divided by the frame area):
- edge ratio: pixels whose horizontal or vertical color step exceeds 80
- uniform cluster ratio: runs of 4 flat pixels along a row
- high contrast ratio: pixels whose channel spread exceeds 100
- face coverage: primary face box area over frame area (1 without a face)
"""

import logging
import numpy as np
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Optional, Tuple

from ...config import settings

logger = logging.getLogger(__name__)

FaceBox = Tuple[float, float, float, float]  # (x, y, width, height)


@dataclass(frozen=True)
class PixelMetrics:
    """Per-frame heuristic ratios, each in [0, 1]"""
    edge_ratio: float
    uniform_cluster_ratio: float
    high_contrast_ratio: float
    face_coverage: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class DeviceDetectionResult:
    """Metrics, verdict and pixel coordinates for optional overlays"""
    metrics: PixelMetrics
    is_candidate: bool
    edge_points: np.ndarray = field(repr=False, default_factory=lambda: np.zeros((0, 2), dtype=np.int64))
    cluster_points: np.ndarray = field(repr=False, default_factory=lambda: np.zeros((0, 2), dtype=np.int64))


class DeviceHeuristicDetector:
    """
    Edge / uniformity / contrast heuristic over raw frames.

    Accepts H x W x C uint8 frames (RGB, BGR, RGBA or BGRA: the channel
    sums and spreads do not depend on channel order), or a flat RGBA
    buffer together with width and height.
    """

    def __init__(
        self,
        edge_threshold: int = settings.EDGE_DIFF_THRESHOLD,
        uniform_threshold: int = settings.UNIFORM_DIFF_THRESHOLD,
        run_length: int = settings.UNIFORM_RUN_LENGTH,
        contrast_threshold: int = settings.HIGH_CONTRAST_THRESHOLD,
        reset_on_mixed: bool = settings.UNIFORM_RUN_RESET_ON_MIXED,
        edge_ratio_threshold: float = settings.EDGE_RATIO_THRESHOLD,
        cluster_ratio_threshold: float = settings.UNIFORM_CLUSTER_RATIO_THRESHOLD,
        contrast_ratio_threshold: float = settings.HIGH_CONTRAST_RATIO_THRESHOLD,
        face_coverage_tolerance: float = settings.FACE_COVERAGE_TOLERANCE
    ):
        """
        Args:
            edge_threshold: Color step above which a pixel is an edge
            uniform_threshold: Horizontal step below which a pixel extends a flat run
            run_length: Flat pixels that close one cluster
            contrast_threshold: Channel spread above which a pixel is high contrast
            reset_on_mixed: Whether pixels that are neither edge nor flat break a run
            edge_ratio_threshold: Minimum edge ratio for a candidate
            cluster_ratio_threshold: Minimum uniform cluster ratio for a candidate
            contrast_ratio_threshold: Minimum high contrast ratio for a candidate
            face_coverage_tolerance: Face coverage at or above which frames are ignored
        """
        self.edge_threshold = edge_threshold
        self.uniform_threshold = uniform_threshold
        self.run_length = run_length
        self.contrast_threshold = contrast_threshold
        self.reset_on_mixed = reset_on_mixed
        self.edge_ratio_threshold = edge_ratio_threshold
        self.cluster_ratio_threshold = cluster_ratio_threshold
        self.contrast_ratio_threshold = contrast_ratio_threshold
        self.face_coverage_tolerance = face_coverage_tolerance

    @staticmethod
    def _to_frame(pixels, width: Optional[int], height: Optional[int]) -> np.ndarray:
        frame = np.asarray(pixels)
        if frame.ndim == 1:
            if width is None or height is None:
                raise ValueError("Flat pixel buffers need width and height")
            frame = frame.reshape(height, width, -1)
        if frame.ndim != 3 or frame.shape[2] < 3:
            raise ValueError(f"Expected an H x W x C color frame, got shape {frame.shape}")
        return frame

    def analyze(
        self,
        pixels,
        width: Optional[int] = None,
        height: Optional[int] = None,
        face_box: Optional[FaceBox] = None
    ) -> DeviceDetectionResult:
        """
        Run the heuristic over one frame.

        Args:
            pixels: H x W x C array, or flat RGBA buffer with width/height
            width: Frame width (flat buffers only)
            height: Frame height (flat buffers only)
            face_box: Primary face (x, y, width, height), if any

        Returns:
            DeviceDetectionResult
        """
        frame = self._to_frame(pixels, width, height)
        h, w = frame.shape[:2]
        area = float(w * h)
        rgb = frame[:, :, :3].astype(np.int16)

        # Every pixel counts toward contrast
        spread = rgb.max(axis=2) - rgb.min(axis=2)
        high_contrast_count = int(np.count_nonzero(spread > self.contrast_threshold))

        # Interior pixels: skip the first column and the last row
        edge_count = 0
        cluster_count = 0
        edge_points = np.zeros((0, 2), dtype=np.int64)
        cluster_points = np.zeros((0, 2), dtype=np.int64)

        if w > 1 and h > 1:
            horizontal = np.abs(np.diff(rgb, axis=1)).sum(axis=2)[: h - 1]
            vertical = np.zeros((h - 1, w - 1), dtype=np.int32)
            if h > 2:
                vertical[1:] = np.abs(rgb[1:h - 1, 1:] - rgb[: h - 2, 1:]).sum(axis=2)

            edges = (horizontal > self.edge_threshold) | (vertical > self.edge_threshold)
            flat = ~edges & (horizontal < self.uniform_threshold)

            edge_count = int(np.count_nonzero(edges))
            clusters = self._close_clusters(flat, edges)
            cluster_count = int(np.count_nonzero(clusters))

            # Interior grid is offset one column to the right
            edge_ys, edge_xs = np.nonzero(edges)
            edge_points = np.stack([edge_xs + 1, edge_ys], axis=1)
            cluster_ys, cluster_xs = np.nonzero(clusters)
            cluster_points = np.stack([cluster_xs + 1, cluster_ys], axis=1)

        face_coverage = 1.0
        if face_box is not None:
            _, _, box_w, box_h = face_box
            face_coverage = float(box_w * box_h) / area

        metrics = PixelMetrics(
            edge_ratio=edge_count / area,
            uniform_cluster_ratio=cluster_count / area,
            high_contrast_ratio=high_contrast_count / area,
            face_coverage=face_coverage
        )

        return DeviceDetectionResult(
            metrics=metrics,
            is_candidate=self.is_candidate(metrics),
            edge_points=edge_points,
            cluster_points=cluster_points
        )

    def _close_clusters(self, flat: np.ndarray, edges: np.ndarray) -> np.ndarray:
        """
        Mark the pixels that close a uniform run, in raster order.

        The run counter carries across rows (skipped border pixels do not
        break it). It resets after each closed cluster, on every edge pixel
        and, when reset_on_mixed is set, on every pixel that is neither.
        """
        flat_seq = flat.ravel()
        breaks = ~flat_seq if self.reset_on_mixed else edges.ravel()

        running = np.cumsum(flat_seq)
        # Flat count at the most recent break
        base = np.maximum.accumulate(np.where(breaks, running, 0))
        run_index = running - base

        closes = flat_seq & (run_index % self.run_length == 0)
        return closes.reshape(flat.shape)

    def is_candidate(self, metrics: PixelMetrics) -> bool:
        return (
            metrics.edge_ratio > self.edge_ratio_threshold
            and metrics.uniform_cluster_ratio > self.cluster_ratio_threshold
            and metrics.high_contrast_ratio > self.contrast_ratio_threshold
            and metrics.face_coverage < self.face_coverage_tolerance
        )

    def detect(self, frame: np.ndarray, face_box: Optional[FaceBox] = None) -> Dict[str, Any]:
        """
        Heuristic verdict as a plain dict.

        Returns:
            dict with metric ratios, 'is_candidate' and point counts
        """
        result = self.analyze(frame, face_box=face_box)
        return {
            **result.metrics.to_dict(),
            "is_candidate": result.is_candidate,
            "edge_points": len(result.edge_points),
            "cluster_points": len(result.cluster_points)
        }


_default_detector = DeviceHeuristicDetector()


def analyze_pixels(pixels, width=None, height=None, face_box=None) -> DeviceDetectionResult:
    """Device heuristic with the configured thresholds"""
    return _default_detector.analyze(pixels, width, height, face_box)
