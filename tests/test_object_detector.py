"""
Tests for Device Heuristic Detector

Frames are tiny so every metric can be counted by hand. Interior pixels
skip the first column and the last row.
"""

import numpy as np
import pytest


def gray_columns(values, height):
    """BGR frame whose columns carry the given gray values"""
    row = np.asarray(values, dtype=np.uint8)
    frame = np.repeat(row[np.newaxis, :], height, axis=0)
    return np.repeat(frame[:, :, np.newaxis], 3, axis=2)


class TestUniformClusters:
    """Tests for the uniform run counter"""

    def test_flat_frame_clusters(self):
        """Test 8 flat interior pixels close 2 clusters"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        frame = np.full((3, 5, 3), 90, dtype=np.uint8)
        result = DeviceHeuristicDetector().analyze(frame)

        assert len(result.cluster_points) == 2
        assert result.metrics.uniform_cluster_ratio == pytest.approx(2 / 15)
        assert result.metrics.edge_ratio == 0.0
        assert [tuple(p) for p in result.cluster_points] == [(4, 0), (4, 1)]

    def test_run_carries_across_rows(self):
        """Test a run started on one row closes on the next"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        frame = np.full((3, 4, 3), 90, dtype=np.uint8)
        result = DeviceHeuristicDetector().analyze(frame)

        assert [tuple(p) for p in result.cluster_points] == [(1, 1)]

    def test_mixed_pixel_resets_run(self):
        """Test a pixel that is neither flat nor edge breaks the run"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        # Step of 10 per channel: diff 30, between flat (20) and edge (80)
        frame = gray_columns([0, 0, 0, 10, 10, 10, 10], height=2)
        result = DeviceHeuristicDetector(reset_on_mixed=True).analyze(frame)

        assert len(result.cluster_points) == 0

    def test_mixed_pixel_kept_without_reset(self):
        """Test only edges break the run when mixed reset is off"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        frame = gray_columns([0, 0, 0, 10, 10, 10, 10], height=2)
        result = DeviceHeuristicDetector(reset_on_mixed=False).analyze(frame)

        assert [tuple(p) for p in result.cluster_points] == [(5, 0)]

    def test_edge_resets_run(self):
        """Test an edge pixel breaks the run in both modes"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        frame = gray_columns([0, 0, 0, 200, 200, 200, 200], height=2)
        result = DeviceHeuristicDetector(reset_on_mixed=False).analyze(frame)

        assert len(result.cluster_points) == 0


class TestEdgesAndContrast:
    """Tests for edge and contrast ratios"""

    def test_vertical_stripe_edges(self):
        """Test a white stripe marks both of its borders as edges"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        frame = gray_columns([0, 0, 0, 255, 0, 0], height=3)
        result = DeviceHeuristicDetector().analyze(frame)

        assert sorted(tuple(p) for p in result.edge_points) == [(3, 0), (3, 1), (4, 0), (4, 1)]
        assert result.metrics.edge_ratio == pytest.approx(4 / 18)

    def test_horizontal_step_uses_vertical_diff(self):
        """Test a row change registers on the row below it"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        frame = np.zeros((4, 3, 3), dtype=np.uint8)
        frame[2:] = 255
        result = DeviceHeuristicDetector().analyze(frame)

        assert sorted(tuple(p) for p in result.edge_points) == [(1, 2), (2, 2)]

    def test_saturated_pixels_are_high_contrast(self):
        """Test channel spread above 100 counts on every pixel"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        frame[:, :, 2] = 255
        result = DeviceHeuristicDetector().analyze(frame)

        assert result.metrics.high_contrast_ratio == 1.0

    def test_gray_is_not_high_contrast(self, gray_frame):
        """Test equal channels have no spread"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        result = DeviceHeuristicDetector().analyze(gray_frame)

        assert result.metrics.high_contrast_ratio == 0.0


class TestFaceCoverage:
    """Tests for face coverage"""

    def test_coverage_from_box(self):
        """Test coverage is box area over frame area"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        frame = np.zeros((20, 20, 3), dtype=np.uint8)
        result = DeviceHeuristicDetector().analyze(frame, face_box=(5, 5, 10, 10))

        assert result.metrics.face_coverage == pytest.approx(0.25)

    def test_no_face_is_full_coverage(self):
        """Test a frame without a face is never a candidate by coverage"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        frame = np.zeros((20, 20, 3), dtype=np.uint8)
        result = DeviceHeuristicDetector().analyze(frame)

        assert result.metrics.face_coverage == 1.0
        assert result.is_candidate is False


class TestCandidate:
    """Tests for the candidate rule"""

    def test_device_like_metrics(self):
        """Test all ratios above threshold with a small face"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector, PixelMetrics

        metrics = PixelMetrics(
            edge_ratio=0.08,
            uniform_cluster_ratio=0.06,
            high_contrast_ratio=0.09,
            face_coverage=0.3
        )

        assert DeviceHeuristicDetector().is_candidate(metrics) is True

    def test_large_face_suppresses(self):
        """Test face coverage at the tolerance blocks the verdict"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector, PixelMetrics

        metrics = PixelMetrics(
            edge_ratio=0.08,
            uniform_cluster_ratio=0.06,
            high_contrast_ratio=0.09,
            face_coverage=0.45
        )

        assert DeviceHeuristicDetector().is_candidate(metrics) is False

    @pytest.mark.parametrize("field_name", ["edge_ratio", "uniform_cluster_ratio", "high_contrast_ratio"])
    def test_each_ratio_required(self, field_name):
        """Test one ratio at its threshold is enough to reject"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector, PixelMetrics

        values = {
            "edge_ratio": 0.08,
            "uniform_cluster_ratio": 0.06,
            "high_contrast_ratio": 0.09,
            "face_coverage": 0.3
        }
        values[field_name] = {"edge_ratio": 0.07, "uniform_cluster_ratio": 0.055, "high_contrast_ratio": 0.08}[field_name]

        assert DeviceHeuristicDetector().is_candidate(PixelMetrics(**values)) is False


class TestInputs:
    """Tests for accepted frame layouts"""

    def test_flat_rgba_matches_frame(self):
        """Test a flat RGBA buffer gives the same metrics as the array"""
        from proxy_guard.monitor.detectors import analyze_pixels

        rng = np.random.default_rng(7)
        frame = rng.integers(0, 256, size=(12, 16, 4), dtype=np.uint8)

        from_frame = analyze_pixels(frame)
        from_buffer = analyze_pixels(frame.ravel(), width=16, height=12)

        assert from_buffer.metrics == from_frame.metrics

    def test_flat_buffer_needs_dimensions(self):
        """Test a flat buffer without width and height is rejected"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        with pytest.raises(ValueError):
            DeviceHeuristicDetector().analyze(np.zeros(64, dtype=np.uint8))

    def test_grayscale_rejected(self):
        """Test single-channel frames are rejected"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        with pytest.raises(ValueError):
            DeviceHeuristicDetector().analyze(np.zeros((4, 4, 1), dtype=np.uint8))

    def test_single_pixel_frame(self):
        """Test frames without interior pixels only report contrast"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        result = DeviceHeuristicDetector().analyze(np.zeros((1, 1, 3), dtype=np.uint8))

        assert result.metrics.edge_ratio == 0.0
        assert result.metrics.uniform_cluster_ratio == 0.0

    def test_detect_dict(self, gray_frame):
        """Test the dict form used by the API"""
        from proxy_guard.monitor.detectors import DeviceHeuristicDetector

        result = DeviceHeuristicDetector().detect(gray_frame, face_box=(0, 0, 32, 24))

        assert result["is_candidate"] is False
        assert result["face_coverage"] == pytest.approx(0.25)
        assert result["edge_points"] == 0
