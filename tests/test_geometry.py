"""
Tests for Landmark Geometry

Covers the landmark region view, head pose estimation, head direction
classification and gaze classification.
"""

import math

import numpy as np
import pytest

from conftest import make_landmarks, make_points, LEFT_EYE, RIGHT_EYE

# Eye contours whose centroid sits on the outer corner (left) or inner corner (right)
CENTERED_LEFT_EYE = [(130, 110), (125, 106), (135, 106), (140, 110), (125, 114), (125, 114)]
CENTERED_RIGHT_EYE = [(160, 110), (165, 106), (175, 106), (170, 110), (175, 114), (175, 114)]


class TestLandmarkSet:
    """Tests for LandmarkSet"""

    def test_regions_from_68_points(self):
        """Test region slicing follows the 68-point layout"""
        from proxy_guard.monitor.detectors import LandmarkSet

        points = make_points()
        landmarks = LandmarkSet.from_points(points)

        assert landmarks.jaw_outline.shape == (17, 2)
        assert landmarks.nose.shape == (9, 2)
        assert landmarks.left_eye.shape == (6, 2)
        assert landmarks.right_eye.shape == (6, 2)
        assert landmarks.mouth.shape == (20, 2)
        assert tuple(landmarks.nose_tip) == tuple(points[31])

    def test_regions_are_read_only(self, landmarks):
        """Test landmark arrays cannot be mutated"""
        with pytest.raises(ValueError):
            landmarks.nose[0, 0] = 1.0

    def test_source_array_untouched(self):
        """Test building a set does not freeze the caller's array"""
        from proxy_guard.monitor.detectors import LandmarkSet

        points = make_points()
        LandmarkSet.from_points(points)
        points[0, 0] = 1.0

        assert points[0, 0] == 1.0

    def test_from_regions_missing_region(self):
        """Test missing regions end up empty"""
        from proxy_guard.monitor.detectors import LandmarkSet

        landmarks = LandmarkSet.from_regions({"left_eye": LEFT_EYE, "right_eye": RIGHT_EYE})

        assert len(landmarks.left_eye) == 6
        assert len(landmarks.jaw_outline) == 0

    def test_to_points_round_trip(self):
        """Test flattening restores the 68-point layout"""
        from proxy_guard.monitor.detectors import LandmarkSet

        points = make_points()
        restored = LandmarkSet.from_points(points).to_points()

        np.testing.assert_array_equal(restored[0:48], points[0:48])
        np.testing.assert_array_equal(restored[48:68], points[48:68])


class TestHeadPoseEstimator:
    """Tests for HeadPoseEstimator"""

    def test_frontal_face(self, landmarks):
        """Test a centered face has zero pose"""
        from proxy_guard.monitor.detectors import HeadPoseEstimator

        pose = HeadPoseEstimator().estimate(landmarks)

        assert pose.yaw == pytest.approx(0.0)
        assert pose.pitch == pytest.approx(0.0)
        assert pose.roll == pytest.approx(0.0)

    def test_yaw_from_nose_offset(self):
        """Test yaw uses atan2(offset, 80)"""
        from proxy_guard.monitor.detectors import HeadPoseEstimator

        pose = HeadPoseEstimator().estimate(make_landmarks(nose_tip=(172.0, 150.0)))

        assert pose.yaw == pytest.approx(math.degrees(math.atan2(22.0, 80.0)))
        assert pose.yaw > 15.0

    def test_pitch_from_nose_height(self):
        """Test pitch is the nose position within the face height, centered at 0"""
        from proxy_guard.monitor.detectors import HeadPoseEstimator

        pose = HeadPoseEstimator().estimate(make_landmarks(nose_tip=(150.0, 165.0)))

        assert pose.pitch == pytest.approx(15.0)

    def test_roll_from_eye_corners(self):
        """Test roll follows the outer eye corner line"""
        from proxy_guard.monitor.detectors import HeadPoseEstimator

        right_eye = list(RIGHT_EYE)
        right_eye[3] = (180, 170)  # 60 px right, 60 px down from the left corner
        pose = HeadPoseEstimator().estimate(make_landmarks(right_eye=right_eye))

        assert pose.roll == pytest.approx(45.0)

    def test_zero_face_height_is_degenerate(self):
        """Test chin level with forehead raises DegenerateGeometry"""
        from proxy_guard.monitor.detectors import HeadPoseEstimator
        from proxy_guard.monitor.errors import DegenerateGeometry

        landmarks = make_landmarks(forehead=(100.0, 150.0), chin=(150.0, 150.0))

        with pytest.raises(DegenerateGeometry):
            HeadPoseEstimator().estimate(landmarks)

    def test_missing_jaw_is_insufficient(self):
        """Test an empty jaw region raises InsufficientLandmarks"""
        from proxy_guard.monitor.detectors import HeadPoseEstimator, LandmarkSet
        from proxy_guard.monitor.errors import InsufficientLandmarks

        points = make_points()
        landmarks = LandmarkSet.from_regions({
            "nose": points[27:36],
            "left_eye": points[36:42],
            "right_eye": points[42:48]
        })

        with pytest.raises(InsufficientLandmarks) as exc:
            HeadPoseEstimator().estimate(landmarks)
        assert exc.value.region == "jaw_outline"

    def test_truncated_points_are_insufficient(self):
        """Test a 30-point array lacks the eye regions"""
        from proxy_guard.monitor.detectors import HeadPoseEstimator, LandmarkSet
        from proxy_guard.monitor.errors import InsufficientLandmarks

        landmarks = LandmarkSet.from_points(make_points()[:30])

        with pytest.raises(InsufficientLandmarks):
            HeadPoseEstimator().estimate(landmarks)

    def test_module_function_matches_estimator(self, landmarks):
        """Test compute_head_pose uses the default estimator"""
        from proxy_guard.monitor.detectors import compute_head_pose, HeadPoseEstimator

        assert compute_head_pose(landmarks) == HeadPoseEstimator().estimate(landmarks)


class TestHeadDirection:
    """Tests for head direction classification"""

    @pytest.mark.parametrize("yaw,pitch,expected", [
        (15.0, 0.0, "right"),
        (-15.0, 0.0, "left"),
        (0.0, 15.0, "down"),
        (0.0, -15.0, "up"),
        (5.0, -5.0, None),
        (10.0, 10.0, None),
        (12.0, 30.0, "right"),
        (-12.0, -30.0, "left"),
    ])
    def test_classification(self, yaw, pitch, expected):
        """Test yaw is checked before pitch with a 10 degree threshold"""
        from proxy_guard.monitor.detectors import HeadPose, classify_head_direction

        pose = HeadPose(pitch=pitch, yaw=yaw, roll=0.0)

        assert classify_head_direction(pose) == expected

    def test_no_pose(self):
        """Test missing pose has no direction"""
        from proxy_guard.monitor.detectors import classify_head_direction

        assert classify_head_direction(None) is None

    def test_custom_threshold(self):
        """Test threshold is configurable"""
        from proxy_guard.monitor.detectors import HeadPose, HeadPoseEstimator

        estimator = HeadPoseEstimator(movement_threshold=20.0)

        assert estimator.classify_direction(HeadPose(pitch=0.0, yaw=15.0, roll=0.0)) is None


class TestGazeTracker:
    """Tests for GazeTracker"""

    def test_centered_gaze(self):
        """Test nose on the eye line and centered pupils"""
        from proxy_guard.monitor.detectors import GazeTracker

        landmarks = make_landmarks(
            nose_tip=(150.0, 110.0),
            left_eye=CENTERED_LEFT_EYE,
            right_eye=CENTERED_RIGHT_EYE
        )
        gaze = GazeTracker().track(landmarks)

        assert gaze.vertical == "center"
        assert gaze.horizontal == "center"

    def test_vertical_down_when_eyes_below_nose_tip(self):
        """Test vertical ratio above 0.05 is down"""
        from proxy_guard.monitor.detectors import GazeTracker

        # (110 - 108) / (40 * 0.35) = 0.143
        landmarks = make_landmarks(
            nose_tip=(150.0, 108.0),
            left_eye=CENTERED_LEFT_EYE,
            right_eye=CENTERED_RIGHT_EYE
        )

        assert GazeTracker().track(landmarks).vertical == "down"

    def test_vertical_up_when_eyes_above_nose_tip(self, landmarks):
        """Test vertical ratio below -0.05 is up"""
        from proxy_guard.monitor.detectors import compute_gaze

        assert compute_gaze(landmarks).vertical == "up"

    def test_small_vertical_offset_is_center(self):
        """Test ratios inside +/-0.05 stay center"""
        from proxy_guard.monitor.detectors import GazeTracker

        # (110 - 109.5) / 14 = 0.036
        landmarks = make_landmarks(
            nose_tip=(150.0, 109.5),
            left_eye=CENTERED_LEFT_EYE,
            right_eye=CENTERED_RIGHT_EYE
        )

        assert GazeTracker().track(landmarks).vertical == "center"

    def test_horizontal_right(self, landmarks):
        """Test centroids right of the outer corners read as right"""
        from proxy_guard.monitor.detectors import GazeTracker

        # Both pupil terms are 10 / (40 * 0.1) = 2.5
        assert GazeTracker().track(landmarks).horizontal == "right"

    def test_horizontal_left(self):
        """Test negative pupil average reads as left"""
        from proxy_guard.monitor.detectors import GazeTracker

        left_eye = [(140, 110), (125, 106), (135, 106), (130, 110), (125, 114), (125, 114)]
        right_eye = [(180, 110), (165, 106), (175, 106), (160, 110), (175, 114), (165, 114)]
        landmarks = make_landmarks(left_eye=left_eye, right_eye=right_eye)

        assert GazeTracker().track(landmarks).horizontal == "left"

    def test_mirrored_eyes_are_degenerate(self):
        """Test non-positive eye distance raises DegenerateGeometry"""
        from proxy_guard.monitor.detectors import GazeTracker
        from proxy_guard.monitor.errors import DegenerateGeometry

        landmarks = make_landmarks(left_eye=RIGHT_EYE, right_eye=LEFT_EYE)

        with pytest.raises(DegenerateGeometry):
            GazeTracker().track(landmarks)

    def test_coincident_eyes_are_degenerate(self):
        """Test zero eye distance raises DegenerateGeometry"""
        from proxy_guard.monitor.detectors import GazeTracker
        from proxy_guard.monitor.errors import DegenerateGeometry

        landmarks = make_landmarks(left_eye=LEFT_EYE, right_eye=LEFT_EYE)

        with pytest.raises(DegenerateGeometry):
            GazeTracker().track(landmarks)

    def test_missing_eye_is_insufficient(self):
        """Test an empty eye region raises InsufficientLandmarks"""
        from proxy_guard.monitor.detectors import GazeTracker, LandmarkSet
        from proxy_guard.monitor.errors import InsufficientLandmarks

        points = make_points()
        landmarks = LandmarkSet.from_regions({
            "jaw_outline": points[0:17],
            "nose": points[27:36],
            "left_eye": points[36:42]
        })

        with pytest.raises(InsufficientLandmarks):
            GazeTracker().track(landmarks)
