"""
Gaze Tracker - Classifies eye gaze direction from facial landmarks

Works on the eye contours only (no iris crop): the vertical term compares
the eye line to the nose tip, the horizontal term compares each eye's
centroid to its outer corner, both normalized by the inter-eye distance.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict

from ...config import settings
from ..errors import DegenerateGeometry
from .landmarks import LandmarkSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GazeEstimate:
    """Gaze classification for one face"""
    vertical: str = "center"    # up / center / down
    horizontal: str = "center"  # left / center / right

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


CENTER_GAZE = GazeEstimate()


class GazeTracker:
    """
    Tracks eye gaze direction using the 6-point eye contours.

    Left eye: landmarks 36-41
    Right eye: landmarks 42-47
    """

    VERTICAL_SCALE = 0.35
    HORIZONTAL_SCALE = 0.1

    def __init__(
        self,
        vertical_threshold: float = settings.GAZE_VERTICAL_THRESHOLD,
        horizontal_threshold: float = settings.GAZE_HORIZONTAL_THRESHOLD
    ):
        self.vertical_threshold = vertical_threshold
        self.horizontal_threshold = horizontal_threshold

    def track(self, landmarks: LandmarkSet) -> GazeEstimate:
        """
        Classify gaze direction.

        Raises:
            InsufficientLandmarks: eye or nose region missing
            DegenerateGeometry: eye centers coincide or are mirrored
        """
        landmarks.require("left_eye", "right_eye", "nose")

        left_eye = landmarks.left_eye[:6]
        right_eye = landmarks.right_eye[:6]
        left_center = left_eye.mean(axis=0)
        right_center = right_eye.mean(axis=0)
        nose_tip = landmarks.nose_tip

        eye_distance = right_center[0] - left_center[0]
        if eye_distance <= 0:
            raise DegenerateGeometry(f"Eye distance {eye_distance:.2f} is not positive")

        eye_line_y = (left_center[1] + right_center[1]) / 2
        vertical_diff = (eye_line_y - nose_tip[1]) / (eye_distance * self.VERTICAL_SCALE)

        if vertical_diff > self.vertical_threshold:
            vertical = "down"
        elif vertical_diff < -self.vertical_threshold:
            vertical = "up"
        else:
            vertical = "center"

        pupil_scale = eye_distance * self.HORIZONTAL_SCALE
        left_pupil = (left_center[0] - left_eye[0][0]) / pupil_scale
        right_pupil = (right_eye[3][0] - right_center[0]) / pupil_scale
        horizontal_avg = (left_pupil + right_pupil) / 2

        if horizontal_avg > self.horizontal_threshold:
            horizontal = "right"
        elif horizontal_avg < -self.horizontal_threshold:
            horizontal = "left"
        else:
            horizontal = "center"

        return GazeEstimate(vertical=vertical, horizontal=horizontal)


_default_tracker = GazeTracker()


def compute_gaze(landmarks: LandmarkSet) -> GazeEstimate:
    """Gaze estimate with the configured thresholds"""
    return _default_tracker.track(landmarks)
