"""
Head Pose Estimator - Estimates head orientation from facial landmarks

Uses plain 2-D landmark geometry instead of a PnP solve, so the angles
are stable across webcams without camera intrinsics:

- Yaw from the horizontal offset of the nose tip against the eye midpoint
- Pitch from the nose tip height within the forehead-to-chin span
- Roll from the line through the two outer eye corners
"""

import math
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional

from ...config import settings
from ..errors import DegenerateGeometry
from .landmarks import LandmarkSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeadPose:
    """Head orientation in signed degrees; all zero when facing the camera"""
    pitch: float
    yaw: float
    roll: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


ZERO_POSE = HeadPose(pitch=0.0, yaw=0.0, roll=0.0)


class HeadPoseEstimator:
    """
    Estimates head pose (pitch, yaw, roll) from a LandmarkSet.

    Key points:
    - Nose tip (nose[4])
    - Chin (jaw[8])
    - Forehead reference (jaw[0])
    - Left eye outer corner (left_eye[0])
    - Right eye outer corner (right_eye[3])
    """

    def __init__(
        self,
        focal_scale: float = settings.HEAD_YAW_FOCAL_SCALE,
        movement_threshold: float = settings.HEAD_MOVEMENT_THRESHOLD
    ):
        """
        Args:
            focal_scale: Empirical divisor for the yaw atan2 (not camera intrinsics)
            movement_threshold: Degrees beyond which the head counts as turned
        """
        self.focal_scale = focal_scale
        self.movement_threshold = movement_threshold

    def estimate(self, landmarks: LandmarkSet) -> HeadPose:
        """
        Estimate head pose from facial landmarks.

        Raises:
            InsufficientLandmarks: jaw, eye or nose region missing
            DegenerateGeometry: chin and forehead on the same row
        """
        landmarks.require("jaw_outline", "left_eye", "right_eye", "nose")

        nose_tip = landmarks.nose_tip
        chin = landmarks.jaw_outline[8]
        forehead = landmarks.jaw_outline[0]
        left_corner = landmarks.left_eye[0]
        right_corner = landmarks.right_eye[3]

        eye_mid_x = (left_corner[0] + right_corner[0]) / 2

        face_height = chin[1] - forehead[1]
        if face_height == 0:
            raise DegenerateGeometry("Face height is zero")

        yaw = math.degrees(math.atan2(nose_tip[0] - eye_mid_x, self.focal_scale))

        nose_relative = (nose_tip[1] - forehead[1]) / face_height
        pitch = (nose_relative - 0.5) * 100

        roll = math.degrees(math.atan2(
            right_corner[1] - left_corner[1],
            right_corner[0] - left_corner[0]
        ))

        return HeadPose(pitch=float(pitch), yaw=float(yaw), roll=float(roll))

    def classify_direction(self, pose: Optional[HeadPose]) -> Optional[str]:
        """
        Classify head direction.

        Yaw is checked before pitch, so a head that is both turned and
        tilted reports the turn.

        Returns:
            One of 'right', 'left', 'down', 'up', or None when centered
        """
        if pose is None:
            return None

        threshold = self.movement_threshold
        if pose.yaw > threshold:
            return "right"
        if pose.yaw < -threshold:
            return "left"
        if pose.pitch > threshold:
            return "down"
        if pose.pitch < -threshold:
            return "up"
        return None

    def analyze(self, landmarks: LandmarkSet) -> Dict[str, Any]:
        """Pose plus direction as a plain dict (API responses)."""
        pose = self.estimate(landmarks)
        return {
            **pose.to_dict(),
            "direction": self.classify_direction(pose)
        }


_default_estimator = HeadPoseEstimator()


def compute_head_pose(landmarks: LandmarkSet) -> HeadPose:
    """Head pose with the configured constants"""
    return _default_estimator.estimate(landmarks)


def classify_head_direction(pose: Optional[HeadPose]) -> Optional[str]:
    return _default_estimator.classify_direction(pose)
