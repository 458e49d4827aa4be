"""Detector modules for proxy monitoring"""

from .landmarks import LandmarkSet
from .face_detector import FaceDetector, FaceObservation
from .head_pose import HeadPoseEstimator, HeadPose, ZERO_POSE, compute_head_pose, classify_head_direction
from .gaze_tracker import GazeTracker, GazeEstimate, CENTER_GAZE, compute_gaze
from .audio_detector import AudioDetector, AudioClassification, classify_audio
from .object_detector import (
    DeviceHeuristicDetector,
    DeviceDetectionResult,
    PixelMetrics,
    analyze_pixels
)
from .reference_capture import ReferenceCapture

__all__ = [
    "LandmarkSet",
    "FaceDetector",
    "FaceObservation",
    "HeadPoseEstimator",
    "HeadPose",
    "ZERO_POSE",
    "compute_head_pose",
    "classify_head_direction",
    "GazeTracker",
    "GazeEstimate",
    "CENTER_GAZE",
    "compute_gaze",
    "AudioDetector",
    "AudioClassification",
    "classify_audio",
    "DeviceHeuristicDetector",
    "DeviceDetectionResult",
    "PixelMetrics",
    "analyze_pixels",
    "ReferenceCapture"
]
