"""
Face Detector - Detects faces, landmarks and descriptors using dlib

Wraps three dlib models:
- HOG frontal face detector (boxes, face count)
- 68-point shape predictor (LandmarkSet)
- ResNet face recognition model (128-d descriptor, reference capture only)
"""

import cv2
import numpy as np
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..errors import ModelInferenceError
from .landmarks import LandmarkSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class FaceObservation:
    """One detected face in one frame"""
    box: Tuple[int, int, int, int]  # (x, y, width, height)
    landmarks: Optional[LandmarkSet] = None
    descriptor: Optional[np.ndarray] = None
    # Expression name -> probability; None when the model has no expression head (dlib)
    expressions: Optional[Dict[str, float]] = None

    @property
    def dominant_expression(self) -> Optional[str]:
        """Most likely expression, None without expression scores"""
        if not self.expressions:
            return None
        return max(self.expressions, key=self.expressions.get)


class FaceDetector:
    """
    Detects faces in video frames using dlib's HOG-based face detector.

    Provides:
    - Face count (for multi-person detection)
    - Face bounding boxes (for face coverage)
    - Facial landmarks (68-point)
    - Face descriptors (for the reference photo)
    """

    def __init__(self, upsample: int = 0):
        """
        Args:
            upsample: dlib upsampling passes (higher finds smaller faces, slower)
        """
        self.upsample = upsample
        self._detector = None
        self._predictor = None
        self._recognizer = None

    def _ensure_detector(self):
        if self._detector is None:
            from ..models import get_dlib_detector
            self._detector = get_dlib_detector()
        return self._detector

    def _ensure_predictor(self):
        if self._predictor is None:
            from ..models import get_dlib_predictor
            self._predictor = get_dlib_predictor()
        return self._predictor

    def _ensure_recognizer(self):
        if self._recognizer is None:
            from ..models import get_face_recognition_model
            self._recognizer = get_face_recognition_model()
        return self._recognizer

    @staticmethod
    def _to_gray(frame: np.ndarray) -> np.ndarray:
        if frame.ndim == 2:
            return frame
        if frame.shape[2] == 4:
            return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)

    @staticmethod
    def _to_rgb(frame: np.ndarray) -> np.ndarray:
        if frame.ndim == 2:
            return cv2.cvtColor(frame, cv2.COLOR_GRAY2RGB)
        if frame.shape[2] == 4:
            return cv2.cvtColor(frame, cv2.COLOR_BGRA2RGB)
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    @staticmethod
    def get_face_bbox(face) -> Tuple[int, int, int, int]:
        """
        Get bounding box from dlib face rectangle.

        Returns:
            (x, y, width, height)
        """
        return (face.left(), face.top(), face.width(), face.height())

    def _rectangles(self, gray: np.ndarray):
        try:
            return self._ensure_detector()(gray, self.upsample)
        except Exception as e:
            raise ModelInferenceError(f"Face detection failed: {e}") from e

    def detect_boxes(self, frame: np.ndarray) -> List[Tuple[int, int, int, int]]:
        """Face boxes only (no landmark pass)"""
        if frame is None or frame.size == 0:
            return []
        return [self.get_face_bbox(face) for face in self._rectangles(self._to_gray(frame))]

    def detect(self, frame: np.ndarray, with_descriptors: bool = False) -> List[FaceObservation]:
        """
        Detect faces with landmarks.

        Args:
            frame: BGR (or BGRA / grayscale) image from OpenCV
            with_descriptors: Also compute 128-d face descriptors

        Returns:
            FaceObservation per detected face, in detector order

        Raises:
            ModelInferenceError: any dlib model failed
        """
        if frame is None or frame.size == 0:
            return []

        gray = self._to_gray(frame)
        faces = self._rectangles(gray)
        if len(faces) == 0:
            return []

        rgb = self._to_rgb(frame) if with_descriptors else None
        observations = []

        try:
            predictor = self._ensure_predictor()
            for face in faces:
                shape = predictor(gray, face)
                points = np.array([
                    (shape.part(i).x, shape.part(i).y)
                    for i in range(shape.num_parts)
                ])

                descriptor = None
                if with_descriptors:
                    recognizer = self._ensure_recognizer()
                    descriptor = np.array(
                        recognizer.compute_face_descriptor(rgb, shape),
                        dtype=np.float64
                    )

                observations.append(FaceObservation(
                    box=self.get_face_bbox(face),
                    landmarks=LandmarkSet.from_points(points),
                    descriptor=descriptor
                ))
        except Exception as e:
            raise ModelInferenceError(f"Landmark extraction failed: {e}") from e

        return observations
