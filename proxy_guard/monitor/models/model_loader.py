"""
Model Loader - Lazy loading and caching of dlib models
"""

import os
import logging
from functools import lru_cache
from typing import Dict, List, Optional

from ...config import settings

logger = logging.getLogger(__name__)

# Default weights directory (relative to this file's directory)
MODELS_DIR = settings.MODELS_DIR or os.path.join(os.path.dirname(__file__), "weights")

PREDICTOR_FILE = "shape_predictor_68_face_landmarks.dat"
RECOGNITION_FILE = "dlib_face_recognition_resnet_model_v1.dat"


def _candidate_paths(filename: str) -> List[str]:
    return [os.path.join(MODELS_DIR, filename), filename]


def _find_weights(filename: str) -> Optional[str]:
    """Look for a weights file in MODELS_DIR, then the working directory"""
    for path in _candidate_paths(filename):
        if os.path.exists(path):
            return path
    return None


@lru_cache(maxsize=1)
def get_dlib_detector():
    """
    Get dlib's HOG frontal face detector.

    Returns:
        dlib.fhog_object_detector instance
    """
    import dlib

    logger.info("Loading dlib frontal face detector")
    return dlib.get_frontal_face_detector()


@lru_cache(maxsize=1)
def get_dlib_predictor():
    """
    Get dlib shape predictor for 68-point facial landmarks.

    Model file: shape_predictor_68_face_landmarks.dat
    Download from: http://dlib.net/files/shape_predictor_68_face_landmarks.dat.bz2

    Returns:
        dlib.shape_predictor instance
    """
    import dlib

    path = _find_weights(PREDICTOR_FILE)
    if path is None:
        raise FileNotFoundError(
            f"{PREDICTOR_FILE} not found in {_candidate_paths(PREDICTOR_FILE)}. "
            f"Download from http://dlib.net/files/{PREDICTOR_FILE}.bz2 "
            f"and place in {MODELS_DIR}"
        )

    logger.info(f"Loading dlib predictor from: {path}")
    return dlib.shape_predictor(path)


@lru_cache(maxsize=1)
def get_face_recognition_model():
    """
    Get dlib ResNet face recognition model (128-d face descriptors).

    Model file: dlib_face_recognition_resnet_model_v1.dat
    Download from: http://dlib.net/files/dlib_face_recognition_resnet_model_v1.dat.bz2

    Returns:
        dlib.face_recognition_model_v1 instance
    """
    import dlib

    path = _find_weights(RECOGNITION_FILE)
    if path is None:
        raise FileNotFoundError(
            f"{RECOGNITION_FILE} not found in {_candidate_paths(RECOGNITION_FILE)}. "
            f"Download from http://dlib.net/files/{RECOGNITION_FILE}.bz2 "
            f"and place in {MODELS_DIR}"
        )

    logger.info(f"Loading dlib face recognition model from: {path}")
    return dlib.face_recognition_model_v1(path)


def preload_models() -> None:
    """Load every model up front (startup hook)"""
    get_dlib_detector()
    get_dlib_predictor()
    get_face_recognition_model()


def check_models() -> Dict[str, bool]:
    """
    Check which models are available.

    Returns:
        Dict with model status
    """
    status = {
        "dlib": False,
        "shape_predictor": _find_weights(PREDICTOR_FILE) is not None,
        "face_recognition": _find_weights(RECOGNITION_FILE) is not None
    }

    try:
        import dlib  # noqa: F401
        status["dlib"] = True
    except ImportError:
        pass

    return status
