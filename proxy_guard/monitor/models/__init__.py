"""Model loading utilities"""

from .model_loader import (
    get_dlib_detector,
    get_dlib_predictor,
    get_face_recognition_model,
    preload_models,
    check_models
)

__all__ = [
    "get_dlib_detector",
    "get_dlib_predictor",
    "get_face_recognition_model",
    "preload_models",
    "check_models"
]
