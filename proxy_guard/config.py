"""
Proxy Guard Configuration Settings

Thresholds are calibrated against 68-point landmarks, byte-frequency
audio spectra (0-255) and 8-bit color frames.
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Configuration for the proxy detection service."""

    # API Settings
    APP_NAME: str = "Proxy Guard Service"
    DEBUG: bool = True
    PORT: int = 8002

    # Capture Settings
    VIDEO_SOURCE: str = "push"  # "push" (frames posted over HTTP) or "webcam"
    WEBCAM_INDEX: int = 0
    AUDIO_QUEUE_SIZE: int = 32

    # Model Settings
    MODELS_DIR: Optional[str] = None
    PRELOAD_MODELS: bool = False

    # Head pose / gaze
    HEAD_YAW_FOCAL_SCALE: float = 80.0
    HEAD_MOVEMENT_THRESHOLD: float = 10.0  # degrees
    HEAD_MOVEMENT_DURATION_THRESHOLD: float = 3.0  # seconds
    EYE_DOWN_THRESHOLD: float = 5.0  # seconds
    GAZE_VERTICAL_THRESHOLD: float = 0.05
    GAZE_HORIZONTAL_THRESHOLD: float = 0.1

    # Audio
    AUDIO_FFT_SIZE: int = 2048
    AUDIO_MIN_DECIBELS: float = -100.0
    AUDIO_MAX_DECIBELS: float = -30.0
    NOISE_THRESHOLD_MEDIUM: float = 0.4
    NOISE_THRESHOLD_HIGH: float = 0.6
    AUDIO_PEAK_MAGNITUDE: int = 150
    MULTIPLE_VOICES_THRESHOLD: int = 5
    AUDIO_DEBOUNCE_EVENTS: bool = False

    # Pixel heuristic
    EDGE_DIFF_THRESHOLD: int = 80
    UNIFORM_DIFF_THRESHOLD: int = 20
    UNIFORM_RUN_LENGTH: int = 4
    HIGH_CONTRAST_THRESHOLD: int = 100
    UNIFORM_RUN_RESET_ON_MIXED: bool = True
    EDGE_RATIO_THRESHOLD: float = 0.07
    UNIFORM_CLUSTER_RATIO_THRESHOLD: float = 0.055
    HIGH_CONTRAST_RATIO_THRESHOLD: float = 0.08
    FACE_COVERAGE_TOLERANCE: float = 0.45
    DETECTION_FRAME_THRESHOLD: int = 3

    # Loop cadences (seconds)
    OBJECT_DETECTION_INTERVAL: float = 0.5
    FACE_TICK_TIMEOUT: float = 0.1
    AUDIO_TICK_TIMEOUT: float = 0.1

    # Session housekeeping
    SESSION_CLEANUP_DELAY: float = 60.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
