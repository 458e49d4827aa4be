"""
Monitoring API - FastAPI endpoints for proxy detection

Endpoints:
- POST /api/monitor/start - Open a session (camera on)
- POST /api/monitor/frame - Push a webcam frame
- POST /api/monitor/audio - Push an audio spectrum or PCM chunk
- POST /api/monitor/reference - Capture the reference face
- POST /api/monitor/monitoring/start - Start monitoring
- POST /api/monitor/monitoring/stop - Stop monitoring
- POST /api/monitor/stop - Close the session (camera off)
- GET /api/monitor/state/{session_id} - Live status fields
- GET /api/monitor/events/{session_id} - Proxy event log
- POST /api/monitor/analyze/landmarks - Stateless pose and gaze
- POST /api/monitor/analyze/audio - Stateless audio classification
"""

import base64
import binascii
import logging
from typing import Dict, List, Optional, Any

import numpy as np
from fastapi import APIRouter, HTTPException, BackgroundTasks
from pydantic import BaseModel, Field

from ..config import settings
from .detectors import LandmarkSet, GazeTracker, HeadPoseEstimator, AudioDetector
from .errors import (
    AnalyzerError,
    CaptureUnavailable,
    ModelInferenceError,
    MonitoringStateError,
    ReferenceCaptureError,
    ReferenceRequired
)
from .session import MonitorSession
from .sources import decode_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/monitor", tags=["Monitoring"])

# In-memory session storage; nothing is persisted
_sessions: Dict[str, MonitorSession] = {}


# ============== Request/Response Models ==============

class StartSessionRequest(BaseModel):
    """Request to open a monitoring session"""
    session_id: Optional[str] = Field(None, description="Custom session ID (generated if omitted)")


class StartSessionResponse(BaseModel):
    """Response after opening a session"""
    session_id: str
    status: str
    message: str


class SessionRequest(BaseModel):
    """Request that only names a session"""
    session_id: str = Field(..., description="Session ID from /start")


class PushFrameRequest(BaseModel):
    """Request to push a webcam frame"""
    session_id: str = Field(..., description="Session ID from /start")
    frame_base64: str = Field(..., description="Base64 encoded JPEG/PNG frame")


class PushFrameResponse(BaseModel):
    accepted: bool
    width: int
    height: int


class PushAudioRequest(BaseModel):
    """Audio input: a byte-frequency spectrum or raw int16 PCM"""
    session_id: str = Field(..., description="Session ID from /start")
    bins: Optional[List[int]] = Field(None, description="Frequency-bin magnitudes (0-255)")
    pcm_base64: Optional[str] = Field(None, description="Base64 encoded int16 PCM samples")


class PushAudioResponse(BaseModel):
    accepted: bool
    bins: int


class ReferenceRequest(BaseModel):
    """Request to capture the reference face"""
    session_id: str = Field(..., description="Session ID from /start")
    image_base64: Optional[str] = Field(None, description="Base64 frame; latest pushed frame if omitted")


class ReferenceResponse(BaseModel):
    captured: bool
    message: str
    descriptor_size: int = 0


class MonitoringResponse(BaseModel):
    session_id: str
    is_monitoring: bool
    message: str


class StopSessionResponse(BaseModel):
    """Final session summary"""
    session_id: str
    events: List[Dict[str, Any]]
    detection_count: int
    duration_seconds: float


class EventsResponse(BaseModel):
    session_id: str
    events: List[Dict[str, Any]]


class LandmarksRequest(BaseModel):
    """68 (x, y) points in dlib order"""
    points: List[List[float]] = Field(..., description="Facial landmarks as [x, y] pairs")


class LandmarksResponse(BaseModel):
    head_pose: Optional[Dict[str, float]] = None
    head_direction: Optional[str] = None
    gaze: Optional[Dict[str, str]] = None
    errors: List[str] = []


class AudioAnalysisRequest(BaseModel):
    bins: Optional[List[int]] = Field(None, description="Frequency-bin magnitudes (0-255)")
    pcm_base64: Optional[str] = Field(None, description="Base64 encoded int16 PCM samples")


class AudioAnalysisResponse(BaseModel):
    level: str
    multiple_voices: bool
    volume: float
    peak_count: int
    suspicious: bool


class ModelStatusResponse(BaseModel):
    """Model availability status"""
    dlib: bool
    shape_predictor: bool
    face_recognition: bool


# ============== Helpers ==============

_head_pose = HeadPoseEstimator()
_gaze_tracker = GazeTracker()
_audio_detector = AudioDetector()


def _get_session(session_id: str, require_active: bool = True) -> MonitorSession:
    session = _sessions.get(session_id)

    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    if require_active and not session.is_active:
        raise HTTPException(status_code=400, detail="Session is not active")

    return session


def _decode_frame(frame_base64: str) -> np.ndarray:
    try:
        frame_bytes = base64.b64decode(frame_base64)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Invalid base64 data")

    frame = decode_image(frame_bytes)
    if frame is None:
        raise HTTPException(status_code=400, detail="Invalid frame data")
    return frame


def _spectrum(bins: Optional[List[int]], pcm_base64: Optional[str]) -> np.ndarray:
    if bins is not None:
        return np.clip(np.asarray(bins, dtype=np.int64), 0, 255).astype(np.uint8)
    if pcm_base64 is not None:
        try:
            return _audio_detector.spectrum_from_base64(pcm_base64)
        except (binascii.Error, ValueError, AnalyzerError) as e:
            raise HTTPException(status_code=400, detail=f"Invalid PCM data: {e}")
    raise HTTPException(status_code=400, detail="Provide either bins or pcm_base64")


# ============== Session Endpoints ==============

@router.post("/start", response_model=StartSessionResponse)
def start_session(request: StartSessionRequest):
    """
    Open a monitoring session (camera on).

    Fails with 503 when the configured capture device is unavailable.
    """
    if request.session_id and request.session_id in _sessions:
        raise HTTPException(status_code=400, detail="Session already exists")

    try:
        session = MonitorSession(session_id=request.session_id)
    except CaptureUnavailable as e:
        logger.error(f"Capture unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to open monitoring session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    _sessions[session.id] = session
    logger.info(f"Opened monitoring session: {session.id}")

    return StartSessionResponse(
        session_id=session.id,
        status="active",
        message="Camera started. Capture the reference photo next."
    )


@router.post("/frame", response_model=PushFrameResponse)
def push_frame(request: PushFrameRequest):
    """Push one webcam frame into the session's video source."""
    session = _get_session(request.session_id)
    frame = _decode_frame(request.frame_base64)

    try:
        session.push_frame(frame)
    except MonitoringStateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return PushFrameResponse(accepted=True, width=frame.shape[1], height=frame.shape[0])


@router.post("/audio", response_model=PushAudioResponse)
async def push_audio(request: PushAudioRequest):
    """Push one audio frame (spectrum bins or int16 PCM)."""
    session = _get_session(request.session_id)
    spectrum = _spectrum(request.bins, request.pcm_base64)

    try:
        session.push_audio(spectrum)
    except MonitoringStateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return PushAudioResponse(accepted=True, bins=int(spectrum.size))


@router.post("/reference", response_model=ReferenceResponse)
def capture_reference(request: ReferenceRequest):
    """
    Capture the reference face.

    Exactly one face must be visible; otherwise 422 with a retry message.
    A session keeps its first reference until the camera stops (400 on retake).
    """
    session = _get_session(request.session_id)
    frame = _decode_frame(request.image_base64) if request.image_base64 else None

    try:
        descriptor = session.capture_reference(frame)
    except ReferenceCaptureError as e:
        raise HTTPException(status_code=422, detail=f"Failed to capture. {e.message}. Try again.")
    except MonitoringStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ModelInferenceError as e:
        logger.error(f"Reference capture error: {e}")
        raise HTTPException(status_code=503, detail="Capture error. Please try again.")

    return ReferenceResponse(
        captured=True,
        message="Reference captured. Start monitoring next.",
        descriptor_size=int(descriptor.size)
    )


@router.post("/monitoring/start", response_model=MonitoringResponse)
async def start_monitoring(request: SessionRequest):
    """Start the detection loops."""
    session = _get_session(request.session_id)

    try:
        started = session.start_monitoring()
    except ReferenceRequired as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MonitoringStateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MonitoringResponse(
        session_id=session.id,
        is_monitoring=session.is_monitoring,
        message="Monitoring started" if started else "Monitoring already running"
    )


@router.post("/monitoring/stop", response_model=MonitoringResponse)
def stop_monitoring(request: SessionRequest):
    """Stop the detection loops; the event log is kept."""
    session = _get_session(request.session_id)
    stopped = session.stop_monitoring()

    return MonitoringResponse(
        session_id=session.id,
        is_monitoring=session.is_monitoring,
        message="Monitoring stopped" if stopped else "Monitoring was not running"
    )


@router.post("/stop", response_model=StopSessionResponse)
def stop_session(request: SessionRequest, background_tasks: BackgroundTasks):
    """
    Close the session (camera off).

    Clears the reference face and the event log, returns the final log,
    and schedules removal of the session.
    """
    session = _get_session(request.session_id, require_active=False)

    try:
        result = session.close()
    except Exception as e:
        logger.error(f"Error stopping session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    background_tasks.add_task(_cleanup_session, request.session_id)

    return StopSessionResponse(**result)


@router.get("/state/{session_id}")
async def get_session_state(session_id: str) -> Dict[str, Any]:
    """Live head pose, gaze, face count, device and audio flags."""
    session = _get_session(session_id, require_active=False)
    return session.get_state()


@router.get("/events/{session_id}", response_model=EventsResponse)
async def get_session_events(session_id: str):
    """Proxy event log, oldest first."""
    session = _get_session(session_id, require_active=False)
    return EventsResponse(session_id=session.id, events=session.get_events())


# ============== Stateless Analysis Endpoints ==============

@router.post("/analyze/landmarks", response_model=LandmarksResponse)
async def analyze_landmarks(request: LandmarksRequest):
    """Head pose, head direction and gaze for one landmark set."""
    try:
        landmarks = LandmarkSet.from_points(request.points)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid landmarks: {e}")

    response = LandmarksResponse()

    try:
        pose = _head_pose.estimate(landmarks)
        response.head_pose = pose.to_dict()
        response.head_direction = _head_pose.classify_direction(pose)
    except AnalyzerError as e:
        response.errors.append(f"{type(e).__name__}: {e}")

    try:
        response.gaze = _gaze_tracker.track(landmarks).to_dict()
    except AnalyzerError as e:
        response.errors.append(f"{type(e).__name__}: {e}")

    return response


@router.post("/analyze/audio", response_model=AudioAnalysisResponse)
async def analyze_audio(request: AudioAnalysisRequest):
    """Noise level and multiple-voice flag for one audio frame."""
    spectrum = _spectrum(request.bins, request.pcm_base64)

    try:
        result = _audio_detector.classify(spectrum)
    except AnalyzerError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return AudioAnalysisResponse(**result.to_dict())


@router.get("/models-status", response_model=ModelStatusResponse)
async def get_models_status():
    """
    Check which dlib models are available.
    """
    from .models.model_loader import check_models

    return ModelStatusResponse(**check_models())


# ============== Background Tasks ==============

async def _cleanup_session(session_id: str):
    """Drop a closed session after a grace period"""
    import asyncio

    await asyncio.sleep(settings.SESSION_CLEANUP_DELAY)

    session = _sessions.get(session_id)
    if session is not None and not session.is_active:
        del _sessions[session_id]
        logger.info(f"Cleaned up session: {session_id}")


# ============== Health Check ==============

@router.get("/health")
async def health_check():
    """Health check for monitoring module"""
    return {
        "status": "healthy",
        "active_sessions": sum(1 for s in _sessions.values() if s.is_active),
        "module": "monitoring"
    }
