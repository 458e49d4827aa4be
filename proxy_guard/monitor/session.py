"""
Monitor Session - Manages a single proxy monitoring session

Lifecycle:
    open (camera on) -> capture reference -> start monitoring
    -> stop monitoring -> ... -> close (camera off)

While monitoring, three producer threads analyze frames and audio at
their own cadence and send results over a queue to one aggregator thread,
the only writer of the session's temporal state and event log.
"""

import uuid
import time
import queue
import logging
import threading
import numpy as np
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple

from ..config import settings
from .detectors import (
    FaceDetector,
    HeadPoseEstimator,
    GazeTracker,
    AudioDetector,
    DeviceHeuristicDetector,
    ReferenceCapture,
    HeadPose,
    GazeEstimate,
    AudioClassification
)
from .errors import (
    AnalyzerError,
    EmptySample,
    ModelInferenceError,
    MonitoringStateError,
    ReferenceRequired
)
from .metrics import TemporalEventAggregator, ProxyEvent
from .sources import AudioFrameQueue, PushedFrameSource, open_video_source
from .utils.logging import (
    log_session_start,
    log_session_end,
    log_monitoring_state,
    log_reference_captured,
    log_proxy_event
)

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass(frozen=True)
class FaceTick:
    """Face-loop result for one frame"""
    face_count: int = 0
    pose: Optional[HeadPose] = None
    gaze: Optional[GazeEstimate] = None
    # "Face 1" -> most likely expression, for faces the model scored
    expressions: Dict[str, str] = field(default_factory=dict)


NO_FACES = FaceTick()


class MonitorSession:
    """
    One camera session of one test-taker.

    Detectors are lazy loaded and can be injected (tests, alternative models).
    """

    # Longest gap (seconds) credited to a hysteresis timer between two face ticks
    MAX_TICK_SECONDS = 1.0
    JOIN_TIMEOUT = 2.0

    def __init__(
        self,
        session_id: Optional[str] = None,
        video_source=None,
        audio_frames: Optional[AudioFrameQueue] = None,
        face_detector: Optional[FaceDetector] = None,
        aggregator: Optional[TemporalEventAggregator] = None,
        object_interval: float = settings.OBJECT_DETECTION_INTERVAL,
        face_tick_timeout: float = settings.FACE_TICK_TIMEOUT,
        audio_tick_timeout: float = settings.AUDIO_TICK_TIMEOUT
    ):
        """
        Open a session and acquire the video source.

        Args:
            session_id: Optional custom session ID (auto-generated if not provided)
            video_source: Frame source; defaults to the configured VIDEO_SOURCE
            audio_frames: Audio spectrum queue
            face_detector: Face model; defaults to dlib
            aggregator: Temporal aggregator; a fresh one by default
            object_interval: Seconds between device heuristic ticks
            face_tick_timeout: Max seconds the face loop waits for a new frame
            audio_tick_timeout: Max seconds the audio loop waits for a spectrum

        Raises:
            CaptureUnavailable: the video source could not be opened
        """
        self.id = session_id or f"PXY_{uuid.uuid4().hex[:6].upper()}"
        self.started_at = datetime.now(timezone.utc)

        self.video = video_source if video_source is not None else open_video_source(settings.VIDEO_SOURCE)
        self.audio_frames = audio_frames or AudioFrameQueue()
        self.is_active = True

        self.object_interval = object_interval
        self.face_tick_timeout = face_tick_timeout
        self.audio_tick_timeout = audio_tick_timeout

        # Detectors (lazy loaded)
        self._face_detector: Optional[FaceDetector] = face_detector
        self.head_pose = HeadPoseEstimator()
        self.gaze_tracker = GazeTracker()
        self.audio_detector = AudioDetector()
        self.object_detector = DeviceHeuristicDetector()
        self.reference = ReferenceCapture()

        self.aggregator = aggregator or TemporalEventAggregator(head_estimator=self.head_pose)
        self.aggregator.on_event = self._on_proxy_event

        # dlib models are shared by the face and device loops
        self._model_lock = threading.Lock()
        # Held while applying a result or cancelling, so no result lands after stop
        self._apply_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()

        self._stop_event: Optional[threading.Event] = None
        self._inbox: "queue.Queue" = queue.Queue()
        self._threads: List[threading.Thread] = []

        log_session_start(self.id, getattr(self.video, "name", type(self.video).__name__))
        logger.info(f"Monitoring session opened: {self.id}")

    @property
    def face_detector(self) -> FaceDetector:
        """Lazy load face detector"""
        if self._face_detector is None:
            self._face_detector = FaceDetector()
        return self._face_detector

    @property
    def is_monitoring(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    @property
    def is_reference_captured(self) -> bool:
        return self.reference.is_captured

    # ============== Inputs ==============

    def push_frame(self, frame: np.ndarray):
        """Hand a client frame to a push-based video source"""
        self._require_active()
        if not isinstance(self.video, PushedFrameSource):
            raise MonitoringStateError("Session video comes from a local camera, frames cannot be pushed")
        self.video.put(frame)

    def push_audio(self, spectrum: np.ndarray):
        self._require_active()
        self.audio_frames.put(np.asarray(spectrum))

    # ============== Reference capture ==============

    def capture_reference(self, frame: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Capture the reference descriptor from `frame` (or the latest frame).

        Raises:
            ZeroFaces / MultipleFaces: not exactly one face in frame
            ModelInferenceError: face model failed
            MonitoringStateError: session closed, reference already held, or no frame yet
        """
        self._require_active()
        if self.reference.is_captured:
            raise MonitoringStateError("Reference already captured; stop the camera to retake it")
        if frame is None:
            frame = self.video.latest()
        if frame is None:
            raise MonitoringStateError("No frame available for reference capture")

        with self._model_lock:
            faces = self.face_detector.detect(frame, with_descriptors=True)

        descriptor = self.reference.capture(faces)
        log_reference_captured(self.id, int(descriptor.size))
        return descriptor

    # ============== Per-tick analysis ==============

    def analyze_faces(self, frame: np.ndarray) -> FaceTick:
        """
        Face count, per-face expressions, and pose and gaze of the primary face.

        Model failures count as zero faces; unusable geometry yields None
        for the affected estimate.
        """
        try:
            with self._model_lock:
                faces = self.face_detector.detect(frame)
        except ModelInferenceError as e:
            logger.warning(f"Face detection error: {e}")
            return NO_FACES

        expressions = {}
        for index, face in enumerate(faces):
            expression = face.dominant_expression
            if expression is not None:
                expressions[f"Face {index + 1}"] = expression

        if not faces or faces[0].landmarks is None:
            return FaceTick(face_count=len(faces), expressions=expressions)

        landmarks = faces[0].landmarks

        pose = None
        try:
            pose = self.head_pose.estimate(landmarks)
        except AnalyzerError as e:
            logger.debug(f"No head pose this tick: {e}")

        gaze = None
        try:
            gaze = self.gaze_tracker.track(landmarks)
        except AnalyzerError as e:
            logger.debug(f"No gaze this tick: {e}")

        return FaceTick(face_count=len(faces), pose=pose, gaze=gaze, expressions=expressions)

    def analyze_device(self, frame: np.ndarray) -> Optional[bool]:
        """Device heuristic verdict for one frame, None if the frame is unusable"""
        face_box = None
        try:
            with self._model_lock:
                boxes = self.face_detector.detect_boxes(frame)
            if boxes:
                face_box = boxes[0]
        except ModelInferenceError as e:
            logger.warning(f"Face box lookup error: {e}")

        try:
            result = self.object_detector.analyze(frame, face_box=face_box)
        except ValueError as e:
            logger.warning(f"Device heuristic error: {e}")
            return None

        logger.debug(f"Device heuristic: {result.metrics.to_dict()} candidate={result.is_candidate}")
        return result.is_candidate

    def analyze_audio(self, spectrum: np.ndarray) -> Optional[AudioClassification]:
        try:
            return self.audio_detector.classify(spectrum)
        except EmptySample as e:
            logger.debug(f"No audio signal this tick: {e}")
            return None

    # ============== Monitoring loops ==============

    def start_monitoring(self) -> bool:
        """
        Start the producer and aggregator threads.

        Returns:
            False if monitoring was already running

        Raises:
            ReferenceRequired: no reference captured yet
            MonitoringStateError: session closed
        """
        with self._lifecycle_lock:
            self._require_active()
            if not self.reference.is_captured:
                raise ReferenceRequired("Capture the reference photo before monitoring")
            if self.is_monitoring:
                return False

            self.aggregator.reset()
            self.audio_frames.clear()

            stop = threading.Event()
            inbox: "queue.Queue" = queue.Queue()
            self._stop_event = stop
            self._inbox = inbox

            self._threads = [
                threading.Thread(target=self._face_loop, args=(stop, inbox), name=f"{self.id}-faces", daemon=True),
                threading.Thread(target=self._object_loop, args=(stop, inbox), name=f"{self.id}-device", daemon=True),
                threading.Thread(target=self._audio_loop, args=(stop, inbox), name=f"{self.id}-audio", daemon=True),
                threading.Thread(target=self._aggregate_loop, args=(stop, inbox), name=f"{self.id}-aggregate", daemon=True),
            ]
            for thread in self._threads:
                thread.start()

        log_monitoring_state(self.id, True)
        return True

    def stop_monitoring(self) -> bool:
        """
        Stop all loops and clear the detection window and timers.

        The event log is kept until the session is closed.

        Returns:
            False if monitoring was not running
        """
        with self._lifecycle_lock:
            if not self.is_monitoring:
                return False

            with self._apply_lock:
                self._stop_event.set()

            self._inbox.put(_STOP)
            for thread in self._threads:
                if thread is not threading.current_thread():
                    thread.join(timeout=self.JOIN_TIMEOUT)
                    if thread.is_alive():
                        logger.warning(f"Thread {thread.name} did not stop within {self.JOIN_TIMEOUT}s")
            self._threads = []

            self.aggregator.reset()
            self.audio_frames.clear()

        log_monitoring_state(self.id, False)
        return True

    def _face_loop(self, stop: threading.Event, inbox: "queue.Queue"):
        last_seq = 0
        last_tick: Optional[float] = None

        while not stop.is_set():
            got = self.video.wait_for_frame(last_seq, timeout=self.face_tick_timeout)
            if got is None:
                continue
            last_seq, frame = got

            now = time.monotonic()
            dt = 0.0 if last_tick is None else min(now - last_tick, self.MAX_TICK_SECONDS)
            last_tick = now

            try:
                tick = self.analyze_faces(frame)
            except Exception as e:
                logger.warning(f"Face tick failed: {e}")
                tick = NO_FACES

            inbox.put(("faces", (tick, dt)))

    def _object_loop(self, stop: threading.Event, inbox: "queue.Queue"):
        # Event.wait returns True once stop is set
        while not stop.wait(self.object_interval):
            frame = self.video.latest()
            if frame is None:
                continue

            try:
                verdict = self.analyze_device(frame)
            except Exception as e:
                logger.warning(f"Device tick failed: {e}")
                verdict = None

            inbox.put(("object", verdict))

    def _audio_loop(self, stop: threading.Event, inbox: "queue.Queue"):
        while not stop.is_set():
            spectrum = self.audio_frames.get(timeout=self.audio_tick_timeout)
            if spectrum is None:
                continue
            inbox.put(("audio", self.analyze_audio(spectrum)))

    def _aggregate_loop(self, stop: threading.Event, inbox: "queue.Queue"):
        while True:
            item = inbox.get()
            if item is _STOP:
                return

            with self._apply_lock:
                if stop.is_set():
                    continue
                try:
                    self._apply(item)
                except Exception as e:
                    logger.error(f"Aggregator error on {item[0]} tick: {e}")

    def _apply(self, item: Tuple[str, Any]):
        kind, payload = item
        if kind == "faces":
            tick, dt = payload
            self.aggregator.update_faces(tick.face_count, tick.pose, tick.gaze, dt, tick.expressions)
        elif kind == "object":
            self.aggregator.update_object(payload)
        elif kind == "audio":
            self.aggregator.update_audio(payload)

    def _on_proxy_event(self, event: ProxyEvent):
        log_proxy_event(self.id, event.kind, event.label)

    # ============== State ==============

    def _require_active(self):
        if not self.is_active:
            raise MonitoringStateError("Session is closed")

    def get_state(self) -> Dict[str, Any]:
        width, height = self.video.size if self.video is not None else (0, 0)
        return {
            "session_id": self.id,
            "is_active": self.is_active,
            "is_monitoring": self.is_monitoring,
            "is_reference_captured": self.is_reference_captured,
            "frame_width": width,
            "frame_height": height,
            "duration_seconds": (datetime.now(timezone.utc) - self.started_at).total_seconds(),
            **self.aggregator.snapshot()
        }

    def get_events(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self.aggregator.events]

    def close(self) -> Dict[str, Any]:
        """
        Stop the camera: stop monitoring, forget the reference, clear the log.

        Returns:
            Final session summary
        """
        self.stop_monitoring()

        events = self.get_events()
        detections = self.aggregator.detection_count
        duration = (datetime.now(timezone.utc) - self.started_at).total_seconds()

        self.reference.clear()
        self.aggregator.reset()
        self.aggregator.clear_events()
        self.audio_frames.clear()
        if self.video is not None:
            self.video.release()
        self.is_active = False

        log_session_end(self.id, len(events), detections)
        logger.info(f"Session {self.id} closed: events={len(events)}, detections={detections}")

        return {
            "session_id": self.id,
            "events": events,
            "detection_count": detections,
            "duration_seconds": duration
        }
