"""
Temporal Event Aggregator - Turns per-frame detections into proxy events

Owns all cross-frame state of a monitoring session:
- DetectionWindow: last N device-heuristic verdicts (unanimity required)
- HysteresisTimer: continuous head-turn and gaze-down durations
- The append-only ProxyEvent log and the live status fields
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ...config import settings
from ..detectors.audio_detector import AudioClassification
from ..detectors.gaze_tracker import GazeEstimate, CENTER_GAZE
from ..detectors.head_pose import HeadPose, HeadPoseEstimator, ZERO_POSE

logger = logging.getLogger(__name__)

MOBILE_DEVICE_DETECTED = "Mobile device detected"
SECOND_FACE_MESSAGE = "Unauthorized second face detected!"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProxyEvent:
    """One entry of the session's event log"""
    kind: str
    label: str
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "label": self.label,
            "timestamp": self.timestamp.isoformat()
        }


def head_moving_event(direction: str, timestamp: datetime) -> ProxyEvent:
    return ProxyEvent(f"HeadMoving:{direction}", f"Head Moving {direction}", timestamp)


def gaze_down_event(timestamp: datetime) -> ProxyEvent:
    return ProxyEvent("EyeGazeDown", "Eye Gaze Down", timestamp)


def multiple_voices_event(timestamp: datetime) -> ProxyEvent:
    return ProxyEvent("MultipleVoices", "Multiple Voices", timestamp)


def audio_level_event(level: str, timestamp: datetime) -> ProxyEvent:
    return ProxyEvent(f"AudioLevel:{level}", f"Audio Level: {level.upper()}", timestamp)


def mobile_device_event(timestamp: datetime) -> ProxyEvent:
    return ProxyEvent("MobileDeviceDetected", "Mobile Device Detected", timestamp)


def multiple_faces_event(timestamp: datetime) -> ProxyEvent:
    return ProxyEvent("MultipleFaces", "Unauthorized second face detected", timestamp)


class DetectionWindow:
    """
    Fixed-capacity FIFO of per-tick boolean verdicts.

    Pushing into a full window evicts the oldest verdict.
    """

    def __init__(self, capacity: int = settings.DETECTION_FRAME_THRESHOLD):
        if capacity < 1:
            raise ValueError("Window capacity must be positive")
        self._values = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._values.maxlen

    def push(self, value: bool):
        self._values.append(bool(value))

    @property
    def is_full(self) -> bool:
        return len(self._values) == self.capacity

    @property
    def is_unanimous(self) -> bool:
        """Full and every verdict True"""
        return self.is_full and all(self._values)

    def clear(self):
        self._values.clear()

    def to_list(self) -> List[bool]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)


@dataclass
class HysteresisTimer:
    """
    Tracks how long one labelled condition has held without interruption.

    `update` returns True exactly once per continuous run: on the tick where
    the accumulated time first strictly exceeds the threshold. A new label
    restarts the run; no label resets it.
    """

    threshold: float
    label: Optional[str] = None
    accumulated_seconds: float = 0.0
    fired: bool = False

    def update(self, label: Optional[str], dt: float) -> bool:
        if label is None:
            self.reset()
            return False

        if label != self.label:
            self.label = label
            self.accumulated_seconds = dt
            self.fired = False
        else:
            self.accumulated_seconds += dt

        if not self.fired and self.accumulated_seconds > self.threshold:
            self.fired = True
            return True
        return False

    def reset(self):
        self.label = None
        self.accumulated_seconds = 0.0
        self.fired = False


class TemporalEventAggregator:
    """
    Debounces detector output into ProxyEvents and live status fields.

    Each update_* method handles one input stream; updates for different
    streams touch disjoint fields. Log appends and snapshots are serialized
    with a lock so concurrent readers never see a half-written tick.
    """

    def __init__(
        self,
        head_estimator: Optional[HeadPoseEstimator] = None,
        head_duration_threshold: float = settings.HEAD_MOVEMENT_DURATION_THRESHOLD,
        gaze_down_threshold: float = settings.EYE_DOWN_THRESHOLD,
        window_size: int = settings.DETECTION_FRAME_THRESHOLD,
        debounce_audio: bool = settings.AUDIO_DEBOUNCE_EVENTS,
        clock: Callable[[], datetime] = _utcnow,
        on_event: Optional[Callable[[ProxyEvent], None]] = None
    ):
        """
        Args:
            head_estimator: Classifies head direction (threshold source)
            head_duration_threshold: Seconds a head turn must last before an event
            gaze_down_threshold: Seconds a downward gaze must last before an event
            window_size: Consecutive device verdicts required
            debounce_audio: Emit audio events on onset only instead of every tick
            clock: Timestamp source for events
            on_event: Called with each appended event (outside the lock)
        """
        self.head_estimator = head_estimator or HeadPoseEstimator()
        self.debounce_audio = debounce_audio
        self.clock = clock
        self.on_event = on_event

        self.window = DetectionWindow(window_size)
        self.head_timer = HysteresisTimer(threshold=head_duration_threshold)
        self.gaze_timer = HysteresisTimer(threshold=gaze_down_threshold)

        self._lock = threading.Lock()
        self._events: List[ProxyEvent] = []
        self.detection_count = 0

        self._reset_live_fields()

    def _reset_live_fields(self):
        self.face_count = 0
        self.multi_face_active = False
        self.head_pose: Optional[HeadPose] = ZERO_POSE
        self.head_direction: Optional[str] = None
        self.gaze: Optional[GazeEstimate] = CENTER_GAZE
        self.face_expressions: Dict[str, str] = {}
        self.object_detected: Optional[str] = None
        self.audio: Optional[AudioClassification] = None
        self.audio_suspicious = False
        self.status_message = ""
        self._active_audio_kinds: set = set()

    # ============== Input streams ==============

    def update_faces(
        self,
        face_count: int,
        pose: Optional[HeadPose] = None,
        gaze: Optional[GazeEstimate] = None,
        dt: float = 0.0,
        expressions: Optional[Dict[str, str]] = None
    ) -> List[ProxyEvent]:
        """
        Apply one face-loop tick.

        Args:
            face_count: Faces the detector reported (0 on model failure)
            pose: Primary face pose, None when geometry was unusable
            gaze: Primary face gaze, None when geometry was unusable
            dt: Seconds since the previous face tick
            expressions: "Face N" -> most likely expression, for scored faces

        Returns:
            Events appended this tick
        """
        now = self.clock()
        emitted = []

        with self._lock:
            self.face_count = face_count
            multi_face = face_count > 1
            if multi_face and not self.multi_face_active:
                emitted.append(multiple_faces_event(now))
            self.multi_face_active = multi_face

            if face_count == 0:
                self.head_pose = ZERO_POSE
                self.head_direction = None
                self.gaze = CENTER_GAZE
                self.face_expressions = {}
                self.head_timer.reset()
                self.gaze_timer.reset()
                self.status_message = ""
            else:
                self.head_pose = pose
                self.gaze = gaze
                self.face_expressions = dict(expressions or {})

                direction = self.head_estimator.classify_direction(pose)
                self.head_direction = direction
                if self.head_timer.update(direction, dt):
                    emitted.append(head_moving_event(direction, now))

                gaze_down = gaze is not None and gaze.vertical == "down"
                if self.gaze_timer.update("down" if gaze_down else None, dt):
                    emitted.append(gaze_down_event(now))

                if multi_face:
                    self.status_message = SECOND_FACE_MESSAGE
                elif direction:
                    self.status_message = f"Head Moving {direction.upper()}!"
                else:
                    self.status_message = ""

            self._events.extend(emitted)

        self._notify(emitted)
        return emitted

    def update_audio(self, classification: Optional[AudioClassification]) -> List[ProxyEvent]:
        """
        Apply one audio-loop tick.

        Args:
            classification: Classifier output, None when the frame was unusable

        Returns:
            Events appended this tick
        """
        now = self.clock()
        emitted = []

        with self._lock:
            self.audio = classification
            if classification is None:
                self.audio_suspicious = False
                self._active_audio_kinds = set()
                return emitted

            self.audio_suspicious = classification.suspicious

            candidates = []
            if classification.multiple_voices:
                candidates.append(multiple_voices_event(now))
            if classification.level != "low":
                candidates.append(audio_level_event(classification.level, now))

            active_kinds = {event.kind for event in candidates}
            for event in candidates:
                if self.debounce_audio and event.kind in self._active_audio_kinds:
                    continue
                emitted.append(event)
            self._active_audio_kinds = active_kinds

            if classification.multiple_voices:
                self.status_message = "Multiple Voices Detected!"
            elif classification.level != "low":
                self.status_message = f"Audio Level: {classification.level.upper()}!"

            self._events.extend(emitted)

        self._notify(emitted)
        return emitted

    def update_object(self, is_candidate: Optional[bool]) -> List[ProxyEvent]:
        """
        Apply one device-heuristic tick.

        Args:
            is_candidate: Heuristic verdict, None when the frame was unusable

        Returns:
            Events appended this tick
        """
        now = self.clock()
        emitted = []

        with self._lock:
            self.window.push(bool(is_candidate))

            if self.window.is_unanimous:
                self.object_detected = MOBILE_DEVICE_DETECTED
                self.detection_count += 1
                self.status_message = "Mobile device detected!"
                emitted.append(mobile_device_event(now))
            else:
                self.object_detected = None

            self._events.extend(emitted)

        self._notify(emitted)
        return emitted

    def _notify(self, events: List[ProxyEvent]):
        if self.on_event is None:
            return
        for event in events:
            try:
                self.on_event(event)
            except Exception as e:
                logger.warning(f"Event listener failed: {e}")

    # ============== Lifecycle ==============

    def reset(self):
        """Drop all temporal state (monitoring stopped); the event log is kept"""
        with self._lock:
            self.window.clear()
            self.head_timer.reset()
            self.gaze_timer.reset()
            self._reset_live_fields()

    def clear_events(self):
        """Empty the event log and detection counter (session stopped)"""
        with self._lock:
            self._events = []
            self.detection_count = 0

    # ============== Readers ==============

    @property
    def events(self) -> List[ProxyEvent]:
        with self._lock:
            return list(self._events)

    def snapshot(self) -> Dict[str, Any]:
        """Live status fields as a plain dict"""
        with self._lock:
            return {
                "face_count": self.face_count,
                "multi_face_active": self.multi_face_active,
                "head_pose": self.head_pose.to_dict() if self.head_pose else None,
                "head_direction": self.head_direction,
                "head_movement_seconds": self.head_timer.accumulated_seconds,
                "gaze": self.gaze.to_dict() if self.gaze else None,
                "gaze_down_seconds": self.gaze_timer.accumulated_seconds,
                "face_expressions": dict(self.face_expressions),
                "object_detected": self.object_detected,
                "detection_count": self.detection_count,
                "detection_window": self.window.to_list(),
                "audio": self.audio.to_dict() if self.audio else None,
                "audio_suspicious": self.audio_suspicious,
                "status_message": self.status_message,
                "event_count": len(self._events)
            }
