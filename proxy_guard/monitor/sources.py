"""
Capture Sources - Video frames and audio spectra for a monitoring session

Video:
- PushedFrameSource: latest frame posted by the browser over HTTP
- WebcamSource: local camera through OpenCV

Audio:
- AudioFrameQueue: spectra (or converted PCM) posted by the browser
"""

import queue
import logging
import threading
from typing import Optional, Tuple

import cv2
import numpy as np

from ..config import settings
from .errors import CaptureUnavailable

logger = logging.getLogger(__name__)

# Max width for pushed frames (larger frames are downscaled before analysis)
PUSHED_FRAME_MAX_WIDTH = 1280


def decode_image(image_bytes: bytes) -> Optional[np.ndarray]:
    """
    Decode JPEG/PNG bytes to a BGR frame, downscaling wide frames.

    Returns:
        BGR image, or None if the bytes are not a decodable image
    """
    if not image_bytes:
        return None
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    frame = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if frame is None:
        return None
    h, w = frame.shape[:2]
    if w > PUSHED_FRAME_MAX_WIDTH:
        scale = PUSHED_FRAME_MAX_WIDTH / w
        frame = cv2.resize(
            frame,
            (PUSHED_FRAME_MAX_WIDTH, int(round(h * scale))),
            interpolation=cv2.INTER_AREA
        )
    return frame


class PushedFrameSource:
    """
    Holds the most recent frame pushed by the client.

    Frames carry a sequence number so the face loop can wait for a frame it
    has not analyzed yet, while the device loop just samples the latest one.
    """

    name = "push"

    def __init__(self):
        self._frame: Optional[np.ndarray] = None
        self._seq = 0
        self._closed = False
        self._cond = threading.Condition()

    def put(self, frame: np.ndarray):
        with self._cond:
            self._frame = frame
            self._seq += 1
            self._cond.notify_all()

    def latest(self) -> Optional[np.ndarray]:
        with self._cond:
            return self._frame

    def wait_for_frame(self, after_seq: int, timeout: float) -> Optional[Tuple[int, np.ndarray]]:
        """
        Wait up to `timeout` seconds for a frame newer than `after_seq`.

        Returns:
            (seq, frame) or None on timeout / close
        """
        with self._cond:
            self._cond.wait_for(lambda: self._closed or self._seq > after_seq, timeout=timeout)
            if self._closed or self._seq <= after_seq or self._frame is None:
                return None
            return self._seq, self._frame

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) of the latest frame, (0, 0) before the first one"""
        frame = self.latest()
        if frame is None:
            return 0, 0
        return frame.shape[1], frame.shape[0]

    def release(self):
        with self._cond:
            self._closed = True
            self._frame = None
            self._cond.notify_all()


class WebcamSource:
    """
    Local camera via cv2.VideoCapture.

    Only the face loop reads the device; other readers get the cached frame.
    """

    name = "webcam"

    def __init__(self, index: int = settings.WEBCAM_INDEX):
        self.index = index
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._seq = 0

        self.cap = cv2.VideoCapture(index)
        if not self.cap.isOpened():
            self.cap.release()
            raise CaptureUnavailable(f"Camera {index} could not be opened")

        ok, frame = self.cap.read()
        if not ok or frame is None:
            self.cap.release()
            raise CaptureUnavailable(f"Camera {index} opened but returned no frames")
        self._store(frame)

        logger.info(f"Webcam {index} opened ({frame.shape[1]}x{frame.shape[0]})")

    def _store(self, frame: np.ndarray):
        with self._lock:
            self._frame = frame
            self._seq += 1

    def latest(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame

    def wait_for_frame(self, after_seq: int, timeout: float) -> Optional[Tuple[int, np.ndarray]]:
        # cap.read() blocks for at most one camera frame period
        if self.cap is None or not self.cap.isOpened():
            return None
        ok, frame = self.cap.read()
        if not ok or frame is None:
            return None
        self._store(frame)
        with self._lock:
            return self._seq, self._frame

    @property
    def size(self) -> Tuple[int, int]:
        if self.cap is None:
            return 0, 0
        return (
            int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        )

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None
        with self._lock:
            self._frame = None


class AudioFrameQueue:
    """
    Bounded queue of audio spectra.

    When full, the oldest frame is dropped so the audio loop always works on
    recent sound.
    """

    def __init__(self, maxsize: int = settings.AUDIO_QUEUE_SIZE):
        self._queue: "queue.Queue[np.ndarray]" = queue.Queue(maxsize=maxsize)

    def put(self, spectrum: np.ndarray):
        while True:
            try:
                self._queue.put_nowait(spectrum)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    def get(self, timeout: float) -> Optional[np.ndarray]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def clear(self):
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return


def open_video_source(kind: str = settings.VIDEO_SOURCE):
    """
    Open the configured video source.

    Raises:
        CaptureUnavailable: camera missing or unknown source kind
    """
    if kind == "push":
        return PushedFrameSource()
    if kind == "webcam":
        return WebcamSource()
    raise CaptureUnavailable(f"Unknown video source '{kind}'")
