"""
Pytest Configuration for Proxy Guard Tests
"""
import os
import sys
import time
import base64

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from proxy_guard.monitor.detectors import LandmarkSet, FaceObservation
from proxy_guard.monitor.errors import ModelInferenceError


# Eye contours in dlib order: outer corner, two upper points, inner corner, two lower points
LEFT_EYE = [(120, 110), (125, 106), (135, 106), (140, 110), (135, 114), (125, 114)]
RIGHT_EYE = [(160, 110), (165, 106), (175, 106), (180, 110), (175, 114), (165, 114)]


def make_points(
    nose_tip=(150.0, 150.0),
    forehead=(100.0, 100.0),
    chin=(150.0, 200.0),
    left_eye=LEFT_EYE,
    right_eye=RIGHT_EYE
) -> np.ndarray:
    """
    Build a 68-point landmark array.

    Defaults describe a face looking straight at the camera:
    yaw 0, pitch 0, roll 0.
    """
    points = np.zeros((68, 2), dtype=np.float64)

    # Jaw: straight line from forehead reference (0) to chin (8) and beyond
    for i in range(17):
        t = i / 8.0
        points[i] = (
            forehead[0] + (chin[0] - forehead[0]) * t,
            forehead[1] + (chin[1] - forehead[1]) * min(t, 2 - t)
        )
    points[0] = forehead
    points[8] = chin

    # Nose bridge 27-30, tip row 31-35; nose region index 4 is point 31
    for i in range(27, 36):
        points[i] = (150.0, 120.0 + (i - 27) * 5)
    points[31] = nose_tip

    points[36:42] = left_eye
    points[42:48] = right_eye

    for i in range(48, 68):
        points[i] = (135.0 + (i - 48), 175.0)

    return points


def make_landmarks(**kwargs) -> LandmarkSet:
    return LandmarkSet.from_points(make_points(**kwargs))


def make_face(landmarks=None, box=(100, 80, 100, 140), descriptor=None, expressions=None) -> FaceObservation:
    if descriptor is None:
        descriptor = np.linspace(-0.1, 0.1, 128)
    return FaceObservation(
        box=box,
        landmarks=landmarks if landmarks is not None else make_landmarks(),
        descriptor=descriptor,
        expressions=expressions
    )


class FakeFaceDetector:
    """Stands in for the dlib face model"""

    def __init__(self, faces=None, fail=False):
        self.faces = list(faces or [])
        self.fail = fail
        self.calls = 0

    def detect(self, frame, with_descriptors=False):
        self.calls += 1
        if self.fail:
            raise ModelInferenceError("model unavailable")
        return list(self.faces)

    def detect_boxes(self, frame):
        if self.fail:
            raise ModelInferenceError("model unavailable")
        return [face.box for face in self.faces]


def wait_until(predicate, timeout=3.0, interval=0.01) -> bool:
    """Poll `predicate` until it is truthy or `timeout` elapses"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def landmarks():
    """Frontal landmark set"""
    return make_landmarks()


@pytest.fixture
def fake_detector():
    """Face model reporting one frontal face"""
    return FakeFaceDetector(faces=[make_face()])


@pytest.fixture
def gray_frame():
    """Small flat gray BGR frame"""
    return np.full((48, 64, 3), 128, dtype=np.uint8)


@pytest.fixture
def frame_base64(gray_frame):
    """PNG-encoded gray frame as base64"""
    ok, encoded = cv2.imencode(".png", gray_frame)
    assert ok
    return base64.b64encode(encoded.tobytes()).decode("ascii")


@pytest.fixture
def app(monkeypatch, fake_detector):
    """FastAPI app with the face model replaced and instant session cleanup"""
    from proxy_guard.config import settings
    from proxy_guard.monitor import api

    monkeypatch.setattr(settings, "SESSION_CLEANUP_DELAY", 0)
    monkeypatch.setattr("proxy_guard.monitor.session.FaceDetector", lambda: fake_detector)
    monkeypatch.setattr(api, "_sessions", {})

    from proxy_guard.main import app
    return app


@pytest.fixture
def client(app):
    """FastAPI test client"""
    return TestClient(app)
