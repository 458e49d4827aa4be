"""
Monitoring errors

Analyzer errors are per-tick and recoverable: the session downgrades the
tick to "no signal" and keeps running. Reference capture errors go back to
the caller as a retry prompt. Only CaptureUnavailable stops a session from
starting.
"""


class ProxyGuardError(Exception):
    """Base error for the monitoring module"""
    pass


class AnalyzerError(ProxyGuardError):
    """A single analyzer could not produce a signal for this tick"""
    pass


class InsufficientLandmarks(AnalyzerError):
    """A required landmark region is missing or too short"""

    def __init__(self, region: str):
        self.region = region
        super().__init__(f"Landmark region '{region}' is missing or incomplete")


class DegenerateGeometry(AnalyzerError):
    """Landmark geometry collapses (zero face height or eye distance)"""
    pass


class EmptySample(AnalyzerError):
    """Audio frame without any frequency bins"""
    pass


class ModelInferenceError(ProxyGuardError):
    """External face or audio model failed"""
    pass


class ReferenceCaptureError(ProxyGuardError):
    """Reference capture did not observe exactly one face"""

    message = "Reference capture failed"

    def __init__(self, face_count: int):
        self.face_count = face_count
        super().__init__(f"{self.message} ({face_count} faces in frame)")


class ZeroFaces(ReferenceCaptureError):
    message = "No face detected"


class MultipleFaces(ReferenceCaptureError):
    message = "Multiple faces detected"


class CaptureUnavailable(ProxyGuardError):
    """Camera or microphone could not be acquired"""
    pass


class ReferenceRequired(ProxyGuardError):
    """Monitoring cannot start before a reference face is captured"""
    pass


class MonitoringStateError(ProxyGuardError):
    """Operation is not valid in the current session state"""
    pass
