"""
Reference Capture - Stores the test-taker's face descriptor before monitoring

The descriptor is kept for the life of the camera session. Live frames are
not compared against it; the monitoring loop only counts faces.
"""

import logging
import numpy as np
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from ..errors import ZeroFaces, MultipleFaces
from .face_detector import FaceObservation

logger = logging.getLogger(__name__)


class ReferenceCapture:
    """
    One-shot reference face registration.

    Succeeds only when exactly one face is visible.
    """

    def __init__(self):
        self._descriptor: Optional[np.ndarray] = None
        self._captured_at: Optional[datetime] = None

    @property
    def is_captured(self) -> bool:
        return self._descriptor is not None

    @property
    def descriptor(self) -> Optional[np.ndarray]:
        return self._descriptor

    def capture(self, faces: List[FaceObservation]) -> np.ndarray:
        """
        Store the descriptor of the only face in frame.

        Args:
            faces: Detector output for the capture frame (with descriptors)

        Returns:
            The stored descriptor (read-only copy)

        Raises:
            ZeroFaces: no face in frame
            MultipleFaces: more than one face in frame
        """
        if len(faces) == 0:
            raise ZeroFaces(0)
        if len(faces) > 1:
            raise MultipleFaces(len(faces))

        face = faces[0]
        if face.descriptor is None:
            raise ValueError("Face observation has no descriptor")

        descriptor = np.array(face.descriptor, dtype=np.float64)
        descriptor.setflags(write=False)

        self._descriptor = descriptor
        self._captured_at = datetime.now(timezone.utc)
        logger.info(f"Reference face captured ({descriptor.size}-d descriptor)")

        return descriptor

    def clear(self):
        """Forget the reference (camera stopped)"""
        if self._descriptor is not None:
            logger.info("Reference face cleared")
        self._descriptor = None
        self._captured_at = None

    def get_status(self) -> Dict[str, Any]:
        return {
            "captured": self.is_captured,
            "captured_at": self._captured_at.isoformat() if self._captured_at else None,
            "descriptor_size": int(self._descriptor.size) if self._descriptor is not None else 0
        }
