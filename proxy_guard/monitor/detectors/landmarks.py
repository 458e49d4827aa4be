"""
Landmark Set - Region view over 68-point facial landmarks

Index layout follows the dlib / iBUG 300-W annotation:
    jaw outline  0-16
    nose        27-35
    left eye    36-41
    right eye   42-47
    mouth       48-67
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Sequence, Tuple

import numpy as np

from ..errors import InsufficientLandmarks

REGION_SLICES: Dict[str, slice] = {
    "jaw_outline": slice(0, 17),
    "nose": slice(27, 36),
    "left_eye": slice(36, 42),
    "right_eye": slice(42, 48),
    "mouth": slice(48, 68),
}

# Minimum points each region must carry for pose and gaze math
REQUIRED_POINTS: Dict[str, int] = {
    "jaw_outline": 9,   # chin is jaw[8]
    "nose": 5,          # nose tip is nose[4]
    "left_eye": 6,
    "right_eye": 6,
}


def _as_points(points) -> np.ndarray:
    arr = np.array(points, dtype=np.float64)
    if arr.size == 0:
        return np.zeros((0, 2), dtype=np.float64)
    return arr.reshape(-1, 2)


@dataclass(frozen=True, eq=False)
class LandmarkSet:
    """
    Immutable landmarks of one face in one frame, split into named regions.

    Each region is an (N, 2) float array of (x, y) pixel coordinates.
    """

    jaw_outline: np.ndarray
    nose: np.ndarray
    left_eye: np.ndarray
    right_eye: np.ndarray
    mouth: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))

    def __post_init__(self):
        for name in REGION_SLICES:
            arr = _as_points(getattr(self, name))
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]]) -> "LandmarkSet":
        """
        Build from a flat 68-point array (e.g. dlib shape predictor output).

        Shorter inputs leave the trailing regions short or empty; the
        analyzers reject those with InsufficientLandmarks.
        """
        arr = _as_points(points)
        regions = {name: arr[sl] for name, sl in REGION_SLICES.items()}
        return cls(**regions)

    @classmethod
    def from_regions(cls, regions: Dict[str, Iterable[Tuple[float, float]]]) -> "LandmarkSet":
        """Build from a region-name -> points mapping; missing regions are empty."""
        return cls(**{
            name: _as_points(list(regions.get(name, [])))
            for name in REGION_SLICES
        })

    def require(self, *names: str) -> None:
        """Raise InsufficientLandmarks if any named region is too short."""
        for name in names:
            region = getattr(self, name)
            if len(region) < REQUIRED_POINTS.get(name, 1):
                raise InsufficientLandmarks(name)

    @property
    def nose_tip(self) -> np.ndarray:
        return self.nose[4]

    def to_points(self) -> np.ndarray:
        """Flatten back to the 68-point layout (zeros where a region is short)."""
        out = np.zeros((68, 2), dtype=np.float64)
        for name, sl in REGION_SLICES.items():
            region = getattr(self, name)[: sl.stop - sl.start]
            out[sl.start: sl.start + len(region)] = region
        return out
