"""
Landmark Frame Model
Per-frame output of the external face detector using the 68-point landmark scheme.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .exceptions import SignalExtractionError

logger = logging.getLogger(__name__)

NUM_LANDMARKS = 68

# 68-point index groups (same layout as dlib's shape predictor)
JAW = slice(0, 17)
RIGHT_EYEBROW = slice(17, 22)
LEFT_EYEBROW = slice(22, 27)
NOSE = slice(27, 36)
LEFT_EYE = slice(36, 42)
RIGHT_EYE = slice(42, 48)
MOUTH = slice(48, 68)

NOSE_TIP = 30
MOUTH_LEFT_CORNER = 48
MOUTH_RIGHT_CORNER = 54
UPPER_LIP = 51
LOWER_LIP = 57


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, eq=False)
class LandmarkFrame:
    """
    One detection result for one video frame.

    Attributes:
        detection_score: Detector confidence (0-1)
        box: Face bounding box
        landmarks: (68, 2) array of (x, y) points
        descriptor: Optional face embedding (typically 128 numbers)
    """
    detection_score: float
    box: BoundingBox
    landmarks: np.ndarray
    descriptor: Optional[np.ndarray] = None

    @property
    def left_eye(self) -> np.ndarray:
        return self.landmarks[LEFT_EYE]

    @property
    def right_eye(self) -> np.ndarray:
        return self.landmarks[RIGHT_EYE]

    @property
    def mouth(self) -> np.ndarray:
        return self.landmarks[MOUTH]

    @property
    def nose(self) -> np.ndarray:
        return self.landmarks[NOSE]

    @property
    def has_descriptor(self) -> bool:
        return self.descriptor is not None and len(self.descriptor) > 0

    @classmethod
    def from_points(
        cls,
        points: Sequence[Sequence[float]],
        detection_score: float = 1.0,
        box: Optional[BoundingBox] = None,
        descriptor: Optional[Sequence[float]] = None
    ) -> 'LandmarkFrame':
        """Build a frame from a sequence of (x, y) pairs."""
        landmarks = np.asarray(points, dtype=np.float64).reshape(-1, 2) if len(points) else np.zeros((0, 2))
        if box is None:
            if len(landmarks):
                mins = landmarks.min(axis=0)
                maxs = landmarks.max(axis=0)
                box = BoundingBox(float(mins[0]), float(mins[1]),
                                  float(maxs[0] - mins[0]), float(maxs[1] - mins[1]))
            else:
                box = BoundingBox(0.0, 0.0, 0.0, 0.0)
        desc = np.asarray(descriptor, dtype=np.float64) if descriptor is not None else None
        return cls(detection_score=float(detection_score), box=box, landmarks=landmarks, descriptor=desc)

    @classmethod
    def from_detection(cls, payload: Dict[str, Any]) -> 'LandmarkFrame':
        """
        Parse the detector payload.

        Expected shape:
            {"detectionScore": float, "box": {"x", "y", "w", "h"},
             "landmarks": [{"x", "y"}, ...], "descriptor": [float, ...]}

        Raises:
            SignalExtractionError: The payload is malformed
        """
        try:
            box_data = payload.get('box') or {}
            box = BoundingBox(
                x=float(box_data.get('x', 0.0)),
                y=float(box_data.get('y', 0.0)),
                width=float(box_data.get('w', box_data.get('width', 0.0))),
                height=float(box_data.get('h', box_data.get('height', 0.0)))
            )
            points: List[List[float]] = []
            for landmark in payload.get('landmarks') or []:
                if isinstance(landmark, dict):
                    points.append([float(landmark['x']), float(landmark['y'])])
                else:
                    points.append([float(landmark[0]), float(landmark[1])])
            score = payload.get('detectionScore', payload.get('detection_score', 0.0))
            return cls.from_points(
                points,
                detection_score=float(score),
                box=box,
                descriptor=payload.get('descriptor')
            )
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            raise SignalExtractionError(f"Malformed detection payload: {e!r}") from e
