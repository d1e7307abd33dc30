"""
Signal Extraction
Converts one landmark frame into the eye, mouth and head-pose signals used by
calibration and the challenge validators.
"""

import logging
from dataclasses import dataclass

import numpy as np

from .exceptions import SignalExtractionError
from .landmarks import (
    LOWER_LIP,
    MOUTH_LEFT_CORNER,
    MOUTH_RIGHT_CORNER,
    NOSE_TIP,
    NUM_LANDMARKS,
    UPPER_LIP,
    LandmarkFrame,
)

logger = logging.getLogger(__name__)

EPSILON = 1e-6


@dataclass(frozen=True)
class HeadOffset:
    """Nose offset from the eye midpoint, normalized by inter-eye distance."""
    x: float
    y: float


@dataclass(frozen=True)
class SignalSample:
    ear: float
    mouth_ratio: float
    head_offset: HeadOffset


def _distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.hypot(a[0] - b[0], a[1] - b[1]))


def eye_aspect_ratio(eye: np.ndarray) -> float:
    """
    EAR for one eye given its 6 ordered points p0..p5.

    EAR = (|p1-p5| + |p2-p4|) / (2 * |p0-p3|), 0 when the eye has no width.
    """
    width = _distance(eye[0], eye[3])
    if width == 0:
        return 0.0
    return (_distance(eye[1], eye[5]) + _distance(eye[2], eye[4])) / (2.0 * width)


def compute_ear(frame: LandmarkFrame) -> float:
    """Mean EAR of both eyes."""
    return (eye_aspect_ratio(frame.left_eye) + eye_aspect_ratio(frame.right_eye)) / 2.0


def compute_mouth_ratio(frame: LandmarkFrame) -> float:
    """Mouth width over mouth height; grows when smiling."""
    points = frame.landmarks
    width = _distance(points[MOUTH_LEFT_CORNER], points[MOUTH_RIGHT_CORNER])
    height = _distance(points[UPPER_LIP], points[LOWER_LIP])
    return width / (height + EPSILON)


def _safe_span(value: float) -> float:
    span = abs(value)
    return span if span > EPSILON else 1.0


def compute_head_offset(frame: LandmarkFrame) -> HeadOffset:
    """Head-pose proxy: nose tip position relative to the centre between the eyes."""
    left_center = frame.left_eye.mean(axis=0)
    right_center = frame.right_eye.mean(axis=0)
    eyes_center = (left_center + right_center) / 2.0
    nose_tip = frame.landmarks[NOSE_TIP]

    dx = right_center[0] - left_center[0]
    dy = right_center[1] - left_center[1]

    return HeadOffset(
        x=float((nose_tip[0] - eyes_center[0]) / _safe_span(dx)),
        y=float((nose_tip[1] - eyes_center[1]) / _safe_span(dy))
    )


def validate_frame(frame: LandmarkFrame) -> None:
    """Raise SignalExtractionError for frames that carry no usable landmarks."""
    landmarks = frame.landmarks
    if landmarks is None or landmarks.ndim != 2 or landmarks.shape[0] == 0:
        raise SignalExtractionError("Frame has no landmarks")
    if landmarks.shape != (NUM_LANDMARKS, 2):
        raise SignalExtractionError(
            f"Expected {NUM_LANDMARKS} landmarks, got {landmarks.shape[0]}"
        )
    if not np.all(np.isfinite(landmarks)):
        raise SignalExtractionError("Frame has non-finite landmark coordinates")
    if np.all(np.ptp(landmarks, axis=0) == 0):
        raise SignalExtractionError("All landmarks collapse to a single point")


def extract_signals(frame: LandmarkFrame) -> SignalSample:
    """Derive EAR, mouth ratio and head offset from one landmark frame."""
    validate_frame(frame)
    sample = SignalSample(
        ear=compute_ear(frame),
        mouth_ratio=compute_mouth_ratio(frame),
        head_offset=compute_head_offset(frame)
    )
    logger.debug(f"Signals: ear={sample.ear:.3f}, mouth={sample.mouth_ratio:.3f}, "
                 f"head=({sample.head_offset.x:.3f}, {sample.head_offset.y:.3f})")
    return sample
