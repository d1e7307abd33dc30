"""
Synthetic 68-point faces and a fake clock for exercising the liveness engine
without a camera or detector.
"""

import asyncio
import os
import sys
from typing import Callable, List, Optional, Sequence

import numpy as np

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'infrastructure'))

from faceliveness.landmarks import LandmarkFrame

EYE_WIDTH = 20.0
EYE_OFFSET = 30.0
MOUTH_WIDTH = 40.0
MOUTH_Y = 60.0


def _eye(center_x: float, ear: float) -> List[List[float]]:
    # EAR of this layout is h / 10 for a 20px wide eye
    h = ear * EYE_WIDTH / 2.0
    return [
        [center_x - 10.0, 0.0],
        [center_x - 5.0, -h],
        [center_x + 5.0, -h],
        [center_x + 10.0, 0.0],
        [center_x + 5.0, h],
        [center_x - 5.0, h],
    ]


def make_points(ear: float = 0.30, mouth_ratio: float = 2.0, head_x: float = 0.0) -> np.ndarray:
    """68 landmark points whose extracted signals equal the requested values."""
    points = np.array([[float(i), 120.0 + i] for i in range(68)])

    points[36:42] = _eye(-EYE_OFFSET, ear)
    points[42:48] = _eye(EYE_OFFSET, ear)

    # Nose tip offset is normalized by the 60px inter-eye distance
    points[30] = [head_x * 2 * EYE_OFFSET, 40.0]

    mouth_height = MOUTH_WIDTH / mouth_ratio
    points[48] = [-MOUTH_WIDTH / 2, MOUTH_Y]
    points[54] = [MOUTH_WIDTH / 2, MOUTH_Y]
    points[51] = [0.0, MOUTH_Y - mouth_height / 2]
    points[57] = [0.0, MOUTH_Y + mouth_height / 2]
    return points


def make_frame(
    ear: float = 0.30,
    mouth_ratio: float = 2.0,
    head_x: float = 0.0,
    score: float = 0.95,
    descriptor: Optional[Sequence[float]] = None
) -> LandmarkFrame:
    return LandmarkFrame.from_points(
        make_points(ear, mouth_ratio, head_x),
        detection_score=score,
        descriptor=descriptor
    )


class FakeClock:
    """Monotonic clock advanced only by its own sleep; calls on_tick after every sleep."""

    def __init__(self, on_tick: Optional[Callable[[float], None]] = None):
        self.now = 0.0
        self.on_tick = on_tick
        self.sleeps = 0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        self.sleeps += 1
        if self.on_tick:
            self.on_tick(self.now)
        await asyncio.sleep(0)
