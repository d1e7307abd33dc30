"""
Adaptive Calibration
Samples neutral-face signals for a short window and derives per-user thresholds
for the liveness challenge validators.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

import numpy as np

from .cancellation import CancellationToken, SleepFunc, default_sleep, sleep_ms
from .config import CalibrationConfig
from .history_buffer import SignalHistory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationBaseline:
    """Neutral-face statistics and the thresholds derived from them."""
    median_ear: float
    median_mouth_ratio: float
    ear_threshold: float
    smile_threshold: float
    head_x_threshold: float

    def to_dict(self) -> Dict[str, float]:
        return {
            'median_ear': self.median_ear,
            'median_mouth_ratio': self.median_mouth_ratio,
            'ear_threshold': self.ear_threshold,
            'smile_threshold': self.smile_threshold,
            'head_x_threshold': self.head_x_threshold
        }


def median(values: Sequence[float]) -> Optional[float]:
    """Median of the values, None when there are none."""
    if not values:
        return None
    return float(np.median(np.asarray(values, dtype=np.float64)))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def compute_ear_threshold(median_ear: float, config: CalibrationConfig) -> float:
    return clamp(median_ear * config.ear_scale, config.min_ear_allowed, config.max_ear_allowed)


def compute_smile_threshold(median_mouth_ratio: float, config: CalibrationConfig) -> float:
    return max(config.smile_ratio_min, median_mouth_ratio * config.smile_scale)


def derive_baseline(
    ear_values: Sequence[float],
    mouth_values: Sequence[float],
    config: Optional[CalibrationConfig] = None
) -> CalibrationBaseline:
    """
    Derive the calibration baseline from recent neutral-face samples.

    Args:
        ear_values: Recent EAR samples (only the last window_size are used)
        mouth_values: Recent mouth-ratio samples (only the last window_size are used)
        config: Calibration configuration

    Returns:
        CalibrationBaseline with clamped thresholds
    """
    config = config or CalibrationConfig()
    recent_ears = list(ear_values)[-config.window_size:]
    recent_mouths = list(mouth_values)[-config.window_size:]

    median_ear = median(recent_ears)
    if median_ear is None:
        median_ear = config.default_ear
    median_mouth = median(recent_mouths)
    if median_mouth is None:
        median_mouth = config.smile_ratio_min

    return CalibrationBaseline(
        median_ear=median_ear,
        median_mouth_ratio=median_mouth,
        ear_threshold=compute_ear_threshold(median_ear, config),
        smile_threshold=compute_smile_threshold(median_mouth, config),
        head_x_threshold=config.head_x_threshold
    )


class Calibrator:
    """
    Cooperative waiter that lets the frame loop fill the history buffers for
    the calibration duration and then computes the baseline.
    """

    def __init__(
        self,
        config: Optional[CalibrationConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFunc = default_sleep
    ):
        self.config = config or CalibrationConfig()
        self._clock = clock
        self._sleep = sleep

    async def run(self, history: SignalHistory, token: CancellationToken) -> CalibrationBaseline:
        """Wait for the calibration duration, then derive the baseline from the histories."""
        start = self._clock()
        while (self._clock() - start) * 1000.0 < self.config.duration_ms:
            token.raise_if_cancelled()
            await sleep_ms(self._sleep, self.config.poll_interval_ms)
        token.raise_if_cancelled()

        window = self.config.window_size
        baseline = derive_baseline(
            history.ear.window(window),
            history.mouth_ratio.window(window),
            self.config
        )
        logger.info(f"Calibrated: ear={baseline.median_ear:.3f} (thr {baseline.ear_threshold:.3f}), "
                    f"mouth={baseline.median_mouth_ratio:.3f} (thr {baseline.smile_threshold:.3f}), "
                    f"samples={len(history.ear.window(window))}")
        return baseline
