"""
Liveness Challenges
Challenge definitions and the validators that decide, from the most recent
window of each signal history, whether the subject performed the action.

Validators are pure functions of (history, baseline, config) so they can be
tested without running the frame loop.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from .calibration import CalibrationBaseline
from .config import ChallengeConfig
from .history_buffer import SignalHistory

logger = logging.getLogger(__name__)


class Challenge(str, Enum):
    BLINK = 'blink'
    TURN_LEFT = 'left'
    TURN_RIGHT = 'right'
    SMILE = 'smile'


Validator = Callable[[SignalHistory, CalibrationBaseline, ChallengeConfig], bool]


def validate_blink(history: SignalHistory, baseline: CalibrationBaseline, config: ChallengeConfig) -> bool:
    if config.blink_policy == 'any':
        # Single-frame trigger kept for legacy deployments
        recent = history.ear.window(config.legacy_blink_window)
        return any(ear < baseline.ear_threshold for ear in recent)

    recent = history.ear.window(config.blink_window)
    closed = sum(1 for ear in recent if ear < baseline.ear_threshold)
    return closed >= config.blink_min_frames


def validate_turn_left(history: SignalHistory, baseline: CalibrationBaseline, config: ChallengeConfig) -> bool:
    if len(history.head_offset) < config.head_min_samples:
        return False
    recent = history.head_offset.window(config.head_window)
    turned = sum(1 for offset in recent if offset.x < -baseline.head_x_threshold)
    return turned >= config.head_min_frames


def validate_turn_right(history: SignalHistory, baseline: CalibrationBaseline, config: ChallengeConfig) -> bool:
    if len(history.head_offset) < config.head_min_samples:
        return False
    recent = history.head_offset.window(config.head_window)
    turned = sum(1 for offset in recent if offset.x > baseline.head_x_threshold)
    return turned >= config.head_min_frames


def validate_smile(history: SignalHistory, baseline: CalibrationBaseline, config: ChallengeConfig) -> bool:
    if len(history.mouth_ratio) < config.smile_min_samples:
        return False
    recent = history.mouth_ratio.window(config.smile_window)
    smiling = sum(1 for ratio in recent if ratio > baseline.smile_threshold)
    return smiling >= config.smile_min_frames


@dataclass(frozen=True)
class ChallengeDefinition:
    challenge: Challenge
    label: str
    validator: Validator

    def timeout_ms(self, config: ChallengeConfig) -> int:
        return config.timeout_for(self.challenge.value)

    def is_satisfied(self, history: SignalHistory, baseline: CalibrationBaseline, config: ChallengeConfig) -> bool:
        return self.validator(history, baseline, config)


CHALLENGES: Dict[Challenge, ChallengeDefinition] = {
    Challenge.BLINK: ChallengeDefinition(Challenge.BLINK, "Blink slowly", validate_blink),
    Challenge.TURN_LEFT: ChallengeDefinition(Challenge.TURN_LEFT, "Turn head slightly left", validate_turn_left),
    Challenge.TURN_RIGHT: ChallengeDefinition(Challenge.TURN_RIGHT, "Turn head slightly right", validate_turn_right),
    Challenge.SMILE: ChallengeDefinition(Challenge.SMILE, "Smile", validate_smile),
}


def challenge_label(challenge: Challenge) -> str:
    return CHALLENGES[challenge].label


def build_challenge_order(
    baseline: CalibrationBaseline,
    config: ChallengeConfig,
    rng: Optional[random.Random] = None
) -> List[Challenge]:
    """
    Challenge order for one session.

    The configured order is shuffled with rng when randomization is enabled.
    Blink is dropped for users whose neutral EAR is below the low-EAR cutoff
    and the remaining order is preserved.
    """
    order = [Challenge(key) for key in config.order]
    if config.randomize:
        (rng or random.Random()).shuffle(order)

    # Blink is kept when it is the only configured challenge
    if baseline.median_ear < config.low_ear_cutoff and Challenge.BLINK in order and len(order) > 1:
        logger.info(f"Baseline EAR {baseline.median_ear:.3f} below {config.low_ear_cutoff}, "
                    f"skipping blink challenge")
        order = [challenge for challenge in order if challenge is not Challenge.BLINK]

    return order
