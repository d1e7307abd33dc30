"""
Liveness Engine Configuration
Configurable parameters for detection, calibration, liveness challenges and enrollment.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DETECTOR_VARIANTS = ('ssd', 'tiny')
VERIFICATION_MODES = ('local', 'remote')
BLINK_POLICIES = ('windowed', 'any')
CHALLENGE_KEYS = ('blink', 'left', 'right', 'smile')


@dataclass
class DetectorConfig:
    """Options the external face detector is invoked with."""

    # 'ssd' is the accurate detector, 'tiny' the fast one
    variant: str = 'ssd'
    min_confidence: float = 0.5
    tiny_input_size: int = 416

    def __post_init__(self):
        if self.variant not in DETECTOR_VARIANTS:
            raise ValueError(f"variant must be one of {DETECTOR_VARIANTS}, got {self.variant!r}")
        if not (0.0 <= self.min_confidence <= 1.0):
            raise ValueError("min_confidence must be between 0 and 1")
        if self.tiny_input_size <= 0 or self.tiny_input_size % 32 != 0:
            raise ValueError("tiny_input_size must be a positive multiple of 32")

    def detector_options(self) -> Dict[str, Any]:
        """Options passed to the detector on every frame."""
        if self.variant == 'tiny':
            return {
                'variant': 'tiny',
                'input_size': self.tiny_input_size,
                'score_threshold': self.min_confidence
            }
        return {'variant': 'ssd', 'min_confidence': self.min_confidence}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'variant': self.variant,
            'min_confidence': self.min_confidence,
            'tiny_input_size': self.tiny_input_size
        }


@dataclass
class CalibrationConfig:
    """
    Configuration for the neutral-face calibration pass.

    Key Parameters:
    - duration_ms: How long neutral-face signals are sampled
    - ear_scale: Fraction of the median EAR used as the blink threshold
    - min_ear_allowed / max_ear_allowed: Absolute clamp for the blink threshold
    """

    duration_ms: int = 2200
    poll_interval_ms: int = 100
    window_size: int = 60

    ear_scale: float = 0.72
    min_ear_allowed: float = 0.09
    max_ear_allowed: float = 0.48
    default_ear: float = 0.32

    smile_ratio_min: float = 1.2
    smile_scale: float = 1.25

    # Not derived from calibration
    head_x_threshold: float = 0.08

    def __post_init__(self):
        if self.duration_ms <= 0:
            raise ValueError("duration_ms must be positive")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")
        if self.window_size < 1:
            raise ValueError("window_size must be >= 1")
        if self.ear_scale <= 0:
            raise ValueError("ear_scale must be positive")
        if not (0 <= self.min_ear_allowed < self.max_ear_allowed):
            raise ValueError("min_ear_allowed must be >= 0 and < max_ear_allowed")
        if self.smile_ratio_min <= 0 or self.smile_scale <= 0:
            raise ValueError("smile_ratio_min and smile_scale must be positive")
        if self.head_x_threshold <= 0:
            raise ValueError("head_x_threshold must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'duration_ms': self.duration_ms,
            'poll_interval_ms': self.poll_interval_ms,
            'window_size': self.window_size,
            'ear_scale': self.ear_scale,
            'min_ear_allowed': self.min_ear_allowed,
            'max_ear_allowed': self.max_ear_allowed,
            'default_ear': self.default_ear,
            'smile_ratio_min': self.smile_ratio_min,
            'smile_scale': self.smile_scale,
            'head_x_threshold': self.head_x_threshold
        }


@dataclass
class ChallengeConfig:
    """Configuration for the timed challenge sequence and its validators."""

    order: List[str] = field(default_factory=lambda: list(CHALLENGE_KEYS))
    randomize: bool = False

    timeout_ms: int = 4500
    # Per-challenge overrides of timeout_ms, keyed by challenge key
    challenge_timeouts_ms: Dict[str, int] = field(default_factory=dict)
    poll_interval_ms: int = 120
    success_ack_ms: int = 450

    # Users whose neutral EAR is below this skip the blink challenge
    low_ear_cutoff: float = 0.18

    blink_policy: str = 'windowed'
    blink_window: int = 12
    blink_min_frames: int = 3
    legacy_blink_window: int = 10

    head_min_samples: int = 6
    head_window: int = 12
    head_min_frames: int = 3

    smile_min_samples: int = 6
    smile_window: int = 12
    smile_min_frames: int = 4

    def __post_init__(self):
        if not self.order:
            raise ValueError("order must contain at least one challenge")
        unknown = [key for key in self.order if key not in CHALLENGE_KEYS]
        if unknown:
            raise ValueError(f"Unknown challenges in order: {unknown}")
        if len(set(self.order)) != len(self.order):
            raise ValueError("order must not repeat a challenge")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        for key, value in self.challenge_timeouts_ms.items():
            if key not in CHALLENGE_KEYS:
                raise ValueError(f"Unknown challenge in challenge_timeouts_ms: {key!r}")
            if value <= 0:
                raise ValueError(f"Timeout for {key!r} must be positive")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")
        if self.success_ack_ms < 0:
            raise ValueError("success_ack_ms must be >= 0")
        if self.blink_policy not in BLINK_POLICIES:
            raise ValueError(f"blink_policy must be one of {BLINK_POLICIES}")
        for name in ('blink_window', 'blink_min_frames', 'legacy_blink_window',
                     'head_min_samples', 'head_window', 'head_min_frames',
                     'smile_min_samples', 'smile_window', 'smile_min_frames'):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")

    def timeout_for(self, key: str) -> int:
        """Timeout in milliseconds for a single challenge."""
        return self.challenge_timeouts_ms.get(key, self.timeout_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'order': list(self.order),
            'randomize': self.randomize,
            'timeout_ms': self.timeout_ms,
            'challenge_timeouts_ms': dict(self.challenge_timeouts_ms),
            'poll_interval_ms': self.poll_interval_ms,
            'success_ack_ms': self.success_ack_ms,
            'low_ear_cutoff': self.low_ear_cutoff,
            'blink_policy': self.blink_policy
        }


@dataclass
class EnrollmentConfig:
    """Configuration for descriptor enrollment and verification."""

    required_samples: int = 5
    descriptor_dimension: int = 128
    verification_mode: str = 'local'
    match_threshold: float = 0.45

    registry_api_base: str = 'http://localhost:8000/'
    request_timeout: float = 10.0

    def __post_init__(self):
        if self.required_samples < 1:
            raise ValueError("required_samples must be >= 1")
        if self.descriptor_dimension < 1:
            raise ValueError("descriptor_dimension must be >= 1")
        if self.verification_mode not in VERIFICATION_MODES:
            raise ValueError(f"verification_mode must be one of {VERIFICATION_MODES}")
        if self.match_threshold <= 0:
            raise ValueError("match_threshold must be positive")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'required_samples': self.required_samples,
            'descriptor_dimension': self.descriptor_dimension,
            'verification_mode': self.verification_mode,
            'match_threshold': self.match_threshold,
            'registry_api_base': self.registry_api_base,
            'request_timeout': self.request_timeout
        }


@dataclass
class LivenessConfig:
    """Top-level configuration for one liveness engine instance."""

    detector: DetectorConfig = field(default_factory=DetectorConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    challenges: ChallengeConfig = field(default_factory=ChallengeConfig)
    enrollment: EnrollmentConfig = field(default_factory=EnrollmentConfig)
    history_capacity: int = 120

    def __post_init__(self):
        if self.history_capacity < 1:
            raise ValueError("history_capacity must be >= 1")
        if self.history_capacity < self.calibration.window_size:
            logger.warning(f"history_capacity ({self.history_capacity}) is smaller than the "
                           f"calibration window ({self.calibration.window_size})")

    @classmethod
    def from_env(cls) -> 'LivenessConfig':
        """Build a configuration from environment variables, falling back to defaults."""
        detector = DetectorConfig(
            variant=os.getenv('DETECTOR_VARIANT', 'ssd'),
            min_confidence=float(os.getenv('MIN_DETECTION_CONFIDENCE', '0.5'))
        )
        calibration = CalibrationConfig(
            duration_ms=int(os.getenv('CALIBRATION_DURATION_MS', '2200'))
        )
        challenges = ChallengeConfig(
            timeout_ms=int(os.getenv('CHALLENGE_TIMEOUT_MS', '4500'))
        )
        enrollment = EnrollmentConfig(
            required_samples=int(os.getenv('REQUIRED_SAMPLES', '5')),
            verification_mode=os.getenv('VERIFICATION_MODE', 'local'),
            match_threshold=float(os.getenv('MATCH_THRESHOLD', '0.45')),
            registry_api_base=os.getenv('REGISTRY_API_BASE', 'http://localhost:8000/')
        )
        return cls(
            detector=detector,
            calibration=calibration,
            challenges=challenges,
            enrollment=enrollment,
            history_capacity=int(os.getenv('HISTORY_CAPACITY', '120'))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'detector': self.detector.to_dict(),
            'calibration': self.calibration.to_dict(),
            'challenges': self.challenges.to_dict(),
            'enrollment': self.enrollment.to_dict(),
            'history_capacity': self.history_capacity
        }


def create_default_liveness_config() -> LivenessConfig:
    """Create default liveness configuration."""
    return LivenessConfig()


def create_fast_liveness_config(config: Optional[LivenessConfig] = None) -> LivenessConfig:
    """Copy of config (defaults when omitted) that uses the fast detector variant."""
    config = config or create_default_liveness_config()
    return replace(config, detector=replace(config.detector, variant='tiny'))
