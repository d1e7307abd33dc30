"""
FaceLiveness Package
Adaptive liveness challenges, face enrollment and descriptor verification.
"""

__version__ = "1.0.0"
__author__ = "FaceLiveness Team"
__description__ = "Adaptive challenge-response liveness engine with face enrollment and matching"

from .config import LivenessConfig, create_default_liveness_config
from .exceptions import (
    CalibrationError,
    ChallengeTimeoutError,
    LivenessError,
    NoFaceError,
    PreconditionError,
    SessionCancelledError,
    SignalExtractionError,
    TransportError,
)
from .landmarks import LandmarkFrame
from .signal_extractor import SignalSample, extract_signals
from .history_buffer import HistoryBuffer, SignalHistory
from .calibration import CalibrationBaseline, derive_baseline, median
from .challenges import Challenge, build_challenge_order
from .challenge_engine import ChallengeSession, LivenessEngine, SessionState
from .enrollment import EnrollmentSampleSet, EnrollmentService, average_descriptors
from .matching import FaceVerifier, VerificationResult, euclidean_distance, match_descriptor
from .registry_client import RegistryClient
from .server import app, run_server

__all__ = [
    'LivenessConfig',
    'create_default_liveness_config',
    'LivenessError',
    'NoFaceError',
    'SignalExtractionError',
    'CalibrationError',
    'ChallengeTimeoutError',
    'PreconditionError',
    'TransportError',
    'SessionCancelledError',
    'LandmarkFrame',
    'SignalSample',
    'extract_signals',
    'HistoryBuffer',
    'SignalHistory',
    'CalibrationBaseline',
    'derive_baseline',
    'median',
    'Challenge',
    'build_challenge_order',
    'ChallengeSession',
    'LivenessEngine',
    'SessionState',
    'EnrollmentSampleSet',
    'EnrollmentService',
    'average_descriptors',
    'FaceVerifier',
    'VerificationResult',
    'euclidean_distance',
    'match_descriptor',
    'RegistryClient',
    'app',
    'run_server',
]
