"""
Liveness and enrollment errors.

Per-frame errors (NoFaceError, SignalExtractionError) are expected and are
logged and skipped by the engine. Session-level errors (CalibrationError,
ChallengeTimeoutError) end the session. Nothing here is retried automatically.
"""

from typing import Optional


class LivenessError(Exception):
    """Base class for all liveness engine errors."""


class NoFaceError(LivenessError):
    """No face was detected in the current frame."""


class SignalExtractionError(LivenessError):
    """The landmark frame is degenerate and no signals can be derived from it."""


class CalibrationError(LivenessError):
    """Calibration could not start or complete."""


class ChallengeTimeoutError(LivenessError):
    """A single challenge was not performed before its timeout."""

    def __init__(self, challenge: str, label: str, timeout_ms: int):
        self.challenge = challenge
        self.label = label
        self.timeout_ms = timeout_ms
        super().__init__(f"Failed to {label.lower()} within {timeout_ms / 1000:.1f}s")


class PreconditionError(LivenessError):
    """An enrollment or verification call was made before its requirements were met."""

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class TransportError(LivenessError):
    """A registry or verification HTTP call failed or returned a non-success answer."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SessionCancelledError(LivenessError):
    """A calibration or challenge wait was aborted by reset or stop."""
