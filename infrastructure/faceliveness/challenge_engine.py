"""
Liveness Challenge Engine
State machine that owns one session's signal histories, calibration baseline,
challenge progress and enrollment samples.

    IDLE -> CALIBRATING -> IDLE (calibrated) -> RUNNING -> PASSED | FAILED

PASSED and FAILED are terminal until reset(). The frame loop, calibration and
challenge polling are cooperative asyncio tasks; reset() and stop() cancel any
in-flight wait at its next tick.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from .calibration import CalibrationBaseline, Calibrator
from .cancellation import CancellationToken, SleepFunc, default_sleep, sleep_ms
from .challenges import CHALLENGES, Challenge, ChallengeDefinition, build_challenge_order
from .config import LivenessConfig, create_default_liveness_config
from .enrollment import EnrollmentSampleSet
from .exceptions import (
    CalibrationError,
    ChallengeTimeoutError,
    LivenessError,
    NoFaceError,
    PreconditionError,
)
from .history_buffer import SignalHistory
from .landmarks import LandmarkFrame
from .signal_extractor import SignalSample, extract_signals

logger = logging.getLogger(__name__)

DetectionResult = Optional[Union[LandmarkFrame, Dict[str, Any]]]


class FrameSource(Protocol):
    async def read(self) -> Optional[Any]:
        """Next video frame, or None once the source is closed."""


class FaceDetector(Protocol):
    async def detect(self, image: Any, options: Dict[str, Any]) -> DetectionResult:
        """Landmarks (and optionally a descriptor) for the single face in image, None if no face."""


class SessionState(str, Enum):
    IDLE = 'idle'
    CALIBRATING = 'calibrating'
    RUNNING = 'running'
    PASSED = 'passed'
    FAILED = 'failed'


@dataclass
class ChallengeSession:
    state: SessionState = SessionState.IDLE
    order: List[Challenge] = field(default_factory=list)
    current_index: int = 0
    progress_percent: int = 0
    challenge_start_time: Optional[float] = None
    failed_challenge: Optional[Challenge] = None
    message: str = ''

    @property
    def current_challenge(self) -> Optional[Challenge]:
        if 0 <= self.current_index < len(self.order):
            return self.order[self.current_index]
        return None

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.PASSED, SessionState.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'order': [challenge.value for challenge in self.order],
            'current_index': self.current_index,
            'current_challenge': self.current_challenge.value if self.current_challenge else None,
            'progress_percent': self.progress_percent,
            'failed_challenge': self.failed_challenge.value if self.failed_challenge else None,
            'message': self.message
        }


class LivenessEngine:
    """Adaptive multi-challenge liveness engine for a single active session."""

    def __init__(
        self,
        config: Optional[LivenessConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFunc = default_sleep,
        on_passed: Optional[Callable[[], None]] = None,
        on_status: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (defaults when omitted)
            rng: Random source used when challenge order randomization is enabled
            clock: Monotonic clock in seconds
            sleep: Coroutine function used by cooperative waits
            on_passed: Called once when every challenge has been performed
            on_status: Called with every human-readable status message
        """
        self.config = config or create_default_liveness_config()
        self._rng = rng or random.Random()
        self._clock = clock
        self._sleep = sleep
        self._on_passed = on_passed
        self._on_status = on_status

        self.history = SignalHistory(self.config.history_capacity)
        self.baseline: Optional[CalibrationBaseline] = None
        self.session = ChallengeSession()
        self.samples = EnrollmentSampleSet(self.config.enrollment.required_samples)
        self.registering = False

        self.face_detected = False
        self.confidence_score = 0
        self.last_descriptor = None

        self._calibrator = Calibrator(self.config.calibration, clock=clock, sleep=sleep)
        self._session_token = CancellationToken('session')
        self._capture_token = CancellationToken('capture')

        logger.info(f"LivenessEngine initialized - detector: {self.config.detector.variant}, "
                    f"history: {self.config.history_capacity}, "
                    f"challenges: {self.config.challenges.order}")

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def liveness_passed(self) -> bool:
        return self.session.state is SessionState.PASSED

    def _set_message(self, message: str) -> None:
        self.session.message = message
        if self._on_status:
            self._on_status(message)

    # ------------------------------------------------------------------
    # Frame processing
    # ------------------------------------------------------------------

    def _accept_detection(self, detection: DetectionResult) -> LandmarkFrame:
        if detection is None:
            raise NoFaceError("No face detected")
        frame = detection if isinstance(detection, LandmarkFrame) else LandmarkFrame.from_detection(detection)
        if frame.detection_score < self.config.detector.min_confidence:
            raise NoFaceError(f"Detection score {frame.detection_score:.2f} below "
                              f"{self.config.detector.min_confidence}")
        return frame

    def process_frame(self, detection: DetectionResult) -> Optional[SignalSample]:
        """
        Run one processing cycle on the detector output for a frame.

        Frames without a face or with degenerate landmarks are skipped and do
        not touch the histories.

        Returns:
            The extracted SignalSample, or None when the frame was skipped
        """
        try:
            frame = self._accept_detection(detection)
        except NoFaceError as e:
            self.face_detected = False
            self.confidence_score = 0
            self.last_descriptor = None
            logger.debug(f"Skipping frame: {e}")
            return None
        except LivenessError as e:
            self.face_detected = False
            self.confidence_score = 0
            self.last_descriptor = None
            logger.warning(f"Skipping frame: {e}")
            return None

        self.face_detected = True
        self.confidence_score = int(round(frame.detection_score * 100))
        self.last_descriptor = frame.descriptor if frame.has_descriptor else None

        try:
            sample = extract_signals(frame)
        except LivenessError as e:
            logger.debug(f"Skipping frame: {e}")
            return None

        self.history.push(sample)
        self._collect_sample(frame)
        return sample

    def _collect_sample(self, frame: LandmarkFrame) -> None:
        if not (self.registering and self.liveness_passed and frame.has_descriptor):
            return
        if self.samples.is_complete:
            return
        try:
            self.samples.add(frame.descriptor)
        except ValueError as e:
            logger.warning(f"Discarding enrollment sample: {e}")
            return
        logger.info(f"Enrollment sample {len(self.samples)}/{self.samples.required_samples} collected")

    async def run_frame_loop(self, source: FrameSource, detector: FaceDetector) -> int:
        """
        Cooperative capture loop: read a frame, detect, extract, update histories, yield.

        Runs until the source is exhausted or stop() is called.

        Returns:
            Number of frames processed
        """
        token = CancellationToken('capture')
        self._capture_token = token
        options = self.config.detector.detector_options()
        processed = 0

        logger.info(f"Frame loop started with detector options {options}")
        while not token.cancelled:
            image = await source.read()
            if image is None or token.cancelled:
                break
            try:
                detection = await detector.detect(image, options)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Detection loop error: {e}")
            else:
                # stop() may have been called while detection was in flight
                if token.cancelled:
                    break
                self.process_frame(detection)
            processed += 1
            await self._sleep(0)

        logger.info(f"Frame loop finished after {processed} frames")
        return processed

    # ------------------------------------------------------------------
    # Calibration and challenges
    # ------------------------------------------------------------------

    def _require_idle(self, action: str) -> None:
        if self.session.state is not SessionState.IDLE:
            raise PreconditionError(
                'invalid_state',
                f"Cannot {action} while session is {self.session.state.value}; reset first"
            )

    async def calibrate(self) -> CalibrationBaseline:
        """
        Sample a neutral face for the calibration duration and store the baseline.

        Raises:
            CalibrationError: No face is detected when calibration starts
            PreconditionError: The session is not idle
            SessionCancelledError: reset() or stop() was called during the wait
        """
        self._require_idle('calibrate')
        if not self.face_detected:
            self._set_message("Face not detected, position your face")
            raise CalibrationError("Face not detected, position your face") from NoFaceError()

        token = self._session_token
        self.session.state = SessionState.CALIBRATING
        self._set_message("Calibrating, keep a neutral face (no blink or smile)")

        baseline = await self._calibrator.run(self.history, token)

        self.baseline = baseline
        self.session.state = SessionState.IDLE
        self._set_message(f"Calibrated (ear {baseline.median_ear:.2f}, "
                          f"mouth {baseline.median_mouth_ratio:.2f})")
        return baseline

    async def run_challenges(self) -> ChallengeSession:
        """
        Run every scheduled challenge in order against the live histories.

        Raises:
            PreconditionError: Not calibrated, or the session is not idle
            ChallengeTimeoutError: A challenge was not performed in time; session is FAILED
            SessionCancelledError: reset() or stop() was called during the run
        """
        if self.baseline is None:
            raise PreconditionError('not_calibrated', "Calibrate before starting challenges")
        self._require_idle('start challenges')

        token = self._session_token
        config = self.config.challenges
        session = self.session
        session.order = build_challenge_order(self.baseline, config, self._rng)
        session.state = SessionState.RUNNING
        session.progress_percent = 0
        session.failed_challenge = None
        self._set_message("Liveness check started")
        logger.info(f"Running challenges: {[challenge.value for challenge in session.order]}")

        total = len(session.order)
        for index, challenge in enumerate(session.order):
            definition = CHALLENGES[challenge]
            timeout_ms = definition.timeout_ms(config)

            session.current_index = index
            session.progress_percent = int(round(index / total * 100))
            session.challenge_start_time = self._clock()
            self._set_message(f"Please: {definition.label}")

            performed = await self._await_challenge(definition, timeout_ms, token)
            if not performed:
                session.state = SessionState.FAILED
                session.failed_challenge = challenge
                self._set_message(f"Failed to {definition.label.lower()}")
                logger.warning(f"Challenge {challenge.value} timed out after {timeout_ms}ms")
                raise ChallengeTimeoutError(challenge.value, definition.label, timeout_ms)

            self._set_message(f"{definition.label} detected")
            logger.info(f"Challenge {challenge.value} passed")
            await sleep_ms(self._sleep, config.success_ack_ms)
            token.raise_if_cancelled()

        session.current_index = total
        session.progress_percent = 100
        session.state = SessionState.PASSED
        self._set_message("Liveness check passed")
        logger.info("Liveness check passed")
        if self._on_passed:
            self._on_passed()
        return session

    async def _await_challenge(
        self,
        definition: ChallengeDefinition,
        timeout_ms: int,
        token: CancellationToken
    ) -> bool:
        start = self._clock()
        while True:
            token.raise_if_cancelled()
            if (self._clock() - start) * 1000.0 > timeout_ms:
                return False
            if definition.is_satisfied(self.history, self.baseline, self.config.challenges):
                return True
            await sleep_ms(self._sleep, self.config.challenges.poll_interval_ms)

    async def start_liveness_check(self) -> ChallengeSession:
        """Calibrate, then run the challenges."""
        if not self.face_detected:
            self._set_message("Position your face first")
            raise CalibrationError("Position your face first") from NoFaceError()
        await self.calibrate()
        return await self.run_challenges()

    # ------------------------------------------------------------------
    # Enrollment sample collection
    # ------------------------------------------------------------------

    def start_registration(self) -> None:
        self.registering = True
        logger.info("Registration started")

    def stop_registration(self) -> None:
        self.registering = False

    def reset_registration(self) -> None:
        self.registering = False
        self.samples.clear()

    # ------------------------------------------------------------------
    # Reset / stop
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Cancel in-flight waits and clear histories, baseline, samples and session."""
        self._session_token.cancel()
        self._session_token = CancellationToken('session')
        self.history.clear()
        self.baseline = None
        self.samples.clear()
        self.registering = False
        self.session = ChallengeSession()
        self._set_message("Reset done")
        logger.info("Liveness session reset")

    def stop(self) -> None:
        """Stop the capture loop and abort any calibration or challenge wait."""
        self._capture_token.cancel()
        self._session_token.cancel()
        self._session_token = CancellationToken('session')
        if self.session.state in (SessionState.CALIBRATING, SessionState.RUNNING):
            self.session.state = SessionState.IDLE
            self._set_message("Stopped")
        self.face_detected = False
        logger.info("Liveness engine stopped")

    def status(self) -> Dict[str, Any]:
        return {
            'face_detected': self.face_detected,
            'confidence_score': self.confidence_score,
            'session': self.session.to_dict(),
            'baseline': self.baseline.to_dict() if self.baseline else None,
            'history_size': len(self.history),
            'registering': self.registering,
            'samples': len(self.samples),
            'required_samples': self.samples.required_samples
        }
