"""
Face Enrollment
Collects face descriptors during a passed liveness session, averages them into
one canonical descriptor and submits it to the known-faces registry.
"""

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

import numpy as np

from .config import EnrollmentConfig
from .exceptions import PreconditionError, TransportError
from .schemas import RegisterFaceResponse

if TYPE_CHECKING:
    from .challenge_engine import LivenessEngine
    from .matching import FaceVerifier
    from .registry_client import RegistryClient

logger = logging.getLogger(__name__)


def average_descriptors(descriptors: Sequence[Sequence[float]], default_dimension: int = 128) -> np.ndarray:
    """
    Elementwise mean of the descriptors.

    An empty input yields a zero vector of default_dimension. Descriptors of
    different lengths are rejected with ValueError.
    """
    if len(descriptors) == 0:
        return np.zeros(default_dimension, dtype=np.float64)

    dimensions = {len(descriptor) for descriptor in descriptors}
    if len(dimensions) != 1:
        raise ValueError(f"Descriptor dimensions differ: {sorted(dimensions)}")

    stacked = np.asarray(descriptors, dtype=np.float64)
    return stacked.mean(axis=0)


class EnrollmentSampleSet:
    """Ordered descriptors collected for one enrollment, bounded to required_samples."""

    def __init__(self, required_samples: int = 5):
        if required_samples < 1:
            raise ValueError("required_samples must be >= 1")
        self.required_samples = required_samples
        self._samples: List[np.ndarray] = []

    @property
    def dimension(self) -> Optional[int]:
        return len(self._samples[0]) if self._samples else None

    @property
    def is_complete(self) -> bool:
        return len(self._samples) >= self.required_samples

    def add(self, descriptor: Sequence[float]) -> bool:
        """
        Append a descriptor.

        Returns:
            False when the quota is already met, True otherwise

        Raises:
            ValueError: Empty descriptor or dimension differing from earlier samples
        """
        if self.is_complete:
            return False
        vector = np.asarray(descriptor, dtype=np.float64).ravel()
        if vector.size == 0:
            raise ValueError("Descriptor is empty")
        if self.dimension is not None and vector.size != self.dimension:
            raise ValueError(f"Descriptor dimension {vector.size} != {self.dimension}")
        self._samples.append(vector)
        return True

    def average(self, default_dimension: int = 128) -> np.ndarray:
        return average_descriptors(self._samples, default_dimension)

    def clear(self) -> None:
        self._samples = []

    @property
    def samples(self) -> List[np.ndarray]:
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)


class EnrollmentService:
    """Validates registration preconditions and submits the averaged descriptor."""

    def __init__(
        self,
        engine: 'LivenessEngine',
        registry: 'RegistryClient',
        config: Optional[EnrollmentConfig] = None,
        verifier: Optional['FaceVerifier'] = None
    ):
        self.engine = engine
        self.registry = registry
        self.config = config or engine.config.enrollment
        self.verifier = verifier
        self.registered = False

    def start(self) -> None:
        """Begin collecting descriptors from subsequent frames."""
        self.registered = False
        self.engine.start_registration()

    def reset(self) -> None:
        self.registered = False
        self.engine.reset_registration()

    def check_preconditions(self, username: str) -> None:
        """Raise PreconditionError naming the first unmet requirement."""
        if not username or not username.strip():
            raise PreconditionError('missing_username', "Enter a username before registering")
        if not self.engine.face_detected:
            raise PreconditionError('no_face', "No face detected")
        if not self.engine.liveness_passed:
            raise PreconditionError('liveness_not_passed', "Please complete liveness check first")
        samples = self.engine.samples
        if len(samples) < samples.required_samples:
            raise PreconditionError(
                'insufficient_samples',
                f"Need {samples.required_samples} samples, collected {len(samples)}"
            )

    def submit(self, username: str) -> RegisterFaceResponse:
        """
        Average the collected samples and register them under username.

        Raises:
            PreconditionError: A requirement is unmet; the registry is not contacted
            TransportError: The registry call failed or was rejected
        """
        self.check_preconditions(username)
        username = username.strip()

        descriptor = self.engine.samples.average(self.config.descriptor_dimension)
        logger.info(f"Submitting registration for {username} "
                    f"({len(self.engine.samples)} samples, {descriptor.size}D)")
        try:
            response = self.registry.register_face(username, descriptor.tolist())
        finally:
            self.engine.stop_registration()

        self.registered = True
        logger.info(f"Registered {username}")

        if self.verifier is not None and self.verifier.mode == 'local':
            try:
                self.verifier.refresh_known_faces()
            except TransportError as e:
                logger.warning(f"Could not refresh known faces after registration: {e}")
        return response
