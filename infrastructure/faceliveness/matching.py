"""
Face Descriptor Matching
Euclidean nearest-neighbour verification against a known-faces snapshot, or
delegation of the probe to the remote verification endpoint.
"""

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import numpy as np

from .config import EnrollmentConfig
from .exceptions import PreconditionError
from .registry_client import RegistryClient
from .schemas import KnownFace

if TYPE_CHECKING:
    from .challenge_engine import LivenessEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    matched: bool
    label: Optional[str]
    distance: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'matched': self.matched,
            'label': self.label,
            'distance': None if math.isinf(self.distance) else self.distance
        }


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    vector_a = np.asarray(a, dtype=np.float64).ravel()
    vector_b = np.asarray(b, dtype=np.float64).ravel()
    if vector_a.shape != vector_b.shape:
        raise ValueError(f"Descriptor dimensions differ: {vector_a.size} != {vector_b.size}")
    return float(np.linalg.norm(vector_a - vector_b))


def match_descriptor(
    probe: Sequence[float],
    known_faces: Sequence[KnownFace],
    threshold: float = 0.45
) -> VerificationResult:
    """
    Find the closest known face to the probe.

    Known faces whose descriptor dimension differs from the probe are skipped.
    A match requires the minimum distance to be strictly below threshold.
    """
    probe_vector = np.asarray(probe, dtype=np.float64).ravel()
    candidates = [face for face in known_faces if len(face.descriptor) == probe_vector.size]
    skipped = len(known_faces) - len(candidates)
    if skipped:
        logger.warning(f"Skipped {skipped} known faces with descriptor dimension != {probe_vector.size}")

    if not candidates:
        return VerificationResult(matched=False, label=None, distance=math.inf)

    matrix = np.asarray([face.descriptor for face in candidates], dtype=np.float64)
    distances = np.linalg.norm(matrix - probe_vector, axis=1)
    best = int(np.argmin(distances))
    best_distance = float(distances[best])

    matched = best_distance < threshold
    logger.info(f"Closest known face: {candidates[best].username} (d={best_distance:.3f}, "
                f"threshold={threshold}, matched={matched})")
    return VerificationResult(matched=matched, label=candidates[best].username, distance=best_distance)


class FaceVerifier:
    """Verifies probe descriptors locally against a snapshot or remotely via the registry."""

    def __init__(
        self,
        registry: RegistryClient,
        config: Optional[EnrollmentConfig] = None,
        known_faces: Optional[List[KnownFace]] = None
    ):
        self.registry = registry
        self.config = config or EnrollmentConfig()
        self.mode = self.config.verification_mode
        self.known_faces: List[KnownFace] = list(known_faces or [])

    def refresh_known_faces(self) -> List[KnownFace]:
        self.known_faces = self.registry.known_faces()
        return self.known_faces

    def verify(self, descriptor: Optional[Sequence[float]]) -> VerificationResult:
        """
        Verify a probe descriptor.

        Raises:
            PreconditionError: No descriptor for the current face
            TransportError: Remote verification or known-faces loading failed
        """
        if descriptor is None or len(descriptor) == 0:
            raise PreconditionError('no_descriptor', "Failed to compute descriptor")

        if self.mode == 'remote':
            verdict = self.registry.verify_face(descriptor)
            distance = verdict.distance if verdict.distance is not None else math.inf
            return VerificationResult(matched=verdict.success, label=verdict.username, distance=distance)

        if not self.known_faces:
            self.refresh_known_faces()
        return match_descriptor(descriptor, self.known_faces, self.config.match_threshold)

    def verify_current_face(self, engine: 'LivenessEngine') -> VerificationResult:
        """
        Verify the face currently in front of the engine's camera.

        Raises:
            PreconditionError: No face detected, or no descriptor for it
            TransportError: Remote verification or known-faces loading failed
        """
        if not engine.face_detected:
            raise PreconditionError('no_face', "No face detected")
        result = self.verify(engine.last_descriptor)
        if result.matched:
            logger.info(f"Verified: {result.label} (d={result.distance:.3f})")
        else:
            logger.info("Verification: not recognized")
        return result
