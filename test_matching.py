#!/usr/bin/env python3
"""
Tests for Euclidean descriptor matching and the verifier modes.
"""

import math
import os
import sys
from unittest.mock import MagicMock

import pytest

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'infrastructure'))

from faceliveness.challenge_engine import LivenessEngine
from faceliveness.config import EnrollmentConfig
from faceliveness.exceptions import PreconditionError, TransportError
from faceliveness.matching import FaceVerifier, VerificationResult, euclidean_distance, match_descriptor
from faceliveness.schemas import KnownFace, VerifyFaceResponse
from synthetic_landmarks import make_frame

KNOWN = [
    KnownFace(username="A", descriptor=[0.0, 0.0]),
    KnownFace(username="B", descriptor=[1.0, 1.0]),
]


def test_distance_properties():
    a, b = [0.5, -1.0, 2.0], [1.5, 0.0, 2.0]
    assert euclidean_distance(a, a) == 0.0
    assert euclidean_distance(a, b) == euclidean_distance(b, a)
    assert euclidean_distance([0, 0], [3, 4]) == pytest.approx(5.0)


def test_distance_rejects_mismatched_dimensions():
    with pytest.raises(ValueError):
        euclidean_distance([0.0, 0.0], [0.0, 0.0, 0.0])


def test_exact_match():
    result = match_descriptor([0.0, 0.0], KNOWN, 0.45)
    assert result == VerificationResult(matched=True, label="A", distance=0.0)


def test_far_probe_is_not_recognized():
    result = match_descriptor([10.0, 10.0], KNOWN, 0.45)
    assert not result.matched
    assert result.label == "B"


def test_threshold_is_exclusive():
    result = match_descriptor([0.45, 0.0], KNOWN, 0.45)
    assert result.distance == pytest.approx(0.45)
    assert not result.matched


def test_no_candidates():
    result = match_descriptor([0.0, 0.0], [], 0.45)
    assert not result.matched
    assert result.label is None
    assert math.isinf(result.distance)
    assert result.to_dict()['distance'] is None


def test_mismatched_known_faces_are_skipped():
    known = KNOWN + [KnownFace(username="C", descriptor=[0.0, 0.0, 0.0])]
    result = match_descriptor([0.9, 0.9], known, 0.45)
    assert result.label == "B"
    assert result.matched


def test_verify_requires_descriptor():
    verifier = FaceVerifier(MagicMock())
    for probe in (None, []):
        with pytest.raises(PreconditionError) as excinfo:
            verifier.verify(probe)
        assert excinfo.value.reason == 'no_descriptor'


def test_local_mode_loads_snapshot_once():
    registry = MagicMock()
    registry.known_faces.return_value = list(KNOWN)
    verifier = FaceVerifier(registry, EnrollmentConfig(verification_mode='local'))

    assert verifier.verify([1.0, 1.1]).label == "B"
    assert verifier.verify([0.0, 0.1]).label == "A"
    registry.known_faces.assert_called_once()
    registry.verify_face.assert_not_called()


def test_remote_mode_relays_server_verdict():
    registry = MagicMock()
    registry.verify_face.return_value = VerifyFaceResponse(success=True, username="alice", distance=0.21)
    verifier = FaceVerifier(registry, EnrollmentConfig(verification_mode='remote'))

    result = verifier.verify([0.1] * 128)

    assert result == VerificationResult(matched=True, label="alice", distance=0.21)
    registry.known_faces.assert_not_called()


def test_remote_not_recognized():
    registry = MagicMock()
    registry.verify_face.return_value = VerifyFaceResponse(success=False, message="Not recognized")
    verifier = FaceVerifier(registry, EnrollmentConfig(verification_mode='remote'))

    result = verifier.verify([0.1] * 128)

    assert not result.matched
    assert math.isinf(result.distance)


def test_remote_transport_error_propagates():
    registry = MagicMock()
    registry.verify_face.side_effect = TransportError("Verification request failed", 502)
    verifier = FaceVerifier(registry, EnrollmentConfig(verification_mode='remote'))

    with pytest.raises(TransportError):
        verifier.verify([0.1] * 128)


def test_verify_current_face_requires_face():
    engine = LivenessEngine()
    registry = MagicMock()
    verifier = FaceVerifier(registry)

    with pytest.raises(PreconditionError) as excinfo:
        verifier.verify_current_face(engine)

    assert excinfo.value.reason == 'no_face'
    registry.known_faces.assert_not_called()


def test_verify_current_face_requires_descriptor():
    engine = LivenessEngine()
    engine.process_frame(make_frame())

    with pytest.raises(PreconditionError) as excinfo:
        FaceVerifier(MagicMock()).verify_current_face(engine)
    assert excinfo.value.reason == 'no_descriptor'


def test_verify_current_face_uses_last_descriptor():
    engine = LivenessEngine()
    engine.process_frame(make_frame(descriptor=[1.0, 1.0]))
    verifier = FaceVerifier(MagicMock(), known_faces=list(KNOWN))

    result = verifier.verify_current_face(engine)

    assert result.matched
    assert result.label == "B"
    assert result.distance == 0.0


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
