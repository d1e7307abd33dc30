#!/usr/bin/env python3
"""
Tests for descriptor averaging, the enrollment sample set and registration.
"""

import os
import sys
from unittest.mock import MagicMock

import numpy as np
import pytest

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'infrastructure'))

from faceliveness.challenge_engine import LivenessEngine, SessionState
from faceliveness.config import EnrollmentConfig
from faceliveness.enrollment import EnrollmentSampleSet, EnrollmentService, average_descriptors
from faceliveness.exceptions import PreconditionError, TransportError
from faceliveness.schemas import RegisterFaceResponse
from synthetic_landmarks import make_frame


def test_average_of_two_descriptors():
    assert average_descriptors([[1, 2, 3], [3, 2, 1]]).tolist() == [2.0, 2.0, 2.0]


def test_average_of_single_descriptor_is_unchanged():
    descriptor = [0.1, -0.4, 0.25]
    assert np.allclose(average_descriptors([descriptor]), descriptor)


def test_average_of_nothing_is_zero_vector():
    average = average_descriptors([])
    assert average.shape == (128,)
    assert not average.any()


def test_average_rejects_mixed_dimensions():
    with pytest.raises(ValueError):
        average_descriptors([[1.0, 2.0], [1.0, 2.0, 3.0]])


def test_sample_set_stops_at_quota():
    samples = EnrollmentSampleSet(required_samples=3)
    results = [samples.add([float(i)] * 4) for i in range(5)]

    assert results == [True, True, True, False, False]
    assert len(samples) == 3
    assert samples.is_complete
    assert samples.average().tolist() == [1.0] * 4


def test_sample_set_rejects_bad_descriptors():
    samples = EnrollmentSampleSet()
    with pytest.raises(ValueError):
        samples.add([])
    samples.add([0.0] * 128)
    with pytest.raises(ValueError):
        samples.add([0.0] * 64)
    assert len(samples) == 1


def passed_engine(sample_count=5):
    """Engine forced into a passed session with sample_count collected descriptors."""
    engine = LivenessEngine()
    engine.process_frame(make_frame())
    engine.session.state = SessionState.PASSED
    engine.start_registration()
    for i in range(sample_count):
        engine.process_frame(make_frame(descriptor=[float(i)] * 128))
    return engine


@pytest.mark.parametrize("username,engine_factory,reason", [
    ("", lambda: passed_engine(), 'missing_username'),
    ("   ", lambda: passed_engine(), 'missing_username'),
    ("alice", lambda: LivenessEngine(), 'no_face'),
    ("alice", lambda: passed_engine(3), 'insufficient_samples'),
])
def test_preconditions(username, engine_factory, reason):
    registry = MagicMock()
    service = EnrollmentService(engine_factory(), registry)

    with pytest.raises(PreconditionError) as excinfo:
        service.submit(username)

    assert excinfo.value.reason == reason
    registry.register_face.assert_not_called()


def test_liveness_must_pass_first():
    engine = LivenessEngine()
    engine.process_frame(make_frame())
    service = EnrollmentService(engine, MagicMock())

    with pytest.raises(PreconditionError) as excinfo:
        service.check_preconditions("alice")
    assert excinfo.value.reason == 'liveness_not_passed'


def test_submit_registers_average_descriptor():
    engine = passed_engine()
    registry = MagicMock()
    registry.register_face.return_value = RegisterFaceResponse(success=True, message="Registered alice")
    service = EnrollmentService(engine, registry)

    response = service.submit(" alice ")

    assert response.success
    assert service.registered
    assert not engine.registering
    username, descriptor = registry.register_face.call_args[0]
    assert username == "alice"
    assert len(descriptor) == 128
    assert descriptor[0] == pytest.approx(2.0)


def test_submit_refreshes_local_verifier():
    engine = passed_engine()
    registry = MagicMock()
    registry.register_face.return_value = RegisterFaceResponse(success=True)
    verifier = MagicMock()
    verifier.mode = 'local'
    verifier.refresh_known_faces.side_effect = TransportError("offline")

    service = EnrollmentService(engine, registry, EnrollmentConfig(), verifier)
    service.submit("alice")

    verifier.refresh_known_faces.assert_called_once()
    assert service.registered


def test_registry_failure_propagates_and_stops_collection():
    engine = passed_engine()
    registry = MagicMock()
    registry.register_face.side_effect = TransportError("Registration failed", 500)
    service = EnrollmentService(engine, registry)

    with pytest.raises(TransportError):
        service.submit("alice")

    assert not service.registered
    assert not engine.registering
    assert len(engine.samples) == 5


def test_reset_clears_samples():
    engine = passed_engine()
    service = EnrollmentService(engine, MagicMock())
    service.reset()

    assert len(engine.samples) == 0
    assert not engine.registering


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
