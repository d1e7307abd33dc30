#!/usr/bin/env python3
"""
Tests for the known-faces registry HTTP client using a mocked requests session.
"""

import os
import sys
from unittest.mock import MagicMock

import pytest
import requests

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'infrastructure'))

from faceliveness.config import EnrollmentConfig
from faceliveness.exceptions import TransportError
from faceliveness.registry_client import RegistryClient


def fake_response(status_code=200, payload=None, invalid_json=False):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    if invalid_json:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = payload
    return response


def client_returning(response):
    session = MagicMock()
    session.headers = {}
    session.request.return_value = response
    return RegistryClient("http://registry.local/base", timeout=3.0, session=session), session


def test_register_face_posts_descriptor():
    client, session = client_returning(fake_response(200, {'success': True, 'message': 'Registered alice'}))

    result = client.register_face("alice", [0.5, 0.25])

    assert result.success
    session.request.assert_called_once_with(
        'POST', 'http://registry.local/base/api/register-face',
        json={'username': 'alice', 'descriptor': [0.5, 0.25]}, timeout=3.0
    )


def test_register_face_rejected():
    client, _ = client_returning(fake_response(200, {'success': False, 'message': 'Duplicate'}))
    with pytest.raises(TransportError) as excinfo:
        client.register_face("alice", [0.5])
    assert str(excinfo.value) == 'Duplicate'


def test_register_face_http_error():
    client, _ = client_returning(fake_response(500, {'detail': 'boom'}))
    with pytest.raises(TransportError) as excinfo:
        client.register_face("alice", [0.5])
    assert excinfo.value.status_code == 500


def test_network_failure_is_transport_error():
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = requests.ConnectionError("refused")
    client = RegistryClient("http://registry.local/", session=session)

    with pytest.raises(TransportError):
        client.known_faces()


def test_invalid_json_is_transport_error():
    client, _ = client_returning(fake_response(200, invalid_json=True))
    with pytest.raises(TransportError):
        client.known_faces()


def test_known_faces_snapshot():
    client, session = client_returning(fake_response(200, [
        {'username': 'alice', 'descriptor': [0.1, 0.2]},
        {'username': 'bob', 'descriptor': [0.3, 0.4]},
    ]))

    faces = client.known_faces()

    assert [face.username for face in faces] == ['alice', 'bob']
    assert session.request.call_args[0] == ('GET', 'http://registry.local/base/api/known-faces')


def test_known_faces_malformed():
    client, _ = client_returning(fake_response(200, {'faces': []}))
    with pytest.raises(TransportError):
        client.known_faces()


def test_verify_face_not_recognized_is_a_verdict():
    client, _ = client_returning(fake_response(200, {'success': False, 'message': 'Not recognized'}))

    verdict = client.verify_face([0.1, 0.2])

    assert not verdict.success
    assert verdict.username is None


def test_verify_face_http_error():
    client, _ = client_returning(fake_response(503, {'detail': 'down'}))
    with pytest.raises(TransportError):
        client.verify_face([0.1, 0.2])


def test_client_from_enrollment_config():
    session = MagicMock()
    session.headers = {}
    session.request.return_value = fake_response(200, [])
    config = EnrollmentConfig(registry_api_base="http://faces.internal:9000", request_timeout=2.5)

    client = RegistryClient.from_config(config, session=session)
    client.known_faces()

    assert client.base_url == "http://faces.internal:9000/"
    assert client.timeout == 2.5
    session.request.assert_called_once_with(
        'GET', 'http://faces.internal:9000/api/known-faces', json=None, timeout=2.5
    )


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
