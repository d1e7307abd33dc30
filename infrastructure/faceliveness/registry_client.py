"""
Known-Faces Registry Client
HTTP client for the register / known-faces / verify endpoints. Failures are
reported as TransportError and never retried.
"""

import logging
from typing import List, Optional, Sequence
from urllib.parse import urljoin

import requests
from pydantic import ValidationError

from .config import EnrollmentConfig
from .exceptions import TransportError
from .schemas import KnownFace, RegisterFaceResponse, VerifyFaceResponse

logger = logging.getLogger(__name__)


class RegistryClient:
    """Client for the known-faces registry API."""

    def __init__(self, base_url: str = "http://localhost:8000/", timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        """
        Initialize registry client.

        Args:
            base_url: API base URL; endpoint paths are resolved against it
            timeout: Request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'FaceLiveness-Client/1.0'
        })

    @classmethod
    def from_config(cls, config: EnrollmentConfig,
                    session: Optional[requests.Session] = None) -> 'RegistryClient':
        """Client for the registry configured in config."""
        return cls(config.registry_api_base, timeout=config.request_timeout, session=session)

    def _url(self, path: str) -> str:
        return urljoin(self.base_url, path)

    def _request(self, method: str, path: str, payload: Optional[dict] = None):
        url = self._url(path)
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportError(f"Request to {path} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"{method} {url} returned invalid JSON (status {response.status_code})")
            raise TransportError(f"Invalid response from {path}", response.status_code) from e
        return response, data

    def register_face(self, username: str, descriptor: Sequence[float]) -> RegisterFaceResponse:
        """
        Register a descriptor under username.

        Raises:
            TransportError: Network failure, HTTP error or success=false
        """
        response, data = self._request('POST', 'api/register-face', {
            'username': username,
            'descriptor': [float(value) for value in descriptor]
        })
        try:
            result = RegisterFaceResponse(**data) if isinstance(data, dict) else None
        except ValidationError as e:
            raise TransportError("Malformed registration response", response.status_code) from e

        if not response.ok or result is None or not result.success:
            message = (result.message if result and result.message else None) or "Registration failed"
            logger.error(f"Registration of {username} rejected: {message} (status {response.status_code})")
            raise TransportError(message, response.status_code)
        return result

    def known_faces(self) -> List[KnownFace]:
        """Fetch the registry snapshot."""
        response, data = self._request('GET', 'api/known-faces')
        if not response.ok:
            raise TransportError("Failed to load known faces", response.status_code)
        if not isinstance(data, list):
            raise TransportError("Known faces response is not a list", response.status_code)
        try:
            faces = [KnownFace(**item) for item in data]
        except (TypeError, ValidationError) as e:
            raise TransportError("Malformed known faces response", response.status_code) from e
        logger.info(f"Loaded {len(faces)} known faces")
        return faces

    def verify_face(self, descriptor: Sequence[float]) -> VerifyFaceResponse:
        """
        Ask the server to verify a probe descriptor.

        A success=false answer is a valid "not recognized" verdict and is
        returned as is; only transport failures raise.
        """
        response, data = self._request('POST', 'api/verify-face', {
            'descriptor': [float(value) for value in descriptor]
        })
        if not response.ok:
            raise TransportError("Verification request failed", response.status_code)
        try:
            return VerifyFaceResponse(**data)
        except (TypeError, ValidationError) as e:
            raise TransportError("Malformed verification response", response.status_code) from e

    def close(self) -> None:
        self.session.close()
