"""Shared fixtures for calendar OAuth tests."""

import socket
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from src.calendar_oauth.config import GoogleOAuthConfig
from src.calendar_oauth.models import CredentialRecord


def find_free_port() -> int:
    """Ask the OS for a currently unused loopback port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def follow_redirect(redirect_uri: str, **params) -> requests.Response:
    """
    Act as the browser following Google's redirect to the loopback listener.

    Uses its own session (ignoring proxy environment variables) so tests that
    patch ``requests.get`` do not intercept it.
    """
    session = requests.Session()
    session.trust_env = False
    try:
        return session.get(redirect_uri, params=params, timeout=5)
    finally:
        session.close()


def state_from_url(auth_url: str) -> str:
    """Extract the CSRF state from an authorization URL."""
    return parse_qs(urlparse(auth_url).query)["state"][0]


@pytest.fixture
def free_port():
    """A loopback port nothing is listening on."""
    return find_free_port()


@pytest.fixture
def config(tmp_path, free_port):
    """Create test OAuth config."""
    return GoogleOAuthConfig(
        client_id="test_client_id",
        client_secret="test_client_secret",
        callback_port=free_port,
        credential_file=str(tmp_path / "credentials.json"),
    )


@pytest.fixture
def fixed_now():
    """Fixed reference time for expiry arithmetic."""
    return datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_record():
    """Factory for credential records."""

    def _make(
        expires_in: int = 3600,
        now: datetime = None,
        access_token: str = "access_123",
        refresh_token: str = "refresh_456",
        email: str = "user@example.com",
    ) -> CredentialRecord:
        reference = now or datetime.now(timezone.utc)
        return CredentialRecord(
            account_email=email,
            access_token=access_token,
            refresh_token=refresh_token,
            token_expiry=reference + timedelta(seconds=expires_in),
        )

    return _make


@pytest.fixture
def browser_redirect():
    """Function that performs the browser's redirect to the listener."""
    return follow_redirect


@pytest.fixture
def url_state():
    """Function that extracts the state parameter from an authorization URL."""
    return state_from_url
