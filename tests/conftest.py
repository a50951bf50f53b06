"""
Shared test configuration and fixtures.
"""

import os
from typing import Optional
from unittest.mock import patch
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from oauth_signin.core.contexts import AuthenticationProvider
from oauth_signin.infrastructure.state_format import (
    FernetStateDataFormat,
    generate_state_key,
)
from oauth_signin.oauth.config import OAuthAuthenticationOptions, get_oauth_options
from oauth_signin.oauth.providers import STRAVA

STATE_KEY = generate_state_key()

# Configure the demo app before importing it
with patch.dict(
    os.environ,
    {
        "SESSION_SECRET_KEY": "test-secret",
        "STRAVA_CLIENT_ID": "test-client-id",
        "STRAVA_CLIENT_SECRET": "test-client-secret",
        "STATE_ENCRYPTION_KEY": STATE_KEY,
        "OAUTH_PROVIDER": "strava",
    },
):
    get_oauth_options.cache_clear()
    from oauth_signin.main import app

client = TestClient(app)

STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"


def make_request(
    path: str = "/",
    query: Optional[list[tuple[str, str]]] = None,
    session: Optional[dict] = None,
    host: str = "example.com",
    scheme: str = "https",
    root_path: str = "",
) -> Request:
    """Build a Starlette request with a session, as SessionMiddleware would."""
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": "GET",
        "scheme": scheme,
        "path": root_path + path,
        "raw_path": (root_path + path).encode(),
        "root_path": root_path,
        "query_string": urlencode(query or []).encode(),
        "headers": [(b"host", host.encode())],
        "server": (host, 443 if scheme == "https" else 80),
        "client": ("127.0.0.1", 50000),
        "session": session if session is not None else {},
    }
    return Request(scope)


@pytest.fixture
def state_format():
    """State codec with a fresh key."""
    return FernetStateDataFormat(generate_state_key())


@pytest.fixture
def provider():
    """Hooks with no custom logic."""
    return AuthenticationProvider()


@pytest.fixture
def options(state_format, provider):
    """Strava options wired to the test codec and hooks."""
    return OAuthAuthenticationOptions(
        client_id="test-client-id",
        client_secret="test-client-secret",
        definition=STRAVA,
        scope=("read", "activity:read"),
        state_data_format=state_format,
        provider=provider,
    )


@pytest.fixture
def strava_token_payload():
    """Strava token response with the athlete embedded."""
    return {
        "access_token": "tok123",
        "token_type": "Bearer",
        "refresh_token": "refresh456",
        "expires_at": 1700000000,
        "athlete": {
            "id": 42,
            "username": "jdoe",
            "firstname": "Jane",
            "lastname": "Doe",
            "email": "jane@x.com",
            "city": "Cambridge",
            "premium": True,
        },
    }
