"""
Unit tests for the demo FastAPI application.
"""

import logging
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from oauth_signin.main import options
from tests.conftest import app


class TestApplicationSetup:
    """Tests for how the demo app is wired."""

    def test_lifespan_logs_startup_and_shutdown(self, caplog):
        """Test the lifespan runs on startup and shutdown."""
        with caplog.at_level(logging.INFO, logger="oauth_signin.main"):
            with TestClient(app) as test_client:
                assert test_client.get("/health").status_code == 200

        assert "Application starting up..." in caplog.text
        assert "Shutting down application..." in caplog.text

    def test_session_wraps_sign_in_middleware(self):
        """Test SessionMiddleware is outermost so the handler sees the session."""
        names = [m.cls.__name__ for m in app.user_middleware]

        assert names == ["SessionMiddleware", "OAuthAuthenticationMiddleware"]

    def test_options_from_environment(self):
        """Test the app is configured from the environment."""
        assert options.client_id == "test-client-id"
        assert options.client_secret == "test-client-secret"
        assert options.callback_path == "/signin-strava"


class TestLoginEndpoint:
    """Tests for /login."""

    def test_login_redirects_to_provider(self):
        """Test /login answers with the provider redirect, not a 401."""
        response = TestClient(app).get("/login", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].startswith(
            "https://www.strava.com/oauth/authorize?"
        )
        assert "session" in response.cookies

    def test_login_return_url_kept_in_state(self):
        """Test the return URL survives the round trip in the state."""
        response = TestClient(app).get(
            "/login", params={"return_url": "/settings"}, follow_redirects=False
        )

        state = parse_qs(urlsplit(response.headers["location"]).query)["state"][0]
        assert options.state_data_format.unprotect(state).redirect_uri == "/settings"

    @pytest.mark.parametrize(
        "return_url",
        ["https://evil.example/", "//evil.example/", "/\\evil.example", "dashboard"],
    )
    def test_login_rejects_foreign_return_url(self, return_url):
        """Test /login refuses to send users to another site after sign-in."""
        response = TestClient(app).get(
            "/login", params={"return_url": return_url}, follow_redirects=False
        )

        assert response.status_code == 400
        assert "session" not in response.cookies
