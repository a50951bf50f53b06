"""
Tests for sign-in options and the provider registry.
"""

import os
from unittest.mock import patch

import pytest

from oauth_signin.core.domain import AuthenticationMode
from oauth_signin.oauth.config import OAuthAuthenticationOptions, get_oauth_options
from oauth_signin.oauth.profiles import StravaAthlete, UntappdUser
from oauth_signin.oauth.providers import (
    STRAVA,
    SUPPORTED_PROVIDERS,
    UNTAPPD,
    get_provider_definition,
)


class TestOAuthAuthenticationOptions:
    """Tests for OAuthAuthenticationOptions."""

    def test_defaults_from_definition(self, state_format):
        """Test unset values are filled from the provider definition."""
        options = OAuthAuthenticationOptions(
            client_id="id", client_secret="secret", state_data_format=state_format
        )

        assert options.definition is STRAVA
        assert options.callback_path == "/signin-strava"
        assert options.scope == ("read",)
        assert options.authentication_type == "Strava"
        assert options.caption == "Strava"
        assert options.sign_in_as_authentication_type == "ExternalCookie"
        assert options.authentication_mode == AuthenticationMode.PASSIVE
        assert options.backchannel_timeout == 60.0

    def test_scope_deduplicated_in_order(self, state_format):
        """Test repeated scopes keep their first position."""
        options = OAuthAuthenticationOptions(
            client_id="id",
            client_secret="secret",
            scope=("read", "activity:read", "read"),
            state_data_format=state_format,
        )

        assert options.scope == ("read", "activity:read")

    def test_untappd_defaults(self, state_format):
        """Test a provider without default scope."""
        options = OAuthAuthenticationOptions(
            client_id="id",
            client_secret="secret",
            definition=UNTAPPD,
            state_data_format=state_format,
        )

        assert options.callback_path == "/signin-untappd"
        assert options.scope == ()
        assert options.authentication_type == "Untappd"

    def test_state_format_from_env(self):
        """Test the state codec defaults to the environment key."""
        with patch.dict(os.environ, {}, clear=True):
            options = OAuthAuthenticationOptions(client_id="id", client_secret="secret")

        assert options.state_data_format is not None

    def test_options_are_immutable(self, options):
        """Test options cannot change after registration."""
        with pytest.raises(AttributeError):
            options.client_id = "other"

    def test_validate_accepts_complete_options(self, options):
        options.validate()

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"client_id": ""}, "client_id is required"),
            ({"client_secret": ""}, "client_secret is required"),
            ({"callback_path": "signin-strava"}, "callback_path must be an absolute path"),
            ({"authentication_type": ""}, "authentication_type is required"),
        ],
    )
    def test_validate_rejects(self, state_format, overrides, message):
        """Test each missing or malformed value fails validation."""
        values = {
            "client_id": "id",
            "client_secret": "secret",
            "state_data_format": state_format,
            **overrides,
        }
        options = OAuthAuthenticationOptions(**values)

        with pytest.raises(ValueError, match=message):
            options.validate()


class TestOptionsFromEnv:
    """Tests for loading options from the environment."""

    def test_from_env_loads_variables(self, state_format):
        """Test the provider-prefixed variables are read."""
        env = {
            "STRAVA_CLIENT_ID": "env-id",
            "STRAVA_CLIENT_SECRET": "env-secret",
            "STRAVA_CALLBACK_PATH": "/auth/strava",
            "STRAVA_SCOPE": "read, activity:read_all,",
        }

        with patch.dict(os.environ, env, clear=True):
            options = OAuthAuthenticationOptions.from_env(
                STRAVA, state_data_format=state_format
            )

        assert options.client_id == "env-id"
        assert options.client_secret == "env-secret"
        assert options.callback_path == "/auth/strava"
        assert options.scope == ("read", "activity:read_all")

    def test_from_env_handles_missing(self, state_format):
        """Test missing variables leave defaults and empty credentials."""
        with patch.dict(os.environ, {}, clear=True):
            options = OAuthAuthenticationOptions.from_env(
                UNTAPPD, state_data_format=state_format
            )

        assert options.client_id == ""
        assert options.callback_path == "/signin-untappd"
        with pytest.raises(ValueError):
            options.validate()

    def test_get_oauth_options_uses_configured_provider(self):
        """Test OAUTH_PROVIDER selects the provider definition."""
        env = {
            "OAUTH_PROVIDER": "untappd",
            "UNTAPPD_CLIENT_ID": "u-id",
            "UNTAPPD_CLIENT_SECRET": "u-secret",
        }
        get_oauth_options.cache_clear()
        try:
            with patch.dict(os.environ, env, clear=True):
                options = get_oauth_options()

            assert options.definition is UNTAPPD
            assert options.client_id == "u-id"
            assert get_oauth_options() is options
        finally:
            get_oauth_options.cache_clear()


class TestProviderRegistry:
    """Tests for provider definitions."""

    def test_supported_providers(self):
        assert SUPPORTED_PROVIDERS == {"strava": STRAVA, "untappd": UNTAPPD}

    def test_get_provider_definition_case_insensitive(self):
        assert get_provider_definition("Strava") is STRAVA

    def test_get_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            get_provider_definition("myspace")

    def test_strava_definition(self):
        """Test Strava endpoints and profile location."""
        assert STRAVA.authorization_endpoint == "https://www.strava.com/oauth/authorize"
        assert STRAVA.token_endpoint == "https://www.strava.com/oauth/token"
        assert STRAVA.token_request_method == "POST"
        assert STRAVA.profile_path == ("athlete",)
        assert STRAVA.profile_model is StravaAthlete
        assert STRAVA.namespace == "urn:strava"

    def test_untappd_definition(self):
        """Test Untappd's non-standard exchange settings."""
        assert UNTAPPD.token_request_method == "GET"
        assert UNTAPPD.redirect_uri_parameter == "redirect_url"
        assert UNTAPPD.token_path == ("response",)
        assert UNTAPPD.profile_path is None
        assert UNTAPPD.user_info_profile_path == ("response", "user")
        assert UNTAPPD.user_info_token_in_query
        assert UNTAPPD.profile_model is UntappdUser
        assert UNTAPPD.namespace == "urn:untappd"
