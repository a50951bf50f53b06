"""
OAuth2 sign-in options.

Options are built once at registration time and shared read-only by every
request the handler serves.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

import httpx

from oauth_signin.core.contexts import AuthenticationProvider
from oauth_signin.core.domain import AuthenticationMode
from oauth_signin.core.ports import AuthenticationEvents, StateDataFormat
from oauth_signin.infrastructure.state_format import FernetStateDataFormat
from oauth_signin.oauth.providers import (
    STRAVA,
    OAuthProviderDefinition,
    get_provider_definition,
)


logger = logging.getLogger(__name__)

DEFAULT_SIGN_IN_AS_AUTHENTICATION_TYPE = "ExternalCookie"


@dataclass(frozen=True)
class OAuthAuthenticationOptions:
    """
    Configuration for one OAuth2 sign-in handler.

    Unset values default from the provider definition: callback_path to
    "/signin-<provider>", scope to the provider's default scope and
    authentication_type to the provider's display name.
    """

    client_id: str
    client_secret: str
    definition: OAuthProviderDefinition = STRAVA
    callback_path: Optional[str] = None
    scope: tuple[str, ...] = ()
    authentication_type: Optional[str] = None
    sign_in_as_authentication_type: Optional[str] = (
        DEFAULT_SIGN_IN_AS_AUTHENTICATION_TYPE
    )
    authentication_mode: AuthenticationMode = AuthenticationMode.PASSIVE
    state_data_format: Optional[StateDataFormat] = None
    provider: AuthenticationEvents = field(default_factory=AuthenticationProvider)
    backchannel_timeout: float = 60.0
    backchannel_transport: Optional[httpx.AsyncBaseTransport] = None
    caption: Optional[str] = None

    def __post_init__(self) -> None:
        definition = self.definition
        if self.callback_path is None:
            object.__setattr__(self, "callback_path", definition.default_callback_path)
        # Ordered set: keep first occurrence
        scope = tuple(dict.fromkeys(self.scope or definition.default_scope))
        object.__setattr__(self, "scope", scope)
        if self.authentication_type is None:
            object.__setattr__(self, "authentication_type", definition.display_name)
        if self.caption is None:
            object.__setattr__(self, "caption", definition.display_name)
        if self.state_data_format is None:
            object.__setattr__(
                self, "state_data_format", FernetStateDataFormat.from_env()
            )

    @classmethod
    def from_env(
        cls, definition: OAuthProviderDefinition = STRAVA, **overrides
    ) -> "OAuthAuthenticationOptions":
        """
        Load options for a provider from environment variables.

        Reads <PROVIDER>_CLIENT_ID, <PROVIDER>_CLIENT_SECRET,
        <PROVIDER>_CALLBACK_PATH and <PROVIDER>_SCOPE (comma separated).
        """
        prefix = definition.name.upper()
        scope = os.getenv(f"{prefix}_SCOPE")
        values = {
            "client_id": os.getenv(f"{prefix}_CLIENT_ID", ""),
            "client_secret": os.getenv(f"{prefix}_CLIENT_SECRET", ""),
            "definition": definition,
            "callback_path": os.getenv(f"{prefix}_CALLBACK_PATH") or None,
            "scope": tuple(s.strip() for s in scope.split(",") if s.strip())
            if scope
            else (),
        }
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        """Validate required configuration. Call at startup to fail fast."""
        name = self.definition.name
        if not self.client_id:
            raise ValueError(f"client_id is required for {name} sign-in")
        if not self.client_secret:
            raise ValueError(f"client_secret is required for {name} sign-in")
        if not self.callback_path or not self.callback_path.startswith("/"):
            raise ValueError(
                f"callback_path must be an absolute path, got {self.callback_path!r}"
            )
        if not self.authentication_type:
            raise ValueError("authentication_type is required")


@lru_cache()
def get_oauth_options() -> OAuthAuthenticationOptions:
    """Get sign-in options for the configured provider (singleton)."""
    definition = get_provider_definition(os.getenv("OAUTH_PROVIDER", STRAVA.name))
    return OAuthAuthenticationOptions.from_env(definition)
