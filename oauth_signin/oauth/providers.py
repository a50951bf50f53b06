"""
OAuth2 provider definitions.

A definition holds the per-provider immutable values the handler needs:
endpoints, where the profile lives in the provider's responses, the claim
namespace and the profile model. Adding a provider means adding a
definition, not a handler.
"""

from dataclasses import dataclass
from typing import Optional

from oauth_signin.core.domain import ProviderProfile
from oauth_signin.oauth.profiles import StravaAthlete, UntappdUser


@dataclass(frozen=True)
class OAuthProviderDefinition:
    """Static description of an OAuth2 authorization-code provider."""

    name: str
    display_name: str
    authorization_endpoint: str
    token_endpoint: str
    profile_model: type[ProviderProfile]

    # Claim namespace for provider-specific claims, e.g. "urn:strava"
    claim_namespace: str = ""

    default_scope: tuple[str, ...] = ()

    # "POST" sends a form body; "GET" sends the same values as query parameters
    token_request_method: str = "POST"
    redirect_uri_parameter: str = "redirect_uri"

    # Path to the object holding access_token/token_type in the token response
    token_path: tuple[str, ...] = ()

    # Path to the profile embedded in the token response
    profile_path: Optional[tuple[str, ...]] = None

    # When set, the profile is fetched from here with the access token
    user_info_endpoint: Optional[str] = None
    user_info_profile_path: tuple[str, ...] = ()
    user_info_token_in_query: bool = False

    @property
    def default_callback_path(self) -> str:
        return f"/signin-{self.name}"

    @property
    def namespace(self) -> str:
        return self.claim_namespace or f"urn:{self.name}"


STRAVA = OAuthProviderDefinition(
    name="strava",
    display_name="Strava",
    authorization_endpoint="https://www.strava.com/oauth/authorize",
    token_endpoint="https://www.strava.com/oauth/token",
    profile_model=StravaAthlete,
    claim_namespace="urn:strava",
    default_scope=("read",),
    # Strava returns the athlete with the token, no user-info call needed
    profile_path=("athlete",),
)

UNTAPPD = OAuthProviderDefinition(
    name="untappd",
    display_name="Untappd",
    authorization_endpoint="https://untappd.com/oauth/authenticate/",
    token_endpoint="https://untappd.com/oauth/authorize/",
    profile_model=UntappdUser,
    claim_namespace="urn:untappd",
    token_request_method="GET",
    redirect_uri_parameter="redirect_url",
    token_path=("response",),
    user_info_endpoint="https://api.untappd.com/v4/user/info",
    user_info_profile_path=("response", "user"),
    user_info_token_in_query=True,
)


# Providers known to the registration helpers (for validation)
SUPPORTED_PROVIDERS: dict[str, OAuthProviderDefinition] = {
    STRAVA.name: STRAVA,
    UNTAPPD.name: UNTAPPD,
}


def get_provider_definition(name: str) -> OAuthProviderDefinition:
    """
    Look up a provider definition by name.

    Raises:
        ValueError: If the provider is not supported
    """
    try:
        return SUPPORTED_PROVIDERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown provider: {name}. Supported: {sorted(SUPPORTED_PROVIDERS)}"
        )
