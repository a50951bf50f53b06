"""
Claims mapping from provider profiles to a normalized identity.
"""

from oauth_signin.core.domain import (
    XML_SCHEMA_STRING,
    Claim,
    ClaimsIdentity,
    ClaimTypes,
    ProviderProfile,
)


def build_identity(
    profile: ProviderProfile,
    authentication_type: str,
    namespace: str,
) -> ClaimsIdentity:
    """
    Build a ClaimsIdentity from a provider profile.

    Only the id, display name, email and link are mapped, each only when
    non-empty. The display name is added twice: as the standard name claim
    and as "<namespace>:displayName".

    Args:
        profile: Validated provider profile
        authentication_type: Label for the identity and issuer of its claims
        namespace: Prefix for provider-specific claims, e.g. "urn:strava"

    Returns:
        The identity (possibly without claims)
    """
    identity = ClaimsIdentity(authentication_type)

    def add(claim_type: str, value: str | None) -> None:
        if value:
            identity.add_claim(
                Claim(
                    claim_type,
                    value,
                    value_type=XML_SCHEMA_STRING,
                    issuer=authentication_type,
                    original_issuer=authentication_type,
                )
            )

    add(ClaimTypes.NAME_IDENTIFIER, profile.user_id)
    add(ClaimTypes.NAME, profile.display_name)
    add(ClaimTypes.EMAIL, profile.email_address)
    add(f"{namespace}:displayName", profile.display_name)
    add(f"{namespace}:url", profile.link)

    return identity
