"""
Core domain models for the OAuth2 sign-in flow.

These types describe one authentication attempt (properties, claims,
identity, ticket) and are independent of the host web framework.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


XML_SCHEMA_STRING = "http://www.w3.org/2001/XMLSchema#string"

# Keys reserved inside AuthenticationProperties.items
REDIRECT_URI_KEY = ".redirect"
CORRELATION_KEY = ".xsrf"


class ClaimTypes:
    """Standard claim type URIs."""

    NAME_IDENTIFIER = (
        "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/nameidentifier"
    )
    NAME = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/name"
    EMAIL = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress"
    ROLE = "http://schemas.microsoft.com/ws/2008/06/identity/claims/role"


class AuthenticationMode(str, Enum):
    """When the handler answers a 401 response with a challenge."""

    # Only when the host explicitly names this handler's authentication type
    PASSIVE = "passive"
    # Also for bare 401 responses and challenges naming no type
    ACTIVE = "active"


@dataclass
class AuthenticationProperties:
    """
    Host-owned key/value bag carried through the OAuth round trip.

    The redirect target and the correlation id live in ``items`` under
    reserved keys, so the whole bag serializes as a plain string mapping.
    """

    items: dict[str, str] = field(default_factory=dict)

    @property
    def redirect_uri(self) -> Optional[str]:
        return self.items.get(REDIRECT_URI_KEY)

    @redirect_uri.setter
    def redirect_uri(self, value: Optional[str]) -> None:
        if value is None:
            self.items.pop(REDIRECT_URI_KEY, None)
        else:
            self.items[REDIRECT_URI_KEY] = value

    @property
    def correlation_id(self) -> Optional[str]:
        return self.items.get(CORRELATION_KEY)

    @correlation_id.setter
    def correlation_id(self, value: Optional[str]) -> None:
        if value is None:
            self.items.pop(CORRELATION_KEY, None)
        else:
            self.items[CORRELATION_KEY] = value


@dataclass(frozen=True)
class Claim:
    """A single statement about the authenticated user."""

    type: str
    value: str
    value_type: str = XML_SCHEMA_STRING
    issuer: str = "LOCAL AUTHORITY"
    original_issuer: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "value": self.value,
            "value_type": self.value_type,
            "issuer": self.issuer,
            "original_issuer": self.original_issuer or self.issuer,
        }


class ClaimsIdentity:
    """
    An identity made of claims and labelled with an authentication type.

    The authentication type names the identity namespace the claims belong
    to (e.g. "Strava" while in flight, "ExternalCookie" once signed in).
    """

    def __init__(
        self,
        authentication_type: Optional[str],
        claims: Optional[list[Claim]] = None,
        name_claim_type: str = ClaimTypes.NAME,
        role_claim_type: str = ClaimTypes.ROLE,
    ):
        self.authentication_type = authentication_type
        self.claims: list[Claim] = list(claims or [])
        self.name_claim_type = name_claim_type
        self.role_claim_type = role_claim_type

    @property
    def name(self) -> Optional[str]:
        claim = self.find_first(self.name_claim_type)
        return claim.value if claim else None

    def add_claim(self, claim: Claim) -> None:
        self.claims.append(claim)

    def find_first(self, claim_type: str) -> Optional[Claim]:
        for claim in self.claims:
            if claim.type == claim_type:
                return claim
        return None

    def with_authentication_type(self, authentication_type: str) -> "ClaimsIdentity":
        """Copy of this identity relabelled into another namespace."""
        return ClaimsIdentity(
            authentication_type,
            self.claims,
            name_claim_type=self.name_claim_type,
            role_claim_type=self.role_claim_type,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage in a session."""
        return {
            "authentication_type": self.authentication_type,
            "name_claim_type": self.name_claim_type,
            "role_claim_type": self.role_claim_type,
            "claims": [claim.to_dict() for claim in self.claims],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClaimsIdentity":
        return cls(
            data.get("authentication_type"),
            [Claim(**claim) for claim in data.get("claims", [])],
            name_claim_type=data.get("name_claim_type", ClaimTypes.NAME),
            role_claim_type=data.get("role_claim_type", ClaimTypes.ROLE),
        )

    def __repr__(self) -> str:
        return (
            f"ClaimsIdentity(authentication_type={self.authentication_type!r}, "
            f"claims={len(self.claims)})"
        )


@dataclass
class AuthenticationTicket:
    """
    Terminal artifact of one authentication attempt.

    A ticket without an identity means the attempt failed but still carries
    the properties (and with them the redirect target).
    """

    identity: Optional[ClaimsIdentity]
    properties: AuthenticationProperties


@dataclass
class AuthenticationChallenge:
    """Challenge request recorded by the host before returning a 401."""

    authentication_types: tuple[str, ...] = ()
    properties: Optional[AuthenticationProperties] = None


class ProviderProfile(BaseModel):
    """
    Common read surface over a provider profile.

    Subclasses map their own fields onto user_id, display_name,
    email_address and link.
    """

    model_config = ConfigDict(extra="ignore")

    @property
    def user_id(self) -> Optional[str]:
        return None

    @property
    def display_name(self) -> Optional[str]:
        return None

    @property
    def email_address(self) -> Optional[str]:
        return None

    @property
    def link(self) -> Optional[str]:
        return None


class TokenResponse(BaseModel):
    """
    Parsed token-endpoint response.

    Only the fields the flow needs are modelled; everything else stays
    available in ``raw``.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: Optional[str] = None
    token_type: Optional[str] = None
    profile: Optional[dict[str, Any]] = None
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
