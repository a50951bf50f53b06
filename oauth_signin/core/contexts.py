"""
Hook contexts and the default hook implementation.

The handler calls two hooks per callback: `authenticated` once the
identity is built, and `return_endpoint` before sign-in and the final
redirect. Hosts customize them by passing coroutines to
AuthenticationProvider or by supplying their own AuthenticationEvents.
"""

from typing import Any, Awaitable, Callable, Optional

from starlette.requests import Request
from starlette.responses import Response

from oauth_signin.core.domain import (
    AuthenticationProperties,
    AuthenticationTicket,
    ClaimsIdentity,
    ProviderProfile,
    TokenResponse,
)


class AuthenticatedContext:
    """
    Everything known about the user right after the token exchange.

    The raw profile is kept whole so hooks can read fields the claims
    mapper does not map; token_response.raw holds the whole token response
    (refresh token, expiry).
    """

    def __init__(
        self,
        request: Request,
        profile: ProviderProfile,
        raw_profile: dict[str, Any],
        access_token: str,
        token_type: Optional[str],
        identity: Optional[ClaimsIdentity] = None,
        properties: Optional[AuthenticationProperties] = None,
        token_response: Optional[TokenResponse] = None,
    ):
        if not access_token or not access_token.strip():
            raise ValueError("AuthenticatedContext requires a non-empty access token")
        self.request = request
        self.profile = profile
        self.raw_profile = raw_profile
        self.access_token = access_token
        self.token_type = token_type
        self.identity = identity
        self.properties = properties or AuthenticationProperties()
        self.token_response = token_response

    @property
    def id(self) -> Optional[str]:
        return self.profile.user_id

    @property
    def display_name(self) -> Optional[str]:
        return self.profile.display_name

    @property
    def email(self) -> Optional[str]:
        return self.profile.email_address

    @property
    def link(self) -> Optional[str]:
        return self.profile.link


class ReturnEndpointContext:
    """
    State of the callback after the ticket exists.

    The hook may swap the identity, rewrite redirect_uri, clear
    sign_in_as_authentication_type to skip sign-in, or complete the
    request itself.
    """

    def __init__(
        self,
        request: Request,
        ticket: AuthenticationTicket,
        sign_in_as_authentication_type: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ):
        self.request = request
        self.identity = ticket.identity
        self.properties = ticket.properties
        self.sign_in_as_authentication_type = sign_in_as_authentication_type
        self.redirect_uri = redirect_uri
        self.response: Optional[Response] = None
        self._completed = False

    @property
    def is_request_completed(self) -> bool:
        return self._completed

    def request_completed(self, response: Optional[Response] = None) -> None:
        """Mark the request as handled, optionally with the response to send."""
        if response is not None:
            self.response = response
        self._completed = True


AuthenticatedHook = Callable[[AuthenticatedContext], Awaitable[None]]
ReturnEndpointHook = Callable[[ReturnEndpointContext], Awaitable[None]]


class AuthenticationProvider:
    """Default AuthenticationEvents: runs the configured coroutines, if any."""

    def __init__(
        self,
        on_authenticated: Optional[AuthenticatedHook] = None,
        on_return_endpoint: Optional[ReturnEndpointHook] = None,
    ):
        self.on_authenticated = on_authenticated
        self.on_return_endpoint = on_return_endpoint

    async def authenticated(self, context: AuthenticatedContext) -> None:
        if self.on_authenticated is not None:
            await self.on_authenticated(context)

    async def return_endpoint(self, context: ReturnEndpointContext) -> None:
        if self.on_return_endpoint is not None:
            await self.on_return_endpoint(context)
