"""
Port definitions (interfaces) for the sign-in core.

Ports define the contracts between the handler and the collaborators it
uses but does not own: the state codec, the host's per-session correlation
store, the host's sign-in mechanism and the extensibility hooks.
Infrastructure adapters implement these ports.
"""

from typing import TYPE_CHECKING, Optional, Protocol

from starlette.requests import Request

from oauth_signin.core.domain import AuthenticationProperties, ClaimsIdentity

if TYPE_CHECKING:
    from oauth_signin.core.contexts import AuthenticatedContext, ReturnEndpointContext


class StateDataFormat(Protocol):
    """
    Port for turning AuthenticationProperties into an opaque, tamper-proof string.

    Implemented by FernetStateDataFormat.
    """

    def protect(self, properties: AuthenticationProperties) -> str:
        """Serialize and authenticate the properties."""
        ...

    def unprotect(self, protected: Optional[str]) -> Optional[AuthenticationProperties]:
        """
        Reverse protect().

        Returns:
            The properties, or None if the value is missing, forged or expired
        """
        ...


class CorrelationStore(Protocol):
    """Port for the host's per-browser-session correlation storage."""

    def set(self, request: Request, key: str, value: str) -> None:
        """Remember a correlation value for the current browser session."""
        ...

    def pop(self, request: Request, key: str) -> Optional[str]:
        """Return and forget a correlation value."""
        ...


class SignInManager(Protocol):
    """Port for the host's final "sign in as identity X" step."""

    async def sign_in(
        self,
        request: Request,
        properties: AuthenticationProperties,
        identity: ClaimsIdentity,
    ) -> None:
        """Issue the host session for the identity."""
        ...


class AuthenticationEvents(Protocol):
    """
    Port for the two lifecycle hooks.

    AuthenticationProvider in core.contexts is the default implementation.
    """

    async def authenticated(self, context: "AuthenticatedContext") -> None:
        """Called after claims are built, before the ticket is returned."""
        ...

    async def return_endpoint(self, context: "ReturnEndpointContext") -> None:
        """Called before sign-in and the final redirect."""
        ...
