"""
Starlette middleware that plugs the OAuth2 handler into the pipeline.

Flow per request:
1. Callback path → handled by the handler (the app never sees it)
2. Anything else → passed to the app
3. A 401 from the app with a matching challenge → replaced by a redirect
   to the provider

SessionMiddleware must wrap this middleware (add it after this one),
since the correlation id and the signed-in identity live in the session.
"""

import logging
from typing import Optional

from starlette import status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from oauth_signin.core.domain import AuthenticationChallenge, AuthenticationProperties
from oauth_signin.core.ports import CorrelationStore, SignInManager
from oauth_signin.oauth.config import OAuthAuthenticationOptions
from oauth_signin.oauth.handler import CHALLENGE_STATE_KEY, OAuthAuthenticationHandler
from oauth_signin.oauth.providers import STRAVA


logger = logging.getLogger(__name__)


class OAuthAuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Pipeline integration for one OAuthAuthenticationHandler.

    Attributes:
        handler: The handler serving this provider registration
    """

    def __init__(
        self,
        app: ASGIApp,
        options: OAuthAuthenticationOptions,
        correlation_store: Optional[CorrelationStore] = None,
        sign_in_manager: Optional[SignInManager] = None,
    ) -> None:
        super().__init__(app)
        options.validate()
        self.handler = OAuthAuthenticationHandler(
            options,
            correlation_store=correlation_store,
            sign_in_manager=sign_in_manager,
        )

        logger.info(
            f"OAuth sign-in registered: provider={options.definition.name}, "
            f"callback_path={options.callback_path}, "
            f"mode={options.authentication_mode.value}"
        )

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        response = await self.handler.invoke(request)
        if response is not None:
            return response

        response = await call_next(request)

        redirect = await self.handler.apply_response_challenge(request, response)
        if redirect is not None:
            return redirect
        return response


def challenge(
    request: Request,
    *authentication_types: str,
    properties: Optional[AuthenticationProperties] = None,
) -> Response:
    """
    Ask for sign-in with the named authentication types.

    Records the challenge on the request and returns a 401; the middleware
    registered for a matching type turns it into a redirect.

    Args:
        request: Current request
        authentication_types: Handlers to challenge (none = active handlers)
        properties: Redirect target and extra values; a "scope" item
            overrides the configured scope for this challenge

    Returns:
        An empty 401 response to return from the endpoint
    """
    setattr(
        request.state,
        CHALLENGE_STATE_KEY,
        AuthenticationChallenge(tuple(authentication_types), properties),
    )
    return Response(status_code=status.HTTP_401_UNAUTHORIZED)


def use_oauth_authentication(
    app,
    options: OAuthAuthenticationOptions,
    correlation_store: Optional[CorrelationStore] = None,
    sign_in_manager: Optional[SignInManager] = None,
):
    """
    Register the sign-in middleware on a Starlette/FastAPI app.

    Raises:
        ValueError: If the options are invalid
    """
    if app is None:
        raise ValueError("app is required")
    if options is None:
        raise ValueError("options is required")

    options.validate()
    app.add_middleware(
        OAuthAuthenticationMiddleware,
        options=options,
        correlation_store=correlation_store,
        sign_in_manager=sign_in_manager,
    )
    return app


def use_strava_authentication(app, client_id: str, client_secret: str):
    """Register Strava sign-in with default options."""
    return use_oauth_authentication(
        app,
        OAuthAuthenticationOptions(
            client_id=client_id,
            client_secret=client_secret,
            definition=STRAVA,
        ),
    )
