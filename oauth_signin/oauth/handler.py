"""
OAuth2 authorization-code handler.

Implements the provider round trip for one OAuthAuthenticationOptions:

- apply_response_challenge: turns a 401 into a redirect to the provider
- invoke: owns the callback path; runs authenticate() and then the
  return endpoint (hook, sign-in, final redirect)

The handler never lets provider, network or parsing errors reach the host;
authenticate() reports them as an AuthenticationResult.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from authlib.common.security import generate_token
from pydantic import ValidationError
from starlette import status
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from oauth_signin.core.claims import build_identity
from oauth_signin.core.contexts import AuthenticatedContext, ReturnEndpointContext
from oauth_signin.core.domain import (
    AuthenticationChallenge,
    AuthenticationMode,
    AuthenticationProperties,
    AuthenticationTicket,
)
from oauth_signin.core.exceptions import (
    FailureReason,
    InvalidTokenResponseError,
    TokenExchangeError,
)
from oauth_signin.core.ports import CorrelationStore, SignInManager
from oauth_signin.infrastructure.session_store import (
    SessionCorrelationStore,
    SessionSignInManager,
)
from oauth_signin.infrastructure.token_client import OAuthTokenClient
from oauth_signin.oauth.config import OAuthAuthenticationOptions


logger = logging.getLogger(__name__)

# request.state attribute where the host records a challenge
CHALLENGE_STATE_KEY = "authentication_challenge"

CORRELATION_KEY_PREFIX = ".correlation."

# 43 characters from a 62-character alphabet carry 256 bits
CORRELATION_ID_LENGTH = 43


@dataclass
class AuthenticationResult:
    """
    Outcome of authenticate().

    ticket is None when the callback could not be tied to a challenge at all
    (missing or forged state). A ticket without identity is a rejected
    attempt that still knows where to send the user.
    """

    ticket: Optional[AuthenticationTicket]
    failure: Optional[FailureReason] = None

    @property
    def succeeded(self) -> bool:
        return self.ticket is not None and self.ticket.identity is not None


def escape_data_string(value: str) -> str:
    """Percent-encode everything except unreserved characters."""
    return quote(value, safe="")


def add_query_string(uri: str, name: str, value: str) -> str:
    """Append one query parameter to uri."""
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}{escape_data_string(name)}={escape_data_string(value)}"


def _single_query_value(request: Request, name: str) -> Optional[str]:
    """The parameter's value if it appears exactly once."""
    values = request.query_params.getlist(name)
    if len(values) == 1:
        return values[0]
    return None


class OAuthAuthenticationHandler:
    """Runs the authorization-code flow for one provider registration."""

    def __init__(
        self,
        options: OAuthAuthenticationOptions,
        correlation_store: Optional[CorrelationStore] = None,
        sign_in_manager: Optional[SignInManager] = None,
        token_client: Optional[OAuthTokenClient] = None,
    ):
        self.options = options
        self.correlation_store = correlation_store or SessionCorrelationStore()
        self.sign_in_manager = sign_in_manager or SessionSignInManager()
        self.token_client = token_client or OAuthTokenClient(
            options.definition,
            timeout=options.backchannel_timeout,
            transport=options.backchannel_transport,
        )

    @property
    def provider_name(self) -> str:
        return self.options.definition.name

    # ========================================================================
    # Request helpers
    # ========================================================================

    @staticmethod
    def request_path(request: Request) -> str:
        """Request path relative to the application's root path."""
        path: str = request.scope.get("path", "")
        root_path: str = request.scope.get("root_path", "")
        if root_path and (path == root_path or path.startswith(root_path + "/")):
            return path[len(root_path):] or "/"
        return path

    @staticmethod
    def base_uri(request: Request) -> str:
        """scheme://host + root path."""
        host = request.headers.get("host") or request.url.netloc
        root_path = request.scope.get("root_path", "")
        return f"{request.url.scheme}://{host}{root_path}"

    def build_redirect_uri(self, request: Request) -> str:
        """
        The callback URL registered with the provider.

        Used both for the challenge and for the token exchange; providers
        reject the exchange unless the two are identical.
        """
        return f"{self.base_uri(request)}{self.options.callback_path}"

    def is_callback_request(self, request: Request) -> bool:
        callback_path = self.options.callback_path
        return bool(callback_path) and self.request_path(request) == callback_path

    # ========================================================================
    # Correlation (OAuth2 RFC 6749 section 10.12, CSRF)
    # ========================================================================

    @property
    def correlation_key(self) -> str:
        return f"{CORRELATION_KEY_PREFIX}{self.options.authentication_type}"

    def generate_correlation_id(
        self, request: Request, properties: AuthenticationProperties
    ) -> None:
        """Store a fresh correlation id in the session and in the properties."""
        correlation_id = generate_token(CORRELATION_ID_LENGTH)
        self.correlation_store.set(request, self.correlation_key, correlation_id)
        properties.correlation_id = correlation_id

    def validate_correlation_id(
        self, request: Request, properties: AuthenticationProperties
    ) -> bool:
        """
        Check the correlation id in the state against the session.

        The stored value is consumed and the id removed from the properties
        whatever the outcome.
        """
        expected = self.correlation_store.pop(request, self.correlation_key)
        correlation_id = properties.correlation_id
        properties.correlation_id = None

        extra = {"provider": self.provider_name}
        if expected is None:
            logger.warning(f"{self.correlation_key} not found in session", extra=extra)
            return False
        if correlation_id is None:
            logger.warning("Correlation property not found", extra=extra)
            return False
        if not hmac.compare_digest(expected.encode(), correlation_id.encode()):
            logger.warning("Correlation failed", extra=extra)
            return False
        return True

    # ========================================================================
    # Challenge
    # ========================================================================

    def lookup_challenge(self, request: Request) -> Optional[AuthenticationChallenge]:
        """
        Find a challenge addressed to this handler.

        A challenge naming authentication types matches only when ours is
        among them. A 401 without a named type matches only in active mode.
        """
        challenge = getattr(request.state, CHALLENGE_STATE_KEY, None)
        authentication_type = self.options.authentication_type

        if challenge is None or not challenge.authentication_types:
            if self.options.authentication_mode == AuthenticationMode.ACTIVE:
                return AuthenticationChallenge(
                    (authentication_type,),
                    challenge.properties if challenge is not None else None,
                )
            return None

        if authentication_type in challenge.authentication_types:
            return challenge
        return None

    def build_authorization_url(self, redirect_uri: str, scope: str, state: str) -> str:
        definition = self.options.definition
        return (
            definition.authorization_endpoint
            + "?response_type=code"
            + "&client_id="
            + escape_data_string(self.options.client_id)
            + f"&{definition.redirect_uri_parameter}="
            + escape_data_string(redirect_uri)
            + "&scope="
            + escape_data_string(scope)
            + "&state="
            + escape_data_string(state)
        )

    async def apply_response_challenge(
        self, request: Request, response: Response
    ) -> Optional[Response]:
        """
        Replace a 401 response with a redirect to the provider.

        Returns:
            The redirect, or None when the response is left alone
        """
        if response.status_code != status.HTTP_401_UNAUTHORIZED:
            return None

        challenge = self.lookup_challenge(request)
        if challenge is None:
            return None

        options = self.options
        base_uri = self.base_uri(request)
        query_string = request.scope.get("query_string", b"").decode("latin-1")
        current_uri = base_uri + self.request_path(request)
        if query_string:
            current_uri += f"?{query_string}"
        redirect_uri = self.build_redirect_uri(request)

        properties = challenge.properties or AuthenticationProperties()
        if not properties.redirect_uri:
            properties.redirect_uri = current_uri

        self.generate_correlation_id(request, properties)

        # A scope passed with the challenge is already comma separated
        scope = properties.items.get("scope", ",".join(options.scope))

        state = options.state_data_format.protect(properties)
        authorization_url = self.build_authorization_url(redirect_uri, scope, state)

        logger.info(
            f"Redirecting to {options.definition.display_name} for sign-in",
            extra={"provider": self.provider_name, "redirect_uri": redirect_uri},
        )
        return RedirectResponse(url=authorization_url, status_code=status.HTTP_302_FOUND)

    # ========================================================================
    # Callback
    # ========================================================================

    async def invoke(self, request: Request) -> Optional[Response]:
        """
        Handle the request if it targets the callback path.

        Returns:
            The response to send, or None to let the pipeline continue
        """
        if not self.is_callback_request(request):
            return None
        return await self.invoke_return_endpoint(request)

    async def authenticate(self, request: Request) -> AuthenticationResult:
        """
        Validate the callback and exchange the code for an identity.

        Never raises; every failure is reported on the result.
        """
        options = self.options
        definition = options.definition
        extra = {"provider": self.provider_name}
        properties: Optional[AuthenticationProperties] = None

        try:
            state = _single_query_value(request, "state")
            code = _single_query_value(request, "code")
            error = _single_query_value(request, "error")

            if state is None or (code is None and error is None):
                logger.warning(
                    "Callback requires exactly one code and one state parameter",
                    extra=extra,
                )
                return AuthenticationResult(None, FailureReason.MALFORMED_REQUEST)

            properties = options.state_data_format.unprotect(state)
            if properties is None:
                logger.warning("State parameter could not be unprotected", extra=extra)
                return AuthenticationResult(None, FailureReason.MALFORMED_REQUEST)

            if not self.validate_correlation_id(request, properties):
                return AuthenticationResult(
                    AuthenticationTicket(None, properties), FailureReason.CSRF_MISMATCH
                )

            if error is not None:
                logger.warning(
                    f"{definition.display_name} returned an error: {error}",
                    extra={
                        **extra,
                        "error_description": request.query_params.get(
                            "error_description"
                        ),
                    },
                )
                return AuthenticationResult(
                    AuthenticationTicket(None, properties), FailureReason.PROVIDER_ERROR
                )

            token = await self.token_client.exchange_code(
                code=code,
                redirect_uri=self.build_redirect_uri(request),
                client_id=options.client_id,
                client_secret=options.client_secret,
            )

            if not token.access_token or not token.access_token.strip():
                logger.warning("Access token was not found", extra=extra)
                return AuthenticationResult(
                    AuthenticationTicket(None, properties), FailureReason.MISSING_TOKEN
                )

            raw_profile = token.profile
            if raw_profile is None and definition.user_info_endpoint:
                raw_profile = await self.token_client.get_user_info(token.access_token)
            if raw_profile is None:
                raise InvalidTokenResponseError(
                    f"No user profile in {definition.display_name} response"
                )

            try:
                profile = definition.profile_model.model_validate(raw_profile)
            except ValidationError as e:
                raise InvalidTokenResponseError(
                    f"Invalid {definition.display_name} user profile: {e}"
                ) from e

            context = AuthenticatedContext(
                request,
                profile,
                raw_profile,
                token.access_token,
                token.token_type,
                token_response=token,
            )
            context.identity = build_identity(
                profile, options.authentication_type, definition.namespace
            )
            context.properties = properties

            await options.provider.authenticated(context)

            if context.identity is None:
                logger.warning("Identity rejected by the authenticated hook", extra=extra)
                return AuthenticationResult(
                    AuthenticationTicket(None, context.properties),
                    FailureReason.HOOK_REJECTED,
                )

            logger.info(
                f"{definition.display_name} authentication succeeded",
                extra={**extra, "user_id": context.id},
            )
            return AuthenticationResult(
                AuthenticationTicket(context.identity, context.properties)
            )

        except TokenExchangeError as e:
            return self._failed(e, properties, FailureReason.TRANSPORT_ERROR)
        except InvalidTokenResponseError as e:
            return self._failed(e, properties, FailureReason.INVALID_RESPONSE)
        except Exception as e:
            return self._failed(e, properties, FailureReason.UNEXPECTED_ERROR)

    def _failed(
        self,
        error: Exception,
        properties: Optional[AuthenticationProperties],
        reason: FailureReason,
    ) -> AuthenticationResult:
        logger.warning(
            "Authentication failed",
            exc_info=error,
            extra={"provider": self.provider_name, "reason": reason.value},
        )
        logger.error(str(error))
        ticket = AuthenticationTicket(None, properties) if properties is not None else None
        return AuthenticationResult(ticket, reason)

    async def invoke_return_endpoint(self, request: Request) -> Optional[Response]:
        """
        Finish the callback: hook, sign-in and redirect.

        Returns:
            The response to send, or None when neither the hook nor a redirect
            completed the request
        """
        result = await self.authenticate(request)
        ticket = result.ticket
        if ticket is None:
            logger.warning(
                "Invalid return state, unable to redirect.",
                extra={"provider": self.provider_name},
            )
            return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

        context = ReturnEndpointContext(
            request,
            ticket,
            sign_in_as_authentication_type=self.options.sign_in_as_authentication_type,
            redirect_uri=ticket.properties.redirect_uri,
        )

        await self.options.provider.return_endpoint(context)

        if context.sign_in_as_authentication_type is not None and context.identity is not None:
            grant_identity = context.identity
            if grant_identity.authentication_type != context.sign_in_as_authentication_type:
                grant_identity = grant_identity.with_authentication_type(
                    context.sign_in_as_authentication_type
                )
            await self.sign_in_manager.sign_in(request, context.properties, grant_identity)

        if not context.is_request_completed and context.redirect_uri is not None:
            redirect_uri = context.redirect_uri
            if context.identity is None:
                # Tell the app that sign-in failed in some way
                redirect_uri = add_query_string(redirect_uri, "error", "access_denied")
            context.request_completed(
                RedirectResponse(url=redirect_uri, status_code=status.HTTP_302_FOUND)
            )

        if not context.is_request_completed:
            return None
        return context.response or Response(status_code=status.HTTP_200_OK)
