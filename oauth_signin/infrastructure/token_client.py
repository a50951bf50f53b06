"""
Client for the provider's token and user-info endpoints.

Performs the authorization-code-to-access-token exchange and, for
providers that do not embed the profile in the token response, the
profile fetch.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from oauth_signin.core.domain import TokenResponse
from oauth_signin.core.exceptions import InvalidTokenResponseError, TokenExchangeError
from oauth_signin.oauth.providers import OAuthProviderDefinition

logger = logging.getLogger(__name__)


def resolve_path(document: Any, path: tuple[str, ...]) -> Any:
    """Walk nested objects along path; None when any step is missing."""
    for key in path:
        if not isinstance(document, dict):
            return None
        document = document.get(key)
    return document


class OAuthTokenClient:
    """
    Talks to one provider's back-channel endpoints.

    A new httpx.AsyncClient is opened per call with the configured timeout;
    a transport can be injected for proxies or tests.
    """

    def __init__(
        self,
        definition: OAuthProviderDefinition,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.definition = definition
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        client_id: str,
        client_secret: str,
    ) -> TokenResponse:
        """
        Exchange an authorization code for an access token.

        Args:
            code: Authorization code from the callback
            redirect_uri: Must be identical to the one sent with the challenge
            client_id: OAuth client ID
            client_secret: OAuth client secret

        Returns:
            Parsed token response (access_token may be missing; the caller
            decides what that means)

        Raises:
            TokenExchangeError: On network errors or a non-2xx status
            InvalidTokenResponseError: If the body is not the expected JSON object
        """
        definition = self.definition
        body = {
            "grant_type": "authorization_code",
            "code": code,
            definition.redirect_uri_parameter: redirect_uri,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        if definition.token_request_method == "GET":
            body["response_type"] = "code"

        try:
            async with self._client() as client:
                if definition.token_request_method == "GET":
                    response = await client.get(
                        definition.token_endpoint, params=body
                    )
                else:
                    response = await client.post(
                        definition.token_endpoint,
                        data=body,
                        headers={"Accept": "application/json"},
                    )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TokenExchangeError(
                f"Token request to {definition.name} failed: "
                f"{e.response.status_code} {e.response.text}"
            ) from e
        except httpx.RequestError as e:
            raise TokenExchangeError(
                f"Network error during {definition.name} token exchange: {e}"
            ) from e

        data = self._parse_json(response)
        token_data = resolve_path(data, definition.token_path)
        if not isinstance(token_data, dict):
            raise InvalidTokenResponseError(
                f"Token response from {definition.name} has no token object"
            )

        profile = None
        if definition.profile_path is not None:
            profile = resolve_path(data, definition.profile_path)
            if profile is not None and not isinstance(profile, dict):
                raise InvalidTokenResponseError(
                    f"Profile in {definition.name} token response is not an object"
                )

        try:
            token = TokenResponse.model_validate(
                {
                    "access_token": token_data.get("access_token"),
                    "token_type": token_data.get("token_type"),
                    "profile": profile,
                }
            )
        except ValidationError as e:
            raise InvalidTokenResponseError(
                f"Failed to parse {definition.name} token response: {e}"
            ) from e

        token.raw = data
        logger.debug(
            f"Token response received from {definition.name}",
            extra={"provider": definition.name, "token_type": token.token_type},
        )
        return token

    async def get_user_info(self, access_token: str) -> dict[str, Any]:
        """
        Fetch the user profile from the provider's user-info endpoint.

        Raises:
            TokenExchangeError: On network errors or a non-2xx status
            InvalidTokenResponseError: If no profile object is found
        """
        definition = self.definition
        if not definition.user_info_endpoint:
            raise InvalidTokenResponseError(
                f"Provider {definition.name} has no user-info endpoint"
            )

        params = None
        headers = {"Accept": "application/json"}
        if definition.user_info_token_in_query:
            params = {"access_token": access_token}
        else:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            async with self._client() as client:
                response = await client.get(
                    definition.user_info_endpoint, params=params, headers=headers
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TokenExchangeError(
                f"User info request to {definition.name} failed: "
                f"{e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise TokenExchangeError(
                f"Network error while fetching {definition.name} user info: {e}"
            ) from e

        profile = resolve_path(
            self._parse_json(response), definition.user_info_profile_path
        )
        if not isinstance(profile, dict):
            raise InvalidTokenResponseError(
                f"User info from {definition.name} has no profile object"
            )
        return profile

    def _parse_json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise InvalidTokenResponseError(
                f"Response from {self.definition.name} is not JSON: {e}"
            ) from e
        if not isinstance(data, dict):
            raise InvalidTokenResponseError(
                f"Response from {self.definition.name} is not a JSON object"
            )
        return data
