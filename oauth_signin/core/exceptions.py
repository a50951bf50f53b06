"""
Domain exceptions and failure reasons for the sign-in flow.

Exceptions are raised by infrastructure adapters and caught at the
orchestrator boundary, where they become a FailureReason on an
AuthenticationResult. None of them reach the host application.
"""

from enum import Enum


class FailureReason(str, Enum):
    """Why an authentication attempt did not produce an identity."""

    MALFORMED_REQUEST = "malformed_request"
    CSRF_MISMATCH = "csrf_mismatch"
    PROVIDER_ERROR = "provider_error"
    TRANSPORT_ERROR = "transport_error"
    INVALID_RESPONSE = "invalid_response"
    MISSING_TOKEN = "missing_token"
    HOOK_REJECTED = "hook_rejected"
    UNEXPECTED_ERROR = "unexpected_error"


class OAuthSignInError(Exception):
    """Base exception for sign-in errors."""

    pass


class TokenExchangeError(OAuthSignInError):
    """
    Raised when the provider cannot be reached or answers with a non-2xx status.

    Covers both the token endpoint and the user-info endpoint.
    """

    pass


class InvalidTokenResponseError(OAuthSignInError):
    """Raised when a provider response is not the JSON document we expect."""

    pass


class StateProtectionError(OAuthSignInError):
    """Raised when the state payload cannot be protected."""

    pass
