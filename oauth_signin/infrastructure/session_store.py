"""
Session-backed host collaborators.

Both adapters use the Starlette session (SessionMiddleware, signed cookie
via itsdangerous), so the per-browser-session state belongs to the host.
"""

import logging
from typing import Optional

from starlette.requests import Request

from oauth_signin.core.domain import AuthenticationProperties, ClaimsIdentity

logger = logging.getLogger(__name__)

SIGNED_IN_KEY_PREFIX = "identity."


class SessionCorrelationStore:
    """CorrelationStore keeping correlation ids in the session."""

    def set(self, request: Request, key: str, value: str) -> None:
        request.session[key] = value

    def pop(self, request: Request, key: str) -> Optional[str]:
        value = request.session.pop(key, None)
        return value if isinstance(value, str) else None


class SessionSignInManager:
    """
    SignInManager storing the signed-in identity in the session.

    The identity is stored under its authentication type, so an app can keep
    an external identity apart from its application identity.
    """

    async def sign_in(
        self,
        request: Request,
        properties: AuthenticationProperties,
        identity: ClaimsIdentity,
    ) -> None:
        key = f"{SIGNED_IN_KEY_PREFIX}{identity.authentication_type}"
        request.session[key] = identity.to_dict()
        logger.info(
            "Signed in identity",
            extra={
                "authentication_type": identity.authentication_type,
                "claims": len(identity.claims),
            },
        )

    def get_identity(
        self, request: Request, authentication_type: str
    ) -> Optional[ClaimsIdentity]:
        """Return the identity signed in under authentication_type, if any."""
        data = request.session.get(f"{SIGNED_IN_KEY_PREFIX}{authentication_type}")
        if not isinstance(data, dict):
            return None
        return ClaimsIdentity.from_dict(data)

    def sign_out(self, request: Request, authentication_type: str) -> bool:
        """
        Forget the identity signed in under authentication_type.

        Returns:
            True if an identity was removed
        """
        removed = request.session.pop(
            f"{SIGNED_IN_KEY_PREFIX}{authentication_type}", None
        )
        return removed is not None
