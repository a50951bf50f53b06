"""
State protection for the OAuth2 round trip.

Uses Fernet symmetric encryption from the cryptography library.
AuthenticationProperties are serialized to JSON, encrypted and
authenticated into the opaque `state` parameter, and recovered on the
callback. Any tampering makes unprotect() return None.
"""

import json
import logging
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from oauth_signin.core.domain import AuthenticationProperties
from oauth_signin.core.exceptions import StateProtectionError

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


class FernetStateDataFormat:
    """
    StateDataFormat backed by a Fernet key.

    The key must be shared by every instance that may receive the callback,
    otherwise state protected by one instance cannot be read by another.
    """

    def __init__(self, key: str | bytes, max_age: Optional[int] = None):
        """
        Args:
            key: URL-safe base64-encoded 32-byte Fernet key
            max_age: Reject state older than this many seconds (None = no limit)

        Raises:
            ValueError: If the key is not a valid Fernet key
        """
        if isinstance(key, str):
            key = key.encode()
        try:
            self._fernet = Fernet(key)
        except Exception as e:
            raise ValueError(f"Invalid state encryption key: {e}")
        self.max_age = max_age

    @classmethod
    def from_env(cls) -> "FernetStateDataFormat":
        """
        Build the codec from STATE_ENCRYPTION_KEY and STATE_MAX_AGE.

        Without STATE_ENCRYPTION_KEY an ephemeral key is generated, which only
        works while a single process serves both the challenge and the callback.
        """
        key = os.getenv("STATE_ENCRYPTION_KEY")
        max_age = os.getenv("STATE_MAX_AGE")
        if not key:
            logger.warning(
                "STATE_ENCRYPTION_KEY not set, using an ephemeral state key"
            )
            key = generate_state_key()
        return cls(key, max_age=int(max_age) if max_age else None)

    def protect(self, properties: AuthenticationProperties) -> str:
        """
        Serialize and encrypt the properties.

        Raises:
            StateProtectionError: If the properties cannot be serialized
        """
        payload = {"v": STATE_FORMAT_VERSION, "items": properties.items}
        try:
            data = json.dumps(payload, separators=(",", ":")).encode()
            result: str = self._fernet.encrypt(data).decode()
            return result
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to protect state: {e}")
            raise StateProtectionError(f"Failed to protect state: {e}") from e

    def unprotect(self, protected: Optional[str]) -> Optional[AuthenticationProperties]:
        """
        Decrypt and deserialize a protected state value.

        Returns:
            The properties, or None for a missing, forged, expired or
            unreadable value
        """
        if not protected:
            return None

        try:
            if self.max_age is not None:
                data = self._fernet.decrypt(protected.encode(), ttl=self.max_age)
            else:
                data = self._fernet.decrypt(protected.encode())
        except InvalidToken:
            logger.warning("Failed to unprotect state: invalid token or key mismatch")
            return None

        try:
            payload = json.loads(data)
        except ValueError:
            logger.warning("Failed to unprotect state: payload is not JSON")
            return None

        if not isinstance(payload, dict) or payload.get("v") != STATE_FORMAT_VERSION:
            logger.warning("Failed to unprotect state: unsupported payload version")
            return None

        items = payload.get("items")
        if not isinstance(items, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in items.items()
        ):
            logger.warning("Failed to unprotect state: malformed properties")
            return None

        return AuthenticationProperties(items=dict(items))


def generate_state_key() -> str:
    """
    Generate a new Fernet key.

    The generated key can be used as STATE_ENCRYPTION_KEY.

    Returns:
        URL-safe base64-encoded 32-byte key
    """
    result: str = Fernet.generate_key().decode()
    return result
