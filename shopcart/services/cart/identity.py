"""
Identity/session provider contract.

The cart only needs to know whether a shopper is signed in (and who) and
which session the current request belongs to.
"""

import secrets
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class IdentityProvider(Protocol):
    """Contract exposing the current owner and session."""

    def current_owner_id(self) -> Optional[str]:
        ...

    def current_session_id(self) -> str:
        ...


class StaticIdentityProvider:
    """
    Identity provider with fixed owner and session values.

    Suitable for request-scoped wiring where the authentication layer has
    already resolved the shopper.
    """

    SESSION_ID_LENGTH = 32

    def __init__(self, session_id: Optional[str] = None, owner_id: Optional[str] = None):
        """
        Initialize provider.

        Args:
            session_id: Session identifier (generated if not provided)
            owner_id: Signed-in owner identifier, if any
        """
        self._session_id = session_id or self.generate_session_id()
        self._owner_id = str(owner_id) if owner_id is not None else None

    @classmethod
    def generate_session_id(cls) -> str:
        """Generate a secure, URL-safe session ID."""
        return secrets.token_urlsafe(cls.SESSION_ID_LENGTH)

    def current_owner_id(self) -> Optional[str]:
        return self._owner_id

    def current_session_id(self) -> str:
        return self._session_id

    def sign_in(self, owner_id: str) -> None:
        self._owner_id = str(owner_id)

    def sign_out(self) -> None:
        self._owner_id = None
