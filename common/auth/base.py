"""
Identity provider interface.

Sign-up, sign-in and password flows live with the external identity
provider; the backend only verifies the tokens it issues.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any


class AuthProvider(ABC):
    """Verifies bearer tokens issued by an identity provider."""

    @abstractmethod
    async def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify an authentication token.

        Args:
            token: The bearer token sent by the client

        Returns:
            Decoded claims; at minimum ``uid``, plus any of ``name``,
            ``picture``, ``email`` and ``phone_number`` the provider knows

        Raises:
            ValueError: If the token is invalid, expired, or revoked
        """
