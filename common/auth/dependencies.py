"""
FastAPI authentication dependencies.

Provides a factory that builds an auth dependency for route handlers.
Works with any AuthProvider implementation.

Example:
    from common.auth import FirebaseAuth, create_auth_dependency

    auth = FirebaseAuth(credentials_path="serviceAccount.json")
    get_current_claims = create_auth_dependency(lambda: auth)

    @app.get("/circles")
    async def list_circles(claims: dict = Depends(get_current_claims)):
        ...
"""

from typing import Any, Callable, Dict, Optional
from fastapi import Header

from common.auth.base import AuthProvider
from common.utils.exceptions import UnauthorizedException


def create_auth_dependency(
    get_auth_provider: Callable[[], AuthProvider],
    header_name: str = "Authorization",
    scheme: str = "Bearer",
):
    """
    Factory to create FastAPI auth dependencies.

    Args:
        get_auth_provider: Callable that returns the AuthProvider instance
        header_name: Header to extract token from (default: Authorization)
        scheme: Auth scheme prefix (default: Bearer)

    Returns:
        A FastAPI dependency returning the verified token claims
    """

    async def get_current_claims(
        authorization: Optional[str] = Header(None, alias=header_name),
    ) -> Dict[str, Any]:
        """
        Verify the bearer token and return its claims with "uid" set.

        Raises:
            UnauthorizedException: If token is missing, malformed, or rejected
        """
        if not authorization:
            raise UnauthorizedException("Missing authorization header")

        prefix = f"{scheme} "
        if not authorization.startswith(prefix):
            raise UnauthorizedException(
                f"Invalid authorization scheme. Expected: {scheme}",
                code="INVALID_AUTH_SCHEME",
            )

        token = authorization[len(prefix):].strip()
        if not token:
            raise UnauthorizedException("Token is empty", code="EMPTY_TOKEN")

        auth = get_auth_provider()
        try:
            claims = await auth.verify_token(token)
        except ValueError as e:
            raise UnauthorizedException(str(e), code="INVALID_TOKEN")

        uid = claims.get("uid") or claims.get("sub")
        if not uid:
            raise UnauthorizedException("Token missing user ID", code="INVALID_TOKEN")

        claims["uid"] = uid
        return claims

    return get_current_claims
