"""Unit tests for the bearer-token auth dependency."""

import pytest
from unittest.mock import AsyncMock

from common.auth.dependencies import create_auth_dependency
from common.utils.exceptions import UnauthorizedException


@pytest.fixture
def provider():
    auth = AsyncMock()
    auth.verify_token.return_value = {"uid": "uid_owner", "name": "Owner"}
    return auth


@pytest.fixture
def get_claims(provider):
    return create_auth_dependency(lambda: provider)


class TestAuthDependency:
    @pytest.mark.asyncio
    async def test_valid_bearer_token(self, get_claims, provider):
        claims = await get_claims(authorization="Bearer id-token")

        assert claims["uid"] == "uid_owner"
        provider.verify_token.assert_called_once_with("id-token")

    @pytest.mark.asyncio
    async def test_missing_header(self, get_claims, provider):
        with pytest.raises(UnauthorizedException):
            await get_claims(authorization=None)

        provider.verify_token.assert_not_called()

    @pytest.mark.asyncio
    async def test_wrong_scheme(self, get_claims):
        with pytest.raises(UnauthorizedException) as exc_info:
            await get_claims(authorization="Basic abc")

        assert exc_info.value.detail["code"] == "INVALID_AUTH_SCHEME"

    @pytest.mark.asyncio
    async def test_rejected_token(self, get_claims, provider):
        provider.verify_token.side_effect = ValueError("Token has expired")

        with pytest.raises(UnauthorizedException) as exc_info:
            await get_claims(authorization="Bearer stale")

        assert exc_info.value.detail["code"] == "INVALID_TOKEN"
        assert exc_info.value.detail["message"] == "Token has expired"

    @pytest.mark.asyncio
    async def test_subject_used_when_uid_missing(self, get_claims, provider):
        provider.verify_token.return_value = {"sub": "uid_sub"}

        claims = await get_claims(authorization="Bearer t")

        assert claims["uid"] == "uid_sub"
