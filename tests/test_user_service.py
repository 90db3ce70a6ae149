"""Unit tests for UserService."""

import pytest
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from common.utils.exceptions import ConflictException, NotFoundException
from crcle.services.users.user_service import UserService


@pytest.fixture
def service(mock_db):
    return UserService(mock_db)


class TestLookup:
    @pytest.mark.asyncio
    async def test_resolve_prefers_username(self, service, mock_collection, sample_user_doc):
        mock_collection.find_one.return_value = sample_user_doc("uid_bob", "bob")

        user = await service.resolve_user(" bob ")

        assert user.uid == "uid_bob"
        mock_collection.find_one.assert_called_once_with({"username": "bob"})

    @pytest.mark.asyncio
    async def test_resolve_falls_back_to_uid(self, service, mock_collection, sample_user_doc):
        mock_collection.find_one.side_effect = [None, sample_user_doc("uid_bob", "bob")]

        user = await service.resolve_user("uid_bob")

        assert user.uid == "uid_bob"
        assert mock_collection.find_one.call_args_list[1][0][0] == {"_id": "uid_bob"}

    @pytest.mark.asyncio
    async def test_get_user_missing_raises(self, service, mock_collection):
        mock_collection.find_one.return_value = None

        with pytest.raises(NotFoundException):
            await service.get_user("uid_ghost")

    @pytest.mark.asyncio
    async def test_blank_username_not_queried(self, service, mock_collection):
        assert await service.get_by_username("   ") is None
        mock_collection.find_one.assert_not_called()


class TestEnsureUser:
    @pytest.mark.asyncio
    async def test_provisions_from_claims(self, service, mock_collection):
        mock_collection.find_one_and_update.return_value = {
            "_id": "uid_new",
            "email": "new@example.com",
            "displayName": "New Person",
            "friends": [],
            "blockedUsers": [],
        }

        user = await service.ensure_user(
            "uid_new", {"uid": "uid_new", "email": "new@example.com", "name": "New Person"}
        )

        assert user.uid == "uid_new"
        call_args = mock_collection.find_one_and_update.call_args
        assert call_args[0][0] == {"_id": "uid_new"}
        assert call_args[0][1]["$setOnInsert"]["email"] == "new@example.com"
        assert call_args[1]["upsert"] is True
        assert call_args[1]["return_document"] == ReturnDocument.AFTER


class TestUpdateProfile:
    @pytest.mark.asyncio
    async def test_sets_only_given_fields(self, service, mock_collection, sample_user_doc):
        mock_collection.find_one_and_update.return_value = sample_user_doc(
            "uid_bob", "bob", autoAcceptInvites=True
        )

        user = await service.update_profile("uid_bob", auto_accept_invites=True)

        assert user.autoAcceptInvites is True
        assert mock_collection.find_one_and_update.call_args[0][1] == {
            "$set": {"autoAcceptInvites": True}
        }

    @pytest.mark.asyncio
    async def test_taken_username_conflict(self, service, mock_collection):
        mock_collection.find_one_and_update.side_effect = DuplicateKeyError("username")

        with pytest.raises(ConflictException) as exc:
            await service.update_profile("uid_bob", username="alice")

        assert exc.value.detail["code"] == "USERNAME_TAKEN"

    @pytest.mark.asyncio
    async def test_no_changes_returns_current(self, service, mock_collection, sample_user_doc):
        mock_collection.find_one.return_value = sample_user_doc("uid_bob", "bob")

        user = await service.update_profile("uid_bob")

        assert user.username == "bob"
        mock_collection.find_one_and_update.assert_not_called()
