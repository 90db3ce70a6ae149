"""Unit tests for FriendService (request state machine and blocking)."""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, call
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from common.utils.exceptions import ConflictException, NotFoundException
from crcle.database import FRIEND_REQUESTS, USERS
from crcle.schemas.friends import pair_key
from crcle.schemas.users import UserDocument
from crcle.services.friends.friend_service import FriendService


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def alice():
    return UserDocument(uid="uid_alice", username="alice")


@pytest.fixture
def bob():
    return UserDocument(uid="uid_bob", username="bob")


@pytest.fixture
def mock_user_service(alice, bob):
    service = AsyncMock()
    service.get_by_username.return_value = bob
    service.get_user.return_value = alice
    service.find_user.return_value = bob
    return service


@pytest.fixture
def requests(multi_db):
    return multi_db[FRIEND_REQUESTS]


@pytest.fixture
def users(multi_db):
    return multi_db[USERS]


@pytest.fixture
def service(multi_db, mock_user_service):
    return FriendService(multi_db, mock_user_service)


def _pending_doc(sender="uid_alice", receiver="uid_bob"):
    return {
        "_id": ObjectId(),
        "senderUid": sender,
        "receiverUid": receiver,
        "status": "pending",
        "timestamp": datetime(2026, 3, 1, tzinfo=timezone.utc),
        "pairKey": pair_key(sender, receiver),
    }


def test_pair_key_is_order_independent():
    assert pair_key("uid_bob", "uid_alice") == pair_key("uid_alice", "uid_bob") == "uid_alice:uid_bob"


# ─────────────────────────────────────────────────────────────────
# send_request
# ─────────────────────────────────────────────────────────────────


class TestSendRequest:
    @pytest.mark.asyncio
    async def test_creates_pending_request(self, service, requests):
        requests.find_one.return_value = None
        requests.insert_one.return_value = MagicMock(inserted_id=ObjectId())

        request = await service.send_request("uid_alice", "bob")

        assert request.senderUid == "uid_alice"
        assert request.receiverUid == "uid_bob"
        assert request.status.value == "pending"
        inserted = requests.insert_one.call_args[0][0]
        assert inserted["pairKey"] == "uid_alice:uid_bob"

    @pytest.mark.asyncio
    async def test_unknown_username_not_found(self, service, mock_user_service, requests):
        mock_user_service.get_by_username.return_value = None

        with pytest.raises(NotFoundException) as exc:
            await service.send_request("uid_alice", "nobody")

        assert exc.value.detail["code"] == "USER_NOT_FOUND"
        requests.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_blocked_by_receiver_indistinguishable_from_unknown(
        self, service, mock_user_service, requests
    ):
        mock_user_service.get_by_username.return_value = UserDocument(
            uid="uid_bob", username="bob", blockedUsers=["uid_alice"]
        )
        requests.find_one.return_value = None

        with pytest.raises(NotFoundException) as blocked_exc:
            await service.send_request("uid_alice", "bob")

        mock_user_service.get_by_username.return_value = None
        with pytest.raises(NotFoundException) as unknown_exc:
            await service.send_request("uid_alice", "nobody")

        assert blocked_exc.value.status_code == unknown_exc.value.status_code
        assert blocked_exc.value.detail == unknown_exc.value.detail
        requests.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_self_request_conflict(self, service, mock_user_service, alice):
        mock_user_service.get_by_username.return_value = alice

        with pytest.raises(ConflictException) as exc:
            await service.send_request("uid_alice", "alice")

        assert exc.value.detail["code"] == "CANNOT_FRIEND_SELF"

    @pytest.mark.asyncio
    async def test_already_friends_conflict(self, service, mock_user_service):
        mock_user_service.get_user.return_value = UserDocument(uid="uid_alice", friends=["uid_bob"])

        with pytest.raises(ConflictException) as exc:
            await service.send_request("uid_alice", "bob")

        assert exc.value.detail["code"] == "ALREADY_FRIENDS"

    @pytest.mark.asyncio
    async def test_reverse_pending_request_conflict(self, service, requests):
        requests.find_one.return_value = _pending_doc(sender="uid_bob", receiver="uid_alice")

        with pytest.raises(ConflictException) as exc:
            await service.send_request("uid_alice", "bob")

        assert exc.value.detail["code"] == "REQUEST_ALREADY_PENDING"
        assert requests.find_one.call_args[0][0] == {"pairKey": "uid_alice:uid_bob", "status": "pending"}

    @pytest.mark.asyncio
    async def test_unique_index_race_maps_to_conflict(self, service, requests):
        requests.find_one.return_value = None
        requests.insert_one.side_effect = DuplicateKeyError("dup pairKey")

        with pytest.raises(ConflictException) as exc:
            await service.send_request("uid_alice", "bob")

        assert exc.value.detail["code"] == "REQUEST_ALREADY_PENDING"


# ─────────────────────────────────────────────────────────────────
# Responding to requests
# ─────────────────────────────────────────────────────────────────


class TestRespond:
    @pytest.mark.asyncio
    async def test_accept_deletes_request_and_befriends_both(
        self, service, requests, users, mock_session
    ):
        doc = _pending_doc()
        requests.find_one.return_value = doc

        await service.accept_request(str(doc["_id"]), "uid_bob")

        assert requests.find_one.call_args[0][0]["receiverUid"] == "uid_bob"
        requests.delete_one.assert_called_once_with(
            {"_id": doc["_id"], "status": "pending"}, session=mock_session
        )
        users.update_one.assert_has_calls([
            call({"_id": "uid_alice"}, {"$addToSet": {"friends": "uid_bob"}}, session=mock_session),
            call({"_id": "uid_bob"}, {"$addToSet": {"friends": "uid_alice"}}, session=mock_session),
        ])

    @pytest.mark.asyncio
    async def test_sender_cannot_accept_own_request(self, service, requests, users):
        requests.find_one.return_value = None

        with pytest.raises(NotFoundException) as exc:
            await service.accept_request(str(ObjectId()), "uid_alice")

        assert exc.value.detail["code"] == "REQUEST_NOT_FOUND"
        users.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_accept_after_concurrent_block_adds_no_friendship(self, service, requests, users):
        doc = _pending_doc()
        requests.find_one.return_value = doc
        # The blocker's transaction removed the request after it was read
        requests.delete_one.return_value = MagicMock(deleted_count=0)

        with pytest.raises(NotFoundException) as exc:
            await service.accept_request(str(doc["_id"]), "uid_bob")

        assert exc.value.detail["code"] == "REQUEST_NOT_FOUND"
        users.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_decline_deletes_without_friendship(self, service, requests, users):
        doc = _pending_doc()
        requests.find_one.return_value = doc

        await service.decline_request(str(doc["_id"]), "uid_bob")

        requests.delete_one.assert_called_once_with({"_id": doc["_id"]})
        users.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_filters_by_sender(self, service, requests):
        doc = _pending_doc()
        requests.find_one.return_value = doc

        await service.cancel_request(str(doc["_id"]), "uid_alice")

        assert requests.find_one.call_args[0][0]["senderUid"] == "uid_alice"
        requests.delete_one.assert_called_once()


# ─────────────────────────────────────────────────────────────────
# Blocking
# ─────────────────────────────────────────────────────────────────


class TestBlock:
    @pytest.mark.asyncio
    async def test_block_cleans_friendship_and_requests(
        self, service, requests, users, mock_session
    ):
        await service.block_user("uid_alice", "uid_bob")

        users.update_one.assert_has_calls([
            call(
                {"_id": "uid_alice"},
                {"$addToSet": {"blockedUsers": "uid_bob"}, "$pull": {"friends": "uid_bob"}},
                session=mock_session,
            ),
            call({"_id": "uid_bob"}, {"$pull": {"friends": "uid_alice"}}, session=mock_session),
        ])
        requests.delete_many.assert_called_once_with(
            {"pairKey": "uid_alice:uid_bob"}, session=mock_session
        )

    @pytest.mark.asyncio
    async def test_cannot_block_self(self, service, users):
        with pytest.raises(ConflictException) as exc:
            await service.block_user("uid_alice", "uid_alice")

        assert exc.value.detail["code"] == "CANNOT_BLOCK_SELF"
        users.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_blocked_conflict(self, service, mock_user_service):
        mock_user_service.get_user.return_value = UserDocument(
            uid="uid_alice", blockedUsers=["uid_bob"]
        )

        with pytest.raises(ConflictException) as exc:
            await service.block_user("uid_alice", "uid_bob")

        assert exc.value.detail["code"] == "ALREADY_BLOCKED"

    @pytest.mark.asyncio
    async def test_unblock_pulls_from_list(self, service, users):
        await service.unblock_user("uid_alice", "uid_bob")

        users.update_one.assert_called_once_with(
            {"_id": "uid_alice"}, {"$pull": {"blockedUsers": "uid_bob"}}
        )

    @pytest.mark.asyncio
    async def test_remove_friend_both_sides(self, service, users, mock_session):
        await service.remove_friend("uid_alice", "uid_bob")

        assert users.update_one.call_count == 2
        mock_session.start_transaction.assert_called_once()
