"""Shared test fixtures for Crcle backend tests."""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId


def make_collection():
    collection = AsyncMock()
    # Motor's find() returns a cursor synchronously (not a coroutine),
    # so use MagicMock for it. Async methods like find_one, insert_one,
    # update_one etc. stay as AsyncMock.
    collection.find = MagicMock()
    return collection


def make_cursor(docs):
    """Chainable cursor whose to_list() resolves to ``docs``."""
    cursor = MagicMock()
    cursor.sort = MagicMock(return_value=cursor)
    cursor.limit = MagicMock(return_value=cursor)
    cursor.to_list = AsyncMock(return_value=list(docs))
    return cursor


def make_session():
    """Session mock usable as ``async with`` and ``session.start_transaction()``."""
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=False)
    session.start_transaction = MagicMock(return_value=transaction)
    return session


@pytest.fixture
def sample_user_id():
    return "uid_owner"


@pytest.fixture
def mock_collection():
    return make_collection()


@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.__getitem__ = MagicMock(return_value=mock_collection)
    return db


@pytest.fixture
def collections():
    """Separate collection mock per collection name."""
    return {}


@pytest.fixture
def mock_session():
    return make_session()


@pytest.fixture
def multi_db(collections, mock_session):
    """Database mock handing out one collection mock per name, with transactions."""
    db = MagicMock()
    db.__getitem__ = MagicMock(
        side_effect=lambda name: collections.setdefault(name, make_collection())
    )
    db.client.start_session = AsyncMock(return_value=mock_session)
    return db


@pytest.fixture
def mock_blob_store():
    store = AsyncMock()
    store.signed_url_expiration = 3600
    return store


@pytest.fixture
def now():
    # Services compare against the wall clock, so fixtures stay relative to it
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def sample_circle_doc(sample_user_id, now):
    close_at = now + timedelta(days=3)
    return {
        "_id": ObjectId(),
        "name": "Summer Trip",
        "ownerUid": sample_user_id,
        "inviteCode": "ABC234",
        "members": [sample_user_id, "uid_member"],
        "createdAt": now,
        "closeAt": close_at,
        "deleteAt": close_at + timedelta(hours=48),
        "cleanedUp": False,
        "status": "open",
    }


@pytest.fixture
def sample_user_doc():
    def _make(uid, username=None, **extra):
        doc = {
            "_id": uid,
            "username": username or uid.replace("uid_", ""),
            "displayName": uid.replace("uid_", "").title(),
            "friends": [],
            "blockedUsers": [],
            "autoAcceptInvites": False,
        }
        doc.update(extra)
        return doc

    return _make
