"""
FastAPI router for friend and block-list endpoints.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import list_response, success_response
from crcle.dependencies import require_auth, get_friend_service
from crcle.schemas.friends import BlockUserRequest, FriendRequestDocument, SendFriendRequestRequest
from crcle.schemas.users import UserDocument

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/friends", tags=["friends"])


def _format_request(request: FriendRequestDocument) -> dict:
    return {
        "id": request.id,
        "senderUid": request.senderUid,
        "receiverUid": request.receiverUid,
        "status": request.status.value,
        "timestamp": request.timestamp.isoformat(),
    }


@router.post("/requests")
async def send_friend_request(
    body: SendFriendRequestRequest,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Send a friend request by username."""
    friend_service = get_friend_service()

    request = await friend_service.send_request(user.uid, body.username)

    return success_response(_format_request(request), message="Friend request sent")


@router.get("/requests/incoming")
async def list_incoming_requests(
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Pending requests addressed to the caller."""
    friend_service = get_friend_service()
    requests = await friend_service.list_incoming(user.uid)
    return list_response([_format_request(r) for r in requests])


@router.get("/requests/outgoing")
async def list_outgoing_requests(
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Pending requests the caller sent."""
    friend_service = get_friend_service()
    requests = await friend_service.list_outgoing(user.uid)
    return list_response([_format_request(r) for r in requests])


@router.post("/requests/{request_id}/accept")
async def accept_friend_request(
    request_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Accept a pending request."""
    friend_service = get_friend_service()
    await friend_service.accept_request(request_id, user.uid)
    return success_response(message="Friend request accepted")


@router.post("/requests/{request_id}/decline")
async def decline_friend_request(
    request_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Decline a pending request."""
    friend_service = get_friend_service()
    await friend_service.decline_request(request_id, user.uid)
    return success_response(message="Friend request declined")


@router.post("/requests/{request_id}/cancel")
async def cancel_friend_request(
    request_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Withdraw a request the caller sent."""
    friend_service = get_friend_service()
    await friend_service.cancel_request(request_id, user.uid)
    return success_response(message="Friend request cancelled")


@router.get("")
async def list_friends(
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """The caller's friends."""
    friend_service = get_friend_service()
    friends = await friend_service.list_friends(user.uid)
    return list_response([f.to_profile() for f in friends])


@router.get("/blocked")
async def list_blocked(
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Users the caller blocked."""
    friend_service = get_friend_service()
    blocked = await friend_service.list_blocked(user.uid)
    return list_response([b.to_profile() for b in blocked])


@router.post("/blocked")
async def block_user(
    body: BlockUserRequest,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Block a user, ending any friendship and pending requests."""
    friend_service = get_friend_service()
    await friend_service.block_user(user.uid, body.uid)
    return success_response(message="User blocked")


@router.delete("/blocked/{target_uid}")
async def unblock_user(
    target_uid: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Unblock a user."""
    friend_service = get_friend_service()
    await friend_service.unblock_user(user.uid, target_uid)
    return success_response(message="User unblocked")


@router.delete("/{friend_uid}")
async def remove_friend(
    friend_uid: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Remove a friend on both sides."""
    friend_service = get_friend_service()
    await friend_service.remove_friend(user.uid, friend_uid)
    return success_response(message="Friend removed")
