"""
FastAPI router for circle endpoints.

Provides endpoints for creating, joining and administering circles, and for
direct circle invitations.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from common.utils import list_response, success_response
from common.utils.exceptions import ValidationException
from crcle.dependencies import (
    require_auth,
    get_circle_service,
    get_invite_service,
    get_photo_service,
)
from crcle.schemas.circles import (
    AddMemberRequest,
    CircleDocument,
    CreateCircleRequest,
    JoinCircleRequest,
    SendCircleInviteRequest,
    UpdateCircleRequest,
)
from crcle.schemas.users import UserDocument
from crcle.services.circles.lifecycle import circle_lifecycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/circles", tags=["circles"])

MAX_BACKGROUND_BYTES = 10 * 1024 * 1024


async def format_circle(circle: CircleDocument, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Circle with its derived lifecycle fields."""
    now = now or datetime.now(timezone.utc)
    snapshot = circle_lifecycle(circle, now)

    background_url = circle.backgroundUrl
    if circle.backgroundPath:
        background_url = await get_photo_service().get_download_url(circle.backgroundPath)

    return {
        "id": circle.id,
        "name": circle.name,
        "ownerUid": circle.ownerUid,
        "inviteCode": circle.inviteCode,
        "members": circle.members,
        "createdAt": circle.createdAt.isoformat(),
        "closeAt": circle.closeAt.isoformat(),
        "deleteAt": circle.deleteAt.isoformat(),
        "status": circle.status.value,
        "phase": snapshot.phase.value,
        "isExpiringSoon": snapshot.is_expiring_soon,
        "remainingProgress": snapshot.remaining_progress,
        "backgroundUrl": background_url,
    }


@router.post("")
async def create_circle(
    body: CreateCircleRequest,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Create a circle owned by the caller."""
    circle_service = get_circle_service()

    circle = await circle_service.create_circle(
        name=body.name,
        duration_days=body.durationDays,
        owner_uid=user.uid,
    )

    return success_response(await format_circle(circle), message="Circle created")


@router.get("")
async def list_my_circles(
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Circles the caller belongs to."""
    circle_service = get_circle_service()

    circles = await circle_service.list_member_circles(user.uid)
    now = datetime.now(timezone.utc)

    return list_response([await format_circle(c, now) for c in circles])


@router.get("/invite/{code}")
async def preview_circle_by_invite_code(
    code: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Look up a circle by invite code without joining it."""
    circle_service = get_circle_service()

    circle = await circle_service.get_circle_by_invite_code(code)
    snapshot = circle_lifecycle(circle, datetime.now(timezone.utc))

    return success_response({
        "id": circle.id,
        "name": circle.name,
        "ownerUid": circle.ownerUid,
        "memberCount": len(circle.members),
        "closeAt": circle.closeAt.isoformat(),
        "phase": snapshot.phase.value,
        "isMember": circle.is_member(user.uid),
    })


@router.post("/join")
async def join_circle(
    body: JoinCircleRequest,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Join a circle by invite code."""
    circle_service = get_circle_service()

    circle = await circle_service.join_by_invite_code(body.inviteCode, user.uid)

    return success_response(await format_circle(circle), message="Joined circle")


@router.get("/invites")
async def list_my_invites(
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Pending circle invites addressed to the caller."""
    invite_service = get_invite_service()

    invites = await invite_service.list_pending_invites(user.uid)

    return list_response([
        {
            "id": i.id,
            "circleId": i.circleId,
            "circleName": i.circleName,
            "inviterUid": i.inviterUid,
            "createdAt": i.createdAt.isoformat(),
        }
        for i in invites
    ])


@router.post("/invites/{invite_id}/accept")
async def accept_invite(
    invite_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Accept a circle invite."""
    invite_service = get_invite_service()

    circle_id = await invite_service.accept_invite(invite_id, user.uid)

    return success_response({"circleId": circle_id}, message="Invite accepted")


@router.post("/invites/{invite_id}/decline")
async def decline_invite(
    invite_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Decline a circle invite."""
    invite_service = get_invite_service()

    await invite_service.decline_invite(invite_id, user.uid)

    return success_response(message="Invite declined")


@router.get("/{circle_id}")
async def get_circle(
    circle_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Get a circle the caller belongs to."""
    circle_service = get_circle_service()

    circle = await circle_service.get_circle_for_member(circle_id, user.uid)

    return success_response(await format_circle(circle))


@router.patch("/{circle_id}")
async def rename_circle(
    circle_id: str,
    body: UpdateCircleRequest,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Rename a circle (owner only)."""
    circle_service = get_circle_service()

    circle = await circle_service.rename(circle_id, user.uid, body.name)

    return success_response(await format_circle(circle))


@router.put("/{circle_id}/background")
async def update_background(
    circle_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
    file: UploadFile = File(..., description="Background image (JPEG)"),
):
    """Replace the circle background image (owner only)."""
    circle_service = get_circle_service()

    image_bytes = await file.read(MAX_BACKGROUND_BYTES + 1)
    if not image_bytes:
        raise ValidationException(message="Image is empty", code="EMPTY_IMAGE")
    if len(image_bytes) > MAX_BACKGROUND_BYTES:
        raise ValidationException(message="Image is too large", code="IMAGE_TOO_LARGE")

    circle = await circle_service.update_background(
        circle_id,
        user.uid,
        image_bytes,
        content_type=file.content_type or "image/jpeg",
    )

    return success_response(await format_circle(circle))


@router.delete("/{circle_id}")
async def delete_circle(
    circle_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Delete a circle and all its photos (owner only)."""
    circle_service = get_circle_service()

    result = await circle_service.delete_circle(circle_id, user.uid)

    return success_response({
        "circleId": result.circle_id,
        "blobsDeleted": result.blobs_deleted,
        "blobsFailed": result.blobs_failed,
        "photosDeleted": result.photos_deleted,
    }, message="Circle deleted")


@router.get("/{circle_id}/members")
async def list_members(
    circle_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Member profiles of a circle."""
    circle_service = get_circle_service()

    members = await circle_service.list_members(circle_id, user.uid)

    return list_response([m.to_profile() for m in members])


@router.post("/{circle_id}/members")
async def add_member(
    circle_id: str,
    body: AddMemberRequest,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Add a member by username or uid (owner only)."""
    circle_service = get_circle_service()

    added = await circle_service.add_member(circle_id, body.usernameOrUid, user.uid)

    return success_response(added.to_profile(), message="Member added")


@router.delete("/{circle_id}/members/{member_uid}")
async def kick_member(
    circle_id: str,
    member_uid: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Remove a member (owner only)."""
    circle_service = get_circle_service()

    await circle_service.kick_member(circle_id, member_uid, user.uid)

    return success_response(message="Member removed")


@router.post("/{circle_id}/leave")
async def leave_circle(
    circle_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Leave a circle. Owners must delete instead."""
    circle_service = get_circle_service()

    await circle_service.leave(circle_id, user.uid)

    return success_response(message="Left circle")


@router.post("/{circle_id}/invites")
async def send_invite(
    circle_id: str,
    body: SendCircleInviteRequest,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Invite a user by username; friends and auto-accepters are added directly."""
    invite_service = get_invite_service()

    result = await invite_service.send_invite(circle_id, user.uid, body.username)

    return success_response(result)
