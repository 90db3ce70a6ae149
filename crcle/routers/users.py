"""
FastAPI router for the caller's own profile.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response
from crcle.dependencies import require_auth, get_user_service
from crcle.schemas.users import UpdateMeRequest, UserDocument

router = APIRouter(prefix="/users", tags=["users"])


def _format_me(user: UserDocument) -> dict:
    return {
        **user.to_profile(),
        "email": user.email,
        "phone": user.phone,
        "friends": user.friends,
        "blockedUsers": user.blockedUsers,
        "autoAcceptInvites": user.autoAcceptInvites,
    }


@router.get("/me")
async def get_me(
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Get the caller's profile."""
    return success_response(_format_me(user))


@router.patch("/me")
async def update_me(
    body: UpdateMeRequest,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Update display name, username or the auto-accept-invites flag."""
    user_service = get_user_service()

    updated = await user_service.update_profile(
        user.uid,
        display_name=body.displayName,
        username=body.username,
        auto_accept_invites=body.autoAcceptInvites,
    )

    return success_response(_format_me(updated))
