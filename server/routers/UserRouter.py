from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import get_current_uid, get_identity
from server.models.requests import InitUserRequest, UpdateUserRequest
from server.models.responses import InitUserResponse, ProfileExportResponse, SuccessResponse
from shared.clients.auth.models.AuthIdentity import AuthIdentity
from shared.errors import PermissionDeniedError
from shared.models.user import PublicUser, TierStatus, User

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/init-user")
async def init_user(
    request: Request,
    body: InitUserRequest,
    identity: AuthIdentity = Depends(get_identity),
) -> InitUserResponse:
    """Create the caller's user document on first contact, refresh email/photo afterwards.

    Args:
        request (Request): FastAPI request (provides app.state.user_service).
        body (InitUserRequest): Display name, email and photo URL from the client.
        identity (AuthIdentity): The verified caller.

    Returns:
        InitUserResponse: Whether the user was just created.
    """
    user_service = request.app.state.user_service
    _, is_new = await user_service.init_user(
        uid=identity.uid,
        name=body.name or identity.name,
        email=body.email or identity.email,
        photo_url=body.photo_url or identity.photo_url,
    )
    return InitUserResponse(is_new_user=is_new)


@router.get("/user")
async def get_user(request: Request, uid: str = Depends(get_current_uid)) -> User:
    """The caller's own user document, including quota state."""
    return await request.app.state.user_service.get_user(uid)


@router.get("/publicUser")
async def get_public_user(request: Request, username: str) -> PublicUser:
    """Public view of a user by username."""
    return await request.app.state.user_service.get_public(username)


@router.post("/updateuser")
async def update_user(
    request: Request,
    body: UpdateUserRequest,
    uid: str = Depends(get_current_uid),
) -> SuccessResponse:
    """Replace the caller's profile fields, from a profile dict or an intake form."""
    if body.uid and body.uid != uid:
        raise PermissionDeniedError("You can only update your own profile.")
    intake = body.data.get("intake")
    await request.app.state.user_service.update_profile(
        uid,
        profile=None if intake else body.data,
        intake=intake,
    )
    return SuccessResponse(message="User profile updated successfully")


@router.get("/check-pro")
async def check_pro(request: Request, uid: str = Depends(get_current_uid)) -> TierStatus:
    """Tier flag, limits and both usage counters of the caller."""
    return await request.app.state.quota_ledger.status(uid)


@router.post("/usage/reconcile")
async def reconcile_usage(request: Request, uid: str = Depends(get_current_uid)) -> TierStatus:
    """Recompute the caller's counters from the live items."""
    return await request.app.state.ingestion_service.reconcile_usage(uid)


@router.get("/getprofile")
async def get_profile(request: Request, uid: str = Depends(get_current_uid)) -> ProfileExportResponse:
    """Representative instruction and profile of the caller, for external assistants."""
    export = await request.app.state.answer_service.export_profile(uid)
    return ProfileExportResponse(message=export["message"], profile=export["profile"])
