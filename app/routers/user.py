"""Account management endpoints for logged-in users."""

from fastapi import APIRouter, Depends, Request

from app.dependencies import CurrentUser, get_current_user, get_lifecycle_engine
from app.rate_limit import limiter
from app.schemas.auth import ChangePasswordRequest, Envelope, UpdateProfileRequest, user_payload
from app.services.auth import CredentialLifecycleEngine

router = APIRouter(prefix="/api/user", tags=["User"])

USER_ENDPOINTS = {
    "changePassword": {"method": "POST", "path": "/api/user/change-password"},
    "updateProfile": {"method": "PUT", "path": "/api/user/profile"},
}


@router.get("/", response_model=Envelope, response_model_exclude_none=True)
def user_index(
    user: CurrentUser = Depends(get_current_user),
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Return the current user with the account endpoints available to them."""
    summary = engine.get_user(user.user_id)
    return Envelope(
        success=True,
        message="User routes",
        data={"user": user_payload(summary), "endpoints": USER_ENDPOINTS},
    )


@router.post("/change-password", response_model=Envelope, response_model_exclude_none=True)
@limiter.limit("5/minute")
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Change the password after confirming the current one."""
    await engine.change_password(user.user_id, body.current_password, body.new_password)
    return Envelope(success=True, message="Password changed successfully")


@router.put("/profile", response_model=Envelope, response_model_exclude_none=True)
def update_profile(
    body: UpdateProfileRequest,
    user: CurrentUser = Depends(get_current_user),
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Update first and/or last name."""
    updated = engine.update_profile(user.user_id, first_name=body.first_name, last_name=body.last_name)
    return Envelope(success=True, message="Profile updated successfully", data={"user": user_payload(updated)})
