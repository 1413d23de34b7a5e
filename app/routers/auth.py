"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, Request

from app.dependencies import CurrentUser, get_current_user, get_lifecycle_engine
from app.errors import InvalidToken
from app.rate_limit import limiter
from app.schemas.auth import Envelope, EmailRequest, LoginRequest, ResetPasswordRequest, SignupRequest, user_payload
from app.services.auth import CredentialLifecycleEngine

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

RESET_REQUESTED_MESSAGE = "If the email exists, a password reset code has been sent"
RESEND_MESSAGE = "If the account exists and is not yet verified, a verification email has been sent"


@router.post("/signup", response_model=Envelope, response_model_exclude_none=True, status_code=201)
@limiter.limit("5/minute")
async def signup(
    request: Request,
    body: SignupRequest,
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Register a new, unverified account and send its verification email."""
    user_id = await engine.signup(body.email, body.password, body.first_name, body.last_name)
    return Envelope(
        success=True,
        message="User registered successfully. Please check your email for verification.",
        data={"userId": user_id},
    )


@router.post("/login", response_model=Envelope, response_model_exclude_none=True)
@limiter.limit("10/minute")
def login(
    request: Request,
    body: LoginRequest,
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Authenticate and receive a session token."""
    result = engine.login(body.email, body.password)
    return Envelope(
        success=True,
        message="Login successful",
        data={"user": user_payload(result.user), "sessionToken": result.session_token},
    )


@router.get("/verify-email", response_model=Envelope, response_model_exclude_none=True)
def verify_email(
    token: str | None = None,
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Consume an email verification token."""
    if not token:
        raise InvalidToken("Verification token is required")
    engine.verify_email(token)
    return Envelope(success=True, message="Email verified successfully")


@router.post("/forgot-password", response_model=Envelope, response_model_exclude_none=True)
@limiter.limit("3/minute")
async def forgot_password(
    request: Request,
    body: EmailRequest,
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Request a reset code. The response is the same whether or not the account exists."""
    await engine.request_password_reset(body.email)
    return Envelope(success=True, message=RESET_REQUESTED_MESSAGE)


@router.post("/reset-password", response_model=Envelope, response_model_exclude_none=True)
@limiter.limit("5/minute")
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Set a new password with a live reset code."""
    engine.confirm_password_reset(body.token, body.new_password)
    return Envelope(success=True, message="Password reset successfully")


@router.post("/resend-verification", response_model=Envelope, response_model_exclude_none=True)
@limiter.limit("3/minute")
async def resend_verification(
    request: Request,
    body: EmailRequest,
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Re-send the verification link for an unverified account."""
    await engine.resend_verification(body.email)
    return Envelope(success=True, message=RESEND_MESSAGE)


@router.get("/me", response_model=Envelope, response_model_exclude_none=True)
def me(
    user: CurrentUser = Depends(get_current_user),
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> Envelope:
    """Return the authenticated user."""
    return Envelope(success=True, message="Current user", data={"user": user_payload(engine.get_user(user.user_id))})
