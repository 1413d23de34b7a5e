"""Credvault - account registration, verification and password management API."""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.database import close_db, init_db
from app.errors import CredentialError, ValidationError
from app.rate_limit import limiter
from app.routers import auth_router, user_router

APP_VERSION = "1.0.0"

# Logging
logger = logging.getLogger("credvault")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

settings = get_settings()
boundary = settings.boundary()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    for warning in settings.validate():
        logger.warning(warning)
    init_db()
    logger.info("Database ready")
    yield
    close_db()


app = FastAPI(title="Credvault", version=APP_VERSION, lifespan=lifespan)
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response


# --- Audit logging middleware ---
class AuditLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PREFIXES = ("/api/auth/", "/api/user/")

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        path = request.url.path
        method = request.method
        if method in ("POST", "PUT") and path.startswith(self.AUDIT_PREFIXES):
            logger.info(
                "AUDIT %s %s -> %d (%.0fms) from %s",
                method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(AuditLogMiddleware)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=boundary.allowed_origins,
    allow_credentials=boundary.cors_credentials,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# API routers
app.include_router(auth_router)
app.include_router(user_router)


def _envelope(status_code: int, message: str, errors: list | None = None) -> JSONResponse:
    content: dict = {"success": False, "message": message}
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


# --- Error handlers ---
@app.exception_handler(CredentialError)
async def credential_error_handler(request: Request, exc: CredentialError) -> JSONResponse:
    """Render lifecycle failures as the response envelope."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    errors = exc.errors if isinstance(exc, ValidationError) else None
    return _envelope(exc.status_code, exc.message, errors)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed input field by field."""
    errors = [
        {"field": str(error["loc"][-1]) if error.get("loc") else "", "message": error.get("msg", "Invalid value")}
        for error in exc.errors()
    ]
    return _envelope(400, "Validation failed", errors)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded."""
    return _envelope(429, "Too many requests from this IP, please try again later.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown route, wrong method) in the envelope."""
    return _envelope(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Opaque 500; the exception text is only exposed in debug mode."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = f"Internal server error: {exc}" if settings.DEBUG else "Internal server error"
    return _envelope(500, message)


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {
        "success": True,
        "status": "OK",
        "app": "credvault",
        "version": APP_VERSION,
        "environment": settings.APP_ENV,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/api")
def api_index(request: Request) -> dict:
    """List the available endpoints."""
    return {
        "success": True,
        "message": "Credvault API",
        "version": APP_VERSION,
        "baseUrl": str(request.base_url).rstrip("/"),
        "endpoints": {
            "auth": {
                "signup": {"method": "POST", "path": "/api/auth/signup"},
                "login": {"method": "POST", "path": "/api/auth/login"},
                "verifyEmail": {"method": "GET", "path": "/api/auth/verify-email"},
                "resendVerification": {"method": "POST", "path": "/api/auth/resend-verification"},
                "forgotPassword": {"method": "POST", "path": "/api/auth/forgot-password"},
                "resetPassword": {"method": "POST", "path": "/api/auth/reset-password"},
                "me": {"method": "GET", "path": "/api/auth/me"},
            },
            "user": {
                "index": {"method": "GET", "path": "/api/user/"},
                "changePassword": {"method": "POST", "path": "/api/user/change-password"},
                "updateProfile": {"method": "PUT", "path": "/api/user/profile"},
            },
            "health": {"method": "GET", "path": "/api/health"},
        },
    }
