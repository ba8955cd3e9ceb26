"""
Authentication endpoints.

- Email/Password sign-up (picks the account role) and sign-in
- JWT session management (session lookup, refresh, logout)
"""

from __future__ import annotations

import uuid
from typing import Optional

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    CurrentUser,
    authorization_header,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    get_current_user,
    get_optional_user,
    hash_password,
    revoke_jwt,
    verify_password,
)
from app.core.backend import BackendClient, get_backend
from app.core.config import get_settings
from app.core.errors import BackendWriteError, Conflict, InvalidCredentials, ValidationFailed
from app.services.profiles import create_profile, current_user_badge
from connectry_shared.schemas.common import Role
from connectry_shared.schemas.profiles import CurrentUserBadge

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


def safe_next(next_path: Optional[str]) -> str:
    """Only same-site relative paths are honoured as post-login redirects."""
    if next_path and next_path.startswith("/") and not next_path.startswith("//"):
        return next_path
    return "/"


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    role: Role
    display_name: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    next: Optional[str] = None


class AuthResponse(BaseModel):
    user_id: str
    email: str
    role: Optional[Role] = None
    access_token: str
    token_type: str = "bearer"
    csrf_token: str
    redirect_to: str = "/"
    message: str


class SessionResponse(BaseModel):
    authenticated: bool
    user: Optional[CurrentUserBadge] = None


def _issue_session(response: Response, user_id: uuid.UUID, role: Optional[str]) -> tuple[str, str]:
    token, _jti = create_jwt(user_id=user_id, role=role or "")
    csrf = generate_csrf_token()
    _set_session_cookies(response, token, csrf)
    return token, csrf


# ---------------------------------------------------------------------------
# Email/Password sign-up and sign-in
# ---------------------------------------------------------------------------

@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(
    body: SignupRequest,
    response: Response,
    backend: BackendClient = Depends(get_backend),
):
    """Register with email/password. The chosen role is fixed for the account's lifetime."""
    if await backend.select_one("users", {"email": body.email}):
        raise Conflict("Email already registered.")

    form = {"email": body.email, "role": body.role.value, "display_name": body.display_name}
    if len(body.password) < settings.min_password_length:
        raise ValidationFailed(
            f"Password must be at least {settings.min_password_length} characters.",
            form=form,
        )

    display_name = (body.display_name or "").strip() or None
    try:
        user = await backend.insert(
            "users",
            {"email": body.email, "password_hash": hash_password(body.password)},
            form=form,
        )
    except BackendWriteError as exc:
        # Another signup took the address between the check and the insert.
        if exc.constraint_violation:
            raise Conflict("Email already registered.") from exc
        raise
    await create_profile(backend, user.id, body.role, display_name)
    await backend.commit()

    token, csrf = _issue_session(response, user.id, body.role.value)
    log.info("user.registered", user_id=str(user.id), role=body.role.value)
    return AuthResponse(
        user_id=str(user.id),
        email=user.email,
        role=body.role,
        access_token=token,
        csrf_token=csrf,
        message="Registration successful",
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    backend: BackendClient = Depends(get_backend),
):
    """Authenticate with email/password and receive a JWT session."""
    user = await backend.select_one("users", {"email": body.email})
    if not user or not user.password_hash:
        raise InvalidCredentials()

    if not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", user_id=str(user.id), reason="bad_password")
        raise InvalidCredentials()

    profile = await backend.select_one("profiles", {"id": user.id})
    role = profile.role if profile else None

    token, csrf = _issue_session(response, user.id, role)
    log.info("auth.login_success", user_id=str(user.id))
    return AuthResponse(
        user_id=str(user.id),
        email=user.email,
        role=role,
        access_token=token,
        csrf_token=csrf,
        redirect_to=safe_next(body.next),
        message="Login successful",
    )


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.get("/session", response_model=SessionResponse)
async def get_session_info(
    current: Optional[CurrentUser] = Depends(get_optional_user),
    backend: BackendClient = Depends(get_backend),
):
    """Who is signed in, if anyone."""
    if current is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(authenticated=True, user=await current_user_badge(backend, current))


@router.post("/refresh", response_model=AuthResponse)
async def refresh_session(
    response: Response,
    current: CurrentUser = Depends(get_current_user),
):
    """Refresh the current JWT session by issuing a new token and revoking the old one."""
    role = current.role.value if current.role else None
    token, csrf = _issue_session(response, current.user_id, role)
    if current.jti:
        await revoke_jwt(current.jti)

    log.info("auth.session_refreshed", user_id=str(current.user_id))
    return AuthResponse(
        user_id=str(current.user_id),
        email=current.user.email,
        role=role,
        access_token=token,
        csrf_token=csrf,
        message="Session refreshed",
    )


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    authorization: Optional[str] = Depends(authorization_header),
):
    """Invalidate the current session."""
    token = request.cookies.get(SESSION_COOKIE)
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            log.info("auth.logout_stale_token")
        else:
            jti = payload.get("jti")
            if jti:
                await revoke_jwt(jti)
                log.info("auth.logout", user_id=payload.get("sub"))

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return {"message": "Logged out"}
