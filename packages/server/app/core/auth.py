"""
Authentication and Authorization for Connectry.

Supports:
- Email/Password sign-up and sign-in with bcrypt hashes
- JWT session tokens, via http-only cookie (browsers) or Bearer header
- Session revocation list in Redis (sign-out, refresh)
- Role dependencies (creator / client)
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AuthRequired, PermissionDenied
from app.core.redis import REVOKED_KEY_PREFIX, get_redis
from app.models.profile import Profile
from app.models.user import User
from connectry_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "ct_session"
CSRF_COOKIE = "ct_csrf"

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed session JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: Optional[int] = None) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    ttl = ttl_seconds or settings.jwt_expire_minutes * 60
    await redis.setex(f"{REVOKED_KEY_PREFIX}{jti}", ttl, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"{REVOKED_KEY_PREFIX}{jti}") > 0


# ---------------------------------------------------------------------------
# CSRF Token
# ---------------------------------------------------------------------------

def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class CurrentUser:
    """Container for an authenticated identity and its profile."""

    def __init__(self, user: User, profile: Optional[Profile], jti: Optional[str] = None):
        self.user = user
        self.profile = profile
        self.user_id = user.id
        self.jti = jti

    @property
    def role(self) -> Optional[Role]:
        if self.profile is None:
            return None
        return Role(self.profile.role)

    @property
    def is_creator(self) -> bool:
        return self.role == Role.CREATOR

    @property
    def is_client(self) -> bool:
        return self.role == Role.CLIENT


def _extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


def _next_path(request: Request) -> str:
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


async def _authenticate(token: str, session: AsyncSession) -> Optional[CurrentUser]:
    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        return None

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        log.info("auth.revoked_session", jti=jti)
        return None

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        return None

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        return None

    result = await session.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    return CurrentUser(user=user, profile=profile, jti=jti)


async def get_optional_user(
    request: Request,
    authorization: Optional[str] = Depends(authorization_header),
    session: AsyncSession = Depends(get_session),
) -> Optional[CurrentUser]:
    """Resolve the session if there is one; anonymous visitors get None."""
    token = _extract_token(request, authorization)
    if not token:
        return None
    current = await _authenticate(token, session)
    if current is not None:
        request.state.auth = current
    return current


async def get_current_user(
    request: Request,
    current: Optional[CurrentUser] = Depends(get_optional_user),
) -> CurrentUser:
    """Main authentication dependency. Anonymous callers are sent to the login page."""
    if current is None:
        raise AuthRequired(next_path=_next_path(request))
    return current


# ---------------------------------------------------------------------------
# Authorization dependencies (role checks)
# ---------------------------------------------------------------------------

async def require_creator(
    current: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Only creator accounts can access this endpoint."""
    if not current.is_creator:
        raise PermissionDenied("Only creator accounts can do this.")
    return current


async def require_client(
    current: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Only client accounts can access this endpoint."""
    if not current.is_client:
        raise PermissionDenied("Only client accounts can send requests.")
    return current
