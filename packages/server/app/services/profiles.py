"""
Profile service: public profile pages, sign-up profiles and the header badge.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog

from app.core.auth import CurrentUser
from app.core.backend import BackendClient
from app.core.errors import NotFound
from app.models.profile import Profile
from app.services.requests import count_unread
from app.services.works import to_profile_read
from connectry_shared.schemas.common import ROLE_LABELS, Role
from connectry_shared.schemas.profiles import CurrentUserBadge, ProfileDetail, ProfileWork

log = structlog.get_logger()


async def get_profile_or_404(backend: BackendClient, profile_id: uuid.UUID) -> Profile:
    profile = await backend.select_one("profiles", {"id": profile_id})
    if not profile:
        raise NotFound("This profile could not be found.")
    return profile


async def get_profile_detail(
    backend: BackendClient, profile_id: uuid.UUID, viewer: Optional[CurrentUser]
) -> ProfileDetail:
    """A profile and its works. Owners also see their private works."""
    profile = await get_profile_or_404(backend, profile_id)
    is_me = viewer is not None and viewer.user_id == profile.id

    works = []
    if profile.role == Role.CREATOR.value:
        filters: dict = {"creator_id": profile.id}
        if not is_me:
            filters["is_public"] = True
        rows = await backend.select("works", filters, order_by="created_at", descending=True)
        works = [
            ProfileWork(
                id=w.id,
                title=w.title,
                image_url=w.image_url,
                is_public=w.is_public,
                created_at=w.created_at,
            )
            for w in rows
        ]

    return ProfileDetail(profile=to_profile_read(profile), works=works, is_me=is_me)


async def create_profile(
    backend: BackendClient, user_id: uuid.UUID, role: Role, display_name: Optional[str]
) -> Profile:
    profile = await backend.insert(
        "profiles",
        {"id": user_id, "role": role.value, "display_name": display_name},
    )
    log.info("profile.created", user_id=str(user_id), role=role.value)
    return profile


def badge_initial(display_name: Optional[str], email: Optional[str]) -> str:
    source = (display_name or "").strip() or (email or "").strip()
    return source[0].upper() if source else "?"


async def current_user_badge(backend: BackendClient, current: CurrentUser) -> CurrentUserBadge:
    """Signed-in identity for the header, with the unread message count."""
    display_name = current.profile.display_name if current.profile else None
    role = current.role
    return CurrentUserBadge(
        id=current.user_id,
        display_name=display_name,
        role=role,
        role_label=ROLE_LABELS[role] if role else "Not set",
        initial=badge_initial(display_name, current.user.email),
        unread_count=await count_unread(backend, current.user_id),
    )
