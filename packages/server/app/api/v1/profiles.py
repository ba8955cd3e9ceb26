"""
Profile endpoints: public profile pages and the signed-in user's header data.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from app.core.auth import CurrentUser, get_current_user, get_optional_user
from app.core.backend import BackendClient, get_backend
from app.services.profiles import current_user_badge, get_profile_detail
from app.services.requests import count_unread
from connectry_shared.schemas.profiles import CurrentUserBadge, ProfileDetail, UnreadCount

router = APIRouter()
me_router = APIRouter()


@router.get("/{profile_id}", response_model=ProfileDetail)
async def get_profile_endpoint(
    profile_id: uuid.UUID,
    current: Optional[CurrentUser] = Depends(get_optional_user),
    backend: BackendClient = Depends(get_backend),
):
    """A profile with its works."""
    return await get_profile_detail(backend, profile_id, current)


@me_router.get("", response_model=CurrentUserBadge)
async def get_me_endpoint(
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """The signed-in user as the header shows them."""
    return await current_user_badge(backend, current)


@me_router.get("/unread-count", response_model=UnreadCount)
async def unread_count_endpoint(
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """Unread messages across all of the user's requests."""
    return UnreadCount(unread_count=await count_unread(backend, current.user_id))
