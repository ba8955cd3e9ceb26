"""
Works service: the public gallery, portfolio uploads, visibility and likes.
"""

from __future__ import annotations

import time
import uuid
from collections import Counter
from typing import Optional

import structlog

from app.core.auth import CurrentUser
from app.core.backend import BackendClient
from app.core.config import get_settings
from app.core.errors import NotFound, PermissionDenied, ValidationFailed
from app.core.storage import StorageClient, UploadRejected, image_extension
from app.models.profile import Profile
from app.models.work import Work
from connectry_shared.schemas.profiles import ProfileRead
from connectry_shared.schemas.works import (
    LikeState,
    WorkCard,
    WorkDetail,
    WorkRead,
    WorkUpdate,
)

log = structlog.get_logger()
settings = get_settings()


def parse_tags(raw: Optional[str]) -> list[str]:
    """Split a comma separated tag string, dropping blanks."""
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def normalize_tags(raw: Optional[str]) -> Optional[str]:
    tags = parse_tags(raw)
    return ", ".join(tags) if tags else None


def to_work_read(work: Work) -> WorkRead:
    return WorkRead(
        id=work.id,
        creator_id=work.creator_id,
        title=work.title,
        description=work.description,
        image_url=work.image_url,
        tags=parse_tags(work.tags),
        is_public=work.is_public,
        created_at=work.created_at,
        updated_at=work.updated_at,
    )


def to_profile_read(profile: Profile) -> ProfileRead:
    return ProfileRead(
        id=profile.id,
        display_name=profile.display_name,
        role=profile.role,
        bio=profile.bio,
        genre=profile.genre,
        area=profile.area,
        instagram_url=profile.instagram_url,
        created_at=profile.created_at,
    )


def _viewer_id(viewer: Optional[CurrentUser]) -> Optional[uuid.UUID]:
    return viewer.user_id if viewer else None


async def get_work_or_404(
    backend: BackendClient,
    work_id: uuid.UUID,
    viewer_id: Optional[uuid.UUID] = None,
    *,
    fresh: bool = False,
) -> Work:
    """Load a work the viewer may see. Private works exist only for their owner."""
    work = await backend.select_one("works", {"id": work_id}, fresh=fresh)
    if not work or (not work.is_public and work.creator_id != viewer_id):
        raise NotFound("This work could not be found. It may have been deleted.")
    return work


async def _get_owned_work(
    backend: BackendClient, work_id: uuid.UUID, current: CurrentUser
) -> Work:
    work = await get_work_or_404(backend, work_id, current.user_id)
    if work.creator_id != current.user_id:
        raise PermissionDenied("You can only edit your own works.")
    return work


# ---------------------------------------------------------------------------
# Gallery
# ---------------------------------------------------------------------------


async def list_public_works(backend: BackendClient, limit: Optional[int] = None) -> list[WorkCard]:
    """Public works, newest first, with creator info and like counts."""
    works = await backend.select(
        "works", {"is_public": True}, order_by="created_at", descending=True, limit=limit
    )
    if not works:
        return []

    creators = {
        p.id: p
        for p in await backend.select("profiles", {"id": list({w.creator_id for w in works})})
    }
    likes = Counter(
        like.work_id
        for like in await backend.select("work_likes", {"work_id": [w.id for w in works]})
    )

    cards = []
    for w in works:
        creator = creators.get(w.creator_id)
        cards.append(
            WorkCard(
                **to_work_read(w).model_dump(),
                creator_name=creator.display_name if creator else None,
                creator_genre=creator.genre if creator else None,
                creator_area=creator.area if creator else None,
                like_count=likes.get(w.id, 0),
            )
        )
    return cards


async def get_work_detail(
    backend: BackendClient, work_id: uuid.UUID, viewer: Optional[CurrentUser]
) -> WorkDetail:
    viewer_id = _viewer_id(viewer)
    work = await get_work_or_404(backend, work_id, viewer_id)
    creator = await backend.select_one("profiles", {"id": work.creator_id})
    state = await like_state(backend, work.id, viewer_id)
    return WorkDetail(
        work=to_work_read(work),
        creator=to_profile_read(creator) if creator else None,
        like_count=state.like_count,
        liked=state.liked,
        is_owner=work.creator_id == viewer_id,
    )


# ---------------------------------------------------------------------------
# Upload and edit
# ---------------------------------------------------------------------------


def _check_image(data: bytes, content_type: Optional[str]) -> None:
    if not data:
        raise UploadRejected("Please choose an image file.")
    if content_type not in settings.allowed_image_types:
        raise UploadRejected(
            "Only image files can be uploaded.", allowed=settings.allowed_image_types
        )
    if len(data) > settings.max_upload_bytes:
        raise UploadRejected(
            "That image is too large.", max_bytes=settings.max_upload_bytes
        )


async def _store_image(
    storage: StorageClient,
    owner_id: uuid.UUID,
    data: bytes,
    filename: Optional[str],
    content_type: Optional[str],
) -> str:
    _check_image(data, content_type)
    ext = image_extension(filename, content_type)
    path = f"images/{owner_id}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.{ext}"
    await storage.upload(path, data, content_type=content_type)
    return storage.get_public_url(path)


async def create_work(
    backend: BackendClient,
    storage: StorageClient,
    current: CurrentUser,
    *,
    title: str,
    description: Optional[str],
    tags: Optional[str],
    is_public: bool,
    image: bytes,
    filename: Optional[str],
    content_type: Optional[str],
) -> Work:
    """Upload the image, then record the work pointing at its public URL."""
    title = (title or "").strip()
    if not title:
        raise ValidationFailed(
            "Please enter a title.",
            form={"title": title, "description": description, "tags": tags, "is_public": is_public},
        )

    image_url = await _store_image(storage, current.user_id, image, filename, content_type)
    work = await backend.insert(
        "works",
        {
            "creator_id": current.user_id,
            "title": title,
            "description": (description or "").strip() or None,
            "tags": normalize_tags(tags),
            "image_url": image_url,
            "is_public": is_public,
        },
    )
    log.info("work.created", work_id=str(work.id), creator_id=str(current.user_id),
             is_public=is_public)
    return work


async def update_work(
    backend: BackendClient,
    work_id: uuid.UUID,
    payload: WorkUpdate,
    current: CurrentUser,
) -> Work:
    work = await _get_owned_work(backend, work_id, current)

    values: dict = {}
    fields = payload.model_dump(exclude_unset=True)
    if "title" in fields:
        title = (fields["title"] or "").strip()
        if not title:
            raise ValidationFailed("Please enter a title.", form=payload.model_dump())
        values["title"] = title
    if "description" in fields:
        values["description"] = (fields["description"] or "").strip() or None
    if "tags" in fields:
        values["tags"] = normalize_tags(fields["tags"])
    if fields.get("is_public") is not None:
        values["is_public"] = fields["is_public"]

    if values:
        await backend.update("works", values, {"id": work.id})
        log.info("work.updated", work_id=str(work.id), fields=sorted(values))
    return work


async def set_visibility(
    backend: BackendClient, work_id: uuid.UUID, is_public: bool, current: CurrentUser
) -> Work:
    work = await _get_owned_work(backend, work_id, current)
    await backend.update("works", {"is_public": is_public}, {"id": work.id})
    log.info("work.visibility_changed", work_id=str(work.id), is_public=is_public)
    return work


async def replace_work_image(
    backend: BackendClient,
    storage: StorageClient,
    work_id: uuid.UUID,
    current: CurrentUser,
    *,
    image: bytes,
    filename: Optional[str],
    content_type: Optional[str],
) -> Work:
    """Upload a new image for an owned work and point the work at it.

    The previous object stays in the bucket; only ``image_url`` moves.
    """
    work = await _get_owned_work(backend, work_id, current)
    image_url = await _store_image(storage, current.user_id, image, filename, content_type)
    await backend.update("works", {"image_url": image_url}, {"id": work.id})
    log.info("work.image_replaced", work_id=str(work.id))
    return work


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------


async def like_state(
    backend: BackendClient, work_id: uuid.UUID, viewer_id: Optional[uuid.UUID]
) -> LikeState:
    count = await backend.count("work_likes", {"work_id": work_id})
    liked = False
    if viewer_id is not None:
        liked = (
            await backend.select_one("work_likes", {"work_id": work_id, "user_id": viewer_id})
        ) is not None
    return LikeState(work_id=work_id, like_count=count, liked=liked)


async def like_work(backend: BackendClient, work_id: uuid.UUID, current: CurrentUser) -> None:
    """Record a like. Liking twice is a no-op; owners cannot like their own work."""
    work = await get_work_or_404(backend, work_id, current.user_id)
    if work.creator_id == current.user_id:
        raise PermissionDenied("You cannot like your own work.")
    existing = await backend.select_one(
        "work_likes", {"work_id": work.id, "user_id": current.user_id}
    )
    if existing:
        return
    await backend.insert("work_likes", {"work_id": work.id, "user_id": current.user_id})
    log.info("work.liked", work_id=str(work.id), user_id=str(current.user_id))


async def unlike_work(backend: BackendClient, work_id: uuid.UUID, current: CurrentUser) -> None:
    work = await get_work_or_404(backend, work_id, current.user_id)
    removed = await backend.delete(
        "work_likes", {"work_id": work.id, "user_id": current.user_id}
    )
    if removed:
        log.info("work.unliked", work_id=str(work.id), user_id=str(current.user_id))
