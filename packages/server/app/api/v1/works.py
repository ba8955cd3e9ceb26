"""
Work endpoints: public gallery, upload, edit, visibility, likes.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from app.core.auth import CurrentUser, get_current_user, get_optional_user, require_creator
from app.core.backend import BackendClient, get_backend
from app.core.storage import StorageClient, get_storage
from app.services.works import (
    create_work,
    get_work_detail,
    get_work_or_404,
    like_state,
    like_work,
    list_public_works,
    replace_work_image,
    set_visibility,
    to_work_read,
    unlike_work,
    update_work,
)
from connectry_shared.schemas.works import (
    LikeState,
    WorkDetail,
    WorkList,
    WorkRead,
    WorkUpdate,
    WorkVisibility,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Gallery and upload
# ---------------------------------------------------------------------------


@router.get("", response_model=WorkList)
async def list_works_endpoint(
    limit: Optional[int] = Query(None, ge=1, le=200),
    backend: BackendClient = Depends(get_backend),
):
    """Public works, newest first. No sign-in needed."""
    return WorkList(data=await list_public_works(backend, limit=limit))


@router.post("", response_model=WorkRead, status_code=201)
async def create_work_endpoint(
    title: str = Form(...),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_public: bool = Form(True),
    image: UploadFile = File(...),
    current: CurrentUser = Depends(require_creator),
    backend: BackendClient = Depends(get_backend),
    storage: StorageClient = Depends(get_storage),
):
    """Upload an image and create a work from it."""
    data = await image.read()
    work = await create_work(
        backend,
        storage,
        current,
        title=title,
        description=description,
        tags=tags,
        is_public=is_public,
        image=data,
        filename=image.filename,
        content_type=image.content_type,
    )
    await backend.commit()
    return to_work_read(work)


# ---------------------------------------------------------------------------
# Single work
# ---------------------------------------------------------------------------


@router.get("/{work_id}", response_model=WorkDetail)
async def get_work_endpoint(
    work_id: uuid.UUID,
    current: Optional[CurrentUser] = Depends(get_optional_user),
    backend: BackendClient = Depends(get_backend),
):
    """A work with its creator and like state. Private works are visible to their owner only."""
    return await get_work_detail(backend, work_id, current)


@router.patch("/{work_id}", response_model=WorkRead)
async def update_work_endpoint(
    work_id: uuid.UUID,
    body: WorkUpdate,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    await update_work(backend, work_id, body, current)
    await backend.commit()
    return to_work_read(await get_work_or_404(backend, work_id, current.user_id, fresh=True))


@router.put("/{work_id}/visibility", response_model=WorkRead)
async def set_visibility_endpoint(
    work_id: uuid.UUID,
    body: WorkVisibility,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """Publish or hide a work."""
    await set_visibility(backend, work_id, body.is_public, current)
    await backend.commit()
    return to_work_read(await get_work_or_404(backend, work_id, current.user_id, fresh=True))


@router.put("/{work_id}/image", response_model=WorkRead)
async def replace_image_endpoint(
    work_id: uuid.UUID,
    image: UploadFile = File(...),
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
    storage: StorageClient = Depends(get_storage),
):
    """Swap the image of an owned work. Other fields are edited with PATCH."""
    data = await image.read()
    await replace_work_image(
        backend,
        storage,
        work_id,
        current,
        image=data,
        filename=image.filename,
        content_type=image.content_type,
    )
    await backend.commit()
    return to_work_read(await get_work_or_404(backend, work_id, current.user_id, fresh=True))


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------


@router.get("/{work_id}/like", response_model=LikeState)
async def get_like_endpoint(
    work_id: uuid.UUID,
    current: Optional[CurrentUser] = Depends(get_optional_user),
    backend: BackendClient = Depends(get_backend),
):
    viewer_id = current.user_id if current else None
    work = await get_work_or_404(backend, work_id, viewer_id)
    return await like_state(backend, work.id, viewer_id)


@router.put("/{work_id}/like", response_model=LikeState)
async def like_endpoint(
    work_id: uuid.UUID,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """Like a work. Repeating the call changes nothing."""
    await like_work(backend, work_id, current)
    await backend.commit()
    return await like_state(backend, work_id, current.user_id)


@router.delete("/{work_id}/like", response_model=LikeState)
async def unlike_endpoint(
    work_id: uuid.UUID,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    await unlike_work(backend, work_id, current)
    await backend.commit()
    return await like_state(backend, work_id, current.user_id)
