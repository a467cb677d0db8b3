"""
api/routes/v1/upload.py -- Raw-bytes file upload into the blob store.

Route:
  POST /api/v1/upload?filename=<name>&cardId=<id>   body = file bytes

With cardId the caller must be the card's assignee or an admin, and the file
is recorded against the card after the blob store returns its URL. Without
cardId (admins only) the bytes are stored and the URL is returned for use in
a later PUT /cards/{id}.

Permission is checked before any bytes reach the blob store.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from api.models import UploadResponse
from auth import guard
from auth.dependencies import get_current_user
from auth.models import User
from cards.blob import BlobStore, BlobStoreError
from cards.store import CardStore
from core.config import get_settings
from core.errors import InternalError, ProfileDashError, ValidationError

logger = logging.getLogger("profiledash.api.upload")

_settings = get_settings()

router = APIRouter()


class PayloadTooLarge(ProfileDashError):
    status_code = 413
    code = "payload_too_large"
    default_message = "Uploaded file is too large."


async def _read_body(request: Request, limit: int) -> bytes:
    """Read the request body, giving up as soon as it exceeds limit bytes.

    A declared Content-Length is checked first; chunked bodies are counted
    as they arrive, so at most one chunk past the limit is ever buffered.
    """
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge(detail=f"Limit is {limit} bytes.")
    received = bytearray()
    async for chunk in request.stream():
        received.extend(chunk)
        if len(received) > limit:
            raise PayloadTooLarge(detail=f"Limit is {limit} bytes.")
    return bytes(received)


@router.post("/upload", response_model=UploadResponse)
async def upload(
    request: Request,
    filename: Optional[str] = Query(default=None, max_length=255),
    card_id: Optional[int] = Query(default=None, alias="cardId"),
    current_user: User = Depends(get_current_user),
) -> UploadResponse:
    if not filename or not filename.strip():
        raise ValidationError("Filename is required.")

    card_store: CardStore = request.app.state.cards
    blob_store: BlobStore = request.app.state.blob_store

    if card_id is not None:
        await run_in_threadpool(card_store.get_card_for_upload, card_id, current_user)
    elif not guard.is_admin(current_user):
        raise ValidationError("cardId is required.")

    data = await _read_body(request, _settings.max_upload_bytes)
    if not data:
        raise ValidationError("File body is empty.")

    content_type = request.headers.get("content-type") or None
    try:
        stored = await run_in_threadpool(blob_store.put, filename, data, content_type)
    except BlobStoreError as exc:
        raise InternalError("File storage failed.") from exc

    file_id = None
    if card_id is not None:
        record = await run_in_threadpool(
            card_store.attach_file,
            card_id,
            filename.strip(),
            stored.url,
            current_user,
            stored.size,
            stored.content_type,
        )
        file_id = record.id

    logger.info(
        "Upload stored: %s (%d bytes) card_id=%s by user_id=%s",
        stored.pathname,
        stored.size,
        card_id,
        current_user.id,
    )
    return UploadResponse(
        url=stored.url,
        pathname=stored.pathname,
        size=stored.size,
        content_type=stored.content_type,
        file_id=file_id,
        card_id=card_id,
    )
