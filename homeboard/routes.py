"""
HTTP routes for listings and media.
"""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from homeboard.config import Settings, get_settings
from homeboard.db import ListingStore
from homeboard.dependencies import get_listing_store, get_media_gateway
from homeboard.errors import MediaGatewayError, MediaNotFoundError, UploadError
from homeboard.media import (
    IncomingFile,
    delete_media_files,
    stream_media,
    upload_media_files,
)
from homeboard.schemas import (
    HealthResponse,
    HomeCreate,
    HomeResponse,
    MediaFile,
    MessageResponse,
)
from homeboard.storage import DEFAULT_MIME_TYPE, MediaGateway

logger = logging.getLogger(__name__)

router = APIRouter()

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def _content_disposition(file_name: str) -> str:
    file_name = _CONTROL_CHARS.sub("", file_name)
    safe = file_name.replace('"', "'")
    if safe.isascii():
        return f'inline; filename="{safe}"'
    fallback = safe.encode("ascii", "replace").decode("ascii")
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@router.post("/upload", response_model=list[MediaFile])
def upload_files(
    files: Optional[list[UploadFile]] = File(None),
    gateway: MediaGateway = Depends(get_media_gateway),
    settings: Settings = Depends(get_settings),
):
    """
    Upload media files to external storage, in parallel.

    Returns the media references in the order the files were submitted. If
    any upload fails the whole request fails; files already stored are kept.
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded.")

    incoming: list[IncomingFile] = []
    for upload in files:
        data = upload.file.read()
        if len(data) > settings.max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File {upload.filename!r} exceeds {settings.max_upload_bytes} bytes",
            )
        incoming.append(
            IncomingFile(
                data=data,
                file_name=upload.filename or "upload",
                mime_type=upload.content_type or DEFAULT_MIME_TYPE,
            )
        )

    try:
        uploaded = upload_media_files(gateway, incoming)
    except UploadError:
        logger.exception("Upload batch of %d file(s) failed", len(incoming))
        raise HTTPException(status_code=500, detail="Server Error")
    return [MediaFile.from_record(media) for media in uploaded]


@router.get("/files/{file_id}")
def get_file(file_id: str, gateway: MediaGateway = Depends(get_media_gateway)):
    try:
        metadata = gateway.fetch_metadata(file_id)
        chunks = stream_media(gateway, file_id)
    except MediaNotFoundError:
        raise HTTPException(status_code=404, detail="File not found in storage.")
    except MediaGatewayError:
        logger.exception("Error fetching file %s from storage", file_id)
        raise HTTPException(status_code=500, detail="Server Error fetching file.")

    logger.info("Streaming %s as %s", file_id, metadata.mime_type)
    return StreamingResponse(
        chunks,
        media_type=metadata.mime_type,
        headers={"Content-Disposition": _content_disposition(metadata.display_name)},
    )


@router.post("/homes", response_model=HomeResponse)
def create_home(
    payload: HomeCreate,
    store: ListingStore = Depends(get_listing_store),
    settings: Settings = Depends(get_settings),
):
    record = store.insert(payload.to_new_listing())
    logger.info(
        "Created home %s with %d media file(s)", record.listing_id, len(record.media_files)
    )
    return HomeResponse.from_record(record, settings.files_base_url)


@router.get("/homes", response_model=list[HomeResponse])
def list_homes(
    store: ListingStore = Depends(get_listing_store),
    settings: Settings = Depends(get_settings),
):
    return [
        HomeResponse.from_record(record, settings.files_base_url)
        for record in store.find_all()
    ]


@router.get("/homes/{home_id}", response_model=HomeResponse)
def get_home(
    home_id: str,
    store: ListingStore = Depends(get_listing_store),
    settings: Settings = Depends(get_settings),
):
    record = store.find_by_id(home_id)
    if not record:
        raise HTTPException(status_code=404, detail="Home not found")
    return HomeResponse.from_record(record, settings.files_base_url)


@router.delete("/homes/{home_id}", response_model=MessageResponse)
def delete_home(
    home_id: str,
    store: ListingStore = Depends(get_listing_store),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """
    Delete a home and, best-effort, every media file it references.
    """
    record = store.find_by_id(home_id)
    if not record:
        raise HTTPException(status_code=404, detail="Home not found")

    cascade = delete_media_files(gateway, record.media_files)
    failure = cascade.as_failure(home_id)
    if failure:
        # The record goes regardless; leftover files are orphaned.
        logger.warning("%s", failure)

    deleted = store.delete_by_id(home_id)
    if not deleted:
        raise HTTPException(
            status_code=404, detail="Home not found after file deletion attempt"
        )
    logger.info(
        "Removed home %s (%d file(s) deleted, %d missing, %d failed)",
        home_id,
        len(cascade.deleted),
        len(cascade.missing),
        len(cascade.failed),
    )
    return MessageResponse(msg="Home removed")
