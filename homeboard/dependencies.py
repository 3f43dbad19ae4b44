"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from homeboard.config import get_settings
from homeboard.db import InMemoryListingStore, ListingStore, SqlListingStore
from homeboard.storage import (
    DriveMediaGateway,
    InMemoryMediaGateway,
    MediaGateway,
    S3MediaGateway,
)

logger = logging.getLogger(__name__)

_listing_store: ListingStore | None = None
_media_gateway: MediaGateway | None = None


def get_listing_store() -> ListingStore:
    """
    Return a singleton listing store so records persist across requests.
    """
    global _listing_store
    if _listing_store:
        return _listing_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.warning("DATABASE_URL not set; listings are kept in memory only")
        _listing_store = InMemoryListingStore()
    else:
        _listing_store = SqlListingStore(settings.database_url)
    return _listing_store


def get_media_gateway() -> MediaGateway:
    """
    Return the process-wide media gateway; its authorized client is built once.
    """
    global _media_gateway
    if _media_gateway:
        return _media_gateway

    settings = get_settings()
    backend = "memory" if settings.use_in_memory_backends else settings.media_backend
    if backend == "drive" and settings.google_drive_folder_id:
        _media_gateway = DriveMediaGateway(
            folder_id=settings.google_drive_folder_id,
            credentials_json=settings.google_service_account_json,
        )
    elif backend == "s3" and settings.s3_bucket:
        _media_gateway = S3MediaGateway(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            prefix=settings.s3_prefix,
        )
    else:
        if backend != "memory":
            logger.warning(
                "Media backend %r is not configured; using in-memory storage", backend
            )
        _media_gateway = InMemoryMediaGateway(chunk_size=64 * 1024)
    return _media_gateway
