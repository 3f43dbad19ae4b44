"""
Upload/delete/stream orchestration on top of a MediaGateway.

Uploads are all-or-nothing towards the caller while deletions are
best-effort. Neither compensates the other: objects uploaded before a failed
batch stay in storage, and files that fail to delete during a cascade are left
behind.
"""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from homeboard.db import MediaFileRecord
from homeboard.errors import MediaGatewayError, PartialCascadeFailure, UploadError
from homeboard.storage import MediaGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncomingFile:
    data: bytes
    file_name: str
    mime_type: str


@dataclass
class CascadeResult:
    deleted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.deleted) + len(self.missing) + len(self.failed)

    def as_failure(self, listing_id: str) -> PartialCascadeFailure | None:
        if not self.failed:
            return None
        return PartialCascadeFailure(listing_id, list(self.failed))


def upload_media_files(
    gateway: MediaGateway, files: Sequence[IncomingFile]
) -> list[MediaFileRecord]:
    """
    Upload every file concurrently and return references in submission order.

    Raises:
        UploadError: if any single upload fails. All uploads are allowed to
            settle first; successful ones are not rolled back.
    """
    if not files:
        return []

    with concurrent.futures.ThreadPoolExecutor(max_workers=len(files)) as executor:
        futures = [
            executor.submit(gateway.upload, f.data, f.file_name, f.mime_type)
            for f in files
        ]
        concurrent.futures.wait(futures)

    uploaded: list[MediaFileRecord] = []
    failure: tuple[IncomingFile, BaseException] | None = None
    for incoming, future in zip(files, futures):
        exc = future.exception()
        if exc is not None:
            logger.error("Upload of %s failed: %s", incoming.file_name, exc)
            failure = failure or (incoming, exc)
            continue
        uploaded.append(
            MediaFileRecord(
                file_name=incoming.file_name,
                google_drive_id=future.result(),
                mime_type=incoming.mime_type,
            )
        )

    if failure is not None:
        failed_file, exc = failure
        if uploaded:
            logger.warning(
                "Upload batch failed; %d uploaded file(s) left orphaned: %s",
                len(uploaded),
                ", ".join(media.google_drive_id for media in uploaded),
            )
        if isinstance(exc, UploadError):
            raise exc
        raise UploadError(failed_file.file_name, str(exc)) from exc
    return uploaded


def _delete_one(gateway: MediaGateway, file_id: str) -> bool:
    return gateway.delete(file_id)


def delete_media_files(
    gateway: MediaGateway, media_files: Sequence[MediaFileRecord]
) -> CascadeResult:
    """Delete every referenced file concurrently, tolerating individual failures."""
    result = CascadeResult()
    if not media_files:
        return result

    with concurrent.futures.ThreadPoolExecutor(max_workers=len(media_files)) as executor:
        futures = {
            executor.submit(_delete_one, gateway, media.google_drive_id): media
            for media in media_files
        }
        for future in concurrent.futures.as_completed(futures):
            file_id = futures[future].google_drive_id
            try:
                removed = future.result()
            except Exception as exc:
                logger.error("Failed to delete file %s from storage: %s", file_id, exc)
                result.failed.append(file_id)
                continue
            if removed:
                logger.info("Deleted file from storage: %s", file_id)
                result.deleted.append(file_id)
            else:
                logger.info("File %s was already absent from storage", file_id)
                result.missing.append(file_id)
    return result


def stream_media(gateway: MediaGateway, file_id: str) -> Iterator[bytes]:
    """
    Open the upstream byte stream for `file_id`.

    Not-found and transport errors raised while opening propagate to the
    caller. Errors after the first chunk are logged and re-raised so the
    server drops the connection instead of finishing a truncated body cleanly.
    """
    upstream = gateway.fetch_stream(file_id)
    return _relay(upstream, file_id)


def _relay(upstream: Iterator[bytes], file_id: str) -> Iterator[bytes]:
    sent = 0
    try:
        for chunk in upstream:
            sent += len(chunk)
            logger.debug("Streaming data chunk of size: %d", len(chunk))
            yield chunk
    except MediaGatewayError as exc:
        logger.error("Error during stream of %s after %d bytes: %s", file_id, sent, exc)
        raise
    logger.info("Storage stream for %s ended after %d bytes", file_id, sent)
