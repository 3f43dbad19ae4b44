"""
Media gateway abstraction over external object storage.

Google Drive is the production backend; an S3-compatible backend and an
in-memory test double implement the same interface.
"""

from __future__ import annotations

import io
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Protocol
from urllib.parse import quote, unquote

import boto3
import google.auth
import httplib2
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from homeboard.errors import MediaNotFoundError, TransportError, UploadError

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
DEFAULT_CHUNK_SIZE = 256 * 1024
DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class MediaMetadata:
    mime_type: str
    display_name: str


class MediaGateway(Protocol):
    """Defines the file operations the API needs from object storage."""

    def upload(self, data: bytes, file_name: str, mime_type: str) -> str:
        ...

    def fetch_metadata(self, file_id: str) -> MediaMetadata:
        ...

    def fetch_stream(self, file_id: str) -> Iterator[bytes]:
        ...

    def delete(self, file_id: str) -> bool:
        ...


@dataclass
class InMemoryMediaGateway:
    """Test double for media storage interactions."""

    chunk_size: int = 4
    stored_objects: dict = None
    fail_uploads_for: set = field(default_factory=set)
    fail_deletes_for: set = field(default_factory=set)
    # file_id -> number of chunks served before the stream breaks
    break_streams_after: dict = field(default_factory=dict)
    upload_calls: list = field(default_factory=list)
    delete_calls: list = field(default_factory=list)

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}
        self._lock = threading.Lock()

    def upload(self, data: bytes, file_name: str, mime_type: str) -> str:
        with self._lock:
            self.upload_calls.append(file_name)
        if file_name in self.fail_uploads_for:
            raise UploadError(file_name, "injected failure")
        file_id = uuid.uuid4().hex
        with self._lock:
            self.stored_objects[file_id] = (bytes(data), file_name, mime_type)
        return file_id

    def fetch_metadata(self, file_id: str) -> MediaMetadata:
        stored = self.stored_objects.get(file_id)
        if stored is None:
            raise MediaNotFoundError(file_id)
        _, file_name, mime_type = stored
        return MediaMetadata(mime_type=mime_type, display_name=file_name)

    def fetch_stream(self, file_id: str) -> Iterator[bytes]:
        stored = self.stored_objects.get(file_id)
        if stored is None:
            raise MediaNotFoundError(file_id)
        return self._iter_chunks(file_id, stored[0])

    def _iter_chunks(self, file_id: str, data: bytes) -> Iterator[bytes]:
        limit = self.break_streams_after.get(file_id)
        for index, offset in enumerate(range(0, len(data), self.chunk_size)):
            if limit is not None and index >= limit:
                raise TransportError(f"connection reset while streaming {file_id}")
            yield data[offset : offset + self.chunk_size]

    def delete(self, file_id: str) -> bool:
        with self._lock:
            self.delete_calls.append(file_id)
        if file_id in self.fail_deletes_for:
            raise TransportError(f"injected delete failure for {file_id}")
        with self._lock:
            return self.stored_objects.pop(file_id, None) is not None

    def reset(self) -> None:
        self.stored_objects.clear()
        self.fail_uploads_for.clear()
        self.fail_deletes_for.clear()
        self.break_streams_after.clear()
        self.upload_calls.clear()
        self.delete_calls.clear()


def _is_not_found(exc: HttpError) -> bool:
    return getattr(exc.resp, "status", None) == 404


class DriveMediaGateway:
    """
    Google Drive v3 backend.

    The credentials and the discovery-built service are created once and
    shared; every call executes on its own authorized HTTP connection because
    httplib2 connections are not thread-safe.
    """

    def __init__(
        self,
        folder_id: str,
        credentials_json: Optional[str] = None,
        *,
        credentials=None,
        service=None,
        http_factory: Optional[Callable[[], object]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: float = 60.0,
    ):
        if not folder_id:
            raise ValueError("GOOGLE_DRIVE_FOLDER_ID is required for DriveMediaGateway")
        self.folder_id = folder_id
        self.chunk_size = chunk_size
        self.timeout = timeout
        if credentials is None and service is None:
            credentials = self._load_credentials(credentials_json)
        self._credentials = credentials
        self._service = service or build(
            "drive", "v3", credentials=credentials, cache_discovery=False
        )
        self._http_factory = http_factory or self._authorized_http

    @staticmethod
    def _load_credentials(credentials_json: Optional[str]):
        if credentials_json:
            info = json.loads(credentials_json)
            return service_account.Credentials.from_service_account_info(
                info, scopes=DRIVE_SCOPES
            )
        # Falls back to GOOGLE_APPLICATION_CREDENTIALS / metadata server.
        credentials, _ = google.auth.default(scopes=DRIVE_SCOPES)
        return credentials

    def _authorized_http(self):
        return AuthorizedHttp(self._credentials, http=httplib2.Http(timeout=self.timeout))

    def upload(self, data: bytes, file_name: str, mime_type: str) -> str:
        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)
        try:
            created = (
                self._service.files()
                .create(
                    body={"name": file_name, "parents": [self.folder_id]},
                    media_body=media,
                    fields="id",
                )
                .execute(http=self._http_factory())
            )
            file_id = created["id"]
            self._service.permissions().create(
                fileId=file_id, body={"role": "reader", "type": "anyone"}
            ).execute(http=self._http_factory())
        except (HttpError, GoogleAuthError, OSError) as exc:
            logger.error("Error uploading %s to Google Drive: %s", file_name, exc)
            raise UploadError(file_name, str(exc)) from exc
        logger.info("Uploaded %s to Google Drive as %s", file_name, file_id)
        return file_id

    def fetch_metadata(self, file_id: str) -> MediaMetadata:
        try:
            meta = (
                self._service.files()
                .get(fileId=file_id, fields="mimeType, name")
                .execute(http=self._http_factory())
            )
        except HttpError as exc:
            if _is_not_found(exc):
                raise MediaNotFoundError(file_id) from exc
            raise TransportError(str(exc)) from exc
        except (GoogleAuthError, OSError) as exc:
            raise TransportError(str(exc)) from exc
        return MediaMetadata(
            mime_type=meta.get("mimeType") or DEFAULT_MIME_TYPE,
            display_name=meta.get("name") or file_id,
        )

    def fetch_stream(self, file_id: str) -> Iterator[bytes]:
        request = self._service.files().get_media(fileId=file_id)
        request.http = self._http_factory()
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, request, chunksize=self.chunk_size)
        # Pull the first chunk eagerly so an unknown id fails before any bytes are sent.
        first, done = self._next_chunk(downloader, buffer, file_id)
        return self._iter_download(downloader, buffer, file_id, first, done)

    def _next_chunk(self, downloader, buffer: io.BytesIO, file_id: str) -> tuple[bytes, bool]:
        try:
            _, done = downloader.next_chunk()
        except HttpError as exc:
            if _is_not_found(exc):
                raise MediaNotFoundError(file_id) from exc
            raise TransportError(str(exc)) from exc
        except (GoogleAuthError, OSError) as exc:
            raise TransportError(str(exc)) from exc
        chunk = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return chunk, done

    def _iter_download(self, downloader, buffer, file_id, first, done) -> Iterator[bytes]:
        if first:
            yield first
        while not done:
            chunk, done = self._next_chunk(downloader, buffer, file_id)
            if chunk:
                yield chunk

    def delete(self, file_id: str) -> bool:
        try:
            self._service.files().delete(fileId=file_id).execute(
                http=self._http_factory()
            )
        except HttpError as exc:
            if _is_not_found(exc):
                return False
            raise TransportError(str(exc)) from exc
        except (GoogleAuthError, OSError) as exc:
            raise TransportError(str(exc)) from exc
        logger.info("File with ID %s deleted from Google Drive.", file_id)
        return True


_S3_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _s3_not_found(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") in _S3_NOT_FOUND_CODES


@dataclass
class S3MediaGateway:
    """
    S3-compatible backend (AWS S3, Tencent COS, MinIO).
    """

    bucket: str
    region: str = ""
    endpoint: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    prefix: str = "homes"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    client: object = None

    def __post_init__(self):
        if self.client is not None:
            self._client = self.client
            return
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def _key(self, file_id: str) -> str:
        return f"{self.prefix.strip('/')}/{file_id}" if self.prefix else file_id

    def upload(self, data: bytes, file_name: str, mime_type: str) -> str:
        file_id = uuid.uuid4().hex
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=self._key(file_id),
                Body=data,
                ContentType=mime_type,
                ACL="public-read",
                # S3 user metadata must be ASCII.
                Metadata={"filename": quote(file_name)},
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("Error uploading %s to bucket %s: %s", file_name, self.bucket, exc)
            raise UploadError(file_name, str(exc)) from exc
        logger.info("Uploaded %s to s3://%s/%s", file_name, self.bucket, self._key(file_id))
        return file_id

    def fetch_metadata(self, file_id: str) -> MediaMetadata:
        try:
            head = self._client.head_object(Bucket=self.bucket, Key=self._key(file_id))
        except ClientError as exc:
            if _s3_not_found(exc):
                raise MediaNotFoundError(file_id) from exc
            raise TransportError(str(exc)) from exc
        except BotoCoreError as exc:
            raise TransportError(str(exc)) from exc
        name = (head.get("Metadata") or {}).get("filename")
        return MediaMetadata(
            mime_type=head.get("ContentType") or DEFAULT_MIME_TYPE,
            display_name=unquote(name) if name else file_id,
        )

    def fetch_stream(self, file_id: str) -> Iterator[bytes]:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=self._key(file_id))
        except ClientError as exc:
            if _s3_not_found(exc):
                raise MediaNotFoundError(file_id) from exc
            raise TransportError(str(exc)) from exc
        except BotoCoreError as exc:
            raise TransportError(str(exc)) from exc
        return self._iter_body(response["Body"])

    def _iter_body(self, body) -> Iterator[bytes]:
        try:
            for chunk in body.iter_chunks(self.chunk_size):
                yield chunk
        except BotoCoreError as exc:
            raise TransportError(str(exc)) from exc
        finally:
            body.close()

    def delete(self, file_id: str) -> bool:
        key = self._key(file_id)
        try:
            # delete_object succeeds for missing keys, so probe first.
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _s3_not_found(exc):
                return False
            raise TransportError(str(exc)) from exc
        except BotoCoreError as exc:
            raise TransportError(str(exc)) from exc
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise TransportError(str(exc)) from exc
        return True
