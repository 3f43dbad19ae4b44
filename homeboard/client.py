"""
HTTP client for the HomeBoard API.
"""

from __future__ import annotations

import mimetypes
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Optional, Sequence

import requests

from homeboard.config import get_settings

DEFAULT_MIME_TYPE = "application/octet-stream"


class HomeBoardClient:
    """
    Thin wrapper around the HomeBoard HTTP API.

    Every method raises `requests.HTTPError` for non-2xx responses and
    `requests.RequestException` for transport failures.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        response = self.session.request(
            method, self._url(path), timeout=self.timeout, **kwargs
        )
        response.raise_for_status()
        return response

    def get_homes(self) -> list[dict[str, Any]]:
        return self._request("GET", "/homes").json()

    def get_home(self, home_id: str) -> dict[str, Any]:
        return self._request("GET", f"/homes/{home_id}").json()

    def upload_files(self, paths: Sequence[Path | str]) -> list[dict[str, Any]]:
        """
        Upload files to the /upload endpoint.

        Returns:
            list[dict]: media references, in the order of `paths`.
        """
        with ExitStack() as stack:
            files = []
            for raw_path in paths:
                path = Path(raw_path)
                mime_type = mimetypes.guess_type(path.name)[0] or DEFAULT_MIME_TYPE
                handle = stack.enter_context(path.open("rb"))
                files.append(("files", (path.name, handle, mime_type)))
            return self._request("POST", "/upload", files=files).json()

    def add_home(self, home_data: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/homes", json=home_data).json()

    def delete_home(self, home_id: str) -> None:
        self._request("DELETE", f"/homes/{home_id}")

    def file_url(self, file_id: str) -> str:
        return self._url(f"/files/{file_id}")
