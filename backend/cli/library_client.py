"""HTTP client for the Virtual Library API."""

import asyncio
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx

from logging_config import get_logger
from cli.config import LIBRARY_TIMEOUT, LIBRARY_URL

logger = get_logger(__name__)


class LibraryClientError(Exception):
    """Raised for any non-2xx response or transport failure."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class LibraryClient:
    """Async client; one instance per CLI command."""

    def __init__(
        self,
        base_url: str = LIBRARY_URL,
        timeout: float = LIBRARY_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "LibraryClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def absolute_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.base_url}{url}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise LibraryClientError(f"Could not reach the library service: {e}") from e

        if response.is_error:
            message, code = _error_details(response)
            logger.debug("%s %s -> %d %s", method, url, response.status_code, code)
            raise LibraryClientError(message, status_code=response.status_code, code=code)
        return response

    # --- records -------------------------------------------------------------

    async def list_files(self, search: Optional[str] = None, limit: Optional[int] = None) -> list[dict]:
        params = {}
        if search:
            params["search"] = search
        if limit:
            params["limit"] = limit
        response = await self._request("GET", "/api/files", params=params)
        return response.json()

    async def delete(self, file_id: str, code: str) -> None:
        await self._request("DELETE", f"/api/files/{file_id}", headers={"X-Secret-Code": code})

    # --- uploads -------------------------------------------------------------

    async def upload_file(self, path: Path, title: str, secret_code: str, content_type: str) -> dict:
        data = await asyncio.to_thread(path.read_bytes)
        response = await self._request(
            "POST",
            "/api/files",
            data={"title": title, "secret_code": secret_code},
            files={"file": (path.name, data, content_type)},
        )
        return response.json()

    async def create_folder(
        self, title: str, secret_code: str, file_count: int, size: int, name: Optional[str] = None
    ) -> dict:
        response = await self._request(
            "POST",
            "/api/folders",
            json={
                "title": title,
                "secret_code": secret_code,
                "file_count": file_count,
                "size": size,
                "name": name,
            },
        )
        return response.json()

    async def put_member(
        self, folder_id: str, secret_code: str, relative_path: str, path: Path, content_type: str
    ) -> dict:
        data = await asyncio.to_thread(path.read_bytes)
        response = await self._request(
            "PUT",
            f"/api/folders/{folder_id}/files/{quote(relative_path)}",
            content=data,
            headers={"X-Secret-Code": secret_code, "Content-Type": content_type},
        )
        return response.json()

    # --- downloads -----------------------------------------------------------

    async def access(self, file_id: str, code: str) -> dict:
        response = await self._request("GET", f"/api/files/{file_id}/access", params={"code": code})
        return response.json()

    async def fetch(self, url: str) -> bytes:
        response = await self._request("GET", self.absolute_url(url))
        return response.content

    async def folder_entries(self, folder_id: str, code: str) -> dict:
        response = await self._request(
            "GET", f"/api/folders/{folder_id}/entries", params={"code": code}
        )
        return response.json()

    async def download_folder(self, folder_id: str, code: str) -> bytes:
        response = await self._request(
            "GET", "/download-folder", params={"folderId": folder_id, "code": code}
        )
        return response.content


def _error_details(response: httpx.Response) -> tuple[str, Optional[str]]:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None

    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if isinstance(message, list):
            message = "; ".join(str(m.get("msg", m)) if isinstance(m, dict) else str(m) for m in message)
        return str(message or f"HTTP {response.status_code}"), body.get("code")
    return f"HTTP {response.status_code}", None
