"""
REST HTTP client for the messaging backend.
"""

from pathlib import Path
from typing import Any, Optional

import httpx

from bulk_sender.errors import BulkSenderError, ConnectionError

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_TIMEOUT = 30.0


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": "bulk-sender/0.1.0", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @staticmethod
    def _decode(resp: httpx.Response, allow_empty: bool = False) -> Any:
        """Parse a JSON reply. With `allow_empty`, an empty or non-JSON 2xx body is None."""
        if resp.status_code >= 400:
            raise BulkSenderError("http_error", f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError:
            if allow_empty:
                return None
            raise BulkSenderError("invalid_response", f"Expected JSON from {resp.request.url.path}, got: {resp.text[:200]!r}")

    async def _request(self, method: str, path: str, allow_empty: bool = False, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ConnectionError(f"{method} {path} failed: {e}") from e
        return self._decode(resp, allow_empty)

    async def get(self, path: str) -> Any:
        return await self._request("GET", path)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None, allow_empty: bool = False) -> Any:
        return await self._request("POST", path, allow_empty=allow_empty, json=body)

    async def upload(self, path: str, file_path: str, field: str = "file") -> Any:
        """Multipart form upload of a single file."""
        p = Path(file_path)
        with p.open("rb") as fh:
            files = {field: (p.name, fh.read(), "text/csv")}
        return await self._request("POST", path, files=files)

    async def close(self) -> None:
        await self._client.aclose()
