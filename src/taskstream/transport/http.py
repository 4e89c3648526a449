"""
REST HTTP client shared by the resource APIs and the stream transport.
"""

from typing import Any, AsyncContextManager, Optional

import httpx

from taskstream.errors import TaskStreamError

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 60.0
USER_AGENT = "taskstream/0.1.0"


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _unwrap(json_data: Any) -> Any:
        """Unwrap the standard response envelope: { "status": ..., "data": <actual_data> }"""
        if isinstance(json_data, dict) and "status" in json_data and "data" in json_data:
            return json_data["data"]
        return json_data

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.status_code >= 400:
            raise TaskStreamError(
                "http_error",
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                {"status_code": resp.status_code},
            )

    async def get(self, path: str, params: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        resp = await self._client.get(path, params=params, headers=self._auth_headers(authenticated))
        self._raise_for_status(resp)
        return self._unwrap(resp.json())

    async def post(
        self,
        path: str,
        body: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        resp = await self._client.post(path, json=body, headers=self._auth_headers(authenticated, headers))
        self._raise_for_status(resp)
        return self._unwrap(resp.json())

    async def delete(self, path: str, authenticated: bool = True) -> Any:
        resp = await self._client.delete(path, headers=self._auth_headers(authenticated))
        self._raise_for_status(resp)
        if not resp.content:
            return None
        return self._unwrap(resp.json())

    def stream(self, path: str, body: dict[str, Any], authenticated: bool = True) -> AsyncContextManager[httpx.Response]:
        """Open a streamed POST. Status is not checked here; the caller owns that."""
        headers = self._auth_headers(authenticated, {"Accept": "text/event-stream"})
        return self._client.stream("POST", path, json=body, headers=headers)

    async def close(self) -> None:
        await self._client.aclose()
