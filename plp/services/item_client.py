"""HTTP item backend: the collection CRUD API over httpx, with bearer auth.

Implements :class:`~plp.reconcile.ItemBackend` against a running PLP CMS
(or any API with the same per-item routes), so ``plp sync`` can reconcile a
local snapshot against a remote server. The token value is never written
to logs.

Usage::

    async with ItemApiClient("https://cms.example.com", token=token) as api:
        docs = await api.list_items("faculty", include_inactive=True)
"""
from __future__ import annotations

import logging
import types
from collections.abc import Mapping
from typing import Any

import httpx

from plp.reconcile import ItemBackendError

logger = logging.getLogger(__name__)


class ItemApiClient:
    """Async client for ``/api/v1/collections/{name}``.

    Args:
        base_url: Server base URL (e.g. ``"http://localhost:10010"``).
        token: Admin bearer token.
        timeout: Request timeout in seconds (default 30).
        api_prefix: Path prefix the routers are mounted under.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        api_prefix: str = "/api/v1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._prefix = api_prefix.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ItemApiClient:
        headers: dict[str, str] = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
            logger.debug("✅ ItemApiClient auth header set (Bearer ***)")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        """Return the underlying client or raise if not inside context manager."""
        if self._client is None:
            raise RuntimeError("ItemApiClient must be used as an async context manager.")
        return self._client

    def _path(self, collection: str, identity: str | None = None) -> str:
        path = f"{self._prefix}/collections/{collection}"
        return f"{path}/{identity}" if identity is not None else path

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._require_client().request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ItemBackendError(f"{method} {path} failed: {exc}") from exc
        if response.is_error:
            detail: Any = response.text
            try:
                detail = response.json().get("detail", detail)
            except ValueError:
                pass
            raise ItemBackendError(
                f"{method} {path} -> {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _document(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise ItemBackendError("response body is not JSON", response.status_code) from exc
        if not isinstance(body, dict):
            raise ItemBackendError("response body is not an object", response.status_code)
        return body

    async def list_items(self, collection: str, include_inactive: bool = False) -> list[dict[str, Any]]:
        params = {"all": "true"} if include_inactive else None
        body = self._document(await self._send("GET", self._path(collection), params=params))
        items = body.get("items", [])
        if not isinstance(items, list):
            raise ItemBackendError("'items' is not a list")
        return items

    async def create_item(self, collection: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        return self._document(await self._send("POST", self._path(collection), json=dict(fields)))

    async def update_item(
        self, collection: str, identity: str, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        return self._document(
            await self._send("PUT", self._path(collection, identity), json=dict(fields))
        )

    async def delete_item(self, collection: str, identity: str) -> None:
        await self._send("DELETE", self._path(collection, identity))
