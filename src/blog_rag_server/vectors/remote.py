"""
Admin API Store

Write-side client for a running chat server. Ingestion pushes items through
the ``/admin`` routes instead of writing the FAISS files, so the server's
in-memory store stays authoritative and picks up new content immediately.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx

from .index import VectorStoreError
from .models import IndexedItem

logger = logging.getLogger("blograg.vectors.remote")


class RemoteStoreError(VectorStoreError):
    """Raised when an admin API call fails."""


class AdminApiStore:
    """
    Vector store facade over ``POST /admin/upsert``, ``DELETE /admin/delete``
    and ``DELETE /admin/clear-all``.
    """

    def __init__(
        self,
        server_url: str,
        admin_token: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.admin_token = admin_token
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        headers = {"Authorization": f"Bearer {self.admin_token}"}
        url = f"{self.server_url}{path}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(method, url, json=json, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Admin API call %s %s failed: %s", method, path, exc)
            raise RemoteStoreError(f"{method} {path} failed: {type(exc).__name__}") from exc

        return resp.json()

    async def upsert(self, items: Sequence[IndexedItem]) -> int:
        if not items:
            return 0

        payload = {
            "items": [
                {
                    "id": item.id,
                    "vector": item.values,
                    "text": item.metadata.text or "",
                    "source": item.metadata.source,
                    "title": item.metadata.title,
                    "url": item.metadata.url,
                    "language": item.metadata.language,
                }
                for item in items
            ]
        }
        data = await self._request("POST", "/admin/upsert", payload)
        return int(data.get("count", 0))

    async def delete_by_ids(self, ids: Sequence[str]) -> int:
        data = await self._request("DELETE", "/admin/delete", {"ids": list(ids)})
        return int(data.get("count", 0))

    async def clear(self) -> int:
        data = await self._request("DELETE", "/admin/clear-all")
        return int(data.get("totalDeleted", 0))

    def save(self) -> None:
        # Every admin route persists on the server side
        return None
