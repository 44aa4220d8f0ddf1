"""
HTTP helpers shared by the gateway and broadcast clients.

Every collaborator call is a single awaited round-trip. Transport errors and
non-2xx responses become NetworkFailure with the raw body attached. Only
collaborators that set conflict_status (the ledger) map that status to
VersionConflict.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .errors import NetworkFailure, VersionConflict

logger = logging.getLogger(__name__)


class HttpCollaborator:
    """Base for clients of one remote base URL."""

    # Status code that signals a stale expected version; None disables it.
    conflict_status: Optional[int] = None

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkFailure(f"{method} {url} failed: {type(e).__name__}", diagnostic=str(e)) from e

        if self.conflict_status is not None and response.status_code == self.conflict_status:
            raise VersionConflict(f"{method} {url} rejected: version conflict", diagnostic=response.text)
        if not response.is_success:
            raise NetworkFailure(
                f"{method} {url} returned {response.status_code}",
                diagnostic=response.text,
                status_code=response.status_code,
            )
        return response

    async def json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise NetworkFailure(
                f"{method} {path} returned invalid JSON",
                diagnostic=response.text,
                status_code=response.status_code,
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
