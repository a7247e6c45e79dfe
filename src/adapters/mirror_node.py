"""Index Query Service sobre la REST API del mirror node.

El mirror node es una réplica de lectura: un contrato recién desplegado
devuelve 404 hasta que se indexa. Ese 404 es un retraso (reintentable);
400, otros status, payloads inesperados y errores de transporte son
permanentes.
"""

from __future__ import annotations

from typing import Any

import httpx

from adapters.http_client import build_async_client
from core.config import AppSettings
from core.domain.identifiers import is_entity_id
from core.errors import IndexLookupError, RetryableIndexingDelay


class MirrorNodeIndex:
    """Implementa `IndexQueryService`."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        url = base_url or settings.resolved_mirror_node_url()
        if not url:
            raise ValueError("mirror node URL is not configured")
        self._client = client or build_async_client(settings, base_url=url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def lookup_by_native_address(self, address: str) -> str:
        path = f"/api/v1/contracts/{address.lower().removeprefix('0x')}"
        data = await self._get_json(path, not_found=f"contract {address} not indexed yet")
        contract_id = data.get("contract_id")
        if not isinstance(contract_id, str) or not is_entity_id(contract_id):
            raise IndexLookupError(f"mirror node returned no contract_id for {address}")
        return contract_id

    async def get_token(self, token_id: str) -> dict[str, Any]:
        """Vista indexada de un token (total_supply, supply_key...)."""

        return await self._get_json(f"/api/v1/tokens/{token_id}", not_found=f"token {token_id} not indexed yet")

    async def ping(self) -> int:
        """Status HTTP de un endpoint ligero; usado por `doctor`."""

        try:
            response = await self._client.get("/api/v1/network/supply")
        except httpx.HTTPError as exc:
            raise IndexLookupError(f"mirror node unreachable: {exc}") from exc
        return response.status_code

    async def _get_json(self, path: str, *, not_found: str) -> dict[str, Any]:
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            raise IndexLookupError(f"mirror node request failed: {exc}") from exc

        if response.status_code == 404:
            raise RetryableIndexingDelay(not_found)
        if response.status_code == 400:
            raise IndexLookupError(f"mirror node rejected {path}: {response.text[:200]}")
        if response.status_code != 200:
            raise IndexLookupError(f"mirror node HTTP {response.status_code} for {path}")

        try:
            data = response.json()
        except ValueError as exc:
            raise IndexLookupError(f"mirror node returned invalid JSON for {path}") from exc
        if not isinstance(data, dict):
            raise IndexLookupError(f"mirror node returned unexpected payload for {path}")
        return data
