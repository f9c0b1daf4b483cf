from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from firegrid.datasources.base import Row
from firegrid.errors import RowSourceError
from firegrid.settings import Settings

logger = logging.getLogger(__name__)


def flatten_object(value: dict[str, Any], prefix: str = "") -> Row:
    """Nested objects become dotted keys; lists become ``", "`` joined text."""
    result: Row = {}
    for key, item in value.items():
        new_key = f"{prefix}.{key}" if prefix else key
        if isinstance(item, dict):
            result.update(flatten_object(item, new_key))
        elif isinstance(item, list):
            result[new_key] = ", ".join(
                json.dumps(element) if isinstance(element, (dict, list)) else _js_string(element) for element in item
            )
        else:
            result[new_key] = item
    return result


def _js_string(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class HttpRowSource:
    """Fetch table rows from a remote row service, following page tokens.

    ``GET /tables/{id}/rows?pageSize=N[&pageToken=T]`` answers
    ``{"rows": [...], "nextPageToken": "..."}``.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        if not settings.row_source_base_url and client is None:
            raise ValueError("A row source base URL is required")
        self._settings = settings
        self._client = client

    async def fetch_rows(self, table_id: str) -> list[Row]:
        if self._client is not None:
            return await self._fetch_all(self._client, table_id)
        async with httpx.AsyncClient(
            base_url=self._settings.row_source_base_url or "",
            timeout=float(self._settings.row_source_timeout_seconds),
        ) as client:
            return await self._fetch_all(client, table_id)

    async def _fetch_all(self, client: httpx.AsyncClient, table_id: str) -> list[Row]:
        page_size = self._settings.row_source_page_size
        max_rows = self._settings.row_source_max_rows
        rows: list[Row] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"pageSize": page_size}
            if page_token:
                params["pageToken"] = page_token
            payload = await self._get_page(client, table_id, params)
            page = payload.get("rows") or []
            rows.extend(flatten_object(row) for row in page if isinstance(row, dict))
            page_token = payload.get("nextPageToken")
            if not page_token or len(page) < page_size or len(rows) >= max_rows:
                break
        if len(rows) > max_rows:
            rows = rows[:max_rows]
        logger.info("firegrid.row_source.fetched | %s", {"table_id": table_id, "rows": len(rows)})
        return rows

    async def _get_page(self, client: httpx.AsyncClient, table_id: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await client.get(f"/tables/{table_id}/rows", params=params)
        except httpx.RequestError as exc:
            raise RowSourceError(f"Row source unavailable: {exc}", status_code=503, code="row_source_unavailable") from exc

        if response.status_code == 404:
            raise RowSourceError(f"Table '{table_id}' not found at row source", status_code=404, code="table_not_found")
        if response.status_code >= 400:
            raise RowSourceError(f"Row source returned {response.status_code}: {response.text or 'request failed'}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise RowSourceError("Row source returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise RowSourceError("Row source returned an unexpected payload")
        return payload
