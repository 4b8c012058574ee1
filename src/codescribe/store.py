"""Document-store client: the Notion REST operations the sync engine uses."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from codescribe.errors import StoreError

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Notion accepts at most this many children per append request.
APPEND_BATCH_SIZE = 100

TITLE_PROPERTY = "Name"


def _object_id(obj: Any, what: str) -> str:
    """Return the ``id`` of a Notion object from a response body."""
    if not isinstance(obj, dict) or "id" not in obj:
        msg = f"Notion {what} has no id."
        raise StoreError(msg)
    return str(obj["id"])


class DocumentStore(Protocol):
    """Operations on one container of titled records with child blocks."""

    def find_by_title(self, title: str) -> str | None:
        """Return the id of the record titled *title*, or None."""
        ...

    def create_record(self, properties: dict[str, Any]) -> str:
        """Create a record and return its id."""
        ...

    def update_record(self, record_id: str, properties: dict[str, Any]) -> None: ...

    def list_child_blocks(self, record_id: str) -> list[str]:
        """Return the ids of all child blocks, in order."""
        ...

    def delete_block(self, block_id: str) -> None: ...

    def append_child_blocks(self, record_id: str, blocks: Sequence[dict[str, Any]]) -> None: ...


class NotionStore:
    """`DocumentStore` backed by one Notion database.

    Parameters
    ----------
    api_key:
        Notion integration token.
    database_id:
        Database that holds the documentation pages.
    client:
        Optional preconfigured ``httpx.Client`` (tests pass one with a
        mock transport).
    """

    def __init__(
        self,
        api_key: str,
        database_id: str,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.database_id = database_id
        self._client = client or httpx.Client(base_url=NOTION_API_BASE, timeout=30.0)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Notion-Version": NOTION_VERSION,
            "Content-Type": "application/json",
        }

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = self._client.request(
                method, path, headers=self._headers, json=json, params=params
            )
        except httpx.HTTPError as exc:
            msg = f"Notion {method} {path} failed: {exc}"
            raise StoreError(msg) from exc

        if response.status_code >= 400:
            msg = f"Notion API error {response.status_code} on {method} {path}: {response.text}"
            raise StoreError(msg, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            msg = f"Notion {method} {path} returned invalid JSON."
            raise StoreError(msg, status_code=response.status_code) from exc
        if not isinstance(data, dict):
            msg = f"Notion {method} {path} returned {type(data).__name__}, expected an object."
            raise StoreError(msg, status_code=response.status_code)
        return data

    def find_by_title(self, title: str) -> str | None:
        data = self._request(
            "POST",
            f"/databases/{self.database_id}/query",
            json={"filter": {"property": TITLE_PROPERTY, "title": {"equals": title}}},
        )
        results = data.get("results", [])
        if not results:
            return None
        if len(results) > 1:
            logger.warning("%d records titled %r; using the first.", len(results), title)
        return _object_id(results[0], "query result")

    def create_record(self, properties: dict[str, Any]) -> str:
        data = self._request(
            "POST",
            "/pages",
            json={"parent": {"database_id": self.database_id}, "properties": properties},
        )
        return _object_id(data, "created page")

    def update_record(self, record_id: str, properties: dict[str, Any]) -> None:
        self._request("PATCH", f"/pages/{record_id}", json={"properties": properties})

    def list_child_blocks(self, record_id: str) -> list[str]:
        ids: list[str] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": 100}
            if cursor:
                params["start_cursor"] = cursor
            data = self._request("GET", f"/blocks/{record_id}/children", params=params)
            ids.extend(_object_id(block, "child block") for block in data.get("results", []))
            if not data.get("has_more"):
                return ids
            cursor = data.get("next_cursor")

    def delete_block(self, block_id: str) -> None:
        self._request("DELETE", f"/blocks/{block_id}")

    def append_child_blocks(self, record_id: str, blocks: Sequence[dict[str, Any]]) -> None:
        for start in range(0, len(blocks), APPEND_BATCH_SIZE):
            self._request(
                "PATCH",
                f"/blocks/{record_id}/children",
                json={"children": list(blocks[start : start + APPEND_BATCH_SIZE])},
            )
