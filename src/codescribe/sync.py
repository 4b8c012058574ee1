"""Sync engine: idempotent upsert of artifacts into the document store.

Per artifact the engine runs lookup -> (create | replace properties and
clear blocks) -> populate.  Records are never merged: the body is always
rebuilt from the artifact.  A failure after some blocks were deleted leaves
the record partially cleared; this is reported through ``SyncError`` and
not rolled back.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from codescribe.blocks import render_blocks, rich_text
from codescribe.errors import StoreError, SyncError
from codescribe.store import TITLE_PROPERTY

if TYPE_CHECKING:
    from collections.abc import Callable

    from codescribe.artifact import DocumentationArtifact
    from codescribe.store import DocumentStore

logger = logging.getLogger(__name__)

LAST_UPDATED_PROPERTY = "Last Updated"
FILE_PATH_PROPERTY = "File Path"


class SyncOutcome(enum.Enum):
    """What the sync did to the destination record."""

    CREATED = "created"
    UPDATED = "updated"


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def build_properties(title: str, source_label: str, timestamp: datetime) -> dict[str, Any]:
    """Build the record properties written on create and on update."""
    return {
        TITLE_PROPERTY: {"title": rich_text(title)},
        LAST_UPDATED_PROPERTY: {"date": {"start": timestamp.isoformat()}},
        FILE_PATH_PROPERTY: {"rich_text": rich_text(source_label)},
    }


class SyncEngine:
    """Find-or-create records by title and replace their content.

    Parameters
    ----------
    store:
        Destination store.
    now:
        Clock used for the ``Last Updated`` property.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._now = now

    def sync(self, artifact: DocumentationArtifact, source_label: str) -> SyncOutcome:
        """Upsert *artifact* into the store.

        Raises
        ------
        SyncError
            If any store operation fails.  ``deleted_blocks`` on the error
            tells how many old blocks were removed before the failure.
        """
        title = artifact.title
        properties = build_properties(title, source_label, self._now())

        try:
            page_id = self._store.find_by_title(title)
        except StoreError as exc:
            msg = f"Lookup of {title!r} failed: {exc}"
            raise SyncError(msg, stage="lookup") from exc

        if page_id is None:
            try:
                page_id = self._store.create_record(properties)
            except StoreError as exc:
                msg = f"Creating record {title!r} failed: {exc}"
                raise SyncError(msg, stage="create") from exc
            outcome = SyncOutcome.CREATED
            deleted = 0
        else:
            deleted = self._replace(page_id, title, properties)
            outcome = SyncOutcome.UPDATED

        blocks = render_blocks(artifact)
        try:
            self._store.append_child_blocks(page_id, blocks)
        except StoreError as exc:
            msg = f"Appending {len(blocks)} blocks to {title!r} failed: {exc}"
            raise SyncError(
                msg, stage="append", page_id=page_id, deleted_blocks=deleted
            ) from exc

        logger.info("%s: %s (%d blocks)", outcome.value.capitalize(), title, len(blocks))
        return outcome

    def _replace(self, page_id: str, title: str, properties: dict[str, Any]) -> int:
        """Overwrite properties, delete every child block, return the count."""
        try:
            self._store.update_record(page_id, properties)
            block_ids = self._store.list_child_blocks(page_id)
        except StoreError as exc:
            msg = f"Updating record {title!r} failed: {exc}"
            raise SyncError(msg, stage="update", page_id=page_id) from exc

        deleted = 0
        for block_id in block_ids:
            try:
                self._store.delete_block(block_id)
            except StoreError as exc:
                msg = (
                    f"Deleting block {block_id} of {title!r} failed after "
                    f"{deleted}/{len(block_ids)} deletions: {exc}"
                )
                raise SyncError(
                    msg, stage="delete", page_id=page_id, deleted_blocks=deleted
                ) from exc
            deleted += 1
        logger.debug("Cleared %d blocks from %s", deleted, title)
        return deleted
