"""Loading catalog snapshots and holding the latest one for a limited time."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from procure import logger
from procure.engine.errors import InputInvalid
from procure.engine.models import CatalogSnapshot, RequestedItem


class ItemRequest(BaseModel):
    """JSON envelope for a set of requested items."""

    items: list[RequestedItem] = Field(default_factory=list)


def load_snapshot(path: str | Path) -> CatalogSnapshot:
    """Parse a ``CatalogSnapshot`` JSON file.

    Raises:
        InputInvalid: If the file does not describe a valid snapshot.
    """
    raw = Path(path).read_text(encoding="utf-8")
    try:
        return CatalogSnapshot.model_validate_json(raw)
    except ValidationError as e:
        raise InputInvalid(f"Invalid catalog snapshot {path}: {e}") from e


def load_request(path: str | Path) -> list[RequestedItem]:
    """Parse a ``{"items": [...]}`` JSON file of requested items.

    Raises:
        InputInvalid: On non-positive quantities, waste factors outside 0–100
            or otherwise malformed items.
    """
    raw = Path(path).read_text(encoding="utf-8")
    try:
        return ItemRequest.model_validate_json(raw).items
    except ValidationError as e:
        raise InputInvalid(f"Invalid item request {path}: {e}") from e


class SnapshotCache:
    """Caller-owned holder for the most recent snapshot.

    The engine never refreshes data itself; once :meth:`get` reports the
    snapshot as stale the caller must fetch a new one and :meth:`put` it.
    """

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._snapshot: CatalogSnapshot | None = None

    def put(self, snapshot: CatalogSnapshot) -> None:
        self._snapshot = snapshot

    def get(self, now: datetime) -> CatalogSnapshot | None:
        """Return the cached snapshot, or None when empty or stale."""
        if self._snapshot is None:
            return None
        if self._snapshot.is_stale(now, self.ttl_seconds):
            logger.debug(
                f"Snapshot fetched at {self._snapshot.fetched_at.isoformat()} is stale"
            )
            return None
        return self._snapshot

    def clear(self) -> None:
        self._snapshot = None
