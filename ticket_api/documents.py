"""
Helpers for building ticket documents and managing their embedded
sub-documents (steps and notes).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from ticket_api.errors import NotFoundError


def new_id() -> str:
    return uuid.uuid4().hex


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-01-02T03:04:05.678Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class EmbeddedCollection:
    """
    An ordered list of sub-documents owned by a parent document.

    Wraps the parent's list in place, so changes are visible on the parent
    and persisted when the parent is saved. Items are looked up by their
    "_id", which is unique within this collection only. Removing an item
    never reorders the remaining ones.
    """

    def __init__(
        self,
        items: list[dict],
        label: str,
        *,
        id_factory: Callable[[], str] = new_id,
    ):
        self.items = items
        self.label = label
        self._id_factory = id_factory

    def __iter__(self) -> Iterator[dict]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def find(self, item_id: str) -> Optional[dict]:
        for item in self.items:
            if item.get("_id") == item_id:
                return item
        return None

    def get(self, item_id: str) -> dict:
        item = self.find(item_id)
        if item is None:
            raise NotFoundError(f"{self.label} not found")
        return item

    def ids(self) -> set[str]:
        return {item["_id"] for item in self.items if item.get("_id")}

    def append(self, fields: dict) -> dict:
        item = {"_id": self._id_factory(), **fields}
        self.items.append(item)
        return item

    def update(self, item_id: str, changes: dict) -> dict:
        item = self.get(item_id)
        item.update(changes)
        return item

    def remove(self, item_id: str) -> dict:
        for index, item in enumerate(self.items):
            if item.get("_id") == item_id:
                return self.items.pop(index)
        raise NotFoundError(f"{self.label} not found")
