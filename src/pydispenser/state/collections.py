"""Keyed in-memory collections backing the coordinator.

Each collection is an ordered list of frozen records plus a key function.
Mutating helpers always rebuild the underlying list, so a tuple handed out
by :attr:`KeyedCollection.items` is never changed behind the caller's back.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Any, Generic, TypeVar

from pydispenser.ingestion.normalize import device_key, normalize_records, record_key, registry_key
from pydispenser.models import DeviceRecord
from pydispenser.models._base import FeedModel

TRecord = TypeVar("TRecord", bound=FeedModel)


class KeyedCollection(Generic[TRecord]):
    """Ordered records addressable by canonical device key."""

    def __init__(self, model: type[TRecord], key: Callable[[Any], str | None]) -> None:
        self._model = model
        self._key = key
        self._items: list[TRecord] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[TRecord]:
        return iter(tuple(self._items))

    def __contains__(self, device_id: object) -> bool:
        return self.get(device_id) is not None

    @property
    def items(self) -> tuple[TRecord, ...]:
        return tuple(self._items)

    def get(self, device_id: Any) -> TRecord | None:
        wanted = device_key(device_id)
        if wanted is None:
            return None
        for item in self._items:
            if self._key(item) == wanted:
                return item
        return None

    def replace(self, records: Iterable[TRecord]) -> None:
        """Swap the whole collection (fetch semantics)."""
        self._items = list(records)

    def insert_first(self, record: TRecord) -> None:
        self._items = [record, *self._items]

    def replace_item(self, device_id: Any, record: TRecord) -> bool:
        """Replace every entry for *device_id*; returns whether one matched."""
        wanted = device_key(device_id)
        matched = False
        updated: list[TRecord] = []
        for item in self._items:
            if wanted is not None and self._key(item) == wanted:
                updated.append(record)
                matched = True
            else:
                updated.append(item)
        self._items = updated
        return matched

    def update_item(self, device_id: Any, transform: Callable[[TRecord], TRecord]) -> bool:
        """Rebuild matching entries through *transform*."""
        wanted = device_key(device_id)
        matched = False
        updated: list[TRecord] = []
        for item in self._items:
            if wanted is not None and self._key(item) == wanted:
                updated.append(transform(item))
                matched = True
            else:
                updated.append(item)
        self._items = updated
        return matched

    def remove(self, device_id: Any) -> int:
        """Drop every entry for *device_id*; returns how many were removed."""
        wanted = device_key(device_id)
        if wanted is None:
            return 0
        kept = [item for item in self._items if self._key(item) != wanted]
        removed = len(self._items) - len(kept)
        self._items = kept
        return removed

    def snapshot(self) -> list[dict[str, Any]]:
        """JSON-ready list written to the snapshot cache."""
        return [item.to_snapshot() for item in self._items]

    def restore(self, payload: Any) -> int:
        """Replace contents from a cached snapshot; returns the record count."""
        records = normalize_records(payload, self._model)
        self._items = records
        return len(records)


class DeviceRegistry(KeyedCollection[DeviceRecord]):
    """Canonical device list, newest first after local adds."""

    def __init__(self) -> None:
        super().__init__(DeviceRecord, registry_key)


class Overlay(KeyedCollection[TRecord]):
    """Per-device metrics keyed by ``device_id`` (falling back to ``id``)."""

    def __init__(self, model: type[TRecord]) -> None:
        super().__init__(model, record_key)
