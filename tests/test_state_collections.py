from __future__ import annotations

from pydispenser.models import AnalyticsRecord, DeviceRecord
from pydispenser.state.collections import DeviceRegistry, Overlay
from pydispenser.state.policy import FetchSequence, should_accept_result


def _registry(*ids: int | str) -> DeviceRegistry:
    registry = DeviceRegistry()
    registry.replace(DeviceRecord.model_validate({"id": device_id, "name": f"D{device_id}"}) for device_id in ids)
    return registry


def test_fetch_sequence_discards_out_of_order_results() -> None:
    sequence = FetchSequence("devices")
    assert sequence.is_pristine

    older = sequence.begin()
    newer = sequence.begin()

    assert sequence.commit(newer) is True
    assert sequence.commit(older) is False
    assert sequence.committed == newer
    assert not sequence.is_pristine


def test_local_commit_invalidates_in_flight_fetch() -> None:
    sequence = FetchSequence("analytics")
    in_flight = sequence.begin()

    assert sequence.commit() is True
    assert sequence.accepts(in_flight) is False


def test_should_accept_result() -> None:
    assert should_accept_result(ticket=2, committed=1)
    assert not should_accept_result(ticket=1, committed=1)


def test_registry_lookup_uses_canonical_keys() -> None:
    registry = _registry(1, "2")

    assert registry.get("1") is not None
    assert registry.get(2.0) is not None
    assert 3 not in registry
    assert registry.get(None) is None


def test_items_snapshot_is_not_mutated_by_later_changes() -> None:
    registry = _registry(1, 2)
    before = registry.items

    registry.insert_first(DeviceRecord.model_validate({"id": 3}))
    registry.remove(1)

    assert [record.key for record in before] == ["1", "2"]
    assert [record.key for record in registry] == ["3", "2"]


def test_remove_drops_every_duplicate() -> None:
    overlay: Overlay[AnalyticsRecord] = Overlay(AnalyticsRecord)
    overlay.replace(
        AnalyticsRecord.model_validate(entry)
        for entry in ({"device_id": 7}, {"id": "7", "total_entries": 2}, {"device_id": 8})
    )

    assert overlay.remove(7) == 2
    assert [entry.key for entry in overlay] == ["8"]
    assert overlay.remove("missing") == 0


def test_replace_item_reports_missing_device() -> None:
    registry = _registry(1)

    assert registry.replace_item(5, DeviceRecord.model_validate({"id": 5})) is False
    assert registry.replace_item(1, DeviceRecord.model_validate({"id": 1, "name": "New"})) is True
    assert [record.name for record in registry] == ["New"]


def test_snapshot_restore_round_trip() -> None:
    registry = _registry(1, 2)
    restored = DeviceRegistry()

    assert restored.restore(registry.snapshot()) == 2
    assert [record.key for record in restored] == ["1", "2"]
