from __future__ import annotations

from datetime import UTC, datetime

import pytest

from pydispenser.ingestion.normalize import (
    device_key,
    normalize_records,
    record_key,
    registry_key,
    safe_bool,
    safe_float,
    safe_int,
    unwrap_collection,
)
from pydispenser.models import AnalyticsRecord, DeviceRecord, DeviceStatus, RealtimeRecord


@pytest.mark.parametrize("envelope", ["results", "devices", "data"])
def test_unwrap_collection_accepts_known_envelopes(envelope: str) -> None:
    assert unwrap_collection({envelope: [{"id": 1}]}) == [{"id": 1}]


def test_unwrap_collection_handles_bare_lists_and_junk() -> None:
    assert unwrap_collection([{"id": 1}]) == [{"id": 1}]
    assert unwrap_collection({"items": [{"id": 1}]}) == []
    assert unwrap_collection(None) == []
    assert unwrap_collection("oops") == []


@pytest.mark.parametrize(("raw", "expected"), [(7, "7"), ("7", "7"), (" 7 ", "7"), (7.0, "7"), ("abc-1", "abc-1")])
def test_device_key_canonicalizes(raw: object, expected: str) -> None:
    assert device_key(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "  ", True, float("nan")])
def test_device_key_rejects_empty_values(raw: object) -> None:
    assert device_key(raw) is None


def test_overlay_and_registry_keys_prefer_different_fields() -> None:
    entry = {"id": 50, "device_id": 1}

    assert record_key(entry) == "1"
    assert registry_key(entry) == "50"
    assert record_key({"id": 3}) == "3"
    assert registry_key({"device_id": 4}) == "4"


def test_normalize_records_drops_unusable_entries() -> None:
    payload = {
        "results": [
            {"id": 1, "name": "A"},
            "garbage",
            {"name": "no id"},
            {"id": "   "},
            {"id": 2, "floor_number": "3"},
        ]
    }

    records = normalize_records(payload, DeviceRecord)

    assert [record.key for record in records] == ["1", "2"]
    assert records[1].floor_number == 3


def test_overlay_id_alias_maps_to_device_id() -> None:
    [record] = normalize_records([{"id": 9, "total_entries": "12"}], AnalyticsRecord)

    assert record.device_id == 9
    assert record.key == "9"
    assert record.total_entries == 12


def test_sentinels_fall_back_to_defaults() -> None:
    record = AnalyticsRecord.model_validate(
        {"device_id": 1, "total_entries": "--", "low_alert_count": -4, "status_priority": "NaN"}
    )

    assert record.total_entries == 0
    assert record.low_alert_count == 0
    assert record.status_priority == 0
    assert "total_entries" not in record.to_patch()


def test_realtime_status_is_case_insensitive_and_lenient() -> None:
    shouting = RealtimeRecord.model_validate({"device_id": 1, "current_status": "EMPTY"})
    legacy = RealtimeRecord.model_validate({"device_id": 1, "current_status": "online"})
    unknown = RealtimeRecord.model_validate({"device_id": 1, "current_status": "exploded"})

    assert shouting.current_status == DeviceStatus.EMPTY
    assert legacy.current_status == DeviceStatus.ONLINE
    assert unknown.current_status == DeviceStatus.UNKNOWN


def test_timestamps_accept_iso_and_epoch_milliseconds() -> None:
    iso = RealtimeRecord.model_validate({"device_id": 1, "last_update": "2026-01-01T12:00:00Z"})
    epoch_ms = RealtimeRecord.model_validate({"device_id": 1, "last_update": 1_767_268_800_000})
    junk = RealtimeRecord.model_validate({"device_id": 1, "last_update": "yesterday"})

    assert iso.last_update == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    assert epoch_ms.last_update == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    assert junk.last_update is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(True, True), (0, False), ("1", True), ("yes", True), ("off", False), ("maybe", None), (None, None)],
)
def test_safe_bool(raw: object, expected: bool | None) -> None:
    assert safe_bool(raw) is expected


def test_device_record_keeps_unknown_fields_and_metadata() -> None:
    record = DeviceRecord.model_validate(
        {
            "id": 4,
            "name": "Lab",
            "tissue_type": "TOILET_PAPER",
            "gender": "unexpected",
            "metadata": {"model": "TD-2", "mac_address": "aa:bb", "batch": 7},
            "installer": "ops",
        }
    )

    assert record.tissue_type is not None and record.tissue_type.value == "toilet_paper"
    assert record.gender is None
    assert record.metadata is not None and record.metadata.model == "TD-2"
    assert record.to_snapshot()["metadata"]["batch"] == 7
    assert record.to_snapshot()["installer"] == "ops"


@pytest.mark.parametrize("raw", ["inf", "-Infinity", 1e400, float("inf"), 10**400])
def test_non_finite_numbers_parse_as_missing(raw: object) -> None:
    assert safe_float(raw) is None
    assert safe_int(raw) is None


def test_normalize_records_keeps_rows_with_overflowing_counters() -> None:
    records = normalize_records(
        [{"device_id": 1, "total_entries": 5}, {"device_id": 2, "total_entries": "inf", "tamper_count": 1e400}],
        AnalyticsRecord,
    )

    assert [(record.key, record.total_entries, record.tamper_count) for record in records] == [("1", 5, 0), ("2", 0, 0)]


def test_out_of_range_epoch_timestamps_parse_as_missing() -> None:
    [far, infinite] = normalize_records(
        [{"device_id": 1, "last_update": 1e20}, {"device_id": 2, "last_update": 1e400}],
        RealtimeRecord,
    )

    assert far.last_update is None
    assert infinite.last_update is None
