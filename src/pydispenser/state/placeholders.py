"""Local overlay entries for devices the overlays have not reported yet.

A device created through the coordinator exists in the registry
immediately, but the analytics and realtime feeds only learn about it on
their next refresh. The helpers here fabricate minimal entries so merged
views never show a gap in the meantime, and keep identity fields in sync
after an update.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydispenser.ingestion.normalize import is_meaningful
from pydispenser.models import (
    DEFAULT_METER_CAPACITY,
    AnalyticsRecord,
    DeviceRecord,
    DeviceStatus,
    RealtimeRecord,
    TissueType,
)

# Registry fields mirrored into overlay entries.
IDENTITY_FIELDS: tuple[str, ...] = (
    "name",
    "room_number",
    "floor_number",
    "tissue_type",
    "gender",
    "meter_capacity",
    "location",
    "description",
)


def _first(*candidates: Any, default: Any = None) -> Any:
    for candidate in candidates:
        if is_meaningful(candidate):
            return candidate
    return default


def _first_present(key: str, *sources: Mapping[str, Any], default: Any = None) -> Any:
    for source in sources:
        if key in source:
            return source[key]
    return default


def analytics_placeholder(
    device: DeviceRecord,
    submitted: Mapping[str, Any] | None = None,
    *,
    now: datetime,
) -> AnalyticsRecord:
    """Zeroed analytics entry for a freshly created device.

    The server response wins over what the caller submitted; every field the
    server returned is carried over verbatim.
    """
    returned = device.to_snapshot()
    sent = dict(submitted or {})
    label = _first(returned.get("name"), sent.get("name"), default=f"Device {device.id}")
    stamp = now.isoformat()
    fields: dict[str, Any] = {
        "id": device.id,
        "device_id": device.id,
        "device_name": label,
        "name": label,
        "room_number": _first_present("room_number", returned, sent, default=""),
        "floor_number": _first_present("floor_number", returned, sent, default=0),
        "tissue_type": _first(returned.get("tissue_type"), sent.get("tissue_type"), default=TissueType.HAND_TOWEL.value),
        "meter_capacity": _first(
            returned.get("meter_capacity"),
            sent.get("meter_capacity"),
            default=DEFAULT_METER_CAPACITY,
        ),
        "is_active": returned.get("is_active", False),
        "current_status": DeviceStatus.UNKNOWN.value,
        "total_entries": 0,
        "recent_entries_24h": 0,
        "last_activity": None,
        "minutes_since_update": None,
        "status_priority": 0,
        "created_at": returned.get("created_at") or stamp,
        "updated_at": returned.get("updated_at") or stamp,
    }
    fields.update(returned)
    fields["device_id"] = device.id
    return AnalyticsRecord.model_validate(fields)


def realtime_placeholder(device: DeviceRecord, *, now: datetime) -> RealtimeRecord:
    """Realtime entry for a device that has never reported."""
    return RealtimeRecord.model_validate(
        {
            "device_id": device.id,
            "is_active": False,
            "current_status": DeviceStatus.UNKNOWN.value,
            "minutes_since_update": None,
            "last_update": now,
        }
    )


def _identity_updates(updated: DeviceRecord) -> dict[str, Any]:
    returned = updated.to_snapshot()
    return {key: returned[key] for key in IDENTITY_FIELDS if key in returned}


def sync_analytics_identity(entry: AnalyticsRecord, updated: DeviceRecord, *, now: datetime) -> AnalyticsRecord:
    """Copy identity fields of *updated* into an analytics entry.

    Counters, priority hints and alert fields are left untouched.
    """
    fields = entry.to_snapshot()
    fields.update(_identity_updates(updated))
    fields["device_name"] = _first(updated.name, entry.device_name, fields.get("name"))
    fields["updated_at"] = now.isoformat()
    return AnalyticsRecord.model_validate(fields)


def sync_realtime_identity(entry: RealtimeRecord, updated: DeviceRecord, *, now: datetime) -> RealtimeRecord:
    """Bump ``last_update`` and refresh identity fields the entry already carries."""
    fields = entry.to_snapshot()
    for key, value in _identity_updates(updated).items():
        if key in fields:
            fields[key] = value
    fields["last_update"] = now.isoformat()
    return RealtimeRecord.model_validate(fields)
