"""Merged per-device view model."""

from __future__ import annotations

from typing import Any

from pydantic import field_validator

from pydispenser.ingestion.normalize import non_negative_or_zero, safe_bool, safe_float, safe_int, safe_str
from pydispenser.models._base import FeedModel, Timestamp
from pydispenser.models.device import Gender, TissueType
from pydispenser.models.realtime import DeviceStatus


class MergedDeviceView(FeedModel):
    """One device as displayed: registry identity decorated by both overlays.

    Views are recomputed on every read and never stored. Every status and
    metric field has a defined default, so a device missing from both
    overlays still renders (as ``unknown`` with zero counters).
    """

    id: int | str
    device_id: int | str
    device_name: str
    name: str = ""
    room_number: str = ""
    floor_number: int | None = None
    tissue_type: TissueType | None = None
    gender: Gender | None = None
    meter_capacity: int | None = None
    is_active: bool | None = None
    current_status: DeviceStatus = DeviceStatus.UNKNOWN
    minutes_since_update: float | None = None
    total_entries: int = 0
    recent_entries_24h: int = 0
    low_alert_count: int = 0
    tamper_count: int = 0
    status_priority: int = 0
    current_tamper: bool | None = None
    current_alert: str | None = None
    last_activity: Timestamp = None
    last_update: Timestamp = None
    urgency_score: int | None = None
    """Set by :func:`pydispenser.state.ranking.rank`."""

    @field_validator("name", "room_number", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return (safe_str(value) or "").strip()

    @field_validator("floor_number", "meter_capacity", mode="before")
    @classmethod
    def _coerce_optional_ints(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("tissue_type", mode="before")
    @classmethod
    def _coerce_tissue_type(cls, value: Any) -> TissueType | None:
        if value is None or isinstance(value, TissueType):
            return value
        try:
            return TissueType(str(value))
        except ValueError:
            return None

    @field_validator("gender", mode="before")
    @classmethod
    def _coerce_gender(cls, value: Any) -> Gender | None:
        if value is None or isinstance(value, Gender):
            return value
        try:
            return Gender(str(value))
        except ValueError:
            return None

    @field_validator("is_active", "current_tamper", mode="before")
    @classmethod
    def _coerce_flags(cls, value: Any) -> bool | None:
        return safe_bool(value)

    @field_validator("current_status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> DeviceStatus:
        if value is None:
            return DeviceStatus.UNKNOWN
        return DeviceStatus(str(value))

    @field_validator("minutes_since_update", mode="before")
    @classmethod
    def _coerce_minutes(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("total_entries", "recent_entries_24h", "low_alert_count", "tamper_count", mode="before")
    @classmethod
    def _coerce_counters(cls, value: Any) -> int:
        return non_negative_or_zero(value)

    @field_validator("status_priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> int:
        parsed = safe_int(value)
        return 0 if parsed is None else parsed

    @field_validator("current_alert", mode="before")
    @classmethod
    def _coerce_alert(cls, value: Any) -> str | None:
        text = safe_str(value)
        return text.strip().upper() if text else None
