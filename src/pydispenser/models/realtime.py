"""Realtime status overlay model."""

from __future__ import annotations

from typing import Any

from pydantic import field_validator

from pydispenser.ingestion.normalize import safe_bool, safe_float
from pydispenser.models._base import FeedEnum, OverlayRecord, Timestamp


class DeviceStatus(FeedEnum):
    """Live dispenser status label."""

    NORMAL = "normal"
    LOW = "low"
    EMPTY = "empty"
    FULL = "full"
    TAMPER = "tamper"
    OFFLINE = "offline"
    UNKNOWN = "unknown"
    # Labels older firmware still reports.
    ACTIVE = "active"
    ONLINE = "online"
    INACTIVE = "inactive"


class RealtimeRecord(OverlayRecord):
    """Live status for one device, from the ``realtime-status`` feed."""

    is_active: bool | None = None
    current_status: DeviceStatus = DeviceStatus.UNKNOWN
    minutes_since_update: float | None = None
    """Minutes since the device last reported; ``None`` if it never did."""
    last_update: Timestamp = None

    @field_validator("is_active", mode="before")
    @classmethod
    def _coerce_active(cls, value: Any) -> bool | None:
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
