"""Analytics overlay model."""

from __future__ import annotations

from typing import Any

from pydantic import field_validator

from pydispenser.ingestion.normalize import non_negative_or_zero, safe_bool, safe_int, safe_str
from pydispenser.models._base import OverlayRecord, Timestamp


class AnalyticsRecord(OverlayRecord):
    """Aggregated usage and alert counters for one device.

    Mapped from the ``device-analytics`` feed. The whole collection is
    replaced on every successful fetch.
    """

    device_name: str | None = None
    """Display name as known by the analytics backend."""
    total_entries: int = 0
    """Lifetime usage events."""
    recent_entries_24h: int = 0
    """Usage events over the last 24 hours."""
    last_activity: Timestamp = None
    status_priority: int = 0
    """Backend urgency hint (``4`` tamper, ``3`` empty, ``2`` low, ``1`` normal)."""
    low_alert_count: int = 0
    tamper_count: int = 0
    current_tamper: bool | None = None
    """Whether a tamper condition is currently latched."""
    current_alert: str | None = None
    """Latest alert label (``EMPTY``, ``LOW``, ``FULL``)."""

    @field_validator("total_entries", "recent_entries_24h", "low_alert_count", "tamper_count", mode="before")
    @classmethod
    def _coerce_counters(cls, value: Any) -> int:
        return non_negative_or_zero(value)

    @field_validator("status_priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> int:
        parsed = safe_int(value)
        return 0 if parsed is None else parsed

    @field_validator("current_tamper", mode="before")
    @classmethod
    def _coerce_tamper(cls, value: Any) -> bool | None:
        return safe_bool(value)

    @field_validator("current_alert", mode="before")
    @classmethod
    def _coerce_alert(cls, value: Any) -> str | None:
        text = safe_str(value)
        return text.strip().upper() if text else None
