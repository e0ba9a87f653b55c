"""Read-side helpers over merged views."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable

from pydispenser.models import DeviceStatus, MergedDeviceView


@dataclasses.dataclass(frozen=True)
class AlertCounts:
    """Dashboard alert badge counters."""

    empty: int = 0
    low: int = 0
    full: int = 0
    tamper: int = 0

    @property
    def total(self) -> int:
        # A full dispenser is not an alert.
        return self.empty + self.low + self.tamper


def search_views(views: Iterable[MergedDeviceView], term: str | None) -> list[MergedDeviceView]:
    """Case-insensitive substring match on name, room and floor."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(views)
    matched: list[MergedDeviceView] = []
    for view in views:
        haystack = (
            view.device_name,
            view.name,
            view.room_number,
            "" if view.floor_number is None else str(view.floor_number),
        )
        if any(needle in text.lower() for text in haystack if text):
            matched.append(view)
    return matched


def summarize_alerts(views: Iterable[MergedDeviceView]) -> AlertCounts:
    """Count tissue alerts across *views*.

    Each condition is counted independently, so a tampered empty device
    shows up under both ``tamper`` and ``empty``.
    """
    empty = low = full = tamper = 0
    for view in views:
        status = view.current_status
        alert = view.current_alert
        if view.current_tamper is True or view.tamper_count > 0:
            tamper += 1
        if status == DeviceStatus.EMPTY or alert == "EMPTY":
            empty += 1
        if status == DeviceStatus.LOW or alert == "LOW":
            low += 1
        if status == DeviceStatus.FULL or alert == "FULL":
            full += 1
    return AlertCounts(empty=empty, low=low, full=full, tamper=tamper)
