"""Merge the registry with both overlays into per-device views."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydispenser.ingestion.normalize import is_meaningful, record_key, registry_key
from pydispenser.models import MergedDeviceView
from pydispenser.models._base import FeedModel

_logger = logging.getLogger(__name__)


def _as_fields(item: Any) -> dict[str, Any]:
    if isinstance(item, FeedModel):
        return item.to_patch()
    if isinstance(item, Mapping):
        return dict(item)
    return {}


def _index(overlay: Iterable[Any]) -> dict[str, dict[str, Any]]:
    indexed: dict[str, dict[str, Any]] = {}
    for item in overlay:
        key = record_key(item)
        if key is None:
            continue
        # Later duplicates win.
        indexed[key] = _as_fields(item)
    return indexed


def _display_name(device: Mapping[str, Any], analytics: Mapping[str, Any], device_id: Any) -> str:
    for candidate in (device.get("name"), analytics.get("device_name"), analytics.get("name")):
        if is_meaningful(candidate):
            return str(candidate)
    return f"Device {device_id}"


def merge(
    registry: Iterable[Any],
    analytics: Iterable[Any] = (),
    realtime: Iterable[Any] = (),
) -> list[MergedDeviceView]:
    """Combine the three sources into one view per registry device.

    Field collisions resolve device < analytics < realtime, so a live status
    always overrides a stale analytics-derived one. Devices absent from an
    overlay fall back to the view defaults. Output order is registry order;
    a device id repeated in the registry yields a single view (the first).

    Accepts typed records or plain mappings for every source.
    """
    analytics_by_id = _index(analytics)
    realtime_by_id = _index(realtime)

    views: list[MergedDeviceView] = []
    seen: set[str] = set()
    for device in registry:
        key = registry_key(device)
        if key is None:
            _logger.debug("Skipping registry entry without identifier")
            continue
        if key in seen:
            _logger.debug("Skipping duplicate registry entry for device %s", key)
            continue
        seen.add(key)

        device_fields = _as_fields(device)
        device_id = device_fields.get("id", device_fields.get("device_id"))
        overlay_a = analytics_by_id.get(key, {})
        overlay_r = realtime_by_id.get(key, {})

        fields: dict[str, Any] = {**device_fields, **overlay_a, **overlay_r}
        fields.pop("urgency_score", None)
        fields["id"] = device_id
        fields["device_id"] = device_id
        fields["device_name"] = _display_name(device_fields, overlay_a, device_id)
        views.append(MergedDeviceView.model_validate(fields))
    return views
