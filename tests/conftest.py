from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import pytest

from pydispenser._cache import MemoryKeyValueStore, PersistenceCache
from pydispenser.state.coordinator import DeviceStateCoordinator

FIXED_NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class FakeHttpError(Exception):
    """Mimics an HTTP client error carrying a decoded response body."""

    def __init__(self, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.response = SimpleNamespace(data=data or {})


@dataclass
class FakeGateway:
    devices: list[dict[str, Any]] = field(default_factory=list)
    analytics: list[dict[str, Any]] = field(default_factory=list)
    realtime: list[dict[str, Any]] = field(default_factory=list)
    summary: dict[str, Any] | None = None
    status_summary: dict[str, Any] | None = None
    status_distribution: dict[str, Any] | None = None
    details: dict[str, Any] = field(default_factory=dict)
    failures: dict[str, BaseException] = field(default_factory=dict)
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    list_gate: asyncio.Event | None = None
    next_id: int = 100

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def _find(self, device_id: Any) -> dict[str, Any] | None:
        for device in self.devices:
            if str(device["id"]) == str(device_id):
                return device
        return None

    async def list_devices(self, token: str) -> Any:
        self._record("list_devices", token)
        snapshot = [dict(device) for device in self.devices]
        if self.list_gate is not None:
            await self.list_gate.wait()
        return {"results": snapshot}

    async def create_device(self, token: str, data: dict[str, Any]) -> dict[str, Any]:
        self._record("create_device", token, data)
        device = {"id": self.next_id, **data, "created_at": "2026-01-01T11:59:00Z"}
        self.next_id += 1
        self.devices.insert(0, device)
        return dict(device)

    async def update_device(self, token: str, device_id: int | str, patch: dict[str, Any]) -> dict[str, Any]:
        self._record("update_device", token, device_id, patch)
        device = self._find(device_id)
        if device is None:
            raise FakeHttpError("Not found", {"detail": "Device not found"})
        device.update(patch)
        return dict(device)

    async def delete_device(self, token: str, device_id: int | str) -> None:
        self._record("delete_device", token, device_id)
        self.devices = [device for device in self.devices if str(device["id"]) != str(device_id)]

    async def fetch_analytics(self, token: str) -> Any:
        self._record("fetch_analytics", token)
        return [dict(entry) for entry in self.analytics]

    async def fetch_realtime_status(self, token: str) -> Any:
        self._record("fetch_realtime_status", token)
        return [dict(entry) for entry in self.realtime]

    async def fetch_summary(self, token: str) -> dict[str, Any] | None:
        self._record("fetch_summary", token)
        return self.summary

    async def fetch_status_summary(self, token: str) -> dict[str, Any] | None:
        self._record("fetch_status_summary", token)
        return self.status_summary

    async def fetch_status_distribution(self, token: str) -> dict[str, Any] | None:
        self._record("fetch_status_distribution", token)
        return self.status_distribution

    async def fetch_device_data(self, token: str, device_id: int | str) -> Any:
        self._record("fetch_device_data", token, device_id)
        return self.details.get(str(device_id))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway(
        devices=[
            {"id": 1, "name": "Lobby", "room_number": "101", "floor_number": 1, "tissue_type": "hand_towel"},
            {"id": 7, "name": "Gents", "room_number": "204", "floor_number": 2, "tissue_type": "toilet_paper"},
        ],
        analytics=[
            {"device_id": 1, "total_entries": 42, "low_alert_count": 0, "status_priority": 1},
            {"id": 7, "device_name": "Gents", "total_entries": 5, "low_alert_count": 2, "status_priority": 2},
        ],
        realtime=[
            {"device_id": 1, "current_status": "normal", "minutes_since_update": 3, "is_active": True},
            {"device_id": "7", "current_status": "LOW", "minutes_since_update": 12, "is_active": True},
        ],
        summary={"total_devices": 2},
        status_summary={"low": 1},
        status_distribution={"devices": [{"device_id": 7, "status": "low"}]},
        details={"7": {"history": [1, 2, 3]}},
    )


@pytest.fixture
def cache() -> PersistenceCache:
    return PersistenceCache(MemoryKeyValueStore())


@pytest.fixture
def coordinator(gateway: FakeGateway, cache: PersistenceCache) -> DeviceStateCoordinator:
    return DeviceStateCoordinator(gateway, token="tok", cache=cache, clock=lambda: FIXED_NOW)
