"""Remote registry and feed interface.

The library ships no network client. Callers implement
:class:`RemoteGateway` on top of their HTTP stack and hand it to
:class:`pydispenser.state.coordinator.DeviceStateCoordinator`. Having a
protocol here makes it easy to pass test doubles while keeping production
gateways concrete.

Every method receives the opaque access token first. Failures may be any
exception; the coordinator extracts a message from
``exc.response.data.{message,error,detail}`` when present.
"""

from __future__ import annotations

from typing import Any, Protocol


class RemoteGateway(Protocol):
    """Structural interface for the dashboard backend."""

    async def list_devices(self, token: str) -> Any:
        """Registry list, bare or wrapped as ``{results|devices|data: [...]}``."""
        ...

    async def create_device(self, token: str, data: dict[str, Any]) -> dict[str, Any]:
        ...

    async def update_device(self, token: str, device_id: int | str, patch: dict[str, Any]) -> dict[str, Any]:
        ...

    async def delete_device(self, token: str, device_id: int | str) -> None:
        ...

    async def fetch_analytics(self, token: str) -> Any:
        ...

    async def fetch_realtime_status(self, token: str) -> Any:
        ...

    async def fetch_summary(self, token: str) -> dict[str, Any] | None:
        ...

    async def fetch_status_summary(self, token: str) -> dict[str, Any] | None:
        ...

    async def fetch_status_distribution(self, token: str) -> dict[str, Any] | None:
        """Per-status device breakdown, usually ``{"devices": [...], ...}``."""
        ...

    async def fetch_device_data(self, token: str, device_id: int | str) -> Any:
        """Per-device detail payload (usage history, counters)."""
        ...
