from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from conftest import FIXED_NOW, FakeGateway, FakeHttpError

from pydispenser._cache import MemoryKeyValueStore, PersistenceCache
from pydispenser.config import DispenserConfig
from pydispenser.exceptions import RemoteError
from pydispenser.models import DeviceStatus
from pydispenser.state.coordinator import DeviceStateCoordinator


@pytest.mark.asyncio
async def test_refresh_all_populates_every_collection(coordinator: DeviceStateCoordinator) -> None:
    result = await coordinator.refresh_all()

    assert result.ok
    assert len(coordinator.devices) == 2
    assert len(coordinator.analytics) == 2
    assert len(coordinator.realtime_status) == 2
    assert coordinator.summary == {"total_devices": 2}
    assert coordinator.status_summary == {"low": 1}
    assert coordinator.status_distribution == {"devices": [{"device_id": 7, "status": "low"}]}
    assert coordinator.last_data_update == FIXED_NOW
    assert coordinator.loading is False
    assert coordinator.overlays_loading is False


@pytest.mark.asyncio
async def test_refresh_all_reports_partial_failure(coordinator: DeviceStateCoordinator, gateway: FakeGateway) -> None:
    gateway.failures["fetch_analytics"] = FakeHttpError("Bad gateway", {"detail": "analytics offline"})

    result = await coordinator.refresh_all()

    assert result.failed == ("analytics",)
    assert isinstance(result.errors["analytics"], RemoteError)
    assert coordinator.analytics_error == "analytics offline"
    assert coordinator.realtime_error is None
    assert len(coordinator.devices) == 2
    assert len(coordinator.realtime_status) == 2

    views = coordinator.ranked_views()
    assert len(views) == 2
    assert all(view.total_entries == 0 for view in views)


@pytest.mark.asyncio
async def test_failed_registry_fetch_keeps_previous_devices(
    coordinator: DeviceStateCoordinator, gateway: FakeGateway
) -> None:
    await coordinator.refresh_all()
    gateway.failures["list_devices"] = RuntimeError("timeout")
    gateway.failures["fetch_summary"] = RuntimeError("timeout")

    result = await coordinator.refresh_all()

    assert set(result.failed) == {"devices", "summary"}
    assert [device.key for device in coordinator.devices] == ["1", "7"]
    assert coordinator.summary == {"total_devices": 2}
    assert coordinator.error == "timeout"


@pytest.mark.asyncio
async def test_refresh_all_without_token_reports_instead_of_raising(gateway: FakeGateway) -> None:
    coordinator = DeviceStateCoordinator(gateway)

    result = await coordinator.refresh_all()

    assert not result.ok
    assert "devices" in result.failed
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_ranked_views_empty_scenario(gateway: FakeGateway) -> None:
    gateway.devices = [{"id": 1, "name": "A"}]
    gateway.analytics = [{"device_id": 1, "status_priority": 3}]
    gateway.realtime = [{"device_id": 1, "current_status": "empty", "minutes_since_update": 2}]
    coordinator = DeviceStateCoordinator(gateway, token="tok")

    await coordinator.refresh_all()

    [view] = coordinator.ranked_views()
    assert view.id == 1
    assert view.current_status == DeviceStatus.EMPTY
    assert view.urgency_score == 90


@pytest.mark.asyncio
async def test_ranked_views_search_filters_before_ranking(coordinator: DeviceStateCoordinator) -> None:
    await coordinator.refresh_all()

    views = coordinator.ranked_views(search="204")

    assert [view.device_name for view in views] == ["Gents"]
    assert views[0].urgency_score == 82


@pytest.mark.asyncio
async def test_load_cached_restores_previous_session(gateway: FakeGateway, cache: PersistenceCache) -> None:
    first = DeviceStateCoordinator(gateway, token="tok", cache=cache)
    await first.refresh_all()
    await asyncio.sleep(0)

    second = DeviceStateCoordinator(gateway, token="tok", cache=cache)
    restored = second.load_cached()

    assert restored["devices"] == 2
    assert restored["analytics"] == 2
    assert restored["realtime_status"] == 2
    assert second.summary == {"total_devices": 2}
    assert second.status_distribution == {"devices": [{"device_id": 7, "status": "low"}]}
    assert restored["status_distribution"] == 1
    assert [view.id for view in second.ranked_views()] == [view.id for view in first.ranked_views()]


@pytest.mark.asyncio
async def test_load_cached_never_overwrites_fetched_data(gateway: FakeGateway) -> None:
    cache = PersistenceCache(MemoryKeyValueStore())
    cache.write("devices", [{"id": 99, "name": "Cached"}])
    cache.write("analytics", [{"device_id": 99, "total_entries": 3}])
    coordinator = DeviceStateCoordinator(gateway, token="tok", cache=cache)

    await coordinator.fetch_devices()
    restored = coordinator.load_cached()

    assert "devices" not in restored
    assert restored["analytics"] == 1
    assert [device.key for device in coordinator.devices] == ["1", "7"]


def test_load_cached_ignores_corrupt_snapshots(gateway: FakeGateway) -> None:
    store = MemoryKeyValueStore({"devices": "{not json", "analytics": "[]"})
    coordinator = DeviceStateCoordinator(gateway, cache=PersistenceCache(store))

    restored = coordinator.load_cached()

    assert restored == {"analytics": 0}
    assert coordinator.devices == ()


@pytest.mark.asyncio
async def test_from_config_writes_snapshots_to_cache_dir(gateway: FakeGateway, tmp_path: Path) -> None:
    config = DispenserConfig(token="tok", cache_dir=str(tmp_path), cache_prefix="dash_")
    coordinator = DeviceStateCoordinator.from_config(gateway, config)

    await coordinator.fetch_devices()
    await asyncio.sleep(0)

    assert coordinator.token == "tok"
    assert (tmp_path / "dash_devices.json").exists()


@pytest.mark.asyncio
async def test_from_config_without_cache(gateway: FakeGateway) -> None:
    coordinator = DeviceStateCoordinator.from_config(gateway, DispenserConfig(token="tok", cache_enabled=False))

    await coordinator.fetch_devices()

    assert coordinator.load_cached() == {}


@pytest.mark.asyncio
async def test_status_distribution_failure_is_reported_and_keeps_previous(
    coordinator: DeviceStateCoordinator, gateway: FakeGateway
) -> None:
    await coordinator.refresh_all()
    gateway.failures["fetch_status_distribution"] = FakeHttpError("Bad gateway", {"message": "distribution offline"})

    result = await coordinator.refresh_all()

    assert result.failed == ("status_distribution",)
    assert coordinator.distribution_error == "distribution offline"
    assert coordinator.status_distribution == {"devices": [{"device_id": 7, "status": "low"}]}
    assert coordinator.analytics_error is None

    coordinator.clear_error()
    assert coordinator.distribution_error is None


@pytest.mark.asyncio
async def test_fetch_status_distribution_standalone(coordinator: DeviceStateCoordinator, gateway: FakeGateway) -> None:
    gateway.status_distribution = {"devices": [], "empty": 0}

    assert await coordinator.fetch_status_distribution() == {"devices": [], "empty": 0}
    assert coordinator.distribution_loading is False
    assert gateway.call_names() == ["fetch_status_distribution"]

    gateway.failures["fetch_status_distribution"] = RuntimeError("timeout")
    with pytest.raises(RemoteError, match="timeout"):
        await coordinator.fetch_status_distribution()

    assert coordinator.distribution_error == "timeout"
    assert coordinator.status_distribution == {"devices": [], "empty": 0}
    assert coordinator.distribution_loading is False


@pytest.mark.asyncio
async def test_status_distribution_snapshot_is_written(
    coordinator: DeviceStateCoordinator, cache: PersistenceCache
) -> None:
    await coordinator.fetch_status_distribution()
    await asyncio.sleep(0)

    assert cache.read("status_distribution") == {"devices": [{"device_id": 7, "status": "low"}]}
