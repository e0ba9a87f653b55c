"""Injectable state container for the dispenser dashboard.

:class:`DeviceStateCoordinator` owns the registry, both overlays, the
summary payloads and the per-device detail cache. It sequences remote
calls through a :class:`~pydispenser.gateway.RemoteGateway` and applies
local changes only after the remote side accepted them, so there is
nothing to roll back on failure.

Usage::

    coordinator = DeviceStateCoordinator(gateway, token=token)
    coordinator.load_cached()
    await coordinator.refresh_all()
    for view in coordinator.ranked_views():
        ...
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from pydispenser._cache import FileKeyValueStore, MemoryKeyValueStore, PersistenceCache
from pydispenser._redact import redact_for_log
from pydispenser.config import DispenserConfig, RankingPolicy
from pydispenser.exceptions import DispenserError, MissingTokenError, RemoteError, ValidationError
from pydispenser.gateway import RemoteGateway
from pydispenser.ingestion.normalize import device_key, normalize_records
from pydispenser.models import (
    AnalyticsRecord,
    DeviceRecord,
    MergedDeviceView,
    RealtimeRecord,
    validate_device_data,
)
from pydispenser.state.collections import DeviceRegistry, Overlay
from pydispenser.state.merge import merge
from pydispenser.state.placeholders import (
    analytics_placeholder,
    realtime_placeholder,
    sync_analytics_identity,
    sync_realtime_identity,
)
from pydispenser.state.policy import FetchSequence
from pydispenser.state.query import AlertCounts, search_views, summarize_alerts
from pydispenser.state.ranking import rank

_logger = logging.getLogger(__name__)

# Snapshot cache keys.
CACHE_DEVICES = "devices"
CACHE_ANALYTICS = "analytics"
CACHE_REALTIME = "realtime_status"
CACHE_SUMMARY = "summary"
CACHE_STATUS_SUMMARY = "status_summary"
CACHE_STATUS_DISTRIBUTION = "status_distribution"

CACHE_KEYS: tuple[str, ...] = (
    CACHE_DEVICES,
    CACHE_ANALYTICS,
    CACHE_REALTIME,
    CACHE_SUMMARY,
    CACHE_STATUS_SUMMARY,
    CACHE_STATUS_DISTRIBUTION,
)

# Dict-shaped payloads and the gateway method that fetches each one.
_PAYLOAD_FETCHERS: dict[str, str] = {
    CACHE_SUMMARY: "fetch_summary",
    CACHE_STATUS_SUMMARY: "fetch_status_summary",
    CACHE_STATUS_DISTRIBUTION: "fetch_status_distribution",
}

OVERLAY_PARTS: tuple[str, ...] = (CACHE_ANALYTICS, CACHE_REALTIME, *_PAYLOAD_FETCHERS)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclasses.dataclass(frozen=True)
class RefreshResult:
    """Outcome of a refresh; failures are reported, never raised.

    ``errors`` maps the failed part (``devices``, ``analytics``,
    ``realtime_status``, ``summary``, ``status_summary``,
    ``status_distribution``) to its exception.
    """

    errors: Mapping[str, BaseException] = dataclasses.field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def failed(self) -> tuple[str, ...]:
        return tuple(self.errors)


class DeviceStateCoordinator:
    """State container for the device registry and its overlays.

    Parameters
    ----------
    gateway
        Remote backend implementation.
    token
        Opaque access token passed to every gateway call.
    cache
        Snapshot cache; ``None`` disables persistence.
    policy
        Urgency score table used by :meth:`ranked_views`.
    clock
        Returns the current UTC time; injectable for deterministic tests.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        *,
        token: str | None = None,
        cache: PersistenceCache | None = None,
        policy: RankingPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._gateway = gateway
        self._token = token
        self._cache = cache
        self._policy = policy or RankingPolicy()
        self._clock = clock

        self._registry = DeviceRegistry()
        self._analytics: Overlay[AnalyticsRecord] = Overlay(AnalyticsRecord)
        self._realtime: Overlay[RealtimeRecord] = Overlay(RealtimeRecord)
        self._payloads: dict[str, dict[str, Any] | None] = dict.fromkeys(_PAYLOAD_FETCHERS)
        self._device_data: dict[str, Any] = {}
        self._sequences: dict[str, FetchSequence] = {key: FetchSequence(key) for key in CACHE_KEYS}

        self._pending = 0
        self._overlays_pending = 0
        self._distribution_pending = 0

        self.error: str | None = None
        self.analytics_error: str | None = None
        self.realtime_error: str | None = None
        self.distribution_error: str | None = None
        self.operation_message: str | None = None
        self.last_data_update: datetime | None = None

    @classmethod
    def from_config(cls, gateway: RemoteGateway, config: DispenserConfig | None = None) -> DeviceStateCoordinator:
        """Build a coordinator (and its snapshot cache) from configuration."""
        config = config or DispenserConfig.from_env()
        cache: PersistenceCache | None = None
        if config.cache_enabled:
            store = FileKeyValueStore(config.cache_dir) if config.cache_dir else MemoryKeyValueStore()
            cache = PersistenceCache(store, prefix=config.cache_prefix)
        return cls(gateway, token=config.token, cache=cache, policy=config.ranking)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        self._token = token

    @property
    def policy(self) -> RankingPolicy:
        return self._policy

    @property
    def loading(self) -> bool:
        """True while a registry fetch or mutation is in flight."""
        return self._pending > 0

    @property
    def overlays_loading(self) -> bool:
        return self._overlays_pending > 0

    @property
    def distribution_loading(self) -> bool:
        return self._distribution_pending > 0

    @property
    def devices(self) -> tuple[DeviceRecord, ...]:
        return self._registry.items

    @property
    def analytics(self) -> tuple[AnalyticsRecord, ...]:
        return self._analytics.items

    @property
    def realtime_status(self) -> tuple[RealtimeRecord, ...]:
        return self._realtime.items

    @property
    def summary(self) -> dict[str, Any] | None:
        return self._payloads[CACHE_SUMMARY]

    @property
    def status_summary(self) -> dict[str, Any] | None:
        return self._payloads[CACHE_STATUS_SUMMARY]

    @property
    def status_distribution(self) -> dict[str, Any] | None:
        return self._payloads[CACHE_STATUS_DISTRIBUTION]

    def device_data(self, device_id: Any) -> Any | None:
        key = device_key(device_id)
        return None if key is None else self._device_data.get(key)

    def list(self) -> list[DeviceRecord]:
        """Current registry contents, newest local additions first."""
        return list(self._registry.items)

    def merged_views(self) -> list[MergedDeviceView]:
        return merge(self._registry, self._analytics, self._realtime)

    def ranked_views(self, search: str | None = None) -> list[MergedDeviceView]:
        """Merged views filtered by *search* and ordered by urgency."""
        views = self.merged_views()
        if search:
            views = search_views(views, search)
        return rank(views, self._policy)

    def alert_counts(self) -> AlertCounts:
        return summarize_alerts(self.merged_views())

    def clear_error(self) -> None:
        self.error = None
        self.analytics_error = None
        self.realtime_error = None
        self.distribution_error = None
        self.operation_message = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_token(self) -> str:
        if not self._token:
            exc = MissingTokenError()
            self.error = str(exc)
            raise exc
        return self._token

    def _touch(self) -> None:
        self.last_data_update = self._clock()

    def _succeed(self, message: str | None = None) -> None:
        self.error = None
        if message is not None:
            self.operation_message = message
        self._touch()

    def _reject(self, exc: DispenserError, failure_message: str) -> None:
        self.error = str(exc)
        self.operation_message = failure_message

    def _remote_failure(self, exc: BaseException, *, operation: str, failure_message: str) -> RemoteError:
        error = RemoteError.from_exception(exc, operation=operation, default=failure_message)
        self._reject(error, failure_message)
        _logger.debug("%s failed: %s", operation, error)
        return error

    def _persist(self, key: str, payload: Any) -> None:
        """Schedule a snapshot write without blocking the caller."""
        if self._cache is None:
            return
        asyncio.get_running_loop().call_soon(self._cache.write, key, payload)

    def _persist_collections(self) -> None:
        self._persist(CACHE_DEVICES, self._registry.snapshot())
        self._persist(CACHE_ANALYTICS, self._analytics.snapshot())
        self._persist(CACHE_REALTIME, self._realtime.snapshot())

    def _commit_local(self, *keys: str) -> None:
        for key in keys:
            self._sequences[key].commit()

    # ------------------------------------------------------------------
    # Registry mutations
    # ------------------------------------------------------------------

    async def add(self, data: Mapping[str, Any]) -> DeviceRecord:
        """Validate and create a device.

        On success the server's record is inserted at the front of the
        registry and zeroed analytics/realtime entries are inserted at the
        front of both overlays.

        Raises
        ------
        ValidationError
            Input rejected locally; the gateway is not called.
        RemoteError
            The gateway rejected the call; local data is unchanged.
        """
        try:
            payload = validate_device_data(data)
        except ValidationError as exc:
            self._reject(exc, "Failed to add device")
            raise
        token = self._require_token()

        _logger.debug("Creating device: %s", redact_for_log(payload))
        self._pending += 1
        try:
            created = await self._gateway.create_device(token, payload)
        except Exception as exc:
            raise self._remote_failure(exc, operation="add", failure_message="Failed to add device") from exc
        finally:
            self._pending -= 1

        device = self._coerce_device(created, operation="add", failure_message="Failed to add device")
        now = self._clock()
        self._registry.insert_first(device)
        self._analytics.insert_first(analytics_placeholder(device, payload, now=now))
        self._realtime.insert_first(realtime_placeholder(device, now=now))
        self._commit_local(CACHE_DEVICES, CACHE_ANALYTICS, CACHE_REALTIME)
        self._succeed("Device added successfully")
        self._persist_collections()
        _logger.debug("Device %s added", device.key)
        return device

    async def update(self, device_id: int | str, patch: Mapping[str, Any]) -> DeviceRecord:
        """Validate and apply a partial update to one device.

        Only identity-derived overlay fields are touched; usage counters and
        alert fields keep their fetched values.
        """
        try:
            if device_key(device_id) is None:
                raise ValidationError("Invalid update parameters", field="device_id")
            payload = validate_device_data(patch, partial=True)
        except ValidationError as exc:
            self._reject(exc, "Failed to update device")
            raise
        token = self._require_token()

        _logger.debug("Updating device %s: %s", device_id, redact_for_log(payload))
        self._pending += 1
        try:
            response = await self._gateway.update_device(token, device_id, payload)
        except Exception as exc:
            raise self._remote_failure(exc, operation="update", failure_message="Failed to update device") from exc
        finally:
            self._pending -= 1

        existing = self._registry.get(device_id)
        if isinstance(response, Mapping) and device_key(response.get("id")) is not None:
            updated = self._coerce_device(response, operation="update", failure_message="Failed to update device")
        else:
            # Some backends answer with an empty body; rebuild from what was sent.
            base = existing.to_snapshot() if existing is not None else {"id": device_id}
            updated = self._coerce_device(
                {**base, **payload, **(response if isinstance(response, Mapping) else {})},
                operation="update",
                failure_message="Failed to update device",
            )

        now = self._clock()
        self._registry.replace_item(device_id, updated)
        self._analytics.update_item(device_id, lambda entry: sync_analytics_identity(entry, updated, now=now))
        self._realtime.update_item(device_id, lambda entry: sync_realtime_identity(entry, updated, now=now))
        self._commit_local(CACHE_DEVICES, CACHE_ANALYTICS, CACHE_REALTIME)
        self._succeed("Device updated successfully")
        self._persist_collections()
        return updated

    async def delete(self, device_id: int | str) -> None:
        """Delete a device from the backend and from every local collection.

        Registry, both overlays and the detail cache are cleaned in a single
        synchronous step, so no merged view can observe a partial removal.
        """
        key = device_key(device_id)
        if key is None:
            exc = ValidationError("Invalid device ID", field="device_id")
            self._reject(exc, "Failed to delete device")
            raise exc
        token = self._require_token()

        self._pending += 1
        try:
            await self._gateway.delete_device(token, device_id)
        except Exception as exc:
            raise self._remote_failure(exc, operation="delete", failure_message="Failed to delete device") from exc
        finally:
            self._pending -= 1

        self._registry.remove(key)
        self._analytics.remove(key)
        self._realtime.remove(key)
        self._device_data.pop(key, None)
        self._commit_local(CACHE_DEVICES, CACHE_ANALYTICS, CACHE_REALTIME)
        self._succeed("Device deleted successfully")
        self._persist_collections()
        _logger.debug("Device %s deleted", key)

    def _coerce_device(self, payload: Any, *, operation: str, failure_message: str) -> DeviceRecord:
        try:
            return DeviceRecord.model_validate(payload)
        except PydanticValidationError as exc:
            error = RemoteError(f"Unexpected device payload from server: {exc}", operation=operation)
            self._reject(error, failure_message)
            raise error from exc

    # ------------------------------------------------------------------
    # Fetches
    # ------------------------------------------------------------------

    async def fetch_devices(self) -> list[DeviceRecord]:
        """Replace the registry with the server's device list."""
        token = self._require_token()
        sequence = self._sequences[CACHE_DEVICES]
        ticket = sequence.begin()
        self._pending += 1
        try:
            payload = await self._gateway.list_devices(token)
        except Exception as exc:
            raise self._remote_failure(
                exc, operation="fetch_devices", failure_message="Failed to fetch devices"
            ) from exc
        finally:
            self._pending -= 1

        records = normalize_records(payload, DeviceRecord)
        if sequence.commit(ticket):
            self._registry.replace(records)
            self._succeed()
            self._persist(CACHE_DEVICES, self._registry.snapshot())
            _logger.debug("Fetched %d devices", len(records))
        return self.list()

    async def _fetch_analytics(self, token: str) -> None:
        sequence = self._sequences[CACHE_ANALYTICS]
        ticket = sequence.begin()
        try:
            payload = await self._gateway.fetch_analytics(token)
        except Exception as exc:
            error = RemoteError.from_exception(exc, operation="fetch_analytics", default="Failed to fetch analytics")
            self.analytics_error = str(error)
            raise error from exc
        records = normalize_records(payload, AnalyticsRecord)
        if sequence.commit(ticket):
            self._analytics.replace(records)
            self.analytics_error = None
            self._persist(CACHE_ANALYTICS, self._analytics.snapshot())

    async def _fetch_realtime(self, token: str) -> None:
        sequence = self._sequences[CACHE_REALTIME]
        ticket = sequence.begin()
        try:
            payload = await self._gateway.fetch_realtime_status(token)
        except Exception as exc:
            error = RemoteError.from_exception(
                exc, operation="fetch_realtime_status", default="Failed to fetch realtime status"
            )
            self.realtime_error = str(error)
            raise error from exc
        records = normalize_records(payload, RealtimeRecord)
        if sequence.commit(ticket):
            self._realtime.replace(records)
            self.realtime_error = None
            self._persist(CACHE_REALTIME, self._realtime.snapshot())

    async def _fetch_payload(self, token: str, key: str) -> None:
        sequence = self._sequences[key]
        ticket = sequence.begin()
        operation = _PAYLOAD_FETCHERS[key]
        try:
            payload = await getattr(self._gateway, operation)(token)
        except Exception as exc:
            raise RemoteError.from_exception(
                exc, operation=operation, default=f"Failed to fetch {key.replace('_', ' ')}"
            ) from exc
        value = dict(payload) if isinstance(payload, Mapping) else None
        if sequence.commit(ticket):
            self._payloads[key] = value
            self._persist(key, value)

    async def _fetch_distribution(self, token: str) -> None:
        self._distribution_pending += 1
        try:
            await self._fetch_payload(token, CACHE_STATUS_DISTRIBUTION)
        except RemoteError as exc:
            self.distribution_error = str(exc)
            raise
        finally:
            self._distribution_pending -= 1
        self.distribution_error = None

    async def fetch_status_distribution(self) -> dict[str, Any] | None:
        """Fetch the per-status device breakdown on its own.

        Raises
        ------
        RemoteError
            The gateway call failed; the previous breakdown is kept and
            :attr:`distribution_error` is set.
        """
        token = self._require_token()
        await self._fetch_distribution(token)
        return self.status_distribution

    async def fetch_overlays(self) -> RefreshResult:
        """Fetch analytics, realtime status and the summary payloads concurrently.

        Each part fails independently: the others still apply, the failed
        part keeps its previous data and is reported in the result.
        """
        token = self._require_token()
        self._overlays_pending += 1
        try:
            results = await asyncio.gather(
                self._fetch_analytics(token),
                self._fetch_realtime(token),
                self._fetch_payload(token, CACHE_SUMMARY),
                self._fetch_payload(token, CACHE_STATUS_SUMMARY),
                self._fetch_distribution(token),
                return_exceptions=True,
            )
        finally:
            self._overlays_pending -= 1

        errors: dict[str, BaseException] = {}
        for part, result in zip(OVERLAY_PARTS, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                _logger.warning("Fetching %s failed: %s", part, result)
                errors[part] = result
        if len(errors) < len(OVERLAY_PARTS):
            self._touch()
        return RefreshResult(errors=errors)

    async def refresh_all(self) -> RefreshResult:
        """Refresh the registry and every overlay concurrently.

        Never raises for remote failures: partial data is expected, and the
        failed parts are listed in the returned result.
        """
        devices_result, overlays_result = await asyncio.gather(
            self.fetch_devices(),
            self.fetch_overlays(),
            return_exceptions=True,
        )
        errors: dict[str, BaseException] = {}
        for result in (devices_result, overlays_result):
            if isinstance(result, asyncio.CancelledError):
                raise result
        if isinstance(devices_result, BaseException):
            _logger.warning("Fetching devices failed: %s", devices_result)
            errors[CACHE_DEVICES] = devices_result
        if isinstance(overlays_result, RefreshResult):
            errors.update(overlays_result.errors)
        elif isinstance(overlays_result, BaseException):
            _logger.warning("Fetching overlays failed: %s", overlays_result)
            for part in OVERLAY_PARTS:
                errors[part] = overlays_result
        return RefreshResult(errors=errors)

    async def fetch_device_detail(self, device_id: int | str) -> Any:
        """Fetch and cache the detail payload for one device."""
        token = self._require_token()
        key = device_key(device_id)
        if key is None:
            exc = ValidationError("Invalid device ID", field="device_id")
            self._reject(exc, "Failed to fetch device data")
            raise exc
        try:
            payload = await self._gateway.fetch_device_data(token, device_id)
        except Exception as exc:
            raise self._remote_failure(
                exc, operation="fetch_device_data", failure_message="Failed to fetch device data"
            ) from exc
        self._device_data[key] = payload
        self._succeed()
        return payload

    # ------------------------------------------------------------------
    # Snapshot cache
    # ------------------------------------------------------------------

    def load_cached(self) -> dict[str, int]:
        """Fill still-empty collections from the snapshot cache.

        Collections already populated by a fetch or mutation are left alone.
        Returns the number of entries restored per cache key.
        """
        if self._cache is None:
            return {}
        restored: dict[str, int] = {}
        collections: tuple[tuple[str, DeviceRegistry | Overlay[Any]], ...] = (
            (CACHE_DEVICES, self._registry),
            (CACHE_ANALYTICS, self._analytics),
            (CACHE_REALTIME, self._realtime),
        )
        for key, collection in collections:
            if not self._sequences[key].is_pristine:
                continue
            payload = self._cache.read(key)
            if payload is None:
                continue
            restored[key] = collection.restore(payload)

        for key in _PAYLOAD_FETCHERS:
            if not self._sequences[key].is_pristine:
                continue
            payload = self._cache.read(key)
            if not isinstance(payload, Mapping):
                continue
            self._payloads[key] = dict(payload)
            restored[key] = len(payload)

        _logger.debug("Restored from snapshot cache: %s", restored)
        return restored
