"""pydispenser - Async state layer for tissue-dispenser monitoring dashboards."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pydispenser")
except PackageNotFoundError:
    __version__ = "0+local"
from pydispenser._cache import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore, PersistenceCache
from pydispenser.config import DispenserConfig, RankingPolicy
from pydispenser.exceptions import (
    CacheError,
    DispenserConfigError,
    DispenserError,
    MissingTokenError,
    RemoteError,
    ValidationError,
)
from pydispenser.gateway import RemoteGateway
from pydispenser.models import (
    AnalyticsRecord,
    DeviceRecord,
    DeviceStatus,
    Gender,
    MergedDeviceView,
    RealtimeRecord,
    TissueType,
    validate_device_data,
)
from pydispenser.state.coordinator import DeviceStateCoordinator, RefreshResult
from pydispenser.state.merge import merge
from pydispenser.state.query import AlertCounts, search_views, summarize_alerts
from pydispenser.state.ranking import rank, urgency_score

__all__ = [
    "__version__",
    "AlertCounts",
    "AnalyticsRecord",
    "CacheError",
    "DeviceRecord",
    "DeviceStateCoordinator",
    "DeviceStatus",
    "DispenserConfig",
    "DispenserConfigError",
    "DispenserError",
    "FileKeyValueStore",
    "Gender",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "MergedDeviceView",
    "MissingTokenError",
    "PersistenceCache",
    "RankingPolicy",
    "RealtimeRecord",
    "RefreshResult",
    "RemoteError",
    "RemoteGateway",
    "TissueType",
    "ValidationError",
    "merge",
    "rank",
    "search_views",
    "summarize_alerts",
    "urgency_score",
    "validate_device_data",
]
