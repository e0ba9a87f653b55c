"""Data models for dashboard feeds and registry mutations."""

from pydispenser.models._base import FeedEnum, FeedModel, OverlayRecord, Timestamp, parse_timestamp
from pydispenser.models.analytics import AnalyticsRecord
from pydispenser.models.device import DeviceMetadata, DeviceRecord, Gender, TissueType
from pydispenser.models.realtime import DeviceStatus, RealtimeRecord
from pydispenser.models.requests import (
    DEFAULT_METER_CAPACITY,
    MAX_METER_CAPACITY,
    DeviceDraft,
    DevicePatch,
    validate_device_data,
)
from pydispenser.models.view import MergedDeviceView

__all__ = [
    "DEFAULT_METER_CAPACITY",
    "MAX_METER_CAPACITY",
    "AnalyticsRecord",
    "DeviceDraft",
    "DeviceMetadata",
    "DevicePatch",
    "DeviceRecord",
    "DeviceStatus",
    "FeedEnum",
    "FeedModel",
    "Gender",
    "MergedDeviceView",
    "OverlayRecord",
    "RealtimeRecord",
    "Timestamp",
    "TissueType",
    "parse_timestamp",
    "validate_device_data",
]
