"""Device registry model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from pydispenser.ingestion.normalize import device_key, safe_bool, safe_int, safe_str
from pydispenser.models._base import FeedEnum, FeedModel, Timestamp


class TissueType(FeedEnum):
    HAND_TOWEL = "hand_towel"
    TOILET_PAPER = "toilet_paper"


class Gender(FeedEnum):
    MALE = "male"
    FEMALE = "female"


class DeviceMetadata(BaseModel):
    """Opaque hardware metadata reported for a device."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
    )

    model: str | None = None
    firmware_version: str | None = None
    mac_address: str | None = None


class DeviceRecord(FeedModel):
    """A dispenser as known by the device registry.

    The registry owns device identity; overlays only decorate it.
    """

    id: int | str
    """Stable identifier, unique across the registry."""
    name: str = ""
    room_number: str = ""
    floor_number: int | None = None
    tissue_type: TissueType | None = None
    gender: Gender | None = None
    """Only meaningful for ``toilet_paper`` dispensers."""
    meter_capacity: int | None = None
    metadata: DeviceMetadata | None = None
    is_active: bool | None = None
    created_at: Timestamp = None
    updated_at: Timestamp = None

    @property
    def key(self) -> str:
        """Canonical lookup key (see :func:`pydispenser.ingestion.normalize.device_key`)."""
        return device_key(self.id) or ""

    @field_validator("id")
    @classmethod
    def _id_present(cls, value: int | str) -> int | str:
        if device_key(value) is None:
            raise ValueError("device id must be non-empty")
        return value.strip() if isinstance(value, str) else value

    @field_validator("name", "room_number", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return (safe_str(value) or "").strip()

    @field_validator("floor_number", "meter_capacity", mode="before")
    @classmethod
    def _coerce_ints(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("tissue_type", mode="before")
    @classmethod
    def _coerce_tissue_type(cls, value: Any) -> TissueType | None:
        if value is None or isinstance(value, TissueType):
            return value
        try:
            return TissueType(str(value))
        except ValueError:
            return None

    @field_validator("gender", mode="before")
    @classmethod
    def _coerce_gender(cls, value: Any) -> Gender | None:
        if value is None or isinstance(value, Gender):
            return value
        try:
            return Gender(str(value))
        except ValueError:
            return None

    @field_validator("is_active", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> bool | None:
        return safe_bool(value)
