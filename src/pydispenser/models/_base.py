"""Base model and enum for dashboard feed records.

Every feed record inherits from :class:`FeedModel` which provides:

* ``extra="allow"`` so fields the backend adds later survive ingestion,
  merging and snapshotting untouched.
* A ``model_validator(mode="before")`` that strips backend sentinel
  values (``"--"``, ``"NaN"``, NaN) so the field default is used.
* :meth:`FeedModel.to_patch`, the dict form used by the merge engine and
  the snapshot cache (only fields the payload actually carried).

Label enums inherit from :class:`FeedEnum` which matches values
case-insensitively and resolves unmapped values to ``UNKNOWN`` when the
enum defines it.
"""

from __future__ import annotations

import enum
import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from pydispenser.ingestion.normalize import device_key, safe_float

# Sentinel strings the backend uses for "not available".
_SENTINELS = frozenset({"--", "NaN", "nan", "null"})

# Threshold to distinguish epoch seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce ISO-8601 strings or epoch numbers (s or ms) to a UTC datetime.

    Unparseable input yields ``None`` instead of failing the record.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        ts = safe_float(value)
        if ts is None or ts <= 0:
            return None
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None


Timestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that leniently coerces backend timestamps to UTC datetimes."""


class FeedEnum(enum.StrEnum):
    """Base for backend label enums."""

    @classmethod
    def _missing_(cls, value: object) -> FeedEnum | None:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.__members__.get("UNKNOWN")


class FeedModel(BaseModel):
    """Base for registry and overlay records."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _clean_sentinels(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    def to_patch(self) -> dict[str, Any]:
        """Fields the record actually carries, including extras.

        Defaults that were never supplied are left out so that merging a
        sparse overlay cannot clobber values owned by another source.
        """
        return self.model_dump(exclude_unset=True)

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-safe form written to the snapshot cache."""
        return self.model_dump(mode="json", exclude_unset=True)


class OverlayRecord(FeedModel):
    """Base for per-device overlay rows (analytics, realtime).

    Overlay feeds expose the device key as either ``device_id`` or ``id``;
    both are accepted and stored under ``device_id``.
    """

    device_id: int | str = Field(validation_alias=AliasChoices("device_id", "id"))

    @property
    def key(self) -> str:
        return device_key(self.device_id) or ""
