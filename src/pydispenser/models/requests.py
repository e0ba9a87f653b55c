"""Pydantic request models for registry mutations.

These models provide the "validate → normalize → send" flow used by
:class:`pydispenser.state.coordinator.DeviceStateCoordinator` before any
RemoteGateway call. Form input often arrives as strings (``"2"``,
``"500"``); the normalized payload always carries integers.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from pydispenser.exceptions import ValidationError
from pydispenser.models.device import Gender, TissueType

MAX_METER_CAPACITY = 99999
DEFAULT_METER_CAPACITY = 500

_INT_PATTERN = re.compile(r"^[+-]?\d+$")


def _parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and _INT_PATTERN.match(value.strip()):
        return int(value.strip())
    return None


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_name(value: Any) -> str:
    if _blank(value):
        raise ValueError("Device name is required")
    return str(value).strip()


def _check_floor(value: Any) -> int:
    if _blank(value):
        raise ValueError("Floor number is required")
    parsed = _parse_int(value)
    if parsed is None:
        raise ValueError("Floor number must be a valid number")
    return parsed


def _check_capacity(value: Any) -> int:
    if _blank(value):
        raise ValueError("Meter capacity is required")
    parsed = _parse_int(value)
    if parsed is None:
        raise ValueError("Meter capacity must be a valid number")
    if parsed <= 0:
        raise ValueError("Meter capacity must be greater than 0")
    if parsed > MAX_METER_CAPACITY:
        raise ValueError(f"Meter capacity cannot exceed {MAX_METER_CAPACITY}")
    return parsed


def _check_tissue_type(value: Any) -> TissueType:
    try:
        return TissueType(str(value))
    except ValueError as exc:
        raise ValueError(f"Tissue type must be one of: {', '.join(t.value for t in TissueType)}") from exc


def _check_gender(value: Any) -> Gender | None:
    if _blank(value):
        return None
    try:
        return Gender(str(value))
    except ValueError as exc:
        raise ValueError("Gender must be male, female or empty") from exc


class DeviceDraft(BaseModel):
    """Validated payload for creating a device."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        validate_default=True,
    )

    name: str = ""
    room_number: str = ""
    floor_number: int | None = None
    tissue_type: TissueType = TissueType.HAND_TOWEL
    gender: Gender | None = None
    meter_capacity: int = DEFAULT_METER_CAPACITY

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Any) -> str:
        return _check_name(value)

    @field_validator("room_number", mode="before")
    @classmethod
    def _strip_room(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("floor_number", mode="before")
    @classmethod
    def _validate_floor(cls, value: Any) -> int:
        return _check_floor(value)

    @field_validator("tissue_type", mode="before")
    @classmethod
    def _validate_tissue_type(cls, value: Any) -> TissueType:
        return _check_tissue_type(value)

    @field_validator("gender", mode="before")
    @classmethod
    def _validate_gender(cls, value: Any) -> Gender | None:
        return _check_gender(value)

    @field_validator("meter_capacity", mode="before")
    @classmethod
    def _validate_capacity(cls, value: Any) -> int:
        return _check_capacity(value)

    @model_validator(mode="after")
    def _gender_only_for_toilet_paper(self) -> DeviceDraft:
        if self.tissue_type != TissueType.TOILET_PAPER and self.gender is not None:
            object.__setattr__(self, "gender", None)
        return self

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class DevicePatch(BaseModel):
    """Validated partial payload for updating a device.

    Only fields present in the input are validated and sent.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
    )

    name: str | None = None
    room_number: str | None = None
    floor_number: int | None = None
    tissue_type: TissueType | None = None
    gender: Gender | None = None
    meter_capacity: int | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Any) -> str:
        return _check_name(value)

    @field_validator("room_number", mode="before")
    @classmethod
    def _strip_room(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("floor_number", mode="before")
    @classmethod
    def _validate_floor(cls, value: Any) -> int:
        return _check_floor(value)

    @field_validator("tissue_type", mode="before")
    @classmethod
    def _validate_tissue_type(cls, value: Any) -> TissueType:
        return _check_tissue_type(value)

    @field_validator("gender", mode="before")
    @classmethod
    def _validate_gender(cls, value: Any) -> Gender | None:
        return _check_gender(value)

    @field_validator("meter_capacity", mode="before")
    @classmethod
    def _validate_capacity(cls, value: Any) -> int:
        return _check_capacity(value)

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json", exclude_unset=True)
        tissue_type = payload.get("tissue_type")
        if tissue_type is not None and tissue_type != TissueType.TOILET_PAPER.value:
            payload["gender"] = None
        return payload


def _first_error(exc: PydanticValidationError) -> ValidationError:
    errors = exc.errors()
    if not errors:
        return ValidationError("Invalid device data")
    first = errors[0]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else ""
    cause = (first.get("ctx") or {}).get("error")
    message = str(cause) if cause is not None else str(first.get("msg", "Invalid device data"))
    return ValidationError(message, field=field)


def validate_device_data(data: Any, *, partial: bool = False) -> dict[str, Any]:
    """Validate and normalize device input for the registry.

    Parameters
    ----------
    data
        Mapping of device fields, typically raw form input.
    partial
        ``True`` for updates: only the supplied fields are checked and
        returned.

    Returns
    -------
    dict
        JSON-ready payload with integer ``floor_number``/``meter_capacity``.

    Raises
    ------
    ValidationError
        Tagged with the first failing field.
    """
    if not isinstance(data, Mapping):
        raise ValidationError("Invalid device data", field="")
    if partial and not data:
        raise ValidationError("Invalid update parameters", field="")
    model: type[DeviceDraft] | type[DevicePatch] = DevicePatch if partial else DeviceDraft
    try:
        validated = model.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise _first_error(exc) from exc
    return validated.to_payload()
