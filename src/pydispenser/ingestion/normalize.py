"""Normalization helpers.

Centralizes defensive parsing, envelope unwrapping and the ``id`` /
``device_id`` adapter. Every fetch result passes through
:func:`normalize_records` exactly once before it reaches the state layer.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

_logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=BaseModel)

# Keys the backend has used to wrap list responses.
COLLECTION_KEYS: tuple[str, ...] = ("results", "devices", "data")


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def non_negative_or_zero(value: Any) -> int:
    parsed = safe_int(value)
    if parsed is None or parsed < 0:
        return 0
    return parsed


def safe_bool(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    parsed = safe_int(value)
    if parsed is not None:
        return parsed != 0
    text = str(value).strip().lower()
    if text in {"true", "yes", "on"}:
        return True
    if text in {"false", "no", "off"}:
        return False
    return None


def is_meaningful(value: Any) -> bool:
    """Return True if *value* counts as "present" for fallback chains."""
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return bool(value != {} and value != [])


def device_key(value: Any) -> str | None:
    """Canonical lookup key for a device identifier.

    ``7``, ``"7"``, ``" 7 "`` and ``7.0`` all map to ``"7"`` so that
    registry and overlay entries line up regardless of how each feed
    serializes the id.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
        return str(value)
    text = str(value).strip()
    return text or None


def record_key(item: Any) -> str | None:
    """Canonical key for an overlay entry.

    Overlay entries may carry the device id as ``device_id`` or ``id``;
    ``device_id`` wins when both are present.
    """
    if isinstance(item, Mapping):
        candidate = item.get("device_id")
        if candidate is None:
            candidate = item.get("id")
        return device_key(candidate)
    for attr in ("device_id", "id"):
        candidate = getattr(item, attr, None)
        if candidate is not None:
            return device_key(candidate)
    return None


def registry_key(item: Any) -> str | None:
    """Canonical key for a registry entry; ``id`` wins over ``device_id``."""
    if isinstance(item, Mapping):
        candidate = item.get("id")
        if candidate is None:
            candidate = item.get("device_id")
        return device_key(candidate)
    for attr in ("id", "device_id"):
        candidate = getattr(item, attr, None)
        if candidate is not None:
            return device_key(candidate)
    return None


def unwrap_collection(payload: Any) -> list[Any]:
    """Return the list inside *payload*.

    Accepts a bare list or a dict wrapping it under ``results``,
    ``devices`` or ``data``. Anything else yields an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in COLLECTION_KEYS:
            inner = payload.get(key)
            if isinstance(inner, list):
                return inner
    return []


def normalize_records(payload: Any, model: type[TModel]) -> list[TModel]:
    """Unwrap and validate a fetched collection into typed records.

    Entries that are not dicts, carry no usable identifier, or fail model
    validation are dropped (and logged at DEBUG) rather than failing the
    whole fetch.
    """
    records: list[TModel] = []
    for item in unwrap_collection(payload):
        if isinstance(item, model):
            records.append(item)
            continue
        if not isinstance(item, Mapping):
            _logger.debug("Dropping non-object %s entry: %r", model.__name__, item)
            continue
        if record_key(item) is None:
            _logger.debug("Dropping %s entry without identifier", model.__name__)
            continue
        try:
            records.append(model.model_validate(dict(item)))
        except PydanticValidationError:
            _logger.debug("Dropping invalid %s entry", model.__name__, exc_info=True)
    return records
