"""Best-effort snapshot cache over a synchronous key-value store.

Snapshots exist only to redraw the dashboard before the first network
round-trip completes; they are never authoritative. Every failure (storage,
serialization, corrupt entries) is logged and swallowed.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Protocol

from pydispenser.exceptions import CacheError

_logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    """Synchronous string store backing :class:`PersistenceCache`."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store; useful for tests and cache-less deployments."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._data


class FileKeyValueStore:
    """One JSON file per key inside *directory*.

    Writes go through a temporary file and ``os.replace`` so a crash never
    leaves a half-written snapshot behind.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key) or "_"
        return self._dir / f"{safe}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheError(f"Cannot read snapshot {key!r}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            raise CacheError(f"Cannot write snapshot {key!r}: {exc}") from exc


class PersistenceCache:
    """Named JSON snapshots; ``write`` and ``read`` never raise."""

    def __init__(self, store: KeyValueStore, *, prefix: str = "") -> None:
        self._store = store
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def write(self, key: str, value: Any) -> bool:
        """Serialize and store *value*. Returns ``False`` on failure."""
        try:
            encoded = json.dumps(value, separators=(",", ":"))
        except (TypeError, ValueError, RecursionError):
            _logger.warning("Snapshot %r is not JSON-serializable; skipped", key, exc_info=True)
            return False
        try:
            self._store.set(self._key(key), encoded)
        except Exception:
            # Backends are caller-supplied and may raise anything.
            _logger.warning("Snapshot write failed for %r", key, exc_info=True)
            return False
        return True

    def read(self, key: str) -> Any | None:
        """Return the decoded snapshot, or ``None`` if missing or unreadable."""
        try:
            raw = self._store.get(self._key(key))
        except Exception:
            _logger.warning("Snapshot read failed for %r", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError, RecursionError):
            _logger.warning("Discarding corrupt snapshot %r", key)
            return None
