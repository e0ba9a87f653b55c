"""Library configuration for pydispenser."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pydispenser.exceptions import DispenserConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise DispenserConfigError(f"{key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class RankingPolicy:
    """Score table and freshness thresholds used by the urgency ranker.

    The defaults reproduce the dashboard's historical ordering exactly;
    change them only together with the UI snapshot tests.
    """

    tamper_score: int = 100
    empty_score: int = 90
    low_score: int = 80
    full_score: int = 70
    fresh_score: int = 50
    recent_score: int = 45
    stale_score: int = 30
    offline_score: int = 10
    inactive_score: int = 5
    fallback_score: int = 1
    fresh_minutes: float = 5
    recent_minutes: float = 30
    missing_minutes: float = 999


@dataclasses.dataclass(frozen=True)
class DispenserConfig:
    """Library configuration.

    Parameters
    ----------
    token : str or None
        Access token handed to every RemoteGateway call.
    cache_enabled : bool
        Persist snapshots after fetches/mutations and allow ``load_cached``.
    cache_dir : str or None
        Directory for the file-backed snapshot store. ``None`` keeps
        snapshots in memory only.
    cache_prefix : str
        Prefix added to every snapshot key.
    ranking : RankingPolicy
        Urgency score table.
    """

    token: str | None = None
    cache_enabled: bool = True
    cache_dir: str | None = None
    cache_prefix: str = ""
    ranking: RankingPolicy = dataclasses.field(default_factory=RankingPolicy)

    @classmethod
    def from_env(cls, **overrides: Any) -> DispenserConfig:
        """Create configuration from ``DISPENSER_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        ranking_kwargs: dict[str, Any] = {}
        fresh = _env_number(env, "DISPENSER_FRESH_MINUTES", float)
        if fresh is not None:
            ranking_kwargs["fresh_minutes"] = fresh
        recent = _env_number(env, "DISPENSER_RECENT_MINUTES", float)
        if recent is not None:
            ranking_kwargs["recent_minutes"] = recent

        ranking_overrides = overrides.pop("ranking", None)
        if isinstance(ranking_overrides, dict):
            ranking_kwargs.update(ranking_overrides)
        elif isinstance(ranking_overrides, RankingPolicy):
            ranking_kwargs = dataclasses.asdict(ranking_overrides)

        config_kwargs: dict[str, Any] = {"ranking": RankingPolicy(**ranking_kwargs)}

        _ENV_CONFIG_MAP = {
            "DISPENSER_TOKEN": "token",
            "DISPENSER_CACHE_DIR": "cache_dir",
            "DISPENSER_CACHE_PREFIX": "cache_prefix",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        if "cache_enabled" not in overrides:
            config_kwargs["cache_enabled"] = _env_bool(env.get("DISPENSER_CACHE_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
