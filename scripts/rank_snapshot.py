#!/usr/bin/env python3
"""Print the urgency-ranked device list from a snapshot cache directory.

Useful for inspecting what a dashboard would show on first paint, or for
checking ranking changes against captured production data, without any
network access.

Usage
-----
::

    python scripts/rank_snapshot.py --cache-dir ~/.cache/dispenser

Options::

    --cache-dir DIR      Snapshot directory (default: $DISPENSER_CACHE_DIR)
    --prefix PREFIX      Snapshot key prefix (default: $DISPENSER_CACHE_PREFIX)
    --search TERM        Only show devices matching TERM (name, room, floor)
    --json               Output as machine-readable JSON
    -v, --verbose        Enable debug logging
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pydispenser import DeviceStateCoordinator, DispenserConfig, RemoteError  # noqa: E402


class _OfflineGateway:
    """Gateway that refuses every call; the script only reads snapshots."""

    def __getattr__(self, name: str) -> Any:
        async def _refuse(*_args: Any, **_kwargs: Any) -> Any:
            raise RemoteError("offline", operation=name)

        return _refuse


def _row(view: Any) -> str:
    minutes = "-" if view.minutes_since_update is None else f"{view.minutes_since_update:g}m"
    return (
        f"{view.urgency_score:>4}  {str(view.id):>6}  {view.device_name[:28]:<28}  "
        f"{view.room_number or '-':<8}  {view.current_status.value:<9}  {minutes:>6}"
    )


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--cache-dir", help="Snapshot directory")
    parser.add_argument("--prefix", help="Snapshot key prefix")
    parser.add_argument("--search", help="Filter by name, room or floor")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    overrides: dict[str, Any] = {"cache_enabled": True}
    if args.cache_dir:
        overrides["cache_dir"] = args.cache_dir
    if args.prefix is not None:
        overrides["cache_prefix"] = args.prefix
    config = DispenserConfig.from_env(**overrides)
    if not config.cache_dir:
        parser.error("--cache-dir (or DISPENSER_CACHE_DIR) is required")

    coordinator = DeviceStateCoordinator.from_config(_OfflineGateway(), config)  # type: ignore[arg-type]
    restored = coordinator.load_cached()
    if not restored.get("devices"):
        print(f"No device snapshot found in {config.cache_dir}", file=sys.stderr)
        return 1

    views = coordinator.ranked_views(search=args.search)
    if args.json:
        print(json.dumps([view.model_dump(mode="json") for view in views], indent=2))
        return 0

    print(f"{'SCORE':>4}  {'ID':>6}  {'NAME':<28}  {'ROOM':<8}  {'STATUS':<9}  {'AGE':>6}")
    for view in views:
        print(_row(view))
    counts = coordinator.alert_counts()
    print(f"\n{len(views)} device(s); alerts: {counts.empty} empty, {counts.low} low, {counts.tamper} tamper")
    return 0


if __name__ == "__main__":
    sys.exit(main())
