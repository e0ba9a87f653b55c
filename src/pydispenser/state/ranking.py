"""Urgency ranking of merged device views.

The score table is evaluated top to bottom and the first matching row
wins:

=========================================================  ==============================
condition                                                  score
=========================================================  ==============================
tamper status, hint >= 4, or latched tamper with count     tamper + tamper/low counters
empty status, hint 3, or ``EMPTY`` alert                   empty + low counter
low status, hint 2, any low alert, or ``LOW`` alert        low + low counter
full status or ``FULL`` alert                              full
reporting (normal/active/online, hint 1, active, usage)    fresh / recent / stale by age
inactive or offline                                        inactive / offline
anything else                                              fallback
=========================================================  ==============================
"""

from __future__ import annotations

from collections.abc import Iterable

from pydispenser.config import RankingPolicy
from pydispenser.models import DeviceStatus, MergedDeviceView

DEFAULT_POLICY = RankingPolicy()

_REPORTING = frozenset({DeviceStatus.NORMAL, DeviceStatus.ACTIVE, DeviceStatus.ONLINE})
_SILENT = frozenset({DeviceStatus.INACTIVE, DeviceStatus.OFFLINE})


def urgency_score(view: MergedDeviceView, policy: RankingPolicy = DEFAULT_POLICY) -> int:
    status = view.current_status
    hint = view.status_priority
    alert = view.current_alert

    if status == DeviceStatus.TAMPER or hint >= 4 or (view.current_tamper and view.tamper_count > 0):
        return policy.tamper_score + view.tamper_count + view.low_alert_count
    if status == DeviceStatus.EMPTY or hint == 3 or alert == "EMPTY":
        return policy.empty_score + view.low_alert_count
    if status == DeviceStatus.LOW or hint == 2 or view.low_alert_count > 0 or alert == "LOW":
        return policy.low_score + view.low_alert_count
    if status == DeviceStatus.FULL or alert == "FULL":
        return policy.full_score
    if status in _REPORTING or hint == 1 or view.is_active is True or view.total_entries > 0:
        minutes = view.minutes_since_update
        if minutes is not None and minutes <= policy.fresh_minutes:
            return policy.fresh_score
        if minutes is not None and minutes <= policy.recent_minutes:
            return policy.recent_score
        return policy.stale_score
    if status in _SILENT or view.is_active is False:
        return policy.inactive_score if status == DeviceStatus.INACTIVE else policy.offline_score
    return policy.fallback_score


def rank(views: Iterable[MergedDeviceView], policy: RankingPolicy = DEFAULT_POLICY) -> list[MergedDeviceView]:
    """Return scored copies of *views*, most urgent first.

    Equal scores order by ascending ``minutes_since_update`` (a missing age
    counts as ``policy.missing_minutes``). The sort is stable, so identical
    inputs always produce identical output. *views* is not modified.
    """
    scored = [view.model_copy(update={"urgency_score": urgency_score(view, policy)}) for view in views]

    def _sort_key(view: MergedDeviceView) -> tuple[int, float]:
        minutes = view.minutes_since_update
        age = policy.missing_minutes if minutes is None else minutes
        return (-(view.urgency_score or 0), age)

    return sorted(scored, key=_sort_key)
