# okr_dashboard/okr_performance/periods.py
"""
Reporting period tokens.

    YYYY-MM   monthly  (e.g. 2026-03)
    YYYY-Www  ISO week (e.g. 2026-W09)

Any other string is ignored by period filters.
"""

import re
from datetime import date
from typing import Iterable, List, Optional

from .constants import PERIOD_MONTHLY, PERIOD_WEEKLY, PERIOD_PATTERNS

_PATTERNS = {mode: re.compile(pattern) for mode, pattern in PERIOD_PATTERNS.items()}


def period_mode(period: Optional[str]) -> Optional[str]:
    """'monthly', 'weekly' or None for an unrecognised token."""
    if not isinstance(period, str):
        return None
    for mode, pattern in _PATTERNS.items():
        if pattern.fullmatch(period):
            return mode
    return None


def is_valid_period(period: Optional[str], mode: Optional[str] = None) -> bool:
    found = period_mode(period)
    if found is None:
        return False
    return mode is None or found == mode


def filter_periods(periods: Iterable[str], mode: Optional[str] = None) -> List[str]:
    """
    Distinct valid periods, newest first.

    Args:
        periods: Raw period tokens (duplicates and junk allowed)
        mode: 'monthly', 'weekly' or None for both
    """
    unique = {p for p in periods if is_valid_period(p, mode)}
    return sorted(unique, reverse=True)


def current_period(mode: str = PERIOD_MONTHLY, today: date = None) -> str:
    """Period token containing `today`."""
    today = today or date.today()
    if mode == PERIOD_WEEKLY:
        iso_year, iso_week, _ = today.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    return f"{today.year}-{today.month:02d}"


__all__ = [
    'period_mode',
    'is_valid_period',
    'filter_periods',
    'current_period',
]
