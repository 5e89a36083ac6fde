# okr_dashboard/okr_performance/rag.py
"""
RAG Classifier

Maps a progress percentage (or a matrix band weight) to green / amber /
red / not-set.

Fixed thresholds (every non-leaf node, and indicators without custom bands):
    progress >= 76        → green
    51 <= progress < 76   → amber
    0 < progress < 51     → red
    0, None, NaN          → not-set

Exactly 0 means "not yet measured" and is never red. 0.01 is red.
"""

import math
from typing import Dict, Iterable, Optional, Sequence

from .constants import (
    RAG_GREEN,
    RAG_AMBER,
    RAG_RED,
    RAG_NOT_SET,
    RAG_THRESHOLDS,
    RAG_ORDER,
    RAG_LABELS,
    RAG_STATUSES,
)


def _is_missing(value: Optional[float]) -> bool:
    if value is None:
        return True
    try:
        return math.isnan(value)
    except TypeError:
        return True


def classify(progress: Optional[float]) -> str:
    """Classify a progress percentage with the fixed thresholds."""
    if _is_missing(progress):
        return RAG_NOT_SET
    if progress >= RAG_THRESHOLDS['green']:
        return RAG_GREEN
    if progress >= RAG_THRESHOLDS['amber']:
        return RAG_AMBER
    if progress > 0:
        return RAG_RED
    return RAG_NOT_SET


def progress_from_values(
    current_value: Optional[float],
    target_value: Optional[float]
) -> Optional[float]:
    """
    current / target × 100, or None when the pair is structurally unset
    (either value missing, or target <= 0).

    Progress is floored at 0: a negative current never pulls a parent
    aggregate below zero. There is no upper cap.
    """
    if _is_missing(current_value) or _is_missing(target_value):
        return None
    if target_value <= 0:
        return None
    return max(0.0, current_value / target_value * 100)


def classify_values(
    current_value: Optional[float],
    target_value: Optional[float]
) -> str:
    """Classify a current/target pair. Target of 0 or None is always not-set."""
    return classify(progress_from_values(current_value, target_value))


def _find_band(weight: float, bands: Sequence) -> Optional[object]:
    for band in bands or []:
        if band.rag_numeric == weight:
            return band
    return None


def classify_weight(weight: Optional[float], bands: Sequence = None) -> str:
    """
    Classify a matrix cell weight against an indicator's custom bands.

    Returns the matching band's label on an exact rag_numeric match,
    otherwise the fixed-threshold status of weight × 100.
    """
    if _is_missing(weight):
        return RAG_NOT_SET
    band = _find_band(weight, bands)
    if band is not None:
        return band.band_label
    return classify(weight * 100)


def band_color_for_weight(weight: Optional[float], bands: Sequence = None) -> str:
    """Same lookup as classify_weight, but always returns a RAG color."""
    if _is_missing(weight):
        return RAG_NOT_SET
    band = _find_band(weight, bands)
    if band is not None:
        return band.rag_color
    return classify(weight * 100)


def rag_label(status: str) -> str:
    return RAG_LABELS.get(status, RAG_LABELS[RAG_NOT_SET])


def status_rank(status: str) -> int:
    """not-set < red < amber < green"""
    return RAG_ORDER.get(status, RAG_ORDER[RAG_NOT_SET])


def count_statuses(statuses: Iterable[str]) -> Dict[str, int]:
    """Distribution of statuses, always with all four keys."""
    counts = {status: 0 for status in RAG_STATUSES}
    for status in statuses:
        key = status if status in counts else RAG_NOT_SET
        counts[key] += 1
    return counts


__all__ = [
    'classify',
    'classify_values',
    'classify_weight',
    'band_color_for_weight',
    'progress_from_values',
    'rag_label',
    'status_rank',
    'count_statuses',
]
