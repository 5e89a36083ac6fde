# okr_dashboard/okr_performance/matrix_editor.py
"""
Matrix edit session: immutable score snapshots and the save diff.

An edit session holds two snapshots of one period:
    original  - what was loaded from the store
    working   - original + the user's edits

Every edit returns a NEW snapshot. On save, compute_score_changes()
compares the two and yields the exact upserts and deletes, so "cleared"
(key gone from working) is never confused with "unchanged" or "set to
the Red band" (weight 0.0).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .models import RAGBand, ScoreCell, ScoreKey, default_bands

logger = logging.getLogger(__name__)

SCORE_COLUMNS = ['indicator_id', 'customer_id', 'feature_id', 'period', 'value']


class InvalidScoreError(ValueError):
    """A weight that is not one of the indicator's band values."""


@dataclass(frozen=True)
class ScoreSnapshot:
    """
    Weights of one period's matrix, keyed by ScoreKey.

    A key mapped to None is a stored-but-unset cell; a key that is absent
    has no row at all.
    """
    period: str
    values: Mapping[ScoreKey, Optional[float]] = field(default_factory=dict)

    def __post_init__(self):
        # Private copy so callers can't mutate a snapshot through their dict
        object.__setattr__(self, 'values', dict(self.values))

    def __len__(self) -> int:
        return len(self.values)

    def __contains__(self, key: ScoreKey) -> bool:
        return key in self.values

    def get(self, key: ScoreKey) -> Optional[float]:
        return self.values.get(key)

    def keys(self) -> FrozenSet[ScoreKey]:
        return frozenset(self.values)

    def with_values(self, updates: Mapping[ScoreKey, Optional[float]]) -> "ScoreSnapshot":
        merged = dict(self.values)
        merged.update(updates)
        return ScoreSnapshot(self.period, merged)

    def without(self, keys: Iterable[ScoreKey]) -> "ScoreSnapshot":
        drop = set(keys)
        return ScoreSnapshot(self.period, {k: v for k, v in self.values.items() if k not in drop})

    def cells(self) -> List[ScoreCell]:
        return [ScoreCell(key, self.period, value) for key, value in self.values.items()]

    def to_frame(self) -> pd.DataFrame:
        rows = [cell.to_row() for cell in self.cells()]
        if not rows:
            return pd.DataFrame(columns=SCORE_COLUMNS)
        return pd.DataFrame(rows, columns=SCORE_COLUMNS)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, period: str) -> "ScoreSnapshot":
        """Snapshot of one period from customer_feature_scores rows."""
        if df is None or df.empty:
            return cls(period, {})

        rows = df[df['period'] == period] if 'period' in df.columns else df
        values = {}
        for row in rows.itertuples(index=False):
            value = row.value
            values[ScoreKey(row.indicator_id, row.customer_id, row.feature_id)] = (
                None if pd.isna(value) else float(value)
            )
        return cls(period, values)


@dataclass
class ScoreChanges:
    """Result of diffing two snapshots."""
    period: str
    upserts: List[ScoreCell] = field(default_factory=list)
    deletes: List[ScoreKey] = field(default_factory=list)

    @property
    def touched_indicator_ids(self) -> List[Any]:
        ids = {c.key.indicator_id for c in self.upserts} | {k.indicator_id for k in self.deletes}
        return sorted(ids, key=str)

    @property
    def has_changes(self) -> bool:
        return bool(self.upserts or self.deletes)


# =============================================================================
# DIFF
# =============================================================================

def compute_score_changes(original: ScoreSnapshot, working: ScoreSnapshot) -> ScoreChanges:
    """
    Rows to write for a save.

    - upserts: every key in working with a non-null weight. Unchanged cells
      are included; the upsert is idempotent.
    - deletes: keys with a non-null weight in original that are absent
      from working or set to None there. A null is never upserted, so the
      stored row must go or the next load would still count it.
    """
    if original.period != working.period:
        raise ValueError(
            f"Cannot diff snapshots of different periods: {original.period} vs {working.period}"
        )

    upserts = [
        ScoreCell(key, working.period, value)
        for key, value in working.values.items()
        if value is not None
    ]
    deletes = [
        key for key, value in original.values.items()
        if value is not None and working.get(key) is None
    ]

    logger.debug(f"[matrix] diff {working.period}: {len(upserts)} upserts, {len(deletes)} deletes")
    return ScoreChanges(period=working.period, upserts=upserts, deletes=deletes)


def has_unsaved_changes(original: ScoreSnapshot, working: ScoreSnapshot) -> bool:
    """True when working differs from original in any non-null weight."""
    def _set(snapshot):
        return {k: v for k, v in snapshot.values.items() if v is not None}
    return _set(original) != _set(working)


# =============================================================================
# BULK EDITS - only eligible cells are touched
# =============================================================================

def _row_keys(eligible, customer_id, feature_id, indicator_ids=None) -> List[ScoreKey]:
    return [
        k for k in eligible
        if k.customer_id == customer_id
        and k.feature_id == feature_id
        and (indicator_ids is None or k.indicator_id in indicator_ids)
    ]


def _column_keys(eligible, customer_id, indicator_id) -> List[ScoreKey]:
    return [
        k for k in eligible
        if k.customer_id == customer_id and k.indicator_id == indicator_id
    ]


def set_score(
    snapshot: ScoreSnapshot,
    eligible: FrozenSet[ScoreKey],
    key: ScoreKey,
    weight: float
) -> ScoreSnapshot:
    """Set one cell. Blocked cells are a no-op."""
    if key not in eligible:
        logger.debug(f"[matrix] ignoring edit on blocked cell {key}")
        return snapshot
    return snapshot.with_values({key: weight})


def clear_score(snapshot: ScoreSnapshot, key: ScoreKey) -> ScoreSnapshot:
    return snapshot.without([key])


def apply_band_to_row(
    snapshot: ScoreSnapshot,
    eligible: FrozenSet[ScoreKey],
    customer_id: Any,
    feature_id: Any,
    weight: float,
    indicator_ids: Optional[Sequence[Any]] = None
) -> ScoreSnapshot:
    """Set weight on every eligible cell of a customer's feature row."""
    keys = _row_keys(eligible, customer_id, feature_id, indicator_ids)
    return snapshot.with_values({k: weight for k in keys})


def apply_band_to_column(
    snapshot: ScoreSnapshot,
    eligible: FrozenSet[ScoreKey],
    customer_id: Any,
    indicator_id: Any,
    weight: float
) -> ScoreSnapshot:
    """Set weight on every eligible cell of one indicator within a customer."""
    keys = _column_keys(eligible, customer_id, indicator_id)
    return snapshot.with_values({k: weight for k in keys})


def clear_row(
    snapshot: ScoreSnapshot,
    eligible: FrozenSet[ScoreKey],
    customer_id: Any,
    feature_id: Any,
    indicator_ids: Optional[Sequence[Any]] = None
) -> ScoreSnapshot:
    return snapshot.without(_row_keys(eligible, customer_id, feature_id, indicator_ids))


def clear_column(
    snapshot: ScoreSnapshot,
    eligible: FrozenSet[ScoreKey],
    customer_id: Any,
    indicator_id: Any
) -> ScoreSnapshot:
    return snapshot.without(_column_keys(eligible, customer_id, indicator_id))


# =============================================================================
# VALIDATION
# =============================================================================

def allowed_weights(bands: Sequence[RAGBand] = None) -> FrozenSet[float]:
    """Band values a cell may take; default bands when none are configured."""
    return frozenset(b.rag_numeric for b in (bands or default_bands()))


def validate_weight(weight: float, bands: Sequence[RAGBand] = None) -> float:
    """
    Raises:
        InvalidScoreError: weight is not one of the band values
    """
    if weight is None:
        raise InvalidScoreError("Weight is required")
    weight = float(weight)
    if weight not in allowed_weights(bands):
        raise InvalidScoreError(
            f"Weight {weight} is not one of {sorted(allowed_weights(bands))}"
        )
    return weight


def invalid_cells(
    snapshot: ScoreSnapshot,
    bands_by_indicator: Dict[Any, Sequence[RAGBand]] = None
) -> List[ScoreKey]:
    """Keys whose non-null weight is not a band value of their indicator."""
    bands_by_indicator = bands_by_indicator or {}
    invalid = []
    for key, value in snapshot.values.items():
        if value is None:
            continue
        if value not in allowed_weights(bands_by_indicator.get(key.indicator_id)):
            invalid.append(key)
    return invalid


__all__ = [
    'ScoreSnapshot',
    'ScoreChanges',
    'InvalidScoreError',
    'compute_score_changes',
    'has_unsaved_changes',
    'set_score',
    'clear_score',
    'apply_band_to_row',
    'apply_band_to_column',
    'clear_row',
    'clear_column',
    'allowed_weights',
    'validate_weight',
    'invalid_cells',
]
