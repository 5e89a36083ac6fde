# okr_dashboard/okr_performance/matrix_calculator.py
"""
Matrix Aggregator - Pandas-based customer × feature scoring calculations

Each cell holds a band weight in [0, 1] for one
(indicator, customer, feature) in one period. A cell only exists when the
indicator is linked to the feature AND the customer subscribes to it;
anything else is a blocked cell and never takes part in an average.

All averages are flat means of the cell weights × 100.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .models import ScoreKey
from .periods import filter_periods
from .rag import classify, count_statuses
from .constants import MATRIX_TARGET_VALUE

logger = logging.getLogger(__name__)

KEY_COLUMNS = ['indicator_id', 'customer_id', 'feature_id']


def _frame(df: Optional[pd.DataFrame], columns: List[str]) -> pd.DataFrame:
    """Copy of df restricted to columns, or an empty frame with those columns."""
    if df is None or df.empty:
        return pd.DataFrame(columns=columns)
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise KeyError(f"Missing columns: {missing}")
    return df[columns].copy()


class ScoreMatrixCalculator:
    """
    Aggregate one period of the customer × feature matrix.

    The eligibility grid is computed once on initialization, so every
    average below is a cheap filter over the scored cells.

    Usage:
        calc = ScoreMatrixCalculator(scores_df, links_df, customer_features_df, period='2026-03')
        calc.indicator_aggregate(indicator_id)        # → 75.0
        calc.feature_row_average(customer_id, feature_id)
        calc.customer_average(customer_id)

    Attributes:
        _eligible: indicator_id, customer_id, feature_id of every editable cell
        _cells: eligible cells with a non-null value for the period
    """

    def __init__(
        self,
        scores_df: pd.DataFrame,
        indicator_feature_links_df: pd.DataFrame,
        customer_features_df: pd.DataFrame,
        period: Optional[str] = None
    ):
        """
        Args:
            scores_df: customer_feature_scores rows
                       (indicator_id, customer_id, feature_id, period, value)
            indicator_feature_links_df: indicator_id, feature_id
            customer_features_df: customer_id, feature_id
            period: Keep only this period's rows. None when scores_df is
                    already a single period (e.g. a working snapshot)
        """
        start_time = time.perf_counter()
        self.period = period

        links = _frame(indicator_feature_links_df, ['indicator_id', 'feature_id'])
        subscriptions = _frame(customer_features_df, ['customer_id', 'feature_id'])
        self._eligible = (
            links.merge(subscriptions, on='feature_id', how='inner')[KEY_COLUMNS]
            .drop_duplicates()
            .reset_index(drop=True)
        )

        scores = _frame(scores_df, KEY_COLUMNS + ['value'] + (
            ['period'] if scores_df is not None and 'period' in scores_df.columns else []
        ))
        if period is not None and 'period' in scores.columns:
            scores = scores[scores['period'] == period]

        cells = scores.merge(self._eligible, on=KEY_COLUMNS, how='inner')
        cells = cells[cells['value'].notna()]
        cells = cells.assign(value=cells['value'].astype(float))
        self._cells = cells[KEY_COLUMNS + ['value']].reset_index(drop=True)

        ignored = len(scores) - len(cells)
        if ignored:
            logger.debug(f"[matrix] {ignored} unset or blocked rows excluded")

        elapsed = time.perf_counter() - start_time
        logger.debug(
            f"ScoreMatrixCalculator initialized: {len(self._cells):,} cells, "
            f"{len(self._eligible):,} eligible, period={period} in {elapsed:.3f}s"
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot,
        indicator_feature_links_df: pd.DataFrame,
        customer_features_df: pd.DataFrame
    ) -> "ScoreMatrixCalculator":
        """Build from a ScoreSnapshot (the working copy of an edit session)."""
        return cls(
            snapshot.to_frame(),
            indicator_feature_links_df,
            customer_features_df,
            period=snapshot.period,
        )

    # =========================================================================
    # ELIGIBILITY
    # =========================================================================

    def eligible_keys(self) -> frozenset:
        return frozenset(
            ScoreKey(row.indicator_id, row.customer_id, row.feature_id)
            for row in self._eligible.itertuples(index=False)
        )

    def is_eligible(self, indicator_id: Any, customer_id: Any, feature_id: Any) -> bool:
        e = self._eligible
        return bool(
            ((e['indicator_id'] == indicator_id)
             & (e['customer_id'] == customer_id)
             & (e['feature_id'] == feature_id)).any()
        )

    def customer_sections(self) -> List[Dict]:
        """
        One section per customer that has at least one editable cell.

        Returns:
            List of dicts (sorted by customer_id) with:
            - customer_id
            - feature_ids: features with at least one editable cell, sorted
            - indicator_ids: indicators with at least one editable cell, sorted
            - indicator_features: {indicator_id: set(feature_id)}
        """
        sections = []
        if self._eligible.empty:
            return sections

        for customer_id, group in self._eligible.groupby('customer_id', sort=True):
            indicator_features = {
                ind_id: set(g['feature_id'])
                for ind_id, g in group.groupby('indicator_id', sort=True)
            }
            sections.append({
                'customer_id': customer_id,
                'feature_ids': sorted(group['feature_id'].unique().tolist(), key=str),
                'indicator_ids': sorted(indicator_features.keys(), key=str),
                'indicator_features': indicator_features,
            })
        return sections

    # =========================================================================
    # AVERAGES
    # =========================================================================

    @staticmethod
    def _pct(values: pd.Series) -> Optional[float]:
        if values.empty:
            return None
        return float(values.mean()) * 100

    def feature_row_average(
        self,
        customer_id: Any,
        feature_id: Any,
        indicator_ids: Optional[Sequence[Any]] = None
    ) -> Optional[float]:
        """
        Mean weight × 100 of one customer's feature row.

        Args:
            indicator_ids: Restrict to these indicators (single-indicator
                           views). None averages across all indicators.
        """
        c = self._cells
        rows = c[(c['customer_id'] == customer_id) & (c['feature_id'] == feature_id)]
        if indicator_ids is not None:
            rows = rows[rows['indicator_id'].isin(list(indicator_ids))]
        return self._pct(rows['value'])

    def customer_average(self, customer_id: Any) -> Optional[float]:
        """Mean weight × 100 over all of a customer's scored cells."""
        c = self._cells
        return self._pct(c.loc[c['customer_id'] == customer_id, 'value'])

    def _indicator_values(self, indicator_id: Any) -> pd.Series:
        c = self._cells
        return c.loc[c['indicator_id'] == indicator_id, 'value']

    def indicator_aggregate(self, indicator_id: Any) -> Optional[float]:
        """
        Flat mean of every scored cell of the indicator × 100, rounded to 2
        decimals. This becomes the indicator's current_value. None when the
        indicator has no scored cell in the period.
        """
        pct = self._pct(self._indicator_values(indicator_id))
        if pct is None:
            return None
        return round(pct, 2)

    def indicator_update(self, indicator_id: Any) -> Optional[Dict]:
        """
        Values to persist on the indicator after a matrix save.

        rag_status uses the fixed thresholds on current_value, the same rule
        the hierarchy rollup applies to current / target. Custom bands only
        color individual cells.

        Returns:
            {'current_value', 'target_value' (always 100), 'rag_status'} or
            None when the indicator has no scored cell
        """
        current_value = self.indicator_aggregate(indicator_id)
        if current_value is None:
            return None

        return {
            'current_value': current_value,
            'target_value': MATRIX_TARGET_VALUE,
            'rag_status': classify(current_value),
        }

    def scored_indicator_ids(self) -> List[Any]:
        return sorted(self._cells['indicator_id'].unique().tolist(), key=str)

    # =========================================================================
    # DERIVATION VIEW
    # =========================================================================

    def customer_breakdown(self, indicator_id: Any) -> pd.DataFrame:
        """
        Per-customer averages for one indicator.

        Returns DataFrame with columns:
        - customer_id
        - average (mean weight × 100)
        - cell_count
        - status (fixed thresholds)
        """
        columns = ['customer_id', 'average', 'cell_count', 'status']
        c = self._cells
        rows = c[c['indicator_id'] == indicator_id]
        if rows.empty:
            return pd.DataFrame(columns=columns)

        result = rows.groupby('customer_id').agg(
            average=('value', lambda x: x.mean() * 100),
            cell_count=('value', 'count'),
        ).reset_index()
        result['status'] = result['average'].apply(classify)
        return result[columns]

    def rag_distribution(self, indicator_id: Any) -> Dict[str, int]:
        """How many customers sit in each RAG band for the indicator."""
        breakdown = self.customer_breakdown(indicator_id)
        return count_statuses(breakdown['status'].tolist())

    def empty_customers(self, indicator_ids: Optional[Sequence[Any]] = None) -> List[Any]:
        """Customers with editable cells but not a single scored one."""
        eligible = self._eligible
        cells = self._cells
        if indicator_ids is not None:
            eligible = eligible[eligible['indicator_id'].isin(list(indicator_ids))]
            cells = cells[cells['indicator_id'].isin(list(indicator_ids))]

        scored = set(cells['customer_id'].unique())
        return sorted(
            (cid for cid in eligible['customer_id'].unique() if cid not in scored),
            key=str,
        )

    # =========================================================================
    # TRENDLINE
    # =========================================================================

    @classmethod
    def indicator_trendline(
        cls,
        scores_df: pd.DataFrame,
        indicator_feature_links_df: pd.DataFrame,
        customer_features_df: pd.DataFrame,
        indicator_id: Any,
        mode: Optional[str] = None
    ) -> pd.DataFrame:
        """
        indicator_aggregate() for every period of one mode, oldest first.

        Returns DataFrame with columns: period, aggregate, status
        """
        columns = ['period', 'aggregate', 'status']
        if scores_df is None or scores_df.empty:
            return pd.DataFrame(columns=columns)

        rows = scores_df[scores_df['indicator_id'] == indicator_id]
        points = []
        for period in sorted(filter_periods(rows['period'].tolist(), mode)):
            calc = cls(rows, indicator_feature_links_df, customer_features_df, period=period)
            aggregate = calc.indicator_aggregate(indicator_id)
            if aggregate is None:
                continue
            points.append({'period': period, 'aggregate': aggregate, 'status': classify(aggregate)})

        return pd.DataFrame(points, columns=columns)


__all__ = [
    'ScoreMatrixCalculator',
    'KEY_COLUMNS',
]
