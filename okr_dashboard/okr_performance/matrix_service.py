# okr_dashboard/okr_performance/matrix_service.py
"""
Matrix Save Service

Persists one edit session of the customer × feature matrix:

    1. delete cleared cells
    2. upsert every non-null eligible cell (chunks of SCORE_UPSERT_CHUNK_SIZE)
    3. recompute each scored indicator from the working snapshot
    4. update indicator current_value / target_value / rag_status
    5. append indicator_history and activity_log rows
    6. log skip reasons for customers left without any score

Steps run in order and each statement commits on its own; there is no
rollback across the sequence. Only an upsert failure aborts the save.
Delete, indicator, history and activity failures are logged and reported
in the SaveResult.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from ..config import config
from .constants import (
    ENTITY_DEPARTMENT,
    MATRIX_HISTORY_NOTE,
    MATRIX_SOURCE,
    SCORE_UPSERT_CHUNK_SIZE,
)
from .matrix_calculator import ScoreMatrixCalculator
from .matrix_editor import ScoreSnapshot, compute_score_changes
from .models import ScoreCell
from .queries import ScoreQueries

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class MatrixSaveError(Exception):
    """Base class for save failures the caller must surface."""


class ScoreUpsertError(MatrixSaveError):
    """A chunk of score upserts was rejected by the store."""

    def __init__(self, message: str, saved: int = 0):
        super().__init__(message)
        self.saved = saved


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class SaveResult:
    period: str
    upserted: int = 0
    deleted: int = 0
    indicator_updates: List[Dict[str, Any]] = field(default_factory=list)
    skipped_customers: List[Any] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def summary(self) -> str:
        return (
            f"Saved {self.upserted} score(s), deleted {self.deleted}, "
            f"updated {len(self.indicator_updates)} KPI value(s)"
        )


def _chunks(items: List, size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class MatrixSaveService:
    """
    Usage:
        service = MatrixSaveService(
            ScoreQueries(user_id=user_id), links_df, customer_features_df
        )
        result = service.save_matrix(original, working, department_id=dept_id)
    """

    def __init__(
        self,
        queries: ScoreQueries,
        indicator_feature_links_df: pd.DataFrame,
        customer_features_df: pd.DataFrame,
        chunk_size: int = None
    ):
        self.queries = queries
        self.links_df = indicator_feature_links_df
        self.customer_features_df = customer_features_df
        self.chunk_size = chunk_size or config.get_app_setting(
            'SCORE_UPSERT_CHUNK_SIZE', SCORE_UPSERT_CHUNK_SIZE
        )

    def _calculator(self, snapshot: ScoreSnapshot) -> ScoreMatrixCalculator:
        return ScoreMatrixCalculator.from_snapshot(snapshot, self.links_df, self.customer_features_df)

    # =========================================================================
    # SAVE
    # =========================================================================

    def save_matrix(
        self,
        original: ScoreSnapshot,
        working: ScoreSnapshot,
        department_id: Any = None,
        indicator_ids: Optional[Sequence[Any]] = None,
        skip_reasons: Optional[Dict[Any, str]] = None,
        customer_names: Optional[Dict[Any, str]] = None
    ) -> SaveResult:
        """
        Args:
            original: Snapshot as loaded
            working: Snapshot after edits
            department_id: Department whose matrix this is (audit metadata)
            indicator_ids: Indicators shown in the matrix. None = all
            skip_reasons: customer_id → why the customer has no scores
            customer_names: customer_id → display name for skip-reason rows

        Raises:
            MatrixSaveError: upserting scores failed
        """
        period = working.period
        result = SaveResult(period=period)
        calc = self._calculator(working)
        eligible = calc.eligible_keys()
        in_scope = self._scope_filter(indicator_ids)

        changes = compute_score_changes(original, working)
        upserts = [c for c in changes.upserts if c.key in eligible and in_scope(c.key.indicator_id)]
        deletes = [k for k in changes.deletes if k in eligible and in_scope(k.indicator_id)]

        logger.info(
            f"💾 Saving matrix {period} (department={department_id}): "
            f"{len(upserts)} upserts, {len(deletes)} deletes"
        )

        # 1. Deletes
        if deletes:
            delete_result = self.queries.delete_scores(deletes, period)
            if delete_result['success']:
                result.deleted = delete_result['count']
            else:
                result.warnings.append(f"Delete failed: {delete_result['message']}")

        # 2. Upserts
        result.upserted = self._upsert_in_chunks(upserts)

        # 3-5. Recompute indicators from the working snapshot
        scored = [i for i in calc.scored_indicator_ids() if in_scope(i)]
        old_values = self._current_values(scored)

        for indicator_id in scored:
            update = calc.indicator_update(indicator_id)
            if update is None:
                continue
            self._persist_indicator(indicator_id, update, old_values.get(indicator_id, {}),
                                    period, department_id, result)

        # 6. Skip reasons
        self._log_skip_reasons(calc, indicator_ids, department_id, period,
                               skip_reasons, customer_names, result)

        logger.info(f"✅ {result.summary()}")
        return result

    def no_update_check_in(
        self,
        snapshot: ScoreSnapshot,
        department_id: Any = None,
        indicator_ids: Optional[Sequence[Any]] = None,
        skip_reasons: Optional[Dict[Any, str]] = None,
        customer_names: Optional[Dict[Any, str]] = None
    ) -> SaveResult:
        """
        Confirm "nothing changed this period": re-upsert the existing cells
        so their timestamps move, and log a check-in. Indicator values are
        not recomputed.

        Raises:
            MatrixSaveError: upserting scores failed
        """
        period = snapshot.period
        result = SaveResult(period=period)
        calc = self._calculator(snapshot)
        eligible = calc.eligible_keys()
        in_scope = self._scope_filter(indicator_ids)

        existing = [
            ScoreCell(key, period, value)
            for key, value in snapshot.values.items()
            if value is not None and key in eligible and in_scope(key.indicator_id)
        ]

        result.upserted = self._upsert_in_chunks(existing)

        self._log_activity(
            result,
            action='update',
            entity_type=ENTITY_DEPARTMENT.lower(),
            entity_id=department_id,
            entity_name='No-update check-in',
            metadata={
                'department_id': department_id,
                'period': period,
                'source': MATRIX_SOURCE,
                'check_in_type': 'no_update',
                'existing_scores_touched': len(existing),
            },
        )

        self._log_skip_reasons(calc, indicator_ids, department_id, period,
                               skip_reasons, customer_names, result)

        logger.info(f"✅ No-update check-in {period}: {len(existing)} scores touched")
        return result

    # =========================================================================
    # STEPS
    # =========================================================================

    @staticmethod
    def _scope_filter(indicator_ids: Optional[Sequence[Any]]):
        if indicator_ids is None:
            return lambda indicator_id: True
        scope = set(indicator_ids)
        return lambda indicator_id: indicator_id in scope

    def _upsert_in_chunks(self, cells: List[ScoreCell]) -> int:
        saved = 0
        for chunk in _chunks(cells, self.chunk_size):
            upsert_result = self.queries.upsert_scores(chunk)
            if not upsert_result['success']:
                logger.error(f"❌ Score upsert failed after {saved} rows: {upsert_result['message']}")
                raise ScoreUpsertError(
                    f"Failed to save scores: {upsert_result['message']}", saved=saved
                )
            saved += len(chunk)
        return saved

    def _current_values(self, indicator_ids: List[Any]) -> Dict[Any, Dict]:
        if not indicator_ids:
            return {}
        df = self.queries.get_indicators(indicator_ids)
        if df.empty:
            return {}
        return {row['id']: row for row in df.to_dict('records')}

    def _persist_indicator(
        self,
        indicator_id: Any,
        update: Dict,
        old: Dict,
        period: str,
        department_id: Any,
        result: SaveResult
    ):
        current_value = update['current_value']

        update_result = self.queries.update_indicator_values(
            indicator_id,
            current_value=current_value,
            target_value=update['target_value'],
            rag_status=update['rag_status'],
        )
        if not update_result['success']:
            result.warnings.append(f"Indicator {indicator_id} update failed: {update_result['message']}")
            return

        result.indicator_updates.append({'indicator_id': indicator_id, **update})

        history_result = self.queries.insert_indicator_history(
            indicator_id, current_value, period, notes=MATRIX_HISTORY_NOTE
        )
        if not history_result['success']:
            result.warnings.append(f"History for {indicator_id} failed: {history_result['message']}")

        self._log_activity(
            result,
            action='update',
            entity_type='indicator',
            entity_id=indicator_id,
            entity_name=old.get('name'),
            old_value={
                'current_value': old.get('current_value'),
                'rag_status': old.get('rag_status'),
            },
            new_value={
                'current_value': current_value,
                'rag_status': update['rag_status'],
            },
            metadata={
                'department_id': department_id,
                'period': period,
                'source': MATRIX_SOURCE,
                'aggregate_percentage': current_value,
                'rag_status': update['rag_status'],
            },
        )

    def _log_skip_reasons(
        self,
        calc: ScoreMatrixCalculator,
        indicator_ids: Optional[Sequence[Any]],
        department_id: Any,
        period: str,
        skip_reasons: Optional[Dict[Any, str]],
        customer_names: Optional[Dict[Any, str]],
        result: SaveResult
    ):
        skip_reasons = skip_reasons or {}
        customer_names = customer_names or {}

        for customer_id in calc.empty_customers(indicator_ids):
            reason = (skip_reasons.get(customer_id) or '').strip()
            if not reason:
                continue
            name = customer_names.get(customer_id, customer_id)
            result.skipped_customers.append(customer_id)
            self._log_activity(
                result,
                action='update',
                entity_type=ENTITY_DEPARTMENT.lower(),
                entity_id=department_id,
                entity_name=f"Skip reason: {name}",
                metadata={
                    'department_id': department_id,
                    'period': period,
                    'source': MATRIX_SOURCE,
                    'skip_reason': reason,
                },
            )

    def _log_activity(self, result: SaveResult, **kwargs):
        if not config.is_feature_enabled('ACTIVITY_LOG'):
            return
        log_result = self.queries.insert_activity_log(**kwargs)
        if not log_result['success']:
            result.warnings.append(f"Activity log failed: {log_result['message']}")


__all__ = [
    'MatrixSaveService',
    'MatrixSaveError',
    'ScoreUpsertError',
    'SaveResult',
]
