# okr_dashboard/okr_performance/queries.py
"""
SQL write queries for the OKR store.

- customer_feature_scores: upsert / delete matrix cells
- indicators: persist recomputed current/target/rag_status
- indicator_history, activity_log: append-only audit rows

Every write returns a result dict:
    {'success': bool, 'count': int, 'message': str}
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from sqlalchemy import text

from .constants import MATRIX_UNIT
from .models import ScoreCell, ScoreKey

logger = logging.getLogger(__name__)


UPSERT_SCORE_SQL = """
    INSERT INTO customer_feature_scores
        (indicator_id, customer_id, feature_id, period, value, created_by, updated_at)
    VALUES
        (:indicator_id, :customer_id, :feature_id, :period, :value, :created_by, NOW())
    ON DUPLICATE KEY UPDATE
        value = VALUES(value),
        created_by = VALUES(created_by),
        updated_at = NOW()
"""

DELETE_SCORE_SQL = """
    DELETE FROM customer_feature_scores
    WHERE indicator_id = :indicator_id
      AND customer_id = :customer_id
      AND feature_id = :feature_id
      AND period = :period
"""


class ScoreQueries:
    """
    Database writes for the customer × feature matrix.

    Usage:
        queries = ScoreQueries(user_id=current_user_id)
        result = queries.upsert_scores(cells)
        if not result['success']:
            ...
    """

    def __init__(self, user_id: str = None, engine=None):
        """
        Args:
            user_id: Current user id for created_by / audit trail
            engine: SQLAlchemy engine, defaults to the shared singleton
        """
        self._engine = engine
        self.user_id = user_id

    @property
    def engine(self):
        """Lazy load database engine."""
        if self._engine is None:
            from ..db import get_db_engine
            self._engine = get_db_engine()
        return self._engine

    # =========================================================================
    # SCORES
    # =========================================================================

    def upsert_scores(self, cells: Sequence[ScoreCell]) -> Dict:
        """
        Insert or overwrite cells on (indicator, customer, feature, period).
        Last write wins.
        """
        if not cells:
            return {'success': True, 'count': 0, 'message': 'Nothing to upsert'}

        params = [
            {**cell.to_row(), 'created_by': self.user_id}
            for cell in cells
        ]
        return self._execute_update(UPSERT_SCORE_SQL, params, f"upsert {len(params)} scores")

    def delete_scores(self, keys: Sequence[ScoreKey], period: str) -> Dict:
        if not keys:
            return {'success': True, 'count': 0, 'message': 'Nothing to delete'}

        params = [
            {
                'indicator_id': key.indicator_id,
                'customer_id': key.customer_id,
                'feature_id': key.feature_id,
                'period': period,
            }
            for key in keys
        ]
        return self._execute_update(DELETE_SCORE_SQL, params, f"delete {len(params)} scores")

    # =========================================================================
    # INDICATORS
    # =========================================================================

    def get_indicators(self, indicator_ids: Sequence[Any]) -> pd.DataFrame:
        """id, name, current_value, target_value, rag_status for the given ids."""
        if not indicator_ids:
            return pd.DataFrame()

        placeholders = ', '.join(f":id_{i}" for i in range(len(indicator_ids)))
        query = f"""
            SELECT id, name, current_value, target_value, rag_status
            FROM indicators
            WHERE id IN ({placeholders})
        """
        params = {f"id_{i}": ind_id for i, ind_id in enumerate(indicator_ids)}
        return self._execute_query(query, params, "get_indicators")

    def update_indicator_values(
        self,
        indicator_id: Any,
        current_value: float,
        target_value: float,
        rag_status: str,
        unit: str = MATRIX_UNIT
    ) -> Dict:
        query = """
            UPDATE indicators
            SET current_value = :current_value,
                target_value = :target_value,
                unit = :unit,
                rag_status = :rag_status,
                updated_at = NOW()
            WHERE id = :indicator_id
        """
        params = {
            'indicator_id': indicator_id,
            'current_value': current_value,
            'target_value': target_value,
            'unit': unit,
            'rag_status': rag_status,
        }
        return self._execute_update(query, params, f"update indicator {indicator_id}")

    def insert_indicator_history(
        self,
        indicator_id: Any,
        value: float,
        period: str,
        notes: str = None
    ) -> Dict:
        query = """
            INSERT INTO indicator_history
                (indicator_id, value, period, notes, created_by, created_at)
            VALUES
                (:indicator_id, :value, :period, :notes, :created_by, NOW())
        """
        params = {
            'indicator_id': indicator_id,
            'value': value,
            'period': period,
            'notes': notes,
            'created_by': self.user_id,
        }
        return self._execute_update(query, params, f"history for indicator {indicator_id}")

    # =========================================================================
    # ACTIVITY LOG
    # =========================================================================

    def insert_activity_log(
        self,
        action: str,
        entity_type: str,
        entity_id: Any,
        entity_name: str = None,
        old_value: Optional[Dict] = None,
        new_value: Optional[Dict] = None,
        metadata: Optional[Dict] = None
    ) -> Dict:
        query = """
            INSERT INTO activity_log
                (user_id, action, entity_type, entity_id, entity_name,
                 old_value, new_value, metadata, created_at)
            VALUES
                (:user_id, :action, :entity_type, :entity_id, :entity_name,
                 :old_value, :new_value, :metadata, NOW())
        """
        params = {
            'user_id': self.user_id,
            'action': action,
            'entity_type': entity_type,
            'entity_id': entity_id,
            'entity_name': entity_name,
            'old_value': json.dumps(old_value, default=str) if old_value is not None else None,
            'new_value': json.dumps(new_value, default=str) if new_value is not None else None,
            'metadata': json.dumps(metadata or {}, default=str),
        }
        return self._execute_update(query, params, f"activity log {entity_type}/{action}")

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _execute_query(
        self,
        query: str,
        params: dict,
        query_name: str = "query"
    ) -> pd.DataFrame:
        """Execute SQL query and return DataFrame."""
        try:
            logger.debug(f"Executing {query_name}")
            df = pd.read_sql(text(query), self.engine, params=params)
            logger.debug(f"{query_name} returned {len(df)} rows")
            return df
        except Exception as e:
            logger.error(f"Error executing {query_name}: {e}")
            return pd.DataFrame()

    def _execute_update(
        self,
        query: str,
        params,
        operation_name: str = "update"
    ) -> Dict:
        """
        Execute INSERT/UPDATE/DELETE and return result.

        params may be a dict or a list of dicts (executemany).
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(query), params)
                conn.commit()

                rows_affected = result.rowcount
                logger.info(f"{operation_name} successful, {rows_affected} rows affected")
                return {
                    'success': True,
                    'count': rows_affected,
                    'message': f'{operation_name} completed successfully'
                }
        except Exception as e:
            logger.error(f"Error in {operation_name}: {e}")
            return {
                'success': False,
                'count': 0,
                'message': str(e)
            }


__all__ = [
    'ScoreQueries',
    'UPSERT_SCORE_SQL',
    'DELETE_SCORE_SQL',
]
