"""
Shared fixtures: a small customer × feature matrix and a recording fake
for ScoreQueries so the save sequence can be checked without a database.
"""

from typing import Any, Dict, List

import pandas as pd
import pytest

from okr_dashboard.okr_performance.matrix_editor import ScoreSnapshot


PERIOD = '2026-03'


@pytest.fixture
def links_df() -> pd.DataFrame:
    """ind1 covers Login + Reports, ind2 covers Login only."""
    return pd.DataFrame([
        {'indicator_id': 'ind1', 'feature_id': 'f1'},
        {'indicator_id': 'ind1', 'feature_id': 'f2'},
        {'indicator_id': 'ind2', 'feature_id': 'f1'},
    ])


@pytest.fixture
def customer_features_df() -> pd.DataFrame:
    """c1 subscribes to Login + Reports, c2 to Login only."""
    return pd.DataFrame([
        {'customer_id': 'c1', 'feature_id': 'f1'},
        {'customer_id': 'c1', 'feature_id': 'f2'},
        {'customer_id': 'c2', 'feature_id': 'f1'},
    ])


@pytest.fixture
def scores_df() -> pd.DataFrame:
    return pd.DataFrame([
        # 2026-03
        {'indicator_id': 'ind1', 'customer_id': 'c1', 'feature_id': 'f1', 'period': PERIOD, 'value': 1.0},
        {'indicator_id': 'ind1', 'customer_id': 'c1', 'feature_id': 'f2', 'period': PERIOD, 'value': 0.5},
        {'indicator_id': 'ind2', 'customer_id': 'c2', 'feature_id': 'f1', 'period': PERIOD, 'value': 0.0},
        # blocked: ind2 is not linked to f2
        {'indicator_id': 'ind2', 'customer_id': 'c1', 'feature_id': 'f2', 'period': PERIOD, 'value': 1.0},
        # stored but unset
        {'indicator_id': 'ind1', 'customer_id': 'c2', 'feature_id': 'f1', 'period': PERIOD, 'value': None},
        # earlier periods
        {'indicator_id': 'ind1', 'customer_id': 'c1', 'feature_id': 'f1', 'period': '2026-02', 'value': 0.5},
        {'indicator_id': 'ind1', 'customer_id': 'c1', 'feature_id': 'f1', 'period': 'Q1-2026', 'value': 1.0},
    ])


@pytest.fixture
def names() -> Dict[str, Dict[str, str]]:
    return {
        'customers': {'c1': 'Acme', 'c2': 'Globex'},
        'features': {'f1': 'Login', 'f2': 'Reports'},
        'indicators': {'ind1': 'Adoption', 'ind2': 'Health'},
    }


@pytest.fixture
def snapshot(scores_df) -> ScoreSnapshot:
    return ScoreSnapshot.from_frame(scores_df, PERIOD)


class FakeScoreQueries:
    """Records every write; failures can be switched on per operation."""

    def __init__(self, indicators: List[Dict[str, Any]] = None, fail: set = None):
        self.user_id = 'user-1'
        self.indicators = indicators or []
        self.fail = fail or set()
        self.upserts: List[List] = []
        self.deletes: List[tuple] = []
        self.indicator_updates: List[Dict] = []
        self.history: List[Dict] = []
        self.activity: List[Dict] = []

    def _result(self, op: str, count: int) -> Dict:
        if op in self.fail:
            return {'success': False, 'count': 0, 'message': f'{op} failed'}
        return {'success': True, 'count': count, 'message': 'ok'}

    def upsert_scores(self, cells):
        result = self._result('upsert', len(cells))
        if result['success']:
            self.upserts.append(list(cells))
        return result

    def delete_scores(self, keys, period):
        result = self._result('delete', len(keys))
        if result['success']:
            self.deletes.append((list(keys), period))
        return result

    def get_indicators(self, indicator_ids):
        rows = [r for r in self.indicators if r['id'] in set(indicator_ids)]
        return pd.DataFrame(rows)

    def update_indicator_values(self, indicator_id, current_value, target_value, rag_status, unit='%'):
        result = self._result('indicator', 1)
        if result['success']:
            self.indicator_updates.append({
                'indicator_id': indicator_id,
                'current_value': current_value,
                'target_value': target_value,
                'rag_status': rag_status,
            })
        return result

    def insert_indicator_history(self, indicator_id, value, period, notes=None):
        result = self._result('history', 1)
        if result['success']:
            self.history.append({'indicator_id': indicator_id, 'value': value,
                                 'period': period, 'notes': notes})
        return result

    def insert_activity_log(self, **kwargs):
        result = self._result('activity', 1)
        if result['success']:
            self.activity.append(kwargs)
        return result

    @property
    def upserted_cells(self):
        return [cell for chunk in self.upserts for cell in chunk]


@pytest.fixture
def fake_queries() -> FakeScoreQueries:
    return FakeScoreQueries(indicators=[
        {'id': 'ind1', 'name': 'Adoption', 'current_value': 40.0, 'target_value': 100.0, 'rag_status': 'red'},
        {'id': 'ind2', 'name': 'Health', 'current_value': None, 'target_value': None, 'rag_status': None},
    ])


@pytest.fixture
def queries_factory():
    """Build a FakeScoreQueries with chosen failures."""
    return FakeScoreQueries
