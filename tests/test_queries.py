"""
Unit tests for the write queries, with a mocked SQLAlchemy engine.
"""

import json
from unittest.mock import MagicMock

import pytest

from okr_dashboard.okr_performance.models import ScoreCell, ScoreKey
from okr_dashboard.okr_performance.queries import ScoreQueries


@pytest.fixture
def conn():
    connection = MagicMock()
    connection.execute.return_value.rowcount = 2
    return connection


@pytest.fixture
def queries(conn):
    engine = MagicMock()
    engine.connect.return_value.__enter__.return_value = conn
    return ScoreQueries(user_id='user-1', engine=engine)


def _sql(conn) -> str:
    return str(conn.execute.call_args.args[0])


class TestScoreWrites:

    def test_upsert(self, queries, conn):
        cells = [
            ScoreCell(ScoreKey('ind1', 'c1', 'f1'), '2026-03', 1.0),
            ScoreCell(ScoreKey('ind1', 'c1', 'f2'), '2026-03', 0.0),
        ]
        result = queries.upsert_scores(cells)

        assert result == {'success': True, 'count': 2, 'message': 'upsert 2 scores completed successfully'}
        assert 'ON DUPLICATE KEY UPDATE' in _sql(conn)
        params = conn.execute.call_args.args[1]
        assert params[1] == {
            'indicator_id': 'ind1', 'customer_id': 'c1', 'feature_id': 'f2',
            'period': '2026-03', 'value': 0.0, 'created_by': 'user-1',
        }
        conn.commit.assert_called_once()

    def test_empty_upsert_skips_database(self, queries, conn):
        assert queries.upsert_scores([])['count'] == 0
        conn.execute.assert_not_called()

    def test_delete(self, queries, conn):
        result = queries.delete_scores([ScoreKey('ind1', 'c1', 'f1')], '2026-03')
        assert result['success']
        assert _sql(conn).strip().startswith('DELETE FROM customer_feature_scores')
        assert conn.execute.call_args.args[1][0]['period'] == '2026-03'

    def test_failure_returns_result(self, queries, conn):
        conn.execute.side_effect = RuntimeError('deadlock')
        result = queries.delete_scores([ScoreKey('ind1', 'c1', 'f1')], '2026-03')
        assert result == {'success': False, 'count': 0, 'message': 'deadlock'}


class TestIndicatorWrites:

    def test_update_indicator(self, queries, conn):
        queries.update_indicator_values('ind1', 75.0, 100, 'amber')
        params = conn.execute.call_args.args[1]
        assert params == {
            'indicator_id': 'ind1', 'current_value': 75.0, 'target_value': 100,
            'unit': '%', 'rag_status': 'amber',
        }

    def test_history(self, queries, conn):
        queries.insert_indicator_history('ind1', 75.0, '2026-03', notes='note')
        assert 'INSERT INTO indicator_history' in _sql(conn)
        assert conn.execute.call_args.args[1]['created_by'] == 'user-1'

    def test_activity_log_serialises_json(self, queries, conn):
        queries.insert_activity_log(
            action='update', entity_type='indicator', entity_id='ind1',
            old_value={'current_value': 40.0}, metadata={'period': '2026-03'},
        )
        params = conn.execute.call_args.args[1]
        assert json.loads(params['old_value']) == {'current_value': 40.0}
        assert params['new_value'] is None
        assert json.loads(params['metadata']) == {'period': '2026-03'}
