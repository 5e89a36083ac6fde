"""
Unit tests for the customer × feature matrix aggregator.
"""

import pandas as pd
import pytest

from okr_dashboard.okr_performance.matrix_calculator import ScoreMatrixCalculator
from okr_dashboard.okr_performance.matrix_editor import ScoreSnapshot
from okr_dashboard.okr_performance.metrics import OKRMetrics
from okr_dashboard.okr_performance.models import Indicator, ScoreKey, default_bands

PERIOD = '2026-03'


@pytest.fixture
def calc(scores_df, links_df, customer_features_df):
    return ScoreMatrixCalculator(scores_df, links_df, customer_features_df, period=PERIOD)


class TestEligibility:

    def test_eligible_keys(self, calc):
        assert calc.eligible_keys() == {
            ScoreKey('ind1', 'c1', 'f1'),
            ScoreKey('ind1', 'c1', 'f2'),
            ScoreKey('ind1', 'c2', 'f1'),
            ScoreKey('ind2', 'c1', 'f1'),
            ScoreKey('ind2', 'c2', 'f1'),
        }

    def test_blocked_cell(self, calc):
        assert not calc.is_eligible('ind2', 'c1', 'f2')
        assert calc.is_eligible('ind1', 'c1', 'f2')

    def test_customer_sections(self, calc):
        sections = calc.customer_sections()
        assert [s['customer_id'] for s in sections] == ['c1', 'c2']
        c1 = sections[0]
        assert c1['feature_ids'] == ['f1', 'f2']
        assert c1['indicator_ids'] == ['ind1', 'ind2']
        assert c1['indicator_features']['ind2'] == {'f1'}


class TestAverages:

    def test_indicator_aggregate(self, calc):
        """Green (1) and Amber (0.5) → 75."""
        assert calc.indicator_aggregate('ind1') == 75.0

    def test_blocked_rows_are_excluded(self, calc):
        # the stored ind2/c1/f2 = 1.0 is blocked; only c2's 0.0 counts
        assert calc.indicator_aggregate('ind2') == 0.0

    def test_unscored_indicator(self, calc):
        assert calc.indicator_aggregate('ind9') is None

    def test_feature_row_average(self, calc):
        assert calc.feature_row_average('c1', 'f1') == 100.0
        assert calc.feature_row_average('c1', 'f2') == 50.0
        assert calc.feature_row_average('c1', 'f1', indicator_ids=['ind2']) is None

    def test_customer_average(self, calc):
        assert calc.customer_average('c1') == 75.0
        assert calc.customer_average('c2') == 0.0
        assert calc.customer_average('c9') is None

    def test_rounding(self, links_df, customer_features_df):
        scores = pd.DataFrame([
            {'indicator_id': 'ind1', 'customer_id': 'c1', 'feature_id': 'f1', 'value': 1.0},
            {'indicator_id': 'ind1', 'customer_id': 'c1', 'feature_id': 'f2', 'value': 0.5},
            {'indicator_id': 'ind1', 'customer_id': 'c2', 'feature_id': 'f1', 'value': 0.5},
        ])
        calc = ScoreMatrixCalculator(scores, links_df, customer_features_df)
        assert calc.indicator_aggregate('ind1') == 66.67


class TestIndicatorUpdate:

    def test_amber_at_75(self, calc):
        assert calc.indicator_update('ind1') == {
            'current_value': 75.0,
            'target_value': 100,
            'rag_status': 'amber',
        }

    def test_all_red_is_not_set(self, calc):
        assert calc.indicator_update('ind2')['rag_status'] == 'not-set'

    def test_status_matches_hierarchy_rollup(self, links_df, customer_features_df):
        """Green + Red cells average to 50: red in the store and in the tree."""
        scores = pd.DataFrame([
            {'indicator_id': 'ind1', 'customer_id': 'c1', 'feature_id': 'f1', 'value': 1.0},
            {'indicator_id': 'ind1', 'customer_id': 'c1', 'feature_id': 'f2', 'value': 0.0},
        ])
        update = ScoreMatrixCalculator(scores, links_df, customer_features_df).indicator_update('ind1')
        indicator = Indicator('ind1', 'Adoption', current_value=update['current_value'],
                              target_value=update['target_value'], bands=default_bands())

        assert update['rag_status'] == 'red'
        assert update['rag_status'] == OKRMetrics([]).indicator_result(indicator).status

    def test_unscored(self, calc):
        assert calc.indicator_update('ind9') is None


class TestDerivationView:

    def test_customer_breakdown(self, calc):
        df = calc.customer_breakdown('ind1')
        assert list(df['customer_id']) == ['c1']
        row = df.iloc[0]
        assert row['average'] == 75.0
        assert row['cell_count'] == 2
        assert row['status'] == 'amber'

    def test_rag_distribution(self, calc):
        assert calc.rag_distribution('ind1') == {'green': 0, 'amber': 1, 'red': 0, 'not-set': 0}

    def test_empty_customers(self, calc):
        assert calc.empty_customers() == []
        assert calc.empty_customers(indicator_ids=['ind1']) == ['c2']

    def test_trendline(self, scores_df, links_df, customer_features_df):
        df = ScoreMatrixCalculator.indicator_trendline(
            scores_df, links_df, customer_features_df, 'ind1', mode='monthly'
        )
        assert list(df['period']) == ['2026-02', '2026-03']
        assert list(df['aggregate']) == [50.0, 75.0]
        assert list(df['status']) == ['red', 'amber']


class TestFromSnapshot:

    def test_deleted_cell_leaves_the_average(self, links_df, customer_features_df):
        snapshot = ScoreSnapshot(PERIOD, {
            ScoreKey('ind1', 'c1', 'f1'): 1.0,
            ScoreKey('ind1', 'c1', 'f2'): 0.5,
        })
        calc = ScoreMatrixCalculator.from_snapshot(snapshot, links_df, customer_features_df)
        assert calc.indicator_aggregate('ind1') == 75.0

        cleared = snapshot.without([ScoreKey('ind1', 'c1', 'f2')])
        calc = ScoreMatrixCalculator.from_snapshot(cleared, links_df, customer_features_df)
        assert calc.indicator_aggregate('ind1') == 100.0

    def test_empty_inputs(self):
        calc = ScoreMatrixCalculator(None, None, None)
        assert calc.eligible_keys() == frozenset()
        assert calc.indicator_aggregate('ind1') is None
        assert calc.customer_sections() == []
