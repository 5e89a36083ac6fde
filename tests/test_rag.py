"""
Unit tests for RAG classification.
"""

import math

import pytest

from okr_dashboard.okr_performance.metrics import OKRMetrics
from okr_dashboard.okr_performance.models import Indicator, KeyResult, RAGBand, default_bands
from okr_dashboard.okr_performance.rag import (
    band_color_for_weight,
    classify,
    classify_values,
    classify_weight,
    count_statuses,
    progress_from_values,
    rag_label,
    status_rank,
)


class TestClassify:
    """Fixed thresholds: >=76 green, >=51 amber, >0 red, 0 not-set."""

    @pytest.mark.parametrize("progress, expected", [
        (100, 'green'),
        (150, 'green'),
        (76, 'green'),
        (75.99, 'amber'),
        (75, 'amber'),
        (51, 'amber'),
        (50.99, 'red'),
        (0.01, 'red'),
        (0, 'not-set'),
        (None, 'not-set'),
        (math.nan, 'not-set'),
    ])
    def test_thresholds(self, progress, expected):
        assert classify(progress) == expected

    def test_boundary_75_vs_76(self):
        assert classify(75) == 'amber'
        assert classify(76) == 'green'

    def test_monotonic(self):
        """Higher measured progress never gets a worse band."""
        values = [x / 4 for x in range(1, 800)]
        ranks = [status_rank(classify(v)) for v in values]
        assert ranks == sorted(ranks)


class TestClassifyValues:

    def test_target_zero_is_not_set(self):
        assert classify_values(50, 0) == 'not-set'

    def test_missing_current_is_not_set(self):
        assert classify_values(None, 100) == 'not-set'

    def test_missing_target_is_not_set(self):
        assert classify_values(50, None) == 'not-set'

    def test_ratio(self):
        assert classify_values(80, 100) == 'green'
        assert classify_values(30, 40) == 'amber'
        assert classify_values(1, 100) == 'red'

    def test_current_zero_is_not_set(self):
        assert classify_values(0, 100) == 'not-set'

    def test_progress_from_values(self):
        assert progress_from_values(30, 40) == 75
        assert progress_from_values(30, -1) is None

    def test_negative_current_floors_at_zero(self):
        assert progress_from_values(-20, 100) == 0.0
        assert classify_values(-20, 100) == 'not-set'

    def test_negative_child_does_not_drag_parent_below_zero(self):
        kr = KeyResult(id='kr1', name='Adoption', indicators=[
            Indicator(id='i1', name='Logins', current_value=-50, target_value=100),
            Indicator(id='i2', name='Reports', current_value=60, target_value=100),
        ])
        assert OKRMetrics([]).key_result_progress(kr) == 30.0


class TestCustomBands:

    @pytest.fixture
    def bands(self):
        return [
            RAGBand('Excellent', 'green', 1.0, 1),
            RAGBand('Partial', 'amber', 0.6, 2),
            RAGBand('None', 'red', 0.0, 3),
        ]

    def test_exact_match_returns_label(self, bands):
        assert classify_weight(0.6, bands) == 'Partial'

    def test_no_match_falls_back_to_thresholds(self, bands):
        assert classify_weight(0.8, bands) == 'green'
        assert classify_weight(0.3, bands) == 'red'

    def test_band_color(self, bands):
        assert band_color_for_weight(0.6, bands) == 'amber'
        assert band_color_for_weight(0.0, bands) == 'red'

    def test_zero_without_bands_is_not_set(self):
        assert band_color_for_weight(0.0) == 'not-set'

    def test_default_bands(self):
        assert [b.rag_numeric for b in default_bands()] == [1.0, 0.5, 0.0]
        assert classify_weight(0.5, default_bands()) == 'Amber'


class TestLabelsAndCounts:

    def test_labels(self):
        assert rag_label('green') == 'On Track'
        assert rag_label('amber') == 'At Risk'
        assert rag_label('red') == 'Critical'
        assert rag_label('whatever') == 'Not Set'

    def test_rank_order(self):
        assert status_rank('not-set') < status_rank('red') < status_rank('amber') < status_rank('green')

    def test_count_statuses(self):
        counts = count_statuses(['green', 'green', 'red', 'bogus'])
        assert counts == {'green': 2, 'amber': 0, 'red': 1, 'not-set': 1}
