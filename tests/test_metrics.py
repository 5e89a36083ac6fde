"""
Unit tests for the hierarchy rollup.
"""

import pytest

from okr_dashboard.okr_performance.formulas import FormulaType
from okr_dashboard.okr_performance.metrics import OKRMetrics, clamp_for_display
from okr_dashboard.okr_performance.models import (
    Department,
    DepartmentChildren,
    FunctionalObjective,
    FunctionalObjectiveChildren,
    Indicator,
    KeyResult,
    OrgObjective,
)


def indicator(id, current, target):
    return Indicator(id=id, name=f"Indicator {id}", current_value=current, target_value=target)


def key_result(id, indicators=None, formula=FormulaType.AVG, current=None, target=None):
    return KeyResult(id=id, name=f"KR {id}", formula_type=formula,
                     indicators=indicators or [], current_value=current, target_value=target)


def fo(id, key_results=None, formula=FormulaType.AVG):
    return FunctionalObjective(id=id, name=f"FO {id}", formula_type=formula,
                               key_results=key_results or [])


@pytest.fixture
def metrics():
    return OKRMetrics()


class TestIndicatorAndKeyResult:

    def test_indicator_progress(self, metrics):
        result = metrics.indicator_result(indicator('i1', 80, 100))
        assert result.progress == 80
        assert result.status == 'green'

    def test_indicator_without_target_is_not_set(self, metrics):
        assert metrics.indicator_result(indicator('i1', 80, None)).status == 'not-set'
        assert metrics.indicator_result(indicator('i1', 80, 0)).status == 'not-set'

    def test_weighted_key_result(self, metrics):
        """(50×10 + 100×30) / (10+30) = 87.5"""
        kr = key_result('kr1', [indicator('i1', 5, 10), indicator('i2', 30, 30)],
                        formula=FormulaType.WEIGHTED_AVG)
        result = metrics.key_result_result(kr)
        assert result.progress == 87.5
        assert result.status == 'green'

    def test_not_set_indicators_are_skipped(self, metrics):
        kr = key_result('kr1', [indicator('i1', 60, 100), indicator('i2', None, 100)])
        assert metrics.key_result_progress(kr) == 60

    def test_indicators_override_own_values(self, metrics):
        kr = key_result('kr1', [indicator('i1', 60, 100)], current=100, target=100)
        assert metrics.key_result_progress(kr) == 60

    def test_key_result_without_indicators_uses_own_pair(self, metrics):
        kr = key_result('kr1', current=30, target=40)
        assert metrics.key_result_result(kr).status == 'amber'

    def test_all_indicators_not_set(self, metrics):
        kr = key_result('kr1', [indicator('i1', None, 100), indicator('i2', 0, 0)])
        result = metrics.key_result_result(kr)
        assert result.progress is None
        assert result.status == 'not-set'

    @pytest.mark.parametrize("formula, expected", [
        (FormulaType.MIN, 40),
        (FormulaType.MAX, 90),
        (FormulaType.SUM, 190),
        (FormulaType.AVG, pytest.approx(190 / 3)),
    ])
    def test_key_result_formulas(self, metrics, formula, expected):
        kr = key_result('kr1', [indicator('a', 40, 100), indicator('b', 90, 100), indicator('c', 60, 100)],
                        formula=formula)
        assert metrics.key_result_progress(kr) == expected


class TestFunctionalObjectiveAndDepartment:

    def test_fo_weights_are_kr_targets(self, metrics):
        fo1 = fo('fo1', [
            key_result('kr1', current=5, target=10),
            key_result('kr2', current=30, target=30),
        ], formula=FormulaType.WEIGHTED_AVG)
        assert metrics.functional_objective_progress(fo1) == 87.5

    def test_department_skips_not_set_children(self, metrics):
        """One not-set FO and one green FO at 80% → green at 80%."""
        dept = Department(id='d1', name='Sales', functional_objectives=[
            fo('empty', [key_result('kr0')]),
            fo('green', [key_result('kr1', current=80, target=100)]),
        ])
        result = metrics.department_result(dept)
        assert result.progress == 80
        assert result.status == 'green'

    def test_department_always_averages(self, metrics):
        dept = Department(id='d1', name='Ops', functional_objectives=[
            fo('a', [key_result('kr1', current=100, target=100)], formula=FormulaType.SUM),
            fo('b', [key_result('kr2', current=50, target=100)], formula=FormulaType.SUM),
        ])
        assert metrics.department_progress(dept) == 75


class TestEmptyGuards:
    """Every level turns an empty child list into not-set."""

    def test_empty_fo(self, metrics):
        assert metrics.functional_objective_result(fo('fo1')).status == 'not-set'

    def test_empty_department(self, metrics):
        result = metrics.department_result(Department(id='d1', name='Empty'))
        assert result.progress is None
        assert result.status == 'not-set'

    def test_empty_org_objective(self, metrics):
        org = OrgObjective(id='o1', name='Empty')
        assert metrics.org_objective_result(org).status == 'not-set'

    def test_unknown_business_outcome(self, metrics):
        assert metrics.business_outcome_result('Nope').status == 'not-set'
        assert metrics.business_outcome_result(None).status == 'not-set'

    def test_branch_without_data_is_never_red(self, metrics):
        org = OrgObjective(id='o1', name='Quiet', children=DepartmentChildren([
            Department(id='d1', name='D', functional_objectives=[
                fo('fo1', [key_result('kr1', [indicator('i1', 0, 100)])]),
            ]),
        ]))
        assert metrics.org_objective_result(org).status == 'not-set'


class TestOrgObjectiveAndOutcome:

    @pytest.fixture
    def orgs(self):
        dept_org = OrgObjective(
            id='o1', name='Grow', business_outcome='Revenue',
            children=DepartmentChildren([
                Department(id='d1', name='Sales', functional_objectives=[
                    fo('fo1', [key_result('kr1', current=90, target=100)]),
                ]),
                Department(id='d2', name='Marketing', functional_objectives=[
                    fo('fo2', [key_result('kr2', current=50, target=100)]),
                ]),
            ]),
        )
        fo_org = OrgObjective(
            id='o2', name='Retain', business_outcome='Revenue',
            children=FunctionalObjectiveChildren([
                fo('fo3', [key_result('kr3', current=60, target=100)]),
            ]),
        )
        return [dept_org, fo_org]

    def test_org_with_departments(self, orgs):
        metrics = OKRMetrics(orgs)
        assert metrics.org_objective_progress(orgs[0]) == 70

    def test_org_with_functional_objectives(self, orgs):
        metrics = OKRMetrics(orgs)
        assert metrics.org_objective_progress(orgs[1]) == 60

    def test_business_outcome_averages_orgs(self, orgs):
        metrics = OKRMetrics(orgs)
        result = metrics.business_outcome_result('Revenue')
        assert result.progress == 65
        assert result.status == 'amber'

    def test_find(self, orgs):
        metrics = OKRMetrics(orgs)
        assert metrics.find('KR', 'kr3').name == 'KR kr3'
        assert metrics.find('Department', 'd2').name == 'Marketing'
        assert metrics.find('BusinessOutcome', 'Revenue') == 'Revenue'
        assert metrics.find('KR', 'missing') is None

    def test_status_frame(self, orgs):
        df = OKRMetrics(orgs).status_frame()
        assert len(df) == 2 + 2 + 3 + 3  # orgs, departments, FOs, KRs
        org_row = df[(df['entity_type'] == 'OrgObjective') & (df['id'] == 'o1')].iloc[0]
        assert org_row['progress'] == 70
        assert org_row['status'] == 'amber'
        fo3 = df[df['id'] == 'fo3'].iloc[0]
        assert fo3['parent_type'] == 'OrgObjective'
        assert fo3['parent_id'] == 'o2'

    def test_empty_status_frame_keeps_columns(self):
        df = OKRMetrics([]).status_frame()
        assert df.empty
        assert 'status' in df.columns


def test_clamp_for_display():
    assert clamp_for_display(150) == 100
    assert clamp_for_display(None) == 0
    assert clamp_for_display(42.5) == 42.5
