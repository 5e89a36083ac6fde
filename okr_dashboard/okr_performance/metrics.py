# okr_dashboard/okr_performance/metrics.py
"""
Hierarchy Rollup Engine for OKR Performance

Walks Org Objective → Department → Functional Objective → Key Result →
Indicator bottom-up, applying each node's own formula and classifying the
result with the fixed RAG thresholds.

VERSION: 2.1.0
CHANGELOG:
- v2.1.0: Business Outcome rollup (AVG over org objectives sharing an outcome)
- v2.0.0: Rollup inputs exposed via *_inputs() so the breakdown dialog
          reuses the exact same calculation path
          - Children without progress are SKIPPED, never zero-filled
          - Empty child list → not-set at every level
- v1.0.0: Initial rollup (KR/FO formulas, Department fixed AVG)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .constants import (
    ENTITY_KPI,
    ENTITY_KR,
    ENTITY_FO,
    ENTITY_DEPARTMENT,
    ENTITY_ORG_OBJECTIVE,
    ENTITY_BUSINESS_OUTCOME,
)
from .formulas import FormulaType, aggregate
from .models import (
    Indicator,
    KeyResult,
    FunctionalObjective,
    Department,
    OrgObjective,
    RollupResult,
)
from .rag import classify, progress_from_values

logger = logging.getLogger(__name__)


@dataclass
class ChildValue:
    """One child's contribution to its parent's rollup."""
    id: Any
    name: str
    progress: Optional[float]
    weight: Optional[float] = None

    @property
    def included(self) -> bool:
        return self.progress is not None


@dataclass
class RollupInputs:
    """Everything a parent's progress is computed from."""
    formula_type: FormulaType
    children: List[ChildValue] = field(default_factory=list)

    @property
    def included(self) -> List[ChildValue]:
        return [c for c in self.children if c.included]


def clamp_for_display(progress: Optional[float]) -> float:
    """Progress bars stop at 100; the underlying number does not."""
    if progress is None:
        return 0.0
    return max(0.0, min(100.0, progress))


class OKRMetrics:
    """
    Rollup calculations for the OKR hierarchy.

    Usage:
        metrics = OKRMetrics(org_objectives)
        result = metrics.department_result(department)
        result.progress, result.status

        # Lookups by id (for breakdowns / detail pages)
        kr = metrics.find(ENTITY_KR, kr_id)

    All methods are pure over the snapshot passed in; nothing is cached
    between calls and nothing is written back to the records.
    """

    def __init__(self, org_objectives: Iterable[OrgObjective] = None):
        self.org_objectives: List[OrgObjective] = list(org_objectives or [])
        self._index: Dict[str, Dict[Any, Any]] = self._build_index()

    def _build_index(self) -> Dict[str, Dict[Any, Any]]:
        """Map entity type → {id: record} for every node in the snapshot."""
        index = {
            ENTITY_KPI: {},
            ENTITY_KR: {},
            ENTITY_FO: {},
            ENTITY_DEPARTMENT: {},
            ENTITY_ORG_OBJECTIVE: {},
        }

        def add_fo(fo: FunctionalObjective):
            index[ENTITY_FO][fo.id] = fo
            for kr in fo.key_results:
                index[ENTITY_KR][kr.id] = kr
                for ind in kr.indicators:
                    index[ENTITY_KPI][ind.id] = ind

        for org in self.org_objectives:
            index[ENTITY_ORG_OBJECTIVE][org.id] = org
            for dept in org.departments:
                index[ENTITY_DEPARTMENT][dept.id] = dept
                for fo in dept.functional_objectives:
                    add_fo(fo)
            for fo in org.functional_objectives:
                add_fo(fo)

        return index

    def find(self, entity_type: str, entity_id: Any) -> Optional[Any]:
        """Look up a record by type and id. Business outcomes are keyed by name."""
        if entity_type == ENTITY_BUSINESS_OUTCOME:
            return entity_id if self.org_objectives_for_outcome(entity_id) else None
        return self._index.get(entity_type, {}).get(entity_id)

    # =========================================================================
    # SHARED ROLLUP STEP
    # =========================================================================

    @staticmethod
    def rollup(inputs: RollupInputs) -> Optional[float]:
        """
        Aggregate the included children with the parent's formula.

        Returns None (not-set) when no child has progress. This is the ONLY
        place the hierarchy calls aggregate(), so every level has the
        empty-list guard.
        """
        included = inputs.included
        if not included:
            return None

        values = [c.progress for c in included]
        weights = [c.weight for c in included]
        return aggregate(values, inputs.formula_type, weights)

    @staticmethod
    def _result(progress: Optional[float]) -> RollupResult:
        return RollupResult(progress=progress, status=classify(progress))

    # =========================================================================
    # INDICATOR (KPI)
    # =========================================================================

    def indicator_progress(self, indicator: Indicator) -> Optional[float]:
        return progress_from_values(indicator.current_value, indicator.target_value)

    def indicator_result(self, indicator: Indicator) -> RollupResult:
        return self._result(self.indicator_progress(indicator))

    # =========================================================================
    # KEY RESULT
    # =========================================================================

    def key_result_inputs(self, key_result: KeyResult) -> RollupInputs:
        """Indicator progress values weighted by indicator targets."""
        return RollupInputs(
            formula_type=key_result.formula_type,
            children=[
                ChildValue(
                    id=ind.id,
                    name=ind.name,
                    progress=self.indicator_progress(ind),
                    weight=ind.target_value,
                )
                for ind in key_result.indicators
            ],
        )

    def key_result_progress(self, key_result: KeyResult) -> Optional[float]:
        """
        With indicators: the KR's formula over their progress (its own
        current/target become informational). Without: its own pair.
        """
        if key_result.indicators:
            return self.rollup(self.key_result_inputs(key_result))
        return progress_from_values(key_result.current_value, key_result.target_value)

    def key_result_result(self, key_result: KeyResult) -> RollupResult:
        return self._result(self.key_result_progress(key_result))

    # =========================================================================
    # FUNCTIONAL OBJECTIVE
    # =========================================================================

    def functional_objective_inputs(self, fo: FunctionalObjective) -> RollupInputs:
        """KR progress values (each via its own formula), weighted by KR targets."""
        return RollupInputs(
            formula_type=fo.formula_type,
            children=[
                ChildValue(
                    id=kr.id,
                    name=kr.name,
                    progress=self.key_result_progress(kr),
                    weight=kr.target_value,
                )
                for kr in fo.key_results
            ],
        )

    def functional_objective_progress(self, fo: FunctionalObjective) -> Optional[float]:
        return self.rollup(self.functional_objective_inputs(fo))

    def functional_objective_result(self, fo: FunctionalObjective) -> RollupResult:
        return self._result(self.functional_objective_progress(fo))

    # =========================================================================
    # DEPARTMENT - fixed AVG, no configurable formula
    # =========================================================================

    def department_inputs(self, department: Department) -> RollupInputs:
        return RollupInputs(
            formula_type=FormulaType.AVG,
            children=[
                ChildValue(
                    id=fo.id,
                    name=fo.name,
                    progress=self.functional_objective_progress(fo),
                )
                for fo in department.functional_objectives
            ],
        )

    def department_progress(self, department: Department) -> Optional[float]:
        return self.rollup(self.department_inputs(department))

    def department_result(self, department: Department) -> RollupResult:
        return self._result(self.department_progress(department))

    # =========================================================================
    # ORG OBJECTIVE - whichever child shape is populated, fixed AVG
    # =========================================================================

    def org_objective_inputs(self, org: OrgObjective) -> RollupInputs:
        if org.departments:
            children = [
                ChildValue(id=d.id, name=d.name, progress=self.department_progress(d))
                for d in org.departments
            ]
        else:
            children = [
                ChildValue(id=fo.id, name=fo.name, progress=self.functional_objective_progress(fo))
                for fo in org.functional_objectives
            ]
        return RollupInputs(formula_type=FormulaType.AVG, children=children)

    def org_objective_progress(self, org: OrgObjective) -> Optional[float]:
        return self.rollup(self.org_objective_inputs(org))

    def org_objective_result(self, org: OrgObjective) -> RollupResult:
        return self._result(self.org_objective_progress(org))

    # =========================================================================
    # BUSINESS OUTCOME - AVG over org objectives sharing the outcome
    # =========================================================================

    def org_objectives_for_outcome(self, business_outcome: Optional[str]) -> List[OrgObjective]:
        if not business_outcome:
            return []
        return [o for o in self.org_objectives if o.business_outcome == business_outcome]

    def business_outcome_inputs(self, business_outcome: Optional[str]) -> RollupInputs:
        return RollupInputs(
            formula_type=FormulaType.AVG,
            children=[
                ChildValue(id=o.id, name=o.name, progress=self.org_objective_progress(o))
                for o in self.org_objectives_for_outcome(business_outcome)
            ],
        )

    def business_outcome_progress(self, business_outcome: Optional[str]) -> Optional[float]:
        return self.rollup(self.business_outcome_inputs(business_outcome))

    def business_outcome_result(self, business_outcome: Optional[str]) -> RollupResult:
        return self._result(self.business_outcome_progress(business_outcome))

    # =========================================================================
    # STATUS TABLE
    # =========================================================================

    def status_tree(self) -> List[Dict]:
        """
        Flatten the whole snapshot into one status row per node.

        Returns:
            List of dicts with entity_type, id, name, parent_type, parent_id,
            formula_type, progress, display_progress, status
        """
        rows: List[Dict] = []

        def add(entity_type: str, record: Any, result: RollupResult,
                parent: Tuple[Optional[str], Any], formula_type: Optional[FormulaType]):
            rows.append({
                'entity_type': entity_type,
                'id': record.id,
                'name': record.name,
                'parent_type': parent[0],
                'parent_id': parent[1],
                'formula_type': formula_type.value if formula_type else None,
                'progress': result.progress,
                'display_progress': clamp_for_display(result.progress),
                'status': result.status,
            })

        def walk_fo(fo: FunctionalObjective, parent: Tuple[str, Any]):
            add(ENTITY_FO, fo, self.functional_objective_result(fo), parent, fo.formula_type)
            for kr in fo.key_results:
                add(ENTITY_KR, kr, self.key_result_result(kr), (ENTITY_FO, fo.id), kr.formula_type)
                for ind in kr.indicators:
                    add(ENTITY_KPI, ind, self.indicator_result(ind), (ENTITY_KR, kr.id), None)

        for org in self.org_objectives:
            add(ENTITY_ORG_OBJECTIVE, org, self.org_objective_result(org), (None, None), FormulaType.AVG)
            for dept in org.departments:
                add(ENTITY_DEPARTMENT, dept, self.department_result(dept),
                    (ENTITY_ORG_OBJECTIVE, org.id), FormulaType.AVG)
                for fo in dept.functional_objectives:
                    walk_fo(fo, (ENTITY_DEPARTMENT, dept.id))
            for fo in org.functional_objectives:
                walk_fo(fo, (ENTITY_ORG_OBJECTIVE, org.id))

        logger.debug(f"[OKRMetrics] status_tree built {len(rows)} rows")
        return rows

    def status_frame(self) -> pd.DataFrame:
        """status_tree() as a DataFrame (empty frame keeps its columns)."""
        columns = [
            'entity_type', 'id', 'name', 'parent_type', 'parent_id',
            'formula_type', 'progress', 'display_progress', 'status',
        ]
        rows = self.status_tree()
        if not rows:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame(rows, columns=columns)


__all__ = [
    'ChildValue',
    'RollupInputs',
    'OKRMetrics',
    'clamp_for_display',
]
