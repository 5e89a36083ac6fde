# okr_dashboard/okr_performance/breakdown.py
"""
Calculation Breakdown Reporter

Explains how a node's status was reached: the formula, each child's
progress and weight, the aggregated progress and the status. It reads the
same OKRMetrics.*_inputs() and OKRMetrics.rollup() the live rollup uses,
so a breakdown can never disagree with the status shown next to it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import (
    ENTITY_KPI,
    ENTITY_KR,
    ENTITY_FO,
    ENTITY_DEPARTMENT,
    ENTITY_ORG_OBJECTIVE,
    ENTITY_BUSINESS_OUTCOME,
    ENTITY_TYPES,
    KPI_FORMULA_TEXT,
    DEFAULT_FORMULA_TEXT,
    DEPARTMENT_FORMULA_TEXT,
    ORG_OBJECTIVE_FORMULA_TEXT,
    BUSINESS_OUTCOME_FORMULA_TEXT,
)
from .formulas import FormulaType
from .metrics import OKRMetrics, RollupInputs
from .rag import classify

logger = logging.getLogger(__name__)


@dataclass
class CalculationBreakdown:
    entity_type: str
    entity_name: str
    formula: str
    formula_type: FormulaType
    child_values: List[Dict[str, Any]] = field(default_factory=list)
    calculated_progress: Optional[float] = None
    status: str = 'not-set'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entity_type': self.entity_type,
            'entity_name': self.entity_name,
            'formula': self.formula,
            'formula_type': self.formula_type.value,
            'child_values': self.child_values,
            'calculated_progress': self.calculated_progress,
            'status': self.status,
        }


class BreakdownReporter:
    """
    Usage:
        reporter = BreakdownReporter(metrics)
        breakdown = reporter.breakdown('KR', kr_id)
        if breakdown is None:
            # render the empty state
    """

    def __init__(self, metrics: OKRMetrics):
        self.metrics = metrics

    def breakdown(self, entity_type: str, entity_id: Any) -> Optional[CalculationBreakdown]:
        """
        Args:
            entity_type: One of KPI, KR, FO, Department, OrgObjective, BusinessOutcome
            entity_id: Record id (for BusinessOutcome: the outcome name)

        Returns:
            CalculationBreakdown, or None when the entity is unknown or has
            no children to explain

        Raises:
            ValueError: unknown entity_type
        """
        if entity_type not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity type: {entity_type}")

        entity = self.metrics.find(entity_type, entity_id)
        if entity is None:
            logger.debug(f"No {entity_type} with id {entity_id}")
            return None

        if entity_type == ENTITY_KPI:
            return self._leaf_breakdown(
                ENTITY_KPI, entity.name, self.metrics.indicator_progress(entity)
            )

        if entity_type == ENTITY_KR:
            if not entity.indicators:
                # No indicators: the KR's own current/target pair
                return self._leaf_breakdown(
                    ENTITY_KR, entity.name, self.metrics.key_result_progress(entity)
                )
            return self._from_inputs(
                ENTITY_KR,
                entity.name,
                entity.formula_text or DEFAULT_FORMULA_TEXT,
                self.metrics.key_result_inputs(entity),
            )

        if entity_type == ENTITY_FO:
            return self._from_inputs(
                ENTITY_FO,
                entity.name,
                entity.formula_text or DEFAULT_FORMULA_TEXT,
                self.metrics.functional_objective_inputs(entity),
            )

        if entity_type == ENTITY_DEPARTMENT:
            return self._from_inputs(
                ENTITY_DEPARTMENT,
                entity.name,
                DEPARTMENT_FORMULA_TEXT,
                self.metrics.department_inputs(entity),
            )

        if entity_type == ENTITY_ORG_OBJECTIVE:
            return self._from_inputs(
                ENTITY_ORG_OBJECTIVE,
                entity.name,
                ORG_OBJECTIVE_FORMULA_TEXT,
                self.metrics.org_objective_inputs(entity),
            )

        return self._from_inputs(
            ENTITY_BUSINESS_OUTCOME,
            entity,
            BUSINESS_OUTCOME_FORMULA_TEXT,
            self.metrics.business_outcome_inputs(entity),
        )

    @staticmethod
    def _leaf_breakdown(entity_type: str, name: str, progress: Optional[float]) -> CalculationBreakdown:
        return CalculationBreakdown(
            entity_type=entity_type,
            entity_name=name,
            formula=KPI_FORMULA_TEXT,
            formula_type=FormulaType.AVG,
            child_values=[],
            calculated_progress=progress,
            status=classify(progress),
        )

    def _from_inputs(
        self,
        entity_type: str,
        name: str,
        formula: str,
        inputs: RollupInputs
    ) -> Optional[CalculationBreakdown]:
        if not inputs.children:
            return None

        progress = self.metrics.rollup(inputs)

        return CalculationBreakdown(
            entity_type=entity_type,
            entity_name=name,
            formula=formula,
            formula_type=inputs.formula_type,
            child_values=[
                {
                    'id': child.id,
                    'name': child.name,
                    'progress': child.progress,
                    'weight': child.weight,
                    'included': child.included,
                    'status': classify(child.progress),
                }
                for child in inputs.children
            ],
            calculated_progress=progress,
            status=classify(progress),
        )


__all__ = [
    'CalculationBreakdown',
    'BreakdownReporter',
]
