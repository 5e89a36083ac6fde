# okr_dashboard/okr_performance/models.py
"""
In-memory snapshot records for the OKR hierarchy and the scoring matrix.

The tree (leaves last):
    OrgObjective → Department → FunctionalObjective → KeyResult → Indicator
    OrgObjective → FunctionalObjective → ...            (alternative shape)

An OrgObjective holds EITHER departments OR functional objectives. The two
shapes are separate classes so only one can be populated.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .constants import DEFAULT_RAG_BANDS
from .formulas import FormulaType


@dataclass(frozen=True)
class RAGBand:
    """One discrete rating an indicator's matrix cells can take."""
    band_label: str
    rag_color: str
    rag_numeric: float
    sort_order: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RAGBand":
        return cls(
            band_label=str(data['band_label']),
            rag_color=str(data['rag_color']).lower(),
            rag_numeric=float(data['rag_numeric']),
            sort_order=int(data.get('sort_order') or 0),
        )


def default_bands() -> List[RAGBand]:
    return [RAGBand.from_dict(b) for b in DEFAULT_RAG_BANDS]


@dataclass
class Indicator:
    """Leaf KPI with a current and target value."""
    id: Any
    name: str
    current_value: Optional[float] = None
    target_value: Optional[float] = None
    unit: Optional[str] = None
    tier: str = 'tier1'
    frequency: str = 'Monthly'
    formula_text: Optional[str] = None
    key_result_id: Any = None
    bands: List[RAGBand] = field(default_factory=list)
    linked_feature_ids: List[Any] = field(default_factory=list)

    @property
    def has_custom_bands(self) -> bool:
        return bool(self.bands)

    def sorted_bands(self) -> List[RAGBand]:
        return sorted(self.bands, key=lambda b: b.sort_order)


@dataclass
class KeyResult:
    id: Any
    name: str
    owner: Optional[str] = None
    current_value: Optional[float] = None
    target_value: Optional[float] = None
    unit: Optional[str] = None
    formula_type: FormulaType = FormulaType.AVG
    formula_text: Optional[str] = None
    functional_objective_id: Any = None
    indicators: List[Indicator] = field(default_factory=list)


@dataclass
class FunctionalObjective:
    id: Any
    name: str
    owner: Optional[str] = None
    formula_type: FormulaType = FormulaType.AVG
    formula_text: Optional[str] = None
    department_id: Any = None
    key_results: List[KeyResult] = field(default_factory=list)


@dataclass
class Department:
    """Departments have no configurable formula: they always average."""
    id: Any
    name: str
    owner: Optional[str] = None
    color: Optional[str] = None
    org_objective_id: Any = None
    functional_objectives: List[FunctionalObjective] = field(default_factory=list)


@dataclass(frozen=True)
class DepartmentChildren:
    departments: List[Department] = field(default_factory=list)


@dataclass(frozen=True)
class FunctionalObjectiveChildren:
    functional_objectives: List[FunctionalObjective] = field(default_factory=list)


OrgObjectiveChildren = Union[DepartmentChildren, FunctionalObjectiveChildren]


@dataclass
class OrgObjective:
    id: Any
    name: str
    classification: str = 'CORE'
    color: Optional[str] = None
    business_outcome: Optional[str] = None
    children: OrgObjectiveChildren = field(default_factory=DepartmentChildren)

    @property
    def departments(self) -> List[Department]:
        if isinstance(self.children, DepartmentChildren):
            return self.children.departments
        return []

    @property
    def functional_objectives(self) -> List[FunctionalObjective]:
        if isinstance(self.children, FunctionalObjectiveChildren):
            return self.children.functional_objectives
        return []


@dataclass(frozen=True)
class ScoreKey:
    """One cell of the customer × feature matrix, within a period."""
    indicator_id: Any
    customer_id: Any
    feature_id: Any


@dataclass(frozen=True)
class ScoreCell:
    key: ScoreKey
    period: str
    value: Optional[float]

    def to_row(self) -> Dict[str, Any]:
        return {
            'indicator_id': self.key.indicator_id,
            'customer_id': self.key.customer_id,
            'feature_id': self.key.feature_id,
            'period': self.period,
            'value': self.value,
        }


@dataclass
class RollupResult:
    """Progress (None when not-set) and RAG status of one node."""
    progress: Optional[float]
    status: str

    @property
    def is_set(self) -> bool:
        return self.progress is not None


__all__ = [
    'RAGBand',
    'default_bands',
    'Indicator',
    'KeyResult',
    'FunctionalObjective',
    'Department',
    'DepartmentChildren',
    'FunctionalObjectiveChildren',
    'OrgObjectiveChildren',
    'OrgObjective',
    'ScoreKey',
    'ScoreCell',
    'RollupResult',
]
