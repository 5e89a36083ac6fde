# okr_dashboard/okr_performance/formulas.py
"""
Formula Aggregator

Combines child progress percentages into one parent percentage according to
a node's declared formula.

Formula strings are free text in the store (e.g. "WEIGHTED_AVG of KPI
targets"). They are parsed ONCE when the hierarchy is loaded
(see data_loader.build_hierarchy); aggregation works on the enum only.
"""

import logging
import math
from enum import Enum
from typing import Optional, Sequence, Union

logger = logging.getLogger(__name__)


class FormulaType(Enum):
    """How child progress values are combined into the parent's progress."""

    AVG = "AVG"  # Arithmetic mean (default)
    SUM = "SUM"  # Additive quantities
    WEIGHTED_AVG = "WEIGHTED_AVG"  # Weighted by each child's target_value
    MIN = "MIN"  # Weakest link
    MAX = "MAX"  # Best case


# Checked in order: WEIGHTED_AVG must win over the AVG inside it,
# and "MIN"/"MAX" are only looked at after SUM.
_KEYWORDS = [
    (("WEIGHTED_AVG", "WEIGHTED AVG"), FormulaType.WEIGHTED_AVG),
    (("SUM",), FormulaType.SUM),
    (("MIN",), FormulaType.MIN),
    (("MAX",), FormulaType.MAX),
]


def parse_formula_type(formula: Union[str, FormulaType, None]) -> FormulaType:
    """
    Extract a FormulaType from a stored formula string.

    Case-insensitive keyword match. Never raises: anything unrecognised,
    None or empty falls back to AVG. Passing a FormulaType returns it as is,
    so parsing is idempotent.
    """
    if isinstance(formula, FormulaType):
        return formula
    if not formula or not isinstance(formula, str):
        return FormulaType.AVG

    normalized = formula.upper().strip()

    for keywords, formula_type in _KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return formula_type

    return FormulaType.AVG


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _is_usable_weight(weight: Optional[float]) -> bool:
    if weight is None:
        return False
    try:
        return not math.isnan(weight)
    except TypeError:
        return False


def aggregate(
    values: Sequence[float],
    formula_type: FormulaType = FormulaType.AVG,
    weights: Optional[Sequence[Optional[float]]] = None,
) -> float:
    """
    Aggregate child progress percentages.

    Args:
        values: Child progress percentages. Callers exclude missing values
                and never pass an empty list (they resolve to not-set instead).
        formula_type: Aggregation rule
        weights: Per-child weights for WEIGHTED_AVG (the children's target
                 values). Missing weights count as 0; if every weight is
                 zero/missing, or the weights don't line up with values,
                 falls back to AVG.

    Returns:
        Aggregated progress percentage

    Raises:
        ValueError: values is empty
    """
    if not values:
        raise ValueError("aggregate() requires at least one value; guard empty child lists first")

    formula_type = parse_formula_type(formula_type)

    if formula_type == FormulaType.SUM:
        return sum(values)

    if formula_type == FormulaType.MIN:
        return min(values)

    if formula_type == FormulaType.MAX:
        return max(values)

    if formula_type == FormulaType.WEIGHTED_AVG:
        if weights is None or len(weights) != len(values):
            logger.debug("WEIGHTED_AVG without aligned weights, using AVG")
            return _mean(values)

        clean_weights = [w if _is_usable_weight(w) else 0.0 for w in weights]
        total_weight = sum(clean_weights)
        if total_weight == 0:
            return _mean(values)

        return sum(v * w for v, w in zip(values, clean_weights)) / total_weight

    return _mean(values)


__all__ = [
    'FormulaType',
    'parse_formula_type',
    'aggregate',
]
