# okr_dashboard/okr_performance/__init__.py
"""
OKR Performance Module

Hierarchical OKR rollup and RAG classification:
    Org Objective → Department → Functional Objective → Key Result → Indicator
plus the customer × feature scoring matrix that feeds indicator values.

VERSION: 1.4.0
CHANGELOG:
- v1.4.0: Feature / customer impact summaries (impact.py)
          Indicator rag_status after a matrix save uses the fixed thresholds;
          custom bands only tint template cells
- v1.3.0: Excel template/import for the scoring matrix (export.py)
          No-update check-in and skip-reason logging in MatrixSaveService
- v1.2.0: Matrix edits as immutable ScoreSnapshots; save = explicit diff
          (upserts vs deletes), cleared cells are deleted, never zeroed
- v1.1.0: Business Outcome rollup, BreakdownReporter shares the rollup path
- v1.0.0: Initial formulas, RAG thresholds, hierarchy rollup

Components:
- FormulaType / aggregate: per-node formula aggregation
- classify*: RAG classification (fixed thresholds or custom bands)
- OKRMetrics: hierarchy rollup
- BreakdownReporter: "how was this status calculated"
- ImpactReporter: which OKRs a feature or customer moves
- ScoreMatrixCalculator: customer × feature aggregation (pandas)
- ScoreSnapshot + edit helpers: matrix edit session
- OKRDataLoader / build_hierarchy: store → in-memory tree
- ScoreQueries / MatrixSaveService: persisting a matrix save
- MatrixExcelExport: matrix template download / upload

Usage:
    from okr_dashboard.okr_performance import OKRDataLoader, build_hierarchy, OKRMetrics

    loader = OKRDataLoader()
    data = loader.get_unified_data()
    metrics = OKRMetrics(build_hierarchy(data))
    status_df = metrics.status_frame()
"""

# Formulas & RAG
from .formulas import FormulaType, parse_formula_type, aggregate
from .rag import (
    classify,
    classify_values,
    classify_weight,
    band_color_for_weight,
    progress_from_values,
    rag_label,
    status_rank,
    count_statuses,
)

# Models
from .models import (
    RAGBand,
    default_bands,
    Indicator,
    KeyResult,
    FunctionalObjective,
    Department,
    DepartmentChildren,
    FunctionalObjectiveChildren,
    OrgObjective,
    ScoreKey,
    ScoreCell,
    RollupResult,
)

# Rollup
from .metrics import OKRMetrics, ChildValue, RollupInputs, clamp_for_display
from .breakdown import BreakdownReporter, CalculationBreakdown
from .impact import ImpactReporter, ImpactSummary, ImpactIndicator, status_score_rollup

# Periods
from .periods import period_mode, is_valid_period, filter_periods, current_period

# Matrix
from .matrix_calculator import ScoreMatrixCalculator
from .matrix_editor import (
    ScoreSnapshot,
    ScoreChanges,
    InvalidScoreError,
    compute_score_changes,
    has_unsaved_changes,
    set_score,
    clear_score,
    apply_band_to_row,
    apply_band_to_column,
    clear_row,
    clear_column,
    validate_weight,
    invalid_cells,
)

# Data access
from .data_loader import OKRDataLoader, build_hierarchy, indicator_bands
from .queries import ScoreQueries
from .matrix_service import MatrixSaveService, MatrixSaveError, ScoreUpsertError, SaveResult

# Export
from .export import MatrixExcelExport, MatrixImportError, ParsedMatrix

__all__ = [
    # Formulas & RAG
    'FormulaType',
    'parse_formula_type',
    'aggregate',
    'classify',
    'classify_values',
    'classify_weight',
    'band_color_for_weight',
    'progress_from_values',
    'rag_label',
    'status_rank',
    'count_statuses',

    # Models
    'RAGBand',
    'default_bands',
    'Indicator',
    'KeyResult',
    'FunctionalObjective',
    'Department',
    'DepartmentChildren',
    'FunctionalObjectiveChildren',
    'OrgObjective',
    'ScoreKey',
    'ScoreCell',
    'RollupResult',

    # Rollup
    'OKRMetrics',
    'ChildValue',
    'RollupInputs',
    'clamp_for_display',
    'BreakdownReporter',
    'CalculationBreakdown',
    'ImpactReporter',
    'ImpactSummary',
    'ImpactIndicator',
    'status_score_rollup',

    # Periods
    'period_mode',
    'is_valid_period',
    'filter_periods',
    'current_period',

    # Matrix
    'ScoreMatrixCalculator',
    'ScoreSnapshot',
    'ScoreChanges',
    'InvalidScoreError',
    'compute_score_changes',
    'has_unsaved_changes',
    'set_score',
    'clear_score',
    'apply_band_to_row',
    'apply_band_to_column',
    'clear_row',
    'clear_column',
    'validate_weight',
    'invalid_cells',

    # Data access
    'OKRDataLoader',
    'build_hierarchy',
    'indicator_bands',
    'ScoreQueries',
    'MatrixSaveService',
    'MatrixSaveError',
    'ScoreUpsertError',
    'SaveResult',

    # Export
    'MatrixExcelExport',
    'MatrixImportError',
    'ParsedMatrix',
]
