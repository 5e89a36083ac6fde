# okr_dashboard/okr_performance/constants.py
"""
Constants for OKR Performance Module

VERSION: 1.2.0
CHANGELOG:
- v1.2.0: Added period patterns and matrix save settings
- v1.1.0: Added DEFAULT_RAG_BANDS for indicators without custom bands
"""

# =====================================================================
# RAG STATUS
# =====================================================================

RAG_GREEN = 'green'
RAG_AMBER = 'amber'
RAG_RED = 'red'
RAG_NOT_SET = 'not-set'

RAG_STATUSES = [RAG_GREEN, RAG_AMBER, RAG_RED, RAG_NOT_SET]

# 76-100+ = Green, 51-75 = Amber, >0-50 = Red, exactly 0 = Not Set
RAG_THRESHOLDS = {
    "green": 76,
    "amber": 51,
}

# Worst to best, used for monotonic comparisons
RAG_ORDER = {
    RAG_NOT_SET: 0,
    RAG_RED: 1,
    RAG_AMBER: 2,
    RAG_GREEN: 3,
}

RAG_LABELS = {
    RAG_GREEN: 'On Track',
    RAG_AMBER: 'At Risk',
    RAG_RED: 'Critical',
    RAG_NOT_SET: 'Not Set',
}

# =====================================================================
# COLOR SCHEME
# =====================================================================

COLORS = {
    RAG_GREEN: "#28a745",
    RAG_AMBER: "#ffc107",
    RAG_RED: "#dc3545",
    RAG_NOT_SET: "#d3d3d3",

    # Org objective identity colors (separate from RAG)
    "org_green": "#2ca02c",
    "org_purple": "#800080",
    "org_blue": "#1f77b4",
    "org_yellow": "#bcbd22",
    "org_orange": "#FFA500",
    "org_teal": "#17becf",
}

# =====================================================================
# MATRIX BANDS
# =====================================================================

# Fallback bands when an indicator has no kpi_rag_bands rows
DEFAULT_RAG_BANDS = [
    {"band_label": "Green", "rag_color": RAG_GREEN, "rag_numeric": 1.0, "sort_order": 1},
    {"band_label": "Amber", "rag_color": RAG_AMBER, "rag_numeric": 0.5, "sort_order": 2},
    {"band_label": "Red", "rag_color": RAG_RED, "rag_numeric": 0.0, "sort_order": 3},
]

MATRIX_TARGET_VALUE = 100
MATRIX_UNIT = '%'
MATRIX_HISTORY_NOTE = 'Updated via Customer x Feature Matrix (vector weights)'
MATRIX_SOURCE = 'customer_feature_matrix'

# =====================================================================
# HIERARCHY
# =====================================================================

ENTITY_KPI = 'KPI'
ENTITY_KR = 'KR'
ENTITY_FO = 'FO'
ENTITY_DEPARTMENT = 'Department'
ENTITY_ORG_OBJECTIVE = 'OrgObjective'
ENTITY_BUSINESS_OUTCOME = 'BusinessOutcome'

ENTITY_TYPES = [
    ENTITY_KPI,
    ENTITY_KR,
    ENTITY_FO,
    ENTITY_DEPARTMENT,
    ENTITY_ORG_OBJECTIVE,
    ENTITY_BUSINESS_OUTCOME,
]

CLASSIFICATIONS = ['CORE', 'SUPPORT']

KPI_FORMULA_TEXT = '(current / target) × 100'
DEFAULT_FORMULA_TEXT = 'AVG (default)'
DEPARTMENT_FORMULA_TEXT = 'AVG (default)'
ORG_OBJECTIVE_FORMULA_TEXT = 'AVG (simple average of children)'
BUSINESS_OUTCOME_FORMULA_TEXT = 'AVG (simple average of org objectives)'

# Impact summaries score linked statuses, then classify the average
IMPACT_STATUS_SCORES = {
    RAG_GREEN: 100,
    RAG_AMBER: 60,
    RAG_RED: 30,
}

# =====================================================================
# PERIODS
# =====================================================================

PERIOD_MONTHLY = 'monthly'
PERIOD_WEEKLY = 'weekly'

PERIOD_PATTERNS = {
    PERIOD_MONTHLY: r'^\d{4}-\d{2}$',
    PERIOD_WEEKLY: r'^\d{4}-W\d{2}$',
}

# =====================================================================
# SAVE SETTINGS
# =====================================================================

SCORE_UPSERT_CHUNK_SIZE = 500

# =====================================================================
# EXPORT SETTINGS
# =====================================================================

MATRIX_SHEET_NAME = 'Scores'
LOOKUP_SHEET_NAME = '_Lookup'
ID_ROW_MARKER = '__IDS__'
BLOCKED_CELL_MARKER = '—'

EXCEL_STYLES = {
    "header_fill_color": "3B82F6",
    "header_font_color": "FFFFFF",
    "column_header_fill_color": "E2E8F0",
    "blocked_font_color": "AAAAAA",
    "id_row_font_color": "999999",
}
