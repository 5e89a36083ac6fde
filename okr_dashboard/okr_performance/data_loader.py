# okr_dashboard/okr_performance/data_loader.py
"""
Unified Data Loader for OKR Performance

VERSION: 1.1.0

CHANGELOG:
- v1.1.0: Matrix tables (scores, links, subscriptions, bands) loaded with
          the hierarchy; customers/features name lookups for the Excel template
- v1.0.0: Initial unified data loading

Load ONCE, compute MANY times:
1. All tables are read in one go into DataFrames
2. Cached on the loader instance until CACHE_TTL_SECONDS expires
3. build_hierarchy() turns the frames into the in-memory tree. This is the
   only place formula strings are parsed.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy import text

from ..config import config
from .constants import CLASSIFICATIONS
from .formulas import parse_formula_type
from .models import (
    RAGBand,
    Indicator,
    KeyResult,
    FunctionalObjective,
    Department,
    DepartmentChildren,
    FunctionalObjectiveChildren,
    OrgObjective,
)

logger = logging.getLogger(__name__)


# =============================================================================
# QUERIES
# =============================================================================

TABLE_QUERIES = {
    'org_objectives_df': """
        SELECT id, name, classification, color, business_outcome
        FROM org_objectives
        ORDER BY id
    """,
    'departments_df': """
        SELECT id, name, owner, color, org_objective_id
        FROM departments
        ORDER BY id
    """,
    'functional_objectives_df': """
        SELECT id, name, owner, formula, department_id, org_objective_id
        FROM functional_objectives
        ORDER BY id
    """,
    'key_results_df': """
        SELECT id, name, owner, current_value, target_value, unit, formula,
               functional_objective_id
        FROM key_results
        ORDER BY id
    """,
    'indicators_df': """
        SELECT id, name, tier, frequency, current_value, target_value, unit,
               formula, key_result_id
        FROM indicators
        ORDER BY id
    """,
    'rag_bands_df': """
        SELECT indicator_id, band_label, rag_color, rag_numeric, sort_order
        FROM kpi_rag_bands
        ORDER BY indicator_id, sort_order
    """,
    'indicator_feature_links_df': """
        SELECT indicator_id, feature_id
        FROM indicator_feature_links
    """,
    'customer_features_df': """
        SELECT customer_id, feature_id
        FROM customer_features
    """,
    'customers_df': """
        SELECT id, name
        FROM customers
        ORDER BY name
    """,
    'features_df': """
        SELECT id, name
        FROM features
        ORDER BY name
    """,
}

SCORES_QUERY = """
    SELECT indicator_id, customer_id, feature_id, period, value
    FROM customer_feature_scores
"""

SCORE_PERIODS_QUERY = """
    SELECT DISTINCT period
    FROM customer_feature_scores
"""


class OKRDataLoader:
    """
    Load and cache all raw data needed for the OKR views.

    Usage:
        loader = OKRDataLoader()
        data = loader.get_unified_data()
        org_objectives = build_hierarchy(data)
        scores_df = loader.load_scores(period='2026-03')
    """

    def __init__(self, engine=None):
        """
        Args:
            engine: SQLAlchemy engine. Defaults to the shared singleton,
                    created on first use.
        """
        self._engine = engine
        self._cache: Optional[Dict] = None

    @property
    def engine(self):
        """Lazy load database engine."""
        if self._engine is None:
            from ..db import get_db_engine
            self._engine = get_db_engine()
        return self._engine

    # =========================================================================
    # MAIN ENTRY POINT
    # =========================================================================

    def get_unified_data(self, force_reload: bool = False) -> Dict:
        """
        Get all hierarchy and matrix tables (cached or fresh).

        Returns:
            Dict of DataFrames keyed as in TABLE_QUERIES, plus '_loaded_at'
        """
        if not force_reload and not self._needs_reload():
            logger.debug("♻️ Using cached OKR data")
            return self._cache

        return self._load_all_raw_data()

    def _needs_reload(self) -> bool:
        if self._cache is None:
            return True

        loaded_at = self._cache.get('_loaded_at')
        ttl = config.get_app_setting('CACHE_TTL_SECONDS', 300)
        if loaded_at:
            elapsed = (datetime.now() - loaded_at).total_seconds()
            if elapsed > ttl:
                logger.info(f"Cache expired: {elapsed:.0f}s > {ttl}s TTL")
                return True
        return False

    def clear_cache(self):
        self._cache = None

    def _load_all_raw_data(self) -> Dict:
        data = {}
        total_start = time.perf_counter()

        for key, query in TABLE_QUERIES.items():
            data[key] = self._execute_query(query, {}, key)

        data['_loaded_at'] = datetime.now()
        self._cache = data

        total_elapsed = time.perf_counter() - total_start
        logger.info(
            f"OKR data loaded in {total_elapsed:.3f}s: "
            f"org_objectives={len(data['org_objectives_df'])}, "
            f"departments={len(data['departments_df'])}, "
            f"functional_objectives={len(data['functional_objectives_df'])}, "
            f"key_results={len(data['key_results_df'])}, "
            f"indicators={len(data['indicators_df'])}"
        )
        return data

    # =========================================================================
    # SCORES
    # =========================================================================

    def load_scores(
        self,
        period: str = None,
        indicator_ids: List[Any] = None
    ) -> pd.DataFrame:
        """
        customer_feature_scores rows, optionally for one period and/or a set
        of indicators.
        """
        query = SCORES_QUERY
        conditions = []
        params = {}

        if period:
            conditions.append("period = :period")
            params['period'] = period

        if indicator_ids:
            placeholders = ', '.join(f":ind_{i}" for i in range(len(indicator_ids)))
            conditions.append(f"indicator_id IN ({placeholders})")
            params.update({f"ind_{i}": ind_id for i, ind_id in enumerate(indicator_ids)})

        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        return self._execute_query(query, params, 'scores')

    def load_score_periods(self) -> List[str]:
        df = self._execute_query(SCORE_PERIODS_QUERY, {}, 'score_periods')
        if df.empty:
            return []
        return df['period'].dropna().astype(str).tolist()

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _execute_query(
        self,
        query: str,
        params: dict,
        query_name: str = "query"
    ) -> pd.DataFrame:
        """Execute SQL query and return DataFrame."""
        try:
            logger.debug(f"Executing {query_name}")
            df = pd.read_sql(text(query), self.engine, params=params)
            logger.debug(f"{query_name} returned {len(df)} rows")
            return df
        except Exception as e:
            logger.error(f"Error executing {query_name}: {e}")
            return pd.DataFrame()


# =============================================================================
# TREE ASSEMBLY
# =============================================================================

def _value(row: Dict, column: str) -> Any:
    value = row.get(column)
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _number(row: Dict, column: str) -> Optional[float]:
    value = _value(row, column)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric {column}={value!r} treated as missing")
        return None


def _records(df: Optional[pd.DataFrame]) -> List[Dict]:
    if df is None or df.empty:
        return []
    return df.to_dict('records')


def _group(records: List[Dict], column: str) -> Dict[Any, List[Dict]]:
    grouped: Dict[Any, List[Dict]] = {}
    for record in records:
        parent = _value(record, column)
        if parent is None:
            continue
        grouped.setdefault(parent, []).append(record)
    return grouped


def normalize_classification(value: Optional[str]) -> str:
    """CORE stays CORE; anything else (SUPPORT, Enabler, blank) is SUPPORT."""
    normalized = str(value or '').strip().upper()
    if normalized in CLASSIFICATIONS:
        return normalized
    return 'SUPPORT'


def build_bands(rag_bands_df: Optional[pd.DataFrame]) -> Dict[Any, List[RAGBand]]:
    """indicator_id → bands ordered by sort_order."""
    bands: Dict[Any, List[RAGBand]] = {}
    for record in _records(rag_bands_df):
        try:
            band = RAGBand.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed band for indicator {record.get('indicator_id')}: {e}")
            continue
        bands.setdefault(record['indicator_id'], []).append(band)
    for indicator_bands in bands.values():
        indicator_bands.sort(key=lambda b: b.sort_order)
    return bands


def build_hierarchy(data: Dict[str, pd.DataFrame]) -> List[OrgObjective]:
    """
    Assemble OrgObjective trees from the frames of get_unified_data().

    An org objective gets DepartmentChildren when any department points at
    it, otherwise FunctionalObjectiveChildren from functional objectives
    attached to it directly.
    """
    bands = build_bands(data.get('rag_bands_df'))

    links = data.get('indicator_feature_links_df')
    features_by_indicator: Dict[Any, List[Any]] = {}
    for record in _records(links):
        features_by_indicator.setdefault(record['indicator_id'], []).append(record['feature_id'])

    indicators_by_kr = _group(_records(data.get('indicators_df')), 'key_result_id')
    krs_by_fo = _group(_records(data.get('key_results_df')), 'functional_objective_id')
    fo_records = _records(data.get('functional_objectives_df'))
    fos_by_dept = _group(fo_records, 'department_id')
    fos_by_org = _group(
        [r for r in fo_records if _value(r, 'department_id') is None],
        'org_objective_id'
    )
    depts_by_org = _group(_records(data.get('departments_df')), 'org_objective_id')

    def make_indicator(r: Dict) -> Indicator:
        return Indicator(
            id=r['id'],
            name=r['name'],
            current_value=_number(r, 'current_value'),
            target_value=_number(r, 'target_value'),
            unit=_value(r, 'unit'),
            tier=_value(r, 'tier') or 'tier1',
            frequency=_value(r, 'frequency') or 'Monthly',
            formula_text=_value(r, 'formula'),
            key_result_id=_value(r, 'key_result_id'),
            bands=bands.get(r['id'], []),
            linked_feature_ids=features_by_indicator.get(r['id'], []),
        )

    def make_key_result(r: Dict) -> KeyResult:
        return KeyResult(
            id=r['id'],
            name=r['name'],
            owner=_value(r, 'owner'),
            current_value=_number(r, 'current_value'),
            target_value=_number(r, 'target_value'),
            unit=_value(r, 'unit'),
            formula_type=parse_formula_type(_value(r, 'formula')),
            formula_text=_value(r, 'formula'),
            functional_objective_id=_value(r, 'functional_objective_id'),
            indicators=[make_indicator(i) for i in indicators_by_kr.get(r['id'], [])],
        )

    def make_fo(r: Dict) -> FunctionalObjective:
        return FunctionalObjective(
            id=r['id'],
            name=r['name'],
            owner=_value(r, 'owner'),
            formula_type=parse_formula_type(_value(r, 'formula')),
            formula_text=_value(r, 'formula'),
            department_id=_value(r, 'department_id'),
            key_results=[make_key_result(k) for k in krs_by_fo.get(r['id'], [])],
        )

    def make_department(r: Dict) -> Department:
        return Department(
            id=r['id'],
            name=r['name'],
            owner=_value(r, 'owner'),
            color=_value(r, 'color'),
            org_objective_id=_value(r, 'org_objective_id'),
            functional_objectives=[make_fo(f) for f in fos_by_dept.get(r['id'], [])],
        )

    org_objectives = []
    for r in _records(data.get('org_objectives_df')):
        departments = depts_by_org.get(r['id'], [])
        if departments:
            children = DepartmentChildren([make_department(d) for d in departments])
        else:
            children = FunctionalObjectiveChildren([make_fo(f) for f in fos_by_org.get(r['id'], [])])

        org_objectives.append(OrgObjective(
            id=r['id'],
            name=r['name'],
            classification=normalize_classification(_value(r, 'classification')),
            color=_value(r, 'color'),
            business_outcome=_value(r, 'business_outcome'),
            children=children,
        ))

    logger.info(f"Built hierarchy with {len(org_objectives)} org objectives")
    return org_objectives


def indicator_bands(org_objectives: List[OrgObjective]) -> Dict[Any, List[RAGBand]]:
    """indicator_id → custom bands, for every indicator in the tree."""
    result = {}
    for org in org_objectives:
        fos = list(org.functional_objectives)
        for dept in org.departments:
            fos.extend(dept.functional_objectives)
        for fo in fos:
            for kr in fo.key_results:
                for ind in kr.indicators:
                    result[ind.id] = ind.bands
    return result


__all__ = [
    'OKRDataLoader',
    'build_hierarchy',
    'build_bands',
    'normalize_classification',
    'indicator_bands',
]
