# okr_dashboard/okr_performance/impact.py
"""
Feature / Customer Impact Summaries

Answers "which OKRs does this feature (or customer) move?":
every indicator linked to the feature, or to any feature the customer
subscribes to, with its Org Objective → Department → FO → KR path, its
status and a green / amber / red / not-set count.

Indicator status comes from OKRMetrics.indicator_result(), so an impact
summary always agrees with the status table.

VERSION: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

import pandas as pd

from .constants import IMPACT_STATUS_SCORES, RAG_NOT_SET
from .metrics import OKRMetrics
from .models import FunctionalObjective, OrgObjective
from .rag import classify, count_statuses

logger = logging.getLogger(__name__)


@dataclass
class ImpactIndicator:
    """One linked indicator and where it sits in the hierarchy."""
    id: Any
    name: str
    tier: str
    current_value: Optional[float]
    target_value: Optional[float]
    status: str
    key_result_id: Any
    key_result_name: str
    functional_objective_id: Any
    functional_objective_name: str
    department_id: Any
    department_name: Optional[str]
    org_objective_id: Any
    org_objective_name: str
    org_objective_color: Optional[str] = None


def status_score_rollup(statuses: Iterable[str]) -> str:
    """
    Classify the average score of the measured statuses
    (green 100, amber 60, red 30). not-set entries are ignored.
    """
    scores = [IMPACT_STATUS_SCORES[s] for s in statuses if s in IMPACT_STATUS_SCORES]
    if not scores:
        return RAG_NOT_SET
    return classify(sum(scores) / len(scores))


@dataclass
class ImpactSummary:
    subject_id: Any
    indicators: List[ImpactIndicator] = field(default_factory=list)

    @property
    def status_breakdown(self) -> Dict[str, int]:
        return count_statuses(ind.status for ind in self.indicators)

    @property
    def status(self) -> str:
        return status_score_rollup(ind.status for ind in self.indicators)

    def _distinct(self, attr: str) -> int:
        return len({getattr(ind, attr) for ind in self.indicators if getattr(ind, attr) is not None})

    @property
    def total_indicators(self) -> int:
        return len(self.indicators)

    @property
    def total_key_results(self) -> int:
        return self._distinct('key_result_id')

    @property
    def total_functional_objectives(self) -> int:
        return self._distinct('functional_objective_id')

    @property
    def total_departments(self) -> int:
        return self._distinct('department_id')

    @property
    def total_org_objectives(self) -> int:
        return self._distinct('org_objective_id')

    def by_org_objective(self) -> Dict[Any, Dict]:
        """
        Nested grouping org → department → FO → KR → indicators.

        FOs that sit directly under an org objective are grouped under a
        department key of None. Each KR carries the status of its linked
        indicators only.
        """
        grouped: Dict[Any, Dict] = {}
        for ind in self.indicators:
            org = grouped.setdefault(ind.org_objective_id, {
                'id': ind.org_objective_id,
                'name': ind.org_objective_name,
                'color': ind.org_objective_color,
                'departments': {},
            })
            dept = org['departments'].setdefault(ind.department_id, {
                'id': ind.department_id,
                'name': ind.department_name,
                'functional_objectives': {},
            })
            fo = dept['functional_objectives'].setdefault(ind.functional_objective_id, {
                'id': ind.functional_objective_id,
                'name': ind.functional_objective_name,
                'key_results': {},
            })
            kr = fo['key_results'].setdefault(ind.key_result_id, {
                'id': ind.key_result_id,
                'name': ind.key_result_name,
                'status': RAG_NOT_SET,
                'indicators': [],
            })
            kr['indicators'].append(ind)

        for org in grouped.values():
            for dept in org['departments'].values():
                for fo in dept['functional_objectives'].values():
                    for kr in fo['key_results'].values():
                        kr['status'] = status_score_rollup(i.status for i in kr['indicators'])
        return grouped

    def to_frame(self) -> pd.DataFrame:
        columns = list(ImpactIndicator.__dataclass_fields__)
        if not self.indicators:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([ind.__dict__ for ind in self.indicators], columns=columns)


class ImpactReporter:
    """
    Usage:
        reporter = ImpactReporter(metrics)
        summary = reporter.feature_impact(feature_id)
        summary.status_breakdown   # {'green': 2, 'amber': 0, 'red': 1, 'not-set': 0}

        summary = reporter.customer_impact(customer_id, data['customer_features_df'])
    """

    def __init__(self, metrics: OKRMetrics):
        self.metrics = metrics
        self._rows = self._build_rows()

    def _build_rows(self) -> List[tuple]:
        """(indicator, ImpactIndicator) for every indicator in the snapshot."""
        rows = []

        def walk_fo(org: OrgObjective, dept, fo: FunctionalObjective):
            for kr in fo.key_results:
                for ind in kr.indicators:
                    rows.append((ind, ImpactIndicator(
                        id=ind.id,
                        name=ind.name,
                        tier=ind.tier,
                        current_value=ind.current_value,
                        target_value=ind.target_value,
                        status=self.metrics.indicator_result(ind).status,
                        key_result_id=kr.id,
                        key_result_name=kr.name,
                        functional_objective_id=fo.id,
                        functional_objective_name=fo.name,
                        department_id=dept.id if dept else None,
                        department_name=dept.name if dept else None,
                        org_objective_id=org.id,
                        org_objective_name=org.name,
                        org_objective_color=org.color,
                    )))

        for org in self.metrics.org_objectives:
            for dept in org.departments:
                for fo in dept.functional_objectives:
                    walk_fo(org, dept, fo)
            for fo in org.functional_objectives:
                walk_fo(org, None, fo)
        return rows

    def _summary(self, subject_id: Any, feature_ids: Set[Any]) -> ImpactSummary:
        linked = [
            impact for ind, impact in self._rows
            if feature_ids.intersection(ind.linked_feature_ids)
        ]
        return ImpactSummary(subject_id=subject_id, indicators=linked)

    def feature_impact(self, feature_id: Any) -> ImpactSummary:
        summary = self._summary(feature_id, {feature_id})
        logger.debug(f"[impact] feature {feature_id}: {summary.total_indicators} indicators")
        return summary

    def customer_impact(self, customer_id: Any, customer_features_df: pd.DataFrame) -> ImpactSummary:
        """Indicators linked to any feature the customer subscribes to."""
        feature_ids = self._customer_features(customer_features_df).get(customer_id, set())
        summary = self._summary(customer_id, feature_ids)
        logger.debug(f"[impact] customer {customer_id}: {summary.total_indicators} indicators")
        return summary

    def customer_overview(self, customer_features_df: pd.DataFrame) -> pd.DataFrame:
        """
        One row per subscribing customer.

        Returns DataFrame with columns:
        - customer_id
        - linked_indicator_count
        - status (score rollup of the linked indicators)
        """
        columns = ['customer_id', 'linked_indicator_count', 'status']
        rows = []
        for customer_id, feature_ids in self._customer_features(customer_features_df).items():
            summary = self._summary(customer_id, feature_ids)
            rows.append({
                'customer_id': customer_id,
                'linked_indicator_count': summary.total_indicators,
                'status': summary.status,
            })
        if not rows:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame(rows, columns=columns).sort_values('customer_id').reset_index(drop=True)

    def feature_link_counts(self) -> Dict[Any, int]:
        """feature_id → number of linked indicators."""
        counts: Dict[Any, int] = {}
        for ind, _ in self._rows:
            for feature_id in set(ind.linked_feature_ids):
                counts[feature_id] = counts.get(feature_id, 0) + 1
        return counts

    @staticmethod
    def _customer_features(customer_features_df: pd.DataFrame) -> Dict[Any, Set[Any]]:
        if customer_features_df is None or customer_features_df.empty:
            return {}
        result: Dict[Any, Set[Any]] = {}
        for row in customer_features_df[['customer_id', 'feature_id']].itertuples(index=False):
            result.setdefault(row.customer_id, set()).add(row.feature_id)
        return result


__all__ = [
    'ImpactIndicator',
    'ImpactSummary',
    'ImpactReporter',
    'status_score_rollup',
]
