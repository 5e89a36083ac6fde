# okr_dashboard/okr_performance/export.py
"""
Excel template / import for the customer × feature matrix

Workbook layout:
    Scores   row 1 (hidden): __IDS__ | <indicator id> | ...
             per customer:
                 <customer name>                      (merged header row)
                 Feature | <indicator name> | ...
                 <feature name> | 50 | — | 100 ...   (one row per feature)
                 <blank separator row>
    _Lookup  (hidden) CustomerName | CustomerId | FeatureName | FeatureId

Cells hold percentages (weight × 100). Blocked cells show "—".
"""

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Union

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .constants import (
    BLOCKED_CELL_MARKER,
    COLORS,
    EXCEL_STYLES,
    ID_ROW_MARKER,
    LOOKUP_SHEET_NAME,
    MATRIX_SHEET_NAME,
    RAG_STATUSES,
)
from .matrix_editor import ScoreSnapshot
from .models import RAGBand, ScoreKey, default_bands
from .rag import band_color_for_weight

logger = logging.getLogger(__name__)

LOOKUP_HEADERS = ['CustomerName', 'CustomerId', 'FeatureName', 'FeatureId']


class MatrixImportError(ValueError):
    """Uploaded workbook is not a matrix template."""


@dataclass
class ParsedMatrix:
    snapshot: ScoreSnapshot
    count: int


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class MatrixExcelExport:
    """
    Usage:
        exporter = MatrixExcelExport()
        output = exporter.generate_template(
            calc.customer_sections(), snapshot,
            customer_names, feature_names, indicator_names,
        )

        parsed = exporter.parse_workbook(uploaded_bytes, period='2026-03')
        working = working.with_values(parsed.snapshot.values)
    """

    def __init__(self):
        """Initialize with default styles."""
        self._init_styles()

    def _init_styles(self):
        """Initialize reusable styles."""
        self.customer_fill = PatternFill(
            start_color=EXCEL_STYLES['header_fill_color'],
            end_color=EXCEL_STYLES['header_fill_color'],
            fill_type='solid'
        )
        self.customer_font = Font(bold=True, size=12, color=EXCEL_STYLES['header_font_color'])

        self.column_header_fill = PatternFill(
            start_color=EXCEL_STYLES['column_header_fill_color'],
            end_color=EXCEL_STYLES['column_header_fill_color'],
            fill_type='solid'
        )
        self.column_header_font = Font(bold=True, size=10)

        self.blocked_font = Font(color=EXCEL_STYLES['blocked_font_color'])
        self.id_row_font = Font(size=8, color=EXCEL_STYLES['id_row_font_color'])

        # Scored cells are tinted with their band color
        self.rag_fills = {
            status: PatternFill(start_color=COLORS[status].lstrip('#').upper(),
                                end_color=COLORS[status].lstrip('#').upper(),
                                fill_type='solid')
            for status in RAG_STATUSES
        }

        self.center_align = Alignment(horizontal='center')
        self.customer_align = Alignment(vertical='center', horizontal='left', indent=1)

    # =========================================================================
    # TEMPLATE
    # =========================================================================

    def generate_template(
        self,
        sections: List[Dict],
        snapshot: ScoreSnapshot,
        customer_names: Dict[Any, str],
        feature_names: Dict[Any, str],
        indicator_names: Dict[Any, str],
        bands_by_indicator: Optional[Dict[Any, Sequence[RAGBand]]] = None
    ) -> BytesIO:
        """
        Build the template workbook.

        Args:
            sections: ScoreMatrixCalculator.customer_sections()
            snapshot: Current weights, pre-filled as percentages
            customer_names / feature_names / indicator_names: id → display name
            bands_by_indicator: indicator_id → custom bands for cell colors
                (default bands when an indicator has none)

        Returns:
            BytesIO with the .xlsx content
        """
        indicator_ids: List[Any] = []
        for section in sections:
            for ind_id in section['indicator_ids']:
                if ind_id not in indicator_ids:
                    indicator_ids.append(ind_id)
        total_cols = 1 + len(indicator_ids)
        bands_by_indicator = bands_by_indicator or {}

        wb = Workbook()
        ws = wb.active
        ws.title = MATRIX_SHEET_NAME

        ws.append([ID_ROW_MARKER] + indicator_ids)
        for cell in ws[1]:
            cell.font = self.id_row_font
        ws.row_dimensions[1].hidden = True

        for section in sections:
            customer_id = section['customer_id']
            indicator_features = section['indicator_features']

            ws.append([customer_names.get(customer_id, str(customer_id))])
            header_row = ws.max_row
            header_cell = ws.cell(row=header_row, column=1)
            header_cell.font = self.customer_font
            header_cell.fill = self.customer_fill
            header_cell.alignment = self.customer_align
            ws.row_dimensions[header_row].height = 28
            if total_cols > 1:
                ws.merge_cells(start_row=header_row, start_column=1,
                               end_row=header_row, end_column=total_cols)

            ws.append(['Feature'] + [indicator_names.get(i, str(i)) for i in indicator_ids])
            for cell in ws[ws.max_row]:
                cell.font = self.column_header_font
                cell.fill = self.column_header_fill

            for feature_id in section['feature_ids']:
                row_values = [feature_names.get(feature_id, str(feature_id))]
                blocked_cols = []
                scored_cols = {}
                for col_idx, ind_id in enumerate(indicator_ids, start=2):
                    if feature_id not in indicator_features.get(ind_id, set()):
                        row_values.append(BLOCKED_CELL_MARKER)
                        blocked_cols.append(col_idx)
                        continue
                    weight = snapshot.get(ScoreKey(ind_id, customer_id, feature_id))
                    if weight is None:
                        row_values.append(None)
                        continue
                    row_values.append(round(weight * 100, 2))
                    bands = bands_by_indicator.get(ind_id) or default_bands()
                    scored_cols[col_idx] = band_color_for_weight(weight, bands)

                ws.append(row_values)
                row_idx = ws.max_row
                for col_idx in range(2, total_cols + 1):
                    cell = ws.cell(row=row_idx, column=col_idx)
                    cell.alignment = self.center_align
                    if col_idx in blocked_cols:
                        cell.font = self.blocked_font
                    elif col_idx in scored_cols:
                        cell.fill = self.rag_fills[scored_cols[col_idx]]

            ws.append([])

        self._auto_width(ws)
        self._create_lookup_sheet(wb, sections, customer_names, feature_names)

        output = BytesIO()
        wb.save(output)
        output.seek(0)

        logger.info(
            f"Matrix template generated: {len(sections)} customers, "
            f"{len(indicator_ids)} indicators, period={snapshot.period}"
        )
        return output

    def _create_lookup_sheet(self, wb: Workbook, sections, customer_names, feature_names):
        ws = wb.create_sheet(LOOKUP_SHEET_NAME)
        ws.sheet_state = 'hidden'
        ws.append(LOOKUP_HEADERS)
        for section in sections:
            customer_id = section['customer_id']
            for feature_id in section['feature_ids']:
                ws.append([
                    customer_names.get(customer_id, str(customer_id)),
                    customer_id,
                    feature_names.get(feature_id, str(feature_id)),
                    feature_id,
                ])

    @staticmethod
    def _auto_width(ws):
        for col_idx, column in enumerate(ws.iter_cols(), start=1):
            max_len = 10
            for cell in column:
                if cell.value is not None:
                    max_len = max(max_len, len(str(cell.value)))
            ws.column_dimensions[get_column_letter(col_idx)].width = min(max_len + 4, 30)

    # =========================================================================
    # IMPORT
    # =========================================================================

    def parse_workbook(
        self,
        source: Union[bytes, BytesIO, str],
        period: str,
        sections: Optional[List[Dict]] = None,
        customer_names: Optional[Dict[Any, str]] = None,
        feature_names: Optional[Dict[Any, str]] = None,
        indicator_names: Optional[Dict[Any, str]] = None
    ) -> ParsedMatrix:
        """
        Read an uploaded template back into weights.

        Blank, "—" and non-numeric cells are skipped. Numbers are clamped
        to [0, 100] and divided by 100. Without a _Lookup sheet (or the
        hidden id row) the sections and name maps resolve names to ids.

        Raises:
            MatrixImportError: no Scores sheet
        """
        if isinstance(source, bytes):
            source = BytesIO(source)
        wb = load_workbook(source, data_only=True)

        if MATRIX_SHEET_NAME not in wb.sheetnames:
            raise MatrixImportError(f'Missing "{MATRIX_SHEET_NAME}" sheet in uploaded file')
        ws = wb[MATRIX_SHEET_NAME]

        customer_ids_by_name, feature_lookup = self._read_lookup(
            wb, sections, customer_names or {}, feature_names or {}
        )
        indicator_ids_by_name = {name: ind_id for ind_id, name in (indicator_names or {}).items()}

        rows = list(ws.iter_rows(values_only=True))
        if not rows:
            return ParsedMatrix(ScoreSnapshot(period, {}), 0)

        id_row = rows[0]
        indicator_ids = []
        if id_row and _clean(id_row[0]) == ID_ROW_MARKER:
            indicator_ids = [_clean(v) for v in id_row[1:]]
        has_ids = any(not _is_blank(i) for i in indicator_ids)

        values: Dict[ScoreKey, float] = {}
        customer_name = None

        for row in rows[1:]:
            if not row or _is_blank(row[0]):
                continue
            first = str(_clean(row[0]))
            rest = row[1:]

            if first in customer_ids_by_name and (not rest or _is_blank(rest[0])):
                customer_name = first
                continue

            if first.lower() == 'feature':
                if not has_ids:
                    indicator_ids = [
                        indicator_ids_by_name.get(_clean(v)) if not _is_blank(v) else None
                        for v in rest
                    ]
                continue

            if customer_name is None:
                continue
            feature_id = feature_lookup.get((customer_name, first))
            if feature_id is None:
                continue
            customer_id = customer_ids_by_name[customer_name]

            for ind_id, cell_value in zip(indicator_ids, rest):
                if _is_blank(ind_id) or _is_blank(cell_value):
                    continue
                number = self._to_number(cell_value)
                if number is None:
                    continue
                clamped = min(100.0, max(0.0, number))
                values[ScoreKey(ind_id, customer_id, feature_id)] = clamped / 100

        logger.info(f"Parsed {len(values)} scores from uploaded matrix ({period})")
        return ParsedMatrix(ScoreSnapshot(period, values), len(values))

    @staticmethod
    def _to_number(value: Any) -> Optional[float]:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return None if value != value else float(value)
        text_value = str(value).strip()
        if text_value == BLOCKED_CELL_MARKER:
            return None
        try:
            number = float(text_value)
        except ValueError:
            return None
        return None if number != number else number

    @staticmethod
    def _read_lookup(wb, sections, customer_names, feature_names):
        """(customer name → id, (customer name, feature name) → feature id)"""
        customer_ids_by_name: Dict[str, Any] = {}
        feature_lookup: Dict[tuple, Any] = {}

        if LOOKUP_SHEET_NAME in wb.sheetnames:
            for row in wb[LOOKUP_SHEET_NAME].iter_rows(min_row=2, values_only=True):
                if not row or len(row) < 4:
                    continue
                cust_name, cust_id, feat_name, feat_id = (_clean(v) for v in row[:4])
                if _is_blank(cust_id):
                    continue
                cust_name = str(cust_name or '')
                customer_ids_by_name[cust_name] = cust_id
                if not _is_blank(feat_id):
                    feature_lookup[(cust_name, str(feat_name or ''))] = feat_id
            return customer_ids_by_name, feature_lookup

        logger.warning(f"No {LOOKUP_SHEET_NAME} sheet, resolving names from current sections")
        for section in sections or []:
            cust_name = customer_names.get(section['customer_id'], str(section['customer_id']))
            customer_ids_by_name[cust_name] = section['customer_id']
            for feature_id in section['feature_ids']:
                feature_lookup[(cust_name, feature_names.get(feature_id, str(feature_id)))] = feature_id
        return customer_ids_by_name, feature_lookup


__all__ = [
    'MatrixExcelExport',
    'MatrixImportError',
    'ParsedMatrix',
]
