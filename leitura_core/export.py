"""Flat, human-labelled export records.

Column order and labels are declared once per report view; rows are never
projected from dict key order. Percentages are formatted here and only here.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Tuple

import pandas as pd

from leitura_core.config import month_rank
from leitura_core.filters import FilterSelection
from leitura_core.reports import (
    EVIDENCE_AUDIT,
    EVIDENCE_BY_TYPE,
    NOSB_IMPEDIMENTS,
    NOSB_SIMULATION,
    OVERVIEW,
    TECHNICIAN_CONTROL,
    ReportSpec,
)
from leitura_core.severity import TIER_LABELS, SeverityTier

TEXT = "text"
INT = "int"
PCT = "pct"
TIER = "tier"
PENDING = "pending"


@dataclass(frozen=True)
class ExportColumn:
    label: str
    field: str
    kind: str = TEXT


_NOSB_COLUMNS = (
    ExportColumn("MES", "month"),
    ExportColumn("ANO", "year"),
    ExportColumn("RAZÃO SOCIAL", "company"),
    ExportColumn("UL", "route_unit"),
    ExportColumn("INSTALAÇÃO", "installation"),
    ExportColumn("MEDIDOR", "meter"),
    ExportColumn("REG", "register"),
    ExportColumn("TIPO", "reading_type"),
    ExportColumn("MATRÍCULA", "technician"),
    ExportColumn("CÓDIGO", "impediment_code"),
    ExportColumn("LEITURA", "current_reading", INT),
    ExportColumn("MOTIVO NOSB", "motive"),
)

EXPORT_LAYOUTS: Dict[Tuple[str, str], Tuple[ExportColumn, ...]] = {
    (EVIDENCE_AUDIT, "detail"): (
        ExportColumn("MES", "month"),
        ExportColumn("ANO", "year"),
        ExportColumn("RAZÃO", "company"),
        ExportColumn("UL", "route_unit"),
        ExportColumn("SOLIC", "requested", INT),
        ExportColumn("REALIZ", "completed", INT),
        ExportColumn("N-REALIZ", "not_completed", INT),
        ExportColumn("MATR", "technician"),
        ExportColumn("COD", "impediment_code"),
        ExportColumn("INDICADOR (%)", "indicator_pct", PCT),
        ExportColumn("SEVERIDADE", "severity", TIER),
    ),
    (EVIDENCE_AUDIT, "company"): (
        ExportColumn("MES", "month"),
        ExportColumn("ANO", "year"),
        ExportColumn("RAZÃO", "company"),
        ExportColumn("SOLIC", "requested", INT),
        ExportColumn("REALIZ", "completed", INT),
        ExportColumn("N-REALIZ", "not_completed", INT),
        ExportColumn("INDICADOR (%)", "indicator_pct", PCT),
        ExportColumn("SEVERIDADE", "severity", TIER),
    ),
    (EVIDENCE_BY_TYPE, "detail"): (
        ExportColumn("Mês", "month"),
        ExportColumn("Ano", "year"),
        ExportColumn("Razão", "company"),
        ExportColumn("Matrícula", "technician"),
        ExportColumn("Solicitadas", "requested", INT),
        ExportColumn("Realizadas", "completed", INT),
        ExportColumn("Não Realizadas", "requested", PENDING),
        ExportColumn("Indicador (%)", "indicator_pct", PCT),
    ),
    (EVIDENCE_BY_TYPE, "company"): (
        ExportColumn("Mês", "month"),
        ExportColumn("Ano", "year"),
        ExportColumn("Razão", "company"),
        ExportColumn("Solicitadas", "requested", INT),
        ExportColumn("Realizadas", "completed", INT),
        ExportColumn("Não Realizadas", "requested", PENDING),
        ExportColumn("Indicador (%)", "indicator_pct", PCT),
    ),
    (TECHNICIAN_CONTROL, "detail"): (
        ExportColumn("Mês", "month"),
        ExportColumn("Ano", "year"),
        ExportColumn("Razão", "company"),
        ExportColumn("UL", "route_unit"),
        ExportColumn("Tipo", "reading_type"),
        ExportColumn("Geral", "to_execute", INT),
        ExportColumn("Executadas", "total_general", INT),
        ExportColumn("Impedimentos", "impediments", INT),
        ExportColumn("INFM", "infm_pct", PCT),
    ),
    (TECHNICIAN_CONTROL, "company"): (
        ExportColumn("Razão", "company"),
        ExportColumn("Impedimentos", "impediments", INT),
        ExportColumn("Indicador", "infm_pct", PCT),
    ),
    (NOSB_IMPEDIMENTS, "detail"): _NOSB_COLUMNS,
    (NOSB_SIMULATION, "detail"): _NOSB_COLUMNS,
    (OVERVIEW, "detail"): (
        ExportColumn("Tipo", "reading_type"),
        ExportColumn("Total", "total", INT),
        ExportColumn("Não Realizadas", "not_completed", INT),
        ExportColumn("Realizadas", "completed", INT),
        ExportColumn("% Impedimentos", "impediment_pct", PCT),
    ),
}


def format_decimal_br(value: object, decimals: int = 2) -> str:
    """Fixed-decimal mask with comma separator and dot thousands: 1234.5 -> '1.234,50'."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        number = 0.0
    if not math.isfinite(number):
        number = 0.0
    # half-up on the decimal text, so 2.675 -> 2,68 rather than binary rounding
    rounded = Decimal(str(number)).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    text = f"{rounded:,.{decimals}f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_pct_br(value: object, decimals: int = 2) -> str:
    return f"{format_decimal_br(value, decimals)}%"


def _format_cell(column: ExportColumn, row: Dict[str, Any]) -> Any:
    value = row.get(column.field)
    if column.kind == PCT:
        return format_pct_br(value)
    if column.kind == PENDING:
        requested = float(row.get("requested") or 0)
        completed = float(row.get("completed") or 0)
        return int(max(0, requested - completed))
    if column.kind == INT:
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return 0
    if column.kind == TIER:
        try:
            return TIER_LABELS[SeverityTier(value)]
        except ValueError:
            return TIER_LABELS[SeverityTier.NORMAL]
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "N/A"
    return str(value)


def export_layout(report_id: str, view: str = "detail") -> Tuple[ExportColumn, ...]:
    try:
        return EXPORT_LAYOUTS[(report_id, view)]
    except KeyError:
        raise ValueError(f"No export layout for {report_id}/{view}") from None


def export_headers(report_id: str, view: str = "detail") -> List[str]:
    return [c.label for c in export_layout(report_id, view)]


def project_export(report_id: str, frame: pd.DataFrame, view: str = "detail") -> List[Dict[str, Any]]:
    """One labelled record per row of the full (unpaginated) result frame."""
    columns = export_layout(report_id, view)
    if frame is None or frame.empty:
        return []
    records = frame.to_dict(orient="records")
    return [{c.label: _format_cell(c, row) for c in columns} for row in records]


def _slug(value: str) -> str:
    return re.sub(r"[^0-9A-Za-zÀ-ÿ]+", "-", value).strip("-") or "Todos"


def export_filename(report: ReportSpec, selection: FilterSelection, ext: str, view: str = "detail") -> str:
    year = selection.year or "Todos"
    months = sorted(selection.months, key=lambda m: (month_rank(m), m))
    month_part = "-".join(months) if months else "Todos"
    return f"{report.file_stem}_{view}_{_slug(month_part)}_{_slug(year)}.{ext.lstrip('.')}"
