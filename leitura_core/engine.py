"""Report dispatch: rows in, views / payload / export records out."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd

from leitura_core.config import Settings
from leitura_core.data import prepare_context
from leitura_core.export import EXPORT_LAYOUTS, project_export
from leitura_core.filters import FilterSelection
from leitura_core.metrics_evidence import (
    build_evidence_type_views,
    build_evidence_views,
    compute_evidence,
    compute_evidence_type,
)
from leitura_core.metrics_nosb import build_nosb_views, compute_nosb
from leitura_core.metrics_overview import build_overview_views, compute_overview
from leitura_core.metrics_technician import build_technician_views, compute_technician
from leitura_core.reports import ReportSpec

ViewBuilder = Callable[[Dict[str, Any]], Dict[str, pd.DataFrame]]

VIEW_BUILDERS: Dict[str, ViewBuilder] = {
    "evidence": build_evidence_views,
    "evidence_type": build_evidence_type_views,
    "technician": build_technician_views,
    "nosb": build_nosb_views,
    "overview": build_overview_views,
}

COMPUTERS: Dict[str, Callable[..., Dict[str, Any]]] = {
    "evidence": compute_evidence,
    "evidence_type": compute_evidence_type,
    "technician": compute_technician,
    "nosb": compute_nosb,
    "overview": compute_overview,
}


def report_views(report: ReportSpec) -> List[str]:
    """Views a report can show and export, detail first."""
    views = [view for (rid, view) in EXPORT_LAYOUTS if rid == report.id]
    return sorted(views, key=lambda v: (v != "detail", v))


def check_view(report: ReportSpec, view: str) -> str:
    if view not in report_views(report):
        raise ValueError(f"View '{view}' is not available for {report.id}")
    return view


def build_context(
    report: ReportSpec,
    selection: FilterSelection,
    rows: Optional[Iterable[Any]],
    settings: Settings,
    *,
    motive: Optional[str] = None,
) -> Dict[str, Any]:
    ctx = prepare_context(report, selection, rows, settings)
    ctx["motive"] = motive
    ctx["views"] = VIEW_BUILDERS[report.kind](ctx)
    return ctx


def compute_payload(ctx: Dict[str, Any], *, page: int = 1, page_size: int = 25, view: str = "detail") -> Dict[str, Any]:
    report: ReportSpec = ctx["report"]
    check_view(report, view)
    payload = COMPUTERS[report.kind](ctx["selection"], ctx, page=page, page_size=page_size, view=view)
    payload["views"] = report_views(report)
    return payload


def export_records(ctx: Dict[str, Any], view: str = "detail") -> List[Dict[str, Any]]:
    """Every row of the filtered result, ignoring pagination."""
    report: ReportSpec = ctx["report"]
    check_view(report, view)
    return project_export(report.id, ctx["views"][view], view)
