from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from leitura_core.config import Settings, month_rank
from leitura_core.filters import FilterSelection
from leitura_core.indicators import (
    aggregate_totals,
    attach_indicator,
    group_indicators,
    rank_rows,
)
from leitura_core.pager import paginate
from leitura_core.severity import classify_frame

DETAIL_COLUMNS = [
    "month",
    "year",
    "company",
    "route_unit",
    "reading_type",
    "technician",
    "impediment_code",
    "requested",
    "completed",
    "not_completed",
    "indicator_pct",
    "severity",
]
TIEBREAK = ("company", "technician", "route_unit", "month")
CHART_DIMENSIONS = ("month", "year", "technician")
TOP_N = 15


def _company_view(detail: pd.DataFrame, ctx: Dict[str, Any], *, ascending: bool) -> pd.DataFrame:
    settings: Settings = ctx["settings"]
    policy = ctx["report"].severity
    grouped = group_indicators(detail, ["company"])
    if grouped.empty:
        grouped["month"] = pd.Series(dtype=object)
        grouped["year"] = pd.Series(dtype=object)
        return classify_frame(grouped, settings.thresholds, policy=policy)
    first = detail.groupby("company", sort=True)[["month", "year"]].first().reset_index()
    grouped = grouped.merge(first, on="company", how="left")
    grouped = classify_frame(grouped, settings.thresholds, policy=policy)
    if ascending:
        return grouped.sort_values("company", kind="mergesort").reset_index(drop=True)
    return rank_rows(grouped, "indicator_pct", ascending=False, tiebreak=("company",))


def _mean_indicator_series(detail: pd.DataFrame, dimension: str) -> List[Dict[str, Any]]:
    """Average row indicator per dimension value, best first, capped at TOP_N."""
    if detail.empty:
        return []
    series = detail.groupby(dimension, sort=True)["indicator_pct"].mean().reset_index()
    series = rank_rows(series, "indicator_pct", ascending=False, tiebreak=(dimension,)).head(TOP_N)
    return [{"name": str(n), "value": float(v)} for n, v in zip(series[dimension], series["indicator_pct"])]


def _volume_series(detail: pd.DataFrame, dimension: str) -> List[Dict[str, Any]]:
    """Requested volume per dimension value with its efficiency, largest first."""
    if detail.empty:
        return []
    grouped = group_indicators(detail, [dimension])
    grouped = rank_rows(grouped, "requested", ascending=False, tiebreak=(dimension,)).head(TOP_N)
    return [
        {
            "name": str(row[dimension]),
            "requested": row["requested"],
            "completed": row["completed"],
            "pending": max(0, row["requested"] - row["completed"]),
            "indicator_pct": float(row["indicator_pct"]),
        }
        for row in grouped.to_dict(orient="records")
    ]


def build_evidence_views(ctx: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    """Evidence audit: worst offenders first (highest indicator)."""
    settings: Settings = ctx["settings"]
    detail = attach_indicator(ctx["frame"])
    detail = classify_frame(detail, settings.thresholds, policy=ctx["report"].severity)
    detail = rank_rows(detail, "indicator_pct", ascending=False, tiebreak=TIEBREAK)
    return {
        "detail": detail,
        "company": _company_view(detail, ctx, ascending=False),
    }


def build_evidence_type_views(ctx: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    """Evidence by type: lowest efficiency first; the indicator is always recomputed."""
    settings: Settings = ctx["settings"]
    detail = attach_indicator(ctx["frame"], keep_source=False)
    detail = classify_frame(detail, settings.thresholds, policy=ctx["report"].severity)
    detail = rank_rows(detail, "indicator_pct", ascending=True, tiebreak=TIEBREAK)
    return {
        "detail": detail,
        "company": _company_view(detail, ctx, ascending=True),
    }


def _table(frame: pd.DataFrame, columns: List[str], page: int, page_size: int) -> Dict[str, Any]:
    cols = [c for c in columns if c in frame.columns]
    return paginate(frame[cols] if cols else frame, page, page_size).to_dict()


def compute_evidence(
    selection: FilterSelection,
    ctx: Dict[str, Any],
    *,
    page: int = 1,
    page_size: int = 25,
    view: str = "detail",
) -> Dict[str, Any]:
    views: Dict[str, pd.DataFrame] = ctx["views"]
    detail = views["detail"]
    totals = aggregate_totals(detail)
    columns = DETAIL_COLUMNS if view == "detail" else list(views[view].columns)
    return {
        "report": ctx["report"].id,
        "filters": asdict(selection),
        "view": view,
        "kpis": totals.to_dict(),
        "table": _table(views[view], columns, page, page_size),
        "charts": {dim: _mean_indicator_series(detail, dim) for dim in CHART_DIMENSIONS},
        "alerts": [],
    }


def compute_evidence_type(
    selection: FilterSelection,
    ctx: Dict[str, Any],
    *,
    page: int = 1,
    page_size: int = 25,
    view: str = "detail",
) -> Dict[str, Any]:
    views: Dict[str, pd.DataFrame] = ctx["views"]
    detail = views["detail"]
    totals = aggregate_totals(detail)

    cutoff = ctx["report"].alert_below
    if detail.empty or cutoff is None:
        alerts_df = detail.iloc[0:0]
    else:
        alerts_df = detail[detail["indicator_pct"] < cutoff]
    alerts = [
        {
            "month": row["month"],
            "year": row["year"],
            "company": row["company"],
            "technician": row["technician"],
            "indicator_pct": float(row["indicator_pct"]),
        }
        for row in alerts_df.to_dict(orient="records")
    ]

    charts: Dict[str, Any] = {"technician": _volume_series(detail, "technician"), "company": _volume_series(detail, "company")}
    if not detail.empty:
        by_month = group_indicators(detail, ["year", "month"])
        by_month["_rank"] = [int(y) * 100 + month_rank(m) for y, m in zip(by_month["year"], by_month["month"])]
        by_month = by_month.sort_values("_rank", kind="mergesort")
        charts["month"] = [
            {"name": f"{m} {y}", "indicator_pct": float(v)}
            for m, y, v in zip(by_month["month"], by_month["year"], by_month["indicator_pct"])
        ]
    else:
        charts["month"] = []

    columns = DETAIL_COLUMNS if view == "detail" else list(views[view].columns)
    return {
        "report": ctx["report"].id,
        "filters": asdict(selection),
        "view": view,
        "kpis": totals.to_dict(),
        "table": _table(views[view], columns, page, page_size),
        "charts": charts,
        "alerts": alerts,
    }
