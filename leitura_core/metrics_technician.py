from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from leitura_core.config import Settings, month_rank
from leitura_core.filters import FilterSelection
from leitura_core.indicators import (
    aggregate_technician_totals,
    group_technician,
    rank_rows,
    technician_counters,
)
from leitura_core.pager import paginate

GROUP_KEYS = ["month", "year", "company", "route_unit", "reading_type"]
TOP_N = 15


def _chronological(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df.reset_index(drop=True)
    tmp = df.copy()
    tmp["_period"] = [int(y) * 100 + month_rank(m) for y, m in zip(tmp["year"], tmp["month"])]
    for c in ("company", "route_unit", "reading_type"):
        tmp[c] = tmp[c].astype(str)
    idx = tmp.sort_values(["_period", "company", "route_unit", "reading_type"], kind="mergesort").index
    return df.loc[idx].reset_index(drop=True)


def build_technician_views(ctx: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    settings: Settings = ctx["settings"]
    counted = technician_counters(ctx["frame"], settings.technician_impediment_codes)
    detail = _chronological(group_technician(counted, GROUP_KEYS))
    company = group_technician(counted, ["company"])
    company = rank_rows(company, "impediments", ascending=False, tiebreak=("company",))
    return {"detail": detail, "company": company}


def _impediments_series(company: pd.DataFrame) -> List[Dict[str, Any]]:
    top = company.head(TOP_N)
    return [{"name": str(n), "value": v} for n, v in zip(top["company"], top["impediments"])]


def _infm_series(company: pd.DataFrame) -> List[Dict[str, Any]]:
    ranked = rank_rows(company, "infm_pct", ascending=False, tiebreak=("company",))
    return [{"name": str(n), "value": float(v)} for n, v in zip(ranked["company"], ranked["infm_pct"])]


def compute_technician(
    selection: FilterSelection,
    ctx: Dict[str, Any],
    *,
    page: int = 1,
    page_size: int = 25,
    view: str = "detail",
) -> Dict[str, Any]:
    views: Dict[str, pd.DataFrame] = ctx["views"]
    totals = aggregate_technician_totals(views["detail"])
    company = views["company"]
    return {
        "report": ctx["report"].id,
        "filters": asdict(selection),
        "view": view,
        "kpis": totals.to_dict(),
        "table": paginate(views[view], page, page_size).to_dict(),
        "charts": {
            "impediments_by_company": _impediments_series(company),
            "infm_by_company": _infm_series(company),
        },
        "alerts": [],
    }
