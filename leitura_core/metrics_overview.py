from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from leitura_core.config import Settings, month_rank
from leitura_core.filters import FilterSelection
from leitura_core.indicators import safe_pct
from leitura_core.normalize import MISSING_TEXT
from leitura_core.pager import paginate

TYPE_COLUMNS = ["reading_type", "total", "not_completed", "completed", "impediment_pct"]
OTHER_TYPE = "OUTROS"


def _flag_impediments(df: pd.DataFrame, settings: Settings) -> pd.DataFrame:
    out = df.copy()
    codes = {str(c) for c in settings.impediment_codes}
    out["is_impediment"] = out["impediment_code"].astype(str).isin(codes)
    return out


def by_type(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=TYPE_COLUMNS)
    tmp = df.copy()
    tmp["reading_type"] = tmp["reading_type"].astype(str).replace(MISSING_TEXT, OTHER_TYPE)
    grouped = (
        tmp.groupby("reading_type", sort=True)
        .agg(total=("is_impediment", "size"), not_completed=("is_impediment", "sum"))
        .reset_index()
    )
    grouped["not_completed"] = grouped["not_completed"].astype(int)
    grouped["completed"] = grouped["total"] - grouped["not_completed"]
    grouped["impediment_pct"] = [safe_pct(n, c) for n, c in zip(grouped["not_completed"], grouped["completed"])]
    grouped = grouped.sort_values(["total", "reading_type"], ascending=[False, True], kind="mergesort")
    return grouped[TYPE_COLUMNS].reset_index(drop=True)


def impediments_over_time(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    grouped = df.groupby(["year", "month"], sort=False)["is_impediment"].sum().reset_index()
    grouped["_period"] = [int(y) * 100 + month_rank(m) for y, m in zip(grouped["year"], grouped["month"])]
    grouped = grouped.sort_values("_period", kind="mergesort")
    return [
        {"name": f"{m} {y}", "value": int(v)}
        for m, y, v in zip(grouped["month"], grouped["year"], grouped["is_impediment"])
    ]


def build_overview_views(ctx: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    flagged = _flag_impediments(ctx["frame"], ctx["settings"])
    return {"flagged": flagged, "detail": by_type(flagged)}


def compute_overview(
    selection: FilterSelection,
    ctx: Dict[str, Any],
    *,
    page: int = 1,
    page_size: int = 25,
    view: str = "detail",
) -> Dict[str, Any]:
    views: Dict[str, pd.DataFrame] = ctx["views"]
    flagged = views["flagged"]
    total = int(len(flagged))
    not_completed = int(flagged["is_impediment"].sum()) if total else 0
    completed = total - not_completed
    return {
        "report": ctx["report"].id,
        "filters": asdict(selection),
        "view": view,
        "kpis": {
            "total": total,
            "not_completed": not_completed,
            "completed": completed,
            # impediments relative to completed readings, not to the total
            "impediment_pct": safe_pct(not_completed, completed),
        },
        "table": paginate(views["detail"], page, page_size).to_dict(),
        "charts": {
            "impediments_over_time": impediments_over_time(flagged),
            "by_type": [
                {"name": str(t), "value": int(n)}
                for t, n in zip(views["detail"]["reading_type"], views["detail"]["total"])
            ],
        },
        "alerts": [],
    }
