from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from leitura_core.filters import FilterSelection
from leitura_core.normalize import MISSING_TEXT
from leitura_core.pager import paginate

DETAIL_COLUMNS = [
    "month",
    "year",
    "company",
    "route_unit",
    "installation",
    "meter",
    "register",
    "reading_type",
    "technician",
    "impediment_code",
    "current_reading",
    "motive",
]
ORDER = ["company", "technician", "route_unit", "installation"]


def filter_motive(df: pd.DataFrame, motive: Optional[str]) -> pd.DataFrame:
    if df.empty or not motive:
        return df
    return df[df["motive"].astype(str) == motive].reset_index(drop=True)


def top_motive(df: pd.DataFrame) -> Optional[str]:
    """Most frequent motive; ties resolve alphabetically."""
    if df.empty:
        return None
    counts = df["motive"].astype(str).value_counts()
    best = counts.max()
    return sorted(counts[counts == best].index)[0]


def summary_by_company(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=["company", "count"])
    counts = df.groupby("company", sort=True).size().reset_index(name="count")
    return counts.sort_values(["count", "company"], ascending=[False, True], kind="mergesort").reset_index(drop=True)


def motive_options(df: pd.DataFrame) -> List[str]:
    if df.empty:
        return []
    return sorted({str(m) for m in df["motive"] if str(m) != MISSING_TEXT})


def build_nosb_views(ctx: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    frame = filter_motive(ctx["frame"], ctx.get("motive"))
    if frame.empty:
        detail = frame.reindex(columns=DETAIL_COLUMNS)
    else:
        tmp = frame[ORDER].astype(str)
        detail = frame.loc[tmp.sort_values(ORDER, kind="mergesort").index, DETAIL_COLUMNS].reset_index(drop=True)
    return {"detail": detail, "company": summary_by_company(detail)}


def compute_nosb(
    selection: FilterSelection,
    ctx: Dict[str, Any],
    *,
    page: int = 1,
    page_size: int = 25,
    view: str = "detail",
) -> Dict[str, Any]:
    views: Dict[str, pd.DataFrame] = ctx["views"]
    detail = views["detail"]
    technicians = detail["technician"].astype(str) if not detail.empty else pd.Series(dtype=str)
    return {
        "report": ctx["report"].id,
        "filters": asdict(selection),
        "view": view,
        "kpis": {
            "count": int(len(detail)),
            "top_motive": top_motive(detail),
            "technicians": int(technicians[technicians != MISSING_TEXT].nunique()),
        },
        "motives": motive_options(ctx["frame"]),
        "table": paginate(views[view], page, page_size).to_dict(),
        "charts": {
            "by_company": [
                {"name": str(n), "value": int(c)}
                for n, c in zip(views["company"]["company"], views["company"]["count"])
            ],
        },
        "alerts": [],
    }
