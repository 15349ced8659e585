from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from leitura_core.config import Settings
from leitura_core.filters import FilterSelection
from leitura_core.normalize import normalize_frame
from leitura_core.reports import ReportSpec

UL_MIN = 0
UL_MAX = 99999999


def route_unit_number(value: object) -> int:
    """Leading digits of a route unit as an int; non-numeric units count as 0."""
    match = re.match(r"\s*(\d+)", str(value)) if value is not None else None
    return int(match.group(1)) if match else 0


def filter_route_range(df: pd.DataFrame, ul_from: Optional[int], ul_to: Optional[int]) -> pd.DataFrame:
    if df.empty or (ul_from is None and ul_to is None):
        return df
    low = UL_MIN if ul_from is None else ul_from
    high = UL_MAX if ul_to is None else ul_to
    numbers = df["route_unit"].apply(route_unit_number)
    return df[(numbers >= low) & (numbers <= high)]


def apply_client_filters(df: pd.DataFrame, selection: FilterSelection, filters: Iterable[str]) -> pd.DataFrame:
    out = df
    for name in filters:
        if out.empty:
            break
        if name == "company" and selection.company:
            out = out[out["company"].astype(str) == selection.company]
        elif name == "technician" and selection.technician:
            out = out[out["technician"].astype(str) == selection.technician]
        elif name == "route_range":
            out = filter_route_range(out, selection.ul_from, selection.ul_to)
    return out.reset_index(drop=True)


def prepare_context(
    report: ReportSpec,
    selection: FilterSelection,
    rows: Optional[Iterable[Any]],
    settings: Settings,
) -> Dict[str, object]:
    """Normalize the rows of one query and apply the report's client-side filters."""
    rows = list(rows) if rows is not None else []
    frame = normalize_frame(rows, motive_key=report.motive_key, evidence=report.kind == "evidence")
    frame = apply_client_filters(frame, selection, report.client_filters)
    return {
        "report": report,
        "selection": selection.snapshot(),
        "settings": settings,
        "rows": rows,
        "frame": frame,
        "source_rows": len(rows),
    }
