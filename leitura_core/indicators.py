from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Union

import numpy as np
import pandas as pd

Rows = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]


def safe_pct(numerator: float, denominator: float) -> float:
    """numerator / denominator * 100; a zero (or non-finite) denominator yields 0.0."""
    try:
        num = float(numerator)
        den = float(denominator)
    except (TypeError, ValueError):
        return 0.0
    if den == 0 or not math.isfinite(den) or not math.isfinite(num):
        return 0.0
    return num / den * 100


def efficiency_pct(requested: float, completed: float) -> float:
    return safe_pct(completed, requested)


def infm_pct(to_execute: float, impediments: float) -> float:
    """INFM = (to_execute - impediments) / to_execute * 100, 0 when nothing was scheduled."""
    if not to_execute:
        return 0.0
    return (to_execute - impediments) / to_execute * 100


@dataclass(frozen=True)
class AggregateTotals:
    requested: float = 0
    completed: float = 0
    not_completed: float = 0

    @property
    def efficiency_pct(self) -> float:
        return efficiency_pct(self.requested, self.completed)

    @property
    def pending(self) -> float:
        return max(0, self.requested - self.completed)

    def to_dict(self) -> Dict[str, float]:
        out = asdict(self)
        out["pending"] = self.pending
        out["efficiency_pct"] = self.efficiency_pct
        return out


@dataclass(frozen=True)
class TechnicianTotals:
    to_execute: float = 0
    impediments: float = 0

    @property
    def total_general(self) -> float:
        return self.to_execute - self.impediments

    @property
    def infm_pct(self) -> float:
        return infm_pct(self.to_execute, self.impediments)

    def to_dict(self) -> Dict[str, float]:
        out = asdict(self)
        out["total_general"] = self.total_general
        out["infm_pct"] = self.infm_pct
        return out


def _column(rows: Rows, name: str) -> List[float]:
    if isinstance(rows, pd.DataFrame):
        if rows.empty or name not in rows.columns:
            return []
        values = pd.to_numeric(rows[name], errors="coerce").fillna(0).tolist()
    else:
        values = [r.get(name, 0) or 0 for r in rows]
    return [float(v) for v in values]


def _exact_sum(values: Sequence[float]) -> float:
    # fsum is correctly rounded, so the total cannot depend on row order.
    total = math.fsum(values)
    return int(total) if float(total).is_integer() else total


def aggregate_totals(rows: Rows) -> AggregateTotals:
    if not isinstance(rows, pd.DataFrame):
        rows = list(rows)
    return AggregateTotals(
        requested=_exact_sum(_column(rows, "requested")),
        completed=_exact_sum(_column(rows, "completed")),
        not_completed=_exact_sum(_column(rows, "not_completed")),
    )


def aggregate_technician_totals(rows: Rows) -> TechnicianTotals:
    if not isinstance(rows, pd.DataFrame):
        rows = list(rows)
    return TechnicianTotals(
        to_execute=_exact_sum(_column(rows, "to_execute")),
        impediments=_exact_sum(_column(rows, "impediments")),
    )


def attach_indicator(df: pd.DataFrame, *, keep_source: bool = True) -> pd.DataFrame:
    """Fill ``indicator_pct`` from requested/completed where the source did not send one."""
    out = df.copy()
    if out.empty:
        out["indicator_pct"] = pd.Series(dtype=float)
        return out
    requested = pd.to_numeric(out["requested"], errors="coerce").fillna(0).astype(float)
    completed = pd.to_numeric(out["completed"], errors="coerce").fillna(0).astype(float)
    computed = pd.Series(
        np.where(requested > 0, completed / requested.where(requested > 0, 1) * 100, 0.0),
        index=out.index,
    )
    if keep_source and "has_indicator" in out.columns:
        source = pd.to_numeric(out["indicator_pct"], errors="coerce").fillna(0).astype(float)
        out["indicator_pct"] = source.where(out["has_indicator"].astype(bool), computed)
    else:
        out["indicator_pct"] = computed
    return out


def technician_counters(df: pd.DataFrame, codes: Iterable[str]) -> pd.DataFrame:
    """Per-row to_execute / impediments; raw readings count 1 each."""
    out = df.copy()
    if out.empty:
        return out
    codes = {str(c) for c in codes}
    raw = ~out["pre_aggregated"].astype(bool)
    is_impediment = out["impediment_code"].astype(str).isin(codes)
    out.loc[raw, "to_execute"] = 1
    out.loc[raw, "impediments"] = is_impediment[raw].astype(int)
    return out


def group_indicators(df: pd.DataFrame, by: Sequence[str]) -> pd.DataFrame:
    columns = list(by) + ["requested", "completed", "not_completed", "indicator_pct"]
    if df.empty:
        return pd.DataFrame(columns=columns)
    grouped = (
        df.groupby(list(by), sort=True, dropna=False)
        .agg(requested=("requested", "sum"), completed=("completed", "sum"), not_completed=("not_completed", "sum"))
        .reset_index()
    )
    grouped["indicator_pct"] = [
        efficiency_pct(r, c) for r, c in zip(grouped["requested"], grouped["completed"])
    ]
    return grouped[columns]


def group_technician(df: pd.DataFrame, by: Sequence[str]) -> pd.DataFrame:
    columns = list(by) + ["to_execute", "impediments", "total_general", "infm_pct"]
    if df.empty:
        return pd.DataFrame(columns=columns)
    grouped = (
        df.groupby(list(by), sort=True, dropna=False)
        .agg(to_execute=("to_execute", "sum"), impediments=("impediments", "sum"))
        .reset_index()
    )
    grouped["total_general"] = grouped["to_execute"] - grouped["impediments"]
    grouped["infm_pct"] = [infm_pct(t, i) for t, i in zip(grouped["to_execute"], grouped["impediments"])]
    return grouped[columns]


def rank_rows(
    df: pd.DataFrame,
    column: str,
    *,
    ascending: bool = False,
    tiebreak: Sequence[str] = (),
) -> pd.DataFrame:
    """Deterministic ordering: primary column, then tie-break columns ascending, then input order."""
    if df.empty:
        return df.reset_index(drop=True)
    keys = [column] + [c for c in tiebreak if c in df.columns and c != column]
    order = [ascending] + [True] * (len(keys) - 1)
    tmp = df.copy()
    for c in keys[1:]:
        tmp[c] = tmp[c].astype(str)
    idx = tmp.sort_values(keys, ascending=order, kind="mergesort").index
    return df.loc[idx].reset_index(drop=True)
