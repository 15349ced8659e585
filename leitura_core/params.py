from __future__ import annotations

from typing import Any, Dict, List, Optional

from leitura_core.config import month_rank
from leitura_core.filters import FilterSelection, parse_route_bound
from leitura_core.reports import ARRAY, INT, JOIN, STR, ParamSpec, ReportSpec


def _as_values(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set, frozenset)):
        values = [str(v).strip() for v in raw if v is not None and str(v).strip()]
    else:
        s = str(raw).strip()
        values = [s] if s else []
    # Set semantics: a stable order keeps identical selections byte-identical.
    return sorted(dict.fromkeys(values), key=lambda v: (month_rank(v), v))


def _as_int(raw: Any) -> Optional[int]:
    if isinstance(raw, (list, tuple)):
        raw = raw[0] if raw else None
    return parse_route_bound(raw)


def encode_param(param: ParamSpec, selection: FilterSelection) -> Any:
    if param.field is None:
        return param.absent
    raw = getattr(selection, param.field)
    if param.encoding == INT:
        value = _as_int(raw)
        return param.absent if value is None else value
    if param.encoding in (ARRAY, JOIN):
        values = _as_values(raw)
        if not values:
            return param.absent
        return values if param.encoding == ARRAY else ",".join(values)
    if param.encoding == STR:
        values = _as_values(raw)
        return ",".join(values) if values else param.absent
    raise ValueError(f"Unknown parameter encoding: {param.encoding}")


def build_query_params(report: ReportSpec, selection: FilterSelection) -> Dict[str, Any]:
    """Map a validated selection to the RPC request body.

    Every parameter declared for the report is present in the output; absent
    filters carry the report's null-equivalent instead of being omitted.
    """
    return {param.name: encode_param(param, selection) for param in report.params}
