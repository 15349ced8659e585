"""Map heterogeneous RPC rows onto one canonical reading-row shape.

Column naming is not stable across report RPCs, so every canonical field has an
ordered list of acceptable source keys. The first present, non-null value wins;
numeric fields default to 0 and text fields to "N/A". Normalization is total.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

MISSING_TEXT = "N/A"
NULL_TOKENS = {"", "nan", "none", "null", "<na>", "undefined"}

TEXT = "text"
INT = "int"
NUMBER = "number"

FIELD_KEYS: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "month": (TEXT, ("Mes", "mes", "MES", "month")),
    "year": (INT, ("Ano", "ano", "ANO", "year")),
    "company": (TEXT, ("rz", "razao", "razao_social", "RAZAO", "RZ", "company")),
    "route_unit": (TEXT, ("rz_ul_lv", "ul", "UL", "route_unit")),
    "reading_type": (TEXT, ("tipo", "TIPO", "type")),
    "requested": (NUMBER, ("solicitadas", "SOLICITADAS", "requested")),
    "completed": (NUMBER, ("realizadas", "REALIZADAS", "completed")),
    "not_completed": (NUMBER, ("nao_realizadas", "NAO_REALIZADAS", "pendentes", "not_completed")),
    "technician": (TEXT, ("matr", "matricula", "MATR", "technician")),
    "impediment_code": (TEXT, ("nl", "cod", "COD", "impediment_code")),
    "current_reading": (NUMBER, ("l_atual", "leitura", "LEITURA", "current_reading")),
    "indicator_pct": (NUMBER, ("indicador", "indicador_pct", "infm", "indicator_pct")),
    "to_execute": (NUMBER, ("leituras_em_geral", "a_executar", "to_execute")),
    "impediments": (NUMBER, ("impedimentos", "impediments")),
    "installation": (TEXT, ("instalacao", "INSTALACAO", "installation")),
    "meter": (TEXT, ("medidor", "MEDIDOR", "meter")),
    "register": (TEXT, ("reg", "REG", "register")),
    "motive": (TEXT, ("motivo", "MOTIVO", "motive")),
    "severity_tag": (TEXT, ("cor", "color", "status_cor", "severity")),
}

FLAG_COLUMNS = ["has_counters", "has_indicator", "pre_aggregated"]
CANONICAL_COLUMNS = list(FIELD_KEYS) + FLAG_COLUMNS


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            value = int(value)
    try:
        s = str(value).strip()
    except Exception:
        return None
    if s.lower() in NULL_TOKENS:
        return None
    return s


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        out = float(value)
    else:
        s = _text(value)
        if s is None:
            return None
        if "," in s and "." not in s:
            s = s.replace(",", ".")
        try:
            out = float(s)
        except ValueError:
            return None
    return out if math.isfinite(out) else None


def first_present(raw: Mapping[str, Any], keys: Sequence[str], kind: str = TEXT) -> Optional[Any]:
    """Return the first usable value among ``keys`` or None."""
    for key in keys:
        if key not in raw:
            continue
        value = raw.get(key)
        parsed = _text(value) if kind == TEXT else _number(value)
        if parsed is not None:
            if kind == INT:
                return int(parsed)
            if kind == NUMBER and float(parsed).is_integer():
                return int(parsed)
            return parsed
    return None


def derive_evidence_counters(raw: Mapping[str, Any]) -> Dict[str, int]:
    """Per-reading evidence flags: a reading typed twice or more requires a photo."""
    typed = _number(raw.get("digitacao", raw.get("DIG"))) or 0
    photo = (_text(raw.get("foto")) or "").upper()
    return {
        "requested": 1 if typed >= 2 else 0,
        "completed": 1 if photo == "OK" else 0,
        "not_completed": 1 if photo == "N-OK" else 0,
    }


def normalize_row(
    raw: Any,
    *,
    motive_key: Optional[str] = None,
    evidence: bool = False,
) -> Dict[str, Any]:
    if not isinstance(raw, Mapping):
        raw = {}
    out: Dict[str, Any] = {}
    found: Dict[str, bool] = {}
    for name, (kind, keys) in FIELD_KEYS.items():
        if name == "motive" and motive_key:
            keys = keys[:1] + (motive_key,) + keys[1:]
        value = first_present(raw, keys, kind)
        found[name] = value is not None
        if value is None:
            value = MISSING_TEXT if kind == TEXT else 0
        out[name] = value

    out["has_counters"] = found["requested"] or found["completed"]
    if evidence and not out["has_counters"]:
        out.update(derive_evidence_counters(raw))
        out["has_counters"] = True
    out["has_indicator"] = found["indicator_pct"]
    out["pre_aggregated"] = found["to_execute"] or found["impediments"]
    return out


def normalize_rows(rows: Optional[Iterable[Any]], **kwargs: Any) -> List[Dict[str, Any]]:
    return [normalize_row(r, **kwargs) for r in (rows if rows is not None else [])]


def normalize_frame(rows: Optional[Iterable[Any]], **kwargs: Any) -> pd.DataFrame:
    records = normalize_rows(rows, **kwargs)
    if not records:
        return pd.DataFrame(columns=CANONICAL_COLUMNS)
    return pd.DataFrame.from_records(records, columns=CANONICAL_COLUMNS)
