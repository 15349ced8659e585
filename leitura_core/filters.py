from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Optional

YEAR_PRESENT = "yearPresent"
AT_LEAST_ONE_MONTH = "atLeastOneMonth"
UL_RANGE_ORDERED = "ulRangeOrdered"

# Fixed evaluation order: the first violated rule is the one reported.
RULE_ORDER = (YEAR_PRESENT, AT_LEAST_ONE_MONTH, UL_RANGE_ORDERED)

RULE_MESSAGES: Dict[str, str] = {
    YEAR_PRESENT: "Selecione o ANO para buscar os dados.",
    AT_LEAST_ONE_MONTH: "Selecione ao menos um MÊS para buscar os dados.",
    UL_RANGE_ORDERED: "A UL inicial deve ser menor ou igual à UL final.",
}


@dataclass(frozen=True)
class FilterOption:
    value: str
    label: str


@dataclass
class FilterSelection:
    year: Optional[str] = None
    months: List[str] = field(default_factory=list)
    company: Optional[str] = None
    technician: Optional[str] = None
    ul_from: Optional[int] = None
    ul_to: Optional[int] = None

    @property
    def month_set(self) -> FrozenSet[str]:
        return frozenset(self.months)

    def snapshot(self) -> "FilterSelection":
        return replace(self, months=list(self.months))

    def clear_dependents(self) -> None:
        self.company = None
        self.technician = None


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    rule: Optional[str] = None
    message: Optional[str] = None


def _clean_str(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        s = _clean_str(v)
        if s is not None and s not in out:
            out.append(s)
    return out


def parse_route_bound(value: object) -> Optional[int]:
    """Parse a UL bound; anything non-numeric is treated as absent, never as zero."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return int(number) if math.isfinite(number) else None


def normalize_selection(raw: dict) -> FilterSelection:
    months = raw.get("months")
    if months is None:
        months = raw.get("month")
    return FilterSelection(
        year=_clean_str(raw.get("year")),
        months=_as_str_list(months),
        company=_clean_str(raw.get("company")),
        technician=_clean_str(raw.get("technician")),
        ul_from=parse_route_bound(raw.get("ul_from")),
        ul_to=parse_route_bound(raw.get("ul_to")),
    )


def _rule_passes(rule: str, selection: FilterSelection) -> bool:
    if rule == YEAR_PRESENT:
        return bool(selection.year)
    if rule == AT_LEAST_ONE_MONTH:
        return len(selection.months) > 0
    if rule == UL_RANGE_ORDERED:
        if selection.ul_from is None or selection.ul_to is None:
            return True
        return selection.ul_from <= selection.ul_to
    raise ValueError(f"Unknown validation rule: {rule}")


def validate_selection(selection: FilterSelection, rules: Iterable[str] = (UL_RANGE_ORDERED,)) -> ValidationResult:
    active = set(rules)
    unknown = active - set(RULE_ORDER)
    if unknown:
        raise ValueError(f"Unknown validation rules: {sorted(unknown)}")
    for rule in RULE_ORDER:
        if rule in active and not _rule_passes(rule, selection):
            return ValidationResult(ok=False, rule=rule, message=RULE_MESSAGES[rule])
    return ValidationResult(ok=True)


def is_valid(selection: FilterSelection, rules: Iterable[str] = (UL_RANGE_ORDERED,)) -> bool:
    return validate_selection(selection, rules).ok
