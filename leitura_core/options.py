"""Filter option registry and cascading (year/month -> company/technician) resolution.

The registry is an immutable value: every refresh returns a new registry, so a
failed fetch can never leave a half-updated set of lists behind.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from leitura_core.config import MONTH_ORDER, PLACEHOLDER_TOKENS, month_rank
from leitura_core.errors import OptionLoadError
from leitura_core.filters import FilterOption, FilterSelection

logger = logging.getLogger(__name__)

YEAR = "year"
MONTH = "month"
COMPANY = "company"
TECHNICIAN = "technician"


@dataclass(frozen=True)
class DimensionSpec:
    rpc: str
    keys: Tuple[str, ...]
    order: str = "alpha"
    upper: bool = False


DIMENSIONS: Dict[str, DimensionSpec] = {
    YEAR: DimensionSpec(rpc="rpc_filtro_ano", keys=("ano", "Ano", "ANO", "year"), order="desc_numeric"),
    MONTH: DimensionSpec(rpc="rpc_filtro_mes", keys=("mes", "Mes", "MES", "month"), order="month", upper=True),
    COMPANY: DimensionSpec(rpc="rpc_rz", keys=("rz", "razao", "razao_social", "RZ", "company")),
    TECHNICIAN: DimensionSpec(rpc="rpc_matriculas", keys=("matr", "matricula", "MATR", "technician")),
}


class OptionSource(Protocol):
    async def fetch_options(self, dimension: str, constraints: Optional[Mapping[str, Any]] = None) -> List[Any]:
        ...


@dataclass(frozen=True)
class FilterOptionRegistry:
    years: Tuple[FilterOption, ...] = ()
    months: Tuple[FilterOption, ...] = ()
    companies: Tuple[FilterOption, ...] = ()
    technicians: Tuple[FilterOption, ...] = ()
    # (year, month) the dependent lists were loaded for; None when cleared.
    dependent_key: Optional[Tuple[str, str]] = None

    def options(self, dimension: str) -> Tuple[FilterOption, ...]:
        return {
            YEAR: self.years,
            MONTH: self.months,
            COMPANY: self.companies,
            TECHNICIAN: self.technicians,
        }[dimension]

    def values(self, dimension: str) -> List[str]:
        return [o.value for o in self.options(dimension)]

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            "years": [{"value": o.value, "label": o.label} for o in self.years],
            "months": [{"value": o.value, "label": o.label} for o in self.months],
            "companies": [{"value": o.value, "label": o.label} for o in self.companies],
            "technicians": [{"value": o.value, "label": o.label} for o in self.technicians],
        }


def _scalar_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    if isinstance(value, float):
        if value != value:
            return None
        if value.is_integer():
            value = int(value)
    s = str(value).strip()
    return s or None


def coerce_option_value(item: Any, keys: Sequence[str]) -> Optional[str]:
    if isinstance(item, Mapping):
        for key in keys:
            s = _scalar_text(item.get(key))
            if s is not None:
                break
        else:
            return None
    else:
        s = _scalar_text(item)
    if s is None or s.upper() in PLACEHOLDER_TOKENS:
        return None
    return s


def _sort_key(order: str):
    if order == "desc_numeric":
        def key(value: str):
            try:
                return (0, -float(value), value)
            except ValueError:
                return (1, 0.0, value)
        return key
    if order == "month":
        return lambda value: (month_rank(value), value)
    return lambda value: value


def build_options(items: Optional[Iterable[Any]], spec: DimensionSpec) -> Tuple[FilterOption, ...]:
    values: List[str] = []
    for item in items or []:
        value = coerce_option_value(item, spec.keys)
        if value is None:
            continue
        if spec.upper:
            value = value.upper()
        if spec.order == "month" and value not in MONTH_ORDER:
            continue
        if value not in values:
            values.append(value)
    values.sort(key=_sort_key(spec.order))
    return tuple(FilterOption(value=v, label=v) for v in values)


def apply_base_options(registry: FilterOptionRegistry, years: Iterable[Any], months: Iterable[Any]) -> FilterOptionRegistry:
    return replace(
        registry,
        years=build_options(years, DIMENSIONS[YEAR]),
        months=build_options(months, DIMENSIONS[MONTH]),
    )


def apply_dependent_options(
    registry: FilterOptionRegistry,
    companies: Iterable[Any],
    technicians: Iterable[Any],
    *,
    key: Tuple[str, str],
) -> FilterOptionRegistry:
    return replace(
        registry,
        companies=build_options(companies, DIMENSIONS[COMPANY]),
        technicians=build_options(technicians, DIMENSIONS[TECHNICIAN]),
        dependent_key=key,
    )


def clear_dependent_options(registry: FilterOptionRegistry) -> FilterOptionRegistry:
    return replace(registry, companies=(), technicians=(), dependent_key=None)


def resolve_dependents(registry: FilterOptionRegistry, selection: FilterSelection) -> FilterSelection:
    """Drop a company/technician choice that is not in its current candidate list."""
    out = selection.snapshot()
    if out.company is not None and out.company not in registry.values(COMPANY):
        out.company = None
    if out.technician is not None and out.technician not in registry.values(TECHNICIAN):
        out.technician = None
    return out


async def load_base_options(source: OptionSource, registry: FilterOptionRegistry) -> FilterOptionRegistry:
    try:
        years, months = await asyncio.gather(
            source.fetch_options(YEAR),
            source.fetch_options(MONTH),
        )
    except OptionLoadError:
        raise
    except Exception as exc:
        raise OptionLoadError(str(exc)) from exc
    return apply_base_options(registry, years, months)


async def load_dependent_options(
    source: OptionSource,
    registry: FilterOptionRegistry,
    selection: FilterSelection,
    year: Optional[str],
    month: Optional[str],
) -> Tuple[FilterOptionRegistry, FilterSelection]:
    """Fetch company and technician candidates for (year, month).

    Returns the new registry and a selection whose dependent choices all exist in
    the new lists. When year or month is empty the lists and choices are cleared.
    On fetch failure an OptionLoadError is raised and nothing is replaced.
    """
    year = (year or "").strip()
    month = (month or "").strip()
    selection = selection.snapshot()
    if not year or not month:
        selection.clear_dependents()
        return clear_dependent_options(registry), selection

    key = (year, month)
    if registry.dependent_key != key:
        # Upstream context changed: prior choices may not exist for the new pair.
        selection.clear_dependents()

    constraints = {YEAR: year, MONTH: month}
    try:
        companies, technicians = await asyncio.gather(
            source.fetch_options(COMPANY, constraints),
            source.fetch_options(TECHNICIAN, constraints),
        )
    except OptionLoadError:
        raise
    except Exception as exc:
        raise OptionLoadError(str(exc)) from exc

    new_registry = apply_dependent_options(registry, companies, technicians, key=key)
    logger.debug("dependent options for %s: %d companies, %d technicians", key, len(new_registry.companies), len(new_registry.technicians))
    return new_registry, resolve_dependents(new_registry, selection)
