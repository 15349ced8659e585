"""Filter-driven report screen: selection, options, query lifecycle and result views.

State machine::

    IDLE -> VALIDATING -> (invalid) ERROR
                       -> QUERYING -> READY
                                   -> (query failed) ERROR, previous result kept
    any filter change -> IDLE

Each ``generate()`` call takes a new sequence number. A response that arrives
after a newer request was issued is discarded, whatever the completion order.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from leitura_core.config import Settings, month_rank
from leitura_core.engine import build_context, check_view, compute_payload, export_records
from leitura_core.errors import LeituraError, OptionLoadError, QueryError
from leitura_core.export import export_filename, export_headers
from leitura_core.filters import FilterSelection, ValidationResult, parse_route_bound, validate_selection
from leitura_core.options import (
    COMPANY,
    TECHNICIAN,
    FilterOptionRegistry,
    OptionSource,
    load_base_options,
    load_dependent_options,
    resolve_dependents,
)
from leitura_core.pager import PagerState
from leitura_core.params import build_query_params
from leitura_core.reports import ReportSpec
from leitura_core.sinks import MEDIA_TYPES, render

logger = logging.getLogger(__name__)


class ScreenState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    QUERYING = "querying"
    READY = "ready"
    ERROR = "error"


class DataSource(OptionSource, Protocol):
    async def query(self, report: ReportSpec, params: Mapping[str, Any]) -> List[Any]:
        ...


class ReportScreen:
    def __init__(self, report: ReportSpec, source: DataSource, settings: Optional[Settings] = None) -> None:
        self.report = report
        self.source = source
        self.settings = settings or Settings()
        self.selection = FilterSelection()
        self.registry = FilterOptionRegistry()
        self.pager = PagerState(self.settings.page_size)
        self.state = ScreenState.IDLE
        self.error: Optional[str] = None
        self.validation: Optional[ValidationResult] = None
        self.notice: Optional[str] = None
        self.view = "detail"
        self.motive: Optional[str] = None
        self.context: Optional[Dict[str, Any]] = None
        # last result that reached READY; restored when a query fails
        self._ready: Optional[Dict[str, Any]] = None
        self._seq = 0

    # -- options ---------------------------------------------------------

    async def load_options(self) -> FilterOptionRegistry:
        try:
            self.registry = await load_base_options(self.source, self.registry)
            self.notice = None
        except OptionLoadError as exc:
            logger.warning("base options for %s failed: %s", self.report.id, exc.message)
            self.notice = exc.message
        return self.registry

    async def refresh_dependent_options(self) -> FilterOptionRegistry:
        # several months: dependent lists are keyed on the earliest one
        month = min(self.selection.months, key=month_rank) if self.selection.months else None
        try:
            self.registry, self.selection = await load_dependent_options(
                self.source, self.registry, self.selection, self.selection.year, month
            )
            self.notice = None
        except OptionLoadError as exc:
            logger.warning("dependent options for %s failed: %s", self.report.id, exc.message)
            self.notice = exc.message
        return self.registry

    # -- filter changes --------------------------------------------------

    def _supersede(self) -> None:
        # any in-flight query now answers for a selection that no longer exists
        self._seq += 1
        if self.context is None:
            self.context = self._ready

    def _changed(self) -> None:
        self._supersede()
        self.state = ScreenState.IDLE
        self.error = None
        self.validation = None

    def set_year(self, year: Optional[str]) -> None:
        year = (str(year).strip() if year is not None else "") or None
        if year != self.selection.year:
            self.selection.year = year
            self.selection.clear_dependents()
        self._changed()

    def set_months(self, months: Iterable[str]) -> None:
        months = [str(m).strip() for m in months or [] if str(m).strip()]
        if set(months) != self.selection.month_set:
            self.selection.months = months
            self.selection.clear_dependents()
        self._changed()

    def _dependent_choice(self, dimension: str, value: Optional[str]) -> Optional[str]:
        value = value or None
        if value is not None and self.registry.dependent_key is not None:
            if value not in self.registry.values(dimension):
                raise ValueError(f"{value!r} is not a {dimension} option for {self.registry.dependent_key}")
        return value

    def set_company(self, company: Optional[str]) -> None:
        self.selection.company = self._dependent_choice(COMPANY, company)
        self._changed()

    def set_technician(self, technician: Optional[str]) -> None:
        self.selection.technician = self._dependent_choice(TECHNICIAN, technician)
        self._changed()

    def set_route_range(self, ul_from: object = None, ul_to: object = None) -> None:
        self.selection.ul_from = parse_route_bound(ul_from)
        self.selection.ul_to = parse_route_bound(ul_to)
        self._changed()

    def set_motive(self, motive: Optional[str]) -> None:
        self.motive = motive or None
        if self.context is not None:
            self._rebuild()

    def set_view(self, view: str) -> None:
        self.view = check_view(self.report, view)
        self._reset_pager()

    def set_page_size(self, page_size: int) -> None:
        self.pager.set_page_size(page_size)

    def apply(self, selection: FilterSelection) -> None:
        """Replace the whole selection, keeping dependents only if the lists allow them."""
        self.set_year(selection.year)
        self.set_months(selection.months)
        self.selection.company = selection.company
        self.selection.technician = selection.technician
        self.selection.ul_from = selection.ul_from
        self.selection.ul_to = selection.ul_to
        if self.registry.dependent_key is not None:
            self.selection = resolve_dependents(self.registry, self.selection)

    # -- query lifecycle -------------------------------------------------

    def validate(self) -> ValidationResult:
        self.state = ScreenState.VALIDATING
        self.validation = validate_selection(self.selection, self.report.rules)
        if not self.validation.ok:
            self._supersede()
            self.state = ScreenState.ERROR
            self.error = self.validation.message
        return self.validation

    async def generate(self) -> ScreenState:
        if not self.validate().ok:
            return self.state

        self._seq += 1
        seq = self._seq
        selection = self.selection.snapshot()
        params = build_query_params(self.report, selection)
        self.context = None
        self.state = ScreenState.QUERYING
        self.error = None
        logger.info("query %s #%d started %s", self.report.id, seq, params)

        try:
            rows = await self.source.query(self.report, params)
        except LeituraError as exc:
            if seq != self._seq:
                logger.warning("stale failure for %s #%d discarded", self.report.id, seq)
                return self.state
            logger.warning("query %s #%d failed: %s", self.report.id, seq, exc.message)
            self.context = self._ready
            self.error = exc.message
            self.state = ScreenState.ERROR
            return self.state
        except Exception as exc:
            if seq != self._seq:
                logger.warning("stale failure for %s #%d discarded", self.report.id, seq)
                return self.state
            logger.exception("query %s #%d failed", self.report.id, seq)
            self.context = self._ready
            self.error = QueryError(str(exc)).message
            self.state = ScreenState.ERROR
            return self.state

        if seq != self._seq:
            logger.warning("stale response for %s #%d discarded (latest #%d)", self.report.id, seq, self._seq)
            return self.state

        self.context = build_context(self.report, selection, rows, self.settings, motive=self.motive)
        self._ready = self.context
        self._reset_pager()
        self.state = ScreenState.READY
        logger.info("query %s #%d finished with %d rows", self.report.id, seq, len(self.context["frame"]))
        return self.state

    def reset(self) -> None:
        self.selection = FilterSelection()
        self.context = None
        self.motive = None
        self._ready = None
        self.pager.set_result(0)
        self._changed()

    def _rebuild(self) -> None:
        ctx = self.context
        self.context = build_context(self.report, ctx["selection"], ctx["rows"], self.settings, motive=self.motive)
        self._ready = self.context
        self._reset_pager()

    def _reset_pager(self) -> None:
        rows = 0
        if self.context is not None:
            rows = len(self.context["views"][self.view])
        self.pager.set_result(rows)

    # -- projections -----------------------------------------------------

    def payload(self, page: Optional[int] = None) -> Dict[str, Any]:
        base = {"state": self.state.value, "error": self.error, "notice": self.notice}
        if self.context is None:
            return {**base, "report": self.report.id, "table": None}
        if page is not None:
            self.pager.go_to(page)
        body = compute_payload(
            self.context, page=self.pager.page_number, page_size=self.pager.page_size, view=self.view
        )
        return {**base, **body}

    def export_records(self, view: Optional[str] = None) -> List[Dict[str, Any]]:
        if self.context is None:
            return []
        return export_records(self.context, view or self.view)

    def export(self, fmt: str, view: Optional[str] = None) -> Tuple[str, bytes, str]:
        """(filename, body, media type) for the full current result."""
        fmt = fmt.lower()
        if fmt not in MEDIA_TYPES:
            raise ValueError(f"Unsupported export format: {fmt}")
        view = view or self.view
        records = self.export_records(view)
        selection = self.context["selection"] if self.context is not None else self.selection
        body = render(fmt, records, export_headers(self.report.id, view), title=self.report.label)
        return export_filename(self.report, selection, fmt, view), body, MEDIA_TYPES[fmt]
