from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional
from urllib.parse import quote

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from leitura_api.schemas import (
    BaseOptionsResponse,
    DependentOptionsResponse,
    FilterSelectionModel,
    ReportInfo,
)
from leitura_core.config import Settings, configure_logging, load_settings
from leitura_core.engine import report_views
from leitura_core.errors import LeituraError, OptionLoadError, UnknownReportError
from leitura_core.filters import FilterSelection, normalize_selection
from leitura_core.options import FilterOptionRegistry, load_base_options, load_dependent_options
from leitura_core.reports import REPORTS, get_report
from leitura_core.screen import DataSource, ReportScreen, ScreenState
from leitura_core.sinks import MEDIA_TYPES
from leitura_core.source import RpcDataSource

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def get_source(settings: Settings = Depends(get_settings)) -> DataSource:
    return RpcDataSource(settings)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(get_settings().log_level)
    yield


app = FastAPI(title="SAL Leitura API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _finite_or_none(value: object) -> float | None:
    number = float(value)  # type: ignore[arg-type]
    return number if math.isfinite(number) else None


# Indicator payloads carry numpy scalars and may carry NaN from empty groups.
PAYLOAD_ENCODERS = {
    type(pd.NA): lambda _: None,
    np.integer: int,
    np.bool_: bool,
    float: _finite_or_none,
    np.floating: _finite_or_none,
    np.ndarray: lambda arr: arr.tolist(),
}


def _json(data: object, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(data, custom_encoder=PAYLOAD_ENCODERS))


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    if isinstance(exc, LeituraError):
        return JSONResponse(status_code=status_code, content=exc.to_payload())
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _selection_from_model(model: FilterSelectionModel) -> FilterSelection:
    return normalize_selection(model.model_dump())


async def _run_report(
    report_id: str,
    filters: FilterSelectionModel,
    source: DataSource,
    settings: Settings,
    *,
    view: str,
    motive: Optional[str],
) -> tuple[ReportScreen, Optional[JSONResponse]]:
    """Validate and query one report; the response is set when the screen ended in ERROR."""
    screen = ReportScreen(get_report(report_id), source, settings)
    screen.apply(_selection_from_model(filters))
    screen.set_view(view)
    screen.set_motive(motive)
    state = await screen.generate()
    if screen.validation is not None and not screen.validation.ok:
        body = {"error": "validation_error", "rule": screen.validation.rule, "message": screen.validation.message}
        return screen, JSONResponse(status_code=400, content=body)
    if state == ScreenState.ERROR:
        return screen, JSONResponse(status_code=502, content={"error": "query_error", "message": screen.error})
    return screen, None


@app.get("/meta/options")
async def meta_options(source: DataSource = Depends(get_source)):
    try:
        registry = await load_base_options(source, FilterOptionRegistry())
        options = registry.to_dict()
        return _json(BaseOptionsResponse(years=options["years"], months=options["months"]).model_dump())
    except OptionLoadError as exc:
        logger.warning("meta_options failed: %s", exc.message)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.get("/meta/options/dependent")
async def meta_dependent_options(
    year: str = Query(default=""),
    month: str = Query(default=""),
    source: DataSource = Depends(get_source),
):
    try:
        registry, _ = await load_dependent_options(
            source, FilterOptionRegistry(), FilterSelection(year=year or None), year, month
        )
        options = registry.to_dict()
        return _json(
            DependentOptionsResponse(companies=options["companies"], technicians=options["technicians"]).model_dump()
        )
    except OptionLoadError as exc:
        logger.warning("meta_dependent_options failed: %s", exc.message)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("meta_dependent_options failed")
        return _error(exc)


@app.get("/meta/reports")
def meta_reports():
    reports = [
        ReportInfo(id=r.id, label=r.label, rules=list(r.rules), views=report_views(r)).model_dump()
        for r in REPORTS.values()
    ]
    return _json({"reports": reports})


@app.post("/reports/{report_id}")
async def report(
    report_id: str,
    filters: FilterSelectionModel,
    page: int = Query(default=1),
    view: str = Query(default="detail"),
    motive: Optional[str] = Query(default=None),
    source: DataSource = Depends(get_source),
    settings: Settings = Depends(get_settings),
):
    try:
        screen, failure = await _run_report(report_id, filters, source, settings, view=view, motive=motive)
        if failure is not None:
            return failure
        return _json(screen.payload(page))
    except UnknownReportError as exc:
        return _error(exc, 404)
    except ValueError as exc:
        return JSONResponse(status_code=400, content={"error": "bad_request", "message": str(exc)})
    except Exception as exc:
        logger.exception("report failed")
        return _error(exc)


@app.post("/export/{report_id}/{fmt}")
async def export_report(
    report_id: str,
    fmt: str,
    filters: FilterSelectionModel,
    view: str = Query(default="detail"),
    motive: Optional[str] = Query(default=None),
    source: DataSource = Depends(get_source),
    settings: Settings = Depends(get_settings),
):
    fmt = fmt.lower()
    if fmt not in MEDIA_TYPES:
        return JSONResponse(status_code=400, content={"error": "bad_request", "message": f"Unsupported export format: {fmt}"})
    try:
        screen, failure = await _run_report(report_id, filters, source, settings, view=view, motive=motive)
        if failure is not None:
            return failure
        filename, body, media_type = screen.export(fmt, view)
    except UnknownReportError as exc:
        return _error(exc, 404)
    except ValueError as exc:
        return JSONResponse(status_code=400, content={"error": "bad_request", "message": str(exc)})
    except Exception as exc:
        logger.exception("export_report failed")
        return _error(exc)
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
