"""HTTP client for the reporting backend's stored-procedure endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from leitura_core.config import Settings
from leitura_core.errors import OptionLoadError, QueryError
from leitura_core.options import DIMENSIONS, MONTH, YEAR
from leitura_core.reports import ReportSpec

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("message", "error", "details", "hint"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


def _rows(body: Any) -> List[Any]:
    if body is None:
        return []
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in ("data", "rows", "result"):
            if isinstance(body.get(key), list):
                return body[key]
        return [body]
    return []


def option_params(constraints: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not constraints:
        return {}
    params: Dict[str, Any] = {}
    year = constraints.get(YEAR)
    if year not in (None, ""):
        try:
            params["p_ano"] = int(str(year).strip())
        except ValueError:
            params["p_ano"] = str(year)
    month = constraints.get(MONTH)
    if month not in (None, ""):
        params["p_mes"] = str(month)
    return params


class RpcDataSource:
    """Calls ``POST {service_url}/rest/v1/rpc/{name}`` with the request parameters as JSON."""

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.service_key:
            headers["apikey"] = self.settings.service_key
            headers["Authorization"] = f"Bearer {self.settings.service_key}"
        return headers

    async def call(self, name: str, params: Mapping[str, Any]) -> List[Any]:
        url = f"{self.settings.service_url}/rest/v1/rpc/{name}"
        async with httpx.AsyncClient(
            timeout=self.settings.request_timeout,
            headers=self._headers(),
            transport=self._transport,
        ) as client:
            response = await client.post(url, json=dict(params))
        if response.status_code >= 400:
            raise RuntimeError(_error_message(response))
        return _rows(response.json() if response.content else None)

    async def fetch_options(self, dimension: str, constraints: Optional[Mapping[str, Any]] = None) -> List[Any]:
        spec = DIMENSIONS[dimension]
        try:
            return await self.call(spec.rpc, option_params(constraints))
        except (httpx.HTTPError, RuntimeError, ValueError) as exc:
            logger.warning("option fetch %s failed: %s", spec.rpc, exc)
            raise OptionLoadError(str(exc)) from exc

    async def query(self, report: ReportSpec, params: Mapping[str, Any]) -> List[Any]:
        try:
            rows = await self.call(report.rpc, params)
        except (httpx.HTTPError, RuntimeError, ValueError) as exc:
            logger.warning("query %s failed: %s", report.rpc, exc)
            raise QueryError(str(exc)) from exc
        logger.info("query %s returned %d rows", report.rpc, len(rows))
        return rows
