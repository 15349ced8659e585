"""Shared pytest fixtures: an in-memory data source and sample rows."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional

import pytest

from leitura_core.config import Settings
from leitura_core.errors import OptionLoadError, QueryError
from leitura_core.options import COMPANY, MONTH, TECHNICIAN, YEAR


class FakeSource:
    """Answers option and query calls from dictionaries; records every call."""

    def __init__(
        self,
        *,
        options: Optional[Dict[str, Any]] = None,
        rows: Optional[Dict[str, List[Any]]] = None,
    ) -> None:
        self.options = options or {}
        self.rows = rows or {}
        self.option_calls: List[tuple] = []
        self.query_calls: List[tuple] = []
        self.fail_options: Optional[str] = None
        self.fail_query: Optional[str] = None
        # report id -> list of asyncio.Event to wait on, consumed in call order
        self.gates: Dict[str, List[asyncio.Event]] = {}

    async def fetch_options(self, dimension: str, constraints: Optional[Mapping[str, Any]] = None) -> List[Any]:
        self.option_calls.append((dimension, dict(constraints or {})))
        if self.fail_options:
            raise OptionLoadError(self.fail_options)
        value = self.options.get(dimension, [])
        if callable(value):
            return value(constraints or {})
        return list(value)

    async def query(self, report, params: Mapping[str, Any]) -> List[Any]:
        self.query_calls.append((report.id, dict(params)))
        gates = self.gates.get(report.id)
        if gates:
            await gates.pop(0).wait()
        if self.fail_query:
            raise QueryError(self.fail_query)
        value = self.rows.get(report.id, [])
        if callable(value):
            return value(params)
        return list(value)


def companies_for(constraints: Mapping[str, Any]) -> List[Dict[str, str]]:
    if constraints.get(YEAR) == "2024":
        return [{"rz": "LESTE"}, {"rz": "OESTE"}]
    return [{"rz": "NORTE"}]


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource(
        options={
            YEAR: [{"ano": 2023}, {"ano": 2024}, {"ano": None}],
            MONTH: [{"mes": "fevereiro"}, {"mes": "JANEIRO"}, {"mes": "Todos"}],
            COMPANY: companies_for,
            TECHNICIAN: [{"matr": "1001"}, {"matr": "1002"}],
        },
    )


@pytest.fixture
def evidence_rows() -> List[Dict[str, Any]]:
    return [
        {"Mes": "JANEIRO", "Ano": 2024, "rz": "LESTE", "ul": "101", "matr": "1001", "solicitadas": 10, "realizadas": 8, "nao_realizadas": 2},
        {"Mes": "JANEIRO", "Ano": 2024, "rz": "OESTE", "ul": "202", "matr": "1002", "solicitadas": 5, "realizadas": 5, "nao_realizadas": 0},
        {"Mes": "JANEIRO", "Ano": 2024, "rz": "OESTE", "ul": "203", "matr": "1001", "solicitadas": 4, "realizadas": 1, "nao_realizadas": 3},
    ]
