import asyncio

import pytest

from leitura_core.reports import EVIDENCE_AUDIT, NOSB_IMPEDIMENTS, get_report
from leitura_core.screen import ReportScreen, ScreenState
from tests.conftest import FakeSource


def rows_for_year(params):
    year = params["p_ano"]
    return [{"Mes": "JANEIRO", "Ano": year, "rz": f"RZ{year}", "solicitadas": 1, "realizadas": 1}]


def test_invalid_selection_never_queries():
    source = FakeSource()
    screen = ReportScreen(get_report(NOSB_IMPEDIMENTS), source)
    screen.set_months(["JANEIRO"])
    state = asyncio.run(screen.generate())
    assert state is ScreenState.ERROR
    assert screen.validation.rule == "yearPresent"
    assert screen.error == screen.validation.message
    assert source.query_calls == []


def test_successful_query_reaches_ready_on_first_page(evidence_rows):
    source = FakeSource(rows={EVIDENCE_AUDIT: evidence_rows})
    screen = ReportScreen(get_report(EVIDENCE_AUDIT), source)
    screen.set_year("2024")
    assert asyncio.run(screen.generate()) is ScreenState.READY
    assert source.query_calls[0][1]["p_ano"] == 2024
    payload = screen.payload()
    assert payload["state"] == "ready"
    assert payload["table"]["page"] == 1
    assert payload["kpis"]["requested"] == 19


def test_stale_response_is_discarded():
    source = FakeSource(rows={EVIDENCE_AUDIT: rows_for_year})
    screen = ReportScreen(get_report(EVIDENCE_AUDIT), source)

    async def scenario():
        first, second = asyncio.Event(), asyncio.Event()
        source.gates[EVIDENCE_AUDIT] = [first, second]
        screen.set_year("2023")
        older = asyncio.create_task(screen.generate())
        await asyncio.sleep(0)
        screen.set_year("2024")
        newer = asyncio.create_task(screen.generate())
        await asyncio.sleep(0)
        second.set()
        await newer
        first.set()
        await older

    asyncio.run(scenario())
    assert screen.state is ScreenState.READY
    assert screen.context["selection"].year == "2024"
    assert screen.context["frame"]["company"].tolist() == ["RZ2024"]


def test_rejected_submit_discards_in_flight_response():
    source = FakeSource(rows={EVIDENCE_AUDIT: rows_for_year})
    screen = ReportScreen(get_report(EVIDENCE_AUDIT), source)

    async def scenario():
        gate = asyncio.Event()
        source.gates[EVIDENCE_AUDIT] = [gate]
        screen.set_year("2023")
        pending = asyncio.create_task(screen.generate())
        await asyncio.sleep(0)
        screen.set_route_range(10, 5)
        assert await screen.generate() is ScreenState.ERROR
        gate.set()
        await pending

    asyncio.run(scenario())
    assert screen.state is ScreenState.ERROR
    assert screen.validation.rule == "ulRangeOrdered"
    assert screen.context is None
    assert len(source.query_calls) == 1


def test_filter_change_discards_in_flight_response(evidence_rows):
    source = FakeSource(rows={EVIDENCE_AUDIT: evidence_rows})
    screen = ReportScreen(get_report(EVIDENCE_AUDIT), source)
    asyncio.run(screen.generate())
    previous = screen.context

    async def scenario():
        gate = asyncio.Event()
        source.gates[EVIDENCE_AUDIT] = [gate]
        pending = asyncio.create_task(screen.generate())
        await asyncio.sleep(0)
        screen.set_year("2024")
        gate.set()
        await pending

    asyncio.run(scenario())
    assert screen.state is ScreenState.IDLE
    # the last ready result stays visible until the next submit
    assert screen.context is previous


def test_dependent_setters_reject_values_outside_loaded_lists(source):
    screen = ReportScreen(get_report(EVIDENCE_AUDIT), source)
    screen.set_year("2024")
    screen.set_months(["JANEIRO"])
    asyncio.run(screen.refresh_dependent_options())

    screen.set_company("LESTE")
    screen.set_technician("1001")
    with pytest.raises(ValueError):
        screen.set_company("NAO_EXISTE")
    with pytest.raises(ValueError):
        screen.set_technician("9999")
    assert (screen.selection.company, screen.selection.technician) == ("LESTE", "1001")

    screen.set_company(None)
    assert screen.selection.company is None


def test_query_failure_restores_previous_result(evidence_rows):
    source = FakeSource(rows={EVIDENCE_AUDIT: evidence_rows})
    screen = ReportScreen(get_report(EVIDENCE_AUDIT), source)
    asyncio.run(screen.generate())
    previous = screen.context

    source.fail_query = "Falha: tempo esgotado"
    assert asyncio.run(screen.generate()) is ScreenState.ERROR
    assert screen.error == "Falha: tempo esgotado"
    assert screen.context is previous
    assert screen.payload()["table"]["total_items"] == 3


def test_query_failure_without_previous_result():
    source = FakeSource()
    source.fail_query = "boom"
    screen = ReportScreen(get_report(EVIDENCE_AUDIT), source)
    asyncio.run(screen.generate())
    assert screen.context is None
    assert screen.payload()["table"] is None


def test_filter_change_returns_to_idle_and_reset_clears(evidence_rows):
    source = FakeSource(rows={EVIDENCE_AUDIT: evidence_rows})
    screen = ReportScreen(get_report(EVIDENCE_AUDIT), source)
    asyncio.run(screen.generate())
    screen.set_route_range("10", "x")
    assert screen.state is ScreenState.IDLE
    assert (screen.selection.ul_from, screen.selection.ul_to) == (10, None)

    screen.reset()
    assert screen.context is None
    assert screen.selection.ul_from is None
    assert screen.state is ScreenState.IDLE


def test_view_switch_resets_pager(evidence_rows):
    source = FakeSource(rows={EVIDENCE_AUDIT: evidence_rows * 20})
    screen = ReportScreen(get_report(EVIDENCE_AUDIT), source)
    asyncio.run(screen.generate())
    screen.payload(page=2)
    assert screen.pager.page_number == 2
    screen.set_view("company")
    assert screen.pager.page_number == 1
    assert screen.payload()["view"] == "company"
