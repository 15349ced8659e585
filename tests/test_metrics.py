from leitura_core.engine import build_context, compute_payload, export_records, report_views
from leitura_core.filters import FilterSelection
from leitura_core.reports import (
    EVIDENCE_AUDIT,
    EVIDENCE_BY_TYPE,
    NOSB_IMPEDIMENTS,
    OVERVIEW,
    TECHNICIAN_CONTROL,
    get_report,
)


def _ctx(report_id, rows, settings, selection=None, **kwargs):
    return build_context(get_report(report_id), selection or FilterSelection(), rows, settings, **kwargs)


def test_evidence_audit_ranks_highest_indicator_first(evidence_rows, settings):
    payload = compute_payload(_ctx(EVIDENCE_AUDIT, evidence_rows, settings))
    items = payload["table"]["items"]
    assert [i["indicator_pct"] for i in items] == [100.0, 80.0, 25.0]
    assert [i["severity"] for i in items] == ["critical", "critical", "normal"]
    assert payload["kpis"]["requested"] == 19
    assert payload["charts"]["technician"][0]["name"] == "1002"


def test_evidence_audit_counts_raw_readings(settings):
    rows = [
        {"rz": "LESTE", "digitacao": 2, "foto": "OK"},
        {"rz": "LESTE", "digitacao": 2, "foto": "N-OK"},
        {"rz": "LESTE", "digitacao": 1, "foto": ""},
    ]
    ctx = _ctx(EVIDENCE_AUDIT, rows, settings)
    payload = compute_payload(ctx, view="company")
    row = payload["table"]["items"][0]
    assert (row["requested"], row["completed"], row["not_completed"]) == (2, 1, 1)
    assert row["indicator_pct"] == 50.0


def test_evidence_by_type_filters_client_side_and_ranks_worst_first(evidence_rows, settings):
    selection = FilterSelection(company="OESTE")
    ctx = _ctx(EVIDENCE_BY_TYPE, evidence_rows, settings, selection)
    payload = compute_payload(ctx)
    assert [i["indicator_pct"] for i in payload["table"]["items"]] == [25.0, 100.0]
    assert [a["indicator_pct"] for a in payload["alerts"]] == [25.0]
    assert payload["kpis"]["pending"] == 3


def test_evidence_by_type_full_efficiency_is_normal(settings):
    rows = [
        {"rz": "LESTE", "matr": "1001", "solicitadas": 10, "realizadas": 10},
        {"rz": "LESTE", "matr": "1002", "solicitadas": 10, "realizadas": 5},
        {"rz": "OESTE", "matr": "1003", "solicitadas": 10, "realizadas": 4},
    ]
    ctx = _ctx(EVIDENCE_BY_TYPE, rows, settings)
    detail = ctx["views"]["detail"]
    assert detail["indicator_pct"].tolist() == [40.0, 50.0, 100.0]
    assert detail["severity"].tolist() == ["critical", "normal", "normal"]
    # 50% sits on the alert cutoff and is not listed
    assert [a["indicator_pct"] for a in compute_payload(ctx)["alerts"]] == [40.0]


def test_technician_control_groups_and_filters_route_units(settings):
    rows = [
        {"Mes": "JANEIRO", "Ano": 2024, "rz": "LESTE", "ul": "10", "tipo": "NORMAL", "nl": "A1"},
        {"Mes": "JANEIRO", "Ano": 2024, "rz": "LESTE", "ul": "10", "tipo": "NORMAL", "nl": "00"},
        {"Mes": "JANEIRO", "Ano": 2024, "rz": "OESTE", "ul": "XYZ", "tipo": "NORMAL", "nl": "A1"},
        {"Mes": "JANEIRO", "Ano": 2024, "rz": "OESTE", "ul": "500", "tipo": "NORMAL", "nl": "A1"},
    ]
    selection = FilterSelection(ul_from=0, ul_to=100)
    code = next(iter(settings.technician_impediment_codes))
    for row in rows:
        if row["nl"] == "A1":
            row["nl"] = code
    ctx = _ctx(TECHNICIAN_CONTROL, rows, settings, selection)
    payload = compute_payload(ctx)
    items = payload["table"]["items"]
    assert len(items) == 2
    leste = next(i for i in items if i["company"] == "LESTE")
    assert (leste["to_execute"], leste["impediments"], leste["infm_pct"]) == (2, 1, 50.0)
    assert payload["kpis"]["to_execute"] == 3
    assert payload["charts"]["impediments_by_company"][0]["value"] == 1


def test_nosb_metrics(settings):
    rows = [
        {"rz": "LESTE", "matr": "1", "nosb_impedimento": "CÃO"},
        {"rz": "LESTE", "matr": "2", "nosb_impedimento": "PORTÃO"},
        {"rz": "OESTE", "matr": "1", "nosb_impedimento": "CÃO"},
    ]
    payload = compute_payload(_ctx(NOSB_IMPEDIMENTS, rows, settings))
    assert payload["kpis"] == {"count": 3, "top_motive": "CÃO", "technicians": 2}
    assert payload["charts"]["by_company"][0] == {"name": "LESTE", "value": 2}
    assert payload["motives"] == ["CÃO", "PORTÃO"]

    filtered = compute_payload(_ctx(NOSB_IMPEDIMENTS, rows, settings, motive="PORTÃO"))
    assert filtered["kpis"]["count"] == 1


def test_overview_impediments_relative_to_completed(settings):
    code = next(iter(settings.impediment_codes))
    rows = [
        {"Mes": "FEVEREIRO", "Ano": 2024, "tipo": "NORMAL", "nl": code},
        {"Mes": "JANEIRO", "Ano": 2024, "tipo": "NORMAL", "nl": "00"},
        {"Mes": "JANEIRO", "Ano": 2024, "tipo": "NORMAL", "nl": "00"},
        {"Mes": "JANEIRO", "Ano": 2023, "nl": code},
    ]
    payload = compute_payload(_ctx(OVERVIEW, rows, settings))
    assert payload["kpis"]["not_completed"] == 2
    assert payload["kpis"]["completed"] == 2
    assert payload["kpis"]["impediment_pct"] == 100.0
    assert [p["name"] for p in payload["charts"]["impediments_over_time"]] == [
        "JANEIRO 2023",
        "JANEIRO 2024",
        "FEVEREIRO 2024",
    ]
    types = {t["reading_type"]: t for t in payload["table"]["items"]}
    assert types["OUTROS"]["impediment_pct"] == 0.0


def test_overview_with_nothing_completed_is_zero(settings):
    payload = compute_payload(_ctx(OVERVIEW, [], settings))
    assert payload["kpis"] == {"total": 0, "not_completed": 0, "completed": 0, "impediment_pct": 0.0}


def test_every_report_exports_its_views(evidence_rows, settings):
    for report_id in (EVIDENCE_AUDIT, EVIDENCE_BY_TYPE, TECHNICIAN_CONTROL, NOSB_IMPEDIMENTS, OVERVIEW):
        ctx = _ctx(report_id, evidence_rows, settings)
        for view in report_views(get_report(report_id)):
            assert isinstance(export_records(ctx, view), list)
