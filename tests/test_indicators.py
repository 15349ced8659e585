import math
import random

import pandas as pd
import pytest

from leitura_core.indicators import (
    AggregateTotals,
    TechnicianTotals,
    aggregate_technician_totals,
    aggregate_totals,
    attach_indicator,
    efficiency_pct,
    group_indicators,
    group_technician,
    infm_pct,
    rank_rows,
    safe_pct,
    technician_counters,
)
from leitura_core.normalize import normalize_frame


def test_scenario_totals_and_efficiency():
    totals = aggregate_totals([{"requested": 10, "completed": 8}, {"requested": 5, "completed": 5}])
    assert totals == AggregateTotals(requested=15, completed=13, not_completed=0)
    assert round(totals.efficiency_pct, 2) == 86.67


def test_zero_denominator_is_zero_not_nan():
    assert efficiency_pct(0, 0) == 0.0
    assert efficiency_pct(0, 5) == 0.0
    assert safe_pct(3, float("nan")) == 0.0
    assert AggregateTotals().efficiency_pct == 0.0
    assert infm_pct(0, 0) == 0.0


def test_infm_round_trip():
    totals = TechnicianTotals(to_execute=100, impediments=30)
    assert totals.total_general == 70
    assert totals.infm_pct == 70.0


def test_totals_are_order_invariant():
    rows = [{"requested": 0.1 * n, "completed": 0.07 * n, "not_completed": 0.03 * n} for n in range(1, 200)]
    expected = aggregate_totals(rows)
    rng = random.Random(7)
    for _ in range(5):
        rng.shuffle(rows)
        assert aggregate_totals(rows) == expected


def test_attach_indicator_keeps_source_values_only_when_present():
    frame = normalize_frame(
        [
            {"solicitadas": 4, "realizadas": 1, "indicador": 99},
            {"solicitadas": 4, "realizadas": 1},
            {"solicitadas": 0, "realizadas": 0},
        ]
    )
    kept = attach_indicator(frame)
    assert kept["indicator_pct"].tolist() == [99.0, 25.0, 0.0]
    recomputed = attach_indicator(frame, keep_source=False)
    assert recomputed["indicator_pct"].tolist() == [25.0, 25.0, 0.0]
    assert not recomputed["indicator_pct"].isna().any()


def test_technician_counters_for_raw_and_pre_aggregated_rows():
    frame = normalize_frame(
        [
            {"rz": "LESTE", "nl": "A1"},
            {"rz": "LESTE", "nl": "99"},
            {"rz": "OESTE", "leituras_em_geral": 10, "impedimentos": 4},
        ]
    )
    counted = technician_counters(frame, {"A1"})
    assert counted["to_execute"].tolist() == [1, 1, 10]
    assert counted["impediments"].tolist() == [1, 0, 4]
    totals = aggregate_technician_totals(counted)
    assert (totals.to_execute, totals.impediments) == (12, 5)

    by_company = group_technician(counted, ["company"]).set_index("company")
    assert by_company.loc["LESTE", "infm_pct"] == 50.0
    assert by_company.loc["OESTE", "total_general"] == 6


def test_group_indicators_recomputes_from_sums():
    df = pd.DataFrame(
        {"company": ["A", "A", "B"], "requested": [10, 5, 0], "completed": [8, 5, 0], "not_completed": [2, 0, 0]}
    )
    grouped = group_indicators(df, ["company"]).set_index("company")
    assert math.isclose(grouped.loc["A", "indicator_pct"], 13 / 15 * 100)
    assert grouped.loc["B", "indicator_pct"] == 0.0


@pytest.mark.parametrize("ascending", [True, False])
def test_rank_rows_is_deterministic(ascending):
    df = pd.DataFrame({"indicator_pct": [50.0, 10.0, 50.0], "company": ["Z", "M", "A"]})
    ranked = rank_rows(df, "indicator_pct", ascending=ascending, tiebreak=("company",))
    ties = ranked[ranked["indicator_pct"] == 50.0]["company"].tolist()
    assert ties == ["A", "Z"]
    shuffled = df.sample(frac=1, random_state=3)
    again = rank_rows(shuffled, "indicator_pct", ascending=ascending, tiebreak=("company",))
    assert again["company"].tolist() == ranked["company"].tolist()
