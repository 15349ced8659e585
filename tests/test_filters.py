import pytest

from leitura_core.filters import (
    AT_LEAST_ONE_MONTH,
    UL_RANGE_ORDERED,
    YEAR_PRESENT,
    FilterSelection,
    is_valid,
    normalize_selection,
    parse_route_bound,
    validate_selection,
)

ALL_RULES = (YEAR_PRESENT, AT_LEAST_ONE_MONTH, UL_RANGE_ORDERED)


def test_first_violated_rule_is_reported_in_fixed_order():
    result = validate_selection(FilterSelection(ul_from=10, ul_to=1), ALL_RULES)
    assert not result.ok
    assert result.rule == YEAR_PRESENT
    assert "ANO" in result.message

    result = validate_selection(FilterSelection(year="2024", ul_from=10, ul_to=1), ALL_RULES)
    assert result.rule == AT_LEAST_ONE_MONTH

    result = validate_selection(FilterSelection(year="2024", months=["JANEIRO"], ul_from=10, ul_to=1), ALL_RULES)
    assert result.rule == UL_RANGE_ORDERED


def test_rules_only_apply_when_configured():
    empty = FilterSelection()
    assert is_valid(empty)
    assert not is_valid(empty, (YEAR_PRESENT,))
    assert is_valid(FilterSelection(year="2024"), (YEAR_PRESENT,))


@pytest.mark.parametrize(
    "ul_from, ul_to, ok",
    [(1, 5, True), (5, 5, True), (6, 5, False), (None, 5, True), (6, None, True)],
)
def test_route_range_ordering(ul_from, ul_to, ok):
    assert is_valid(FilterSelection(ul_from=ul_from, ul_to=ul_to)) is ok


def test_unknown_rule_is_rejected():
    with pytest.raises(ValueError):
        validate_selection(FilterSelection(), ("noSuchRule",))


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12", 12),
        (" 7 ", 7),
        ("12.0", 12),
        ("abc", None),
        ("--5", None),
        ("²", None),
        ("nan", None),
        ("1e400", None),
        ("", None),
        (None, None),
        (3.0, 3),
    ],
)
def test_parse_route_bound_treats_non_numeric_as_absent(raw, expected):
    assert parse_route_bound(raw) == expected


def test_normalize_selection_cleans_raw_input():
    selection = normalize_selection(
        {"year": 2024, "month": ["JANEIRO", "JANEIRO", " "], "company": "  ", "ul_from": "x", "ul_to": "40"}
    )
    assert selection.year == "2024"
    assert selection.months == ["JANEIRO"]
    assert selection.company is None
    assert selection.ul_from is None
    assert selection.ul_to == 40


def test_snapshot_is_independent_of_the_live_selection():
    selection = FilterSelection(year="2024", months=["JANEIRO"], company="LESTE")
    copy = selection.snapshot()
    selection.months.append("FEVEREIRO")
    selection.clear_dependents()
    assert copy.months == ["JANEIRO"]
    assert copy.company == "LESTE"
    assert selection.company is None
