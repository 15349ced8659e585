import pandas as pd
import pytest

from leitura_core.pager import PagerState, clamp_page, paginate, total_pages


def test_fifty_two_items_make_three_pages():
    assert total_pages(52, 25) == 3
    page = paginate(list(range(52)), 3, 25)
    assert page.total_pages == 3
    assert page.items == [50, 51]


@pytest.mark.parametrize("requested, expected", [(0, 1), (-3, 1), (4, 3), (99, 3), ("2", 2), (None, 1)])
def test_out_of_range_pages_are_clamped(requested, expected):
    assert clamp_page(requested, 3) == expected
    assert paginate(list(range(52)), requested, 25).page_number == expected


def test_empty_result_still_has_one_page():
    page = paginate([], 5, 25)
    assert (page.page_number, page.total_pages, page.items) == (1, 1, [])


def test_dataframe_pages_keep_row_order():
    df = pd.DataFrame({"n": range(30)})
    page = paginate(df, 2, 25)
    assert [r["n"] for r in page.records()] == [25, 26, 27, 28, 29]
    assert page.to_dict()["total_items"] == 30


def test_pager_state_resets_to_first_page():
    pager = PagerState(25)
    pager.set_result(52)
    assert pager.next() == 2
    assert pager.next() == 3
    assert pager.next() == 3
    pager.set_page_size(10)
    assert (pager.page_number, pager.total_pages) == (1, 6)
    pager.go_to(4)
    pager.set_result(52)
    assert pager.page_number == 1
    assert pager.previous() == 1


def test_invalid_page_size_is_rejected():
    with pytest.raises(ValueError):
        PagerState(0)
