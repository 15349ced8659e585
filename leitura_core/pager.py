from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Union

import pandas as pd

from leitura_core.config import DEFAULT_PAGE_SIZE

Items = Union[pd.DataFrame, Sequence[Any]]


def total_pages(total_items: int, page_size: int) -> int:
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    return max(1, math.ceil(total_items / page_size))


def clamp_page(page_number: int, pages: int) -> int:
    try:
        page_number = int(page_number)
    except (TypeError, ValueError):
        page_number = 1
    return max(1, min(pages, page_number))


@dataclass(frozen=True)
class Page:
    items: Items
    page_number: int
    total_pages: int
    total_items: int
    page_size: int

    def records(self) -> List[Dict[str, Any]]:
        if isinstance(self.items, pd.DataFrame):
            return self.items.to_dict(orient="records")
        return list(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": self.records(),
            "page": self.page_number,
            "total_pages": self.total_pages,
            "total_items": self.total_items,
            "page_size": self.page_size,
        }


def paginate(items: Items, page_number: int, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    n = len(items)
    pages = total_pages(n, page_size)
    page_number = clamp_page(page_number, pages)
    start = (page_number - 1) * page_size
    end = page_number * page_size
    window = items.iloc[start:end] if isinstance(items, pd.DataFrame) else list(items[start:end])
    return Page(items=window, page_number=page_number, total_pages=pages, total_items=n, page_size=page_size)


class PagerState:
    """Current page for one result set; any change of data or size goes back to page 1."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.page_size = page_size
        self.page_number = 1
        self.total_items = 0

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_items, self.page_size)

    def set_result(self, total_items: int) -> None:
        self.total_items = max(0, int(total_items))
        self.page_number = 1

    def set_page_size(self, page_size: int) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.page_size = page_size
        self.page_number = 1

    def go_to(self, page_number: int) -> int:
        self.page_number = clamp_page(page_number, self.total_pages)
        return self.page_number

    def next(self) -> int:
        return self.go_to(self.page_number + 1)

    def previous(self) -> int:
        return self.go_to(self.page_number - 1)

    def window(self, items: Items) -> Page:
        return paginate(items, self.page_number, self.page_size)
