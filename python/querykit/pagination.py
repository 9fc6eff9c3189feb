"""Page arithmetic for QueryBuilder.paginate()."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


class Paginator:
    """Pagination state for a result set of ``total_items`` rows.

    The requested page is clamped into ``[1, total_pages]``; an empty result
    set still has one (empty) page.

    Example:
        >>> p = Paginator(total_items=8, per_page=3, current_page=2)
        >>> p.total_pages, p.offset
        (3, 3)
    """

    def __init__(self, total_items: int, per_page: int, current_page: int = 1) -> None:
        if total_items < 0:
            raise ValueError("Total items cannot be negative.")
        if per_page < 1:
            raise ValueError("Items per page must be at least 1.")

        self.total_items = total_items
        self.per_page = per_page
        self.total_pages = max(1, math.ceil(total_items / per_page))
        self.current_page = min(max(current_page, 1), self.total_pages)

    @property
    def offset(self) -> int:
        return (self.current_page - 1) * self.per_page

    @property
    def items_on_current_page(self) -> int:
        if self.current_page < self.total_pages:
            return self.per_page
        return self.total_items - (self.total_pages - 1) * self.per_page

    @property
    def has_pages(self) -> bool:
        return self.total_pages > 1

    @property
    def has_prev_page(self) -> bool:
        return self.current_page > 1

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def prev_page(self) -> int | None:
        return self.current_page - 1 if self.has_prev_page else None

    @property
    def next_page(self) -> int | None:
        return self.current_page + 1 if self.has_next_page else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_items": self.total_items,
            "per_page": self.per_page,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "offset": self.offset,
        }

    def __repr__(self) -> str:
        return (
            f"<Paginator page={self.current_page}/{self.total_pages} "
            f"per_page={self.per_page} total={self.total_items}>"
        )


@dataclass
class Page:
    """Result of paginate(): the paginator plus the rows of the current page."""

    paginator: Paginator
    items: list[Any]

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
