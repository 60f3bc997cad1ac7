"""Explicit UI state of one record grid and the pure page derivation over it.

:class:`GridState` owns search, select filters, the date range, the sort,
pagination, column visibility and the selection set.  Its mutators enforce
the grid invariants directly:

* any change to search, a select filter, the date range or the page size
  resets ``current_page`` to 1;
* ``current_page`` is clamped into ``[1, total_pages]`` whenever a page is
  derived, so a shrinking record set never leaves it past the last page;
* visible columns are always kept in descriptor order;
* the "select all" checkbox is derived from the selection and the visible
  page ids, never stored.

:func:`compute_page` runs filter -> sort -> paginate for a state and returns
a :class:`GridPage`.
"""

import datetime
from dataclasses import dataclass, field
from typing import Any

import polars as pl

from admissions_grid.models import ALL_SENTINEL
from admissions_grid.pipeline import (
    apply_filters,
    apply_sort,
    frame_to_rows,
    paginate,
    range_label,
    total_pages,
)
from admissions_grid.views import ViewDefinition


def parse_date_bound(value: str | datetime.date | None) -> datetime.date | None:
    """Turn a ``YYYY-MM-DD`` input value into a date; blank means unset.

    Raises:
        ValueError: If a non-blank value is not an ISO date.
    """
    if value is None or isinstance(value, datetime.date):
        return value
    value = value.strip()
    if not value:
        return None
    return datetime.date.fromisoformat(value[:10])


@dataclass
class GridState:
    """Filter, sort, pagination, visibility and selection state of a grid."""

    search: str = ""
    filters: dict[str, str] = field(default_factory=dict)
    date_start: datetime.date | None = None
    date_end: datetime.date | None = None
    sort_key: str | None = None
    sort_descending: bool = False
    page_size: int = 10
    current_page: int = 1
    visible_columns: list[str] = field(default_factory=list)
    selected_ids: list[int] = field(default_factory=list)

    @classmethod
    def for_view(cls, view: ViewDefinition) -> "GridState":
        """Default state for *view*: every column visible, no filters."""
        return cls(
            filters={flt.name: ALL_SENTINEL for flt in view.select_filters},
            page_size=view.default_page_size,
            visible_columns=view.column_fields,
        )

    # -- Filters ----------------------------------------------------------

    def set_search(self, text: str) -> None:
        self.search = text
        self.current_page = 1

    def set_filter(self, name: str, value: str) -> None:
        self.filters = {**self.filters, name: value or ALL_SENTINEL}
        self.current_page = 1

    def set_date_range(
        self,
        start: str | datetime.date | None,
        end: str | datetime.date | None,
    ) -> None:
        self.date_start = parse_date_bound(start)
        self.date_end = parse_date_bound(end)
        self.current_page = 1

    def clear_filters(self) -> None:
        """Reset search, select filters and the date range."""
        self.search = ""
        self.filters = {name: ALL_SENTINEL for name in self.filters}
        self.date_start = None
        self.date_end = None
        self.current_page = 1

    # -- Sort -------------------------------------------------------------

    def sort_by(self, key: str) -> None:
        """Sort by *key*: a new key sorts ascending, the same key toggles."""
        if self.sort_key == key:
            self.sort_descending = not self.sort_descending
        else:
            self.sort_key = key
            self.sort_descending = False

    # -- Pagination -------------------------------------------------------

    def set_page_size(self, size: int) -> None:
        if size < 1:
            raise ValueError(f"page size must be positive, got {size}")
        self.page_size = size
        self.current_page = 1

    def clamp_page(self, count: int) -> int:
        """Force ``current_page`` into ``[1, total_pages(count)]``; return the bound."""
        last = total_pages(count, self.page_size)
        self.current_page = min(max(1, self.current_page), last)
        return last

    def go_to_page(self, page: int, count: int) -> None:
        self.current_page = page
        self.clamp_page(count)

    def first_page(self) -> None:
        self.current_page = 1

    def previous_page(self) -> None:
        if self.current_page > 1:
            self.current_page -= 1

    def next_page(self, count: int) -> None:
        if self.current_page < total_pages(count, self.page_size):
            self.current_page += 1

    def last_page(self, count: int) -> None:
        self.current_page = total_pages(count, self.page_size)

    # -- Column visibility ------------------------------------------------

    def toggle_column(self, key: str, view: ViewDefinition) -> None:
        """Show or hide column *key*, keeping descriptor order.

        Keys that are not column descriptors (including the always-rendered
        select and actions columns) are ignored.
        """
        order = view.column_fields
        if key not in order:
            return
        shown = set(self.visible_columns)
        if key in shown:
            shown.discard(key)
        else:
            shown.add(key)
        self.visible_columns = [k for k in order if k in shown]

    # -- Selection --------------------------------------------------------

    def toggle_row(self, record_id: int) -> None:
        if record_id in self.selected_ids:
            self.selected_ids = [i for i in self.selected_ids if i != record_id]
        else:
            self.selected_ids = [*self.selected_ids, record_id]

    def select_all_checked(self, page_ids: list[int]) -> bool:
        """True iff the page is non-empty and every page id is selected."""
        selected = set(self.selected_ids)
        return bool(page_ids) and all(i in selected for i in page_ids)

    def toggle_select_all(self, page_ids: list[int]) -> None:
        """Select every id on the page, or deselect them if all already are.

        Only ids of the visible page are touched: selections made on other
        pages are kept.
        """
        if self.select_all_checked(page_ids):
            on_page = set(page_ids)
            self.selected_ids = [i for i in self.selected_ids if i not in on_page]
        else:
            selected = set(self.selected_ids)
            self.selected_ids = [*self.selected_ids, *(i for i in page_ids if i not in selected)]

    def clear_selection(self) -> None:
        self.selected_ids = []


@dataclass
class GridPage:
    """Result of one pipeline run."""

    rows: list[dict[str, Any]]
    page_ids: list[int]
    filtered_count: int
    total_pages: int
    current_page: int
    range_label: str
    select_all_checked: bool
    result: pl.DataFrame = field(repr=False)

    @property
    def can_go_back(self) -> bool:
        return self.current_page > 1

    @property
    def can_go_forward(self) -> bool:
        return self.current_page < self.total_pages


def filtered_sorted(frame: pl.DataFrame, view: ViewDefinition, state: GridState) -> pl.DataFrame:
    """The full filtered+sorted result set (what CSV export writes)."""
    return apply_sort(apply_filters(frame, view, state), view, state)


def compute_page(frame: pl.DataFrame, view: ViewDefinition, state: GridState) -> GridPage:
    """Run filter -> sort -> paginate for *state* over *frame*.

    Clamps ``state.current_page`` in place before slicing.
    """
    result = filtered_sorted(frame, view, state)
    count = result.height
    last = state.clamp_page(count)
    page_df = paginate(result, state.page_size, state.current_page)
    page_ids: list[int] = page_df[view.id_field].to_list()

    return GridPage(
        rows=frame_to_rows(page_df, view),
        page_ids=page_ids,
        filtered_count=count,
        total_pages=last,
        current_page=state.current_page,
        range_label=range_label(count, state.page_size, state.current_page),
        select_all_checked=state.select_all_checked(page_ids),
        result=result,
    )
