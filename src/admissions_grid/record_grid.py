"""Reusable in-memory record grid: state mixin, backend registry, and UI helpers.

Users inherit from :class:`RecordGridMixin` **and** ``rx.State``, register
a :class:`~admissions_grid.backend.RecordBackend` under a key, call
:meth:`RecordGridMixin.set_grid_records` from an ``on_load`` handler and
render with :func:`record_grid`.

``RecordGridMixin`` is a Reflex **state mixin** (``mixin=True``).  Each
subclass gets its own independent set of ``grid_*`` reactive variables, so
the applicants and users grids never interfere with each other.

Every handler follows the same shape: rebuild the explicit
:class:`~admissions_grid.grid_state.GridState` from the vars, mutate it,
run the pure filter -> sort -> paginate pipeline and publish the result.
Mutations go to the backend and are followed by a full reload.

Typical usage::

    from admissions_grid import APPLICANTS_VIEW, RecordGridMixin, record_grid

    class ApplicantsState(RecordGridMixin, rx.State):
        def load(self):
            yield from self.set_grid_records("applicants", "applicants")

    def index():
        return record_grid(ApplicantsState, APPLICANTS_VIEW)
"""

import datetime
import logging
from typing import Any

import reflex as rx

from admissions_grid.backend import RecordBackend
from admissions_grid.errors import RecordGridError, RecordValidationError, first_errors
from admissions_grid.grid_state import GridState, compute_page, filtered_sorted, parse_date_bound
from admissions_grid.models import ALL_SENTINEL
from admissions_grid.pipeline import (
    build_csv,
    describe_state,
    export_filename,
    header_dicts,
    records_to_frame,
)
from admissions_grid.views import ViewDefinition, get_view, is_permitted

logger = logging.getLogger(__name__)

MISSING_DETAIL: str = "N/A"

_NO_TARGET: int = -1


# ---------------------------------------------------------------------------
# Module-level backend registry
# ---------------------------------------------------------------------------

_backend_registry: dict[str, RecordBackend] = {}


def register_backend(key: str, backend: RecordBackend) -> None:
    """Make *backend* reachable from grid states under *key*.

    Backends hold live objects (connections, in-memory stores) that cannot
    be serialised into ``rx.State``, so states only keep the key.
    """
    _backend_registry[key] = backend


def get_backend(key: str) -> RecordBackend:
    try:
        return _backend_registry[key]
    except KeyError:
        raise RecordGridError(f"No record backend registered as {key!r}") from None


def _detail_value(value: Any) -> str:
    if value is None or value == "":
        return MISSING_DETAIL
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)


# ---------------------------------------------------------------------------
# RecordGridMixin
# ---------------------------------------------------------------------------

class RecordGridMixin(rx.State, mixin=True):
    """Reflex State mixin for a searchable, filterable, paginated record table.

    .. important::

       Subclasses **must** also inherit from ``rx.State`` so that Reflex's
       metaclass registers the vars on the child::

           class UsersState(RecordGridMixin, rx.State):
               ...

    All state variable names are prefixed with ``grid_`` to avoid
    collisions when composed with other state.
    """

    # -- Frontend state vars --
    grid_title: str = ""
    grid_rows: list[dict[str, Any]] = []
    grid_headers: list[dict[str, Any]] = []
    grid_loaded: bool = False
    grid_loading: bool = False
    grid_busy: bool = False

    grid_search: str = ""
    grid_filters: dict[str, str] = {}
    grid_date_start: str = ""
    grid_date_end: str = ""
    grid_sort_key: str = ""
    grid_sort_descending: bool = False
    grid_visible_columns: list[str] = []

    grid_page_size: int = 10
    grid_current_page: int = 1
    grid_total_pages: int = 1
    grid_can_go_back: bool = False
    grid_can_go_forward: bool = False
    grid_range_label: str = "0 - 0 of 0"
    grid_filtered_count: int = 0
    grid_total_count: int = 0
    grid_summary: str = "No active filters or sorts."

    grid_page_ids: list[int] = []
    grid_selected_ids: list[int] = []
    grid_select_all_checked: bool = False

    grid_permissions: list[str] = []
    grid_can_create: bool = False
    grid_can_update: bool = False
    grid_can_delete: bool = False

    grid_delete_target: int = _NO_TARGET
    grid_delete_dialog_open: bool = False
    grid_bulk_dialog_open: bool = False

    grid_edit_target: int = _NO_TARGET
    grid_edit_open: bool = False
    grid_edit_record: dict[str, str] = {}
    grid_edit_errors: dict[str, str] = {}

    grid_detail_open: bool = False
    grid_detail_lines: list[dict[str, str]] = []

    # -- Backend-only vars (not sent to frontend) --
    _grid_view_name: str = ""
    _grid_backend_key: str = ""
    _grid_records: list[dict[str, Any]] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_grid_records(
        self,
        view_name: str,
        backend_key: str,
        permissions: list[str] | None = None,
    ):
        """Bind the grid to a view and a registered backend, then load it.

        This is a **generator** -- use ``yield from self.set_grid_records(...)``
        inside your event handler so the loading state reaches the frontend
        first.

        Args:
            view_name: Name of a registered :class:`ViewDefinition`.
            backend_key: Key passed to :func:`register_backend`.
            permissions: Permission slugs of the current user.  ``None``
                keeps the permissions already set.
        """
        self.grid_loading = True  # type: ignore[assignment]
        yield

        view = get_view(view_name)
        first_load = self._grid_view_name != view_name
        self._grid_view_name = view_name  # type: ignore[assignment]
        self._grid_backend_key = backend_key  # type: ignore[assignment]
        if permissions is not None:
            self.grid_permissions = list(permissions)  # type: ignore[assignment]

        if first_load:
            self._grid_store(GridState.for_view(view))
        self.grid_title = view.title  # type: ignore[assignment]

        self._grid_reload()
        self.grid_loaded = True  # type: ignore[assignment]
        self.grid_loading = False  # type: ignore[assignment]

    def set_grid_permissions(self, permissions: list[str]) -> None:
        self.grid_permissions = list(permissions)  # type: ignore[assignment]
        self._grid_publish_permissions()

    def reload_grid_records(self):
        """Re-fetch the full record list from the backend."""
        self.grid_loading = True  # type: ignore[assignment]
        yield
        self._grid_reload()
        self.grid_loading = False  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Filter / sort / pagination / visibility handlers
    # ------------------------------------------------------------------

    def handle_grid_search(self, text: str) -> None:
        state = self._grid_state()
        state.set_search(text)
        self._grid_refresh(state)

    def handle_grid_filter(self, name: str, value: str) -> None:
        state = self._grid_state()
        state.set_filter(name, value)
        self._grid_refresh(state)

    def handle_grid_date_start(self, value: str) -> None:
        state = self._grid_state()
        state.set_date_range(_safe_date(value), state.date_end)
        self._grid_refresh(state)

    def handle_grid_date_end(self, value: str) -> None:
        state = self._grid_state()
        state.set_date_range(state.date_start, _safe_date(value))
        self._grid_refresh(state)

    def clear_grid_filters(self) -> None:
        state = self._grid_state()
        state.clear_filters()
        self._grid_refresh(state)

    def sort_grid_by(self, key: str) -> None:
        view = self._grid_view()
        col = view.column(key)
        if col is None or not col.sortable:
            return
        state = self._grid_state()
        state.sort_by(key)
        self._grid_refresh(state)

    def handle_grid_page_size(self, value: str) -> None:
        try:
            size = int(value)
        except (TypeError, ValueError):
            logger.debug("ignoring page size %r", value)
            return
        state = self._grid_state()
        try:
            state.set_page_size(size)
        except ValueError:
            logger.debug("ignoring page size %r", value)
            return
        self._grid_refresh(state)

    def grid_first_page(self) -> None:
        state = self._grid_state()
        state.first_page()
        self._grid_refresh(state)

    def grid_previous_page(self) -> None:
        state = self._grid_state()
        state.previous_page()
        self._grid_refresh(state)

    def grid_next_page(self) -> None:
        state = self._grid_state()
        state.next_page(self.grid_filtered_count)
        self._grid_refresh(state)

    def grid_last_page(self) -> None:
        state = self._grid_state()
        state.last_page(self.grid_filtered_count)
        self._grid_refresh(state)

    def toggle_grid_column(self, key: str) -> None:
        state = self._grid_state()
        state.toggle_column(key, self._grid_view())
        self._grid_refresh(state)

    # ------------------------------------------------------------------
    # Selection handlers
    # ------------------------------------------------------------------

    def toggle_grid_row(self, record_id: int) -> None:
        state = self._grid_state()
        state.toggle_row(record_id)
        self._grid_refresh(state)

    def toggle_grid_select_all(self) -> None:
        state = self._grid_state()
        state.toggle_select_all(list(self.grid_page_ids))
        self._grid_refresh(state)

    def clear_grid_selection(self) -> None:
        state = self._grid_state()
        state.clear_selection()
        self._grid_refresh(state)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def open_grid_delete(self, record_id: int):
        if self.grid_busy:
            return
        if not self.grid_can_delete:
            yield rx.toast.error("You do not have permission to delete records.")
            return
        self.grid_delete_target = record_id  # type: ignore[assignment]
        self.grid_delete_dialog_open = True  # type: ignore[assignment]

    def open_grid_bulk_delete(self):
        if self.grid_busy or not self.grid_selected_ids:
            return
        if not self.grid_can_delete:
            yield rx.toast.error("You do not have permission to delete records.")
            return
        self.grid_bulk_dialog_open = True  # type: ignore[assignment]

    def close_grid_dialogs(self) -> None:
        self.grid_delete_dialog_open = False  # type: ignore[assignment]
        self.grid_bulk_dialog_open = False  # type: ignore[assignment]
        self.grid_edit_open = False  # type: ignore[assignment]
        self.grid_detail_open = False  # type: ignore[assignment]
        self.grid_delete_target = _NO_TARGET  # type: ignore[assignment]
        self.grid_edit_target = _NO_TARGET  # type: ignore[assignment]
        self.grid_edit_errors = {}  # type: ignore[assignment]

    def confirm_grid_delete(self):
        """Delete the record chosen in :meth:`open_grid_delete`, then reload."""
        record_id = self.grid_delete_target
        if self.grid_busy or record_id == _NO_TARGET:
            return
        self.grid_delete_dialog_open = False  # type: ignore[assignment]
        if not self._grid_permitted("delete"):
            yield rx.toast.error("You do not have permission to delete records.")
            return

        self.grid_busy = True  # type: ignore[assignment]
        yield

        try:
            self._grid_backend().delete_record(record_id)
        except RecordGridError as exc:
            logger.warning("delete of %s %s failed: %s", self._grid_view_name, record_id, exc)
            toast = rx.toast.error(f"Failed to delete record: {exc}")
        else:
            toast = rx.toast.success("Record deleted successfully.")
        finally:
            self.grid_busy = False  # type: ignore[assignment]
            self.grid_delete_target = _NO_TARGET  # type: ignore[assignment]

        self._grid_reload()
        yield toast

    def confirm_grid_bulk_delete(self):
        """Delete every selected record, clear the selection, then reload."""
        ids = list(self.grid_selected_ids)
        if self.grid_busy or not ids:
            return
        self.grid_bulk_dialog_open = False  # type: ignore[assignment]
        if not self._grid_permitted("delete"):
            yield rx.toast.error("You do not have permission to delete records.")
            return

        self.grid_busy = True  # type: ignore[assignment]
        yield

        try:
            count = self._grid_backend().delete_records(ids)
        except RecordGridError as exc:
            logger.warning("bulk delete of %s %s failed: %s", self._grid_view_name, ids, exc)
            toast = rx.toast.error(f"Failed to delete the selected records: {exc}")
        else:
            toast = rx.toast.success(f"{count} record(s) deleted successfully.")
        finally:
            self.grid_busy = False  # type: ignore[assignment]

        self._grid_reload()
        yield toast

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    def open_grid_edit(self, record_id: int):
        if self.grid_busy:
            return
        if not self.grid_can_update:
            yield rx.toast.error("You do not have permission to edit records.")
            return
        try:
            record = self._grid_backend().get_record(record_id)
        except RecordGridError as exc:
            yield rx.toast.error(str(exc))
            return

        view = self._grid_view()
        self.grid_edit_record = {  # type: ignore[assignment]
            name: "" if record.get(name) is None else str(record[name])
            for name in _editable_fields(view)
        }
        self.grid_edit_errors = {}  # type: ignore[assignment]
        self.grid_edit_target = record_id  # type: ignore[assignment]
        self.grid_edit_open = True  # type: ignore[assignment]

    def save_grid_edit(self, form_data: dict[str, Any]):
        """Send the edit form to the backend; map validation errors to fields."""
        record_id = self.grid_edit_target
        if self.grid_busy or record_id == _NO_TARGET:
            return
        if not self._grid_permitted("update"):
            self.grid_edit_open = False  # type: ignore[assignment]
            yield rx.toast.error("You do not have permission to edit records.")
            return

        self.grid_busy = True  # type: ignore[assignment]
        self.grid_edit_errors = {}  # type: ignore[assignment]
        yield

        try:
            self._grid_backend().update_record(record_id, dict(form_data))
        except RecordValidationError as exc:
            self.grid_edit_errors = first_errors(exc.errors)  # type: ignore[assignment]
            self.grid_busy = False  # type: ignore[assignment]
            yield rx.toast.error("Please correct the highlighted fields.")
            return
        except RecordGridError as exc:
            logger.warning("update of %s %s failed: %s", self._grid_view_name, record_id, exc)
            self.grid_busy = False  # type: ignore[assignment]
            yield rx.toast.error(f"Failed to update record: {exc}")
            return

        self.grid_busy = False  # type: ignore[assignment]
        self.grid_edit_open = False  # type: ignore[assignment]
        self.grid_edit_target = _NO_TARGET  # type: ignore[assignment]
        self._grid_reload()
        yield rx.toast.success("Record updated successfully.")

    # ------------------------------------------------------------------
    # Detail view
    # ------------------------------------------------------------------

    def show_grid_detail(self, record_id: int):
        try:
            record = self._grid_backend().get_record(record_id)
        except RecordGridError as exc:
            yield rx.toast.error(str(exc))
            return

        view = self._grid_view()
        self.grid_detail_lines = [  # type: ignore[assignment]
            {"label": view.label_for(name), "value": _detail_value(record.get(name))}
            for name in view.record_schema
        ]
        self.grid_detail_open = True  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_grid_csv(self):
        """Download every filtered+sorted record as CSV (never page-limited)."""
        view = self._grid_view()
        state = self._grid_state()
        result = filtered_sorted(records_to_frame(self._grid_records, view), view, state)
        csv_text = build_csv(result, view, state.visible_columns)
        filename = export_filename(view)
        logger.info("exporting %d %s record(s) to %s", result.height, view.name, filename)
        return [
            rx.download(data=csv_text, filename=filename, mime_type="text/csv"),
            rx.toast.success(f"Exported {result.height} record(s)."),
        ]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _grid_view(self) -> ViewDefinition:
        return get_view(self._grid_view_name)

    def _grid_backend(self) -> RecordBackend:
        return get_backend(self._grid_backend_key)

    def _grid_permitted(self, action: str) -> bool:
        return is_permitted(self._grid_view(), action, set(self.grid_permissions))

    def _grid_state(self) -> GridState:
        """Rebuild the explicit grid state from the reactive vars."""
        return GridState(
            search=self.grid_search,
            filters=dict(self.grid_filters),
            date_start=_safe_date(self.grid_date_start),
            date_end=_safe_date(self.grid_date_end),
            sort_key=self.grid_sort_key or None,
            sort_descending=self.grid_sort_descending,
            page_size=self.grid_page_size,
            current_page=self.grid_current_page,
            visible_columns=list(self.grid_visible_columns),
            selected_ids=list(self.grid_selected_ids),
        )

    def _grid_store(self, state: GridState) -> None:
        self.grid_search = state.search  # type: ignore[assignment]
        self.grid_filters = dict(state.filters)  # type: ignore[assignment]
        self.grid_date_start = state.date_start.isoformat() if state.date_start else ""  # type: ignore[assignment]
        self.grid_date_end = state.date_end.isoformat() if state.date_end else ""  # type: ignore[assignment]
        self.grid_sort_key = state.sort_key or ""  # type: ignore[assignment]
        self.grid_sort_descending = state.sort_descending  # type: ignore[assignment]
        self.grid_page_size = state.page_size  # type: ignore[assignment]
        self.grid_current_page = state.current_page  # type: ignore[assignment]
        self.grid_visible_columns = list(state.visible_columns)  # type: ignore[assignment]
        self.grid_selected_ids = list(state.selected_ids)  # type: ignore[assignment]

    def _grid_reload(self) -> None:
        """Replace the snapshot with the backend's records and re-derive.

        The selection is cleared; filters, sort and visibility are kept and
        the current page is clamped to the new result.
        """
        records = self._grid_backend().list_records()
        self._grid_records = records  # type: ignore[assignment]
        self.grid_total_count = len(records)  # type: ignore[assignment]
        state = self._grid_state()
        state.clear_selection()
        self._grid_refresh(state)
        logger.debug("reloaded %d %s record(s)", len(records), self._grid_view_name)

    def _grid_refresh(self, state: GridState) -> None:
        """Run the pipeline for *state* and publish the visible page."""
        view = self._grid_view()
        frame = records_to_frame(self._grid_records, view)
        page = compute_page(frame, view, state)
        self._grid_store(state)

        self.grid_rows = page.rows  # type: ignore[assignment]
        self.grid_headers = header_dicts(view, state.visible_columns)  # type: ignore[assignment]
        self.grid_page_ids = page.page_ids  # type: ignore[assignment]
        self.grid_filtered_count = page.filtered_count  # type: ignore[assignment]
        self.grid_total_pages = page.total_pages  # type: ignore[assignment]
        self.grid_range_label = page.range_label  # type: ignore[assignment]
        self.grid_can_go_back = page.can_go_back  # type: ignore[assignment]
        self.grid_can_go_forward = page.can_go_forward  # type: ignore[assignment]
        self.grid_select_all_checked = page.select_all_checked  # type: ignore[assignment]
        self.grid_summary = describe_state(view, state)  # type: ignore[assignment]
        self._grid_publish_permissions()

    def _grid_publish_permissions(self) -> None:
        if not self._grid_view_name:
            return
        view = self._grid_view()
        granted = set(self.grid_permissions)
        self.grid_can_create = is_permitted(view, "create", granted)  # type: ignore[assignment]
        self.grid_can_update = is_permitted(view, "update", granted)  # type: ignore[assignment]
        self.grid_can_delete = is_permitted(view, "delete", granted)  # type: ignore[assignment]


def _safe_date(value: str | datetime.date | None) -> datetime.date | None:
    """Parse a date input; anything unparseable counts as unset."""
    try:
        return parse_date_bound(value)
    except ValueError:
        logger.debug("ignoring unparseable date bound %r", value)
        return None


def _editable_fields(view: ViewDefinition) -> list[str]:
    """Fields shown in the edit form, in rule order."""
    return [name for name in view.rules if name != view.id_field]


# ---------------------------------------------------------------------------
# UI helpers
# ---------------------------------------------------------------------------

def _filter_handler(state_cls: type, name: str):
    return lambda value: state_cls.handle_grid_filter(name, value)


def _column_handler(state_cls: type, key: str):
    return lambda _checked: state_cls.toggle_grid_column(key)


def record_grid_toolbar(state_cls: type, view: ViewDefinition) -> rx.Component:
    """Search box, select filters, date range, column menu and export button.

    Args:
        state_cls: The ``rx.State`` subclass that inherits from
            :class:`RecordGridMixin`.
        view: The view the grid is bound to.

    Returns:
        A Reflex component.
    """
    controls: list[rx.Component] = [
        rx.input(
            rx.input.slot(rx.icon("search", size=14)),
            placeholder="Search...",
            value=state_cls.grid_search,
            on_change=state_cls.handle_grid_search,
            width="16em",
        ),
    ]

    for flt in view.select_filters:
        controls.append(
            rx.select(
                [ALL_SENTINEL, *flt.options],
                value=state_cls.grid_filters[flt.name],
                on_change=_filter_handler(state_cls, flt.name),
                placeholder=flt.label,
                size="2",
            )
        )

    if view.date_field:
        controls.extend(
            [
                rx.input(
                    type="date",
                    value=state_cls.grid_date_start,
                    on_change=state_cls.handle_grid_date_start,
                    aria_label="From",
                ),
                rx.text("to", size="2", color="var(--gray-9)"),
                rx.input(
                    type="date",
                    value=state_cls.grid_date_end,
                    on_change=state_cls.handle_grid_date_end,
                    aria_label="To",
                ),
            ]
        )

    column_menu = rx.popover.root(
        rx.popover.trigger(
            rx.button(rx.icon("columns_3", size=14), "Columns", size="2", variant="outline"),
        ),
        rx.popover.content(
            rx.vstack(
                *[
                    rx.checkbox(
                        col.label,
                        checked=state_cls.grid_visible_columns.contains(col.field),  # type: ignore[attr-defined]
                        on_change=_column_handler(state_cls, col.field),
                    )
                    for col in view.columns
                ],
                spacing="2",
            ),
        ),
    )

    return rx.hstack(
        *controls,
        rx.spacer(),
        rx.button(
            rx.icon("x", size=14),
            "Clear",
            size="2",
            variant="soft",
            color_scheme="gray",
            on_click=state_cls.clear_grid_filters,
        ),
        column_menu,
        rx.button(
            rx.icon("download", size=14),
            "Export CSV",
            size="2",
            on_click=state_cls.export_grid_csv,
        ),
        align="center",
        spacing="2",
        wrap="wrap",
        width="100%",
    )


def _sort_indicator(state_cls: type, field: Any) -> rx.Component:
    return rx.cond(
        state_cls.grid_sort_key == field,
        rx.cond(
            state_cls.grid_sort_descending,
            rx.icon("arrow_down", size=12),
            rx.icon("arrow_up", size=12),
        ),
        rx.icon("arrow_up_down", size=12, color="var(--gray-8)"),
    )


def _header_cell(state_cls: type, header: Any) -> rx.Component:
    return rx.table.column_header_cell(
        rx.cond(
            header["sortable"],
            rx.hstack(
                rx.text(header["label"]),
                _sort_indicator(state_cls, header["field"]),
                align="center",
                spacing="1",
                cursor="pointer",
                on_click=state_cls.sort_grid_by(header["field"]),
            ),
            rx.text(header["label"]),
        ),
    )


def _row_actions(state_cls: type, record_id: Any) -> rx.Component:
    return rx.hstack(
        rx.icon_button(
            rx.icon("eye", size=14),
            size="1",
            variant="ghost",
            on_click=state_cls.show_grid_detail(record_id),
        ),
        rx.cond(
            state_cls.grid_can_update,
            rx.icon_button(
                rx.icon("pencil", size=14),
                size="1",
                variant="ghost",
                disabled=state_cls.grid_busy,
                on_click=state_cls.open_grid_edit(record_id),
            ),
        ),
        rx.cond(
            state_cls.grid_can_delete,
            rx.icon_button(
                rx.icon("trash_2", size=14),
                size="1",
                variant="ghost",
                color_scheme="red",
                disabled=state_cls.grid_busy,
                on_click=state_cls.open_grid_delete(record_id),
            ),
        ),
        spacing="1",
    )


def _body_row(state_cls: type, row: Any) -> rx.Component:
    record_id = row["__row_id__"]
    return rx.table.row(
        rx.table.cell(
            rx.checkbox(
                checked=state_cls.grid_selected_ids.contains(record_id),  # type: ignore[attr-defined]
                on_change=lambda _checked: state_cls.toggle_grid_row(record_id),
            ),
        ),
        rx.foreach(
            state_cls.grid_headers,
            lambda header: rx.table.cell(row[header["field"]]),
        ),
        rx.table.cell(_row_actions(state_cls, record_id)),
    )


def record_grid_table(state_cls: type) -> rx.Component:
    """The table itself: select column, visible columns, actions column."""
    empty_row = rx.table.row(
        rx.table.cell(
            rx.text("No records found.", color="var(--gray-9)"),
            col_span=state_cls.grid_headers.length() + 2,  # type: ignore[attr-defined]
            text_align="center",
        ),
    )
    return rx.table.root(
        rx.table.header(
            rx.table.row(
                rx.table.column_header_cell(
                    rx.checkbox(
                        checked=state_cls.grid_select_all_checked,
                        on_change=lambda _checked: state_cls.toggle_grid_select_all(),
                    ),
                    width="2.5em",
                ),
                rx.foreach(state_cls.grid_headers, lambda h: _header_cell(state_cls, h)),
                rx.table.column_header_cell("Actions"),
            ),
        ),
        rx.table.body(
            rx.cond(
                state_cls.grid_rows.length() > 0,  # type: ignore[attr-defined]
                rx.foreach(state_cls.grid_rows, lambda row: _body_row(state_cls, row)),
                empty_row,
            ),
        ),
        variant="surface",
        size="1",
        width="100%",
    )


def record_grid_pagination(state_cls: type, view: ViewDefinition) -> rx.Component:
    """Rows-per-page select, range label and first/prev/next/last buttons."""
    return rx.hstack(
        rx.text("Rows per page", size="2"),
        rx.select(
            [str(n) for n in view.page_size_options],
            value=state_cls.grid_page_size.to(str),  # type: ignore[union-attr]
            on_change=state_cls.handle_grid_page_size,
            size="1",
        ),
        rx.text(state_cls.grid_range_label, size="2", color="var(--gray-10)"),
        rx.spacer(),
        rx.text(
            "Page ",
            state_cls.grid_current_page.to(str),  # type: ignore[union-attr]
            " of ",
            state_cls.grid_total_pages.to(str),  # type: ignore[union-attr]
            size="2",
        ),
        rx.icon_button(
            rx.icon("chevrons_left", size=14),
            size="1",
            variant="outline",
            disabled=~state_cls.grid_can_go_back,
            on_click=state_cls.grid_first_page,
        ),
        rx.icon_button(
            rx.icon("chevron_left", size=14),
            size="1",
            variant="outline",
            disabled=~state_cls.grid_can_go_back,
            on_click=state_cls.grid_previous_page,
        ),
        rx.icon_button(
            rx.icon("chevron_right", size=14),
            size="1",
            variant="outline",
            disabled=~state_cls.grid_can_go_forward,
            on_click=state_cls.grid_next_page,
        ),
        rx.icon_button(
            rx.icon("chevrons_right", size=14),
            size="1",
            variant="outline",
            disabled=~state_cls.grid_can_go_forward,
            on_click=state_cls.grid_last_page,
        ),
        align="center",
        spacing="2",
        width="100%",
    )


def record_grid_bulk_bar(state_cls: type) -> rx.Component:
    """Selection count with bulk delete; hidden while nothing is selected."""
    return rx.cond(
        state_cls.grid_selected_ids.length() > 0,  # type: ignore[attr-defined]
        rx.hstack(
            rx.text(
                state_cls.grid_selected_ids.length().to(str),  # type: ignore[attr-defined]
                " selected",
                size="2",
                weight="medium",
            ),
            rx.cond(
                state_cls.grid_can_delete,
                rx.button(
                    rx.icon("trash_2", size=14),
                    "Delete selected",
                    size="1",
                    color_scheme="red",
                    disabled=state_cls.grid_busy,
                    on_click=state_cls.open_grid_bulk_delete,
                ),
            ),
            rx.button(
                "Clear selection",
                size="1",
                variant="soft",
                color_scheme="gray",
                on_click=state_cls.clear_grid_selection,
            ),
            align="center",
            spacing="2",
            padding="0.4em 0.8em",
            border_radius="6px",
            background="var(--red-a2)",
            border="1px solid var(--red-a5)",
            width="100%",
        ),
    )


def _confirm_dialog(
    state_cls: type,
    *,
    open_var: Any,
    title: str,
    description: Any,
    on_confirm: Any,
) -> rx.Component:
    return rx.alert_dialog.root(
        rx.alert_dialog.content(
            rx.alert_dialog.title(title),
            rx.alert_dialog.description(description),
            rx.hstack(
                rx.alert_dialog.cancel(
                    rx.button(
                        "Cancel",
                        variant="soft",
                        color_scheme="gray",
                        on_click=state_cls.close_grid_dialogs,
                    ),
                ),
                rx.alert_dialog.action(
                    rx.button(
                        "Delete",
                        color_scheme="red",
                        loading=state_cls.grid_busy,
                        on_click=on_confirm,
                    ),
                ),
                spacing="3",
                justify="end",
                margin_top="1em",
            ),
        ),
        open=open_var,
    )


def record_grid_dialogs(state_cls: type, view: ViewDefinition) -> rx.Component:
    """Delete / bulk-delete confirmations, the edit form and the detail box."""
    return rx.fragment(
        _confirm_dialog(
            state_cls,
            open_var=state_cls.grid_delete_dialog_open,
            title="Delete record?",
            description="This action cannot be undone.",
            on_confirm=state_cls.confirm_grid_delete,
        ),
        _confirm_dialog(
            state_cls,
            open_var=state_cls.grid_bulk_dialog_open,
            title="Delete selected records?",
            description=rx.text(
                "This will permanently delete ",
                state_cls.grid_selected_ids.length().to(str),  # type: ignore[attr-defined]
                " record(s).",
            ),
            on_confirm=state_cls.confirm_grid_bulk_delete,
        ),
        record_grid_edit_dialog(state_cls, view),
        record_grid_detail_box(state_cls),
    )


def _edit_field(state_cls: type, view: ViewDefinition, name: str) -> rx.Component:
    rule = view.rules[name]
    if rule.choices:
        control = rx.select(
            rule.choices,
            name=name,
            default_value=state_cls.grid_edit_record[name],
        )
    else:
        control = rx.input(
            name=name,
            type="email" if rule.email else "text",
            default_value=state_cls.grid_edit_record[name],
            required=rule.required,
        )
    return rx.vstack(
        rx.text(view.label_for(name), size="2", weight="medium"),
        control,
        rx.cond(
            state_cls.grid_edit_errors.contains(name),  # type: ignore[attr-defined]
            rx.text(state_cls.grid_edit_errors[name], size="1", color="var(--red-11)"),
        ),
        spacing="1",
        width="100%",
    )


def record_grid_edit_dialog(state_cls: type, view: ViewDefinition) -> rx.Component:
    """Edit form for one record; field errors render under their inputs."""
    return rx.dialog.root(
        rx.dialog.content(
            rx.dialog.title(f"Edit {view.title}"),
            rx.form(
                rx.vstack(
                    *[_edit_field(state_cls, view, name) for name in _editable_fields(view)],
                    rx.hstack(
                        rx.button(
                            "Cancel",
                            type="button",
                            variant="soft",
                            color_scheme="gray",
                            on_click=state_cls.close_grid_dialogs,
                        ),
                        rx.button("Save", type="submit", loading=state_cls.grid_busy),
                        spacing="3",
                        justify="end",
                        width="100%",
                    ),
                    spacing="3",
                ),
                on_submit=state_cls.save_grid_edit,
            ),
        ),
        open=state_cls.grid_edit_open,
    )


def record_grid_detail_box(state_cls: type) -> rx.Component:
    """Read-only view of every field of one record (``N/A`` when missing)."""
    return rx.dialog.root(
        rx.dialog.content(
            rx.dialog.title("Details"),
            rx.data_list.root(
                rx.foreach(
                    state_cls.grid_detail_lines,
                    lambda line: rx.data_list.item(
                        rx.data_list.label(line["label"]),
                        rx.data_list.value(line["value"]),
                    ),
                ),
            ),
            rx.hstack(
                rx.button("Close", variant="soft", on_click=state_cls.close_grid_dialogs),
                justify="end",
                margin_top="1em",
            ),
        ),
        open=state_cls.grid_detail_open,
    )


def record_grid_stats_bar(state_cls: type) -> rx.Component:
    """Filtered / total counts and the one-line filter summary."""
    return rx.box(
        rx.hstack(
            rx.text(
                state_cls.grid_filtered_count.to(str),  # type: ignore[union-attr]
                " of ",
                state_cls.grid_total_count.to(str),  # type: ignore[union-attr]
                " records",
                size="2",
                weight="medium",
            ),
            rx.text("|", size="2", color="var(--gray-7)"),
            rx.text(state_cls.grid_summary, size="1", color="var(--gray-9)"),
            spacing="2",
            align="center",
        ),
        padding="0.4em 0.8em",
        border_radius="6px",
        background="var(--blue-a2)",
        border="1px solid var(--blue-a5)",
        width="100%",
    )


def record_grid(
    state_cls: type,
    view: ViewDefinition,
    *,
    show_toolbar: bool = True,
    show_stats: bool = True,
) -> rx.Component:
    """Return a complete grid bound to a :class:`RecordGridMixin` state.

    Args:
        state_cls: The ``rx.State`` subclass that also inherits from
            :class:`RecordGridMixin`.
        view: The view the state was loaded with.
        show_toolbar: Show search, filters, column menu and export.
        show_stats: Show the record count / filter summary bar.

    Returns:
        A Reflex component.
    """
    parts: list[rx.Component] = [rx.heading(view.title, size="5")]
    if show_toolbar:
        parts.append(record_grid_toolbar(state_cls, view))
    if show_stats:
        parts.append(record_grid_stats_bar(state_cls))
    parts.extend(
        [
            record_grid_bulk_bar(state_cls),
            rx.cond(
                state_cls.grid_loaded,
                record_grid_table(state_cls),
                rx.center(rx.spinner(), padding="2em", width="100%"),
            ),
            record_grid_pagination(state_cls, view),
            record_grid_dialogs(state_cls, view),
        ]
    )
    return rx.vstack(*parts, spacing="3", width="100%")
