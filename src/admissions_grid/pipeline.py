"""The grid's derivation pipeline: normalise -> filter -> sort -> paginate -> export.

Every function here is pure.  Records enter as plain dicts, are normalised
against the view's explicit schema and loaded into a polars DataFrame; the
filter, sort and slice steps are polars expressions over that frame, and
the same display expressions feed both the rendered rows and the CSV
export.
"""

import datetime
import logging
import math
from typing import TYPE_CHECKING, Any, Literal

import polars as pl

from admissions_grid.errors import RecordValidationError
from admissions_grid.models import ALL_SENTINEL, ColumnDef, FieldType
from admissions_grid.views import ViewDefinition

if TYPE_CHECKING:
    from admissions_grid.grid_state import GridState

logger = logging.getLogger(__name__)

NULL_PLACEHOLDER: str = "-"
LIST_SEPARATOR: str = "; "

QuoteStyle = Literal["necessary", "always", "non_numeric", "never"]


# ---------------------------------------------------------------------------
# Boundary normalisation
# ---------------------------------------------------------------------------

def _polars_dtype(kind: FieldType) -> pl.DataType:
    """Map a view field type to the polars dtype it is stored as.

    Dates stay strings so unparseable values survive into the frame and can
    be exported verbatim; they are parsed on demand by the date filter and
    the display formatter.
    """
    if kind == "integer":
        return pl.Int64()
    if kind == "number":
        return pl.Float64()
    if kind == "boolean":
        return pl.Boolean()
    return pl.String()


def _coerce_value(value: Any, kind: FieldType) -> Any:
    """Coerce one raw value to the Python type of its field, or ``None``."""
    if kind == "boolean":
        if isinstance(value, str):
            return value.strip().lower() not in ("", "0", "false", "no", "null")
        return bool(value)

    if value is None or value == "":
        return None

    if kind == "integer":
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, float):
            return int(value) if value.is_integer() else None
        return int(str(value).strip())
    if kind == "number":
        return float(value)
    if kind == "date":
        if isinstance(value, (datetime.date, datetime.datetime)):
            return value.isoformat()
        return str(value)
    if kind == "list":
        if isinstance(value, (list, tuple)):
            names = [
                str(item.get("name", "")) if isinstance(item, dict) else str(item)
                for item in value
            ]
            return LIST_SEPARATOR.join(n for n in names if n)
        return str(value)
    return str(value)


def normalize_record(record: dict[str, Any], view: ViewDefinition) -> dict[str, Any]:
    """Project *record* onto the view schema and coerce every value.

    Fields outside the schema are dropped.  Values that cannot be coerced
    to their declared type become ``None`` (logged at debug level).

    Raises:
        RecordValidationError: If the record has no usable integer id.
    """
    schema = view.record_schema
    normalized: dict[str, Any] = {}
    for name, kind in schema.items():
        raw = record.get(name)
        try:
            normalized[name] = _coerce_value(raw, kind)
        except (TypeError, ValueError):
            logger.debug("dropping %s=%r: not coercible to %s", name, raw, kind)
            normalized[name] = None

    if normalized.get(view.id_field) is None:
        raise RecordValidationError(
            {view.id_field: [f"Every {view.name} record needs an integer {view.id_field}."]}
        )
    return normalized


def normalize_records(
    records: list[dict[str, Any]],
    view: ViewDefinition,
) -> list[dict[str, Any]]:
    """Normalise a whole record list (see :func:`normalize_record`)."""
    return [normalize_record(r, view) for r in records]


def records_to_frame(records: list[dict[str, Any]], view: ViewDefinition) -> pl.DataFrame:
    """Load already-normalised *records* into a DataFrame with the view schema.

    The frame always carries every schema column, even when *records* is
    empty, so downstream expressions never hit a missing column.
    """
    schema = {name: _polars_dtype(kind) for name, kind in view.record_schema.items()}
    return pl.DataFrame(records, schema=schema)


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def _parsed_date_expr(field: str) -> pl.Expr:
    """Parse the leading ``YYYY-MM-DD`` of a date column, dropping time of day.

    Anything unparseable becomes null.
    """
    return pl.col(field).str.slice(0, 10).str.to_date("%Y-%m-%d", strict=False)


def _lowered(field: str) -> pl.Expr:
    return pl.col(field).cast(pl.String).str.to_lowercase()


def _search_expr(field: str, kind: FieldType, query: str) -> pl.Expr:
    """Substring match of *query* in *field*; list fields match per item."""
    if kind == "list":
        return (
            _lowered(field)
            .str.split(LIST_SEPARATOR)
            .list.eval(pl.element().str.contains(query, literal=True))
            .list.any()
            .fill_null(False)
        )
    return _lowered(field).str.contains(query, literal=True).fill_null(False)


def build_filter_exprs(view: ViewDefinition, state: "GridState") -> list[pl.Expr]:
    """Translate the grid's filter state into polars predicates.

    * Search: trimmed, case-insensitive substring over the view's
      searchable fields; a record matches if ANY field contains it.
      List fields (user roles) are matched one item at a time.
    * Select filters: the ``"all"`` sentinel disables a filter, otherwise
      the field must equal the value case-insensitively.
    * Date range: each set bound is inclusive.  Records with a missing or
      unparseable date never pass an active date bound.

    Returns:
        The list of active predicates (empty when nothing is filtered).
    """
    exprs: list[pl.Expr] = []

    query = state.search.strip().lower()
    if query:
        schema = view.record_schema
        exprs.append(
            pl.any_horizontal(
                [_search_expr(f, schema.get(f, "string"), query) for f in view.searchable_fields]
            )
        )

    for name, value in state.filters.items():
        if not value or value == ALL_SENTINEL:
            continue
        flt = view.select_filter(name)
        if flt is None:
            continue
        exprs.append((_lowered(flt.field) == value.lower()).fill_null(False))

    if view.date_field and (state.date_start or state.date_end):
        parsed = _parsed_date_expr(view.date_field)
        if state.date_start:
            exprs.append((parsed >= pl.lit(state.date_start)).fill_null(False))
        if state.date_end:
            exprs.append((parsed <= pl.lit(state.date_end)).fill_null(False))

    return exprs


def apply_filters(frame: pl.DataFrame, view: ViewDefinition, state: "GridState") -> pl.DataFrame:
    """Return the rows of *frame* matching every active criterion, in order."""
    exprs = build_filter_exprs(view, state)
    if not exprs:
        return frame

    combined = exprs[0]
    for e in exprs[1:]:
        combined = combined & e
    return frame.filter(combined)


# ---------------------------------------------------------------------------
# Sorting and pagination
# ---------------------------------------------------------------------------

def apply_sort(frame: pl.DataFrame, view: ViewDefinition, state: "GridState") -> pl.DataFrame:
    """Stable single-key sort with nulls last in both directions.

    With no sort key (or a key that is not a sortable column) the input
    order is preserved.
    """
    key = state.sort_key
    if not key:
        return frame
    col = view.column(key)
    if col is None or not col.sortable:
        return frame

    return frame.sort(
        key,
        descending=state.sort_descending,
        nulls_last=True,
        maintain_order=True,
    )


def total_pages(count: int, page_size: int) -> int:
    """``max(1, ceil(count / page_size))``."""
    return max(1, math.ceil(count / page_size))


def paginate(frame: pl.DataFrame, page_size: int, current_page: int) -> pl.DataFrame:
    """Slice rows ``[(current_page - 1) * page_size, current_page * page_size)``."""
    offset = (current_page - 1) * page_size
    return frame.slice(offset, page_size)


def range_label(count: int, page_size: int, current_page: int) -> str:
    """Human range of the visible page, e.g. ``"11 - 20 of 23"``."""
    if count == 0:
        return "0 - 0 of 0"
    start = (current_page - 1) * page_size + 1
    end = min(current_page * page_size, count)
    return f"{start} - {end} of {count}"


# ---------------------------------------------------------------------------
# Display / export formatting
# ---------------------------------------------------------------------------

def _display_expr(col: ColumnDef) -> pl.Expr:
    """Expression rendering one column as display text (nulls stay null)."""
    if col.type == "date" and col.date_format:
        parsed = _parsed_date_expr(col.field)
        return pl.coalesce(parsed.dt.strftime(col.date_format), pl.col(col.field))
    if col.type == "boolean":
        return pl.when(pl.col(col.field)).then(pl.lit("Yes")).otherwise(pl.lit("No"))
    return pl.col(col.field).cast(pl.String)


def ordered_visible_columns(view: ViewDefinition, visible: list[str]) -> list[ColumnDef]:
    """Visible column descriptors in canonical (descriptor) order."""
    wanted = set(visible)
    return [c for c in view.columns if c.field in wanted]


def frame_to_rows(frame: pl.DataFrame, view: ViewDefinition) -> list[dict[str, Any]]:
    """Render *frame* into JSON-safe display rows for the table body.

    Every column field becomes display text (``"-"`` for missing values);
    the raw id is kept under ``view.id_field`` for row actions.
    """
    exprs: list[pl.Expr] = [pl.col(view.id_field).alias("__row_id__")]
    for col in view.columns:
        exprs.append(_display_expr(col).fill_null(NULL_PLACEHOLDER).alias(col.field))
    return frame.select(exprs).to_dicts()


def header_dicts(view: ViewDefinition, visible: list[str]) -> list[dict[str, Any]]:
    """Header descriptors for the visible columns, ready for ``rx.foreach``."""
    return [
        {"field": c.field, "label": c.label, "sortable": c.sortable}
        for c in ordered_visible_columns(view, visible)
    ]


def build_csv(
    frame: pl.DataFrame,
    view: ViewDefinition,
    visible: list[str],
    *,
    quote_style: QuoteStyle = "necessary",
) -> str:
    """Render the full filtered+sorted *frame* as CSV text.

    * Header row: labels of the visible columns in descriptor order.
    * One data row per record in *frame* (never page-limited).
    * Dates use the column's ``date_format`` (unparseable dates are
      exported as-is), booleans become ``Yes``/``No``, missing values are
      empty.

    ``quote_style="necessary"`` quotes cells containing the delimiter,
    quotes or newlines.  ``quote_style="never"`` reproduces the legacy
    unescaped output.
    """
    cols = ordered_visible_columns(view, visible)
    if not cols:
        return ""
    out = frame.select([_display_expr(c).alias(c.label) for c in cols])
    return out.write_csv(quote_style=quote_style, null_value="")


def export_filename(view: ViewDefinition, today: datetime.date | None = None) -> str:
    """``<entity>-<ISO date>.csv``."""
    today = today or datetime.date.today()
    return f"{view.name}-{today.isoformat()}.csv"


# ---------------------------------------------------------------------------
# Human-readable summary
# ---------------------------------------------------------------------------

def describe_state(view: ViewDefinition, state: "GridState") -> str:
    """Compact one-line summary of the active search, filters and sort."""
    parts: list[str] = []
    if state.search.strip():
        parts.append(f"search {state.search.strip()!r}")

    active = [
        f"{flt.label}={state.filters[flt.name]}"
        for flt in view.select_filters
        if state.filters.get(flt.name, ALL_SENTINEL) != ALL_SENTINEL
    ]
    if active:
        parts.append(f"{len(active)} filter(s): {', '.join(active)}")

    if state.date_start or state.date_end:
        start = state.date_start.isoformat() if state.date_start else "..."
        end = state.date_end.isoformat() if state.date_end else "..."
        parts.append(f"{view.label_for(view.date_field or '')} {start} to {end}")

    if state.sort_key:
        direction = "desc" if state.sort_descending else "asc"
        parts.append(f"sorted by {view.label_for(state.sort_key)} {direction}")

    return " | ".join(parts) if parts else "No active filters or sorts."
