"""CLI for reflex-admissions-grid -- export and browse record snapshots.

Usage::

    # Export the applicants a grid would export, filtered and sorted
    admissions-grid export applicants.csv --filter status=Pending --sort last_name

    # Write the legacy unescaped CSV to stdout
    admissions-grid export users.json --entity users --legacy-csv --output -

    # Browse a snapshot in the interactive grid
    admissions-grid view applicants.parquet

Snapshots may be CSV, TSV, JSON, NDJSON, Parquet or IPC files.
"""

import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Optional

import typer

from admissions_grid.backend import InMemoryBackend
from admissions_grid.errors import RecordGridError, RecordValidationError
from admissions_grid.grid_state import GridState, filtered_sorted, parse_date_bound
from admissions_grid.logging_config import configure_logging
from admissions_grid.pipeline import build_csv, export_filename, records_to_frame
from admissions_grid.views import ViewDefinition, get_view

app = typer.Typer(
    name="admissions-grid",
    help="Export and browse admissions record snapshots.",
    no_args_is_help=True,
)


@app.callback()
def _root(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", envvar="LOG_LEVEL", help="Logging level (DEBUG, INFO, ...)"),
    ] = None,
) -> None:
    configure_logging(log_level)


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(code=1)


def _load_view(entity: str) -> ViewDefinition:
    try:
        return get_view(entity)
    except RecordGridError as exc:
        raise _fail(str(exc)) from None


def _load_backend(view: ViewDefinition, file: Path) -> InMemoryBackend:
    try:
        return InMemoryBackend.from_file(view, file)
    except FileNotFoundError:
        raise _fail(f"file not found: {file}") from None
    except RecordValidationError as exc:
        messages = "; ".join(m for msgs in exc.errors.values() for m in msgs)
        raise _fail(f"{file.name}: {messages}") from None
    except ValueError as exc:
        raise _fail(str(exc)) from None


def _state_from_options(
    view: ViewDefinition,
    *,
    search: str,
    filters: list[str],
    date_from: str | None,
    date_to: str | None,
    sort: str | None,
    desc: bool,
    columns: str | None,
) -> GridState:
    """Translate export options into the grid state a user would have set."""
    state = GridState.for_view(view)
    state.set_search(search)

    for item in filters:
        name, sep, value = item.partition("=")
        if not sep or view.select_filter(name.strip()) is None:
            known = ", ".join(f.name for f in view.select_filters) or "none"
            raise typer.BadParameter(f"{item!r} (filters for {view.name}: {known})", param_hint="--filter")
        state.set_filter(name.strip(), value.strip())

    try:
        state.set_date_range(date_from, date_to)
    except ValueError as exc:
        raise typer.BadParameter(f"dates must be YYYY-MM-DD ({exc})", param_hint="--date-from/--date-to")
    if (date_from or date_to) and not view.date_field:
        raise typer.BadParameter(f"{view.name} has no date field", param_hint="--date-from/--date-to")

    if sort:
        col = view.column(sort)
        if col is None or not col.sortable:
            raise typer.BadParameter(f"{sort!r} is not a sortable column of {view.name}", param_hint="--sort")
        state.sort_by(sort)
        state.sort_descending = desc

    if columns:
        wanted = [c.strip() for c in columns.split(",") if c.strip()]
        unknown = [c for c in wanted if view.column(c) is None]
        if unknown:
            raise typer.BadParameter(f"unknown column(s): {', '.join(unknown)}", param_hint="--columns")
        state.visible_columns = [f for f in view.column_fields if f in wanted]

    return state


@app.command()
def export(
    file: Annotated[Path, typer.Argument(help="Record snapshot (CSV, TSV, JSON, NDJSON, Parquet, IPC)")],
    entity: Annotated[str, typer.Option("--entity", "-e", help="View name: applicants or users")] = "applicants",
    search: Annotated[str, typer.Option("--search", "-s", help="Free-text search")] = "",
    filters: Annotated[
        Optional[list[str]],
        typer.Option("--filter", "-f", help="Select filter as name=value (repeatable)"),
    ] = None,
    date_from: Annotated[Optional[str], typer.Option("--date-from", help="Inclusive start date (YYYY-MM-DD)")] = None,
    date_to: Annotated[Optional[str], typer.Option("--date-to", help="Inclusive end date (YYYY-MM-DD)")] = None,
    sort: Annotated[Optional[str], typer.Option("--sort", help="Column to sort by")] = None,
    desc: Annotated[bool, typer.Option("--desc", help="Sort descending")] = False,
    columns: Annotated[Optional[str], typer.Option("--columns", "-c", help="Comma-separated visible columns")] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output file, or '-' for stdout"),
    ] = None,
    data_dir: Annotated[
        Optional[Path],
        typer.Option("--data-dir", envvar="ADMISSIONS_DATA_DIR", help="Directory for the default output file"),
    ] = None,
    legacy_csv: Annotated[bool, typer.Option("--legacy-csv", help="Do not quote cells (legacy output)")] = False,
) -> None:
    """Write the CSV a grid would export for the given search, filters and sort.

    Every matching record is exported, not just one page.  Without
    ``--output`` the file is named ``<entity>-<date>.csv``.
    """
    view = _load_view(entity)
    state = _state_from_options(
        view,
        search=search,
        filters=filters or [],
        date_from=date_from,
        date_to=date_to,
        sort=sort,
        desc=desc,
        columns=columns,
    )
    backend = _load_backend(view, file)

    result = filtered_sorted(records_to_frame(backend.list_records(), view), view, state)
    csv_text = build_csv(
        result,
        view,
        state.visible_columns,
        quote_style="never" if legacy_csv else "necessary",
    )

    if output is not None and str(output) == "-":
        typer.echo(csv_text, nl=False)
        return

    if output is None:
        output = (data_dir or Path.cwd()) / export_filename(view)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(csv_text, encoding="utf-8")
    typer.echo(f"Exported {result.height} of {len(backend)} {view.name} record(s) to {output}", err=True)


def _build_app_code(file_path: Path, entity: str, title: str, permissions: list[str]) -> str:
    """Generate the Reflex app module source for :func:`view`."""
    safe_path = str(file_path.resolve()).replace("\\", "\\\\").replace('"', '\\"')

    template = _APP_TEMPLATE
    template = template.replace("__FILENAME__", file_path.name)
    template = template.replace("__SAFE_PATH__", safe_path)
    template = template.replace("__ENTITY__", entity)
    template = template.replace("__TITLE__", title.replace('"', '\\"'))
    template = template.replace("__PERMISSIONS__", repr(permissions))
    return template


# ---------------------------------------------------------------------------
# App template -- uses __PLACEHOLDER__ tokens for dynamic parts.
# ---------------------------------------------------------------------------

_APP_TEMPLATE = '''"""Auto-generated viewer app for: __FILENAME__"""

from pathlib import Path

import reflex as rx

from admissions_grid import (
    InMemoryBackend,
    RecordGridMixin,
    get_view,
    record_grid,
    register_backend,
)
from admissions_grid.logging_config import configure_logging

configure_logging()

VIEW = get_view("__ENTITY__")
register_backend("viewer", InMemoryBackend.from_file(VIEW, Path("__SAFE_PATH__")))


class ViewerState(RecordGridMixin, rx.State):
    """Viewer state bound to the snapshot's in-memory backend."""

    def load_data(self):
        yield from self.set_grid_records("__ENTITY__", "viewer", permissions=__PERMISSIONS__)


def index() -> rx.Component:
    return rx.box(
        rx.text("__TITLE__", size="2", color="var(--gray-9)", margin_bottom="0.5em"),
        record_grid(ViewerState, VIEW),
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=ViewerState.load_data)
'''


@app.command()
def view(
    file: Annotated[Path, typer.Argument(help="Record snapshot (CSV, TSV, JSON, NDJSON, Parquet, IPC)")],
    entity: Annotated[str, typer.Option("--entity", "-e", help="View name: applicants or users")] = "applicants",
    permission: Annotated[
        Optional[list[str]],
        typer.Option("--permission", help="Grant a permission slug, e.g. delete-users (repeatable)"),
    ] = None,
    port: Annotated[int, typer.Option("--port", "-p", help="Port for the Reflex frontend")] = 3000,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Page subtitle")] = None,
) -> None:
    """Browse a record snapshot in the interactive grid.

    Edits and deletes only touch the in-memory copy; the file is never
    written back.
    """
    file = file.resolve()
    if not file.exists():
        raise _fail(f"file not found: {file}")

    grid_view = _load_view(entity)
    # Fail here rather than inside the generated app.
    _load_backend(grid_view, file)

    if title is None:
        title = f"{file.name} -- {grid_view.title}"

    app_code = _build_app_code(file, grid_view.name, title, permission or [])

    tmp_dir = Path(tempfile.mkdtemp(prefix="admissions_viewer_"))
    app_name = "viewer_app"
    app_pkg = tmp_dir / app_name
    app_pkg.mkdir()
    (app_pkg / "__init__.py").write_text("")
    (app_pkg / f"{app_name}.py").write_text(app_code)

    rxconfig_code = f"""import reflex as rx
config = rx.Config(app_name="{app_name}", frontend_port={port})
"""
    (tmp_dir / "rxconfig.py").write_text(rxconfig_code)

    typer.echo(f"Launching {grid_view.name} viewer for: {file}")

    os.chdir(tmp_dir)

    # reflex's CLI calls sys.exit() on completion, so init runs in a subprocess.
    typer.echo("Initializing Reflex project...")
    subprocess.run(
        [sys.executable, "-m", "reflex", "init"],
        cwd=str(tmp_dir),
        check=True,
    )

    typer.echo("Starting viewer...")
    os.execvp(sys.executable, [sys.executable, "-m", "reflex", "run"])


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
