"""CLI for the admissions demo app.

Commands::

    demo                   # Run the Reflex demo app
    demo run               # Same as above
    demo write-samples     # Write the sample records as snapshot files
"""

import os
from pathlib import Path
from typing import Annotated, Optional

import polars as pl
import typer

app = typer.Typer(
    name="demo",
    help="Admissions demo app with applicants and users grids.",
    invoke_without_command=True,
)

DATA_DIR: Path = Path(__file__).resolve().parent / "data"


def _run_app() -> None:
    """Start the Reflex demo app."""
    app_dir = Path(__file__).resolve().parent.parent
    os.chdir(app_dir)

    from reflex.reflex import cli

    cli(["run"])


@app.callback(invoke_without_command=True)
def default(ctx: typer.Context) -> None:
    """Run the demo app (default when no subcommand is given)."""
    if ctx.invoked_subcommand is None:
        _run_app()


@app.command()
def run() -> None:
    """Run the Reflex demo app."""
    _run_app()


@app.command()
def write_samples(
    data_dir: Annotated[
        Optional[Path],
        typer.Option("--data-dir", envvar="ADMISSIONS_DATA_DIR", help="Where to write the snapshots"),
    ] = None,
    fmt: Annotated[str, typer.Option("--format", help="parquet or ndjson")] = "parquet",
) -> None:
    """Write the built-in sample applicants and users as snapshot files.

    Point ``ADMISSIONS_DATA_DIR`` at the directory to make the demo app
    (and ``admissions-grid view``) load them.
    """
    from admissions_demo.admissions_demo import _build_applicants, _build_users

    target = data_dir or DATA_DIR
    target.mkdir(parents=True, exist_ok=True)

    for name, records in (("applicants", _build_applicants()), ("users", _build_users())):
        if name == "users":
            records = [{**r, "roles": "; ".join(role["name"] for role in r["roles"])} for r in records]
        frame = pl.DataFrame(records)
        if fmt == "parquet":
            path = target / f"{name}.parquet"
            frame.write_parquet(path)
        elif fmt == "ndjson":
            path = target / f"{name}.ndjson"
            frame.write_ndjson(path)
        else:
            typer.echo(f"Error: unsupported format {fmt!r}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Wrote {frame.height} {name} to {path}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
