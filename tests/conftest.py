"""Shared pytest fixtures for the test suite.

Fixture overview
----------------
legacy_view         -- four-column ``records`` view (ID, Name, Status, Date)
legacy_records      -- the two-record Ana / Ben example
applicant_records   -- 23 deterministic applicants, some with bad dates
user_records        -- two user accounts with nested role lists
applicants_frame    -- ``applicant_records`` normalised into a DataFrame
fake_clock          -- manually advanced clock for the verification service
"""

from __future__ import annotations

import datetime
from typing import Any

import polars as pl
import pytest

from admissions_grid import logging_config
from admissions_grid.models import ColumnDef, SelectFilter
from admissions_grid.pipeline import normalize_records, records_to_frame
from admissions_grid.views import APPLICANTS_VIEW, ViewDefinition, register_view


@pytest.fixture(autouse=True)
def _skip_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from pointing log handlers at captured streams."""
    monkeypatch.setattr(logging_config, "_CONFIGURED", True)


# ── Views and records ────────────────────────────────────────────────────────


@pytest.fixture
def legacy_view() -> ViewDefinition:
    view = ViewDefinition(
        name="records",
        title="Records",
        columns=(
            ColumnDef(field="id", header_name="ID", type="integer"),
            ColumnDef(field="name", header_name="Name"),
            ColumnDef(field="status", header_name="Status"),
            ColumnDef(field="date", header_name="Date", type="date", date_format="%b %d, %Y"),
        ),
        searchable_fields=("id", "name"),
        select_filters=(
            SelectFilter(
                name="status",
                field="status",
                label="Status",
                options=["Pending", "Enrolled"],
            ),
        ),
        date_field="date",
    )
    register_view(view)
    return view


@pytest.fixture
def legacy_records() -> list[dict[str, Any]]:
    return [
        {"id": 1, "name": "Ana", "status": "Pending", "date": "2024-01-05"},
        {"id": 2, "name": "Ben", "status": "Enrolled", "date": "2024-02-01"},
    ]


@pytest.fixture
def applicant_records() -> list[dict[str, Any]]:
    """23 applicants dated 2024-01-01 + (id - 1) days.

    Id 5 has no date, id 6 an unparseable one.  Even ids are Female,
    odd ids Male; every third applicant is Enrolled, the rest Pending.
    """
    start = datetime.date(2024, 1, 1)
    records: list[dict[str, Any]] = []
    for i in range(1, 24):
        if i == 5:
            app_date: str | None = None
        elif i == 6:
            app_date = "someday"
        else:
            app_date = f"{(start + datetime.timedelta(days=i - 1)).isoformat()} 10:00:00"
        records.append(
            {
                "id": i,
                "application_number": f"A{i:04d}",
                "first_name": f"First{i:02d}",
                "last_name": f"Last{24 - i:02d}",
                "email": f"applicant{i}@example.com",
                "gender": "Female" if i % 2 == 0 else "Male",
                "strand": "General Academics",
                "application_date": app_date,
                "application_status": "Enrolled" if i % 3 == 0 else "Pending",
            }
        )
    return records


@pytest.fixture
def user_records() -> list[dict[str, Any]]:
    return [
        {
            "id": 1,
            "name": "Super Admin",
            "email": "admin@example.com",
            "roles": [{"name": "Super Admin"}],
            "email_verified_at": "2024-01-02T09:00:00",
            "created_at": "2024-01-02T09:00:00",
        },
        {
            "id": 2,
            "name": "Registrar, Main Campus",
            "email": "registrar@example.com",
            "roles": [{"name": "Admin"}, {"name": "User"}],
            "email_verified_at": None,
            "created_at": "2024-03-01T14:00:00",
        },
    ]


@pytest.fixture
def applicants_frame(applicant_records: list[dict[str, Any]]) -> pl.DataFrame:
    return records_to_frame(normalize_records(applicant_records, APPLICANTS_VIEW), APPLICANTS_VIEW)


# ── Clock ────────────────────────────────────────────────────────────────────


class FakeClock:
    """Callable returning a manually advanced time in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
