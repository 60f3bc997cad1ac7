"""
Tests for CSV export: header, row count, formatting and quoting.
"""

from __future__ import annotations

import datetime

import polars as pl

from admissions_grid.grid_state import GridState, filtered_sorted
from admissions_grid.pipeline import build_csv, export_filename, normalize_records, records_to_frame
from admissions_grid.views import APPLICANTS_VIEW, USERS_VIEW


def _legacy_result(legacy_view, legacy_records) -> tuple[pl.DataFrame, GridState]:
    frame = records_to_frame(normalize_records(legacy_records, legacy_view), legacy_view)
    state = GridState.for_view(legacy_view)
    state.set_filter("status", "Pending")
    state.sort_by("name")
    state.set_page_size(1)
    return filtered_sorted(frame, legacy_view, state), state


def test_legacy_output_matches_unescaped_example(legacy_view, legacy_records) -> None:
    result, state = _legacy_result(legacy_view, legacy_records)
    csv_text = build_csv(result, legacy_view, state.visible_columns, quote_style="never")
    assert csv_text == "ID,Name,Status,Date\n1,Ana,Pending,Jan 05, 2024\n"


def test_default_quoting_protects_embedded_commas(legacy_view, legacy_records) -> None:
    result, state = _legacy_result(legacy_view, legacy_records)
    csv_text = build_csv(result, legacy_view, state.visible_columns)
    assert csv_text == 'ID,Name,Status,Date\n1,Ana,Pending,"Jan 05, 2024"\n'


def test_export_is_not_page_limited(applicants_frame: pl.DataFrame) -> None:
    state = GridState.for_view(APPLICANTS_VIEW)
    state.set_filter("gender", "Male")
    state.set_page_size(10)
    result = filtered_sorted(applicants_frame, APPLICANTS_VIEW, state)
    lines = build_csv(result, APPLICANTS_VIEW, state.visible_columns).splitlines()
    assert len(lines) == 1 + 12


def test_only_visible_columns_in_descriptor_order(applicants_frame: pl.DataFrame) -> None:
    state = GridState.for_view(APPLICANTS_VIEW)
    state.visible_columns = ["email", "first_name"]
    result = filtered_sorted(applicants_frame, APPLICANTS_VIEW, state)
    lines = build_csv(result.head(1), APPLICANTS_VIEW, state.visible_columns).splitlines()
    assert lines == ["First Name,Email", "First01,applicant1@example.com"]


def test_missing_and_unparseable_dates(applicants_frame: pl.DataFrame) -> None:
    state = GridState.for_view(APPLICANTS_VIEW)
    state.visible_columns = ["application_number", "application_date"]
    rows = build_csv(applicants_frame, APPLICANTS_VIEW, state.visible_columns).splitlines()
    assert rows[5] == "A0005,"
    assert rows[6] == "A0006,someday"
    assert rows[7] == 'A0007,"Jan 07, 2024"'


def test_users_export(user_records) -> None:
    frame = records_to_frame(normalize_records(user_records, USERS_VIEW), USERS_VIEW)
    state = GridState.for_view(USERS_VIEW)
    lines = build_csv(frame, USERS_VIEW, state.visible_columns).splitlines()
    assert lines[0] == "ID,Name,Email,Roles,Verified?,Created At"
    assert lines[1] == "1,Super Admin,admin@example.com,Super Admin,Yes,Tue Jan 02 2024"
    assert lines[2] == '2,"Registrar, Main Campus",registrar@example.com,Admin; User,No,Fri Mar 01 2024'


def test_no_visible_columns_exports_nothing(applicants_frame: pl.DataFrame) -> None:
    assert build_csv(applicants_frame, APPLICANTS_VIEW, []) == ""


def test_export_filename() -> None:
    assert export_filename(APPLICANTS_VIEW, datetime.date(2024, 3, 9)) == "applicants-2024-03-09.csv"
    assert export_filename(USERS_VIEW, datetime.date(2025, 12, 31)) == "users-2025-12-31.csv"
