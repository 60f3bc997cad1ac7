"""
Unit tests for normalisation, filtering, sorting and pagination.
"""

from __future__ import annotations

import datetime

import polars as pl
import pytest

from admissions_grid.errors import RecordValidationError
from admissions_grid.grid_state import GridState
from admissions_grid.pipeline import (
    apply_filters,
    apply_sort,
    describe_state,
    frame_to_rows,
    normalize_record,
    normalize_records,
    paginate,
    range_label,
    records_to_frame,
    total_pages,
)
from admissions_grid.views import APPLICANTS_VIEW, USERS_VIEW


def _ids(frame: pl.DataFrame) -> list[int]:
    return frame["id"].to_list()


class TestNormalizeRecord:
    def test_fields_outside_schema_are_dropped(self) -> None:
        record = normalize_record({"id": 1, "first_name": "Ana", "password": "x"}, APPLICANTS_VIEW)
        assert "password" not in record
        assert record["first_name"] == "Ana"
        assert set(record) == set(APPLICANTS_VIEW.record_schema)

    def test_id_is_coerced_to_int(self) -> None:
        assert normalize_record({"id": "7"}, APPLICANTS_VIEW)["id"] == 7

    def test_missing_id_is_rejected(self) -> None:
        with pytest.raises(RecordValidationError) as excinfo:
            normalize_record({"first_name": "Ana"}, APPLICANTS_VIEW)
        assert "id" in excinfo.value.errors

    def test_uncoercible_value_becomes_none(self) -> None:
        record = normalize_record({"id": 1, "personal_data_id": "abc"}, APPLICANTS_VIEW)
        assert record["personal_data_id"] is None

    def test_roles_are_flattened(self) -> None:
        record = normalize_record(
            {"id": 1, "roles": [{"name": "Admin"}, {"name": "User"}]},
            USERS_VIEW,
        )
        assert record["roles"] == "Admin; User"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(None, False), ("", False), ("false", False), ("2024-01-02T09:00:00", True), (1, True)],
    )
    def test_booleans(self, raw: object, expected: bool) -> None:
        record = normalize_record({"id": 1, "email_verified_at": raw}, USERS_VIEW)
        assert record["email_verified_at"] is expected

    def test_empty_record_list_still_has_every_column(self) -> None:
        frame = records_to_frame([], APPLICANTS_VIEW)
        assert frame.height == 0
        assert frame.columns == list(APPLICANTS_VIEW.record_schema)


class TestFilters:
    def test_no_criteria_keeps_everything_in_order(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        assert _ids(apply_filters(applicants_frame, APPLICANTS_VIEW, state)) == list(range(1, 24))

    def test_search_is_trimmed_and_case_insensitive(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_search("  FIRST07 ")
        assert _ids(apply_filters(applicants_frame, APPLICANTS_VIEW, state)) == [7]

    def test_search_matches_id_as_text(self, legacy_view) -> None:
        records = normalize_records(
            [{"id": 2, "name": "Ana"}, {"id": 7, "name": "Ben"}, {"id": 12, "name": "Cy"}],
            legacy_view,
        )
        frame = records_to_frame(records, legacy_view)
        state = GridState.for_view(legacy_view)
        state.set_search("2")
        assert _ids(apply_filters(frame, legacy_view, state)) == [2, 12]

    @pytest.mark.parametrize(
        ("query", "expected"),
        [("admin", [1, 2]), ("USER", [2]), ("n; u", []), ("; ", []), ("min", [1, 2])],
    )
    def test_roles_are_searched_one_at_a_time(self, user_records, query: str, expected: list[int]) -> None:
        frame = records_to_frame(normalize_records(user_records, USERS_VIEW), USERS_VIEW)
        state = GridState.for_view(USERS_VIEW)
        state.set_search(query)
        assert _ids(apply_filters(frame, USERS_VIEW, state)) == expected

    def test_select_filter_is_case_insensitive(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_filter("status", "enrolled")
        assert _ids(apply_filters(applicants_frame, APPLICANTS_VIEW, state)) == [3, 6, 9, 12, 15, 18, 21]

    def test_all_sentinel_disables_a_filter(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_filter("gender", "all")
        assert apply_filters(applicants_frame, APPLICANTS_VIEW, state).height == 23

    def test_criteria_are_and_combined(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_filter("status", "Enrolled")
        state.set_filter("gender", "Female")
        assert _ids(apply_filters(applicants_frame, APPLICANTS_VIEW, state)) == [6, 12, 18]

    def test_date_range_is_inclusive_and_skips_bad_dates(self, applicants_frame: pl.DataFrame) -> None:
        """Id 5 has no date and id 6 an unparseable one: both are excluded."""
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_date_range("2024-01-03", "2024-01-07")
        assert _ids(apply_filters(applicants_frame, APPLICANTS_VIEW, state)) == [3, 4, 7]

    def test_end_bound_alone(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_date_range(None, datetime.date(2024, 1, 2))
        assert _ids(apply_filters(applicants_frame, APPLICANTS_VIEW, state)) == [1, 2]

    def test_null_date_excluded_regardless_of_bounds(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_date_range("1900-01-01", "2999-12-31")
        result = _ids(apply_filters(applicants_frame, APPLICANTS_VIEW, state))
        assert 5 not in result
        assert 6 not in result
        assert len(result) == 21

    def test_start_after_end_matches_nothing(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_date_range("2024-01-10", "2024-01-01")
        assert apply_filters(applicants_frame, APPLICANTS_VIEW, state).height == 0

    def test_filtering_is_idempotent(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_search("first1")
        state.set_filter("gender", "Male")
        state.set_date_range("2024-01-01", "2024-01-20")
        once = apply_filters(applicants_frame, APPLICANTS_VIEW, state)
        twice = apply_filters(once, APPLICANTS_VIEW, state)
        assert once.equals(twice)


class TestSort:
    def test_no_key_preserves_order(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        assert _ids(apply_sort(applicants_frame, APPLICANTS_VIEW, state)) == list(range(1, 24))

    def test_ascending_then_toggle(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.sort_by("last_name")
        assert _ids(apply_sort(applicants_frame, APPLICANTS_VIEW, state)) == list(range(23, 0, -1))
        state.sort_by("last_name")
        assert _ids(apply_sort(applicants_frame, APPLICANTS_VIEW, state)) == list(range(1, 24))

    def test_output_is_a_permutation(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.sort_by("application_status")
        result = apply_sort(applicants_frame, APPLICANTS_VIEW, state)
        assert sorted(_ids(result)) == list(range(1, 24))

    def test_sort_is_stable(self, applicants_frame: pl.DataFrame) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.sort_by("gender")
        result = _ids(apply_sort(applicants_frame, APPLICANTS_VIEW, state))
        assert result[:11] == [2, 4, 6, 8, 10, 12, 14, 16, 18, 20, 22]
        assert result[11:] == [1, 3, 5, 7, 9, 11, 13, 15, 17, 19, 21, 23]

    @pytest.mark.parametrize("descending", [False, True])
    def test_nulls_sort_last_in_both_directions(self, descending: bool) -> None:
        records = normalize_records(
            [
                {"id": 1, "first_name": None},
                {"id": 2, "first_name": "Ben"},
                {"id": 3, "first_name": "Ana"},
            ],
            APPLICANTS_VIEW,
        )
        frame = records_to_frame(records, APPLICANTS_VIEW)
        state = GridState(sort_key="first_name", sort_descending=descending)
        result = _ids(apply_sort(frame, APPLICANTS_VIEW, state))
        assert result[-1] == 1
        assert result[:2] == ([2, 3] if descending else [3, 2])

    def test_numbers_compare_numerically(self, legacy_view) -> None:
        records = normalize_records([{"id": i, "name": f"n{i}"} for i in (10, 9, 100)], legacy_view)
        frame = records_to_frame(records, legacy_view)
        state = GridState(sort_key="id")
        assert _ids(apply_sort(frame, legacy_view, state)) == [9, 10, 100]

    def test_unsortable_column_is_ignored(self, user_records) -> None:
        frame = records_to_frame(normalize_records(user_records, USERS_VIEW), USERS_VIEW)
        state = GridState(sort_key="roles", sort_descending=True)
        assert _ids(apply_sort(frame, USERS_VIEW, state)) == [1, 2]


class TestPagination:
    @pytest.mark.parametrize(("count", "size", "expected"), [(0, 10, 1), (10, 10, 1), (23, 10, 3), (37, 25, 2)])
    def test_total_pages(self, count: int, size: int, expected: int) -> None:
        assert total_pages(count, size) == expected

    def test_pages_concatenate_to_the_full_result(self, applicants_frame: pl.DataFrame) -> None:
        pages = [paginate(applicants_frame, 10, p) for p in range(1, 4)]
        assert [p.height for p in pages] == [10, 10, 3]
        assert pl.concat(pages).equals(applicants_frame)

    def test_range_label(self) -> None:
        assert range_label(0, 10, 1) == "0 - 0 of 0"
        assert range_label(23, 10, 2) == "11 - 20 of 23"
        assert range_label(23, 10, 3) == "21 - 23 of 23"


class TestDisplayRows:
    def test_rows_carry_id_and_display_text(self, applicants_frame: pl.DataFrame) -> None:
        rows = frame_to_rows(paginate(applicants_frame, 10, 1), APPLICANTS_VIEW)
        assert rows[0]["__row_id__"] == 1
        assert rows[0]["application_date"] == "Jan 01, 2024"
        assert rows[4]["application_date"] == "-"
        assert rows[5]["application_date"] == "someday"

    def test_boolean_and_list_cells(self, user_records) -> None:
        frame = records_to_frame(normalize_records(user_records, USERS_VIEW), USERS_VIEW)
        rows = frame_to_rows(frame, USERS_VIEW)
        assert rows[0]["email_verified_at"] == "Yes"
        assert rows[1]["email_verified_at"] == "No"
        assert rows[1]["roles"] == "Admin; User"
        assert rows[0]["id"] == "1"


class TestDescribeState:
    def test_default(self) -> None:
        assert describe_state(APPLICANTS_VIEW, GridState.for_view(APPLICANTS_VIEW)) == "No active filters or sorts."

    def test_active_criteria(self) -> None:
        state = GridState.for_view(APPLICANTS_VIEW)
        state.set_search("ana")
        state.set_filter("status", "Pending")
        state.set_date_range("2024-01-01", None)
        state.sort_by("last_name")
        summary = describe_state(APPLICANTS_VIEW, state)
        assert "search 'ana'" in summary
        assert "Status=Pending" in summary
        assert "Application Date 2024-01-01 to ..." in summary
        assert "sorted by Last Name asc" in summary
