"""
Tests for view definitions, field validation and the view registry.
"""

from __future__ import annotations

import pytest

from admissions_grid.errors import RecordGridError, RecordValidationError, UnknownViewError
from admissions_grid.views import APPLICANTS_VIEW, USERS_VIEW, get_view, is_permitted, validate_fields


class TestViewDefinition:
    def test_record_schema_has_id_columns_and_extras(self) -> None:
        schema = APPLICANTS_VIEW.record_schema
        assert schema["id"] == "integer"
        assert schema["application_date"] == "date"
        assert schema["middle_name"] == "string"
        assert list(schema)[:2] == ["id", "application_number"]

    def test_users_columns(self) -> None:
        assert USERS_VIEW.column_fields == ["id", "name", "email", "roles", "email_verified_at", "created_at"]
        assert not USERS_VIEW.column("roles").sortable

    def test_label_for(self) -> None:
        assert APPLICANTS_VIEW.label_for("strand") == "Program/Strand"
        assert APPLICANTS_VIEW.label_for("middle_name") == "Middle Name"

    def test_registry(self, legacy_view) -> None:
        assert get_view("applicants") is APPLICANTS_VIEW
        assert get_view("records") is legacy_view

    def test_unknown_view(self) -> None:
        with pytest.raises(UnknownViewError, match="Unknown grid view: 'courses'"):
            get_view("courses")
        with pytest.raises(KeyError):
            get_view("courses")
        with pytest.raises(RecordGridError):
            get_view("courses")


class TestPermissions:
    def test_users_actions_need_slugs(self) -> None:
        assert not is_permitted(USERS_VIEW, "delete", [])
        assert is_permitted(USERS_VIEW, "delete", {"delete-users"})
        assert not is_permitted(USERS_VIEW, "update", ["delete-users"])

    def test_ungated_view_allows_everything(self) -> None:
        for action in ("create", "update", "delete"):
            assert is_permitted(APPLICANTS_VIEW, action, [])


class TestValidateFields:
    def test_cleans_and_drops_unknown_fields(self) -> None:
        cleaned = validate_fields(USERS_VIEW, {"id": 9, "name": " Ana ", "email": "a@b.co", "password": "x"})
        assert cleaned == {"name": "Ana", "email": "a@b.co"}

    def test_required_fields(self) -> None:
        with pytest.raises(RecordValidationError) as excinfo:
            validate_fields(APPLICANTS_VIEW, {"first_name": "Ana"})
        errors = excinfo.value.errors
        assert errors["last_name"] == ["The last name field is required."]
        assert errors["application_date"] == ["The application date field is required."]
        assert "first_name" not in errors
        assert "strand" not in errors

    def test_partial_only_checks_submitted_fields(self) -> None:
        assert validate_fields(APPLICANTS_VIEW, {"first_name": "Ana"}, partial=True) == {"first_name": "Ana"}
        with pytest.raises(RecordValidationError) as excinfo:
            validate_fields(APPLICANTS_VIEW, {"first_name": "  "}, partial=True)
        assert excinfo.value.errors == {"first_name": ["The first name field is required."]}

    def test_max_length(self) -> None:
        with pytest.raises(RecordValidationError) as excinfo:
            validate_fields(USERS_VIEW, {"name": "x" * 256, "email": "a@b.co"})
        assert excinfo.value.errors == {"name": ["The name field must not be greater than 255 characters."]}

    def test_choices(self) -> None:
        with pytest.raises(RecordValidationError) as excinfo:
            validate_fields(APPLICANTS_VIEW, {"gender": "Unknown", "application_status": "Waitlisted"}, partial=True)
        assert excinfo.value.errors == {
            "gender": ["The selected gender is invalid."],
            "application_status": ["The selected application status is invalid."],
        }

    def test_default_message(self) -> None:
        with pytest.raises(RecordValidationError, match="The given data was invalid."):
            validate_fields(USERS_VIEW, {})


