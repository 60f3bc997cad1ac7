"""View definitions: the explicit record schema and column layout of each grid.

A :class:`ViewDefinition` is everything the grid needs to know about one
entity list -- which fields exist and of what type, the fixed column
descriptor order, which fields the free-text search looks at, the dropdown
filters, the date-range field, field validation rules and the permission
slugs that gate row actions.

Two views ship with the package:

* :data:`APPLICANTS_VIEW` -- the admissions evaluation / assessment list.
* :data:`USERS_VIEW` -- the user account list.

Additional views can be added with :func:`register_view`.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from admissions_grid.errors import RecordValidationError, UnknownViewError
from admissions_grid.models import ColumnDef, FieldRule, FieldType, SelectFilter

DEFAULT_PAGE_SIZE: int = 10
PAGE_SIZE_OPTIONS: tuple[int, ...] = (10, 25, 50, 100)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class ViewDefinition:
    """Static description of one record grid."""

    name: str
    title: str
    columns: tuple[ColumnDef, ...]
    searchable_fields: tuple[str, ...]
    select_filters: tuple[SelectFilter, ...] = ()
    date_field: str | None = None
    extra_fields: dict[str, FieldType] = field(default_factory=dict)
    id_field: str = "id"
    default_page_size: int = DEFAULT_PAGE_SIZE
    page_size_options: tuple[int, ...] = PAGE_SIZE_OPTIONS
    rules: dict[str, FieldRule] = field(default_factory=dict)
    unique_fields: tuple[str, ...] = ()
    create_permission: str | None = None
    update_permission: str | None = None
    delete_permission: str | None = None

    @property
    def column_fields(self) -> list[str]:
        """Column keys in canonical descriptor order."""
        return [c.field for c in self.columns]

    @property
    def record_schema(self) -> dict[str, FieldType]:
        """Field -> type mapping for every field a record may carry."""
        schema: dict[str, FieldType] = {self.id_field: "integer"}
        for col in self.columns:
            schema[col.field] = col.type
        for name, kind in self.extra_fields.items():
            schema.setdefault(name, kind)
        return schema

    def column(self, field_name: str) -> ColumnDef | None:
        for col in self.columns:
            if col.field == field_name:
                return col
        return None

    def select_filter(self, name: str) -> SelectFilter | None:
        for flt in self.select_filters:
            if flt.name == name:
                return flt
        return None

    def label_for(self, field_name: str) -> str:
        col = self.column(field_name)
        if col is not None:
            return col.label
        return field_name.strip("_").replace("_", " ").title()

    def permission_for(self, action: str) -> str | None:
        """Return the slug required for ``create`` / ``update`` / ``delete``."""
        return {
            "create": self.create_permission,
            "update": self.update_permission,
            "delete": self.delete_permission,
        }.get(action)


def is_permitted(view: ViewDefinition, action: str, permissions: list[str] | set[str]) -> bool:
    """Return True if *permissions* allow *action* on *view*.

    Actions whose view declares no permission slug are always allowed.
    """
    slug = view.permission_for(action)
    return slug is None or slug in permissions


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------

def validate_fields(
    view: ViewDefinition,
    fields: dict[str, Any],
    *,
    partial: bool = False,
) -> dict[str, Any]:
    """Validate submitted *fields* against the view's rules.

    Unknown fields (outside the view schema) are dropped.  Empty strings are
    treated as missing.  With ``partial=True`` only the submitted fields are
    checked, otherwise every ``required`` rule applies.

    Returns:
        The cleaned field mapping (strings stripped).

    Raises:
        RecordValidationError: With every message collected per field.
    """
    schema = view.record_schema
    cleaned: dict[str, Any] = {}
    for name, value in fields.items():
        if name == view.id_field or name not in schema:
            continue
        if isinstance(value, str):
            value = value.strip()
        cleaned[name] = value

    errors: dict[str, list[str]] = {}
    for name, rule in view.rules.items():
        label = view.label_for(name).lower()
        present = name in cleaned and cleaned[name] not in (None, "")
        if not present:
            if rule.required and (not partial or name in cleaned):
                errors.setdefault(name, []).append(f"The {label} field is required.")
            continue

        value = cleaned[name]
        text = str(value)
        if rule.max_length is not None and len(text) > rule.max_length:
            errors.setdefault(name, []).append(
                f"The {label} field must not be greater than {rule.max_length} characters."
            )
        if rule.email and not _EMAIL_RE.match(text):
            errors.setdefault(name, []).append(f"The {label} field must be a valid email address.")
        if rule.choices is not None and text not in rule.choices:
            errors.setdefault(name, []).append(f"The selected {label} is invalid.")

    if errors:
        raise RecordValidationError(errors)
    return cleaned


# ---------------------------------------------------------------------------
# Built-in views
# ---------------------------------------------------------------------------

APPLICATION_STATUSES: list[str] = ["Pending", "Enrolled", "Rejected", "Approved"]
GENDERS: list[str] = ["Male", "Female"]
STRANDS: list[str] = [
    "Laboratory Elementary School",
    "Junior High School",
    "Accountancy and Business Management",
    "Humanities and Social Sciences",
    "Science, Technology, Engineering, and Mathematics",
    "General Academics",
]

APPLICANTS_VIEW = ViewDefinition(
    name="applicants",
    title="Evaluation/Assessment",
    columns=(
        ColumnDef(field="application_number", header_name="Application Number"),
        ColumnDef(field="first_name", header_name="First Name"),
        ColumnDef(field="last_name", header_name="Last Name"),
        ColumnDef(field="email", header_name="Email"),
        ColumnDef(field="gender", header_name="Gender"),
        ColumnDef(field="strand", header_name="Program/Strand"),
        ColumnDef(
            field="application_date",
            header_name="Application Date",
            type="date",
            date_format="%b %d, %Y",
        ),
        ColumnDef(field="application_status", header_name="Application Status"),
    ),
    searchable_fields=("id", "application_number", "first_name", "last_name", "email"),
    select_filters=(
        SelectFilter(name="gender", field="gender", label="Gender", options=GENDERS),
        SelectFilter(
            name="status",
            field="application_status",
            label="Status",
            options=APPLICATION_STATUSES,
        ),
        SelectFilter(name="strand", field="strand", label="Program/Strand", options=STRANDS),
    ),
    date_field="application_date",
    extra_fields={"middle_name": "string", "personal_data_id": "integer"},
    rules={
        "application_number": FieldRule(required=True, max_length=255),
        "first_name": FieldRule(required=True, max_length=255),
        "last_name": FieldRule(required=True, max_length=255),
        "middle_name": FieldRule(max_length=255),
        "email": FieldRule(required=True, max_length=255, email=True),
        "gender": FieldRule(required=True, choices=GENDERS),
        "strand": FieldRule(max_length=255),
        "application_date": FieldRule(required=True),
        "application_status": FieldRule(choices=APPLICATION_STATUSES),
    },
    unique_fields=("application_number",),
)

USERS_VIEW = ViewDefinition(
    name="users",
    title="Users",
    columns=(
        ColumnDef(field="id", header_name="ID", type="integer"),
        ColumnDef(field="name", header_name="Name"),
        ColumnDef(field="email", header_name="Email"),
        ColumnDef(field="roles", header_name="Roles", type="list", sortable=False),
        ColumnDef(field="email_verified_at", header_name="Verified?", type="boolean"),
        ColumnDef(
            field="created_at",
            header_name="Created At",
            type="date",
            date_format="%a %b %d %Y",
        ),
    ),
    searchable_fields=("id", "name", "email", "roles"),
    rules={
        "name": FieldRule(required=True, max_length=255),
        "email": FieldRule(required=True, max_length=255, email=True),
    },
    unique_fields=("email",),
    create_permission="create-users",
    update_permission="update-users",
    delete_permission="delete-users",
)

_VIEW_REGISTRY: dict[str, ViewDefinition] = {
    APPLICANTS_VIEW.name: APPLICANTS_VIEW,
    USERS_VIEW.name: USERS_VIEW,
}


def register_view(view: ViewDefinition) -> None:
    """Make *view* available to :func:`get_view` under ``view.name``."""
    _VIEW_REGISTRY[view.name] = view


def get_view(name: str) -> ViewDefinition:
    """Return the registered view called *name*."""
    try:
        return _VIEW_REGISTRY[name]
    except KeyError:
        raise UnknownViewError(name) from None
