"""Pydantic-style models for grid column descriptors, filters and field rules."""

from typing import Literal

from reflex.components.props import PropsBase

FieldType = Literal["string", "integer", "number", "date", "boolean", "list"]

ALL_SENTINEL: str = "all"


def _humanize_field_name(field: str) -> str:
    """Convert a snake_case field name to a human-friendly label.

    Examples:
        ``"first_name"`` -> ``"First Name"``
        ``"id"`` -> ``"Id"``
    """
    return field.strip("_").replace("_", " ").title()


class ColumnDef(PropsBase):
    """A fixed ``(field, label)`` column descriptor of a record grid.

    The ordered sequence of a view's column descriptors is the canonical
    field order for rendering and CSV export; only visibility changes at
    runtime.

    Attributes are automatically converted from snake_case to camelCase
    when serialized to JavaScript props via PropsBase.
    """

    field: str
    header_name: str | None = None
    type: FieldType = "string"
    sortable: bool = True
    date_format: str | None = None
    description: str | None = None

    @property
    def label(self) -> str:
        """Display name used in table headers and the CSV header row."""
        return self.header_name or _humanize_field_name(self.field)


class SelectFilter(PropsBase):
    """A single-value dropdown filter over one field.

    The ``"all"`` sentinel disables the criterion; any other value must
    equal the record's field case-insensitively.
    """

    name: str
    field: str
    label: str
    options: list[str] = []


class FieldRule(PropsBase):
    """Validation rule for one submitted field (create / update forms)."""

    required: bool = False
    max_length: int | None = None
    email: bool = False
    choices: list[str] | None = None
