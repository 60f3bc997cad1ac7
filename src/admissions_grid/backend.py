"""Record backends: where the grid loads records from and sends mutations to.

The grid never patches its in-memory snapshot.  Every successful mutation
is followed by a full :meth:`RecordBackend.list_records` reload.

:class:`InMemoryBackend` is the reference implementation used by the demo
app, the CLI and the tests.  :func:`load_records` reads a snapshot file
into plain record dicts with polars.
"""

import abc
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import polars as pl

from admissions_grid.errors import AttachmentError, RecordNotFoundError, RecordValidationError
from admissions_grid.pipeline import normalize_record, normalize_records
from admissions_grid.views import ViewDefinition, validate_fields

logger = logging.getLogger(__name__)

ALLOWED_ATTACHMENT_TYPES: tuple[str, ...] = ("pdf", "jpg", "jpeg", "png")
MAX_ATTACHMENT_KB: int = 5120

# Identifier fields stored upper-cased and trimmed.
_UPPERCASE_FIELDS: frozenset[str] = frozenset({"application_number"})


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Attachment:
    """One uploaded document of a create request."""

    field: str
    filename: str
    data: bytes
    content_type: str = "application/octet-stream"

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower().lstrip(".")

    @property
    def size_kb(self) -> float:
        return len(self.data) / 1024


def validate_attachments(attachments: Iterable[Attachment]) -> list[Attachment]:
    """Check type and size of every attachment.

    Raises:
        AttachmentError: With one or more messages per offending field.
    """
    accepted: list[Attachment] = []
    errors: dict[str, list[str]] = {}
    for att in attachments:
        label = att.field.replace("_", " ")
        if att.extension not in ALLOWED_ATTACHMENT_TYPES:
            errors.setdefault(att.field, []).append(
                f"The {label} field must be a file of type: {', '.join(ALLOWED_ATTACHMENT_TYPES)}."
            )
        if att.size_kb > MAX_ATTACHMENT_KB:
            errors.setdefault(att.field, []).append(
                f"The {label} field must not be greater than {MAX_ATTACHMENT_KB} kilobytes."
            )
        accepted.append(att)

    if errors:
        raise AttachmentError(errors)
    return accepted


# ---------------------------------------------------------------------------
# Backend interface
# ---------------------------------------------------------------------------

class RecordBackend(abc.ABC):
    """Persistence seam of one grid view."""

    view: ViewDefinition

    @abc.abstractmethod
    def list_records(self) -> list[dict[str, Any]]:
        """Return every record, normalised against the view schema."""

    @abc.abstractmethod
    def get_record(self, record_id: int) -> dict[str, Any]:
        """Return one record or raise :class:`RecordNotFoundError`."""

    @abc.abstractmethod
    def delete_record(self, record_id: int) -> None:
        """Delete one record or raise :class:`RecordNotFoundError`."""

    def delete_records(self, record_ids: Iterable[int]) -> int:
        """Delete several records; return how many were deleted."""
        count = 0
        for record_id in record_ids:
            self.delete_record(record_id)
            count += 1
        return count

    @abc.abstractmethod
    def update_record(self, record_id: int, fields: dict[str, Any]) -> dict[str, Any]:
        """Validate and store the full field set of one record."""

    @abc.abstractmethod
    def create_record(
        self,
        fields: dict[str, Any],
        attachments: Iterable[Attachment] = (),
    ) -> dict[str, Any]:
        """Validate and store a new record with its uploaded documents."""


class InMemoryBackend(RecordBackend):
    """Dict-backed :class:`RecordBackend` keeping records in insertion order.

    Args:
        view: The view whose schema records are normalised against.
        records: Initial raw records.  Each needs an integer id.
    """

    def __init__(self, view: ViewDefinition, records: Iterable[dict[str, Any]] = ()) -> None:
        self.view = view
        self._records: dict[int, dict[str, Any]] = {}
        self._attachments: dict[int, list[Attachment]] = {}
        for record in normalize_records(list(records), view):
            self._records[record[view.id_field]] = record
        self._next_id = max(self._records, default=0) + 1

    @classmethod
    def from_file(cls, view: ViewDefinition, path: Path) -> "InMemoryBackend":
        """Build a backend from a snapshot file (see :func:`load_records`)."""
        return cls(view, load_records(path))

    def __len__(self) -> int:
        return len(self._records)

    # -- Reads --

    def list_records(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self._records.values()]

    def get_record(self, record_id: int) -> dict[str, Any]:
        try:
            return dict(self._records[record_id])
        except KeyError:
            raise RecordNotFoundError(record_id, self.view.name) from None

    def attachments_for(self, record_id: int) -> list[Attachment]:
        return list(self._attachments.get(record_id, []))

    # -- Mutations --

    def delete_record(self, record_id: int) -> None:
        if record_id not in self._records:
            raise RecordNotFoundError(record_id, self.view.name)
        del self._records[record_id]
        self._attachments.pop(record_id, None)
        logger.info("deleted %s %s", self.view.name, record_id)

    def delete_records(self, record_ids: Iterable[int]) -> int:
        """Delete all of *record_ids* or none of them."""
        ids = list(dict.fromkeys(record_ids))
        missing = [i for i in ids if i not in self._records]
        if missing:
            raise RecordNotFoundError(missing[0], self.view.name)
        for record_id in ids:
            del self._records[record_id]
            self._attachments.pop(record_id, None)
        logger.info("deleted %d %s record(s): %s", len(ids), self.view.name, ids)
        return len(ids)

    def update_record(self, record_id: int, fields: dict[str, Any]) -> dict[str, Any]:
        """Replace the submitted fields of *record_id*.

        Raises:
            RecordNotFoundError: If *record_id* does not exist.
            RecordValidationError: If the fields break a rule or a unique
                constraint.
        """
        current = self.get_record(record_id)
        cleaned = self._clean(validate_fields(self.view, fields))
        self._check_unique(cleaned, exclude_id=record_id)

        updated = normalize_record({**current, **cleaned, self.view.id_field: record_id}, self.view)
        self._records[record_id] = updated
        logger.info("updated %s %s: %s", self.view.name, record_id, sorted(cleaned))
        return dict(updated)

    def create_record(
        self,
        fields: dict[str, Any],
        attachments: Iterable[Attachment] = (),
    ) -> dict[str, Any]:
        """Store a new record under the next free id.

        Raises:
            RecordValidationError: If the fields break a rule or a unique
                constraint.
            AttachmentError: If a document has the wrong type or size.
        """
        cleaned = self._clean(validate_fields(self.view, fields))
        docs = validate_attachments(attachments)
        self._check_unique(cleaned)

        record_id = self._next_id
        record = normalize_record({**cleaned, self.view.id_field: record_id}, self.view)
        self._records[record_id] = record
        if docs:
            self._attachments[record_id] = docs
        self._next_id += 1
        logger.info("created %s %s with %d attachment(s)", self.view.name, record_id, len(docs))
        return dict(record)

    # -- Internal --

    def _clean(self, fields: dict[str, Any]) -> dict[str, Any]:
        return {
            name: value.upper() if name in _UPPERCASE_FIELDS and isinstance(value, str) else value
            for name, value in fields.items()
        }

    def _check_unique(self, fields: dict[str, Any], exclude_id: int | None = None) -> None:
        errors: dict[str, list[str]] = {}
        for name in self.view.unique_fields:
            value = fields.get(name)
            if value in (None, ""):
                continue
            wanted = str(value).lower()
            for record_id, record in self._records.items():
                if record_id == exclude_id:
                    continue
                if str(record.get(name) or "").lower() == wanted:
                    label = self.view.label_for(name).lower()
                    errors[name] = [f"The {label} '{value}' is already taken."]
                    break
        if errors:
            raise RecordValidationError(errors)


# ---------------------------------------------------------------------------
# Snapshot files
# ---------------------------------------------------------------------------

def load_records(path: Path) -> list[dict[str, Any]]:
    """Read a record snapshot file into a list of plain dicts.

    Auto-detects the file format from the extension:

    * ``.csv`` -- ``pl.read_csv()``.
    * ``.tsv`` -- ``pl.read_csv(separator="\\t")``.
    * ``.json`` -- ``pl.read_json()`` (an array of objects).
    * ``.ndjson`` / ``.jsonl`` -- ``pl.read_ndjson()``.
    * ``.parquet`` / ``.pq`` -- ``pl.read_parquet()``.
    * ``.ipc`` / ``.arrow`` / ``.feather`` -- ``pl.read_ipc()``.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file extension is not recognised.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        frame = pl.read_csv(path, infer_schema_length=None)
    elif suffix == ".tsv":
        frame = pl.read_csv(path, separator="\t", infer_schema_length=None)
    elif suffix == ".json":
        frame = pl.read_json(path)
    elif suffix in (".ndjson", ".jsonl"):
        frame = pl.read_ndjson(path)
    elif suffix in (".parquet", ".pq"):
        frame = pl.read_parquet(path)
    elif suffix in (".ipc", ".arrow", ".feather"):
        frame = pl.read_ipc(path)
    else:
        raise ValueError(
            f"Unsupported file extension: {suffix!r}. "
            "Supported: .csv, .tsv, .json, .ndjson, .jsonl, .parquet, .pq, "
            ".ipc, .arrow, .feather"
        )

    logger.info("loaded %d record(s) from %s", frame.height, path.name)
    return frame.to_dicts()
