"""Example Reflex app for the admissions record grids.

Three pages:
  1. ``/`` and ``/applications`` -- the evaluation / assessment list of
     applicants (search, gender / status / strand filters, application
     date range, CSV export, edit and delete).
  2. ``/users`` -- the user account list.  Edit and delete are only offered
     when the selected demo role carries ``update-users`` / ``delete-users``.
  3. ``/apply`` -- a one-page application with email verification and
     document upload, stored through the applicants backend.

Records come from ``$ADMISSIONS_DATA_DIR/applicants.*`` and
``$ADMISSIONS_DATA_DIR/users.*`` when present, otherwise from the inline
sample data below.
"""

import datetime
import logging
import os
from pathlib import Path
from typing import Any

import reflex as rx

from admissions_grid import (
    APPLICANTS_VIEW,
    USERS_VIEW,
    Attachment,
    InMemoryBackend,
    RecordGridMixin,
    RecordValidationError,
    VerificationCodeService,
    VerificationError,
    VerificationThrottledError,
    ViewDefinition,
    first_errors,
    get_backend,
    record_grid,
    register_backend,
)
from admissions_grid.logging_config import configure_logging
from admissions_grid.views import GENDERS, STRANDS

configure_logging()
logger = logging.getLogger(__name__)

_SNAPSHOT_SUFFIXES: tuple[str, ...] = (".parquet", ".csv", ".json", ".ndjson", ".jsonl", ".ipc", ".arrow")

ROLE_PERMISSIONS: dict[str, list[str]] = {
    "Super Admin": ["view-users", "create-users", "update-users", "delete-users"],
    "Admin": ["view-users", "create-users", "update-users", "delete-users"],
    "User": ["view-users"],
}


# ---------------------------------------------------------------------------
# Sample data builders
# ---------------------------------------------------------------------------

def _build_applicants() -> list[dict[str, Any]]:
    """23 applicants, a few with missing or malformed application dates."""
    first = [
        "Ana", "Ben", "Carla", "Dante", "Elena", "Felix", "Gina", "Hector",
        "Iris", "Jomar", "Kyla", "Luis", "Maya", "Nico", "Olga", "Paolo",
        "Queenie", "Rafael", "Sofia", "Tomas", "Uma", "Victor", "Wena",
    ]
    last = [
        "Reyes", "Santos", "Cruz", "Bautista", "Garcia", "Mendoza", "Torres",
        "Flores", "Ramos", "Aquino", "Castillo", "Rivera", "Domingo", "Navarro",
        "Villanueva", "Lopez", "Gonzales", "Del Rosario", "Marquez", "Pascual",
        "Salazar", "Dela Cruz", "Fernandez",
    ]
    statuses = ["Pending", "Enrolled", "Rejected", "Approved"]
    start = datetime.date(2024, 1, 5)

    records: list[dict[str, Any]] = []
    for i, (fn, ln) in enumerate(zip(first, last), start=1):
        if i % 11 == 0:
            app_date: str | None = None
        elif i % 17 == 0:
            app_date = "not a date"
        else:
            app_date = f"{(start + datetime.timedelta(days=9 * (i - 1))).isoformat()} 08:30:00"
        records.append(
            {
                "id": i,
                "application_number": f"{'ABC'[i % 3]}{i:04d}",
                "first_name": fn,
                "last_name": ln,
                "email": f"{fn.lower()}.{ln.lower().replace(' ', '')}@example.com",
                "gender": GENDERS[i % 2],
                "strand": STRANDS[i % len(STRANDS)],
                "application_date": app_date,
                "application_status": statuses[i % len(statuses)],
            }
        )
    return records


def _build_users() -> list[dict[str, Any]]:
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
            "name": "Admin User",
            "email": "admin.user@example.com",
            "roles": [{"name": "Admin"}],
            "email_verified_at": "2024-02-10T10:15:00",
            "created_at": "2024-02-10T10:15:00",
        },
        {
            "id": 3,
            "name": "Regular User",
            "email": "user@example.com",
            "roles": [{"name": "User"}],
            "email_verified_at": None,
            "created_at": "2024-03-01T14:00:00",
        },
        {
            "id": 4,
            "name": "Registrar, Main Campus",
            "email": "registrar@example.com",
            "roles": [{"name": "Admin"}, {"name": "User"}],
            "email_verified_at": "2024-04-22T08:00:00",
            "created_at": "2024-04-22T08:00:00",
        },
    ]


def _snapshot_path(name: str) -> Path | None:
    data_dir = os.getenv("ADMISSIONS_DATA_DIR")
    if not data_dir:
        return None
    for suffix in _SNAPSHOT_SUFFIXES:
        path = Path(data_dir) / f"{name}{suffix}"
        if path.exists():
            return path
    return None


def _make_backend(view: ViewDefinition, sample: list[dict[str, Any]]) -> InMemoryBackend:
    path = _snapshot_path(view.name)
    if path is not None:
        logger.info("loading %s from %s", view.name, path)
        return InMemoryBackend.from_file(view, path)
    return InMemoryBackend(view, sample)


register_backend("applicants", _make_backend(APPLICANTS_VIEW, _build_applicants()))
register_backend("users", _make_backend(USERS_VIEW, _build_users()))

VERIFICATION = VerificationCodeService()


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class ApplicantsState(RecordGridMixin, rx.State):
    """Applicants grid; applicant actions are not permission gated."""

    def load(self):
        yield from self.set_grid_records("applicants", "applicants")


class UsersState(RecordGridMixin, rx.State):
    """Users grid with a demo role switcher driving the permission list."""

    current_role: str = "Super Admin"

    def load(self):
        yield from self.set_grid_records(
            "users",
            "users",
            permissions=ROLE_PERMISSIONS[self.current_role],
        )

    def switch_role(self, role: str) -> None:
        self.current_role = role
        self.set_grid_permissions(ROLE_PERMISSIONS.get(role, []))


class ApplyState(rx.State):
    """One-page application: verify the email, fill the form, attach documents."""

    email: str = ""
    code: str = ""
    code_sent: bool = False
    email_verified: bool = False
    submitting: bool = False
    document_names: list[str] = []
    errors: dict[str, str] = {}

    _documents: list[dict[str, Any]] = []

    def handle_email(self, value: str) -> None:
        self.email = value
        self.email_verified = False

    def handle_code(self, value: str) -> None:
        self.code = value

    def send_code(self):
        try:
            VERIFICATION.send_code(self.email)
        except VerificationThrottledError as exc:
            yield rx.toast.warning(f"{exc} ({exc.retry_after:.0f}s).")
            return
        except RecordValidationError as exc:
            self.errors = first_errors(exc.errors)
            return
        self.errors = {}
        self.code_sent = True
        yield rx.toast.info("Verification code sent to your email.")

    def verify_code(self):
        try:
            VERIFICATION.verify_code(self.email, self.code)
        except RecordValidationError as exc:
            self.errors = first_errors(exc.errors)
            return
        except VerificationError as exc:
            yield rx.toast.error(str(exc))
            return
        self.errors = {}
        self.email_verified = True
        yield rx.toast.success("Email verified successfully.")

    async def handle_documents(self, files: list[rx.UploadFile]):
        documents = list(self._documents)
        for upload in files:
            data = await upload.read()
            documents.append(
                {
                    "filename": upload.filename or "document",
                    "content_type": upload.content_type or "application/octet-stream",
                    "data": data,
                }
            )
        self._documents = documents
        self.document_names = [d["filename"] for d in documents]

    def submit(self, form_data: dict[str, Any]):
        if self.submitting:
            return
        if not self.email_verified:
            yield rx.toast.error("Please verify your email first.")
            return

        self.submitting = True
        yield

        attachments = [
            Attachment(
                field="documents",
                filename=d["filename"],
                data=d["data"],
                content_type=d["content_type"],
            )
            for d in self._documents
        ]
        fields = {
            **form_data,
            "email": self.email,
            "application_status": "Pending",
            "application_date": datetime.date.today().isoformat(),
        }
        try:
            record = get_backend("applicants").create_record(fields, attachments)
        except RecordValidationError as exc:
            self.errors = first_errors(exc.errors)
            self.submitting = False
            yield rx.toast.error("Please correct the highlighted fields.")
            return

        self.submitting = False
        self.errors = {}
        self._documents = []
        self.document_names = []
        yield rx.toast.success(f"Application {record['application_number']} submitted.")


# ---------------------------------------------------------------------------
# UI components
# ---------------------------------------------------------------------------

def _nav() -> rx.Component:
    return rx.hstack(
        rx.link("Applications", href="/applications"),
        rx.link("Users", href="/users"),
        rx.link("Apply", href="/apply"),
        spacing="4",
        margin_bottom="1em",
    )


def _page(*children: rx.Component) -> rx.Component:
    return rx.box(
        rx.heading("Admissions -- Reflex Demo", size="6", margin_bottom="0.5em"),
        _nav(),
        *children,
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


def applications() -> rx.Component:
    return _page(record_grid(ApplicantsState, APPLICANTS_VIEW))


def users() -> rx.Component:
    return _page(
        rx.hstack(
            rx.text("Signed in as", size="2"),
            rx.select(
                list(ROLE_PERMISSIONS),
                value=UsersState.current_role,
                on_change=UsersState.switch_role,
                size="1",
            ),
            align="center",
            spacing="2",
            margin_bottom="1em",
        ),
        record_grid(UsersState, USERS_VIEW),
    )


def _error(field: str) -> rx.Component:
    return rx.cond(
        ApplyState.errors.contains(field),  # type: ignore[attr-defined]
        rx.text(ApplyState.errors[field], size="1", color="var(--red-11)"),
    )


def _labeled(label: str, control: rx.Component, field: str) -> rx.Component:
    return rx.vstack(rx.text(label, size="2", weight="medium"), control, _error(field), spacing="1", width="100%")


def apply() -> rx.Component:
    email_box = rx.vstack(
        _labeled(
            "Email",
            rx.hstack(
                rx.input(value=ApplyState.email, on_change=ApplyState.handle_email, type="email", width="20em"),
                rx.button("Send code", on_click=ApplyState.send_code, variant="outline"),
            ),
            "email",
        ),
        rx.cond(
            ApplyState.code_sent & ~ApplyState.email_verified,
            _labeled(
                "Verification code",
                rx.hstack(
                    rx.input(value=ApplyState.code, on_change=ApplyState.handle_code, max_length=6, width="8em"),
                    rx.button("Verify", on_click=ApplyState.verify_code),
                ),
                "code",
            ),
        ),
        rx.cond(ApplyState.email_verified, rx.badge("Email verified", color_scheme="green")),
        spacing="2",
    )

    form = rx.form(
        rx.vstack(
            _labeled("Application Number", rx.input(name="application_number"), "application_number"),
            _labeled("First Name", rx.input(name="first_name"), "first_name"),
            _labeled("Middle Name", rx.input(name="middle_name"), "middle_name"),
            _labeled("Last Name", rx.input(name="last_name"), "last_name"),
            _labeled("Gender", rx.select(GENDERS, name="gender"), "gender"),
            _labeled("Program/Strand", rx.select(STRANDS, name="strand"), "strand"),
            _labeled(
                "Documents (pdf, jpg, jpeg, png; max 5 MB each)",
                rx.upload(
                    rx.button("Select files", type="button", variant="outline"),
                    id="documents",
                    multiple=True,
                    on_drop=ApplyState.handle_documents(rx.upload_files(upload_id="documents")),  # type: ignore[attr-defined]
                ),
                "documents",
            ),
            rx.foreach(ApplyState.document_names, lambda name: rx.text(name, size="1")),
            rx.button("Submit application", type="submit", loading=ApplyState.submitting),
            spacing="3",
            max_width="32em",
        ),
        on_submit=ApplyState.submit,
        reset_on_submit=False,
    )

    return _page(rx.vstack(email_box, rx.divider(), form, spacing="4"))


app = rx.App()
app.add_page(applications, route="/", on_load=ApplicantsState.load)
app.add_page(applications, route="/applications", on_load=ApplicantsState.load)
app.add_page(users, route="/users", on_load=UsersState.load)
app.add_page(apply, route="/apply")
