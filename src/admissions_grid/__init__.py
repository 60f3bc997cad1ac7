"""reflex-admissions-grid -- searchable, filterable record grids for admissions admin views.

Install the package and run the demo app::

    pip install reflex-admissions-grid
    cd examples/admissions_demo && reflex run
"""

from admissions_grid.backend import (
    Attachment,
    InMemoryBackend,
    RecordBackend,
    load_records,
    validate_attachments,
)
from admissions_grid.errors import (
    AttachmentError,
    RecordGridError,
    RecordNotFoundError,
    RecordValidationError,
    UnknownViewError,
    VerificationError,
    VerificationThrottledError,
    first_errors,
)
from admissions_grid.grid_state import GridPage, GridState, compute_page, filtered_sorted
from admissions_grid.models import ALL_SENTINEL, ColumnDef, FieldRule, SelectFilter
from admissions_grid.pipeline import (
    apply_filters,
    apply_sort,
    build_csv,
    export_filename,
    normalize_record,
    paginate,
    records_to_frame,
    total_pages,
)
from admissions_grid.record_grid import (
    RecordGridMixin,
    get_backend,
    record_grid,
    record_grid_bulk_bar,
    record_grid_detail_box,
    record_grid_pagination,
    record_grid_stats_bar,
    record_grid_table,
    record_grid_toolbar,
    register_backend,
)
from admissions_grid.verification import VerificationCodeService, is_valid_code_format
from admissions_grid.views import (
    APPLICANTS_VIEW,
    DEFAULT_PAGE_SIZE,
    PAGE_SIZE_OPTIONS,
    USERS_VIEW,
    ViewDefinition,
    get_view,
    is_permitted,
    register_view,
    validate_fields,
)
