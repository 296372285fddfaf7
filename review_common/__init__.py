"""
Shared schema, normalization and aggregation helpers for correspondence review
registers, used by the dashboard data layer and the export bundle.
"""

from .schema import (  # noqa: F401
    BUCKET_ORDER,
    DEFAULT_ALIASES,
    DISCIPLINE_CODES,
    OPEN_BUCKETS,
    clean_header_name,
    merge_alias_groups,
)

from .normalize import (  # noqa: F401
    NormalizationReport,
    Record,
    SourceSheet,
    derive_bucket,
    format_date,
    normalize_row,
    normalize_sources,
    parse_date,
    resolve_field,
    to_discipline_code,
)

from .filters import FilterState, apply_filters, filter_options  # noqa: F401
from .aggregate import compute_discipline_data, compute_stats, latest_per_document, pivot_rows  # noqa: F401
from .timeline import compute_lettered_open, compute_revision_data, infer_phase_flags  # noqa: F401
from .datasets import build_discipline_dataset, build_status_dataset  # noqa: F401
from .pipeline import DashboardView, build_dashboard_view  # noqa: F401
from .export import build_export_bundle  # noqa: F401

__all__ = [
    "BUCKET_ORDER",
    "DEFAULT_ALIASES",
    "DISCIPLINE_CODES",
    "OPEN_BUCKETS",
    "clean_header_name",
    "merge_alias_groups",
    "NormalizationReport",
    "Record",
    "SourceSheet",
    "derive_bucket",
    "format_date",
    "normalize_row",
    "normalize_sources",
    "parse_date",
    "resolve_field",
    "to_discipline_code",
    "FilterState",
    "apply_filters",
    "filter_options",
    "compute_discipline_data",
    "compute_stats",
    "latest_per_document",
    "pivot_rows",
    "compute_lettered_open",
    "compute_revision_data",
    "infer_phase_flags",
    "build_discipline_dataset",
    "build_status_dataset",
    "DashboardView",
    "build_dashboard_view",
    "build_export_bundle",
]
