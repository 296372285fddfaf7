"""
Data layer for the correspondence review dashboard.

Workbook parsing, chart rendering and workbook writing live in the UI
collaborators. This module takes the sheets they read, accumulates them into a
single record collection (with a deterministic policy for files that fail to
read) and turns a filter selection into the full set of view-models.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

import polars as pl

from review_common.export import build_export_bundle, record_row, rows_to_frame
from review_common.filters import FACETS, FilterState
from review_common.normalize import NormalizationReport, Record, SourceSheet, normalize_sources
from review_common.pipeline import DashboardView, build_dashboard_view

from .config import DashboardSettings

LOGGER = logging.getLogger(__name__)

SheetReader = Callable[[Any], Iterable[SourceSheet]]


class IngestError(RuntimeError):
    """Raised when a source fails to read under the ``abort`` policy."""


@dataclass
class IngestResult:
    records: List[Record] = field(default_factory=list)
    report: NormalizationReport = field(default_factory=NormalizationReport)
    failed_sources: List[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        sheets = len(self.report.sheet_row_counts)
        return f"{sheets} sheet(s) • {len(self.records)} rows"


def source_label(source: Any) -> str:
    return str(getattr(source, "name", None) or source)


def sheet_from_frame(file_name: str, sheet_name: str, df: pl.DataFrame) -> SourceSheet:
    """Wrap a Polars frame produced by a workbook reader as a SourceSheet."""

    return SourceSheet(file_name=file_name, sheet_name=sheet_name, rows=df.to_dicts())


def ingest_sources(
    sources: Sequence[Any],
    reader: SheetReader,
    settings: Optional[DashboardSettings] = None,
) -> IngestResult:
    """
    Read and normalize sources one after another.

    A source is fully read before any of its rows are kept, so a failing file
    never leaves partial rows behind. With the ``skip`` policy the failure is
    logged and recorded in ``failed_sources``; with ``abort`` an IngestError is
    raised and nothing is returned.
    """

    settings = settings or DashboardSettings()
    result = IngestResult()

    for source in sources:
        label = source_label(source)
        try:
            sheets = list(reader(source))
        except Exception as exc:
            if settings.ingest.failure_policy == "abort":
                raise IngestError(f"Failed to read {label}: {exc}") from exc
            LOGGER.warning("Skipping %s; failed to read: %s", label, exc)
            result.failed_sources.append(label)
            continue

        records, report = normalize_sources(
            sheets,
            settings.aliases,
            clean_headers=settings.ingest.clean_headers,
        )
        result.records.extend(records)
        result.report.merge(report)
        LOGGER.info(
            "Loaded %d rows from %s (%d blank rows dropped)",
            report.kept_row_count,
            label,
            report.dropped_row_count,
        )

    LOGGER.info("Ingested %s", result.summary)
    return result


def filters_from_selection(selection: Mapping[str, Iterable[str]], search: str = "") -> FilterState:
    """Build a FilterState from facet -> selected values, rejecting unknown facets."""

    unknown = sorted(set(selection) - set(FACETS))
    if unknown:
        raise ValueError(f"Unknown filter facet(s): {', '.join(unknown)}")
    values = {facet: tuple(str(v) for v in selected if str(v)) for facet, selected in selection.items()}
    return FilterState(search=search or "", **values)


def records_frame(records: Sequence[Record]) -> pl.DataFrame:
    """Flat record table with the dashboard's column headers."""

    return rows_to_frame([record_row(r) for r in records])


def load_dashboard(
    sources: Sequence[Any],
    reader: SheetReader,
    filters: Optional[FilterState] = None,
    settings: Optional[DashboardSettings] = None,
    *,
    now: Optional[datetime] = None,
) -> Tuple[DashboardView, IngestResult]:
    """Ingest the sources and compute the view for the given filters."""

    ingested = ingest_sources(sources, reader, settings)
    view = build_dashboard_view(ingested.records, filters, now=now)
    return view, ingested


__all__ = [
    "IngestError",
    "IngestResult",
    "SheetReader",
    "build_export_bundle",
    "filters_from_selection",
    "ingest_sources",
    "load_dashboard",
    "records_frame",
    "sheet_from_frame",
    "source_label",
]
