from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .aggregate import DisciplineData, Stats, compute_discipline_data, compute_stats, latest_per_document
from .datasets import ChartDataset, build_discipline_dataset, build_status_dataset
from .filters import FilterState, apply_filters, filter_options
from .normalize import Record
from .timeline import LetteredData, RevisionData, compute_lettered_open, compute_revision_data


@dataclass
class DashboardView:
    """Every derived view for one (records, filters, now) input."""

    records: List[Record]
    filters: FilterState
    options: Dict[str, List[str]]
    filtered_all: List[Record]
    filtered_docs: List[Record]
    filtered_docs_no_status: List[Record]
    latest_docs: List[Record]
    discipline_data: DisciplineData
    revision_data: RevisionData
    lettered_data: LetteredData
    status_dataset: ChartDataset
    discipline_dataset: ChartDataset
    stats: Stats


def build_dashboard_view(
    records: Sequence[Record],
    filters: Optional[FilterState] = None,
    now: Optional[datetime] = None,
) -> DashboardView:
    """
    Recompute all views from scratch.

    Nothing is cached or mutated between calls, so the same input always
    yields an equal view.
    """

    filters = filters or FilterState()
    now = now or datetime.now(timezone.utc)
    records = list(records)

    filtered_all = apply_filters(records, filters)
    doc_records = [r for r in records if r.document_number]
    filtered_docs = apply_filters(doc_records, filters)
    filtered_docs_no_status = apply_filters(doc_records, filters, ignore_status=True)
    latest_docs = latest_per_document(filtered_docs)

    return DashboardView(
        records=records,
        filters=filters,
        options=filter_options(records),
        filtered_all=filtered_all,
        filtered_docs=filtered_docs,
        filtered_docs_no_status=filtered_docs_no_status,
        latest_docs=latest_docs,
        discipline_data=compute_discipline_data(latest_docs),
        revision_data=compute_revision_data(filtered_docs),
        lettered_data=compute_lettered_open(filtered_docs, filtered_docs_no_status),
        status_dataset=build_status_dataset(latest_docs),
        discipline_dataset=build_discipline_dataset(latest_docs),
        stats=compute_stats(records, filtered_all, filtered_docs, latest_docs, now),
    )
