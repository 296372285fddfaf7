from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

import polars as pl

from .aggregate import discipline_total_rows, pivot_rows
from .datasets import ChartDataset
from .normalize import Record
from .pipeline import DashboardView
from .timeline import LetteredData, RevisionData

MAX_SHEET_NAME = 31
NO_DATA_NOTICE = {"Notice": "No data"}


def rows_to_frame(rows: Sequence[Mapping[str, Any]]) -> pl.DataFrame:
    """Build a sheet frame; column order follows the first row."""

    if not rows:
        return pl.DataFrame([NO_DATA_NOTICE])
    return pl.DataFrame(list(rows), infer_schema_length=None)


def record_row(record: Record) -> Dict[str, Any]:
    return {
        "Document number": record.document_number,
        "Correspondence no.": record.correspondence_number,
        "Title": record.title,
        "Discipline": record.discipline_label,
        "Originating company": record.originating_company,
        "Recipients": record.recipients_display(),
        "Status": record.status,
        "Status bucket": record.effective_bucket,
        "Final verdict": record.verdict,
        "Revision": record.revision,
        "Date issued": record.date_issued,
        "Due date": record.due_date,
        "Final review date": record.final_review_date,
        "Completed date": record.completed_date,
        "Created date": record.correspondence_created,
        "Issue reason": record.issue_reason,
        "Issue reason text": record.issue_reason_text,
        "Work package": record.work_package,
        "Type": record.correspondence_type,
        "Source file": record.source_file,
    }


def revision_rows(data: RevisionData) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for row in data.rows:
        out: Dict[str, Any] = {
            "Document number": row.document_number,
            "Title": row.title,
            "Discipline": row.discipline,
            "Originating company": row.originating_company,
            "Recipients": row.recipients,
            "Status": row.status,
            "Due date": row.due_date,
            "Current rev": row.current_rev,
        }
        for rev in data.columns:
            out[f"Rev {rev}"] = row.revisions.get(rev)
        rows.append(out)
    return rows


def open_review_rows(data: LetteredData) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for row in data.rows:
        flags = row.flags
        out: Dict[str, Any] = {
            "#": row.index,
            "Discipline": row.discipline,
            "IFC to be Issued": row.ifc_flag,
            "Drawing number": row.document_number,
            "Description": row.title,
            "Current revision": row.current_revision,
            "Category": row.category,
            "Correspondence no.": row.correspondence_number,
            "Status": row.status,
            "Due date": row.due_date,
            "Completed date": row.completed_date,
            "Remark": row.remark,
            "BD": 1 if flags.bd else None,
            "30%": 1 if flags.thirty else None,
            "60%": 1 if flags.sixty else None,
            "90%": 1 if flags.ninety else None,
            "IFC": 1 if flags.ifc else None,
            "Impacted?": "",
        }
        for letter in data.columns:
            out[f"Rev {letter}"] = row.rev_dates.get(letter)
        rows.append(out)
    return rows


def chart_rows(status: ChartDataset, discipline: ChartDataset) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for label, count, pct in zip(status.labels, status.counts, status.percentages):
        rows.append({"Series": status.series, "Label": label, "Value": count, "Percent": round(pct, 1)})
    for label, count in zip(discipline.labels, discipline.counts):
        rows.append({"Series": discipline.series, "Label": label, "Value": count, "Percent": None})
    return rows


def stats_rows(view: DashboardView) -> List[Dict[str, Any]]:
    stats = view.stats
    return [
        {"Metric": "Rows loaded (all sheets)", "Value": stats.rows_loaded},
        {"Metric": "Filtered rows (all)", "Value": stats.filtered_rows},
        {"Metric": "Documents with revisions (filtered)", "Value": stats.filtered_document_rows},
        {"Metric": "Unique documents (latest)", "Value": stats.latest_documents},
        {"Metric": "Open reviews (latest)", "Value": stats.open_reviews},
        {"Metric": "Overdue reviews", "Value": stats.overdue},
    ]


def build_export_bundle(view: DashboardView) -> Dict[str, pl.DataFrame]:
    """
    Mirror the dashboard views as named sheets for the workbook writer.

    Sheet order is fixed; empty views become a single "No data" notice row.
    """

    sheets = {
        "Stats": stats_rows(view),
        "Discipline Summary": discipline_total_rows(view.discipline_data),
        "Status Pivot": pivot_rows(view.discipline_data),
        "Revision Timeline": revision_rows(view.revision_data),
        "Open Reviews": open_review_rows(view.lettered_data),
        "Latest Documents": [record_row(r) for r in view.latest_docs],
        "Filtered Rows": [record_row(r) for r in view.filtered_all],
        "Chart Data": chart_rows(view.status_dataset, view.discipline_dataset),
    }
    return {name[:MAX_SHEET_NAME]: rows_to_frame(rows) for name, rows in sheets.items()}
