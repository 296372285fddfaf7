from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import polars as pl

from .normalize import Record, as_utc
from .schema import BUCKET_ORDER, BUCKET_UNDER_REVIEW, OPEN_BUCKETS, UNSPECIFIED_DISCIPLINE

GRAND_TOTAL = "Grand total"


def latest_per_document(records: Sequence[Record]) -> List[Record]:
    """
    Collapse records to one per document key, keeping the latest best date.

    A later record only replaces the current one when it has a date that is
    strictly greater (or the current one has none). Groups keep first-seen
    order and each returned copy carries ``latest_date``.
    """

    latest: Dict[str, Record] = {}
    for record in records:
        key = record.document_key
        if not key:
            continue
        date = record.best_date
        current = latest.get(key)
        if current is None:
            latest[key] = dataclasses.replace(record, latest_date=date)
            continue
        if date is not None and (current.latest_date is None or date > current.latest_date):
            latest[key] = dataclasses.replace(record, latest_date=date)
    return list(latest.values())


@dataclass
class DisciplineTotals:
    total: int = 0
    issued: int = 0


@dataclass
class DisciplineData:
    totals: Dict[str, DisciplineTotals] = field(default_factory=dict)
    pivot: Dict[str, Dict[str, int]] = field(default_factory=dict)
    disciplines: List[str] = field(default_factory=list)


def discipline_key(record: Record) -> str:
    return record.discipline_label or UNSPECIFIED_DISCIPLINE


def discipline_frame(latest_docs: Sequence[Record]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "discipline": [discipline_key(r) for r in latest_docs],
            "bucket": [r.effective_bucket for r in latest_docs],
            "issued": [bool(r.date_issued or r.final_review_date or r.best_date) for r in latest_docs],
        },
        schema={"discipline": pl.Utf8, "bucket": pl.Utf8, "issued": pl.Boolean},
    )


def compute_discipline_data(latest_docs: Sequence[Record]) -> DisciplineData:
    """Per-discipline totals plus the bucket x discipline pivot over latest documents."""

    frame = discipline_frame(latest_docs)
    totals_df = frame.group_by("discipline", maintain_order=True).agg(
        pl.len().alias("total"),
        pl.col("issued").sum().alias("issued"),
    )
    pivot_df = frame.group_by(["bucket", "discipline"], maintain_order=True).len()

    totals = {
        row["discipline"]: DisciplineTotals(total=int(row["total"]), issued=int(row["issued"]))
        for row in totals_df.iter_rows(named=True)
    }
    pivot: Dict[str, Dict[str, int]] = {}
    for row in pivot_df.iter_rows(named=True):
        pivot.setdefault(row["bucket"], {})[row["discipline"]] = int(row["len"])

    return DisciplineData(totals=totals, pivot=pivot, disciplines=sorted(totals))


def discipline_total_rows(data: DisciplineData) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for disc in sorted(data.totals):
        entry = data.totals[disc]
        rows.append({"Discipline": disc, "Total drawings/documents": entry.total, "Total issued": entry.issued})
    rows.append(
        {
            "Discipline": GRAND_TOTAL,
            "Total drawings/documents": sum(r["Total drawings/documents"] for r in rows),
            "Total issued": sum(r["Total issued"] for r in rows),
        }
    )
    return rows


def pivot_rows(data: DisciplineData) -> List[Dict[str, Any]]:
    """
    Status pivot rows in canonical bucket order followed by a grand total row.

    Buckets outside the canonical order (free-text verdicts) have no row and
    are left out of the grand total, although they still count in the
    discipline totals.
    """

    rows: List[Dict[str, Any]] = []
    for bucket in BUCKET_ORDER:
        counts = data.pivot.get(bucket)
        if not counts:
            continue
        row: Dict[str, Any] = {"Status": bucket}
        for disc in data.disciplines:
            row[disc] = counts.get(disc, 0)
        row["Row total"] = sum(counts.get(disc, 0) for disc in data.disciplines)
        rows.append(row)

    grand: Dict[str, Any] = {"Status": GRAND_TOTAL}
    for disc in data.disciplines:
        grand[disc] = sum(data.pivot.get(bucket, {}).get(disc, 0) for bucket in BUCKET_ORDER)
    grand["Row total"] = sum(sum(data.pivot.get(bucket, {}).values()) for bucket in BUCKET_ORDER)
    rows.append(grand)
    return rows


@dataclass(frozen=True)
class Stats:
    rows_loaded: int
    filtered_rows: int
    filtered_document_rows: int
    latest_documents: int
    open_reviews: int
    under_review: int
    under_review_pct: float
    overdue: int


def compute_stats(
    all_records: Sequence[Record],
    filtered_all: Sequence[Record],
    filtered_docs: Sequence[Record],
    latest_docs: Sequence[Record],
    now: Optional[datetime] = None,
) -> Stats:
    """
    Headline numbers. Open reviews count latest documents in an open bucket;
    overdue counts filtered document rows still under review whose due date has
    passed. A naive ``now`` is taken as UTC.
    """

    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    open_reviews = sum(1 for r in latest_docs if r.effective_bucket in OPEN_BUCKETS)
    under_review = sum(1 for r in latest_docs if r.effective_bucket == BUCKET_UNDER_REVIEW)
    overdue = sum(
        1
        for r in filtered_docs
        if r.effective_bucket == BUCKET_UNDER_REVIEW and r.due_date is not None and r.due_date < now
    )
    pct = (under_review / len(latest_docs) * 100) if latest_docs else 0.0
    return Stats(
        rows_loaded=len(all_records),
        filtered_rows=len(filtered_all),
        filtered_document_rows=len(filtered_docs),
        latest_documents=len(latest_docs),
        open_reviews=open_reviews,
        under_review=under_review,
        under_review_pct=round(pct, 1),
        overdue=overdue,
    )
