from __future__ import annotations

import math
import re
import string
from dataclasses import dataclass, field
from datetime import datetime
from functools import cmp_to_key
from typing import Dict, List, Optional, Sequence, Tuple

from .normalize import UNIX_EPOCH, Record
from .schema import OPEN_BUCKETS

NO_REVISION = "N/A"
LETTERS = string.ascii_uppercase
_CHUNKS = re.compile(r"(\d+)")


def locale_sort_key(text: str) -> Tuple[str, str]:
    """Case-insensitive ordering with lowercase ahead of uppercase on ties."""

    return text.casefold(), text.swapcase()


def _natural_key(text: str) -> Tuple[Tuple[int, int, str, str], ...]:
    parts = []
    for chunk in _CHUNKS.split(text):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk), "", ""))
        else:
            parts.append((1, 0, chunk.casefold(), chunk.swapcase()))
    return tuple(parts)


def _as_number(text: str) -> Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    return None if math.isnan(value) else value


def compare_revisions(a: str, b: str) -> int:
    """Numeric revisions compare numerically, anything else in natural order."""

    a_num, b_num = _as_number(a), _as_number(b)
    if a_num is not None and b_num is not None:
        return (a_num > b_num) - (a_num < b_num)
    a_key, b_key = _natural_key(a), _natural_key(b)
    return (a_key > b_key) - (a_key < b_key)


def sort_revisions(revisions: Sequence[str]) -> List[str]:
    return sorted(revisions, key=cmp_to_key(compare_revisions))


def letter_for(index: int) -> str:
    """A..Z for the first 26 submissions, then R26, R27, ..."""

    return LETTERS[index] if index < len(LETTERS) else f"R{index}"


def _chronological(records: Sequence[Record]) -> List[Record]:
    # Stable; undated records go last in their input order.
    return sorted(records, key=lambda r: (r.best_date is None, r.best_date or UNIX_EPOCH))


def _is_open(record: Record) -> bool:
    return record.effective_bucket in OPEN_BUCKETS


@dataclass(frozen=True)
class PhaseFlags:
    thirty: bool = False
    sixty: bool = False
    ninety: bool = False
    ifc: bool = False
    bd: bool = False


def infer_phase_flags(issue_text: str) -> PhaseFlags:
    t = (issue_text or "").lower()
    return PhaseFlags(
        thirty="30%" in t,
        sixty="60%" in t,
        ninety="90%" in t,
        ifc="construction" in t or "ifc" in t,
        bd="bd" in t or "basic design" in t,
    )


@dataclass
class RevisionRow:
    document_number: str
    title: str
    discipline: str
    originating_company: str
    recipients: str
    status: str
    due_date: Optional[datetime]
    correspondence_number: str
    current_rev: str
    doc_revision: str
    issue_reason_text: str
    issue_reason: str
    completed_date: Optional[datetime]
    final_review_date: Optional[datetime]
    work_package: str
    comments: str
    revisions: Dict[str, Optional[datetime]] = field(default_factory=dict)


@dataclass
class RevisionData:
    columns: List[str] = field(default_factory=list)
    rows: List[RevisionRow] = field(default_factory=list)


@dataclass
class _RevisionGroup:
    base: Record
    base_date: Optional[datetime] = None
    revisions: Dict[str, Optional[datetime]] = field(default_factory=dict)
    latest_rev: Optional[str] = None
    latest_date: Optional[datetime] = None


def _timeline_date(record: Record) -> Optional[datetime]:
    return record.date_issued or record.final_review_date or record.best_date


def compute_revision_data(doc_records: Sequence[Record]) -> RevisionData:
    """
    Revision -> last-seen date per document, limited to open review buckets.

    Columns are the union of revisions across all documents; rows are sorted
    by document number and carry the latest-dated record's descriptive fields.
    """

    groups: Dict[str, _RevisionGroup] = {}
    for record in doc_records:
        if not _is_open(record) or not record.document_number:
            continue
        date = _timeline_date(record)
        rev = record.revision or NO_REVISION
        group = groups.get(record.document_number)
        if group is None:
            group = _RevisionGroup(base=record, base_date=date)
            groups[record.document_number] = group
        elif date is not None and (group.base_date is None or date > group.base_date):
            group.base = record
            group.base_date = date

        if rev not in group.revisions:
            group.revisions[rev] = date
        elif date is not None:
            seen = group.revisions[rev]
            if seen is None or date > seen:
                group.revisions[rev] = date

        if group.latest_rev is None or (date is not None and (group.latest_date is None or date > group.latest_date)):
            group.latest_rev = rev
            group.latest_date = date

    columns = sort_revisions(list(dict.fromkeys(rev for g in groups.values() for rev in g.revisions)))
    ordered = sorted(groups.values(), key=lambda g: locale_sort_key(g.base.document_number))

    rows: List[RevisionRow] = []
    for group in ordered:
        base = group.base
        rows.append(
            RevisionRow(
                document_number=base.document_number,
                title=base.title,
                discipline=base.discipline_label,
                originating_company=base.originating_company,
                recipients=base.recipients_display(),
                status=base.effective_bucket,
                due_date=base.due_date,
                correspondence_number=base.correspondence_number,
                current_rev=group.latest_rev or "",
                doc_revision=base.revision,
                issue_reason_text=base.issue_reason_text,
                issue_reason=base.issue_reason,
                completed_date=base.completed_date,
                final_review_date=base.final_review_date,
                work_package=base.work_package,
                comments=base.final_review_comments,
                revisions={rev: group.revisions.get(rev) for rev in columns},
            )
        )
    return RevisionData(columns=columns, rows=rows)


@dataclass
class LetteredRow:
    index: int
    discipline: str
    ifc_flag: str
    document_number: str
    title: str
    current_revision: str
    category: str
    correspondence_number: str
    status: str
    due_date: Optional[datetime]
    completed_date: Optional[datetime]
    remark: str
    recipients: str
    flags: PhaseFlags
    rev_dates: Dict[str, Optional[datetime]] = field(default_factory=dict)
    rev_records: Dict[str, Record] = field(default_factory=dict)


@dataclass
class LetteredData:
    columns: List[str] = field(default_factory=list)
    rows: List[LetteredRow] = field(default_factory=list)


def lettered_key(record: Record) -> str:
    # Correspondence-only rows must not collide with documents sharing an empty number.
    return record.document_number or f"corr:{record.correspondence_number}"


def compute_lettered_open(target_docs: Sequence[Record], history_docs: Sequence[Record]) -> LetteredData:
    """
    Rebuild the submission history of every open document as A, B, C, ...

    ``target_docs`` is the status-filtered view deciding which documents are
    open; ``history_docs`` is the same view without the status facet and
    supplies the full chronological history.
    """

    needed = list(dict.fromkeys(lettered_key(r) for r in target_docs if _is_open(r)))
    if not needed:
        return LetteredData()

    history_by_key: Dict[str, List[Record]] = {}
    for record in history_docs:
        history_by_key.setdefault(lettered_key(record), []).append(record)

    max_letters = 0
    rows: List[LetteredRow] = []
    for key in needed:
        history = history_by_key.get(key, [])
        if not history:
            continue

        ordered = _chronological(history)
        rev_records = {letter_for(idx): record for idx, record in enumerate(ordered)}
        max_letters = max(max_letters, len(rev_records))

        targets = [r for r in target_docs if lettered_key(r) == key and _is_open(r)]
        if targets:
            base = _chronological(targets)[-1]
        else:
            base = ordered[-1]

        category = base.issue_reason_text or base.issue_reason
        flags = infer_phase_flags(category)
        rows.append(
            LetteredRow(
                index=len(rows) + 1,
                discipline=base.discipline_label,
                ifc_flag="X" if flags.ifc else "",
                document_number=base.document_number,
                title=base.title,
                current_revision=base.revision or next(reversed(rev_records), ""),
                category=category,
                correspondence_number=base.correspondence_number,
                status=base.effective_bucket,
                due_date=base.due_date,
                completed_date=base.completed_date or base.final_review_date,
                remark=base.final_review_comments,
                recipients=base.recipients_display(),
                flags=flags,
                rev_dates={letter: record.best_date for letter, record in rev_records.items()},
                rev_records=rev_records,
            )
        )

    rows.sort(key=lambda row: locale_sort_key(row.document_number))
    for position, row in enumerate(rows, start=1):
        row.index = position

    return LetteredData(columns=[letter_for(i) for i in range(max_letters)], rows=rows)
