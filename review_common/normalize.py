from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from dateutil import parser as date_parser

from .schema import (
    BEST_DATE_CHAIN,
    BUCKET_APPROVED,
    BUCKET_CANCELLED,
    BUCKET_COMMENTED,
    BUCKET_COMPLETED,
    BUCKET_NOT_ACCEPTED,
    BUCKET_OBSOLETE,
    BUCKET_READY,
    BUCKET_REJECTED,
    BUCKET_UNDER_REVIEW,
    BUCKET_UNKNOWN,
    DEFAULT_ALIASES,
    DISCIPLINE_CODES,
    RETENTION_FIELDS,
    clean_header_name,
)

LOGGER = logging.getLogger(__name__)

# Spreadsheet serial 25569 is 1970-01-01 in the 1900 date system.
EXCEL_EPOCH_SERIAL = 25569
SECONDS_PER_DAY = 86400
UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Fills the parts missing from partial text dates ("2024" -> 2024-01-01).
PARSE_DEFAULT = datetime(1970, 1, 1)
DISPLAY_DATE_FORMAT = "%d %b %y"
_RECIPIENT_SPLIT = re.compile(r"[;,]")


@dataclass(frozen=True)
class Record:
    """One normalized correspondence/document row."""

    id: str = ""
    source_file: str = ""
    sheet: str = ""
    document_number: str = ""
    correspondence_number: str = ""
    title: str = ""
    discipline: str = ""
    discipline_code: str = ""
    originating_company: str = ""
    recipients: Tuple[str, ...] = ()
    recipient_raw: str = ""
    status: str = ""
    verdict: str = ""
    bucket: str = ""
    issue_reason_text: str = ""
    issue_reason: str = ""
    final_review_comments: str = ""
    correspondence_type: str = ""
    work_package: str = ""
    revision: str = ""
    path: str = ""
    date_issued: Optional[datetime] = None
    final_review_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    correspondence_created: Optional[datetime] = None
    best_date: Optional[datetime] = None
    latest_date: Optional[datetime] = None

    @property
    def document_key(self) -> str:
        return self.document_number or self.correspondence_number or self.title

    @property
    def discipline_label(self) -> str:
        return self.discipline_code or self.discipline

    @property
    def effective_bucket(self) -> str:
        return self.bucket or derive_bucket(self.verdict, self.status)

    def recipient_list(self) -> List[str]:
        """Structured recipients, or the unparsed raw value when nothing split out."""

        if self.recipients:
            return list(self.recipients)
        return [self.recipient_raw] if self.recipient_raw else []

    def recipients_display(self) -> str:
        return ", ".join(self.recipients) if self.recipients else self.recipient_raw


@dataclass
class NormalizationReport:
    raw_row_count: int = 0
    kept_row_count: int = 0
    dropped_row_count: int = 0
    sheet_row_counts: Dict[str, int] = field(default_factory=dict)

    def merge(self, other: "NormalizationReport") -> None:
        self.raw_row_count += other.raw_row_count
        self.kept_row_count += other.kept_row_count
        self.dropped_row_count += other.dropped_row_count
        for label, count in other.sheet_row_counts.items():
            self.sheet_row_counts[label] = self.sheet_row_counts.get(label, 0) + count


@dataclass(frozen=True)
class SourceSheet:
    """A parsed sheet handed over by the tabular source reader."""

    file_name: str
    sheet_name: str
    rows: Sequence[Mapping[str, Any]]


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def clean(value: Any) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()


def index_row_headers(row: Mapping[str, Any], clean_headers: bool = True) -> Dict[str, Any]:
    """
    Return a lookup dict for a raw row that also answers to trimmed headers.

    Exact keys always win; trimmed (and, when enabled, de-duplicated) header
    names are only added when they do not collide with an existing key.
    """

    indexed: Dict[str, Any] = dict(row)
    for key, value in row.items():
        if not isinstance(key, str):
            continue
        indexed.setdefault(key.strip(), value)
        if clean_headers:
            indexed.setdefault(clean_header_name(key), value)
    return indexed


def first_present(row: Mapping[str, Any], aliases: Iterable[str]) -> Any:
    """Return the first raw value among ``aliases`` that is non-empty after trimming."""

    for alias in aliases:
        value = row.get(alias)
        if clean(value):
            return value
    return None


def resolve_field(row: Mapping[str, Any], aliases: Iterable[str]) -> str:
    return clean(first_present(row, aliases))


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def parse_date(value: Any) -> Optional[datetime]:
    """
    Coerce a raw cell into an aware datetime, or None.

    Numbers are spreadsheet serials (1900 date system); strings go through
    dateutil. Anything that cannot be interpreted becomes None.
    """

    if _is_missing(value):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        seconds = _round_half_up((value - EXCEL_EPOCH_SERIAL) * SECONDS_PER_DAY)
        try:
            return UNIX_EPOCH + timedelta(seconds=seconds)
        except OverflowError:
            LOGGER.debug("Spreadsheet serial out of range: %r", value)
            return None

    text = str(value).strip()
    if not text:
        return None
    try:
        return as_utc(date_parser.parse(text, default=PARSE_DEFAULT))
    except (ValueError, OverflowError):
        LOGGER.debug("Unparseable date text: %r", text)
        return None


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime(DISPLAY_DATE_FORMAT)


def to_discipline_code(text: str) -> str:
    """Map a discipline name to its 2-letter code; unknown names use their initials."""

    if not text:
        return ""
    if text in DISCIPLINE_CODES:
        return DISCIPLINE_CODES[text]
    return "".join(word[0] for word in text.split())[:2].upper()


def derive_bucket(verdict: str, status: str) -> str:
    """
    Classify a verdict/status pair into a review bucket.

    Rules are checked in order and the first match wins, so a verdict always
    takes priority over the correspondence status.
    """

    verdict = verdict or ""
    status = status or ""
    v = verdict.lower()
    s = status.lower()
    if "commented" in v:
        return BUCKET_COMMENTED
    if "rejected" in v and "resubmission" in v:
        return BUCKET_REJECTED
    if "approved" in v:
        return BUCKET_APPROVED
    if s == "under review":
        return BUCKET_UNDER_REVIEW
    if s == "ready for use":
        return BUCKET_READY
    if s == "completed":
        return verdict if verdict else BUCKET_COMPLETED
    if s == "not accepted":
        return BUCKET_NOT_ACCEPTED
    if s == "cancelled":
        return BUCKET_CANCELLED
    if s == "obsolete":
        return BUCKET_OBSOLETE
    return verdict or status or BUCKET_UNKNOWN


def split_recipients(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in _RECIPIENT_SPLIT.split(raw) if part.strip())


def normalize_row(
    row: Mapping[str, Any],
    source_file: str,
    sheet: str,
    idx: int,
    aliases: Mapping[str, Sequence[str]] = DEFAULT_ALIASES,
    *,
    clean_headers: bool = True,
) -> Optional[Record]:
    """
    Build a Record from one raw spreadsheet row.

    Returns None for blank rows (no originator, document number,
    correspondence number or title).
    """

    lookup = index_row_headers(row, clean_headers=clean_headers)

    def text(name: str) -> str:
        return resolve_field(lookup, aliases[name])

    def when(name: str) -> Optional[datetime]:
        return parse_date(first_present(lookup, aliases[name]))

    values: Dict[str, Any] = {
        "document_number": text("document_number"),
        "correspondence_number": text("correspondence_number"),
        "title": text("title"),
        "originating_company": text("originating_company"),
    }
    if not any(values[name] for name in RETENTION_FIELDS):
        return None

    discipline = text("discipline")
    recipient_raw = text("recipients")
    status = text("status")
    verdict = text("verdict")
    dates = {
        name: when(name)
        for name in ("date_issued", "final_review_date", "due_date", "completed_date", "correspondence_created")
    }
    best_date = next((dates[name] for name in BEST_DATE_CHAIN if dates[name] is not None), None)

    return Record(
        id=f"{source_file}-{sheet}-{idx}",
        source_file=source_file,
        sheet=sheet,
        discipline=discipline,
        discipline_code=to_discipline_code(discipline),
        recipients=split_recipients(recipient_raw),
        recipient_raw=recipient_raw,
        status=status,
        verdict=verdict,
        bucket=derive_bucket(verdict, status),
        issue_reason_text=text("issue_reason_text"),
        issue_reason=text("issue_reason"),
        final_review_comments=text("final_review_comments"),
        correspondence_type=text("correspondence_type"),
        work_package=text("work_package"),
        revision=text("revision"),
        path=text("path"),
        best_date=best_date,
        **values,
        **dates,
    )


def normalize_sheet(
    sheet: SourceSheet,
    aliases: Mapping[str, Sequence[str]] = DEFAULT_ALIASES,
    *,
    clean_headers: bool = True,
) -> Tuple[List[Record], NormalizationReport]:
    """Normalize every row of a sheet, dropping blank rows."""

    records: List[Record] = []
    for idx, row in enumerate(sheet.rows):
        record = normalize_row(row, sheet.file_name, sheet.sheet_name, idx, aliases, clean_headers=clean_headers)
        if record is None:
            LOGGER.debug("Dropping blank row %d in %s/%s", idx, sheet.file_name, sheet.sheet_name)
            continue
        records.append(record)

    raw_count = len(sheet.rows)
    report = NormalizationReport(
        raw_row_count=raw_count,
        kept_row_count=len(records),
        dropped_row_count=raw_count - len(records),
        sheet_row_counts={f"{sheet.file_name}/{sheet.sheet_name}": len(records)},
    )
    return records, report


def normalize_sources(
    sheets: Iterable[SourceSheet],
    aliases: Mapping[str, Sequence[str]] = DEFAULT_ALIASES,
    *,
    clean_headers: bool = True,
) -> Tuple[List[Record], NormalizationReport]:
    records: List[Record] = []
    report = NormalizationReport()
    for sheet in sheets:
        sheet_records, sheet_report = normalize_sheet(sheet, aliases, clean_headers=clean_headers)
        records.extend(sheet_records)
        report.merge(sheet_report)
    return records, report
