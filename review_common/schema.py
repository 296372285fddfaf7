from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence, Tuple


def clean_header_name(name: str):
    """
    Clean noisy Excel headers by collapsing repeated words/phrases.

    Exports from different document control systems sometimes repeat the
    header label ("Title Title", "Document Number DOCUMENT NUMBER"); the
    cleaned form is used as a secondary lookup key when resolving aliases.
    """
    if not name:
        return name

    tokens = str(name).strip().split()
    n_tokens = len(tokens)
    if n_tokens == 0:
        return name

    # Detect repeated phrases (e.g., "Title TITLE" -> "Title").
    for chunk_size in range(1, n_tokens // 2 + 1):
        if n_tokens % chunk_size != 0:
            continue
        chunks = [tokens[i : i + chunk_size] for i in range(0, n_tokens, chunk_size)]
        first_norm = [x.lower() for x in chunks[0]]
        if all([x.lower() for x in c] == first_norm for c in chunks[1:]):
            return clean_header_name(" ".join(chunks[0]))

    cleaned: List[str] = []
    for token in tokens:
        if not cleaned or cleaned[-1].lower() != token.lower():
            cleaned.append(token)
    return " ".join(cleaned)


# Logical field -> ordered source column aliases. The first non-empty wins.
DEFAULT_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "document_number": ("Document Number", "Drawing Number", "Name", "Title"),
    "title": ("Title", "Correspondence Title", "Name"),
    "discipline": ("Discipline",),
    "recipients": ("Recipient Companies", "Recipients", "Recipient Company"),
    "originating_company": ("Originating Company",),
    "verdict": ("Final Review Verdict",),
    "status": ("Correspondence Status",),
    "issue_reason_text": ("Issue Reason Text",),
    "issue_reason": ("Issue Reason",),
    "final_review_comments": ("Final Review Comments",),
    "due_date": ("Calculated Response Due Date", "Response Due Date"),
    "date_issued": ("Date Issued", "Actual Submission Date"),
    "final_review_date": ("Final Review Date",),
    "completed_date": ("Completed Date",),
    "correspondence_created": ("Correspondence Created", "Created"),
    "revision": ("Project Document Revision", "Revision", "Current Revision"),
    "correspondence_number": ("Correspondence Number",),
    "correspondence_type": ("Correspondence Type", "Item Type"),
    "work_package": ("Work Package",),
    "path": ("Path",),
}

DATE_FIELDS: Sequence[str] = (
    "date_issued",
    "final_review_date",
    "due_date",
    "completed_date",
    "correspondence_created",
)

# Fallback chain for the single representative date of a record.
BEST_DATE_CHAIN: Sequence[str] = (
    "date_issued",
    "final_review_date",
    "completed_date",
    "correspondence_created",
    "due_date",
)

# At least one of these must be non-empty or the row is a blank spreadsheet row.
RETENTION_FIELDS: Sequence[str] = (
    "originating_company",
    "document_number",
    "correspondence_number",
    "title",
)

BUCKET_APPROVED = "Approved"
BUCKET_COMMENTED = "Commented & to be Resubmitted"
BUCKET_REJECTED = "Rejected & to be Resubmitted"
BUCKET_UNDER_REVIEW = "Under Review"
BUCKET_READY = "Ready for use"
BUCKET_COMPLETED = "Completed"
BUCKET_NOT_ACCEPTED = "Not Accepted"
BUCKET_CANCELLED = "Cancelled"
BUCKET_OBSOLETE = "Obsolete"
BUCKET_UNKNOWN = "Unknown"

BUCKET_ORDER: Sequence[str] = (
    BUCKET_APPROVED,
    BUCKET_COMMENTED,
    BUCKET_REJECTED,
    BUCKET_UNDER_REVIEW,
    BUCKET_READY,
    BUCKET_COMPLETED,
    BUCKET_NOT_ACCEPTED,
    BUCKET_CANCELLED,
    BUCKET_OBSOLETE,
    BUCKET_UNKNOWN,
)

OPEN_BUCKETS: frozenset[str] = frozenset({BUCKET_UNDER_REVIEW, BUCKET_COMMENTED, BUCKET_REJECTED})

DISCIPLINE_CODES: Mapping[str, str] = {
    "Architectural": "AR",
    "Civil & Structural": "CS",
    "Electrical": "EL",
    "Mechanical": "ME",
    "Piping": "PI",
    "Project Management": "PM",
    "Process": "PR",
    "Instrumentation": "IC",
    "Building Services": "BS",
    "Construction Management": "CO",
    "QAQC": "QA",
    "Safety": "SF",
}

UNSPECIFIED_DISCIPLINE = "Unspecified"

STATUS_COLORS: Mapping[str, str] = {
    BUCKET_APPROVED: "#63f3c3",
    BUCKET_COMMENTED: "#f7c948",
    BUCKET_REJECTED: "#f57777",
    BUCKET_UNDER_REVIEW: "#6a8bff",
    BUCKET_READY: "#63f3c3",
    BUCKET_COMPLETED: "#4dd4b0",
    BUCKET_NOT_ACCEPTED: "#f57777",
    BUCKET_CANCELLED: "#9ca3af",
    BUCKET_OBSOLETE: "#64748b",
    BUCKET_UNKNOWN: "#cbd5e1",
}

PALETTE: Sequence[str] = (
    "#63f3c3",
    "#6a8bff",
    "#f7c948",
    "#f57777",
    "#ff9bd0",
    "#8be9fd",
    "#c792ea",
    "#94a3b8",
)


def merge_alias_groups(
    overrides: Mapping[str, Iterable[str]] | None,
    base: Mapping[str, Iterable[str]] | None = None,
) -> Dict[str, Tuple[str, ...]]:
    """
    Merge alias overrides into the default alias groups.

    Overrides replace the whole alias list of a field so callers control the
    precedence order. Unknown field names are rejected rather than ignored.
    """

    mapping: Dict[str, Tuple[str, ...]] = {k: tuple(str(a) for a in v) for k, v in (base or DEFAULT_ALIASES).items()}

    if overrides:
        for field_name, aliases in overrides.items():
            if field_name not in mapping:
                raise ValueError(f"Unknown alias field '{field_name}'; expected one of: {', '.join(mapping)}")
            if isinstance(aliases, str):
                aliases = [aliases]
            cleaned = tuple(str(a) for a in aliases if str(a).strip())
            if not cleaned:
                raise ValueError(f"Alias list for '{field_name}' must not be empty.")
            mapping[field_name] = cleaned
    return mapping
