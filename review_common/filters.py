from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

import polars as pl

from .normalize import Record


@dataclass(frozen=True)
class FilterState:
    """Current multi-select selections plus the free-text search."""

    origins: Tuple[str, ...] = ()
    recipients: Tuple[str, ...] = ()
    disciplines: Tuple[str, ...] = ()
    statuses: Tuple[str, ...] = ()
    verdicts: Tuple[str, ...] = ()
    issues: Tuple[str, ...] = ()
    issue_texts: Tuple[str, ...] = ()
    revisions: Tuple[str, ...] = ()
    types: Tuple[str, ...] = ()
    search: str = ""

    def is_empty(self) -> bool:
        return not (
            self.origins
            or self.recipients
            or self.disciplines
            or self.statuses
            or self.verdicts
            or self.issues
            or self.issue_texts
            or self.revisions
            or self.types
            or self.search.strip()
        )


# Facet name -> accessor returning the value of a record for that facet.
FACET_VALUES: Dict[str, Callable[[Record], str]] = {
    "origins": lambda r: r.originating_company,
    "disciplines": lambda r: r.discipline_label,
    "statuses": lambda r: r.status,
    "verdicts": lambda r: r.verdict,
    "issues": lambda r: r.issue_reason,
    "issue_texts": lambda r: r.issue_reason_text,
    "revisions": lambda r: r.revision,
    "types": lambda r: r.correspondence_type,
}
# Multi-valued facet, matched element-wise.
LIST_FACETS = ("recipients",)
FACETS: Tuple[str, ...] = ("origins", "recipients") + tuple(f for f in FACET_VALUES if f != "origins")

SEARCH_COLUMN = "_search"
DOCUMENT_COLUMN = "_document_number"
ROW_INDEX = "_row"


def search_blob(record: Record) -> str:
    return " ".join([record.document_number, record.title, record.correspondence_number]).lower()


def facet_frame(records: Sequence[Record]) -> pl.DataFrame:
    """One row per record with a column per facet, the search text and the document number."""

    columns: Dict[str, list] = {facet: [accessor(r) for r in records] for facet, accessor in FACET_VALUES.items()}
    columns["recipients"] = [r.recipient_list() for r in records]
    columns[SEARCH_COLUMN] = [search_blob(r) for r in records]
    columns[DOCUMENT_COLUMN] = [r.document_number for r in records]

    schema = {name: pl.Utf8 for name in columns}
    schema["recipients"] = pl.List(pl.Utf8)
    return pl.DataFrame(columns, schema=schema)


def facet_expr(facet: str, selected: Sequence[str]) -> pl.Expr:
    """Case-insensitive membership test for one facet (OR across the selected values)."""

    wanted = sorted({v.lower() for v in selected})
    if facet in LIST_FACETS:
        return pl.col(facet).list.eval(pl.element().str.to_lowercase().is_in(wanted)).list.any()
    return pl.col(facet).str.to_lowercase().is_in(wanted)


def apply_filters(records: Sequence[Record], filters: FilterState, *, ignore_status: bool = False) -> List[Record]:
    """
    Keep the records matching every non-empty facet.

    Facets are AND-ed, selections within a facet OR-ed, all case-insensitive.
    ``ignore_status`` drops the status facet so full submission histories can
    be recovered regardless of the current status selection.
    """

    records = list(records)
    predicates: List[pl.Expr] = []
    for facet in FACETS:
        if ignore_status and facet == "statuses":
            continue
        selected = getattr(filters, facet)
        if selected:
            predicates.append(facet_expr(facet, selected))

    search = filters.search.strip().lower()
    if search:
        predicates.append(pl.col(SEARCH_COLUMN).str.contains(search, literal=True))

    if not predicates:
        return records

    frame = facet_frame(records).with_row_index(ROW_INDEX)
    kept = frame.filter(pl.all_horizontal(predicates))[ROW_INDEX].to_list()
    return [records[i] for i in kept]


def _vocabulary(values: pl.Series) -> List[str]:
    frame = values.alias("value").to_frame().filter(pl.col("value").is_not_null() & (pl.col("value") != ""))
    return frame.unique().sort([pl.col("value").str.to_lowercase(), pl.col("value")])["value"].to_list()


def filter_options(records: Sequence[Record]) -> Dict[str, List[str]]:
    """Deduplicated, case-insensitively sorted option lists for every facet."""

    frame = facet_frame(records)
    documents = frame.filter(pl.col(DOCUMENT_COLUMN) != "")
    options: Dict[str, List[str]] = {}
    for facet in FACETS:
        source = documents if facet == "revisions" else frame
        values = source[facet]
        if facet in LIST_FACETS:
            values = values.explode()
        options[facet] = _vocabulary(values)
    return options
