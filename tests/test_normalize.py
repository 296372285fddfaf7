from datetime import date, datetime, timezone

import pytest

from review_common.normalize import (
    NormalizationReport,
    SourceSheet,
    derive_bucket,
    format_date,
    normalize_row,
    normalize_sources,
    parse_date,
    resolve_field,
    to_discipline_code,
)
from review_common.schema import clean_header_name, merge_alias_groups


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "verdict,status,expected",
    [
        ("Commented", "Approved", "Commented & to be Resubmitted"),
        ("Commented", "Under Review", "Commented & to be Resubmitted"),
        ("Rejected - Resubmission Required", "", "Rejected & to be Resubmitted"),
        ("Rejected", "Under Review", "Under Review"),
        ("Approved with comments", "Under Review", "Approved"),
        ("", "UNDER REVIEW", "Under Review"),
        ("", "Ready for Use", "Ready for use"),
        ("", "Completed", "Completed"),
        ("Reviewed", "Completed", "Reviewed"),
        ("", "Not Accepted", "Not Accepted"),
        ("", "cancelled", "Cancelled"),
        ("", "Obsolete", "Obsolete"),
        ("Noted", "On Hold", "Noted"),
        ("", "On Hold", "On Hold"),
        ("", "", "Unknown"),
    ],
)
def test_derive_bucket_precedence(verdict, status, expected):
    assert derive_bucket(verdict, status) == expected


def test_discipline_codes_known_and_fallback():
    assert to_discipline_code("Piping") == "PI"
    assert to_discipline_code("Civil & Structural") == "CS"
    assert to_discipline_code("Random Field Name") == "RF"
    assert to_discipline_code("electrical systems") == "ES"
    assert to_discipline_code("Geotech") == "G"
    assert to_discipline_code("") == ""


def test_parse_date_spreadsheet_serial():
    """Serial 45000 is 19431 days after 1970-01-01."""

    assert parse_date(45000) == utc(2023, 3, 15)
    assert parse_date(45000.5) == utc(2023, 3, 15, 12)
    assert parse_date(25569) == utc(1970, 1, 1)


def test_parse_date_partial_text_fills_from_january_first():
    """Missing month/day come from a fixed default, never from today."""

    assert parse_date("2024") == utc(2024, 1, 1)
    assert parse_date("March 2024") == utc(2024, 3, 1)


def test_parse_date_text_and_native_values():
    assert parse_date("2024-01-05") == utc(2024, 1, 5)
    assert parse_date(date(2024, 2, 1)) == utc(2024, 2, 1)
    assert parse_date(datetime(2024, 2, 1, 9, 30)) == utc(2024, 2, 1, 9, 30)
    aware = utc(2024, 2, 1)
    assert parse_date(aware) is aware


@pytest.mark.parametrize("value", [None, "", "   ", "N/A", "not a date", float("nan"), float("inf"), True, 1e12])
def test_parse_date_degrades_to_none(value):
    assert parse_date(value) is None


def test_format_date():
    assert format_date(utc(2024, 3, 5)) == "05 Mar 24"
    assert format_date(None) == ""


def test_resolve_field_takes_first_non_empty_alias():
    row = {"Document Number": "   ", "Drawing Number": " D-100 ", "Name": "ignored"}
    assert resolve_field(row, ["Document Number", "Drawing Number", "Name"]) == "D-100"
    assert resolve_field(row, ["Missing"]) == ""
    assert resolve_field({"A": None}, ["A"]) == ""


def test_clean_header_name_collapses_repeats():
    assert clean_header_name("Title Title") == "Title"
    assert clean_header_name("Document Number DOCUMENT NUMBER") == "Document Number"
    assert clean_header_name("Final Review Date") == "Final Review Date"


def test_normalize_row_builds_record():
    row = {
        "Document Number": "PRJ-PI-001",
        "Title": "Piping layout",
        "Discipline": "Piping",
        "Originating Company": "Contractor A",
        "Recipient Companies": "Owner; Consultant, PMC",
        "Correspondence Status": "Under Review",
        "Final Review Verdict": "",
        "Correspondence Number": "TRN-0001",
        "Project Document Revision": "B",
        "Calculated Response Due Date": 45020,
        "Date Issued": "2023-03-01",
        "Issue Reason Text": "Issued for 60% review",
        "Item Type": "Transmittal",
    }

    record = normalize_row(row, "register.xlsx", "Docs", 4)

    assert record is not None
    assert record.id == "register.xlsx-Docs-4"
    assert record.document_number == "PRJ-PI-001"
    assert record.discipline_code == "PI"
    assert record.recipients == ("Owner", "Consultant", "PMC")
    assert record.recipient_raw == "Owner; Consultant, PMC"
    assert record.bucket == "Under Review"
    assert record.revision == "B"
    assert record.correspondence_type == "Transmittal"
    assert record.due_date == utc(2023, 4, 4)
    assert record.date_issued == utc(2023, 3, 1)
    assert record.best_date == record.date_issued
    assert record.latest_date is None


def test_normalize_row_alias_fallbacks_and_best_date_chain():
    row = {
        "Drawing Number": "DWG-1",
        "Correspondence Title": "Fallback title",
        "Response Due Date": "2024-06-30",
        "Created": "2024-06-01",
    }
    record = normalize_row(row, "a.xlsx", "S", 0)

    assert record.document_number == "DWG-1"
    assert record.title == "Fallback title"
    # completed/issued/final review absent -> correspondence created wins over due date
    assert record.best_date == utc(2024, 6, 1)
    assert record.revision == ""
    assert record.bucket == "Unknown"


def test_normalize_row_title_doubles_as_document_number():
    record = normalize_row({"Title": "Letter to owner"}, "a.xlsx", "S", 0)
    assert record.document_number == "Letter to owner"
    assert record.title == "Letter to owner"


def test_normalize_row_matches_untidy_headers():
    row = {" Correspondence Number ": "C-9", "Originating Company Originating Company": "Vendor"}
    record = normalize_row(row, "a.xlsx", "S", 0)
    assert record.correspondence_number == "C-9"
    assert record.originating_company == "Vendor"


def test_normalize_row_drops_blank_rows():
    assert normalize_row({"Discipline": "Piping", "Correspondence Status": "Open"}, "a.xlsx", "S", 0) is None
    assert normalize_row({}, "a.xlsx", "S", 1) is None


def test_normalize_row_respects_alias_overrides():
    aliases = merge_alias_groups({"document_number": ["Doc No."]})
    record = normalize_row({"Doc No.": "X-1", "Document Number": "ignored"}, "a.xlsx", "S", 0, aliases)
    assert record.document_number == "X-1"


def test_merge_alias_groups_rejects_unknown_fields():
    with pytest.raises(ValueError):
        merge_alias_groups({"not_a_field": ["A"]})
    with pytest.raises(ValueError):
        merge_alias_groups({"title": []})


def test_normalize_sources_reports_dropped_rows():
    sheets = [
        SourceSheet("one.xlsx", "Docs", [{"Document Number": "D1"}, {"Document Number": ""}, {"Title": "T"}]),
        SourceSheet("two.xlsx", "Corr", [{"Correspondence Number": "C1"}]),
    ]

    records, report = normalize_sources(sheets)

    assert [r.id for r in records] == ["one.xlsx-Docs-0", "one.xlsx-Docs-2", "two.xlsx-Corr-0"]
    assert report.raw_row_count == 4
    assert report.kept_row_count == 3
    assert report.dropped_row_count == 1
    assert report.sheet_row_counts == {"one.xlsx/Docs": 2, "two.xlsx/Corr": 1}


def test_report_merge_adds_counts_for_repeated_sheet_labels():
    report = NormalizationReport(raw_row_count=2, kept_row_count=2, sheet_row_counts={"a.xlsx/S": 2})
    report.merge(NormalizationReport(raw_row_count=3, kept_row_count=1, dropped_row_count=2, sheet_row_counts={"a.xlsx/S": 1}))

    assert report.sheet_row_counts == {"a.xlsx/S": 3}
    assert (report.raw_row_count, report.kept_row_count, report.dropped_row_count) == (5, 3, 2)


def test_normalize_sources_same_sheet_label_twice():
    sheets = [
        SourceSheet("dup.xlsx", "Docs", [{"Document Number": "D1"}]),
        SourceSheet("dup.xlsx", "Docs", [{"Document Number": "D2"}, {"Document Number": "D3"}]),
    ]

    records, report = normalize_sources(sheets)

    assert len(records) == 3
    assert report.sheet_row_counts == {"dup.xlsx/Docs": 3}
