from datetime import datetime, timezone

import polars as pl
import pytest

from review_common.datasets import (
    build_discipline_dataset,
    build_status_dataset,
    color_for_status,
    palette,
)
from review_common.export import build_export_bundle, record_row, rows_to_frame
from review_common.pipeline import build_dashboard_view
from review_common.schema import PALETTE, STATUS_COLORS


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2024, 6, 1)


@pytest.fixture
def records(make_record):
    return [
        make_record(document_number="D1", revision="A", discipline="Piping", status="Under Review", date_issued=utc(2024, 1, 1)),
        make_record(
            document_number="D1",
            revision="B",
            discipline="Piping",
            status="Under Review",
            date_issued=utc(2024, 2, 1),
            due_date=utc(2024, 3, 1),
            issue_reason_text="Issued for 30% review",
        ),
        make_record(document_number="D2", discipline="Electrical", verdict="Approved", date_issued=utc(2024, 1, 10)),
        make_record(correspondence_number="L1", title="Cover letter", originating_company="Owner"),
    ]


def test_status_dataset_percentages_and_colors(make_record):
    latest = [
        make_record(document_number=str(i), status="Under Review") for i in range(3)
    ] + [make_record(document_number="x", verdict="Approved")]

    dataset = build_status_dataset(latest)

    assert dataset.series == "Status distribution"
    assert dataset.labels == ["Under Review", "Approved"]
    assert dataset.counts == [3, 1]
    assert dataset.percentages == [75.0, 25.0]
    assert dataset.colors == [STATUS_COLORS["Under Review"], STATUS_COLORS["Approved"]]
    assert dataset.display_labels == ["Under Review (75.0%)", "Approved (25.0%)"]


def test_status_dataset_empty_input():
    dataset = build_status_dataset([])
    assert dataset.labels == []
    assert dataset.percentages == []
    assert dataset.display_labels == []


def test_color_for_unknown_status_uses_label_length():
    assert color_for_status("Foo") == palette(3) == "#f57777"
    assert color_for_status("Bar") == color_for_status("Foo")
    assert palette(len(PALETTE)) == PALETTE[0]


def test_discipline_dataset_cycles_palette(make_record):
    latest = [
        make_record(document_number="1", discipline="Piping"),
        make_record(document_number="2"),
        make_record(document_number="3", discipline="Piping"),
    ]

    dataset = build_discipline_dataset(latest)

    assert dataset.series == "Discipline mix"
    assert dataset.labels == ["PI", "Unspecified"]
    assert dataset.counts == [2, 1]
    assert dataset.colors == [PALETTE[0], PALETTE[1]]
    assert dataset.display_labels == ["PI", "Unspecified"]


def test_record_row_headers(make_record):
    row = record_row(make_record(document_number="D1", recipients=("A", "B"), discipline="Piping"))
    assert len(row) == 20
    assert list(row)[0] == "Document number"
    assert list(row)[-1] == "Source file"
    assert row["Recipients"] == "A, B"
    assert row["Discipline"] == "PI"


def test_rows_to_frame_no_data_notice():
    frame = rows_to_frame([])
    assert frame.to_dicts() == [{"Notice": "No data"}]


def test_export_bundle_sheets(records):
    bundle = build_export_bundle(build_dashboard_view(records, now=NOW))

    assert list(bundle) == [
        "Stats",
        "Discipline Summary",
        "Status Pivot",
        "Revision Timeline",
        "Open Reviews",
        "Latest Documents",
        "Filtered Rows",
        "Chart Data",
    ]
    assert all(isinstance(frame, pl.DataFrame) for frame in bundle.values())
    assert all(len(name) <= 31 for name in bundle)

    stats = {row["Metric"]: row["Value"] for row in bundle["Stats"].to_dicts()}
    assert stats == {
        "Rows loaded (all sheets)": 4,
        "Filtered rows (all)": 4,
        "Documents with revisions (filtered)": 3,
        "Unique documents (latest)": 2,
        "Open reviews (latest)": 1,
        "Overdue reviews": 1,
    }

    timeline = bundle["Revision Timeline"]
    assert timeline.columns[-2:] == ["Rev A", "Rev B"]
    assert timeline["Document number"].to_list() == ["D1"]
    assert timeline["Current rev"].to_list() == ["B"]

    (open_row,) = bundle["Open Reviews"].to_dicts()
    assert open_row["#"] == 1
    assert open_row["Drawing number"] == "D1"
    assert open_row["Current revision"] == "B"
    assert open_row["30%"] == 1
    assert open_row["IFC"] is None
    assert open_row["Rev A"] == utc(2024, 1, 1)
    assert open_row["Rev B"] == utc(2024, 2, 1)
    assert bundle["Open Reviews"].columns[-2:] == ["Rev A", "Rev B"]

    assert bundle["Latest Documents"].height == 2
    assert bundle["Filtered Rows"].height == 4

    chart = bundle["Chart Data"].to_dicts()
    assert [(r["Series"], r["Label"], r["Value"]) for r in chart] == [
        ("Status distribution", "Under Review", 1),
        ("Status distribution", "Approved", 1),
        ("Discipline mix", "PI", 1),
        ("Discipline mix", "EL", 1),
    ]
    assert [r["Percent"] for r in chart] == [50.0, 50.0, None, None]


def test_export_bundle_empty_view_uses_notice_rows():
    bundle = build_export_bundle(build_dashboard_view([], now=NOW))

    for name in ("Revision Timeline", "Open Reviews", "Latest Documents", "Filtered Rows", "Chart Data"):
        assert bundle[name].to_dicts() == [{"Notice": "No data"}]
    assert bundle["Status Pivot"].to_dicts() == [{"Status": "Grand total", "Row total": 0}]


def test_views_are_deterministic(records):
    first = build_dashboard_view(records, now=NOW)
    second = build_dashboard_view(list(records), now=NOW)

    assert first == second
    first_bundle = build_export_bundle(first)
    second_bundle = build_export_bundle(second)
    for name, frame in first_bundle.items():
        assert frame.to_dicts() == second_bundle[name].to_dicts()
