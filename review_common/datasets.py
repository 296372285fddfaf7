from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import polars as pl

from .aggregate import discipline_key
from .normalize import Record
from .schema import PALETTE, STATUS_COLORS


def palette(index: int) -> str:
    return PALETTE[index % len(PALETTE)]


def color_for_status(status: str) -> str:
    # Unknown labels are coloured by length, so equal-length labels share a colour.
    return STATUS_COLORS.get(status) or palette(len(status))


@dataclass
class ChartDataset:
    """label -> count series handed to chart and export collaborators."""

    series: str
    labels: List[str] = field(default_factory=list)
    counts: List[int] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)
    percentages: List[float] = field(default_factory=list)

    @property
    def display_labels(self) -> List[str]:
        if not self.percentages:
            return list(self.labels)
        return [f"{label} ({pct:.1f}%)" for label, pct in zip(self.labels, self.percentages)]


def label_counts(labels: Sequence[str]) -> pl.DataFrame:
    """label -> count in first-seen order, with each label's share of the total."""

    frame = pl.DataFrame({"label": list(labels)}, schema={"label": pl.Utf8})
    return (
        frame.group_by("label", maintain_order=True)
        .len()
        .with_columns((pl.col("len") / pl.col("len").sum() * 100).alias("percent"))
    )


def build_status_dataset(latest_docs: Sequence[Record]) -> ChartDataset:
    counts = label_counts([r.effective_bucket for r in latest_docs])
    labels = counts["label"].to_list()
    return ChartDataset(
        series="Status distribution",
        labels=labels,
        counts=counts["len"].to_list(),
        colors=[color_for_status(label) for label in labels],
        percentages=counts["percent"].to_list(),
    )


def build_discipline_dataset(latest_docs: Sequence[Record]) -> ChartDataset:
    counts = label_counts([discipline_key(r) for r in latest_docs])
    labels = counts["label"].to_list()
    return ChartDataset(
        series="Discipline mix",
        labels=labels,
        counts=counts["len"].to_list(),
        colors=[palette(idx) for idx in range(len(labels))],
    )
