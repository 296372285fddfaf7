import pytest

from review_common.normalize import Record, derive_bucket, to_discipline_code
from review_common.schema import BEST_DATE_CHAIN


@pytest.fixture
def make_record():
    """Factory building Records the way the normalizer would (bucket, code, best date)."""

    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        fields.setdefault("id", f"test.xlsx-Sheet1-{counter['n']}")
        fields.setdefault("source_file", "test.xlsx")
        fields.setdefault("sheet", "Sheet1")
        if "discipline" in fields:
            fields.setdefault("discipline_code", to_discipline_code(fields["discipline"]))
        fields.setdefault("bucket", derive_bucket(fields.get("verdict", ""), fields.get("status", "")))
        if "best_date" not in fields:
            fields["best_date"] = next((fields[n] for n in BEST_DATE_CHAIN if fields.get(n)), None)
        return Record(**fields)

    return _make
