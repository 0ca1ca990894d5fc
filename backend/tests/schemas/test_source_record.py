"""Tests for SourceRecord parsing and typed field access."""

import pytest

from ledger_migration.core.errors import RecordFieldError
from ledger_migration.schemas.source_record import SourceRecord
from tests.conftest import make_record


def record(**fields: object) -> SourceRecord:
    return SourceRecord.model_validate(make_record("recTest", fields))


class TestParsing:
    def test_alias_and_fields(self) -> None:
        parsed = SourceRecord.model_validate(
            make_record("rec1", {"Title": "A story", "Featured": True})
        )

        assert parsed.id == "rec1"
        assert parsed.created_time is not None
        assert parsed.fields == {"Title": "A story", "Featured": True}

    def test_null_and_nested_values_dropped(self) -> None:
        parsed = record(Title=None, Attachments=[{"url": "x"}], Score=0.5)

        assert parsed.fields == {"Score": 0.5}
        assert parsed.has("Title") is False

    def test_booleans_stay_booleans(self) -> None:
        parsed = record(Active=False, Count=1)

        assert parsed.raw("Active") is False
        assert parsed.raw("Count") == 1


class TestAccessors:
    def test_text_trims_and_treats_empty_as_absent(self) -> None:
        parsed = record(Name="  Orange Sky ", Blank="   ")

        assert parsed.text("Name") == "Orange Sky"
        assert parsed.text("Blank") is None
        assert parsed.text("Missing") is None

    def test_text_rejects_other_variants(self) -> None:
        parsed = record(Name=["recA"])

        with pytest.raises(RecordFieldError) as exc_info:
            parsed.text("Name")

        assert exc_info.value.field == "Name"
        assert exc_info.value.record_id == "recTest"

    def test_links_and_first_link(self) -> None:
        parsed = record(Organization=["recOrg1", "recOrg2"])

        assert parsed.links("Organization") == ["recOrg1", "recOrg2"]
        assert parsed.first_link("Organization") == "recOrg1"
        assert parsed.first_link("Missing") is None
        assert parsed.links("Missing") == []

    def test_links_rejects_text(self) -> None:
        with pytest.raises(RecordFieldError):
            record(Organization="recOrg1").first_link("Organization")

    def test_number_rejects_booleans(self) -> None:
        parsed = record(Score=4.5, Flag=True)

        assert parsed.number("Score") == 4.5
        with pytest.raises(RecordFieldError):
            parsed.number("Flag")

    def test_flag(self) -> None:
        parsed = record(Featured=True, Status="Approved")

        assert parsed.flag("Featured") is True
        assert parsed.flag("Missing") is None
        with pytest.raises(RecordFieldError):
            parsed.flag("Status")
