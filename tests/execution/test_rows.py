"""Tests for row sources, identifiers and the resume filter."""

from __future__ import annotations

import pytest

from bulkspine.core.errors import ErrorCategory, JobConfigError
from bulkspine.execution.models import WorkItem
from bulkspine.execution.rows import (
    ResumeFilter,
    build_work_items,
    derive_identifier,
    parse_row_source,
    strip_empty,
)


class TestParseRowSource:
    def test_newline_text_with_primary_field(self):
        rows = parse_row_source("a@x.io\n\n  b@x.io  \n", "email", {"status": "active"})
        assert rows == [
            {"status": "active", "email": "a@x.io"},
            {"status": "active", "email": "b@x.io"},
        ]

    def test_json_array(self):
        assert parse_row_source('[{"name": "Widget"}]') == [{"name": "Widget"}]

    def test_decoded_list(self):
        assert parse_row_source([{"name": "Widget"}]) == [{"name": "Widget"}]

    @pytest.mark.parametrize("source", ["not json", "{}", '{"a": 1}', "[]", [], None])
    def test_invalid_sources(self, source):
        with pytest.raises(JobConfigError):
            parse_row_source(source)

    def test_undecodable_json_is_a_parse_error(self):
        with pytest.raises(JobConfigError) as excinfo:
            parse_row_source("[{\"name\": ")
        assert excinfo.value.category is ErrorCategory.PARSE
        assert excinfo.value.__cause__ is not None

    def test_blank_text_with_primary_field(self):
        with pytest.raises(JobConfigError, match="empty"):
            parse_row_source("\n \n", "email")

    def test_non_object_rows(self):
        with pytest.raises(JobConfigError, match="object"):
            parse_row_source('[{"a": 1}, 2]')


class TestDeriveIdentifier:
    def test_primary_field_first(self):
        assert derive_identifier({"sku": "W-1", "name": "Widget"}, 1, "sku") == "W-1"

    def test_candidate_fields_in_order(self):
        payload = {"name": "Acme", "contact_email": "ops@acme.io"}
        assert derive_identifier(payload, 1) == "ops@acme.io"

    def test_falls_back_to_row_number(self):
        assert derive_identifier({"amount": 10}, 7) == "Row 7"

    def test_blank_primary_field_falls_through(self):
        assert derive_identifier({"sku": "  ", "item_name": "Bolt"}, 2, "sku") == "Bolt"


class TestBuildWorkItems:
    def test_row_numbers_are_one_based_and_ordered(self):
        items = build_work_items("a\nb\nc", "email")
        assert [i.row_number for i in items] == [1, 2, 3]
        assert [i.identifier for i in items] == ["a", "b", "c"]

    def test_defaults_merged_and_empty_values_stripped(self):
        items = build_work_items(
            [{"email": "a@x.io", "notes": ""}, {"name": "B", "status": "lead"}],
            defaults={"status": "active", "owner": None},
        )
        assert items[0].payload == {"status": "active", "email": "a@x.io"}
        assert items[1].payload == {"status": "lead", "name": "B"}


class TestStripEmpty:
    def test_keeps_falsy_non_empty_values(self):
        assert strip_empty({"a": 0, "b": False, "c": "", "d": None}) == {"a": 0, "b": False}


class TestResumeFilter:
    def test_skips_processed_identifiers(self):
        items = build_work_items("A\nB\nC\nD", "email")
        resume = ResumeFilter(["A", "C"])
        assert [i.identifier for i in items if not resume.should_skip(i)] == ["B", "D"]
        assert "A" in resume
        assert len(resume) == 2

    def test_empty_filter(self):
        resume = ResumeFilter()
        assert not resume.should_skip(WorkItem(1, "A", {}))
        assert len(resume) == 0
