"""Tests for the record parser."""

from collections.abc import Callable

import pytest

from entity_canvas.errors import ParseError
from entity_canvas.models import EntityType
from entity_canvas.parser import (
    load_frontmatter,
    parse_record,
    parse_records,
    split_frontmatter,
    strip_quotes,
    update_frontmatter,
)
from entity_canvas.reports import ReportKind, ReportLog


def test_parse_full_record(make_note: Callable[..., str]) -> None:
    """Test parsing a record with every modeled field."""
    text = make_note(
        "S-002",
        "story",
        title="Checkout flow",
        workstream="Payments",
        parent="M-001",
        depends_on=["S-001"],
        blocks=["S-003", "S-004"],
        archived=False,
    )
    reports = ReportLog()
    record = parse_record("stories/S-002.md", text, reports)

    assert record is not None
    assert record.entity_id == "S-002"
    assert record.type == EntityType.STORY
    assert record.location == "stories/S-002.md"
    assert record.title == "Checkout flow"
    assert record.workstream == "payments"
    assert record.parent == "M-001"
    assert record.depends_on == ("S-001",)
    assert record.blocks == ("S-003", "S-004")
    assert record.archived is False
    assert len(reports) == 0


def test_inline_list_and_block_list() -> None:
    """Test that bracketed inline lists and block lists are both accepted."""
    text = "---\nid: T-001\ntype: task\ndepends_on: [T-002, 'T-003']\nblocks:\n  - T-004\n  - \"T-005\"\n---\n"
    record = parse_record("T-001.md", text, ReportLog())
    assert record is not None
    assert record.depends_on == ("T-002", "T-003")
    assert record.blocks == ("T-004", "T-005")


def test_inline_list_left_as_string() -> None:
    """Test a quoted bracketed list that YAML reads as a single string."""
    text = "---\nid: T-001\ntype: task\ndepends_on: \"[T-002, T-003]\"\n---\n"
    record = parse_record("T-001.md", text, ReportLog())
    assert record is not None
    assert record.depends_on == ("T-002", "T-003")


def test_list_duplicates_collapse_in_order() -> None:
    """Test that repeated references collapse and keep first-seen order."""
    text = "---\nid: T-001\ntype: task\ndepends_on: [T-003, T-002, T-003]\n---\n"
    record = parse_record("T-001.md", text, ReportLog())
    assert record is not None
    assert record.depends_on == ("T-003", "T-002")


def test_scalar_relation_becomes_list() -> None:
    """Test that a single value in a list field is read as a one-item list."""
    text = "---\nid: T-001\ntype: task\ndepends_on: T-002\n---\n"
    record = parse_record("T-001.md", text, ReportLog())
    assert record is not None
    assert record.depends_on == ("T-002",)


def test_unicode_passes_through(make_note: Callable[..., str]) -> None:
    """Test that unicode values are kept as written."""
    record = parse_record("d.md", make_note("D-001", "decision", title="Überprüfung 設計 ✓"), ReportLog())
    assert record is not None
    assert record.title == "Überprüfung 設計 ✓"


def test_unknown_fields_are_preserved(make_note: Callable[..., str]) -> None:
    """Test that fields the model does not know are kept in the raw mapping."""
    record = parse_record("t.md", make_note("T-001", priority="high", tags=["a", "b"]), ReportLog())
    assert record is not None
    assert record.fields["priority"] == "high"
    assert record.fields["tags"] == ["a", "b"]


def test_missing_required_fields() -> None:
    """Test that a record without a type is reported and skipped."""
    reports = ReportLog()
    text = "---\nid: T-001\ntitle: No type\n---\n"
    assert parse_record("t.md", text, reports) is None
    [report] = reports.of_kind(ReportKind.MISSING_REQUIRED_FIELDS)
    assert "type" in report.message
    assert "t.md" in report.message


def test_unparseable_frontmatter() -> None:
    """Test that broken YAML is reported as unparseable, not raised."""
    reports = ReportLog()
    text = "---\nid: T-001\ntype: [task\n---\n"
    assert parse_record("broken.md", text, reports) is None
    assert len(reports.of_kind(ReportKind.UNPARSEABLE)) == 1


def test_document_without_frontmatter() -> None:
    """Test that plain markdown is reported as unparseable."""
    reports = ReportLog()
    assert parse_record("readme.md", "# Just a heading\n", reports) is None
    assert reports.of_kind(ReportKind.UNPARSEABLE)[0].message.startswith("Unparseable frontmatter in readme.md")


def test_frontmatter_that_is_not_a_mapping() -> None:
    """Test that a list frontmatter is unparseable."""
    reports = ReportLog()
    assert parse_record("list.md", "---\n- a\n- b\n---\n", reports) is None
    assert len(reports.of_kind(ReportKind.UNPARSEABLE)) == 1


def test_unknown_type_becomes_task(make_note: Callable[..., str]) -> None:
    """Test that an unrecognized type is coerced to task with a warning."""
    reports = ReportLog()
    record = parse_record("e.md", make_note("E-001", "epic"), reports)
    assert record is not None
    assert record.type == EntityType.TASK
    [report] = reports.of_kind(ReportKind.UNKNOWN_TYPE)
    assert report.entity_ids == ("E-001",)


def test_type_is_case_insensitive(make_note: Callable[..., str]) -> None:
    """Test that type names are matched regardless of case."""
    record = parse_record("m.md", make_note("M-001", "Milestone"), ReportLog())
    assert record is not None
    assert record.type == EntityType.MILESTONE


def test_noncanonical_id_is_accepted(make_note: Callable[..., str]) -> None:
    """Test that an unusual id format is accepted with an info notice."""
    reports = ReportLog()
    record = parse_record("x.md", make_note("my-task"), reports)
    assert record is not None
    assert record.entity_id == "my-task"
    [report] = reports.of_kind(ReportKind.NONCANONICAL_ID)
    assert report.severity == "info"
    assert reports.warnings() == []


def test_malformed_field_is_treated_as_absent(make_note: Callable[..., str]) -> None:
    """Test that a parent given as a list is reported and ignored."""
    reports = ReportLog()
    record = parse_record("t.md", make_note("T-001", parent=["M-001", "M-002"]), reports)
    assert record is not None
    assert record.parent is None
    [report] = reports.of_kind(ReportKind.MALFORMED_FIELD)
    assert "parent" in report.message


def test_archived_flag_accepts_strings() -> None:
    """Test that archived accepts a quoted true."""
    record = parse_record("t.md", "---\nid: T-001\ntype: task\narchived: \"true\"\n---\n", ReportLog())
    assert record is not None
    assert record.archived is True


def test_malformed_archived_flag(make_note: Callable[..., str]) -> None:
    """Test that a non-boolean archived value is reported and treated as false."""
    reports = ReportLog()
    record = parse_record("t.md", make_note("T-001", archived="soon"), reports)
    assert record is not None
    assert record.archived is False
    assert len(reports.of_kind(ReportKind.MALFORMED_FIELD)) == 1


def test_empty_values_are_absent() -> None:
    """Test that empty strings and nulls count as absent fields."""
    record = parse_record("t.md", "---\nid: T-001\ntype: task\nparent: ''\nworkstream:\n---\n", ReportLog())
    assert record is not None
    assert record.parent is None
    assert record.workstream == ""


def test_duplicate_ids_first_location_wins(make_note: Callable[..., str]) -> None:
    """Test that duplicate ids keep the record whose location sorts first."""
    reports = ReportLog()
    items = [
        ("b/second.md", make_note("S-001", title="second")),
        ("a/first.md", make_note("S-001", title="first")),
        ("c/other.md", make_note("S-002")),
    ]
    records = parse_records(items, reports)

    assert [r.location for r in records] == ["a/first.md", "c/other.md"]
    assert records[0].title == "first"
    [report] = reports.of_kind(ReportKind.DUPLICATE_ID)
    assert report.message == "Duplicate ID S-001, skipped b/second.md (kept a/first.md)"


def test_bad_items_do_not_stop_the_batch(make_note: Callable[..., str]) -> None:
    """Test that one broken record does not prevent the others from parsing."""
    reports = ReportLog()
    items = [("bad.md", "---\nid: [unclosed\n---\n"), ("good.md", make_note("T-001"))]
    records = parse_records(items, reports)
    assert [r.entity_id for r in records] == ["T-001"]
    assert len(reports) == 1


def test_strip_quotes() -> None:
    """Test quote stripping."""
    assert strip_quotes('"M-001"') == "M-001"
    assert strip_quotes("'M-001'") == "M-001"
    assert strip_quotes("  M-001 ") == "M-001"
    assert strip_quotes("'M-001\"") == "'M-001\""


def test_split_frontmatter() -> None:
    """Test splitting a document into frontmatter and body."""
    block, body = split_frontmatter("---\nid: T-001\n---\nBody text\n")
    assert block == "id: T-001\n"
    assert body == "Body text\n"
    assert split_frontmatter("no block") == (None, "no block")


def test_load_frontmatter_raises_parse_error() -> None:
    """Test that load_frontmatter raises for documents without a block."""
    with pytest.raises(ParseError) as exc_info:
        load_frontmatter("x.md", "nothing here")
    assert exc_info.value.location == "x.md"


def test_update_frontmatter_preserves_other_fields() -> None:
    """Test that updating one key keeps every other key, their order and the body."""
    text = "---\nid: T-001\ntype: task\ncustom_field: keep me\n---\n# Body\n"
    updated = update_frontmatter("t.md", text, {"archived_at": "2024-01-01T00:00:00+00:00"})

    fields = load_frontmatter("t.md", updated)
    assert list(fields) == ["id", "type", "custom_field", "archived_at"]
    assert fields["custom_field"] == "keep me"
    assert updated.endswith("---\n# Body\n")
