"""Parse entity records from markdown files with a YAML frontmatter block."""

import re
from collections.abc import Iterable
from typing import Any

import structlog
import yaml

from entity_canvas.errors import ParseError
from entity_canvas.models import Absent, EntityRecord, EntityType, Malformed, ParsedField, Present
from entity_canvas.reports import ReportKind, ReportLog

logger = structlog.get_logger()

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
CANONICAL_ID_RE = re.compile(r"^[A-Z]+-\d+$")

LIST_FIELDS = {
    "depends_on": "depends_on",
    "blocks": "blocks",
    "enables": "enables",
    "affects": "affects",
    "implemented_by": "implemented_by",
    "implements": "implements",
    "children": "children",
}


def strip_quotes(value: str) -> str:
    """Strip one pair of matching quotes from a value."""
    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in ("'", '"'):
        return trimmed[1:-1]
    return trimmed


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Split a markdown document into its frontmatter block and body.

    Returns:
        (block, body); block is None when the document has no frontmatter.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None, text
    return match.group(1), text[match.end() :]


def load_frontmatter(location: str, text: str) -> dict[str, Any]:
    """Load the frontmatter mapping of a document.

    Raises:
        ParseError: if there is no block, YAML cannot read it, or it is not a mapping
    """
    block, _ = split_frontmatter(text)
    if block is None:
        raise ParseError(location, "no frontmatter block")
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise ParseError(location, f"invalid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(location, f"frontmatter is a {type(data).__name__}, not a mapping")
    return {str(k): v for k, v in data.items()}


def dump_frontmatter(fields: dict[str, Any], body: str = "") -> str:
    """Write a frontmatter mapping and body back into a markdown document.

    Keys keep their order and unknown keys are written as they were read.
    """
    block = yaml.safe_dump(fields, sort_keys=False, allow_unicode=True, default_flow_style=None)
    return f"---\n{block}---\n{body}"


def update_frontmatter(location: str, text: str, updates: dict[str, Any]) -> str:
    """Merge updates into a document's frontmatter, leaving every other field alone."""
    fields = load_frontmatter(location, text)
    _, body = split_frontmatter(text)
    fields.update(updates)
    return dump_frontmatter(fields, body)


def read_field(fields: dict[str, Any], key: str) -> ParsedField:
    """Look a key up in a frontmatter mapping."""
    if key not in fields:
        return Absent()
    value = fields[key]
    if value is None or (isinstance(value, str) and not value.strip()):
        return Absent()
    return Present(value)


def as_string(parsed: ParsedField) -> ParsedField:
    """Narrow a field to a single string."""
    if not isinstance(parsed, Present):
        return parsed
    value = parsed.value
    if isinstance(value, (list, dict)):
        return Malformed(value, "expected a single value")
    text = strip_quotes(str(value))
    return Present(text) if text else Absent()


def as_string_list(parsed: ParsedField) -> ParsedField:
    """Narrow a field to a list of unique strings in first-seen order.

    Accepts a YAML list, an inline ``[a, b]`` string that YAML left alone, or one value.
    """
    if not isinstance(parsed, Present):
        return parsed
    value = parsed.value
    if isinstance(value, dict):
        return Malformed(value, "expected a list")
    if isinstance(value, str):
        trimmed = value.strip()
        if trimmed.startswith("[") and trimmed.endswith("]"):
            value = trimmed[1:-1].split(",")
        else:
            value = [trimmed]
    elif not isinstance(value, list):
        value = [value]

    items: list[str] = []
    for item in value:
        if item is None:
            continue
        if isinstance(item, (list, dict)):
            return Malformed(parsed.value, "nested values in list")
        text = strip_quotes(str(item))
        if text and text not in items:
            items.append(text)
    return Present(items)


def as_bool(parsed: ParsedField) -> ParsedField:
    """Narrow a field to a boolean; accepts YAML booleans and "true"/"false" strings."""
    if not isinstance(parsed, Present):
        return parsed
    value = parsed.value
    if isinstance(value, bool):
        return parsed
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return Present(value.strip().lower() == "true")
    return Malformed(value, "expected true or false")


def _resolve(parsed: ParsedField, default: Any, location: str, key: str, reports: ReportLog, entity_id: str) -> Any:
    if isinstance(parsed, Present):
        return parsed.value
    if isinstance(parsed, Malformed):
        reports.add(
            ReportKind.MALFORMED_FIELD,
            f"Ignoring malformed field '{key}' in {location}: {parsed.reason}",
            [entity_id],
        )
    return default


def parse_record(location: str, text: str, reports: ReportLog) -> EntityRecord | None:
    """Turn one markdown document into an entity record.

    Bad input never raises: the document is reported and None is returned.

    Args:
        location: Source handle of the document (vault-relative path)
        text: Full document text
        reports: Sink for warnings

    Returns:
        EntityRecord, or None if the document is unparseable or lacks id/type
    """
    try:
        fields = load_frontmatter(location, text)
    except ParseError as e:
        reports.add(ReportKind.UNPARSEABLE, f"Unparseable frontmatter in {location}: {e.reason}")
        return None

    raw_id = as_string(read_field(fields, "id"))
    raw_type = as_string(read_field(fields, "type"))
    if not isinstance(raw_id, Present) or not isinstance(raw_type, Present):
        missing = [
            key for key, value in (("id", raw_id), ("type", raw_type)) if not isinstance(value, Present)
        ]
        reports.add(
            ReportKind.MISSING_REQUIRED_FIELDS,
            f"Missing required fields ({', '.join(missing)}) in {location}",
        )
        return None

    entity_id: str = raw_id.value
    if not CANONICAL_ID_RE.match(entity_id):
        reports.add(
            ReportKind.NONCANONICAL_ID,
            f"Non-canonical ID '{entity_id}' in {location}",
            [entity_id],
            severity="info",
        )

    type_name = raw_type.value.lower()
    try:
        entity_type = EntityType(type_name)
    except ValueError:
        reports.add(
            ReportKind.UNKNOWN_TYPE,
            f"Unknown type '{raw_type.value}' for {entity_id}, treating as task",
            [entity_id],
        )
        entity_type = EntityType.TASK

    def resolve(parsed: ParsedField, default: Any, key: str) -> Any:
        return _resolve(parsed, default, location, key, reports, entity_id)

    lists = {
        attr: tuple(resolve(as_string_list(read_field(fields, key)), [], key))
        for key, attr in LIST_FIELDS.items()
    }
    record = EntityRecord(
        entity_id=entity_id,
        type=entity_type,
        location=location,
        title=resolve(as_string(read_field(fields, "title")), "", "title"),
        workstream=resolve(as_string(read_field(fields, "workstream")), "", "workstream").lower(),
        parent=resolve(as_string(read_field(fields, "parent")), None, "parent"),
        archived=resolve(as_bool(read_field(fields, "archived")), False, "archived"),
        fields=fields,
        **lists,
    )
    logger.debug("Parsed record", entity_id=entity_id, type=entity_type.value, location=location)
    return record


def parse_records(items: Iterable[tuple[str, str]], reports: ReportLog) -> list[EntityRecord]:
    """Parse a batch of (location, text) pairs.

    Duplicate ids are settled by location order: the first location wins and the
    others are reported and skipped.

    Returns:
        Records in location order
    """
    records: list[EntityRecord] = []
    seen: dict[str, str] = {}
    for location, text in sorted(items, key=lambda item: str(item[0])):
        record = parse_record(location, text, reports)
        if record is None:
            continue
        if record.entity_id in seen:
            reports.add(
                ReportKind.DUPLICATE_ID,
                f"Duplicate ID {record.entity_id}, skipped {location} (kept {seen[record.entity_id]})",
                [record.entity_id],
            )
            continue
        seen[record.entity_id] = location
        records.append(record)

    logger.info("Parsed records", count=len(records))
    return records
