"""Shared fixtures for entity canvas tests."""

from collections.abc import Callable
from typing import Any

import pytest
import yaml

from entity_canvas.models import EntityRecord, EntityType

RELATION_FIELDS = ("depends_on", "blocks", "enables", "affects", "implemented_by", "implements", "children")


@pytest.fixture
def make_record() -> Callable[..., EntityRecord]:
    """Factory for records built directly, without going through the parser."""

    def factory(entity_id: str, type: str = "task", **kwargs: Any) -> EntityRecord:
        fields: dict[str, Any] = {"id": entity_id, "type": type}
        for key, value in kwargs.items():
            if key in RELATION_FIELDS:
                fields[key] = list(value)
                kwargs[key] = tuple(value)
            elif key in ("parent", "workstream", "title", "archived"):
                fields[key] = value
        kwargs.setdefault("location", f"{entity_id}.md")
        return EntityRecord(entity_id=entity_id, type=EntityType(type), fields=fields, **kwargs)

    return factory


@pytest.fixture
def make_note() -> Callable[..., str]:
    """Factory for markdown documents with a frontmatter block."""

    def factory(entity_id: str, type: str = "task", body: str = "", **fields: Any) -> str:
        data = {"id": entity_id, "type": type, **fields}
        block = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        return f"---\n{block}---\n{body}"

    return factory


@pytest.fixture
def make_item(make_note: Callable[..., str]) -> Callable[..., tuple[str, str]]:
    """Factory for (location, text) pairs as a record source yields them."""

    def factory(entity_id: str, type: str = "task", **fields: Any) -> tuple[str, str]:
        return f"{entity_id}.md", make_note(entity_id, type, **fields)

    return factory
