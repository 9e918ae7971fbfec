"""Structured warnings and notices emitted during a pass."""

from dataclasses import dataclass, field
from enum import Enum

import structlog

from entity_canvas.errors import (
    ConsistencyWarning,
    CycleError,
    EntityCanvasError,
    EntityReferenceError,
    ParseError,
)

logger = structlog.get_logger()


class ReportKind(str, Enum):
    """What a report is about."""

    UNPARSEABLE = "unparseable"
    MISSING_REQUIRED_FIELDS = "missing_required_fields"
    UNKNOWN_TYPE = "unknown_type"
    MALFORMED_FIELD = "malformed_field"
    NONCANONICAL_ID = "noncanonical_id"
    DUPLICATE_ID = "duplicate_id"
    MISSING_PARENT = "missing_parent"
    ARCHIVED_PARENT = "archived_parent"
    MISSING_DEPENDENCY = "missing_dependency"
    ARCHIVED_DEPENDENCY = "archived_dependency"
    CYCLE = "cycle"
    LAYOUT_CONFLICT = "layout_conflict"
    CONSISTENCY = "consistency"
    ARCHIVED = "archived"
    STALE_NODE = "stale_node"
    DUPLICATE_NODE = "duplicate_node"

    @property
    def category(self) -> type[EntityCanvasError] | None:
        """The error class this kind belongs to, or None for plain notices."""
        return _CATEGORIES.get(self)


_CATEGORIES: dict[ReportKind, type[EntityCanvasError]] = {
    ReportKind.UNPARSEABLE: ParseError,
    ReportKind.MISSING_REQUIRED_FIELDS: ParseError,
    ReportKind.MALFORMED_FIELD: ParseError,
    ReportKind.DUPLICATE_ID: EntityReferenceError,
    ReportKind.MISSING_PARENT: EntityReferenceError,
    ReportKind.ARCHIVED_PARENT: EntityReferenceError,
    ReportKind.MISSING_DEPENDENCY: EntityReferenceError,
    ReportKind.ARCHIVED_DEPENDENCY: EntityReferenceError,
    ReportKind.CYCLE: CycleError,
    ReportKind.LAYOUT_CONFLICT: CycleError,
    ReportKind.CONSISTENCY: ConsistencyWarning,
}


@dataclass(frozen=True)
class Report:
    """One warning or notice for the caller to present."""

    kind: ReportKind
    message: str
    entity_ids: tuple[str, ...] = ()
    severity: str = "warning"

    def __str__(self) -> str:
        return self.message


@dataclass
class ReportLog:
    """Report sink collecting everything a pass has to say."""

    reports: list[Report] = field(default_factory=list)

    def add(
        self,
        kind: ReportKind,
        message: str,
        entity_ids: tuple[str, ...] | list[str] = (),
        severity: str = "warning",
    ) -> Report:
        """Record a report and log it."""
        report = Report(kind=kind, message=message, entity_ids=tuple(entity_ids), severity=severity)
        self.reports.append(report)
        log = logger.info if severity == "info" else logger.warning
        log(message, kind=kind.value, entity_ids=list(report.entity_ids))
        return report

    def of_kind(self, kind: ReportKind) -> list[Report]:
        """All reports of a given kind, in emission order."""
        return [r for r in self.reports if r.kind == kind]

    def warnings(self) -> list[str]:
        """Messages of every non-info report."""
        return [r.message for r in self.reports if r.severity != "info"]

    def __len__(self) -> int:
        return len(self.reports)
