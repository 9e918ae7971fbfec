"""Populate and reposition passes.

A pass reads every record once, plans the next canvas document in memory and only
then touches the collaborators: archived records are moved, then the canvas is saved
in a single replacement. A collaborator failure before the save leaves the stored
canvas as it was.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from entity_canvas.backend import ArchiveSink, CanvasStore, RecordSource
from entity_canvas.errors import CollaboratorError, PassFailedError
from entity_canvas.graph import check_consistency
from entity_canvas.layout import LayoutConfig, LayoutResult, compute_layout
from entity_canvas.models import CanvasDocument, EntityRecord, PassSummary
from entity_canvas.parser import parse_records
from entity_canvas.reconciler import Reconciliation, reconcile
from entity_canvas.reports import Report, ReportLog
from entity_canvas.resolver import ResolvedGraph, resolve_graph

logger = structlog.get_logger()


@dataclass
class Plan:
    """Everything computed for one pass before any collaborator is written to."""

    records: list[EntityRecord]
    resolved: ResolvedGraph
    layout: LayoutResult
    reconciliation: Reconciliation
    reports: ReportLog = field(default_factory=ReportLog)

    @property
    def document(self) -> CanvasDocument:
        return self.reconciliation.document

    @property
    def summary(self) -> PassSummary:
        return self.reconciliation.summary


@dataclass
class PassResult:
    """Outcome of a completed pass."""

    summary: PassSummary
    document: CanvasDocument
    reports: list[Report]
    archived_locations: dict[str, str] = field(default_factory=dict)


def plan_pass(
    document: CanvasDocument,
    items: Iterable[tuple[str, str]],
    reposition: bool = False,
    config: LayoutConfig | None = None,
    check: bool = True,
) -> Plan:
    """Run parse, resolve, layout and reconcile over in-memory inputs.

    Args:
        document: Current canvas snapshot
        items: (location, text) pairs of every in-scope record
        reposition: Move every entity node to its computed position
        config: Layout sizes and spacing
        check: Also report children/blocks consistency mismatches

    Returns:
        Plan holding the next document and its summary
    """
    reports = ReportLog()
    records = parse_records(items, reports)
    if check:
        for report in check_consistency(records):
            reports.add(report.kind, report.message, report.entity_ids, report.severity)
    resolved = resolve_graph(records, reports)
    layout = compute_layout(records, resolved, config)
    reconciliation = reconcile(document, records, resolved, layout, reports, reposition=reposition)
    return Plan(records=records, resolved=resolved, layout=layout, reconciliation=reconciliation, reports=reports)


def plan_populate(
    document: CanvasDocument, items: Iterable[tuple[str, str]], config: LayoutConfig | None = None
) -> Plan:
    """Plan a populate pass: nodes already on the canvas stay where they are."""
    return plan_pass(document, items, reposition=False, config=config)


def plan_reposition(
    document: CanvasDocument, items: Iterable[tuple[str, str]], config: LayoutConfig | None = None
) -> Plan:
    """Plan a reposition pass: every entity node moves to its computed position."""
    return plan_pass(document, items, reposition=True, config=config)


def run_pass(
    source: RecordSource,
    store: CanvasStore,
    archive_sink: ArchiveSink,
    reposition: bool = False,
    config: LayoutConfig | None = None,
) -> PassResult:
    """Run a full pass against real collaborators.

    Raises:
        PassFailedError: if reading records, archiving or saving failed; the stored
            canvas is only replaced when everything else succeeded
    """
    command = "reposition" if reposition else "populate"
    logger.info("Starting pass", command=command)
    try:
        items = list(source.items())
        document = store.load()
    except CollaboratorError as e:
        logger.error("Pass failed while reading", command=command, error=str(e))
        raise PassFailedError(f"{command} failed: {e}") from e

    plan = plan_pass(document, items, reposition=reposition, config=config)

    archived_locations: dict[str, str] = {}
    try:
        for record in plan.reconciliation.to_archive:
            archived_locations[record.location] = archive_sink.archive(record.location)
        store.save(plan.document)
    except CollaboratorError as e:
        logger.error("Pass failed, canvas left unchanged", command=command, error=str(e))
        raise PassFailedError(f"{command} failed: {e}") from e

    logger.info(
        "Pass completed",
        command=command,
        added=plan.summary.added,
        archived=plan.summary.archived,
        removed=plan.summary.removed,
        repositioned=plan.summary.repositioned,
    )
    return PassResult(
        summary=plan.summary,
        document=plan.document,
        reports=list(plan.reports.reports),
        archived_locations=archived_locations,
    )


def populate(
    source: RecordSource, store: CanvasStore, archive_sink: ArchiveSink, config: LayoutConfig | None = None
) -> PassResult:
    """Add missing nodes, archive flagged records and drop stale or duplicate nodes."""
    return run_pass(source, store, archive_sink, reposition=False, config=config)


def reposition(
    source: RecordSource, store: CanvasStore, archive_sink: ArchiveSink, config: LayoutConfig | None = None
) -> PassResult:
    """Populate, then move every entity node to its computed position."""
    return run_pass(source, store, archive_sink, reposition=True, config=config)
