"""Bring a canvas document in line with the current record set."""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace

import structlog

from entity_canvas.layout import LayoutResult
from entity_canvas.models import (
    CanvasDocument,
    CanvasEdge,
    CanvasNode,
    EdgeKind,
    EntityRecord,
    NodeKind,
    PassSummary,
)
from entity_canvas.reports import ReportKind, ReportLog
from entity_canvas.resolver import ResolvedGraph

logger = structlog.get_logger()


@dataclass
class Reconciliation:
    """The new canvas document and what changed.

    ``to_archive`` lists the records whose backing items still have to be moved into
    the archive area; the caller does that before saving ``document``.
    """

    document: CanvasDocument
    summary: PassSummary
    to_archive: list[EntityRecord] = field(default_factory=list)


def new_node_id(entity_id: str, taken: set[str]) -> str:
    """Pick a node id for an entity that is not already used on the canvas."""
    candidate = f"node-{entity_id}"
    suffix = 2
    while candidate in taken:
        candidate = f"node-{entity_id}-{suffix}"
        suffix += 1
    return candidate


def overlaps(a: CanvasNode, b: CanvasNode) -> bool:
    return a.x < b.x + b.width and b.x < a.x + a.width and a.y < b.y + b.height and b.y < a.y + a.height


def clear_of(node: CanvasNode, placed: list[CanvasNode], row_gap: float) -> CanvasNode:
    """Move ``node`` down one row at a time until it intersects none of ``placed``."""
    while any(overlaps(node, other) for other in placed):
        node = replace(node, y=node.y + node.height + row_gap)
    return node


def build_edges(
    resolved: ResolvedGraph,
    node_for_entity: dict[str, str],
    existing: dict[str, CanvasEdge] | None = None,
) -> list[CanvasEdge]:
    """Generate containment and dependency edges between entity nodes.

    Both kinds point left to right: child -> parent and dependency -> dependent.
    Styling of an existing edge with the same id is carried over.
    """
    existing = existing or {}
    edges: list[CanvasEdge] = []

    def add(edge_id: str, source: str, target: str, kind: EdgeKind) -> None:
        previous = existing.get(edge_id)
        edges.append(
            CanvasEdge(
                id=edge_id,
                from_node=source,
                to_node=target,
                kind=kind,
                from_side="right",
                to_side="left",
                color=previous.color if previous else None,
                label=previous.label if previous else None,
                extra=dict(previous.extra) if previous else {},
            )
        )

    for child, parent in resolved.containment.edges():
        child_node, parent_node = node_for_entity.get(child), node_for_entity.get(parent)
        if child_node and parent_node:
            add(f"edge-parent-{child_node}-{parent_node}", child_node, parent_node, EdgeKind.CONTAINMENT)

    for dependency, dependent in resolved.rendered_dependency.edges():
        dependency_node, dependent_node = node_for_entity.get(dependency), node_for_entity.get(dependent)
        if dependency_node and dependent_node:
            add(f"edge-dep-{dependent_node}-{dependency_node}", dependency_node, dependent_node, EdgeKind.DEPENDENCY)

    return edges


def reconcile(
    document: CanvasDocument,
    records: Iterable[EntityRecord],
    resolved: ResolvedGraph,
    layout: LayoutResult,
    reports: ReportLog,
    reposition: bool = False,
) -> Reconciliation:
    """Compute the next canvas document.

    Nodes of archived records, stale nodes and duplicate nodes are dropped with the
    edges touching them; live records without a node get one at their computed
    position, pushed down row by row while it would cover an entity node already on
    the canvas. With ``reposition`` every entity node is moved to its computed
    position; otherwise nodes already on the canvas keep theirs. Non-entity nodes
    are never changed. The input document is not modified.
    """
    records = list(records)
    live = {record.location: record for record in records if not record.archived}
    to_archive = sorted((record for record in records if record.archived), key=lambda r: r.entity_id)
    archived_locations = {record.location for record in to_archive}
    summary = PassSummary(archived=len(to_archive))

    for record in to_archive:
        reports.add(
            ReportKind.ARCHIVED,
            f"Archiving {record.entity_id} ({record.location})",
            [record.entity_id],
            severity="info",
        )

    # The first node by id wins when several point at the same record.
    dropped: set[str] = set()
    bound: dict[str, str] = {}
    for node in sorted((n for n in document.nodes if n.is_entity), key=lambda n: n.id):
        if node.file in archived_locations:
            dropped.add(node.id)
        elif node.file not in live:
            dropped.add(node.id)
            summary.removed += 1
            reports.add(ReportKind.STALE_NODE, f"Removed stale node {node.id} ({node.file})")
        elif node.file in bound:
            dropped.add(node.id)
            summary.removed += 1
            entity_id = live[node.file].entity_id
            reports.add(
                ReportKind.DUPLICATE_NODE,
                f"Removed duplicate node {node.id} for {entity_id} (kept {bound[node.file]})",
                [entity_id],
            )
        else:
            bound[node.file] = node.id

    nodes: list[CanvasNode] = []
    for node in document.nodes:
        if node.id in dropped:
            continue
        if node.is_entity and reposition:
            position = layout.positions.get(live[node.file].entity_id)
            if position is not None:
                moved = replace(node, x=position.x, y=position.y, width=position.width, height=position.height)
                if (moved.x, moved.y, moved.width, moved.height) != (node.x, node.y, node.width, node.height):
                    summary.repositioned += 1
                node = moved
        nodes.append(replace(node, extra=dict(node.extra)))

    taken = {node.id for node in document.nodes}
    node_for_entity = {live[file].entity_id: node_id for file, node_id in bound.items()}
    for record in sorted(live.values(), key=lambda r: r.entity_id):
        if record.location in bound:
            continue
        position = layout.positions[record.entity_id]
        node_id = new_node_id(record.entity_id, taken)
        taken.add(node_id)
        node_for_entity[record.entity_id] = node_id
        node = CanvasNode(
            id=node_id,
            kind=NodeKind.ENTITY,
            x=position.x,
            y=position.y,
            width=position.width,
            height=position.height,
            file=record.location,
        )
        if not reposition:
            # Kept nodes stay where they are, so new ones give way.
            node = clear_of(node, [n for n in nodes if n.is_entity], layout.row_gap)
        nodes.append(node)
        summary.added += 1

    kept_ids = {node.id for node in nodes}
    entity_ids = {node.id for node in nodes if node.is_entity}
    edges = [
        replace(edge, extra=dict(edge.extra))
        for edge in document.edges
        if edge.from_node in kept_ids
        and edge.to_node in kept_ids
        and not (edge.from_node in entity_ids and edge.to_node in entity_ids)
    ]
    existing = {edge.id: edge for edge in document.edges}
    edges.extend(build_edges(resolved, node_for_entity, existing))

    summary.warnings = reports.warnings()
    logger.info(
        "Reconciled canvas",
        added=summary.added,
        archived=summary.archived,
        removed=summary.removed,
        repositioned=summary.repositioned,
        edges=len(edges),
    )
    return Reconciliation(
        document=CanvasDocument(nodes=tuple(nodes), edges=tuple(edges)),
        summary=summary,
        to_archive=to_archive,
    )
