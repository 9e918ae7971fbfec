"""Turn raw records into the acyclic, reduced graphs the layout works from."""

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from entity_canvas.cycles import Cycle, resolve_cycles
from entity_canvas.graph import Digraph, build_layout_graph, effective_workstreams
from entity_canvas.models import EntityRecord
from entity_canvas.reduction import transitive_reduction
from entity_canvas.reports import ReportKind, ReportLog

logger = structlog.get_logger()


@dataclass
class ResolvedGraph:
    """Everything the layout and the edge generator need.

    ``dependency`` keeps every non-cyclic dependency fact and is used for ordering;
    ``rendered_dependency`` is its transitive reduction and is what gets drawn.
    ``ordering`` is the combined containment + dependency DAG used for columns.
    """

    containment: Digraph
    dependency: Digraph
    rendered_dependency: Digraph
    ordering: Digraph
    orphans: set[str] = field(default_factory=set)
    workstreams: dict[str, str] = field(default_factory=dict)
    cycles: list[Cycle] = field(default_factory=list)


def resolve_graph(records: Iterable[EntityRecord], reports: ReportLog) -> ResolvedGraph:
    """Build both relationship graphs, break their cycles and reduce dependencies."""
    records = list(records)
    graph = build_layout_graph(records, reports)

    containment = resolve_cycles(graph.containment, reports, relation="containment")
    dependency = resolve_cycles(graph.dependency, reports, relation="dependency")

    # Each graph is acyclic on its own; together they can still disagree.
    combined = resolve_cycles(
        containment.graph.union(dependency.graph),
        reports,
        relation="ordering between parent and dependency links",
        kind=ReportKind.LAYOUT_CONFLICT,
    )
    for source, target in combined.removed_edges:
        if containment.graph.has_edge(source, target):
            containment.graph.remove_edge(source, target)
        if dependency.graph.has_edge(source, target):
            dependency.graph.remove_edge(source, target)

    reduction = transitive_reduction(dependency.graph)
    resolved = ResolvedGraph(
        containment=containment.graph,
        dependency=dependency.graph,
        rendered_dependency=reduction.graph,
        ordering=combined.graph,
        orphans=set(graph.orphans),
        workstreams=effective_workstreams(records, containment.graph),
        cycles=containment.cycles + dependency.cycles + combined.cycles,
    )
    logger.info(
        "Resolved relationship graphs",
        cycles=len(resolved.cycles),
        suppressed_transitive=len(reduction.suppressed),
        rendered_edges=resolved.containment.edge_count() + resolved.rendered_dependency.edge_count(),
    )
    return resolved
