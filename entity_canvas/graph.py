"""Relationship graphs over entity records."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

import networkx as nx
import structlog

from entity_canvas.errors import CycleError
from entity_canvas.models import UNASSIGNED_WORKSTREAM, EntityRecord
from entity_canvas.reports import Report, ReportKind, ReportLog

logger = structlog.get_logger()

Edge = tuple[str, str]


class Digraph:
    """Directed graph keyed by entity id, backed by a networkx DiGraph.

    Nodes, successors and edges always come back in ascending id order so every
    algorithm built on top of it is deterministic.
    """

    def __init__(self, nodes: Iterable[str] = (), edges: Iterable[Edge] = ()) -> None:
        self.graph = nx.DiGraph()
        self.graph.add_nodes_from(nodes)
        self.graph.add_edges_from(edges)

    @classmethod
    def wrap(cls, graph: nx.DiGraph) -> "Digraph":
        digraph = cls()
        digraph.graph = graph
        return digraph

    def add_node(self, node: str) -> None:
        self.graph.add_node(node)

    def add_edge(self, source: str, target: str) -> None:
        self.graph.add_edge(source, target)

    def remove_edge(self, source: str, target: str) -> None:
        self.graph.remove_edge(source, target)

    def has_edge(self, source: str, target: str) -> bool:
        return self.graph.has_edge(source, target)

    def __contains__(self, node: object) -> bool:
        return node in self.graph

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def __iter__(self) -> Iterator[str]:
        return iter(self.nodes())

    def nodes(self) -> list[str]:
        return sorted(self.graph.nodes)

    def successors(self, node: str) -> list[str]:
        return sorted(self.graph.successors(node))

    def predecessors(self, node: str) -> list[str]:
        return sorted(self.graph.predecessors(node))

    def edges(self) -> list[Edge]:
        return sorted(self.graph.edges)

    def edge_count(self) -> int:
        return self.graph.number_of_edges()

    def copy(self) -> "Digraph":
        return Digraph.wrap(self.graph.copy())

    def union(self, other: "Digraph") -> "Digraph":
        return Digraph.wrap(nx.compose(self.graph, other.graph))


@dataclass
class LayoutGraph:
    """Containment (child -> parent) and dependency (dependency -> dependent) graphs.

    ``orphans`` holds entities whose declared parent did not resolve to a live record.
    """

    containment: Digraph = field(default_factory=Digraph)
    dependency: Digraph = field(default_factory=Digraph)
    orphans: set[str] = field(default_factory=set)


def live_records(records: Iterable[EntityRecord]) -> dict[str, EntityRecord]:
    """Records that take part in the canvas, keyed by id."""
    return {record.entity_id: record for record in records if not record.archived}


def build_layout_graph(records: Iterable[EntityRecord], reports: ReportLog) -> LayoutGraph:
    """Build the containment and dependency graphs.

    ``parent`` is the only source of containment edges and ``depends_on`` the only
    source of dependency edges; ``children`` and ``blocks`` are never read here.
    References to missing or archived entities produce a report and no edge.
    """
    records = list(records)
    live = live_records(records)
    archived = {record.entity_id for record in records if record.archived and record.entity_id not in live}
    graph = LayoutGraph(containment=Digraph(live), dependency=Digraph(live))

    for entity_id in sorted(live):
        record = live[entity_id]
        parent = record.parent
        if parent:
            if parent == entity_id:
                reports.add(
                    ReportKind.CYCLE,
                    f"{entity_id} is its own parent; ignoring",
                    [entity_id],
                )
            elif parent in live:
                graph.containment.add_edge(entity_id, parent)
            elif parent in archived:
                graph.orphans.add(entity_id)
                reports.add(
                    ReportKind.ARCHIVED_PARENT,
                    f"{entity_id} has archived parent {parent}; placing as orphan",
                    [entity_id, parent],
                )
            else:
                graph.orphans.add(entity_id)
                reports.add(
                    ReportKind.MISSING_PARENT,
                    f"Orphan: {entity_id} has missing parent {parent}",
                    [entity_id, parent],
                )

        for dependency in record.depends_on:
            if dependency == entity_id:
                reports.add(
                    ReportKind.CYCLE,
                    f"{entity_id} depends on itself; ignoring",
                    [entity_id],
                )
            elif dependency in live:
                graph.dependency.add_edge(dependency, entity_id)
            elif dependency in archived:
                reports.add(
                    ReportKind.ARCHIVED_DEPENDENCY,
                    f"{entity_id} depends on archived entity {dependency}",
                    [entity_id, dependency],
                )
            else:
                reports.add(
                    ReportKind.MISSING_DEPENDENCY,
                    f"{entity_id} has missing dependency {dependency}",
                    [entity_id, dependency],
                )

    logger.info(
        "Built relationship graphs",
        entities=len(live),
        containment_edges=graph.containment.edge_count(),
        dependency_edges=graph.dependency.edge_count(),
        orphans=len(graph.orphans),
    )
    return graph


def check_consistency(records: Iterable[EntityRecord]) -> list[Report]:
    """Compare informational fields with their source-of-truth counterparts.

    ``children`` is checked against the records whose ``parent`` points back and
    ``blocks`` against ``depends_on``. A side is only checked when the record
    declares the field. Nothing is changed; mismatches come back as reports.
    """
    live = live_records(records)
    found: list[Report] = []

    def mismatch(message: str, *entity_ids: str) -> None:
        found.append(Report(kind=ReportKind.CONSISTENCY, message=message, entity_ids=entity_ids))

    back_pointing: dict[str, set[str]] = {}
    for record in live.values():
        if record.parent:
            back_pointing.setdefault(record.parent, set()).add(record.entity_id)

    for entity_id in sorted(live):
        record = live[entity_id]

        if "children" in record.fields:
            declared = set(record.children)
            actual = back_pointing.get(entity_id, set())
            for child in sorted(declared - actual):
                if child in live:
                    mismatch(
                        f"{entity_id} lists child {child}, but {child} has parent {live[child].parent}",
                        entity_id,
                        child,
                    )
            for child in sorted(actual - declared):
                mismatch(
                    f"{child} has parent {entity_id}, but {entity_id} does not list it in children",
                    entity_id,
                    child,
                )

        for blocked in record.blocks:
            target = live.get(blocked)
            if target is not None and entity_id not in target.depends_on:
                mismatch(
                    f"{entity_id} blocks {blocked}, but {blocked} does not depend on {entity_id}",
                    entity_id,
                    blocked,
                )

        for dependency in record.depends_on:
            target = live.get(dependency)
            if target is not None and "blocks" in target.fields and entity_id not in target.blocks:
                mismatch(
                    f"{entity_id} depends on {dependency}, but {dependency} does not block {entity_id}",
                    entity_id,
                    dependency,
                )

    return found


def effective_workstreams(records: Iterable[EntityRecord], containment: Digraph) -> dict[str, str]:
    """Workstream of every live entity: its own, else its nearest ancestor's, else unassigned."""
    live = live_records(records)
    resolved: dict[str, str] = {}

    for entity_id in sorted(live):
        chain: list[str] = []
        current: str | None = entity_id
        workstream = UNASSIGNED_WORKSTREAM
        while current is not None and current not in chain:
            if current in resolved:
                workstream = resolved[current]
                break
            chain.append(current)
            own = live[current].workstream if current in live else ""
            if own:
                workstream = own
                break
            parents = containment.successors(current)
            current = parents[0] if parents else None
        for member in chain:
            resolved.setdefault(member, workstream)

    return resolved


def topological_order(graph: Digraph) -> list[str]:
    """Topological order where ready nodes are taken in ascending id order.

    Raises:
        CycleError: if the graph is not acyclic
    """
    try:
        return list(nx.lexicographical_topological_sort(graph.graph))
    except nx.NetworkXUnfeasible as e:
        members = [source for source, _ in nx.find_cycle(graph.graph)]
        raise CycleError(members) from e
