"""Detect and break cycles in relationship graphs."""

from collections.abc import Iterator
from dataclasses import dataclass, field

import structlog

from entity_canvas.graph import Digraph, Edge
from entity_canvas.reports import ReportKind, ReportLog

logger = structlog.get_logger()

_UNSEEN, _ON_PATH, _DONE = 0, 1, 2


@dataclass(frozen=True)
class Cycle:
    """One detected cycle: its members in traversal order and the edge dropped to break it."""

    members: tuple[str, ...]
    removed_edge: Edge


@dataclass
class CycleResolution:
    """An acyclic copy of a graph plus what was removed to get there."""

    graph: Digraph
    cycles: list[Cycle] = field(default_factory=list)

    @property
    def removed_edges(self) -> list[Edge]:
        return [cycle.removed_edge for cycle in self.cycles]


def resolve_cycles(
    graph: Digraph,
    reports: ReportLog | None = None,
    relation: str = "dependency",
    kind: ReportKind = ReportKind.CYCLE,
) -> CycleResolution:
    """Make a graph acyclic by dropping the back edge of every cycle found.

    A single depth-first traversal (explicit stack, ascending id order) visits every
    node and edge once. Each back edge closes exactly one cycle; it is removed on the
    spot and traversal carries on, so no rescans are needed and the result is acyclic.

    Args:
        graph: Graph to resolve; left untouched
        reports: Optional sink receiving one report per cycle
        relation: Name of the relation, used in report messages
        kind: Report kind to emit

    Returns:
        CycleResolution with the acyclic copy and the cycles found
    """
    acyclic = graph.copy()
    state = {node: _UNSEEN for node in acyclic.nodes()}
    resolution = CycleResolution(graph=acyclic)

    for root in acyclic.nodes():
        if state[root] != _UNSEEN:
            continue
        path: list[str] = [root]
        position = {root: 0}
        state[root] = _ON_PATH
        stack: list[tuple[str, Iterator[str]]] = [(root, iter(acyclic.successors(root)))]

        while stack:
            node, successors = stack[-1]
            descended = False
            for successor in successors:
                if state[successor] == _UNSEEN:
                    state[successor] = _ON_PATH
                    position[successor] = len(path)
                    path.append(successor)
                    stack.append((successor, iter(acyclic.successors(successor))))
                    descended = True
                    break
                if state[successor] == _ON_PATH:
                    members = tuple(path[position[successor] :])
                    acyclic.remove_edge(node, successor)
                    cycle = Cycle(members=members, removed_edge=(node, successor))
                    resolution.cycles.append(cycle)
                    if reports is not None:
                        reports.add(
                            kind,
                            f"Circular {relation}: {' -> '.join(members + members[:1])}; "
                            f"dropped edge {node} -> {successor}",
                            members,
                        )
            if not descended:
                state[node] = _DONE
                del position[node]
                path.pop()
                stack.pop()

    logger.debug("Resolved cycles", relation=relation, cycles=len(resolution.cycles))
    return resolution
