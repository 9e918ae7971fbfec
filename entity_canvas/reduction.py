"""Transitive reduction of the dependency graph."""

from dataclasses import dataclass, field

import networkx as nx
import structlog

from entity_canvas.graph import Digraph, Edge, topological_order

logger = structlog.get_logger()


@dataclass
class Reduction:
    """Edges worth drawing, and the ones implied by a longer path."""

    graph: Digraph
    suppressed: list[Edge] = field(default_factory=list)


def transitive_reduction(graph: Digraph) -> Reduction:
    """Drop every edge A -> B that is implied by another path from A to B.

    The input graph must be acyclic and is not modified; every node is kept.

    Raises:
        CycleError: if the graph has a cycle
    """
    topological_order(graph)
    reduced = Digraph.wrap(nx.transitive_reduction(graph.graph))
    reduction = Reduction(
        graph=reduced,
        suppressed=[edge for edge in graph.edges() if not reduced.has_edge(*edge)],
    )
    logger.debug("Reduced dependency graph", kept=reduced.edge_count(), suppressed=len(reduction.suppressed))
    return reduction
