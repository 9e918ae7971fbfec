"""Place entity nodes into workstream lanes and columns.

Columns come from longest-path layering over the combined ordering DAG: a child is
always left of its parent and a dependency always left of its dependent, across
lanes too. Lanes are horizontal bands, one per effective workstream, sorted by name
and stacked top to bottom. Inside a lane nodes are packed into the first free row of
their column. Orphans (entities whose parent could not be resolved) go into a plain
grid under the last lane.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from entity_canvas.graph import Digraph, topological_order
from entity_canvas.models import UNASSIGNED_WORKSTREAM, EntityRecord, EntityType
from entity_canvas.resolver import ResolvedGraph

logger = structlog.get_logger()

DEFAULT_NODE_SIZE = (400, 200)


@dataclass
class LayoutConfig:
    """Node sizes and spacing used by the layout."""

    node_sizes: dict[EntityType, tuple[int, int]] = field(
        default_factory=lambda: {entity_type: DEFAULT_NODE_SIZE for entity_type in EntityType}
    )
    column_gap: int = 90
    row_gap: int = 90
    lane_gap: int = 340
    orphan_gap: int = 150
    orphan_columns: int = 0
    origin_x: int = 100
    origin_y: int = 100

    def size_of(self, entity_type: EntityType) -> tuple[int, int]:
        return self.node_sizes.get(entity_type, DEFAULT_NODE_SIZE)


@dataclass(frozen=True)
class Position:
    """Computed geometry of one entity node."""

    x: float
    y: float
    width: float
    height: float


@dataclass
class Lane:
    """A workstream band."""

    name: str
    y: float
    height: float
    rows: int
    members: list[str] = field(default_factory=list)


@dataclass
class LayoutResult:
    """Positions for every live entity plus the structure they came from."""

    positions: dict[str, Position] = field(default_factory=dict)
    columns: dict[str, int] = field(default_factory=dict)
    lanes: list[Lane] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)
    orphan_area_y: float | None = None
    row_gap: int = 90


def assign_columns(ordering: Digraph) -> dict[str, int]:
    """Longest path from any source: sources get 0, others 1 + max(predecessor columns)."""
    columns: dict[str, int] = {}
    for node in topological_order(ordering):
        predecessors = ordering.predecessors(node)
        columns[node] = 1 + max(columns[p] for p in predecessors) if predecessors else 0
    return columns


def _chain_depths(members: list[str], containment: Digraph) -> dict[str, int]:
    """Depth of every lane member in its containment chain, counted within the lane."""
    in_lane = set(members)
    depths: dict[str, int] = {}
    for member in members:
        chain: list[str] = []
        current: str | None = member
        base = 0
        while current is not None and current in in_lane:
            if current in depths:
                base = depths[current]
                break
            chain.append(current)
            parents = containment.successors(current)
            current = parents[0] if parents else None
        for offset, node in enumerate(reversed(chain), start=1):
            depths[node] = base + offset
    return depths


def compute_layout(
    records: Iterable[EntityRecord],
    resolved: ResolvedGraph,
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Compute a position for every live entity.

    Args:
        records: Parsed records; archived ones are ignored
        resolved: Acyclic graphs, orphans and workstreams for the same records
        config: Sizes and spacing

    Returns:
        LayoutResult keyed by entity id
    """
    config = config or LayoutConfig()
    live = {record.entity_id: record for record in records if not record.archived}
    result = LayoutResult(columns=assign_columns(resolved.ordering), row_gap=config.row_gap)
    for entity_id in live:
        result.columns.setdefault(entity_id, 0)

    sizes = {entity_id: config.size_of(record.type) for entity_id, record in live.items()}
    orphans = sorted((e for e in live if e in resolved.orphans), key=lambda e: (result.columns[e], e))
    lane_members: dict[str, list[str]] = {}
    for entity_id in sorted(live):
        if entity_id in resolved.orphans:
            continue
        workstream = resolved.workstreams.get(entity_id) or UNASSIGNED_WORKSTREAM
        lane_members.setdefault(workstream, []).append(entity_id)

    # Column x offsets are shared by all lanes so columns line up across the canvas.
    widths: dict[int, int] = {}
    for members in lane_members.values():
        for entity_id in members:
            column = result.columns[entity_id]
            widths[column] = max(widths.get(column, 0), sizes[entity_id][0])
    column_x: dict[int, float] = {}
    x = float(config.origin_x)
    for column in range(max(widths, default=-1) + 1):
        column_x[column] = x
        x += widths.get(column, 0) + config.column_gap

    y = float(config.origin_y)
    for name in sorted(lane_members):
        members = sorted(lane_members[name], key=lambda e: (result.columns[e], e))
        pitch = max(sizes[e][1] for e in members) + config.row_gap
        occupied: dict[int, set[int]] = {}
        rows: dict[str, int] = {}
        for entity_id in members:
            taken = occupied.setdefault(result.columns[entity_id], set())
            row = 0
            while row in taken:
                row += 1
            taken.add(row)
            rows[entity_id] = row

        depth = max(_chain_depths(members, resolved.containment).values())
        row_count = max(max(rows.values()) + 1, depth)
        lane = Lane(name=name, y=y, height=row_count * pitch - config.row_gap, rows=row_count, members=members)
        for entity_id in members:
            width, height = sizes[entity_id]
            result.positions[entity_id] = Position(
                x=column_x[result.columns[entity_id]],
                y=y + rows[entity_id] * pitch,
                width=width,
                height=height,
            )
        result.lanes.append(lane)
        logger.debug("Placed lane", lane=name, members=len(members), rows=row_count, y=y)
        y += lane.height + config.lane_gap

    if orphans:
        area_y = (y - config.lane_gap + config.orphan_gap) if result.lanes else float(config.origin_y)
        per_row = config.orphan_columns or math.ceil(math.sqrt(len(orphans)))
        cell_width = max(sizes[e][0] for e in orphans) + config.column_gap
        cell_height = max(sizes[e][1] for e in orphans) + config.row_gap
        for index, entity_id in enumerate(orphans):
            width, height = sizes[entity_id]
            result.positions[entity_id] = Position(
                x=config.origin_x + (index % per_row) * cell_width,
                y=area_y + (index // per_row) * cell_height,
                width=width,
                height=height,
            )
        result.orphans = orphans
        result.orphan_area_y = area_y

    logger.info(
        "Computed layout",
        entities=len(result.positions),
        lanes=len(result.lanes),
        orphans=len(result.orphans),
        columns=len(column_x),
    )
    return result
