"""Data models for entity canvas."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class EntityType(str, Enum):
    """Kinds of project-management entities that can live on the canvas."""

    MILESTONE = "milestone"
    STORY = "story"
    TASK = "task"
    DECISION = "decision"
    DOCUMENT = "document"
    FEATURE = "feature"


class NodeKind(str, Enum):
    """Kinds of canvas nodes.

    Only ENTITY nodes are bound to records. FILE covers file nodes that point at
    something other than a markdown record (images, PDFs) and is left alone like the
    other non-entity kinds.
    """

    ENTITY = "entity"
    TEXT = "text"
    GROUP = "group"
    LINK = "link"
    FILE = "file"


class EdgeKind(str, Enum):
    """Relations rendered as canvas edges."""

    CONTAINMENT = "containment"
    DEPENDENCY = "dependency"


UNASSIGNED_WORKSTREAM = "unassigned"


@dataclass(frozen=True)
class Present(Generic[T]):
    """A frontmatter field that was found and understood."""

    value: T


@dataclass(frozen=True)
class Absent:
    """A frontmatter field that is not there (or is empty)."""


@dataclass(frozen=True)
class Malformed:
    """A frontmatter field that is there but has an unusable shape."""

    raw: Any
    reason: str


ParsedField = Present[Any] | Absent | Malformed


@dataclass(frozen=True)
class EntityRecord:
    """One parsed entity plus its raw relationship fields.

    Relationship fields are tuples of unique ids in first-seen order. ``fields`` keeps
    the whole frontmatter mapping as read so it can be written back unchanged.
    """

    entity_id: str
    type: EntityType
    location: str
    title: str = ""
    workstream: str = ""
    parent: str | None = None
    depends_on: tuple[str, ...] = ()
    blocks: tuple[str, ...] = ()
    enables: tuple[str, ...] = ()
    affects: tuple[str, ...] = ()
    implemented_by: tuple[str, ...] = ()
    implements: tuple[str, ...] = ()
    children: tuple[str, ...] = ()
    archived: bool = False
    fields: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass
class CanvasNode:
    """A node on the canvas.

    Entity nodes bind to a record through ``file``, the record's location.
    ``extra`` carries every other attribute found in the canvas file.
    """

    id: str
    kind: NodeKind
    x: float = 0
    y: float = 0
    width: float = 400
    height: float = 200
    file: str | None = None
    color: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_entity(self) -> bool:
        return self.kind == NodeKind.ENTITY

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the canvas JSON shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "type": "file" if self.kind in (NodeKind.ENTITY, NodeKind.FILE) else self.kind.value,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }
        if self.file is not None:
            data["file"] = self.file
        if self.color is not None:
            data["color"] = self.color
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CanvasNode":
        """Build a node from the canvas JSON shape."""
        known = {"id", "type", "x", "y", "width", "height", "file", "color"}
        node_type = data.get("type", "text")
        file = data.get("file")
        if node_type == "file":
            kind = NodeKind.ENTITY if file and str(file).endswith(".md") else NodeKind.FILE
        else:
            kind = NodeKind(node_type)
        return cls(
            id=str(data["id"]),
            kind=kind,
            x=data.get("x", 0),
            y=data.get("y", 0),
            width=data.get("width", 400),
            height=data.get("height", 200),
            file=file,
            color=data.get("color"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class CanvasEdge:
    """An edge on the canvas."""

    id: str
    from_node: str
    to_node: str
    kind: EdgeKind | None = None
    from_side: str = "right"
    to_side: str = "left"
    color: str | None = None
    label: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the canvas JSON shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "fromNode": self.from_node,
            "fromSide": self.from_side,
            "toNode": self.to_node,
            "toSide": self.to_side,
        }
        if self.color is not None:
            data["color"] = self.color
        if self.label is not None:
            data["label"] = self.label
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CanvasEdge":
        """Build an edge from the canvas JSON shape.

        The relation kind is not stored in the file; it is recovered from the id
        prefix used for generated edges.
        """
        known = {"id", "fromNode", "toNode", "fromSide", "toSide", "color", "label"}
        edge_id = str(data["id"])
        kind = None
        if edge_id.startswith("edge-parent-"):
            kind = EdgeKind.CONTAINMENT
        elif edge_id.startswith("edge-dep-"):
            kind = EdgeKind.DEPENDENCY
        return cls(
            id=edge_id,
            from_node=str(data["fromNode"]),
            to_node=str(data["toNode"]),
            kind=kind,
            from_side=data.get("fromSide", "right"),
            to_side=data.get("toSide", "left"),
            color=data.get("color"),
            label=data.get("label"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass(frozen=True)
class CanvasDocument:
    """Immutable snapshot of a canvas: nodes and edges in file order."""

    nodes: tuple[CanvasNode, ...] = ()
    edges: tuple[CanvasEdge, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CanvasDocument":
        return cls(
            nodes=tuple(CanvasNode.from_dict(n) for n in data.get("nodes") or []),
            edges=tuple(CanvasEdge.from_dict(e) for e in data.get("edges") or []),
        )

    def node(self, node_id: str) -> CanvasNode | None:
        """Find a node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


@dataclass
class PassSummary:
    """What one populate or reposition pass did."""

    added: int = 0
    archived: int = 0
    removed: int = 0
    repositioned: int = 0
    warnings: list[str] = field(default_factory=list)
