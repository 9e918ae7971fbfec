"""Exceptions raised by entity canvas."""


class EntityCanvasError(Exception):
    """Base class for entity canvas errors."""


class ParseError(EntityCanvasError):
    """A record could not be turned into an entity."""

    def __init__(self, location: str, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(f"{location}: {reason}")


class EntityReferenceError(EntityCanvasError):
    """A record refers to an entity that is not live (missing, archived or duplicated)."""


class CycleError(EntityCanvasError):
    """A relationship graph contains a cycle."""

    def __init__(self, members: list[str]) -> None:
        self.members = members
        super().__init__("Cycle: " + " -> ".join(members + members[:1]))


class ConsistencyWarning(EntityCanvasError):
    """An informational field disagrees with its source-of-truth counterpart."""


class CollaboratorError(EntityCanvasError):
    """A collaborator (record source, archive sink, canvas store) failed."""


class ArchiveError(CollaboratorError):
    """Moving a record into the archive area failed."""


class StoreError(CollaboratorError):
    """Loading or saving the canvas failed."""


class PassFailedError(EntityCanvasError):
    """A populate or reposition pass was abandoned; the canvas was not written."""


class SourceError(CollaboratorError):
    """Reading the records failed."""
