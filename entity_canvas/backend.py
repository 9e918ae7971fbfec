"""Interfaces to the collaborators a pass reads from and writes to."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from entity_canvas.models import CanvasDocument


class RecordSource(ABC):
    """Abstract source of entity records."""

    @abstractmethod
    def items(self) -> Iterable[tuple[str, str]]:
        """Yield (location, text) for every in-scope record.

        Locations inside the archive area must not be yielded.
        """
        pass


class ArchiveSink(ABC):
    """Abstract destination for archived records."""

    @abstractmethod
    def archive(self, location: str) -> str:
        """Move a record into the archive area.

        Returns:
            The record's new location

        Raises:
            ArchiveError: if the record could not be moved
        """
        pass


class CanvasStore(ABC):
    """Abstract storage for the canvas document."""

    @abstractmethod
    def load(self) -> CanvasDocument:
        """Load the canvas; a canvas that does not exist yet loads as empty."""
        pass

    @abstractmethod
    def save(self, document: CanvasDocument) -> None:
        """Replace the stored canvas with ``document`` in one step."""
        pass
