"""Filesystem collaborators: a vault folder of markdown records and a JSON canvas file."""

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import structlog

from entity_canvas.backend import ArchiveSink, CanvasStore, RecordSource
from entity_canvas.errors import ArchiveError, ParseError, SourceError, StoreError
from entity_canvas.models import CanvasDocument
from entity_canvas.parser import update_frontmatter

logger = structlog.get_logger()


def _is_hidden(parts: tuple[str, ...]) -> bool:
    return any(part.startswith(".") for part in parts)


class VaultRecordSource(RecordSource):
    """Markdown records under a vault folder, skipping the archive folder."""

    def __init__(self, root: str | Path, archive_folder: str = "archive") -> None:
        """Initialize the record source.

        Args:
            root: Vault directory
            archive_folder: Vault-relative folder holding archived records
        """
        self.root = Path(root)
        self.archive_folder = archive_folder.strip("/")
        logger.debug("Initializing vault record source", root=str(self.root), archive_folder=self.archive_folder)

    def in_archive(self, location: str) -> bool:
        return location == self.archive_folder or location.startswith(f"{self.archive_folder}/")

    def items(self) -> list[tuple[str, str]]:
        """Read every in-scope record as (vault-relative path, text)."""
        if not self.root.is_dir():
            raise SourceError(f"Vault folder {self.root} does not exist")

        items: list[tuple[str, str]] = []
        try:
            for path in sorted(self.root.rglob("*.md")):
                relative = path.relative_to(self.root)
                location = relative.as_posix()
                if self.in_archive(location) or _is_hidden(relative.parts):
                    continue
                try:
                    items.append((location, path.read_text(encoding="utf-8")))
                except UnicodeDecodeError as e:
                    logger.warning("Skipping file that is not UTF-8", location=location, error=str(e))
        except OSError as e:
            logger.error("Failed to read vault", root=str(self.root), error=str(e))
            raise SourceError(f"Failed to read vault {self.root}: {e}") from e

        logger.info("Read vault records", root=str(self.root), count=len(items))
        return items


class VaultArchiveSink(ArchiveSink):
    """Moves records to ``<archive_folder>/<original path>`` inside the vault."""

    def __init__(self, root: str | Path, archive_folder: str = "archive") -> None:
        self.root = Path(root)
        self.archive_folder = archive_folder.strip("/")

    def _destination(self, location: str) -> Path:
        target = self.root / self.archive_folder / location
        counter = 1
        candidate = target
        while candidate.exists():
            candidate = target.with_name(f"{target.stem}_{counter}{target.suffix}")
            counter += 1
        return candidate

    def archive(self, location: str) -> str:
        """Move a record into the archive folder and stamp ``archived_at`` on it."""
        source = self.root / location
        logger.info("Archiving record", location=location)
        try:
            text = source.read_text(encoding="utf-8")
            try:
                text = update_frontmatter(
                    location, text, {"archived_at": datetime.now(timezone.utc).isoformat(timespec="seconds")}
                )
            except ParseError as e:
                logger.warning("Archiving without timestamp", location=location, error=str(e))

            destination = self._destination(location)
            destination.parent.mkdir(parents=True, exist_ok=True)
            (destination.parent / ".gitkeep").touch(exist_ok=True)
            destination.write_text(text, encoding="utf-8")
            source.unlink()
        except OSError as e:
            logger.error("Failed to archive record", location=location, error=str(e))
            raise ArchiveError(f"Failed to archive {location}: {e}") from e

        new_location = destination.relative_to(self.root).as_posix()
        logger.info("Record archived", location=location, new_location=new_location)
        return new_location


class JsonCanvasStore(CanvasStore):
    """A canvas stored as a JSON ``.canvas`` file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> CanvasDocument:
        """Load the canvas file; a missing file is an empty canvas."""
        if not self.path.exists():
            logger.debug("Canvas file does not exist, starting empty", path=str(self.path))
            return CanvasDocument()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load canvas", path=str(self.path), error=str(e))
            raise StoreError(f"Failed to load canvas from {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Canvas {self.path} is not a JSON object")
        try:
            document = CanvasDocument.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Canvas {self.path} has an invalid node or edge: {e}") from e
        logger.debug("Canvas loaded", path=str(self.path), nodes=len(document.nodes), edges=len(document.edges))
        return document

    def save(self, document: CanvasDocument) -> None:
        """Write the canvas to a temporary file and move it over the old one."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document.to_dict(), f, indent="\t", ensure_ascii=False)
                os.replace(temp_path, self.path)
            except BaseException:
                Path(temp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to save canvas", path=str(self.path), error=str(e))
            raise StoreError(f"Failed to save canvas to {self.path}: {e}") from e
        logger.info("Canvas saved", path=str(self.path), nodes=len(document.nodes), edges=len(document.edges))
