"""Backend implementations."""

from entity_canvas.backends.vault import JsonCanvasStore, VaultArchiveSink, VaultRecordSource

__all__ = ["JsonCanvasStore", "VaultArchiveSink", "VaultRecordSource"]
