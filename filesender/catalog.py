"""
File Catalog

The client's view of the files the host offers. Every update from the host
is a complete snapshot; it replaces the previous one in a single assignment,
so readers see either the old mapping or the new one, never a mix.
"""

import logging
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional

from .protocol.messages import FileDescriptor

logger = logging.getLogger(__name__)

Snapshot = Mapping[int, FileDescriptor]
CatalogCallback = Callable[[Snapshot], None]


class Catalog:
    """Last-known snapshot of remotely available files."""

    def __init__(self):
        self._files: Snapshot = MappingProxyType({})
        self._callbacks: List[CatalogCallback] = []
        self.updates = 0

    @property
    def files(self) -> Snapshot:
        """Current snapshot (read-only)."""
        return self._files

    def get(self, file_id: int) -> Optional[FileDescriptor]:
        return self._files.get(file_id)

    def __contains__(self, file_id: int) -> bool:
        return file_id in self._files

    def __len__(self) -> int:
        return len(self._files)

    def on_update(self, callback: CatalogCallback):
        """Register a callback for catalog updates."""
        self._callbacks.append(callback)

    def apply_update(self, files: Dict[int, FileDescriptor]) -> Snapshot:
        """
        Replace the catalog with a new snapshot.

        Args:
            files: The complete new file list, keyed by file id

        Returns:
            The snapshot now visible
        """
        snapshot = MappingProxyType(dict(files))
        self._files = snapshot
        self.updates += 1

        logger.info(f"Received file list update: {len(snapshot)} files")

        for callback in self._callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.exception(f"Callback error: {e}")

        return snapshot

