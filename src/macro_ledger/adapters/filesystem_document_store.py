"""Filesystem implementation of the document store."""

import asyncio
import logging
import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from macro_ledger.domain.ledger import Document
from macro_ledger.services.ledgers import DocumentStore, StorageError

ChangeListener = Callable[[str], None]

_logger = logging.getLogger(__name__)


@dataclass
class FilesystemDocumentStore(DocumentStore):
    """Markdown documents under a vault directory, addressed by relative path."""

    root: Path
    listeners: list[ChangeListener] = field(default_factory=list)

    async def list_documents(self) -> list[Document]:
        """Return every `*.md` file in sorted path order."""
        try:
            paths = await asyncio.to_thread(self._scan)
        except OSError as exc:
            raise StorageError(f"Failed to list documents in {self.root}") from exc
        return [Document(path=path) for path in paths]

    async def read(self, document: Document) -> str:
        try:
            return await asyncio.to_thread(
                self._resolve(document).read_text, encoding="utf-8"
            )
        except OSError as exc:
            raise StorageError(f"Failed to read {document.path}") from exc

    async def write(self, document: Document, text: str) -> None:
        """Write through a temporary file so readers never see partial text."""
        try:
            await asyncio.to_thread(self._write_atomic, self._resolve(document), text)
        except OSError as exc:
            raise StorageError(f"Failed to write {document.path}") from exc

    def notify_changed(self, document: Document) -> None:
        for listener in list(self.listeners):
            try:
                listener(document.path)
            except Exception:
                _logger.exception("Change listener failed for %s", document.path)

    def subscribe(self, listener: ChangeListener) -> None:
        self.listeners.append(listener)

    def _scan(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*.md")
            if path.is_file()
        )

    def _resolve(self, document: Document) -> Path:
        return self.root / document.path

    @staticmethod
    def _write_atomic(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(text)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
