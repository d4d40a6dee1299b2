"""Ledger blocks in stored documents: locating, merging and totals."""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from macro_ledger.domain.ledger import (
    BLOCK_MARKER,
    INTERACTIVE_PREFIX,
    Document,
    LedgerBlock,
    LedgerStructure,
)
from macro_ledger.domain.nutrition import NutritionTotals, RollupSummary
from macro_ledger.services.aggregation import MacroAggregator
from macro_ledger.services.cache import Cache
from macro_ledger.services.foods import NutritionResolver
from macro_ledger.services.merge import (
    MealTemplateLookup,
    build_new_items,
    merge_structures,
)
from macro_ledger.services.parsing import parse_ledger
from macro_ledger.services.scheduler import UpdateOutcome, UpdateScheduler
from macro_ledger.services.serialization import render_block, serialize_ledger

_ANY_BLOCK = re.compile(rf"```\s*{BLOCK_MARKER}\s+id:\s*(\S+)\s*([\s\S]*?)```")

_logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """A document could not be listed, read or written."""


class DocumentStore(Protocol):
    """Host document storage."""

    async def list_documents(self) -> list[Document]:
        """Return all documents in enumeration order."""

    async def read(self, document: Document) -> str:
        """Return the full text of a document."""

    async def write(self, document: Document, text: str) -> None:
        """Replace the full text of a document atomically."""

    def notify_changed(self, document: Document) -> None:
        """Tell listeners that a document changed."""


def block_pattern(ledger_id: str) -> re.Pattern[str]:
    """Pattern for the ledger block with exactly this id."""
    return re.compile(
        rf"```\s*{BLOCK_MARKER}\s+id:\s*{re.escape(ledger_id)}\s*\n([\s\S]*?)```"
    )


@dataclass
class PendingAdditions:
    """In-memory queue of interactive-addition lines per ledger id."""

    _lines: dict[str, list[str]] = field(default_factory=dict)

    def add(self, ledger_id: str, lines: Iterable[str]) -> None:
        queue = self._lines.setdefault(ledger_id, [])
        for line in lines:
            text = line.strip()
            if not text:
                continue
            if not text.startswith(INTERACTIVE_PREFIX):
                text = f"{INTERACTIVE_PREFIX}{text}"
            queue.append(text)

    def get(self, ledger_id: str) -> list[str]:
        return list(self._lines.get(ledger_id, []))

    def consume(self, ledger_id: str, count: int) -> None:
        """Drop the first `count` lines, keeping anything added since."""
        queue = self._lines.get(ledger_id)
        if queue is not None:
            del queue[:count]

    def clear(self) -> None:
        self._lines.clear()


@dataclass
class LedgerService:
    """Read ledger blocks from storage and run the scheduled merge cycle."""

    store: DocumentStore
    cache: Cache
    scheduler: UpdateScheduler
    resolver: NutritionResolver
    aggregator: MacroAggregator
    find_template: MealTemplateLookup
    pending: PendingAdditions = field(default_factory=PendingAdditions)

    async def read_document(
        self, document: Document, force_refresh: bool = False
    ) -> str:
        """Return document text, from the cache unless `force_refresh`."""
        cache_key = f"document:{document.path}"
        if not force_refresh:
            cached = self.cache.get(cache_key)
            if isinstance(cached, str):
                return cached
        content = await self.store.read(document)
        self.cache.set(cache_key, content)
        return content

    async def locate_block(
        self, ledger_id: str, force_refresh: bool = False
    ) -> LedgerBlock | None:
        """Find the block with this id; the first document in order wins."""
        pattern = block_pattern(ledger_id)
        try:
            documents = await self.store.list_documents()
        except StorageError:
            _logger.exception("Error listing documents for ledger %s", ledger_id)
            return None
        for document in documents:
            try:
                content = await self.read_document(document, force_refresh)
            except StorageError:
                _logger.exception(
                    "Error reading %s for ledger %s", document.path, ledger_id
                )
                continue
            match = pattern.search(content)
            if match:
                _logger.debug("Found ledger %s in %s", ledger_id, document.path)
                return LedgerBlock(
                    ledger_id=ledger_id,
                    document=document,
                    body=match.group(1),
                    source=match.group(0),
                )
        _logger.debug("No ledger block found for id %s", ledger_id)
        return None

    async def load_lines(
        self, ledger_id: str, include_bullets: bool = True
    ) -> list[str] | None:
        """Trimmed, non-empty lines of a ledger, or None if it doesn't exist."""
        cache_key = f"ledger:{ledger_id}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            lines = cached
        else:
            block = await self.locate_block(ledger_id)
            if block is None:
                return None
            lines = block.lines
            self.cache.set(cache_key, lines)
        if include_bullets:
            return list(lines)
        return [line for line in lines if not line.startswith("-")]

    async def load_structure(self, ledger_id: str) -> LedgerStructure | None:
        lines = await self.load_lines(ledger_id)
        if lines is None:
            return None
        return parse_ledger(lines, self.resolver.default_serving)

    async def totals(self, ledger_id: str) -> NutritionTotals | None:
        """Totals for one ledger; read-only, so not scheduled."""
        lines = await self.load_lines(ledger_id)
        if lines is None:
            return None
        return self.aggregator.aggregate(lines)

    async def totals_many(self, ledger_ids: Iterable[str]) -> RollupSummary:
        ledgers: dict[str, list[str] | None] = {}
        for ledger_id in ledger_ids:
            ledgers[ledger_id] = await self.load_lines(ledger_id)
        return self.aggregator.aggregate_many(ledgers)

    def normalize_lines(self, lines: Iterable[str]) -> list[str]:
        """Fold repeated foods and put meals before standalone items."""
        structure = parse_ledger(lines, self.resolver.default_serving)
        if structure.is_empty():
            return []
        return serialize_ledger(structure).split("\n")

    async def add_selection(
        self, ledger_id: str, lines: Iterable[str]
    ) -> UpdateOutcome:
        """Queue interactive additions for a ledger and schedule the merge."""
        self.pending.add(ledger_id, lines)
        return await self.apply_pending(ledger_id)

    async def apply_pending(self, ledger_id: str) -> UpdateOutcome:
        return await self.scheduler.queue_update(lambda: self._merge_pending(ledger_id))

    async def replace_block_lines(self, ledger_id: str, lines: list[str]) -> bool:
        """Overwrite a ledger's body; returns whether the block was rewritten."""
        replaced = False

        async def update() -> None:
            nonlocal replaced
            block = await self.locate_block(ledger_id, force_refresh=True)
            if block is None:
                return
            content = await self.read_document(block.document, force_refresh=True)
            new_content = content.replace(
                block.source, render_block(ledger_id, "\n".join(lines)), 1
            )
            await self.store.write(block.document, new_content)
            self.record_write(block.document, new_content)
            replaced = True

        outcome = await self.scheduler.queue_update(update)
        return replaced and outcome is UpdateOutcome.COMPLETED

    def handle_document_changed(self, path: str) -> None:
        """Drop everything derived from storage after a create/modify/delete/rename."""
        self.cache.invalidate(f"document:{path}")
        self.cache.invalidate_prefix("ledger:")
        self.resolver.invalidate()

    async def _merge_pending(self, ledger_id: str) -> None:
        block = await self.locate_block(ledger_id, force_refresh=True)
        if block is None:
            return
        content = await self.read_document(block.document)
        new_content = content
        consumed: dict[str, int] = {}
        for match in _ANY_BLOCK.finditer(content):
            block_id, body = match.group(1), match.group(2)
            additions = self.pending.get(block_id)
            if block_id in consumed or not additions:
                continue
            existing = parse_ledger(body, self.resolver.default_serving)
            new_items = build_new_items(
                additions, self.find_template, self.resolver.default_serving
            )
            merged = merge_structures(existing, new_items)
            new_content = new_content.replace(
                match.group(0), render_block(block_id, serialize_ledger(merged)), 1
            )
            consumed[block_id] = len(additions)

        if not consumed:
            _logger.debug("No ledger blocks were updated in %s", block.document.path)
            return
        await self.store.write(block.document, new_content)
        for block_id, count in consumed.items():
            self.pending.consume(block_id, count)
        self.record_write(block.document, new_content)
        _logger.debug(
            "Updated ledger blocks %s in %s",
            ", ".join(consumed),
            block.document.path,
        )

    def record_write(self, document: Document, content: str) -> None:
        """Refresh caches and notify listeners after a document was written."""
        self.cache.set(f"document:{document.path}", content)
        self.cache.invalidate_prefix("ledger:")
        self.store.notify_changed(document)
