#!/usr/bin/env python3
"""Reorganization scheduler: applies rules to one document or the whole vault.

Per document the pipeline is:
    exclusion check -> rule match -> destination substitution and
    validation -> folder creation -> unique name -> rename -> history

The bulk path processes documents in fixed-size batches and sleeps after
each batch so the event loop stays responsive during large runs. Every
entry point runs under one asyncio.Lock, so a live document change that
arrives during a bulk run waits until the run has finished.

Example:
    >>> scheduler = ReorganizationScheduler(vault, engine, exclusions, history, notifier)
    >>> result = await scheduler.reorganize_all()
    >>> result.moved, len(result.skipped)
    (12, 1)
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from vaultorg.core.constants import PerformanceConfig
from vaultorg.core.errors import InvalidPathError, PathErrorReason, categorize_error
from vaultorg.infrastructure.logger import get_logger
from vaultorg.organizer.history import MoveHistoryEntry, MoveHistoryManager, UndoResult
from vaultorg.organizer.naming import UniqueNameResolver
from vaultorg.organizer.vault import Document, DocumentStore, Notifier
from vaultorg.rules.engine import Rule, RuleEngine
from vaultorg.rules.patterns import ExclusionMatcher
from vaultorg.rules.substitution import prepare_destination


@dataclass(frozen=True)
class SkippedEntry:
    """A document the bulk run could not move."""

    path: str
    reason: str


@dataclass
class ReorganizeResult:
    """Summary of a bulk run."""

    moved: int = 0
    skipped: List[SkippedEntry] = field(default_factory=list)


@dataclass
class PlannedMove:
    """What a bulk run would do with one document."""

    path: str
    rule: Rule
    new_path: Optional[str] = None
    error: Optional[InvalidPathError] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def would_move(self) -> bool:
        return self.error is None and self.new_path is not None and self.new_path != self.path


class ReorganizationScheduler:
    """Moves documents according to the first matching rule."""

    def __init__(
        self,
        store: DocumentStore,
        rules: RuleEngine,
        exclusions: ExclusionMatcher,
        history: MoveHistoryManager,
        notifier: Notifier,
        batch_size: int = PerformanceConfig.BULK_OPERATION_BATCH_SIZE,
        batch_delay: float = PerformanceConfig.BULK_OPERATION_BATCH_DELAY_MS / 1000,
        resolver: Optional[UniqueNameResolver] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize scheduler.

        Args:
            store: Vault storage
            rules: Rule engine holding the ordered rules
            exclusions: Exclusion patterns
            history: Move history
            notifier: Sink for user-visible notices
            batch_size: Documents per batch in bulk runs
            batch_delay: Seconds to sleep after each batch
            resolver: Unique name resolver; one over ``store.exists`` by default
            sleep: Coroutine used for the inter-batch pause

        Raises:
            ValueError: If batch_size is not positive or batch_delay is negative
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive: {batch_size}")
        if batch_delay < 0:
            raise ValueError(f"batch_delay must not be negative: {batch_delay}")

        self.store = store
        self.rules = rules
        self.exclusions = exclusions
        self.history = history
        self.notifier = notifier
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.resolver = resolver or UniqueNameResolver(store.exists)
        self._sleep = sleep
        self._guard = asyncio.Lock()
        self.logger = get_logger()

    @property
    def busy(self) -> bool:
        """True while an operation holds the guard."""
        return self._guard.locked()

    def _batches(self, documents: List[Document]):
        for start in range(0, len(documents), self.batch_size):
            yield documents[start : start + self.batch_size]

    def _markdown_documents(self) -> List[Document]:
        return [document for document in self.store.list_documents() if document.is_markdown]

    async def _apply(self, document: Document) -> Optional[MoveHistoryEntry]:
        """Run the pipeline for one document.

        Returns:
            The recorded history entry, or None when nothing was moved

        Raises:
            VaultOrganizerError: When the document should have moved but could not
        """
        if not document.is_markdown:
            return None

        if self.exclusions.is_excluded(document.path):
            self.logger.debug("Document excluded", path=document.path)
            return None

        metadata = self.store.get_metadata(document)
        rule = self.rules.match(metadata)
        if rule is None:
            return None

        destination = prepare_destination(rule.destination, document.name, metadata)
        for warning in destination.warnings:
            self.logger.debug("Destination warning", path=document.path, warning=warning)

        if not destination.valid:
            error = destination.error
            if rule.debug and error and error.reason == PathErrorReason.EMPTY:
                self.notifier.notify(
                    f"DEBUG: {document.basename} would not be moved because destination "
                    f"is empty in {self.store.name}."
                )
                return None
            raise destination.error

        if destination.full_path == document.path:
            return None

        if rule.debug:
            self.notifier.notify(
                f"DEBUG: {document.basename} would be moved to "
                f"{self.store.name}/{destination.destination_folder}"
            )
            return None

        try:
            await self.store.ensure_folder(destination.destination_folder)
        except Exception as e:
            raise categorize_error(e, destination.destination_folder, "create-folder") from e

        target = self.resolver.resolve(destination.full_path, exclude_path=document.path)
        try:
            await self.store.rename(document, target)
        except Exception as e:
            raise categorize_error(e, document.path, "move", target) from e

        entry = MoveHistoryEntry.create(document.name, document.path, target, rule.key)
        self.history.record(entry)
        self.logger.info("Moved document", source=document.path, destination=target, rule=rule.key)
        return entry

    async def on_document_changed(self, document: Document) -> Optional[MoveHistoryEntry]:
        """Apply rules to a document that was created, modified or renamed.

        Failures become a notice; nothing is raised.

        Returns:
            The recorded history entry when the document moved
        """
        async with self._guard:
            try:
                return await self._apply(document)
            except Exception as e:
                error = categorize_error(e, document.path, "move")
                self.logger.warning("Document not moved", path=document.path, error=error.message)
                self.notifier.notify(error.user_message())
                return None

    async def reorganize_all(self) -> ReorganizeResult:
        """Apply rules to every markdown document in the vault.

        Documents are processed one at a time in batches of batch_size,
        with a pause after each batch. A failure skips that document only.

        Returns:
            ReorganizeResult with the move count and skipped documents
        """
        async with self._guard:
            documents = self._markdown_documents()
            result = ReorganizeResult()

            with self.logger.add_context(operation="reorganize"):
                self.logger.info("Reorganizing vault", documents=len(documents))
                for batch in self._batches(documents):
                    for document in batch:
                        try:
                            if await self._apply(document) is not None:
                                result.moved += 1
                        except Exception as e:
                            error = categorize_error(e, document.path, "move")
                            result.skipped.append(SkippedEntry(document.path, error.user_message()))
                            self.logger.warning(
                                "Skipped document", path=document.path, error=error.message
                            )
                    await self._sleep(self.batch_delay)

                self.logger.info(
                    "Reorganization finished", moved=result.moved, skipped=len(result.skipped)
                )

            return result

    def plan(self, document: Document) -> Optional[PlannedMove]:
        """Compute what the pipeline would do with a document, without moving it.

        Returns:
            PlannedMove for a document governed by a rule, or None
        """
        if not document.is_markdown or self.exclusions.is_excluded(document.path):
            return None

        metadata = self.store.get_metadata(document)
        rule = self.rules.match(metadata)
        if rule is None:
            return None

        destination = prepare_destination(rule.destination, document.name, metadata)
        if not destination.valid:
            return PlannedMove(
                document.path, rule, error=destination.error, warnings=destination.warnings
            )

        new_path = destination.full_path
        if new_path != document.path:
            new_path = self.resolver.resolve(new_path, exclude_path=document.path)
        return PlannedMove(document.path, rule, new_path=new_path, warnings=destination.warnings)

    async def preview_all(self) -> List[PlannedMove]:
        """Dry run of reorganize_all.

        Returns:
            Planned moves and invalid destinations; documents that would
            stay where they are are left out
        """
        planned: List[PlannedMove] = []
        for batch in self._batches(self._markdown_documents()):
            for document in batch:
                move = self.plan(document)
                if move is not None and (move.error is not None or move.would_move):
                    planned.append(move)
            await self._sleep(self.batch_delay)
        return planned

    async def undo_last_move(self) -> UndoResult:
        """Reverse the most recent move and report the outcome as a notice."""
        async with self._guard:
            result = await self.history.undo_last(self.store)
            self.notifier.notify(result.message)
            return result

    async def clear_history(self) -> None:
        """Forget every recorded move."""
        async with self._guard:
            self.history.clear()
