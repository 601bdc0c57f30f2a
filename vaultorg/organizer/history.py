#!/usr/bin/env python3
"""Bounded move history with single-step undo.

Every successful move is appended as a MoveHistoryEntry. The log keeps at
most ``max_size`` entries, evicting the oldest first. Undo reverses the
most recently appended entry and removes it.

Example:
    >>> history = MoveHistoryManager(max_size=50)
    >>> history.record(MoveHistoryEntry.create("a.md", "Inbox/a.md", "Notes/a.md", "type"))
    >>> result = await history.undo_last(vault)
    >>> result.message
    'Undone: Moved a.md back to Inbox/a.md'
"""

import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, Iterable, List, Optional

from vaultorg.core.constants import HistoryDefaults, SettingsKey
from vaultorg.core.errors import categorize_error
from vaultorg.infrastructure.logger import get_logger


@dataclass(frozen=True)
class MoveHistoryEntry:
    """One completed move.

    Attributes:
        timestamp: Milliseconds since the epoch
        file_name: Name of the moved file
        from_path: Path before the move
        to_path: Path after the move
        rule_key: Frontmatter key of the rule that caused the move
    """

    timestamp: int
    file_name: str
    from_path: str
    to_path: str
    rule_key: str

    @classmethod
    def create(
        cls,
        file_name: str,
        from_path: str,
        to_path: str,
        rule_key: str,
        clock: Callable[[], float] = time.time,
    ) -> "MoveHistoryEntry":
        return cls(int(clock() * 1000), file_name, from_path, to_path, rule_key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            SettingsKey.HISTORY_TIMESTAMP: self.timestamp,
            SettingsKey.HISTORY_FILE_NAME: self.file_name,
            SettingsKey.HISTORY_FROM_PATH: self.from_path,
            SettingsKey.HISTORY_TO_PATH: self.to_path,
            SettingsKey.HISTORY_RULE_KEY: self.rule_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MoveHistoryEntry":
        return cls(
            timestamp=int(data[SettingsKey.HISTORY_TIMESTAMP]),
            file_name=data[SettingsKey.HISTORY_FILE_NAME],
            from_path=data[SettingsKey.HISTORY_FROM_PATH],
            to_path=data[SettingsKey.HISTORY_TO_PATH],
            rule_key=data.get(SettingsKey.HISTORY_RULE_KEY) or "",
        )


@dataclass(frozen=True)
class UndoResult:
    """Outcome of an undo request."""

    success: bool
    message: str


class MoveHistoryManager:
    """Ordered, bounded log of moves.

    ``on_change`` is called after every mutation so the owner can persist
    the log.
    """

    def __init__(
        self,
        entries: Optional[Iterable[MoveHistoryEntry]] = None,
        max_size: int = HistoryDefaults.MAX_HISTORY_SIZE,
        on_change: Optional[Callable[[], None]] = None,
    ):
        """Initialize history.

        Args:
            entries: Existing entries, oldest first
            max_size: Maximum number of entries kept
            on_change: Callback invoked after each mutation

        Raises:
            ValueError: If max_size is not positive
        """
        if max_size < 1:
            raise ValueError(f"max_size must be positive: {max_size}")
        self._entries: List[MoveHistoryEntry] = list(entries or [])
        self._max_size = max_size
        self._on_change = on_change
        self.logger = get_logger()
        self._trim()

    @property
    def entries(self) -> List[MoveHistoryEntry]:
        """Entries, oldest first."""
        return list(self._entries)

    @property
    def max_size(self) -> int:
        return self._max_size

    def set_max_size(self, max_size: int) -> None:
        """Change the bound, evicting oldest entries if needed."""
        if max_size < 1:
            raise ValueError(f"max_size must be positive: {max_size}")
        self._max_size = max_size
        if self._trim():
            self._changed()

    def reset(self, entries: Iterable[MoveHistoryEntry], max_size: Optional[int] = None) -> None:
        """Replace the log with loaded entries without signalling a change."""
        if max_size is not None:
            if max_size < 1:
                raise ValueError(f"max_size must be positive: {max_size}")
            self._max_size = max_size
        self._entries = list(entries)
        self._trim()

    def latest(self) -> Optional[MoveHistoryEntry]:
        """Most recently appended entry, or None."""
        return self._entries[-1] if self._entries else None

    def _trim(self) -> bool:
        overflow = len(self._entries) - self._max_size
        if overflow > 0:
            del self._entries[:overflow]
            return True
        return False

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def record(self, entry: MoveHistoryEntry) -> None:
        """Append an entry, evicting the oldest beyond the bound."""
        self._entries.append(entry)
        self._trim()
        self.logger.debug(
            "Recorded move", source=entry.from_path, destination=entry.to_path, size=len(self)
        )
        self._changed()

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()
        self.logger.info("Move history cleared")
        self._changed()

    def _drop_latest(self) -> None:
        self._entries.pop()
        self._changed()

    async def undo_last(self, store) -> UndoResult:
        """Move the most recently moved document back.

        Failures are reported in the result, never raised. The entry is
        removed on success, and also when the moved file has vanished,
        since it can never be undone.

        Args:
            store: DocumentStore holding the document

        Returns:
            UndoResult
        """
        entry = self.latest()
        if entry is None:
            return UndoResult(False, "No moves to undo.")

        with self.logger.add_context(operation="undo", source=entry.to_path):
            document = store.get_document(entry.to_path)
            if document is None:
                self._drop_latest()
                self.logger.warning("Undo target is gone; dropping history entry")
                return UndoResult(False, f"Cannot undo: File no longer exists at {entry.to_path}")

            if store.exists(entry.from_path):
                return UndoResult(False, f"Cannot undo: A file already exists at {entry.from_path}")

            try:
                parent = str(PurePosixPath(entry.from_path).parent)
                if parent not in (".", ""):
                    await store.ensure_folder(parent)
                await store.rename(document, entry.from_path)
            except Exception as e:
                error = categorize_error(e, entry.to_path, "undo-move", entry.from_path)
                self.logger.error("Undo failed", error=error.message)
                return UndoResult(False, f"Failed to undo move: {error.user_message()}")

            self._drop_latest()
            self.logger.info("Undid move", destination=entry.from_path)
            return UndoResult(True, f"Undone: Moved {entry.file_name} back to {entry.from_path}")

    def to_dicts(self) -> List[Dict[str, Any]]:
        """Serialize entries, oldest first."""
        return [entry.to_dict() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
