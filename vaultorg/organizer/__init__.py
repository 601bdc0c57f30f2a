"""
vaultorg Organizer - Moving notes according to rules.

Public API:
-----------

Vault access:
    Document: A file in the vault, identified by its vault-relative path
    DocumentStore: Protocol for vault storage
    LocalVault: DocumentStore over a directory on disk

Moving:
    ReorganizationScheduler: Single-document and bulk runs, dry-run preview
    UniqueNameResolver: Collision-free target names

History:
    MoveHistoryManager: Bounded move log with undo
    MoveHistoryEntry: One completed move

Usage Example:
--------------

    from vaultorg.organizer import LocalVault, ReorganizationScheduler

    vault = LocalVault("~/Notes")
    scheduler = ReorganizationScheduler(vault, engine, exclusions, history, notifier)
    result = await scheduler.reorganize_all()
"""

from vaultorg.organizer.debounce import Debouncer
from vaultorg.organizer.history import MoveHistoryEntry, MoveHistoryManager, UndoResult
from vaultorg.organizer.naming import UniqueNameResolver
from vaultorg.organizer.report import render_history, render_preview, render_result
from vaultorg.organizer.scheduler import (
    PlannedMove,
    ReorganizationScheduler,
    ReorganizeResult,
    SkippedEntry,
)
from vaultorg.organizer.vault import (
    Document,
    DocumentStore,
    LocalVault,
    LoggingNotifier,
    Notifier,
    SettingsStore,
    parse_frontmatter,
)

__all__ = [
    # Vault access
    "Document",
    "DocumentStore",
    "SettingsStore",
    "Notifier",
    "LoggingNotifier",
    "LocalVault",
    "parse_frontmatter",
    # Moving
    "ReorganizationScheduler",
    "ReorganizeResult",
    "SkippedEntry",
    "PlannedMove",
    "UniqueNameResolver",
    "Debouncer",
    # History
    "MoveHistoryEntry",
    "MoveHistoryManager",
    "UndoResult",
    # Reports
    "render_preview",
    "render_result",
    "render_history",
]
