"""Shared pytest fixtures for vaultorg tests."""
import logging
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Mapping, Optional

import pytest

from vaultorg.infrastructure import logger as logger_module
from vaultorg.infrastructure.config_manager import Settings
from vaultorg.infrastructure.logger import Logger, LogLevel
from vaultorg.organizer.vault import Document


class FakeStore:
    """In-memory DocumentStore.

    Files are paths mapped to frontmatter. Folders are tracked separately
    so folder creation can be asserted. ``fail_rename`` and
    ``fail_ensure_folder`` inject exceptions.
    """

    def __init__(self, files: Optional[Dict[str, Optional[Dict[str, Any]]]] = None, name="Vault"):
        self._name = name
        self.files: Dict[str, Optional[Dict[str, Any]]] = dict(files or {})
        self.folders = set()
        self.renames: List[tuple] = []
        self.fail_rename: Optional[BaseException] = None
        self.fail_ensure_folder: Optional[BaseException] = None
        for path in self.files:
            parent = str(PurePosixPath(path).parent)
            if parent != ".":
                self.folders.add(parent)

    @property
    def name(self) -> str:
        return self._name

    def get_metadata(self, document: Document) -> Optional[Mapping[str, Any]]:
        return self.files.get(document.path)

    def exists(self, path: str) -> bool:
        return path in self.files or path in self.folders

    async def ensure_folder(self, path: str) -> None:
        if self.fail_ensure_folder is not None:
            raise self.fail_ensure_folder
        self.folders.add(path)

    async def rename(self, document: Document, new_path: str) -> None:
        if self.fail_rename is not None:
            raise self.fail_rename
        if new_path in self.files:
            raise FileExistsError(17, "File already exists", new_path)
        self.files[new_path] = self.files.pop(document.path)
        self.renames.append((document.path, new_path))

    def list_documents(self) -> List[Document]:
        return [Document(path) for path in sorted(self.files)]

    def get_document(self, path: str) -> Optional[Document]:
        return Document(path) if path in self.files else None


class RecordingNotifier:
    """Notifier that keeps every notice."""

    def __init__(self):
        self.messages: List[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


class MemorySettingsStore:
    """SettingsStore kept in memory; counts saves."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.saved: List[Settings] = []

    async def load(self) -> Settings:
        return Settings.from_dict(self.settings.to_dict())

    async def save(self, settings: Settings) -> None:
        self.settings = settings
        self.saved.append(settings)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records each pause."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


class ListHandler(logging.Handler):
    """Logging handler that keeps formatted messages."""

    def __init__(self):
        super().__init__()
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    @property
    def messages(self) -> List[str]:
        return [record.getMessage() for record in self.records]


@pytest.fixture
def fake_store() -> FakeStore:
    """Empty in-memory vault."""
    return FakeStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def log_handler() -> ListHandler:
    """Install a global logger that records into a list."""
    handler = ListHandler()
    logger_module.set_global_logger(
        Logger(name="vaultorg", level=LogLevel.DEBUG, handlers=[handler])
    )
    return handler


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Reset the global logger and keep VAULTORG_* variables out of tests."""
    import os

    for key in list(os.environ):
        if key.startswith("VAULTORG_"):
            monkeypatch.delenv(key)
    logger_module._global_logger = None
    yield
    logger_module._global_logger = None


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    """Create a vault directory with a few notes."""
    vault = tmp_path / "Notes"
    vault.mkdir()

    (vault / "Inbox").mkdir()
    (vault / "Inbox" / "meeting.md").write_text(
        "---\ntype: meeting\nproject: Website\n---\n# Kickoff\n", encoding="utf-8"
    )
    (vault / "Inbox" / "idea.md").write_text(
        "---\ntags:\n  - idea\n  - later\n---\nSomething\n", encoding="utf-8"
    )
    (vault / "plain.md").write_text("No frontmatter here\n", encoding="utf-8")
    (vault / "image.png").write_bytes(b"\x89PNG")

    (vault / ".obsidian").mkdir()
    (vault / ".obsidian" / "workspace.md").write_text("---\ntype: meeting\n---\n")

    return vault
