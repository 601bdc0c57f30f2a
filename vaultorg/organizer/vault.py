#!/usr/bin/env python3
"""Vault collaborators: documents, storage protocols and a local adapter.

The organizer never touches the filesystem directly. It talks to:
- DocumentStore: metadata lookup, existence checks, folder creation, rename
- SettingsStore: loading and saving user settings
- Notifier: user-visible notices

LocalVault implements DocumentStore over a directory of markdown files
with YAML frontmatter.

Example:
    >>> vault = LocalVault("~/Notes")
    >>> for document in vault.list_documents():
    ...     print(document.path, vault.get_metadata(document))
"""

import asyncio
import errno
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, Union

import yaml

from vaultorg.core.constants import MARKDOWN_EXTENSION
from vaultorg.core.errors import InvalidPathError, PathErrorReason
from vaultorg.infrastructure.config_manager import Settings
from vaultorg.infrastructure.logger import get_logger

FRONTMATTER_DELIMITER = "---"


@dataclass(frozen=True)
class Document:
    """A document in the vault, addressed by its vault-relative path."""

    path: str

    @property
    def name(self) -> str:
        """File name including extension."""
        return PurePosixPath(self.path).name

    @property
    def basename(self) -> str:
        """File name without extension."""
        name = self.name
        if "." in name[1:]:
            return name.rsplit(".", 1)[0]
        return name

    @property
    def extension(self) -> str:
        """Extension without the dot, or an empty string."""
        name = self.name
        if "." in name[1:]:
            return name.rsplit(".", 1)[1]
        return ""

    @property
    def folder(self) -> str:
        """Parent folder path, empty at the vault root."""
        parent = str(PurePosixPath(self.path).parent)
        return "" if parent == "." else parent

    @property
    def is_markdown(self) -> bool:
        return self.extension.lower() == MARKDOWN_EXTENSION


class DocumentStore(Protocol):
    """Storage operations the organizer needs from a vault."""

    @property
    def name(self) -> str:
        ...

    def get_metadata(self, document: Document) -> Optional[Mapping[str, Any]]:
        ...

    def exists(self, path: str) -> bool:
        ...

    async def ensure_folder(self, path: str) -> None:
        ...

    async def rename(self, document: Document, new_path: str) -> None:
        ...

    def list_documents(self) -> List[Document]:
        ...

    def get_document(self, path: str) -> Optional[Document]:
        ...


class SettingsStore(Protocol):
    """Persistence for user settings."""

    async def load(self) -> Settings:
        ...

    async def save(self, settings: Settings) -> None:
        ...


class Notifier(Protocol):
    """Delivers user-visible notices."""

    def notify(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that logs each notice and keeps it for later display."""

    def __init__(self):
        self.messages: List[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)
        get_logger().warning(message)


def parse_frontmatter(text: str) -> Optional[Dict[str, Any]]:
    """Extract the YAML frontmatter block at the top of a document.

    Args:
        text: Full document text

    Returns:
        The frontmatter mapping, or None when absent or not a mapping

    Raises:
        yaml.YAMLError: If the block is not valid YAML
    """
    lines = text.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return None

    for index in range(1, len(lines)):
        if lines[index].strip() == FRONTMATTER_DELIMITER:
            data = yaml.safe_load("\n".join(lines[1:index]))
            return data if isinstance(data, dict) else None

    return None


class LocalVault:
    """DocumentStore over a local directory.

    Hidden directories (``.obsidian``, ``.git``, ``.trash``) are not
    scanned. Frontmatter is cached per file and re-read when the file's
    modification time or size changes.
    """

    def __init__(self, root: Union[str, Path]):
        """Initialize local vault.

        Args:
            root: Vault root directory

        Raises:
            NotADirectoryError: If root is not a directory
        """
        self.root = Path(root).expanduser().resolve()
        if not self.root.is_dir():
            raise NotADirectoryError(errno.ENOTDIR, "Vault root is not a directory", str(root))
        self._metadata_cache: Dict[str, Tuple[Tuple[int, int], Optional[Dict[str, Any]]]] = {}
        self.logger = get_logger()

    @property
    def name(self) -> str:
        """Vault name, taken from the root folder."""
        return self.root.name

    def _absolute(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise InvalidPathError(path, PathErrorReason.TRAVERSAL, "Path escapes the vault root")
        return target

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def list_documents(self) -> List[Document]:
        """List markdown documents, sorted by path."""
        documents = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in filenames:
                document = Document(self._relative(Path(dirpath) / filename))
                if document.is_markdown:
                    documents.append(document)
        return sorted(documents, key=lambda d: d.path)

    def get_document(self, path: str) -> Optional[Document]:
        """Get a document by path, or None if there is no such file."""
        if not self._absolute(path).is_file():
            return None
        return Document(path)

    def exists(self, path: str) -> bool:
        return self._absolute(path).exists()

    def get_metadata(self, document: Document) -> Optional[Mapping[str, Any]]:
        """Read a document's frontmatter.

        Unreadable files and invalid YAML yield None and a warning.
        """
        target = self._absolute(document.path)
        try:
            stat = target.stat()
        except FileNotFoundError:
            self._metadata_cache.pop(document.path, None)
            return None

        signature = (stat.st_mtime_ns, stat.st_size)
        cached = self._metadata_cache.get(document.path)
        if cached and cached[0] == signature:
            return cached[1]

        try:
            metadata = parse_frontmatter(target.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            self.logger.warning("Could not read frontmatter", path=document.path, error=str(e))
            metadata = None

        self._metadata_cache[document.path] = (signature, metadata)
        return metadata

    async def ensure_folder(self, path: str) -> None:
        """Create a folder and any missing parents, one segment at a time."""
        segments = [segment for segment in path.split("/") if segment and segment != "."]
        current = ""
        for segment in segments:
            current = f"{current}/{segment}" if current else segment
            target = self._absolute(current)
            if target.is_dir():
                continue
            await asyncio.to_thread(target.mkdir)
            self.logger.debug("Created folder", path=current)

    async def rename(self, document: Document, new_path: str) -> None:
        """Move a document, refusing to overwrite an existing file.

        Raises:
            FileExistsError: If new_path is occupied
            FileNotFoundError: If the document is gone
        """
        source = self._absolute(document.path)
        target = self._absolute(new_path)
        if target.exists():
            raise FileExistsError(errno.EEXIST, "File already exists", new_path)

        await asyncio.to_thread(os.rename, source, target)
        cached = self._metadata_cache.pop(document.path, None)
        if cached:
            self._metadata_cache[new_path] = cached

    def snapshot(self) -> Dict[str, int]:
        """Map each markdown document path to its modification time."""
        mtimes = {}
        for document in self.list_documents():
            try:
                mtimes[document.path] = self._absolute(document.path).stat().st_mtime_ns
            except FileNotFoundError:
                continue
        return mtimes

    def changed_since(self, previous: Mapping[str, int]) -> Tuple[List[Document], Dict[str, int]]:
        """Find documents created or modified since a snapshot.

        Returns:
            Tuple of (changed documents, new snapshot)
        """
        current = self.snapshot()
        changed = [Document(path) for path, mtime in current.items() if previous.get(path) != mtime]
        return changed, current
