"""Collision-free destination names.

When a destination is occupied, a numeric suffix is appended to the stem
(``Note.md`` -> ``Note 1.md`` -> ``Note 2.md`` ...). After a fixed number
of probes a millisecond timestamp is used instead.
"""
import time
from pathlib import PurePosixPath
from typing import Callable, Optional, Tuple

from vaultorg.core.constants import PerformanceConfig
from vaultorg.infrastructure.logger import get_logger


def split_name(path: str) -> Tuple[str, str, str]:
    """Split a path into (folder, stem, extension without dot)."""
    posix = PurePosixPath(path)
    folder = "" if str(posix.parent) == "." else str(posix.parent)
    name = posix.name
    if "." in name[1:]:
        stem, extension = name.rsplit(".", 1)
        return folder, stem, extension
    return folder, name, ""


def join_name(folder: str, stem: str, extension: str) -> str:
    name = f"{stem}.{extension}" if extension else stem
    return f"{folder}/{name}" if folder else name


class UniqueNameResolver:
    """Finds a free path for a document at its destination."""

    def __init__(
        self,
        exists: Callable[[str], bool],
        max_attempts: int = PerformanceConfig.MAX_UNIQUE_FILENAME_ATTEMPTS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize resolver.

        Args:
            exists: Existence check for a vault-relative path
            max_attempts: Numbered candidates to probe before the timestamp fallback
            clock: Seconds-since-epoch source for the fallback name
        """
        self._exists = exists
        self.max_attempts = max_attempts
        self._clock = clock
        self.logger = get_logger()

    def _taken(self, path: str, exclude_path: Optional[str]) -> bool:
        if exclude_path is not None and path == exclude_path:
            return False
        return self._exists(path)

    def resolve(self, desired_path: str, exclude_path: Optional[str] = None) -> str:
        """Return desired_path if free, otherwise the first free variant.

        Args:
            desired_path: Where the document should go
            exclude_path: A path that does not count as taken, normally the
                document's own current path

        Returns:
            A path that does not exist yet; the timestamp fallback is not
            probed
        """
        if not self._taken(desired_path, exclude_path):
            return desired_path

        folder, stem, extension = split_name(desired_path)
        for counter in range(1, self.max_attempts + 1):
            candidate = join_name(folder, f"{stem} {counter}", extension)
            if not self._taken(candidate, exclude_path):
                return candidate

        fallback = join_name(folder, f"{stem}-{int(self._clock() * 1000)}", extension)
        self.logger.warning(
            "Unique name attempts exhausted, using timestamp",
            path=desired_path,
            attempts=self.max_attempts,
            fallback=fallback,
        )
        return fallback
