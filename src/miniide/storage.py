"""Flat directory store for saved source files.

Files are keyed by their sanitized name: only the final path component of
the requested name is used, so ``../../etc/passwd.cpp`` is stored as
``passwd.cpp`` inside the base directory.  Only source extensions on the
allow-list are accepted.  Saving over an existing name replaces it.

Writing and deleting require a valid session token; listing and reading are
public.  There is no locking: concurrent saves of the same name race and
the last write wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .errors import InvalidExtension, InvalidFilename, MissingFields, StoredFileNotFound
from .sessions import SessionStore

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".cpp", ".py", ".c", ".h", ".hpp"})


def sanitize_filename(filename: str) -> str:
    """Reduce ``filename`` to its final path component."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if not name or name in {".", ".."} or "\x00" in name:
        raise InvalidFilename(filename)
    return name


def has_allowed_extension(filename: str) -> bool:
    return Path(filename).suffix.lower() in ALLOWED_EXTENSIONS


@dataclass(frozen=True)
class StoredFile:
    name: str
    size: int
    modified: datetime
    path: Path
    content: Optional[str] = None


class FileStore:
    """Store source files on the local filesystem."""

    def __init__(self, base_dir: str | Path, sessions: SessionStore) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.sessions = sessions

    def _path_for(self, filename: str) -> Path:
        return self.base_dir / sanitize_filename(filename)

    @staticmethod
    def _describe(path: Path, content: Optional[str] = None) -> StoredFile:
        stat = path.stat()
        return StoredFile(
            name=path.name,
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            path=path,
            content=content,
        )

    def save(self, filename: Optional[str], content: Optional[str], token: Optional[str]) -> StoredFile:
        self.sessions.require(token)
        if not filename or not content:
            raise MissingFields()
        if not has_allowed_extension(filename):
            raise InvalidExtension(filename)
        dest = self._path_for(filename)
        dest.write_text(content, encoding="utf-8")
        logger.info("File saved: %s", dest.name)
        return self._describe(dest)

    def list(self) -> List[StoredFile]:
        if not self.base_dir.exists():
            return []
        files = []
        for path in sorted(self.base_dir.iterdir()):
            if path.is_file() and has_allowed_extension(path.name):
                files.append(self._describe(path))
        return files

    def read(self, filename: str) -> StoredFile:
        path = self._path_for(filename)
        if not path.is_file() or not has_allowed_extension(path.name):
            raise StoredFileNotFound(path.name)
        return self._describe(path, content=path.read_text(encoding="utf-8"))

    def delete(self, filename: str, token: Optional[str]) -> None:
        self.sessions.require(token)
        path = self._path_for(filename)
        if not path.is_file() or not has_allowed_extension(path.name):
            raise StoredFileNotFound(path.name)
        path.unlink()
        logger.info("File deleted: %s", path.name)
