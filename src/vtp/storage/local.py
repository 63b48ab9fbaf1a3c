"""Local filesystem storage backend."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from vtp.domain.exceptions import StorageError

logger = logging.getLogger(__name__)


class LocalStorage:
    """Storage backed by a directory tree.

    Keys map to paths under root. Keys that would resolve outside root
    (absolute paths, ".." components) are rejected. Writes go to a temp
    file in the destination directory and are renamed into place, so a
    reader never sees a partially written object.
    """

    def __init__(self, root: Path) -> None:
        self._root = root.expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Resolve a key to a filesystem path under root.

        Raises:
            StorageError: If the key is empty or escapes root.
        """
        pure = PurePosixPath(key.replace("\\", "/"))
        if not key.strip("/") or pure.is_absolute() or ".." in pure.parts:
            raise StorageError(f"Invalid storage key: {key!r}")
        path = (self._root / Path(*pure.parts)).resolve()
        if not path.is_relative_to(self._root):
            raise StorageError(f"Storage key escapes root: {key!r}")
        return path

    def read(self, location: str) -> BinaryIO:
        path = self.path_for(location)
        try:
            return path.open("rb")
        except OSError as e:
            raise StorageError(f"Cannot read {location}: {e}") from e

    def write(self, key: str, stream: BinaryIO) -> None:
        path = self.path_for(key)
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
            with os.fdopen(fd, "wb") as tmp:
                shutil.copyfileobj(stream, tmp)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise StorageError(f"Cannot write {key}: {e}") from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def delete(self, prefix: str) -> int:
        path = self.path_for(prefix)
        if not path.exists():
            return 0
        try:
            if path.is_file():
                path.unlink()
                return 1
            count = sum(1 for p in path.rglob("*") if p.is_file())
            shutil.rmtree(path)
        except OSError as e:
            raise StorageError(f"Cannot delete {prefix}: {e}") from e
        logger.debug("Deleted %d objects under %s", count, prefix)
        return count
