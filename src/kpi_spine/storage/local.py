"""Local filesystem storage backend."""

import hashlib
import mimetypes
import os
import tempfile
from datetime import datetime
from pathlib import Path

import structlog

from kpi_spine.storage.base import FileInfo, Storage

logger = structlog.get_logger()


class LocalStorage(Storage):
    """
    Local filesystem storage backend.

    Objects are files under a base directory. Writes go to a temporary file
    that is renamed over the target, so readers never see a partial document.
    """

    def __init__(self, base_path: str | Path = "./data"):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.debug("local_storage_initialized", base_path=str(self.base_path))

    def _resolve_path(self, path: str) -> Path:
        """Resolve a storage path to absolute filesystem path."""
        clean_path = Path(path).as_posix().lstrip("/")
        full_path = self.base_path / clean_path

        # Keep every object inside base_path
        try:
            full_path.resolve().relative_to(self.base_path)
        except ValueError:
            raise ValueError(f"Invalid path: {path} (outside base directory)")

        return full_path

    def write(self, path: str, content: bytes | str, content_type: str | None = None) -> FileInfo:
        """Write content to local filesystem."""
        full_path = self._resolve_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        if isinstance(content, str):
            content = content.encode("utf-8")

        fd, tmp_name = tempfile.mkstemp(dir=full_path.parent, prefix=f".{full_path.name}.")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
            os.replace(tmp_name, full_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        if content_type is None:
            content_type, _ = mimetypes.guess_type(path)

        logger.info("file_written", path=path, size=len(content))

        return FileInfo(
            path=path,
            size_bytes=len(content),
            content_type=content_type,
            last_modified=datetime.now(),
            checksum=hashlib.sha256(content).hexdigest(),
        )

    def read(self, path: str) -> bytes:
        """Read content from local filesystem."""
        full_path = self._resolve_path(path)

        if not full_path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        return full_path.read_bytes()

    def exists(self, path: str) -> bool:
        full_path = self._resolve_path(path)
        return full_path.is_file()
