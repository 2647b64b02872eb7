"""Base storage interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass
class FileInfo:
    """Information about a stored object."""

    path: str
    size_bytes: int
    content_type: str | None
    last_modified: datetime | None
    checksum: str | None = None


class Storage(ABC):
    """Abstract base class for object storage backends.

    Documents are read and replaced whole; a write either lands completely or
    not at all.
    """

    @abstractmethod
    def write(self, path: str, content: bytes | str, content_type: str | None = None) -> FileInfo:
        """
        Create or replace an object.

        Args:
            path: Object path (e.g., "metrics.json")
            content: Object content (bytes or string)
            content_type: Optional MIME type

        Returns:
            FileInfo with details about the stored object
        """
        ...

    @abstractmethod
    def read(self, path: str) -> bytes:
        """
        Read an object.

        Raises:
            FileNotFoundError: If the object doesn't exist
        """
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check if an object exists."""
        ...

    def read_text(self, path: str, encoding: str = "utf-8") -> str:
        """Read content as text."""
        return self.read(path).decode(encoding)

    def write_text(
        self, path: str, content: str, encoding: str = "utf-8", content_type: str = "text/plain"
    ) -> FileInfo:
        """Write text content."""
        return self.write(path, content.encode(encoding), content_type=content_type)
