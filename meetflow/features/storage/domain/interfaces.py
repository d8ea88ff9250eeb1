from abc import ABC, abstractmethod
from pathlib import Path


class IHasher(ABC):
    @abstractmethod
    def hash_bytes(self, data: bytes) -> str:
        """Calculates the SHA256 hash of an in-memory payload."""
        pass

    @abstractmethod
    def hash_file(self, file_path: Path) -> str:
        """Calculates the SHA256 hash of a file."""
        pass


class IFileStorage(ABC):
    """
    File Storage collaborator.
    References are opaque strings; only the storage knows how to resolve them.
    """

    @abstractmethod
    def store(self, data: bytes, suffix: str = "") -> str:
        """Persists the payload durably and returns its reference."""
        pass

    @abstractmethod
    def store_file(self, path: Path) -> str:
        """Moves an uploaded temp file into storage and returns its reference."""
        pass

    @abstractmethod
    def fetch(self, ref: str) -> bytes:
        """Returns the payload. Raises FileNotFoundError for unknown references."""
        pass

    @abstractmethod
    def exists(self, ref: str) -> bool:
        pass

    @abstractmethod
    def local_path(self, ref: str) -> Path:
        """Filesystem path for providers that only accept paths (e.g. Whisper)."""
        pass

    @abstractmethod
    def delete(self, ref: str) -> bool:
        pass
