import hashlib
from pathlib import Path
from typing import Iterable
from ..domain.interfaces import IHasher

CHUNK_SIZE = 65536


class SHA256Hasher(IHasher):
    """Content address for stored recordings."""

    def hash_bytes(self, data: bytes) -> str:
        return self._digest([data])

    def hash_file(self, file_path: Path) -> str:
        # Streamed in 64kb chunks: meeting recordings can be several GB.
        with open(file_path, "rb") as f:
            return self._digest(iter(lambda: f.read(CHUNK_SIZE), b""))

    @staticmethod
    def _digest(chunks: Iterable[bytes]) -> str:
        sha256_hash = hashlib.sha256()
        for chunk in chunks:
            sha256_hash.update(chunk)
        return sha256_hash.hexdigest()
