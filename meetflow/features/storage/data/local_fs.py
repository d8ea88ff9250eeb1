import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from meetflow.core.config.settings import settings
from ..domain.interfaces import IFileStorage, IHasher
from .hasher import SHA256Hasher

logger = logging.getLogger(__name__)


class LocalFileStorage(IFileStorage):
    """
    Content-addressed storage on the local disk.
    Files live at: {root}/{first_2_chars_of_hash}/{full_hash}{ext}
    The reference is that relative path, so identical uploads share one file.
    """

    def __init__(self, root: Optional[Path] = None, hasher: Optional[IHasher] = None):
        self.root = Path(root) if root is not None else settings.ARTIFACTS_DIR
        self.hasher = hasher or SHA256Hasher()
        self.root.mkdir(parents=True, exist_ok=True)

    def store(self, data: bytes, suffix: str = "") -> str:
        file_hash = self.hasher.hash_bytes(data)
        ref = self._ref_for(file_hash, suffix)
        destination = self.local_path(ref)

        if destination.exists():
            # Same content already stored (re-upload), nothing to write.
            return ref

        destination.parent.mkdir(parents=True, exist_ok=True)
        # Write to a temp name then rename, so a crash never leaves a half-written artifact.
        tmp_path = destination.with_name(destination.name + ".part")
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, destination)

        logger.info(f"Stored {len(data)} bytes as {ref}")
        return ref

    def store_file(self, path: Path) -> str:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        file_hash = self.hasher.hash_file(path)
        ref = self._ref_for(file_hash, path.suffix.lower())
        destination = self.local_path(ref)

        if destination.exists():
            path.unlink()
            return ref

        destination.parent.mkdir(parents=True, exist_ok=True)
        # Copy + Unlink is safer across different partitions/drives
        shutil.copy2(str(path), str(destination))
        path.unlink()

        logger.info(f"Moved upload {path.name} into storage as {ref}")
        return ref

    def fetch(self, ref: str) -> bytes:
        path = self.local_path(ref)
        if not path.is_file():
            raise FileNotFoundError(f"No stored file for reference {ref}")
        return path.read_bytes()

    def exists(self, ref: str) -> bool:
        try:
            return self.local_path(ref).is_file()
        except ValueError:
            return False

    def local_path(self, ref: str) -> Path:
        path = (self.root / ref).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Reference escapes the storage root: {ref}")
        return path

    def delete(self, ref: str) -> bool:
        path = self.local_path(ref)
        if not path.is_file():
            return False
        path.unlink()
        return True

    @staticmethod
    def _ref_for(file_hash: str, suffix: str) -> str:
        suffix = suffix.lower()
        if suffix and not suffix.startswith("."):
            suffix = f".{suffix}"
        return f"{file_hash[:2]}/{file_hash}{suffix}"
