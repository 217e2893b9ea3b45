"""Scratch directory handling: startup purge and per-request temporary files."""
import itertools
import logging
import shutil
import uuid
from pathlib import Path

from fastapi import UploadFile

from videolab.conversion.models import UploadedFile
from videolab.errors import UploadTooLarge

logger = logging.getLogger("videolab.scratch")

CHUNK_SIZE = 1024 * 1024

_counter = itertools.count(1)


def prepare_scratch_dir(root: Path) -> int:
    """Create the scratch directory if missing and remove everything in it.

    Returns the number of entries removed. Entries that cannot be removed are
    logged and left behind; this never raises for a single entry.
    """
    root.mkdir(parents=True, exist_ok=True)
    removed = 0
    for entry in root.iterdir():
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
        except OSError as e:
            logger.warning("Could not remove stale scratch entry %s: %s", entry, e)
    if removed:
        logger.info("Purged %s stale entries from %s", removed, root)
    return removed


def safe_name(filename: str) -> str:
    """Basename of a client-supplied filename, never empty."""
    name = Path((filename or "").replace("\\", "/")).name
    return name or "upload"


class ScratchFiles:
    """Scratch paths owned by a single request.

    Every path handed out by path_for() is remembered so discard_all() can
    remove whatever the request left behind, whichever way it ended.
    """

    def __init__(self, root: Path):
        self.root = root
        self._paths: list[Path] = []

    def path_for(self, prefix: str, name: str) -> Path:
        token = f"{next(_counter)}{uuid.uuid4().hex[:8]}"
        path = self.root / f"{prefix}_{token}_{safe_name(name)}"
        self._paths.append(path)
        return path

    async def store_upload(self, file: UploadFile, max_bytes: int) -> UploadedFile:
        original_name = file.filename or "upload"
        dest = self.path_for("upload", original_name)
        total = 0
        try:
            with open(dest, "wb") as f:
                while chunk := await file.read(CHUNK_SIZE):
                    total += len(chunk)
                    if total > max_bytes:
                        raise UploadTooLarge(max_bytes)
                    f.write(chunk)
        except BaseException:
            self.discard(dest)
            raise
        logger.debug("Stored upload %s (%s bytes) at %s", original_name, total, dest.name)
        return UploadedFile(path=dest, original_name=original_name, size=total)

    def discard(self, path: Path) -> None:
        """Remove a scratch file. A file that is already gone is not an error."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)

    def discard_all(self) -> None:
        for path in self._paths:
            self.discard(path)
