"""LocalBlobStore — uploads kept on local disk and served by this app.

Files are written to ``directory`` and exposed at ``<base>/uploads/<name>``.
They are temporary: prune_expired() deletes anything older than the TTL and
the lifespan runs it periodically (see main.py).

The public URL only works for external search engines when this service is
reachable from the internet at ``public_base_url`` (or the request's own
base URL when that is not configured).
"""

from __future__ import annotations

import asyncio
import os
import re
import time
from pathlib import Path
from typing import Optional

from veritas.constants import LOCAL_UPLOAD_TTL_S
from veritas.errors import StorageError
from veritas.storage.protocol import StoredBlob
from veritas.utils.logger import get_logger

logger = get_logger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


class LocalBlobStore:
    """Disk-backed blob store with time-based expiry."""

    name = "local"

    def __init__(
        self,
        directory: str | os.PathLike[str],
        public_base_url: Optional[str] = None,
        ttl_seconds: int = LOCAL_UPLOAD_TTL_S,
    ) -> None:
        self.directory = Path(directory).expanduser()
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.ttl_seconds = ttl_seconds

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def initialize(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info("local_blob_store_ready", directory=str(self.directory))

    # ── BlobStore protocol ────────────────────────────────────────────────────

    async def put(
        self,
        pathname: str,
        data: bytes,
        content_type: str,
        *,
        base_url: Optional[str] = None,
    ) -> StoredBlob:
        target = self.path_for(pathname)
        if target is None:
            raise StorageError(f"Invalid blob pathname: {pathname!r}")

        public_base = self.public_base_url or (base_url.rstrip("/") if base_url else None)
        if not public_base:
            raise StorageError("No public base URL available for local uploads")

        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as exc:
            logger.error("local_blob_write_failed", pathname=pathname, error=str(exc))
            raise StorageError("Could not save uploaded file") from exc

        url = f"{public_base}/uploads/{pathname}"
        logger.info("local_blob_stored", pathname=pathname, size=len(data))
        return StoredBlob(
            url=url,
            download_url=url,
            pathname=pathname,
            size=len(data),
            content_type=content_type,
        )

    async def health_check(self) -> bool:
        return self.directory.is_dir() and os.access(self.directory, os.W_OK)

    async def close(self) -> None:
        return None

    # ── Local-only API ────────────────────────────────────────────────────────

    def path_for(self, pathname: str) -> Optional[Path]:
        """Resolve pathname inside the upload directory, or None if unsafe."""
        if not _SAFE_NAME.match(pathname) or ".." in pathname:
            return None
        return self.directory / pathname

    def open_existing(self, pathname: str) -> Optional[Path]:
        """Return the path of a stored, unexpired file, or None."""
        path = self.path_for(pathname)
        if path is None or not path.is_file():
            return None
        if self._is_expired(path, time.time()):
            return None
        return path

    def prune_expired(self, now: Optional[float] = None) -> int:
        """Delete files older than the TTL. Returns the number deleted."""
        now = time.time() if now is None else now
        if not self.directory.is_dir():
            return 0

        deleted = 0
        for path in self.directory.iterdir():
            if not path.is_file() or not self._is_expired(path, now):
                continue
            try:
                path.unlink()
                deleted += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("local_blob_prune_failed", path=str(path), error=str(exc))

        if deleted:
            logger.info("local_blobs_pruned", deleted=deleted)
        return deleted

    def _is_expired(self, path: Path, now: float) -> bool:
        try:
            return now - path.stat().st_mtime > self.ttl_seconds
        except FileNotFoundError:
            return True

    def _write(self, target: Path, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".part")
        tmp.write_bytes(data)
        os.replace(tmp, target)
