"""Identifier helpers for Veritas.

  - generate_request_id() — ULID used as the X-Request-ID header and log key
  - generate_blob_filename() — unique, sanitised name for a stored upload

ULIDs come from the ``python-ulid`` library; do not hand-roll them.
"""

from __future__ import annotations

import time
import uuid
from typing import Optional

from ulid import ULID


def generate_request_id() -> str:
    """Return a new 26-character ULID string.

    ULIDs sort by creation time, so request IDs in logs line up with
    arrival order.
    """
    return str(ULID())


def generate_blob_filename(extension: str = "jpg", now_ms: Optional[int] = None) -> str:
    """Build a blob pathname of the form ``img_<unix-ms>_<8 hex>.<ext>``.

    The caller's original filename is never used: it is user-controlled and
    may contain path separators or non-ASCII characters.

    Args:
        extension: File extension without the dot. Processed uploads are
                   always JPEG, so the default is ``"jpg"``.
        now_ms:    Timestamp override (milliseconds since epoch) for tests.

    Returns:
        e.g. ``"img_1718000000000_3f2a9c1b.jpg"``
    """
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    unique = uuid.uuid4().hex[:8]
    ext = extension.lstrip(".").lower() or "jpg"
    return f"img_{timestamp}_{unique}.{ext}"
