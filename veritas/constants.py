"""Shared constants for Veritas.

All size limits, accepted media types and image-processing parameters used
across modules are defined here. No magic numbers in other modules.
"""

# ─── Request Size Limits ──────────────────────────────────────────────────────

# Maximum accepted request body. Base64 inflates images by ~33%, so a 10 MB
# body carries at most ~7.5 MB of raw image data through the JSON endpoints.
# HTTP 413 is returned before any handler runs.
MAX_REQUEST_BODY_BYTES: int = 10 * 1024 * 1024  # 10 MB

# Maximum raw image size for multipart uploads and image-URL downloads.
MAX_IMAGE_BYTES: int = 10 * 1024 * 1024  # 10 MB

# Timeout for downloading an image from a caller-supplied URL (/api/detect).
IMAGE_DOWNLOAD_TIMEOUT_S: float = 10.0

# ─── Accepted Media Types ─────────────────────────────────────────────────────

ALLOWED_IMAGE_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
    }
)

# ─── Image Normalisation ──────────────────────────────────────────────────────

# Uploaded images are fitted inside this box (never enlarged) before storage.
MAX_IMAGE_DIMENSION: int = 1600

# JPEG quality used when re-encoding uploads.
JPEG_QUALITY: int = 80

# JPEG quality used as the reference recompression for error level analysis.
ELA_QUALITY: int = 90

# ELA mean-brightness score (0..1) above which the image counts as one
# forensic flag in the confidence formula.
ELA_FLAG_THRESHOLD: float = 0.15

# ─── Storage ──────────────────────────────────────────────────────────────────

# Cache-Control max-age for stored blobs and served uploads (seconds).
BLOB_CACHE_MAX_AGE: int = 3600

# Local uploads are deleted after this many seconds.
LOCAL_UPLOAD_TTL_S: int = 3600

# How often the local-store pruner wakes up (seconds).
LOCAL_PRUNE_INTERVAL_S: float = 300.0

# Header attached to every served upload so search engines do not index it.
X_ROBOTS_TAG: str = "noindex, nofollow, noarchive, nosnippet"

# ─── Outbound HTTP ────────────────────────────────────────────────────────────

POOL_MAX_CONNECTIONS: int = 50
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
OUTBOUND_TIMEOUT_S: float = 30.0

# Browser-like headers for the Google searchbyimage upload. Google serves a
# different (non-redirecting) page to obvious non-browser clients.
BROWSER_USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# ─── Confidence Scoring ───────────────────────────────────────────────────────

MODEL_WEIGHT: float = 0.40
FORENSIC_WEIGHT: float = 0.35
REVERSE_WEIGHT: float = 0.25

# Forensic flags / reverse matches at which their component reaches zero.
FORENSIC_FLAG_CEILING: int = 10
REVERSE_MATCH_CEILING: int = 20

# Model score used when no model is configured or the model call fails.
DEFAULT_FALLBACK_MODEL_SCORE: float = 0.68
