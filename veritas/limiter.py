"""Shared rate limiter for Veritas upload and outbound-search endpoints.

Uses slowapi (Starlette-compatible rate limiting), keyed on the client IP.
Each limited call stores an image or triggers an outbound request to a
third-party search engine, so the caps are per client and per minute.

The Limiter instance is created here and shared between:
  - veritas/api/*.py  (route decorators)
  - veritas/main.py   (app.state.limiter + SlowAPIMiddleware registration)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

# Endpoints that write to blob storage.
UPLOAD_RATE_LIMIT = "30/minute"

# Endpoints that call Google / TinEye / Bing on the caller's behalf.
OUTBOUND_SEARCH_RATE_LIMIT = "20/minute"
