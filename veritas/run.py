"""Programmatic uvicorn entry point for Veritas.

Reads host and port from the loaded config (127.0.0.1:3001 by default) and
starts uvicorn with bounded concurrency.

Usage:
    python -m veritas.run
    veritas                    # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from veritas.config import load_config

# Image analysis holds whole images in memory; cap concurrent connections.
UVICORN_LIMIT_CONCURRENCY: int = 50

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the Veritas API server.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()

    uvicorn.run(
        "veritas.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
