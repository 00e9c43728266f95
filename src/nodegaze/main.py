"""Application entry point for the NodeGaze server."""

from __future__ import annotations

import os

import uvicorn

from nodegaze.config.settings import AppConfig


def main() -> None:
    """Start the NodeGaze server."""
    config = AppConfig()
    reload = os.getenv("NODEGAZE_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "nodegaze.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level=config.server.log_level,
    )


if __name__ == "__main__":
    main()
