"""Entrypoint for running the API locally."""
from __future__ import annotations

import logging

from .app import create_app
from .config import get_settings


def run() -> None:
    """Convenience wrapper used by ``python -m grid_inventory.main``."""

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = create_app(settings)
    app.run(
        host=settings.host,
        port=settings.port,
        debug=settings.environment == "development",
    )


if __name__ == "__main__":
    run()
