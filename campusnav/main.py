"""Application entry point for the campus navigation API.

Run locally:
    uvicorn campusnav.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import sys

import uvicorn
from loguru import logger

from campusnav.api import create_app
from campusnav.config import Settings


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


settings = Settings.from_env()
_configure_logging(settings.log_level)
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run("campusnav.main:app", host=settings.api_host, port=settings.api_port, reload=settings.api_reload)
