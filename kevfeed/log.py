"""Logging setup shared by the web app, the CLI and the refresh trigger."""

import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"

_configured = False


def setup_logging(level: str = "INFO", *, force: bool = False) -> None:
    """Configure root logging once.

    Args:
        level: Level name such as ``INFO`` or ``DEBUG``.
        force: Reconfigure even if logging was already set up.
    """
    global _configured
    if _configured and not force:
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    # uvicorn's own access log duplicates the request middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a named logger, configuring logging on first use."""
    setup_logging()
    return logging.getLogger(name)
