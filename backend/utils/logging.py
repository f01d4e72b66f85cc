"""Root logger setup."""

import logging

from backend.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging():
    """Configure the root logger. Safe to call more than once."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # uvicorn installs its own handlers; keep access logs quieter than ours
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
