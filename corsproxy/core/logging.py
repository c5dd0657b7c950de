"""Logging configuration for the CORS proxy.

Module loggers are named ``CORS-Proxy.<Layer>``. httpx logs every upstream
request at INFO; the proxy already logs forwarded calls itself, so httpx and
httpcore are held at WARNING.
"""
import logging
import os
from typing import Optional

SERVICE_NAME = "CORS-Proxy"

_QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging from ``level`` or the LOG_LEVEL environment variable."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    logging.getLogger(SERVICE_NAME).setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
