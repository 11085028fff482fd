"""Logging configuration."""

from __future__ import annotations

import logging

NOISY_LOGGERS = ("httpx", "httpcore", "websockets", "twilio.http_client")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # Per-request chatter from the HTTP and socket clients drowns out call logs.
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
