"""Logging setup for the service and CLI."""

import logging

FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_handler: logging.Handler | None = None


def configure_logging(level: str = "INFO") -> None:
    global _handler

    root = logging.getLogger()
    root.setLevel(level.upper())

    # Re-running (tests, reload) must not stack handlers
    if _handler is not None and _handler in root.handlers:
        return

    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(FORMAT))
    root.addHandler(_handler)


__all__ = ("configure_logging",)
