from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"


class ConsoleHandler(logging.StreamHandler):
    """Root stream handler installed by configure_logging."""

    def __init__(self, stream=None):
        super().__init__(stream)
        self.setFormatter(logging.Formatter(_FORMAT))


def configure_logging(level: str = "INFO") -> None:
    """Install one stream handler on the root logger (idempotent)."""
    root = logging.getLogger()
    lvl = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(lvl, int):
        lvl = logging.INFO
    root.setLevel(lvl)
    if not any(isinstance(h, ConsoleHandler) for h in root.handlers):
        root.addHandler(ConsoleHandler())
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
