# medtasks/logging_setup.py

from __future__ import annotations

import logging
import sys


def setup_logging(level: str | int = logging.INFO, *, sql_echo: bool = False) -> None:
    """
    Configure root logging once at startup:
    - one stderr handler with a fixed format
    - SQLAlchemy engine logs only when SQL echo is requested
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)
    logging.captureWarnings(True)
