"""Logging utilities.

We use Python's standard `logging` module with a compact structured format,
matching what the report renderer shows in the chunk messages.

- Console output always (stderr, so rendered documents don't capture it as results).
- Optional `<log_dir>/repro_report.log` file for batch renders.
"""

from __future__ import annotations
import logging
import os
from typing import Optional

FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"
DATEFMT = "%Y-%m-%dT%H:%M:%S"


def setup_logging(log_dir: Optional[str] = None, level: str = "INFO") -> None:
    """
    Setup logging configuration for the `repro_report` logger tree.

    Args:
        log_dir: Directory for a log file (if None, console only)
        level: Logging level name
    """
    root = logging.getLogger("repro_report")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    fmt = logging.Formatter(fmt=FORMAT, datefmt=DATEFMT)

    # Avoid duplicate handlers when a setup chunk is re-run interactively
    for h in list(root.handlers):
        if getattr(h, "_repro_report", False):
            root.removeHandler(h)
            h.close()

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch._repro_report = True  # type: ignore[attr-defined]
    root.addHandler(ch)

    # File
    if log_dir is not None:
        os.makedirs(log_dir, exist_ok=True)
        fh = logging.FileHandler(os.path.join(log_dir, "repro_report.log"), encoding="utf-8")
        fh.setFormatter(fmt)
        fh._repro_report = True  # type: ignore[attr-defined]
        root.addHandler(fh)
