from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional


def setup_logger(name: str = "velotrack", log_dir: str | Path | None = "results", level: int | str = logging.INFO) -> logging.Logger:
    """
    Console handler is installed once; the run.log file handler follows log_dir,
    so each run directory gets its own log.
    """
    logger = logging.getLogger(name)
    numeric_level = getattr(logging, str(level).upper(), level)
    logger.setLevel(numeric_level)

    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Prevent duplicate console handlers across re-runs.
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(fmt)
        logger.addHandler(ch)
    for h in logger.handlers:
        h.setLevel(numeric_level)

    log_path = Path(log_dir) / "run.log" if log_dir is not None else None
    for h in list(logger.handlers):
        if isinstance(h, logging.FileHandler) and (log_path is None or h.baseFilename != os.path.abspath(log_path)):
            logger.removeHandler(h)
            h.close()

    if log_path is not None and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setLevel(numeric_level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Module loggers live under the "velotrack" hierarchy and inherit its handlers."""
    if not name:
        return logging.getLogger("velotrack")
    if name == "velotrack" or name.startswith("velotrack."):
        return logging.getLogger(name)
    return logging.getLogger(f"velotrack.{name}")
