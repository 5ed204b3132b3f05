# -*- coding: utf-8 -*-
from __future__ import annotations
import logging, logging.handlers
from pathlib import Path

LOG_FILENAME = "presta_reports.log"

def setup_logging(settings) -> Path:
    """Configure rotating file logging under LOG_DIR/presta_reports.log (+ console)."""
    log_dir = Path(settings.LOG_DIR).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME
    level = logging.getLevelName(str(getattr(settings, "LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    logger = logging.getLogger()  # root
    logger.setLevel(level)
    # avoid duplicate handlers; the file is only opened for a new one
    handler = next(
        (h for h in logger.handlers
         if isinstance(h, logging.handlers.RotatingFileHandler) and h.baseFilename.endswith(LOG_FILENAME)),
        None,
    )
    if handler is None:
        handler = logging.handlers.RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    handler.setLevel(level)
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        logger.addHandler(console)

    # also wire uvicorn loggers (if present)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        lg = logging.getLogger(name)
        lg.setLevel(level)
        if not any(getattr(h, 'baseFilename', '').endswith(LOG_FILENAME) for h in lg.handlers if hasattr(h, 'baseFilename')):
            lg.addHandler(handler)

    return log_path
