import logging
import os
from pathlib import Path

__all__ = ["logger"]

logger = logging.getLogger("focuswatch")
if not logger.handlers:
    logger.setLevel(logging.INFO)
    _log_dir = Path(os.getenv("FOCUSWATCH_LOG_DIR", "./log"))
    _log_dir.mkdir(parents=True, exist_ok=True)
    _fh = logging.FileHandler(_log_dir / "monitor.log", encoding="utf-8")
    _fh.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(_fh)
