import logging, sys, os
from typing import Optional

# httpx/httpcore log every request at INFO; the markets proxy makes one per page
NOISY_LOGGERS = ("httpx", "httpcore")


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv("LOG_LEVEL") or "").upper()
    if name in logging.getLevelNamesMapping():
        return logging.getLevelNamesMapping()[name]
    return logging.INFO if os.getenv("ENV", "dev") != "dev" else logging.DEBUG


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configures the `studiq` logger once; later calls only adjust the level."""
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("studiq")
    logger.setLevel(_resolve_level(level))
    if logger.handlers:
        return logger
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    logger.addHandler(handler)
    return logger
