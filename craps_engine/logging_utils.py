import logging
import sys
from typing import Optional

_VERBOSITY = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


def setup_logging(verbose_count: int = 0, logger_name: Optional[str] = None) -> logging.Logger:
    """
    Configure the root (or a named) logger from a -v count.

    -v  -> INFO (phase changes, settlements, claims)
    -vv -> DEBUG (every slot decision)

    Calling it again only adjusts the level; the handler is attached once.
    """
    level = _VERBOSITY.get(verbose_count, logging.DEBUG)
    logger = logging.getLogger(logger_name or "")
    logger.setLevel(level)

    if not any(getattr(h, "_craps_engine_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(stream=sys.stderr)
        handler._craps_engine_handler = True
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        ))
        logger.addHandler(handler)

    if level > logging.DEBUG:
        logging.getLogger("matplotlib").setLevel(logging.WARNING)

    return logger
