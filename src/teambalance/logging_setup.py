from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _BoardHandlerMixin:
    """Marks handlers installed by configure_logging so reconfiguration replaces them."""


class _BoardStreamHandler(_BoardHandlerMixin, logging.StreamHandler):
    pass


class _BoardFileHandler(_BoardHandlerMixin, logging.FileHandler):
    pass


# PUBLIC_INTERFACE
def configure_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Configure the 'teambalance' logger hierarchy with:
    - a stderr handler at the requested level
    - an optional file handler capturing everything (DEBUG and up)

    Safe to call more than once: handlers installed by a previous call are
    removed first, handlers owned by other code are left alone.
    """
    logger = logging.getLogger("teambalance")
    logger.setLevel(logging.DEBUG)

    for h in list(logger.handlers):
        if isinstance(h, _BoardHandlerMixin):
            logger.removeHandler(h)
            h.close()

    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    console_level = logging.getLevelName(level) if isinstance(level, str) else level
    if not isinstance(console_level, int):
        console_level = logging.INFO

    ch = _BoardStreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = _BoardFileHandler(str(path), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    # Records still propagate to root so test harnesses can capture them.
    logger.propagate = True
