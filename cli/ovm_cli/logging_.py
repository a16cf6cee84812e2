from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s: %(message)s"
_LIBRARY_LOGGERS = ("httpx", "httpcore")


def setup_logging(verbose: bool) -> None:
    """Root logger for the ovm-bootstrap script; thread names tell parallel steps apart."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)
