from __future__ import annotations

import logging
import socket

from .errors import PortExhaustedError

logger = logging.getLogger(__name__)

DEFAULT_BIND_HOST = "127.0.0.1"
DEFAULT_ATTEMPTS = 100
MAX_PORT = 65535


def _port_free(host: str, port: int) -> bool:
    # No SO_REUSEADDR: a listener on the port must make the bind fail.
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_usable_port(
        preferred: int,
        *,
        host: str = DEFAULT_BIND_HOST,
        attempts: int = DEFAULT_ATTEMPTS,
) -> int:
    if not 1 <= preferred <= MAX_PORT:
        raise ValueError(f"preferred port out of range: {preferred}")
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    last = min(preferred + attempts - 1, MAX_PORT)
    for port in range(preferred, last + 1):
        if _port_free(host, port):
            if port != preferred:
                logger.debug("port %s busy, using %s", preferred, port)
            return port
    raise PortExhaustedError(preferred, last)
