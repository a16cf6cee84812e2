from __future__ import annotations

import os

from .errors import ProvisioningError

TIB = 1024 ** 4
GIB = 1024 ** 3


def create_sparse_file(path: str, size_bytes: int) -> None:
    """Create ``path`` with a logical size of ``size_bytes`` and no data blocks."""
    if size_bytes <= 0:
        raise ValueError("size_bytes must be positive")
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
    except OSError as exc:
        raise ProvisioningError(f"create sparse file {path}: {exc}") from exc
    try:
        os.ftruncate(fd, size_bytes)
    except OSError as exc:
        os.close(fd)
        os.unlink(path)
        raise ProvisioningError(f"allocate {size_bytes} bytes for {path}: {exc}") from exc
    os.close(fd)
