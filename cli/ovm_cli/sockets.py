from __future__ import annotations

import logging
import os
import shutil

from ovm_host.errors import ProvisioningError

from .paths import SocketPaths, derive_socket_paths

logger = logging.getLogger(__name__)


def _remove_tree(path: str) -> None:
    # stale sockets and fifos are unlinked, never opened
    if os.path.islink(path) or not os.path.isdir(path):
        os.unlink(path)
        return
    shutil.rmtree(path)


def reset_socket_dir(socket_dir: str, name: str) -> SocketPaths:
    """Wipe and recreate the socket directory so no stale socket survives a restart."""
    paths = derive_socket_paths(socket_dir, name)
    try:
        if os.path.lexists(paths.socket_path):
            logger.debug("removing stale socket dir %s", paths.socket_path)
            _remove_tree(paths.socket_path)
        os.makedirs(paths.socket_path, 0o755, exist_ok=True)
    except OSError as exc:
        raise ProvisioningError(f"reset socket dir {paths.socket_path}: {exc}") from exc
    return paths
