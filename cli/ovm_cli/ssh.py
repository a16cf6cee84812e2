from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from ovm_host.errors import CredentialError, OvmError
from ovm_host.sshkeys import generate_keypair

from .paths import derive_ssh_paths

logger = logging.getLogger(__name__)

KeyGenerator = Callable[[str, str], object]


@dataclass(frozen=True)
class SshCredentials:
    ssh_key_path: str
    private_key_path: str
    public_key_path: str
    public_key: str


def _stat_both(private_path: str, public_path: str) -> BaseException | None:
    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(os.stat, p) for p in (private_path, public_path)]
    for fut in futures:
        exc = fut.exception()
        if exc is not None:
            return exc
    return None


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.debug("ignoring failure to remove %s: %s", path, exc)


def ensure_keypair(
        directory: str,
        name: str,
        *,
        generate: KeyGenerator = generate_keypair,
) -> SshCredentials:
    """Make sure ``<directory>/<name>`` and its ``.pub`` exist and return the public key.

    A keypair with either half missing or unreadable is discarded and a new
    one generated in its place.
    """
    paths = derive_ssh_paths(directory, name)

    try:
        os.makedirs(paths.ssh_key_path, 0o700, exist_ok=True)
    except OSError as exc:
        raise CredentialError(f"create ssh dir {paths.ssh_key_path}: {exc}") from exc

    missing = _stat_both(paths.private_key_path, paths.public_key_path)
    if missing is not None:
        logger.info("regenerating ssh keypair in %s (%s)", paths.ssh_key_path, missing)
        _remove_quietly(paths.private_key_path)
        _remove_quietly(paths.public_key_path)
        try:
            generate(paths.ssh_key_path, name)
        except OvmError:
            raise
        except Exception as exc:
            raise CredentialError(f"generate ssh keypair: {exc}") from exc

    try:
        with open(paths.public_key_path, "r", encoding="utf-8") as f:
            public_key = f.read().strip()
    except OSError as exc:
        raise CredentialError(f"read ssh public key {paths.public_key_path}: {exc}") from exc

    return SshCredentials(
        ssh_key_path=paths.ssh_key_path,
        private_key_path=paths.private_key_path,
        public_key_path=paths.public_key_path,
        public_key=public_key,
    )
