from __future__ import annotations

import os
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric import ed25519
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, PublicFormat

from .errors import CredentialError

KEY_COMMENT_SUFFIX = "@ovm"


@dataclass(frozen=True)
class KeyPaths:
    private_path: str
    public_path: str


def key_paths(directory: str, base_name: str) -> KeyPaths:
    private_path = os.path.join(directory, base_name)
    return KeyPaths(private_path=private_path, public_path=private_path + ".pub")


def _write_file(path: str, data: bytes, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    os.chmod(path, mode)


def generate_keypair(directory: str, base_name: str) -> KeyPaths:
    """Write a fresh Ed25519 keypair as ``<directory>/<base_name>`` and ``.pub``.

    The private key uses the OpenSSH PEM container, the public key the
    single-line ``authorized_keys`` format.
    """
    paths = key_paths(directory, base_name)
    priv = ed25519.Ed25519PrivateKey.generate()

    priv_bytes = priv.private_bytes(Encoding.PEM, PrivateFormat.OpenSSH, NoEncryption())
    pub_bytes = priv.public_key().public_bytes(Encoding.OpenSSH, PublicFormat.OpenSSH)
    comment = f" {base_name}{KEY_COMMENT_SUFFIX}".encode("utf-8")

    try:
        _write_file(paths.private_path, priv_bytes, 0o600)
        _write_file(paths.public_path, pub_bytes + comment + b"\n", 0o644)
    except OSError as exc:
        raise CredentialError(f"write ssh keypair {paths.private_path}: {exc}") from exc
    return paths
