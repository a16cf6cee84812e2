from __future__ import annotations

import hashlib
import os
import sys
from dataclasses import dataclass

from ovm_host.errors import ConfigurationError, ProvisioningError
from ovm_host.sshkeys import key_paths
from ovm_host.target import asset_name

from .config import BootstrapConfig

MANIFEST_NAME = "versions.json"
DATA_DISK_NAME = "data.img"
SCRATCH_DISK_NAME = "tmp.img"

# Suffixes joined to the process name inside the socket directory.
SOCKET_SUFFIXES = {
    "forward": "-podman.sock",
    "network": "-vfkit-network.sock",
    "initrd_vsock": "-initrd-vsock.sock",
    "ready": "-ready.sock",
    "restful": "-restful.sock",
    "time_sync": "-sync-time.sock",
    "ssh_auth": "-ssh-auth.sock",
}


@dataclass(frozen=True)
class BasicFields:
    name: str
    cpus: int
    memory_bytes: int
    cli_mode: bool
    bind_pid: int
    event_socket_path: str
    power_save_mode: bool
    kernel_debug: bool
    executable_path: str
    lock_file: str


@dataclass(frozen=True)
class SocketPaths:
    socket_path: str
    forward_socket_path: str
    socket_network_path: str
    socket_initrd_vsock_path: str
    socket_ready_path: str
    restful_socket_path: str
    time_sync_socket_path: str
    ssh_auth_socket_path: str

    @property
    def endpoint(self) -> str:
        return "unix://" + self.socket_network_path

    def all(self) -> tuple[str, ...]:
        return (
            self.forward_socket_path,
            self.socket_network_path,
            self.socket_initrd_vsock_path,
            self.socket_ready_path,
            self.restful_socket_path,
            self.time_sync_socket_path,
            self.ssh_auth_socket_path,
        )


@dataclass(frozen=True)
class SshPaths:
    ssh_key_path: str
    private_key_path: str
    public_key_path: str


@dataclass(frozen=True)
class TargetPaths:
    target_path: str
    versions_path: str
    kernel_path: str
    initrd_path: str
    rootfs_path: str
    disk_data_path: str
    disk_tmp_path: str


def absolute(path: str) -> str:
    if not path:
        raise ConfigurationError("empty path")
    return os.path.abspath(os.path.expanduser(path))


def default_executable() -> str:
    argv0 = sys.argv[0] if sys.argv else ""
    if argv0 and os.path.isfile(argv0):
        return argv0
    return sys.executable


def lock_file_name(executable_path: str, name: str, scratch_dir: str) -> str:
    """Lock file for one executable path; same path, same lock file."""
    digest = hashlib.md5(executable_path.encode("utf-8"), usedforsecurity=False).hexdigest()
    return os.path.join(scratch_dir, f"{digest}-{name}.pid")


def resolve_executable(path: str) -> str:
    try:
        return os.path.realpath(path, strict=True).lower()
    except OSError as exc:
        raise ConfigurationError(f"resolve executable path {path}: {exc}") from exc


def derive_basic(cfg: BootstrapConfig) -> BasicFields:
    scratch_dir = absolute(cfg.scratch_dir)
    try:
        os.makedirs(scratch_dir, 0o755, exist_ok=True)
    except OSError as exc:
        raise ProvisioningError(f"create scratch dir {scratch_dir}: {exc}") from exc

    executable = resolve_executable(cfg.executable_path or default_executable())
    return BasicFields(
        name=cfg.name,
        cpus=cfg.cpus,
        memory_bytes=cfg.memory_mib * 1024 * 1024,
        cli_mode=cfg.cli_mode,
        bind_pid=cfg.bind_pid,
        event_socket_path=cfg.event_socket_path,
        power_save_mode=cfg.power_save_mode,
        kernel_debug=cfg.kernel_debug,
        executable_path=executable,
        lock_file=lock_file_name(executable, cfg.name, scratch_dir),
    )


def derive_socket_paths(socket_dir: str, name: str) -> SocketPaths:
    p = absolute(socket_dir)
    joined = {key: os.path.join(p, name + suffix) for key, suffix in SOCKET_SUFFIXES.items()}
    return SocketPaths(
        socket_path=p,
        forward_socket_path=joined["forward"],
        socket_network_path=joined["network"],
        socket_initrd_vsock_path=joined["initrd_vsock"],
        socket_ready_path=joined["ready"],
        restful_socket_path=joined["restful"],
        time_sync_socket_path=joined["time_sync"],
        ssh_auth_socket_path=joined["ssh_auth"],
    )


def derive_ssh_paths(ssh_key_dir: str, name: str) -> SshPaths:
    p = absolute(ssh_key_dir)
    keys = key_paths(p, name)
    return SshPaths(ssh_key_path=p, private_key_path=keys.private_path, public_key_path=keys.public_path)


def derive_target_paths(target_dir: str, kernel_src: str, initrd_src: str, rootfs_src: str) -> TargetPaths:
    p = absolute(target_dir)
    names = [asset_name(src) for src in (kernel_src, initrd_src, rootfs_src)]
    if not all(names):
        raise ConfigurationError("kernel, initrd and rootfs sources must name a file")
    return TargetPaths(
        target_path=p,
        versions_path=os.path.join(p, MANIFEST_NAME),
        kernel_path=os.path.join(p, names[0]),
        initrd_path=os.path.join(p, names[1]),
        rootfs_path=os.path.join(p, names[2]),
        disk_data_path=os.path.join(p, DATA_DISK_NAME),
        disk_tmp_path=os.path.join(p, SCRATCH_DISK_NAME),
    )


def ensure_log_dir(log_dir: str) -> str:
    p = absolute(log_dir)
    try:
        os.makedirs(p, 0o755, exist_ok=True)
    except OSError as exc:
        raise ProvisioningError(f"create log dir {p}: {exc}") from exc
    return p
