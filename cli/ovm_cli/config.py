from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any

import tomli_w
from platformdirs import user_config_dir, user_data_dir, user_log_dir

from ovm_host.disk import TIB
from ovm_host.errors import ConfigurationError
from ovm_host.target import DEFAULT_DATA_DISK_BYTES

APP_NAME = "ovm"
CONFIG_FILENAME = "bootstrap.toml"
ENV_CONFIG_PATH = "OVM_BOOTSTRAP_CONFIG"

DEFAULT_NAME = "ovm"
DEFAULT_SSH_PORT = 2233
DEFAULT_SCRATCH_DIR = "/tmp/ovm"
DEFAULT_SCRATCH_DISK_BYTES = 1 * TIB

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass(frozen=True)
class BootstrapConfig:
    socket_dir: str
    ssh_key_dir: str
    log_dir: str
    target_dir: str
    kernel_src: str
    initrd_src: str
    rootfs_src: str
    name: str = DEFAULT_NAME
    cpus: int = 2
    memory_mib: int = 2048
    cli_mode: bool = False
    bind_pid: int = 0
    event_socket_path: str = ""
    power_save_mode: bool = False
    kernel_debug: bool = False
    versions: Mapping[str, str] = field(default_factory=dict)
    ssh_port: int = DEFAULT_SSH_PORT
    scratch_dir: str = DEFAULT_SCRATCH_DIR
    scratch_disk_bytes: int = DEFAULT_SCRATCH_DISK_BYTES
    data_disk_bytes: int = DEFAULT_DATA_DISK_BYTES
    executable_path: str | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "versions", MappingProxyType(dict(self.versions)))


def config_path() -> str:
    env_value = os.getenv(ENV_CONFIG_PATH, "").strip()
    if env_value:
        return env_value
    return f"{user_config_dir(APP_NAME)}/{CONFIG_FILENAME}"


def default_config() -> BootstrapConfig:
    data = user_data_dir(APP_NAME)
    return BootstrapConfig(
        socket_dir=os.path.join(data, "sockets"),
        ssh_key_dir=os.path.join(data, "ssh"),
        log_dir=user_log_dir(APP_NAME),
        target_dir=os.path.join(data, "target"),
        kernel_src=os.path.join(data, "assets", "bzImage"),
        initrd_src=os.path.join(data, "assets", "initrd.gz"),
        rootfs_src=os.path.join(data, "assets", "rootfs.erofs"),
    )


def validate_config(cfg: BootstrapConfig) -> BootstrapConfig:
    if not _NAME_RE.match(cfg.name or ""):
        raise ConfigurationError(f"invalid name {cfg.name!r}: use letters, digits, '.', '_' or '-'")
    if cfg.cpus < 1:
        raise ConfigurationError("cpus must be >= 1")
    if cfg.memory_mib < 1:
        raise ConfigurationError("memory_mib must be >= 1")
    for key in ("kernel_src", "initrd_src", "rootfs_src", "socket_dir", "ssh_key_dir", "log_dir", "target_dir"):
        if not str(getattr(cfg, key) or "").strip():
            raise ConfigurationError(f"{key} must not be empty")
    if not 1 <= cfg.ssh_port <= 65535:
        raise ConfigurationError(f"ssh_port out of range: {cfg.ssh_port}")
    if cfg.scratch_disk_bytes <= 0 or cfg.data_disk_bytes <= 0:
        raise ConfigurationError("disk sizes must be positive")
    return cfg


def to_toml(cfg: BootstrapConfig) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(cfg):
        value = getattr(cfg, f.name)
        if value is None:
            continue
        out[f.name] = dict(value) if isinstance(value, Mapping) else value
    return out


def from_toml(data: dict[str, Any]) -> BootstrapConfig:
    cfg = default_config()
    known = {f.name: f for f in fields(BootstrapConfig)}
    updates: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            continue
        current = getattr(cfg, key)
        if key == "versions":
            if not isinstance(value, dict):
                raise ConfigurationError("versions must be a table")
            updates[key] = {str(k): str(v) for k, v in value.items()}
        elif isinstance(current, bool):
            if not isinstance(value, bool):
                raise ConfigurationError(f"{key} must be a boolean")
            updates[key] = value
        elif isinstance(current, int):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{key} must be an integer")
            updates[key] = value
        else:
            updates[key] = os.path.expanduser(str(value)) if value is not None else None
    return validate_config(replace(cfg, **updates))


def load_config(path: str | None = None) -> BootstrapConfig:
    path = path or config_path()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return default_config()
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc
    return from_toml(data)


def save_config(cfg: BootstrapConfig, path: str | None = None) -> str:
    path = path or config_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as f:
        f.write(tomli_w.dumps(to_toml(cfg)).encode("utf-8"))
    os.chmod(path, 0o600)
    return path
