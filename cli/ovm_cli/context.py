from __future__ import annotations

import enum
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable

from ovm_host.disk import create_sparse_file
from ovm_host.errors import BootstrapStateError
from ovm_host.ports import find_usable_port
from ovm_host.sshkeys import generate_keypair
from ovm_host.target import reconcile_target

from .assets import ensure_scratch_disk, ensure_target
from .config import BootstrapConfig, validate_config
from .paths import BasicFields, SocketPaths, TargetPaths, derive_basic, ensure_log_dir
from .sockets import reset_socket_dir
from .ssh import SshCredentials, ensure_keypair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capabilities:
    generate_keypair: Callable[[str, str], object] = generate_keypair
    find_usable_port: Callable[[int], int] = find_usable_port
    create_sparse_file: Callable[[str, int], object] = create_sparse_file
    reconcile_target: Callable[..., object] = reconcile_target


@dataclass(frozen=True)
class Context:
    name: str
    executable_path: str
    lock_file: str
    cli_mode: bool
    bind_pid: int
    event_socket_path: str
    power_save_mode: bool
    kernel_debug: bool
    cpus: int
    memory_bytes: int

    log_path: str

    endpoint: str
    socket_path: str
    forward_socket_path: str
    socket_network_path: str
    socket_initrd_vsock_path: str
    socket_ready_path: str
    restful_socket_path: str
    time_sync_socket_path: str
    ssh_auth_socket_path: str

    ssh_port: int
    ssh_key_path: str
    ssh_private_key_path: str
    ssh_public_key_path: str
    ssh_public_key: str

    target_path: str
    versions_path: str
    kernel_path: str
    initrd_path: str
    rootfs_path: str
    disk_data_path: str
    disk_tmp_path: str


class BootstrapState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    BASIC_READY = "basic_ready"
    READY = "ready"
    FAILED = "failed"


def run_phase(label: str, tasks: dict[str, Callable[[], Any]]) -> dict[str, Any]:
    """Run ``tasks`` concurrently and wait for all of them.

    Raises the first error by completion order once every task has returned.
    In-flight siblings are never cancelled: each task owns its own resources
    and is safe to run to completion after a sibling failed.
    """
    results: dict[str, Any] = {}
    first: BaseException | None = None
    logger.debug("%s: starting %s", label, ", ".join(tasks))
    with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix=f"ovm-{label}") as pool:
        futures = {pool.submit(fn): key for key, fn in tasks.items()}
        for fut in as_completed(futures):
            key = futures[fut]
            exc = fut.exception()
            if exc is None:
                results[key] = fut.result()
                logger.debug("%s: %s done", label, key)
            elif first is None:
                logger.error("%s: %s failed: %s", label, key, exc)
                first = exc
            else:
                logger.debug("%s: %s also failed: %s", label, key, exc)
    if first is not None:
        raise first
    return results


class Orchestrator:
    """Two-phase bootstrap: ``pre_setup()`` then ``setup()``, each exactly once.

    ``pre_setup`` fills the basic fields and log dir. ``setup`` tasks may read
    those, never each other's output. ``context`` is available once ``setup``
    succeeded.
    """

    def __init__(self, config: BootstrapConfig, capabilities: Capabilities | None = None):
        self._config = validate_config(config)
        self._caps = capabilities or Capabilities()
        self._state = BootstrapState.UNINITIALIZED
        self._basic: BasicFields | None = None
        self._log_path: str | None = None
        self._context: Context | None = None

    @property
    def state(self) -> BootstrapState:
        return self._state

    @property
    def context(self) -> Context:
        if self._state is not BootstrapState.READY or self._context is None:
            raise BootstrapStateError(f"context not ready (state: {self._state.value})")
        return self._context

    def _require(self, expected: BootstrapState, call: str) -> None:
        if self._state is not expected:
            raise BootstrapStateError(f"{call}() requires state {expected.value}, got {self._state.value}")

    def pre_setup(self) -> None:
        self._require(BootstrapState.UNINITIALIZED, "pre_setup")
        cfg = self._config
        try:
            results = run_phase("pre-setup", {
                "basic": lambda: derive_basic(cfg),
                "log": lambda: ensure_log_dir(cfg.log_dir),
            })
        except Exception:
            self._state = BootstrapState.FAILED
            raise
        self._basic = results["basic"]
        self._log_path = results["log"]
        self._state = BootstrapState.BASIC_READY

    def setup(self) -> Context:
        self._require(BootstrapState.BASIC_READY, "setup")
        try:
            results = run_phase("setup", {
                "sockets": self._sockets,
                "ssh": self._ssh,
                "ssh_port": self._ssh_port,
                "target": self._target,
            })
        except Exception:
            self._state = BootstrapState.FAILED
            raise
        self._context = self._assemble(results)
        self._state = BootstrapState.READY
        return self._context

    def _sockets(self) -> SocketPaths:
        return reset_socket_dir(self._config.socket_dir, self._basic.name)

    def _ssh(self) -> SshCredentials:
        return ensure_keypair(self._config.ssh_key_dir, self._basic.name, generate=self._caps.generate_keypair)

    def _ssh_port(self) -> int:
        return self._caps.find_usable_port(self._config.ssh_port)

    def _target(self) -> TargetPaths:
        cfg = self._config
        paths = ensure_target(
            cfg.target_dir,
            cfg.kernel_src,
            cfg.initrd_src,
            cfg.rootfs_src,
            versions=cfg.versions,
            data_disk_bytes=cfg.data_disk_bytes,
            reconcile=self._caps.reconcile_target,
        )
        ensure_scratch_disk(paths.disk_tmp_path, cfg.scratch_disk_bytes, allocate=self._caps.create_sparse_file)
        return paths

    def _assemble(self, results: dict[str, Any]) -> Context:
        basic: BasicFields = self._basic
        sockets: SocketPaths = results["sockets"]
        creds: SshCredentials = results["ssh"]
        target: TargetPaths = results["target"]
        return Context(
            name=basic.name,
            executable_path=basic.executable_path,
            lock_file=basic.lock_file,
            cli_mode=basic.cli_mode,
            bind_pid=basic.bind_pid,
            event_socket_path=basic.event_socket_path,
            power_save_mode=basic.power_save_mode,
            kernel_debug=basic.kernel_debug,
            cpus=basic.cpus,
            memory_bytes=basic.memory_bytes,
            log_path=self._log_path,
            endpoint=sockets.endpoint,
            socket_path=sockets.socket_path,
            forward_socket_path=sockets.forward_socket_path,
            socket_network_path=sockets.socket_network_path,
            socket_initrd_vsock_path=sockets.socket_initrd_vsock_path,
            socket_ready_path=sockets.socket_ready_path,
            restful_socket_path=sockets.restful_socket_path,
            time_sync_socket_path=sockets.time_sync_socket_path,
            ssh_auth_socket_path=sockets.ssh_auth_socket_path,
            ssh_port=results["ssh_port"],
            ssh_key_path=creds.ssh_key_path,
            ssh_private_key_path=creds.private_key_path,
            ssh_public_key_path=creds.public_key_path,
            ssh_public_key=creds.public_key,
            target_path=target.target_path,
            versions_path=target.versions_path,
            kernel_path=target.kernel_path,
            initrd_path=target.initrd_path,
            rootfs_path=target.rootfs_path,
            disk_data_path=target.disk_data_path,
            disk_tmp_path=target.disk_tmp_path,
        )


def bootstrap(config: BootstrapConfig, capabilities: Capabilities | None = None) -> Context:
    orchestrator = Orchestrator(config, capabilities)
    orchestrator.pre_setup()
    return orchestrator.setup()
