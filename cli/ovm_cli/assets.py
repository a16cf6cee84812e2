from __future__ import annotations

import logging
import os
from typing import Callable, Mapping

from ovm_host.disk import create_sparse_file
from ovm_host.errors import OvmError, ProvisioningError, ReconciliationError
from ovm_host.target import reconcile_target

from .paths import TargetPaths, derive_target_paths

logger = logging.getLogger(__name__)

Reconciler = Callable[..., object]
SparseAllocator = Callable[[str, int], object]


def ensure_target(
        target_dir: str,
        kernel_src: str,
        initrd_src: str,
        rootfs_src: str,
        *,
        versions: Mapping[str, str] | None = None,
        data_disk_bytes: int | None = None,
        reconcile: Reconciler = reconcile_target,
) -> TargetPaths:
    paths = derive_target_paths(target_dir, kernel_src, initrd_src, rootfs_src)
    try:
        os.makedirs(paths.target_path, 0o755, exist_ok=True)
    except OSError as exc:
        raise ProvisioningError(f"create target dir {paths.target_path}: {exc}") from exc

    kwargs: dict[str, object] = {"versions": dict(versions or {})}
    if data_disk_bytes is not None:
        kwargs["data_disk_bytes"] = data_disk_bytes
    try:
        reconcile(
            paths.target_path,
            kernel_src,
            initrd_src,
            rootfs_src,
            paths.disk_data_path,
            paths.versions_path,
            **kwargs,
        )
    except OvmError:
        raise
    except Exception as exc:
        raise ReconciliationError(f"reconcile target {paths.target_path}: {exc}") from exc
    return paths


def ensure_scratch_disk(
        path: str,
        size_bytes: int,
        *,
        allocate: SparseAllocator = create_sparse_file,
) -> bool:
    """Allocate the scratch disk if it is absent. Returns True when a file was created."""
    if os.path.lexists(path):
        return False
    logger.info("allocating scratch disk %s (%d bytes)", path, size_bytes)
    try:
        allocate(path, size_bytes)
    except Exception as exc:
        if os.path.lexists(path):
            logger.debug("scratch disk %s created concurrently", path)
            return False
        if isinstance(exc, OvmError):
            raise
        raise ProvisioningError(f"allocate scratch disk {path}: {exc}") from exc
    return True
