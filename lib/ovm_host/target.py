from __future__ import annotations

import json
import logging
import os
import posixpath
import shutil
import tempfile
import urllib.parse
from typing import Any, Mapping

import httpx

from .disk import GIB, create_sparse_file
from .errors import ProvisioningError, ReconciliationError

logger = logging.getLogger(__name__)

BOOT_ASSETS = ("kernel", "initrd", "rootfs")
DATA_KEY = "data"
DEFAULT_DATA_DISK_BYTES = 8 * GIB
DEFAULT_DOWNLOAD_TIMEOUT = 60.0
_CHUNK_SIZE = 1024 * 1024


def is_remote(src: str) -> bool:
    return urllib.parse.urlparse(src).scheme in ("http", "https")


def asset_name(src: str) -> str:
    """File name an asset source is stored under inside the target directory."""
    if is_remote(src):
        return posixpath.basename(urllib.parse.urlparse(src).path)
    return os.path.basename(src)


def source_version(src: str, declared: str | None = None) -> str:
    if declared:
        return declared
    if is_remote(src):
        return src
    try:
        st = os.stat(src)
    except OSError as exc:
        raise ReconciliationError(f"asset source {src}: {exc}") from exc
    return f"{st.st_size}-{st.st_mtime_ns}"


def load_manifest(path: str) -> dict[str, str]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Any = json.load(f)
    except FileNotFoundError:
        return {}
    except ValueError:
        logger.warning("manifest %s is not valid JSON, treating all assets as outdated", path)
        return {}
    except OSError as exc:
        raise ReconciliationError(f"read manifest {path}: {exc}") from exc
    if not isinstance(data, dict):
        return {}
    return {str(k): v for k, v in data.items() if isinstance(v, str)}


def _temp_sibling(path: str, suffix: str) -> str:
    fd, tmp = tempfile.mkstemp(dir=os.path.dirname(path) or ".", prefix=f".{os.path.basename(path)}.", suffix=suffix)
    os.fchmod(fd, 0o644)
    os.close(fd)
    return tmp


def save_manifest(path: str, versions: Mapping[str, str]) -> None:
    tmp = None
    try:
        tmp = _temp_sibling(path, ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(dict(versions), f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp, path)
    except OSError as exc:
        raise ReconciliationError(f"write manifest {path}: {exc}") from exc
    finally:
        if tmp is not None and os.path.exists(tmp):
            os.unlink(tmp)


def _download(src: str, dest: str, *, timeout_s: float) -> None:
    try:
        with httpx.stream("GET", src, follow_redirects=True, timeout=timeout_s) as r:
            r.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in r.iter_bytes(_CHUNK_SIZE):
                    f.write(chunk)
    except httpx.HTTPError as exc:
        raise ReconciliationError(f"download {src}: {exc}") from exc


def _install(src: str, dest: str, *, timeout_s: float) -> None:
    if not is_remote(src) and os.path.exists(dest) and os.path.samefile(src, dest):
        return
    tmp = None
    try:
        # one temp file per caller; concurrent installs of the same asset converge
        tmp = _temp_sibling(dest, ".part")
        if is_remote(src):
            _download(src, tmp, timeout_s=timeout_s)
        else:
            shutil.copyfile(src, tmp)
        os.replace(tmp, dest)
    except OSError as exc:
        raise ReconciliationError(f"install {src} -> {dest}: {exc}") from exc
    finally:
        if tmp is not None and os.path.exists(tmp):
            os.unlink(tmp)


def reconcile_target(
        target_dir: str,
        kernel_src: str,
        initrd_src: str,
        rootfs_src: str,
        data_disk_path: str,
        manifest_path: str,
        *,
        versions: Mapping[str, str] | None = None,
        data_disk_bytes: int = DEFAULT_DATA_DISK_BYTES,
        timeout_s: float = DEFAULT_DOWNLOAD_TIMEOUT,
) -> dict[str, str]:
    """Bring the boot assets and data disk under ``target_dir`` in line with ``versions``.

    An asset is installed again when its file is missing or the version
    recorded in the manifest differs from the expected one. The data disk is
    only recreated when it is missing or the manifest records a different
    ``data`` version; an existing disk with no recorded version is adopted.
    The manifest is written last, after every asset is in place.
    """
    declared = dict(versions or {})
    recorded = load_manifest(manifest_path)
    result = dict(recorded)

    sources = {"kernel": kernel_src, "initrd": initrd_src, "rootfs": rootfs_src}
    for key in BOOT_ASSETS:
        src = sources[key]
        dest = os.path.join(target_dir, asset_name(src))
        expected = source_version(src, declared.get(key))
        if os.path.exists(dest) and recorded.get(key) == expected:
            logger.debug("%s up to date (%s)", key, expected)
            continue
        logger.info("installing %s %s -> %s", key, expected, dest)
        _install(src, dest, timeout_s=timeout_s)
        result[key] = expected

    expected_data = declared.get(DATA_KEY) or recorded.get(DATA_KEY) or "1"
    stale = DATA_KEY in recorded and recorded[DATA_KEY] != expected_data
    if stale and os.path.exists(data_disk_path):
        logger.info("data disk version %s -> %s, recreating", recorded[DATA_KEY], expected_data)
        try:
            os.unlink(data_disk_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise ReconciliationError(f"remove data disk {data_disk_path}: {exc}") from exc
    if not os.path.exists(data_disk_path):
        try:
            create_sparse_file(data_disk_path, data_disk_bytes)
        except ProvisioningError as exc:
            if not os.path.exists(data_disk_path):
                raise ReconciliationError(str(exc)) from exc
            logger.debug("data disk %s created concurrently", data_disk_path)
    result[DATA_KEY] = expected_data

    if result != recorded:
        save_manifest(manifest_path, result)
    return result
