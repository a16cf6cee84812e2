import os

import pytest

from ovm_cli import paths
from ovm_cli.config import BootstrapConfig
from ovm_host.errors import ConfigurationError


def _make_config(tmp_path, **overrides) -> BootstrapConfig:
    exe = tmp_path / "bin" / "OVM"
    exe.parent.mkdir(exist_ok=True)
    exe.write_text("#!/bin/sh\n", encoding="utf-8")
    values = dict(
        socket_dir=str(tmp_path / "sock"),
        ssh_key_dir=str(tmp_path / "ssh"),
        log_dir=str(tmp_path / "log"),
        target_dir=str(tmp_path / "target"),
        kernel_src="/opt/assets/bzImage",
        initrd_src="/opt/assets/initrd.gz",
        rootfs_src="/opt/assets/rootfs.erofs",
        name="vm1",
        scratch_dir=str(tmp_path / "scratch"),
        executable_path=str(exe),
    )
    values.update(overrides)
    return BootstrapConfig(**values)


def test_lock_file_is_deterministic_per_executable() -> None:
    a = paths.lock_file_name("/usr/bin/ovm", "vm1", "/tmp/ovm")
    b = paths.lock_file_name("/usr/bin/ovm", "vm1", "/tmp/ovm")
    c = paths.lock_file_name("/opt/ovm/bin/ovm", "vm1", "/tmp/ovm")

    assert a == b
    assert a != c
    assert a.startswith("/tmp/ovm/")
    assert a.endswith("-vm1.pid")
    assert len(os.path.basename(a)) == len("-vm1.pid") + 32


def test_derive_basic_resolves_symlink_and_lowercases(tmp_path) -> None:
    cfg = _make_config(tmp_path)
    link = tmp_path / "link"
    link.symlink_to(cfg.executable_path)

    basic = paths.derive_basic(_make_config(tmp_path, executable_path=str(link), memory_mib=512))

    assert basic.executable_path == os.path.realpath(cfg.executable_path).lower()
    assert basic.lock_file == paths.lock_file_name(basic.executable_path, "vm1", str(tmp_path / "scratch"))
    assert basic.memory_bytes == 512 * 1024 * 1024
    assert (tmp_path / "scratch").is_dir()


def test_derive_basic_missing_executable_is_configuration_error(tmp_path) -> None:
    cfg = _make_config(tmp_path, executable_path=str(tmp_path / "nope"))

    with pytest.raises(ConfigurationError, match="resolve executable path"):
        paths.derive_basic(cfg)


def test_socket_paths_use_name_and_fixed_suffixes(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    sp = paths.derive_socket_paths("sock", "vm1")

    assert sp.socket_path == str(tmp_path / "sock")
    assert [os.path.basename(p) for p in sp.all()] == [
        "vm1-podman.sock",
        "vm1-vfkit-network.sock",
        "vm1-initrd-vsock.sock",
        "vm1-ready.sock",
        "vm1-restful.sock",
        "vm1-sync-time.sock",
        "vm1-ssh-auth.sock",
    ]
    assert sp.endpoint == "unix://" + str(tmp_path / "sock" / "vm1-vfkit-network.sock")


def test_target_paths_take_basename_of_sources() -> None:
    tp = paths.derive_target_paths(
        "/var/lib/ovm/target",
        "/opt/assets/bzImage",
        "https://example.test/dl/initrd.gz?sig=abc",
        "rootfs.erofs",
    )

    assert tp.kernel_path == "/var/lib/ovm/target/bzImage"
    assert tp.initrd_path == "/var/lib/ovm/target/initrd.gz"
    assert tp.rootfs_path == "/var/lib/ovm/target/rootfs.erofs"
    assert tp.versions_path == "/var/lib/ovm/target/versions.json"
    assert tp.disk_data_path == "/var/lib/ovm/target/data.img"
    assert tp.disk_tmp_path == "/var/lib/ovm/target/tmp.img"


def test_target_paths_reject_source_without_file_name() -> None:
    with pytest.raises(ConfigurationError):
        paths.derive_target_paths("/t", "https://example.test/", "initrd", "rootfs")


def test_ensure_log_dir_creates_absolute_dir(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    p = paths.ensure_log_dir("logs/nested")

    assert os.path.isabs(p)
    assert (tmp_path / "logs" / "nested").is_dir()
