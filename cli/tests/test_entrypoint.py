import pytest

from ovm_cli import config, entrypoint


def test_main_prints_snapshot(tmp_path, monkeypatch, capsys) -> None:
    src = tmp_path / "src"
    src.mkdir()
    for name in ("bzImage", "initrd.gz", "rootfs.erofs"):
        (src / name).write_bytes(b"x")
    exe = tmp_path / "ovm"
    exe.write_text("", encoding="utf-8")
    cfg = config.BootstrapConfig(
        socket_dir=str(tmp_path / "sock"),
        ssh_key_dir=str(tmp_path / "ssh"),
        log_dir=str(tmp_path / "log"),
        target_dir=str(tmp_path / "target"),
        kernel_src=str(src / "bzImage"),
        initrd_src=str(src / "initrd.gz"),
        rootfs_src=str(src / "rootfs.erofs"),
        scratch_dir=str(tmp_path / "scratch"),
        scratch_disk_bytes=1024 * 1024,
        data_disk_bytes=1024 * 1024,
        executable_path=str(exe),
    )
    path = config.save_config(cfg, str(tmp_path / "bootstrap.toml"))
    monkeypatch.setenv(config.ENV_CONFIG_PATH, path)

    entrypoint.main()

    out = capsys.readouterr().out
    assert "ready, ssh on port" in out
    assert "ssh-ed25519" not in out


def test_main_exits_on_bad_config(tmp_path, monkeypatch) -> None:
    path = tmp_path / "bootstrap.toml"
    path.write_text("cpus = 0\n", encoding="utf-8")
    monkeypatch.setenv(config.ENV_CONFIG_PATH, str(path))

    with pytest.raises(SystemExit) as exc:
        entrypoint.main()
    assert exc.value.code == 1
