import socket

import pytest

from ovm_host import ports
from ovm_host.errors import PortExhaustedError, ProvisioningError


def _occupy() -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind((ports.DEFAULT_BIND_HOST, 0))
    sock.listen(1)
    return sock


def test_occupied_preferred_port_is_skipped() -> None:
    sock = _occupy()
    try:
        busy = sock.getsockname()[1]
        if busy == ports.MAX_PORT:
            pytest.skip("ephemeral port at top of range")

        port = ports.find_usable_port(busy)
    finally:
        sock.close()

    assert port != busy
    assert busy < port < busy + ports.DEFAULT_ATTEMPTS


def test_free_preferred_port_is_returned(monkeypatch) -> None:
    monkeypatch.setattr(ports, "_port_free", lambda host, port: True)

    assert ports.find_usable_port(2233) == 2233


def test_scan_is_linear(monkeypatch) -> None:
    tried: list[int] = []

    def _fake_free(host: str, port: int) -> bool:
        tried.append(port)
        return port == 2236

    monkeypatch.setattr(ports, "_port_free", _fake_free)

    assert ports.find_usable_port(2233) == 2236
    assert tried == [2233, 2234, 2235, 2236]


def test_exhausted_range_raises(monkeypatch) -> None:
    tried: list[int] = []

    def _busy(host: str, port: int) -> bool:
        tried.append(port)
        return False

    monkeypatch.setattr(ports, "_port_free", _busy)

    with pytest.raises(PortExhaustedError) as exc:
        ports.find_usable_port(2233, attempts=10)

    assert isinstance(exc.value, ProvisioningError)
    assert exc.value.last == 2242
    assert len(tried) == 10


def test_scan_stops_at_max_port(monkeypatch) -> None:
    monkeypatch.setattr(ports, "_port_free", lambda host, port: False)

    with pytest.raises(PortExhaustedError) as exc:
        ports.find_usable_port(65530)

    assert exc.value.last == 65535


def test_invalid_preferred_port() -> None:
    with pytest.raises(ValueError):
        ports.find_usable_port(0)
