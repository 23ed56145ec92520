import socket

import pytest

from kubehealth.health import Reporter
from kubehealth.network import NetworkConnectionChecker, split_address


@pytest.fixture
def listening_port():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    try:
        yield server.getsockname()[1]
    finally:
        server.close()


@pytest.fixture
def closed_port():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port


def test_split_address_with_protocol():
    assert split_address("udp://10.0.0.1:53") == ("udp", "10.0.0.1:53")


def test_split_address_defaults_to_tcp():
    assert split_address("example.com:443") == ("tcp", "example.com:443")


def test_split_address_splits_only_once():
    assert split_address("tcp://host://x") == ("tcp", "host://x")


def test_reachable_target_reports_success(listening_port):
    reporter = Reporter()
    NetworkConnectionChecker(f"tcp://127.0.0.1:{listening_port}", reporter).run()
    assert reporter.last.ok is True
    assert len(reporter.reports) == 1


def test_default_protocol_is_tcp(listening_port):
    reporter = Reporter()
    NetworkConnectionChecker(f"127.0.0.1:{listening_port}", reporter).run()
    assert reporter.last.ok is True


def test_unreachable_target_reports_failure(closed_port):
    reporter = Reporter()
    target = f"tcp://127.0.0.1:{closed_port}"
    NetworkConnectionChecker(target, reporter).run()
    assert reporter.last.ok is False
    assert reporter.last.errors[0].startswith(
        f"Network connection check determined that {target} is DOWN: "
    )


def test_expected_unreachable_target_reports_success(closed_port):
    reporter = Reporter()
    NetworkConnectionChecker(
        f"tcp://127.0.0.1:{closed_port}", reporter, target_unreachable=True
    ).run()
    assert reporter.last.ok is True


def test_do_checks_raises_when_down(closed_port):
    checker = NetworkConnectionChecker(f"127.0.0.1:{closed_port}")
    with pytest.raises(ConnectionError, match="is DOWN"):
        checker.do_checks()


@pytest.mark.parametrize("target", ["tcp://127.0.0.1", "carrier-pigeon://127.0.0.1:80"])
def test_bad_targets_are_down(target):
    with pytest.raises(ConnectionError, match="is DOWN"):
        NetworkConnectionChecker(target).do_checks()


def test_udp_target(closed_port):
    reporter = Reporter()
    NetworkConnectionChecker(f"udp://127.0.0.1:{closed_port}", reporter).run()
    assert reporter.last.ok is True