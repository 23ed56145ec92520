"""Check that a network endpoint accepts connections."""

from __future__ import annotations

import logging
import queue
import socket
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

from kubehealth.health import Reporter

log = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Failed to complete network connection check in time! Timeout was reached."

_NETWORKS = {
    "tcp": (socket.AF_UNSPEC, socket.SOCK_STREAM),
    "tcp4": (socket.AF_INET, socket.SOCK_STREAM),
    "tcp6": (socket.AF_INET6, socket.SOCK_STREAM),
    "udp": (socket.AF_UNSPEC, socket.SOCK_DGRAM),
    "udp4": (socket.AF_INET, socket.SOCK_DGRAM),
    "udp6": (socket.AF_INET6, socket.SOCK_DGRAM),
}


def split_address(full_address: str) -> tuple[str, str]:
    """Split "proto://host:port" into protocol and address; the protocol defaults to tcp."""
    network, separator, address = full_address.partition("://")
    if separator:
        return network, address
    return "tcp", full_address


def _split_host_port(address: str) -> tuple[str, str]:
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"address {address}: missing ']' in address")
        host, rest = address[1:end], address[end + 1:]
        if not rest.startswith(":"):
            raise ValueError(f"address {address}: missing port in address")
        return host, rest[1:]
    host, separator, port = address.rpartition(":")
    if not separator:
        raise ValueError(f"address {address}: missing port in address")
    if ":" in host:
        raise ValueError(f"address {address}: too many colons in address")
    return host, port


def _dial(network: str, address: str, timeout: float) -> None:
    if network not in _NETWORKS:
        raise ValueError(f"dial {network}: unknown network {network}")
    family, sock_type = _NETWORKS[network]
    host, port = _split_host_port(address)
    candidates = socket.getaddrinfo(host or None, port, family, sock_type)
    last_error: OSError | None = None
    for af, kind, proto, _, sockaddr in candidates:
        try:
            with socket.socket(af, kind, proto) as sock:
                sock.settimeout(timeout)
                sock.connect(sockaddr)
            return
        except OSError as exc:
            last_error = exc
    raise last_error or OSError(f"dial {network} {address}: no suitable address found")


def _run_with_timeout(func: Callable[[], None], timeout: timedelta) -> Exception | None:
    """Run func in a background thread; raises queue.Empty if it outlasts the timeout."""
    outcome: queue.Queue[Exception | None] = queue.Queue(maxsize=1)

    def target() -> None:
        try:
            func()
        except Exception as exc:  # handed back to the caller
            outcome.put(exc)
            return
        outcome.put(None)

    threading.Thread(target=target, daemon=True).start()
    return outcome.get(timeout=max(0.0, timeout.total_seconds()))


@dataclass
class NetworkConnectionChecker:
    """Connects to a target and reports whether it is reachable as expected."""

    connection_target: str
    reporter: Reporter = field(default_factory=Reporter)
    target_unreachable: bool = False
    timeout: timedelta = timedelta(seconds=20)

    def do_checks(self) -> None:
        """Open and close a connection to the target; raises ConnectionError if it is down."""
        network, address = split_address(self.connection_target)
        try:
            _dial(network, address, max(0.001, self.timeout.total_seconds()))
        except (OSError, ValueError) as exc:
            message = (
                f"Network connection check determined that {self.connection_target} is DOWN: {exc}"
            )
            log.error(message)
            raise ConnectionError(message) from exc

    def run(self) -> None:
        """Run the check within its time limit and report the outcome."""
        log.info("Running network connection checker")
        try:
            error = _run_with_timeout(self.do_checks, self.timeout)
        except queue.Empty:
            log.info("Cancelling check and shutting down due to timeout.")
            self.reporter.report_failure([TIMEOUT_MESSAGE])
            return
        if error is not None and not self.target_unreachable:
            self.reporter.report_failure([str(error)])
            return
        self.reporter.report_success()