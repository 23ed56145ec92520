"""Check for pods whose containers keep backing off and restarting."""

from __future__ import annotations

import logging
import os
import queue
import re
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Mapping, Protocol

from kubehealth.health import Reporter
from kubehealth.kubeclient import NotFoundError

log = logging.getLogger(__name__)

DEFAULT_MAX_FAILURES_ALLOWED = 10
DEFAULT_CHECK_TIMEOUT = timedelta(minutes=10)
TIMEOUT_MESSAGE = "Failed to complete Pod Restart check in time! Timeout was reached."

_INT = re.compile(r"[+-]?\d+")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class _EventClient(Protocol):
    def list_events(self, namespace: str = "", field_selector: str = "") -> list[dict[str, Any]]:
        ...

    def get_pod(self, namespace: str, name: str) -> dict[str, Any]:
        ...


@dataclass
class PodRestartsSettings:
    """Where to look for restarting pods and how many back-offs to tolerate."""

    namespace: str = ""
    max_failures_allowed: int = DEFAULT_MAX_FAILURES_ALLOWED
    check_timeout: timedelta = DEFAULT_CHECK_TIMEOUT


def settings_from_env(environ: Mapping[str, str] | None = None) -> PodRestartsSettings:
    """Read POD_NAMESPACE and MAX_FAILURES_ALLOWED; raises ValueError on a bad number."""
    if environ is None:
        environ = os.environ
    namespace = environ.get("POD_NAMESPACE", "")
    if namespace:
        log.info("Looking for pods in namespace: %s", namespace)
    else:
        log.info("Looking for pods across all namespaces, this requires a cluster role")

    max_failures = DEFAULT_MAX_FAILURES_ALLOWED
    text = environ.get("MAX_FAILURES_ALLOWED", "")
    if text:
        if not _INT.fullmatch(text):
            raise ValueError(f"Error converting maxFailuresAllowed: {text} to int")
        max_failures = int(text)
        if not _INT32_MIN <= max_failures <= _INT32_MAX:
            raise ValueError(f"Error converting maxFailuresAllowed: {text} to int: out of range")
    return PodRestartsSettings(namespace=namespace, max_failures_allowed=max_failures)


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
class PodRestartsChecker:
    """Looks for pods with more BackOff warning events than allowed."""

    client: _EventClient
    reporter: Reporter
    settings: PodRestartsSettings = field(default_factory=PodRestartsSettings)
    bad_pods: dict[str, str] = field(default_factory=dict)

    def run(self) -> list[str]:
        """Run the check within its time limit, report the outcome and return the failures."""
        log.info("Running Pod Restarts checker")
        try:
            error = _run_with_timeout(self.do_checks, self.settings.check_timeout)
        except queue.Empty:
            messages = [TIMEOUT_MESSAGE]
            self.reporter.report_failure(messages)
            return messages

        if error is not None or self.bad_pods:
            messages: list[str] = []
            if error is not None:
                log.error("%s", error)
                messages.append(str(error))
            messages.extend(self.bad_pods.values())
            self.reporter.report_failure(messages)
            return messages

        self.reporter.report_success()
        return []

    def do_checks(self) -> None:
        """Record pods with too many BackOff events, dropping those that no longer exist."""
        namespace = self.settings.namespace
        log.info("Checking for pod BackOff events for all pods in the namespace: %s", namespace)
        events = self.client.list_events(namespace, field_selector="type=Warning")
        if events:
            log.info("Found `Warning` events in the namespace: %s", namespace)

        for event in events:
            involved = event.get("involvedObject") or {}
            count = event.get("count") or 0
            if (
                involved.get("kind") == "Pod"
                and event.get("reason") == "BackOff"
                and count > self.settings.max_failures_allowed
            ):
                event_namespace = (event.get("metadata") or {}).get("namespace", "")
                message = (
                    f"Found: {count} `BackOff` events for pod: {involved.get('name', '')} "
                    f"in namespace: {event_namespace}"
                )
                log.info(message)
                key = f"{involved.get('namespace', '')}/{involved.get('name', '')}"
                self.bad_pods[key] = message

        for key in list(self.bad_pods):
            self._verify_bad_pod_exists(key)

    def _verify_bad_pod_exists(self, key: str) -> None:
        pod_namespace, _, pod_name = key.partition("/")
        try:
            self.client.get_pod(pod_namespace, pod_name)
        except Exception as exc:
            if isinstance(exc, NotFoundError) or "not found" in str(exc):
                log.info("Bad Pod: %s no longer exists. Removing from bad pods map", pod_name)
                self.bad_pods.pop(key, None)
            else:
                log.info("Error getting bad pod: %s %s", pod_name, exc)
                raise