"""Check that pods old enough to be settled are in a healthy lifecycle phase."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from kubehealth.durations import parse_duration
from kubehealth.health import Reporter
from kubehealth.kubeclient import KubeAPIError

log = logging.getLogger(__name__)

LABEL_SELECTOR = "app!=kuberhealthy-check,source!=kuberhealthy"

_HEALTHY_PHASES = frozenset({"Running", "Succeeded"})
_UNHEALTHY_PHASES = frozenset({"Pending", "Failed", "Unknown"})


class _PodLister(Protocol):
    def list_pods(
        self, namespace: str = "", label_selector: str = "", field_selector: str = ""
    ) -> list[dict[str, Any]]:
        ...


def _creation_time(pod: dict[str, Any]) -> datetime | None:
    text = (pod.get("metadata") or {}).get("creationTimestamp")
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _skip_window(skip_duration: str | timedelta) -> timedelta:
    if isinstance(skip_duration, timedelta):
        return skip_duration
    try:
        return parse_duration(skip_duration)
    except ValueError as exc:
        raise ValueError(f"failed to parse skip duration: {exc}") from exc


def find_pods_not_running(
    client: _PodLister,
    namespace: str | None = None,
    skip_duration: str | timedelta | None = None,
    now: datetime | None = None,
) -> list[str]:
    """Return a message for every pod older than the skip window in an unhealthy phase.

    The namespace defaults to TARGET_NAMESPACE (empty means all namespaces) and
    the skip window to SKIP_DURATION. An unparsable window raises ValueError.
    """
    if namespace is None:
        namespace = os.environ.get("TARGET_NAMESPACE", "")
    if skip_duration is None:
        skip_duration = os.environ.get("SKIP_DURATION", "")

    if namespace:
        log.info("looking for pods in namespace %s", namespace)
    else:
        log.info("looking for pods across all namespaces, this requires a cluster role")

    pods = client.list_pods(namespace, label_selector=LABEL_SELECTOR)

    window = _skip_window(skip_duration)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    skip_barrier = now - window

    failures: list[str] = []
    for pod in pods:
        metadata = pod.get("metadata") or {}
        name = metadata.get("name", "")
        pod_namespace = metadata.get("namespace", "")
        created = _creation_time(pod)
        if created is not None and created > skip_barrier:
            log.info("skipping checks on pod because it is too young: %s", name)
            continue

        phase = (pod.get("status") or {}).get("phase", "")
        if phase in _HEALTHY_PHASES:
            continue
        if phase in _UNHEALTHY_PHASES:
            failures.append(
                f"pod: {name} in namespace: {pod_namespace} is in pod status phase {phase} "
            )
        else:
            log.info(
                "pod: %s in namespace: %s is not in one of the five possible pod status phases %s ",
                name,
                pod_namespace,
                phase,
            )
    return failures


def run_check(
    client: _PodLister,
    reporter: Reporter,
    namespace: str | None = None,
    skip_duration: str | timedelta | None = None,
) -> list[str]:
    """Run the check and report its outcome; returns the failure messages reported."""
    try:
        failures = find_pods_not_running(client, namespace, skip_duration)
    except (KubeAPIError, ValueError) as exc:
        messages = [str(exc)]
        reporter.report_failure(messages)
        return messages

    if failures:
        log.info("Amount of failures found: %d", len(failures))
        reporter.report_failure(failures)
        return failures

    log.info("Reporting Success, no unhealthy pods found.")
    reporter.report_success()
    return []