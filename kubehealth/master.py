"""Choosing the master pod among several Kuberhealthy pods."""

from __future__ import annotations

import logging
import os
from typing import Any, Protocol

log = logging.getLogger(__name__)


class _PodLister(Protocol):
    def list_pods(
        self, namespace: str = "", label_selector: str = "", field_selector: str = ""
    ) -> list[dict[str, Any]]:
        ...


def calculate_master(client: _PodLister, namespace: str | None = None) -> str:
    """Return the name of the running Kuberhealthy pod that comes first alphabetically."""
    if namespace is None:
        namespace = os.environ.get("POD_NAMESPACE", "")
    log.debug("Calculating current master...")
    pods = client.list_pods(
        namespace,
        label_selector="app=kuberhealthy",
        field_selector="status.phase=Running",
    )
    names = sorted((pod.get("metadata") or {}).get("name", "") for pod in pods)
    if not names:
        raise LookupError("Failed to retrieve list of Kuberhealthy pods")
    master = names[0]
    log.debug("Calculated master as %s", master)
    return master


def i_am_master(
    client: _PodLister,
    namespace: str | None = None,
    pod_name: str | None = None,
    force_master: bool = False,
) -> bool:
    """Tell whether this pod, named by POD_NAME unless given, is the master."""
    if force_master:
        return True
    master = calculate_master(client, namespace)
    if pod_name is None:
        pod_name = os.environ.get("POD_NAME", "")
    log.debug("My pod hostname is: %s", pod_name)
    if not pod_name:
        log.error("Could not retrieve environment variable, or it had no content. POD_NAME")
    if pod_name.lower() == master.lower():
        log.debug("I am master")
        return True
    log.debug("I am NOT master")
    return False