"""Check that resource quota usage stays below a threshold in selected namespaces."""

from __future__ import annotations

import logging
import math
import os
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Iterable, Mapping, Protocol, TypeVar

from kubehealth.health import Reporter
from kubehealth.kubeclient import KubeAPIError
from kubehealth.quantity import milli_value

log = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.9
DEFAULT_CHECK_TIME_LIMIT = timedelta(minutes=5)
TIMEOUT_MESSAGE = "Check took too long and timed out."

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_T = TypeVar("_T")


class _QuotaClient(Protocol):
    def list_namespaces(self) -> list[dict[str, Any]]:
        ...

    def list_resource_quotas(self, namespace: str = "") -> list[dict[str, Any]]:
        ...


@dataclass
class ResourceQuotaSettings:
    """Which namespaces to look at, the usage threshold and the time allowed."""

    blacklist: list[str] = field(default_factory=list)
    whitelist: list[str] = field(default_factory=list)
    threshold: float = DEFAULT_THRESHOLD
    check_time_limit: timedelta = DEFAULT_CHECK_TIME_LIMIT
    debug: bool = False


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"failed to parse DEBUG environment variable: invalid syntax {text!r}")


def _parse_threshold(text: str) -> float:
    try:
        if text != text.strip():
            raise ValueError(text)
        return float(text)
    except ValueError as exc:
        raise ValueError(f"error occurred attempting to parse THRESHOLD: {text!r}") from exc


def parse_settings(environ: Mapping[str, str] | None = None) -> ResourceQuotaSettings:
    """Read DEBUG, BLACKLIST, WHITELIST and THRESHOLD; raises ValueError on bad values."""
    if environ is None:
        environ = os.environ
    settings = ResourceQuotaSettings()

    debug_text = environ.get("DEBUG", "")
    if debug_text:
        settings.debug = _parse_bool(debug_text)
    if settings.debug:
        log.info("Debug logging enabled.")
        logging.getLogger("kubehealth").setLevel(logging.DEBUG)

    blacklist_text = environ.get("BLACKLIST", "")
    if blacklist_text:
        settings.blacklist = blacklist_text.split(",")
        log.info("Parsed BLACKLIST: %s", settings.blacklist)
    whitelist_text = environ.get("WHITELIST", "")
    if whitelist_text:
        settings.whitelist = whitelist_text.split(",")
        log.info("Parsed WHITELIST: %s", settings.whitelist)

    # 0.90 means 90%: usage at or above it is reported.
    threshold_text = environ.get("THRESHOLD", "")
    if threshold_text:
        settings.threshold = _parse_threshold(threshold_text)
        log.info("Parsed THRESHOLD: %s", settings.threshold)
    if settings.threshold > 0.99:
        log.info("Given THRESHOLD is greater than 0.99, setting to default of %s", DEFAULT_THRESHOLD)
        settings.threshold = DEFAULT_THRESHOLD
    if settings.threshold <= 0:
        log.info("Threshold is less than or equal to 0, setting to default of %s", DEFAULT_THRESHOLD)
        settings.threshold = DEFAULT_THRESHOLD
    log.info("Usage threshold set to: %s", settings.threshold)
    log.info("Check time limit set to: %s", settings.check_time_limit)
    return settings


def namespace_selected(namespace: str, blacklist: Iterable[str], whitelist: Iterable[str]) -> bool:
    """Tell whether a namespace is examined.

    The blacklist wins over the whitelist; an empty whitelist admits every
    namespace not blacklisted.
    """
    blacklist = list(blacklist)
    whitelist = list(whitelist)
    if blacklist and namespace in blacklist:
        log.info("Skipping %s namespace (Blacklist).", namespace)
        return False
    if whitelist and namespace not in whitelist:
        log.info("Skipping %s namespace (Whitelist).", namespace)
        return False
    return True


def _ratio(used: int, limit: int) -> float:
    if limit:
        return used / limit
    if used > 0:
        return math.inf
    if used < 0:
        return -math.inf
    return math.nan


def _format_float(value: float, width: int, precision: int) -> str:
    if math.isnan(value):
        return "NaN".rjust(width)
    if math.isinf(value):
        return ("+Inf" if value > 0 else "-Inf").rjust(width)
    return f"{value:{width}.{precision}f}"


def _threshold_message(
    resource: str, namespace: str, threshold: float, used: int, limit: int, ratio: float
) -> str:
    return (
        f"{resource} for {namespace} namespace has reached threshold of "
        f"{_format_float(threshold, 4, 2)}: USED: {used} LIMIT: {limit} "
        f"PERCENT_USED: {_format_float(ratio, 6, 3)}"
    )


def examine_namespace(client: _QuotaClient, namespace: str, threshold: float) -> list[str]:
    """Return a message for every quota in the namespace whose CPU or memory use meets the threshold."""
    log.info("Looking at resource quotas for %s namespace.", namespace)
    try:
        quotas = client.list_resource_quotas(namespace)
    except KubeAPIError as exc:
        return [f"error occurred listing resource quotas for {namespace} namespace {exc}"]

    messages: list[str] = []
    for quota in quotas:
        status = quota.get("status") or {}
        hard = status.get("hard") or {}
        used = status.get("used") or {}
        for resource in ("cpu", "memory"):
            used_millis = milli_value(used.get(resource))
            limit_millis = milli_value(hard.get(resource))
            log.debug(
                "%s for %s: used %d limit %d", resource, namespace, used_millis, limit_millis
            )
            ratio = _ratio(used_millis, limit_millis)
            if ratio >= threshold:
                messages.append(
                    _threshold_message(
                        resource, namespace, threshold, used_millis, limit_millis, ratio
                    )
                )
    return messages


def _namespace_name(namespace: dict[str, Any] | str) -> str:
    if isinstance(namespace, str):
        return namespace
    return (namespace.get("metadata") or {}).get("name", "")


def examine_resource_quotas(
    client: _QuotaClient,
    namespaces: Iterable[dict[str, Any] | str],
    settings: ResourceQuotaSettings,
) -> list[str]:
    """Examine every selected namespace concurrently and gather their messages in order."""
    names = [_namespace_name(namespace) for namespace in namespaces]
    log.info("%d namespaces to look at.", len(names))
    selected = [
        name for name in names if namespace_selected(name, settings.blacklist, settings.whitelist)
    ]
    if not selected:
        return []
    with ThreadPoolExecutor(max_workers=len(selected)) as pool:
        results = pool.map(
            lambda name: examine_namespace(client, name, settings.threshold), selected
        )
        return [message for messages in results for message in messages]


def _run_with_timeout(func: Callable[[], _T], timeout: timedelta) -> _T:
    """Run func in a background thread; raises queue.Empty if it outlasts the timeout."""
    outcome: queue.Queue[tuple[bool, Any]] = queue.Queue(maxsize=1)

    def target() -> None:
        try:
            outcome.put((True, func()))
        except Exception as exc:  # handed back to the caller
            outcome.put((False, exc))

    threading.Thread(target=target, daemon=True).start()
    succeeded, value = outcome.get(timeout=max(0.0, timeout.total_seconds()))
    if not succeeded:
        raise value
    return value


def run_resource_quota_check(
    client: _QuotaClient,
    reporter: Reporter,
    settings: ResourceQuotaSettings | None = None,
) -> list[str]:
    """Run the check, report its outcome and return the failure messages reported."""
    if settings is None:
        settings = ResourceQuotaSettings()
    try:
        namespaces = client.list_namespaces()
    except KubeAPIError as exc:
        messages = [f"error occurred listing namespaces from the cluster: {exc}"]
        reporter.report_failure(messages)
        return messages

    try:
        messages = _run_with_timeout(
            lambda: examine_resource_quotas(client, namespaces, settings),
            settings.check_time_limit,
        )
    except queue.Empty:
        log.info("Reporting failure to kuberhealthy.")
        reporter.report_failure([TIMEOUT_MESSAGE])
        return [TIMEOUT_MESSAGE]
    except Exception as exc:
        log.info("Recovered failure: %s", exc)
        messages = [str(exc)]
        reporter.report_failure(messages)
        return messages

    if messages:
        log.info("This check created %d errors and warnings.", len(messages))
        for message in messages:
            log.debug("%s", message)
        log.info("Reporting failures to kuberhealthy.")
        reporter.report_failure(messages)
        return messages

    log.info("No errors or warnings were created during this check!")
    log.info("Reporting success to kuberhealthy.")
    reporter.report_success()
    return []