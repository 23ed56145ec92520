"""Prometheus metrics rendering and pushing of metrics to InfluxDB."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Mapping, Protocol

import requests

from kubehealth.durations import parse_duration
from kubehealth.health import State
from kubehealth.workloads import WorkloadDetails

log = logging.getLogger(__name__)

Metric = list[dict[str, Any]]


class _Writer(Protocol):
    def write(self, data: bytes) -> Any:
        ...


def _run_duration_seconds(details: WorkloadDetails, metric_name: str) -> str:
    duration = timedelta(0)
    if details.run_duration:
        try:
            duration = parse_duration(details.run_duration)
        except ValueError as exc:
            log.error(
                "Error parsing run duration: %s for metric: %s error: %s",
                details.run_duration,
                metric_name,
                exc,
            )
    else:
        log.debug("No run duration for metric %s", metric_name)
    return f"{duration.total_seconds():f}"


def _workload_metrics(
    kind: str, details_by_name: Mapping[str, WorkloadDetails], replace_quotes: bool
) -> tuple[dict[str, str], dict[str, str]]:
    states: dict[str, str] = {}
    durations: dict[str, str] = {}
    for name, details in details_by_name.items():
        status = "1" if details.ok else "0"
        errors = "".join(f"{message}|" for message in details.errors)
        if replace_quotes:
            errors = errors.replace('"', "'")
        metric_name = (
            f'kuberhealthy_{kind}{{check="{name}",namespace="{details.namespace}",'
            f'status="{status}",error="{errors}"}}'
        )
        duration_name = (
            f'kuberhealthy_{kind}_duration_seconds{{check="{name}",namespace="{details.namespace}"}}'
        )
        states[metric_name] = status
        durations[duration_name] = _run_duration_seconds(details, metric_name)
    return states, durations


def generate_metrics(state: State) -> str:
    """Render the state in the Prometheus text exposition format."""
    health_status = "1" if state.ok else "0"
    lines = [
        "# HELP kuberhealthy_running Shows if kuberhealthy is running error free",
        "# TYPE kuberhealthy_running gauge",
        f'kuberhealthy_running{{current_master="{state.current_master}"}} 1',
        "# HELP kuberhealthy_cluster_state Shows the status of the cluster",
        "# TYPE kuberhealthy_cluster_state gauge",
        f"kuberhealthy_cluster_state {health_status}",
    ]

    check_states, check_durations = _workload_metrics("check", state.check_details, True)
    job_states, job_durations = _workload_metrics("job", state.job_details, False)

    sections = (
        ("kuberhealthy_check", "Shows the status of a Kuberhealthy check", check_states),
        (
            "kuberhealthy_check_duration_seconds",
            "Shows the check run duration of a Kuberhealthy check",
            check_durations,
        ),
        ("kuberhealthy_job", "Shows the status of a Kuberhealthy job", job_states),
        (
            "kuberhealthy_job_duration_seconds",
            "Shows the job run duration of a Kuberhealthy job",
            job_durations,
        ),
    )
    # Each HELP/TYPE pair is followed directly by its own samples.
    for name, help_text, samples in sections:
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} gauge")
        lines.extend(f"{metric} {value}" for metric, value in samples.items())

    return "\n".join(lines) + "\n"


def error_state_metrics(state: State) -> str:
    """Render the metric that shows Kuberhealthy itself is in error."""
    return (
        "# HELP kuberhealthy_running Shows if kuberhealthy is running error free\n"
        "# TYPE kuberhealthy_running gauge\n"
        f'kuberhealthy_running{{currentMaster="{state.current_master}"}} 0'
    )


def write_metric_error(writer: _Writer, state: State) -> None:
    """Write the error-state metric to a binary writer."""
    try:
        writer.write(error_state_metrics(state).encode("utf-8"))
    except OSError as exc:
        log.warning("Error writing health check results to caller: %s", exc)
        raise


class MetricsClient(ABC):
    """A destination that metrics can be pushed to."""

    @abstractmethod
    def push(self, points: Metric, tags: Mapping[str, str]) -> None:
        """Push the given points, each a mapping of metric name to value."""


@dataclass
class InfluxConfig:
    """Connection settings for an InfluxDB 1.x server."""

    url: str = ""
    username: str = ""
    password: str = ""
    user_agent: str = "InfluxDBClient"
    timeout: float | None = None
    precision: str = ""
    write_consistency: str = ""
    unsafe_ssl: bool = False
    proxies: dict[str, str] | None = None


def _escape(text: str, special: str) -> str:
    for char in special:
        text = text.replace(char, "\\" + char)
    return text


def _format_field(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"cannot write non-finite value {value!r} to InfluxDB")
        return format(Decimal(repr(value)), "f")
    text = value if isinstance(value, str) else str(value)
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class InfluxClient(MetricsClient):
    """Pushes metrics to an InfluxDB 1.x database over HTTP."""

    def __init__(
        self,
        database: str,
        config: InfluxConfig,
        session: requests.Session | None = None,
    ) -> None:
        if not config.url:
            raise ValueError("an InfluxDB URL is required")
        self.database = database
        self.config = config
        self._session = session if session is not None else requests.Session()

    def _line(self, measurement: str, value: Any, tags: Mapping[str, str]) -> str:
        head = _escape(measurement, ", ")
        for key in sorted(tags):
            head += f",{_escape(key, ',= ')}={_escape(tags[key], ',= ')}"
        return f"{head} value={_format_field(value)}"

    def push(self, points: Metric, tags: Mapping[str, str]) -> None:
        """Write every name/value pair in the points as one measurement each."""
        lines = [
            self._line(key.replace(" ", "_"), value, tags)
            for point in points
            for key, value in point.items()
        ]
        body = "".join(line + "\n" for line in lines)

        params = {"db": self.database}
        if self.config.precision:
            params["precision"] = self.config.precision
        if self.config.write_consistency:
            params["consistency"] = self.config.write_consistency
        auth = (self.config.username, self.config.password) if self.config.username else None

        response = self._session.post(
            self.config.url.rstrip("/") + "/write",
            params=params,
            data=body.encode("utf-8"),
            headers={"User-Agent": self.config.user_agent},
            auth=auth,
            timeout=self.config.timeout,
            verify=not self.config.unsafe_ssl,
            proxies=self.config.proxies,
        )
        if response.status_code not in (200, 204):
            raise requests.HTTPError(
                f"InfluxDB write failed with status {response.status_code}: {response.text}"
            )