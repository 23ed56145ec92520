"""Overall Kuberhealthy state and the reporting of check outcomes."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

from kubehealth.workloads import WorkloadDetails

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Report:
    """A single reported outcome of a check."""

    ok: bool
    errors: list[str]


@dataclass
class Reporter:
    """Collects the outcomes a check reports; subclass to deliver them elsewhere."""

    reports: list[Report] = field(default_factory=list)

    def report_success(self) -> None:
        """Record that the check passed."""
        self.reports.append(Report(ok=True, errors=[]))

    def report_failure(self, messages: Iterable[str]) -> None:
        """Record that the check failed with the given messages."""
        self.reports.append(Report(ok=False, errors=list(messages)))

    @property
    def last(self) -> Report | None:
        """The most recent report, if any."""
        return self.reports[-1] if self.reports else None


class _Writer(Protocol):
    def write(self, data: bytes) -> Any:
        ...


@dataclass
class State:
    """The results of all managed checks and jobs with an overall status."""

    ok: bool = False
    errors: list[str] = field(default_factory=list)
    check_details: dict[str, WorkloadDetails] = field(default_factory=dict)
    job_details: dict[str, WorkloadDetails] = field(default_factory=dict)
    current_master: str = ""

    def add_error(self, *args: str) -> None:
        """Append the given error messages."""
        for message in args:
            log.debug("Appending error: %s", message)
            self.errors.append(message)

    def to_json(self) -> str:
        """Render the state as the indented JSON shown on the status page."""
        payload = {
            "OK": self.ok,
            "Errors": list(self.errors),
            "CheckDetails": {
                name: details.to_dict()
                for name, details in sorted(self.check_details.items())
            },
            "JobDetails": {
                name: details.to_dict()
                for name, details in sorted(self.job_details.items())
            },
            "CurrentMaster": self.current_master,
        }
        return json.dumps(payload, indent=2)

    def write_http_status_response(self, writer: _Writer) -> None:
        """Write the JSON status to a binary writer such as an HTTP response body."""
        try:
            writer.write(self.to_json().encode("utf-8"))
        except OSError as exc:
            log.error("Error writing response to caller: %s", exc)
            raise


def new_state() -> State:
    """Create a new, healthy state with no errors or details."""
    return State(ok=True)