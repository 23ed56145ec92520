"""Kuberhealthy check and job resources."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from kubehealth.workloads import ObjectMeta


class JobPhase(str, Enum):
    """The valid phases of a Kuberhealthy job."""

    RUNNING = "Running"
    COMPLETED = "Completed"


def _type_meta(api_version: str, kind: str) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if api_version:
        result["apiVersion"] = api_version
    if kind:
        result["kind"] = kind
    return result


@dataclass
class CheckConfig:
    """Configuration of an external check: its schedule, timeout and pod spec."""

    run_interval: str = ""
    timeout: str = ""
    pod_spec: dict[str, Any] = field(default_factory=dict)
    extra_annotations: dict[str, str] = field(default_factory=dict)
    extra_labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form."""
        return {
            "runInterval": self.run_interval,
            "timeout": self.timeout,
            "podSpec": copy.deepcopy(self.pod_spec),
            "extraAnnotations": dict(self.extra_annotations),
            "extraLabels": dict(self.extra_labels),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CheckConfig:
        """Build a check configuration from its API form."""
        data = data or {}
        return cls(
            run_interval=data.get("runInterval") or "",
            timeout=data.get("timeout") or "",
            pod_spec=copy.deepcopy(data.get("podSpec") or {}),
            extra_annotations=dict(data.get("extraAnnotations") or {}),
            extra_labels=dict(data.get("extraLabels") or {}),
        )


@dataclass
class KuberhealthyCheck:
    """A khcheck resource configuring an external check."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: CheckConfig = field(default_factory=CheckConfig)
    api_version: str = ""
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form."""
        result = _type_meta(self.api_version, self.kind)
        result["metadata"] = self.metadata.to_dict()
        result["spec"] = self.spec.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> KuberhealthyCheck:
        """Build a check resource from its API form."""
        data = data or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=CheckConfig.from_dict(data.get("spec")),
            api_version=data.get("apiVersion") or "",
            kind=data.get("kind") or "",
        )


@dataclass
class KuberhealthyCheckList:
    """A list of khcheck resources."""

    items: list[KuberhealthyCheck] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    api_version: str = ""
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form."""
        result = _type_meta(self.api_version, self.kind)
        result["metadata"] = dict(self.metadata)
        result["items"] = [item.to_dict() for item in self.items]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> KuberhealthyCheckList:
        """Build a check list from its API form."""
        data = data or {}
        return cls(
            items=[KuberhealthyCheck.from_dict(item) for item in data.get("items") or []],
            metadata=dict(data.get("metadata") or {}),
            api_version=data.get("apiVersion") or "",
            kind=data.get("kind") or "",
        )


@dataclass
class JobConfig:
    """Configuration of an external job: its phase, timeout and pod spec."""

    phase: JobPhase | None = None
    timeout: str = ""
    pod_spec: dict[str, Any] = field(default_factory=dict)
    extra_annotations: dict[str, str] = field(default_factory=dict)
    extra_labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form; an unset phase is written as an empty string."""
        return {
            "phase": self.phase.value if self.phase is not None else "",
            "timeout": self.timeout,
            "podSpec": copy.deepcopy(self.pod_spec),
            "extraAnnotations": dict(self.extra_annotations),
            "extraLabels": dict(self.extra_labels),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> JobConfig:
        """Build a job configuration from its API form."""
        data = data or {}
        phase_text = data.get("phase")
        return cls(
            phase=JobPhase(phase_text) if phase_text else None,
            timeout=data.get("timeout") or "",
            pod_spec=copy.deepcopy(data.get("podSpec") or {}),
            extra_annotations=dict(data.get("extraAnnotations") or {}),
            extra_labels=dict(data.get("extraLabels") or {}),
        )


@dataclass
class KuberhealthyJob:
    """A khjob resource configuring a one-off external job."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: JobConfig = field(default_factory=JobConfig)
    api_version: str = ""
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form."""
        result = _type_meta(self.api_version, self.kind)
        result["metadata"] = self.metadata.to_dict()
        result["spec"] = self.spec.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> KuberhealthyJob:
        """Build a job resource from its API form."""
        data = data or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=JobConfig.from_dict(data.get("spec")),
            api_version=data.get("apiVersion") or "",
            kind=data.get("kind") or "",
        )


@dataclass
class KuberhealthyJobList:
    """A list of khjob resources."""

    items: list[KuberhealthyJob] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    api_version: str = ""
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form."""
        result = _type_meta(self.api_version, self.kind)
        result["metadata"] = dict(self.metadata)
        result["items"] = [item.to_dict() for item in self.items]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> KuberhealthyJobList:
        """Build a job list from its API form."""
        data = data or {}
        return cls(
            items=[KuberhealthyJob.from_dict(item) for item in data.get("items") or []],
            metadata=dict(data.get("metadata") or {}),
            api_version=data.get("apiVersion") or "",
            kind=data.get("kind") or "",
        )


def new_kuberhealthy_check(name: str, namespace: str, spec: CheckConfig) -> KuberhealthyCheck:
    """Create a khcheck resource with the given name, namespace and spec."""
    return KuberhealthyCheck(metadata=ObjectMeta(name=name, namespace=namespace), spec=spec)


def new_kuberhealthy_job(name: str, namespace: str, spec: JobConfig) -> KuberhealthyJob:
    """Create a khjob resource with the given name, namespace and spec."""
    return KuberhealthyJob(metadata=ObjectMeta(name=name, namespace=namespace), spec=spec)