"""Kuberhealthy state resources and the details kept for each check or job."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class KHWorkload(str, Enum):
    """The kinds of Kuberhealthy workload: scheduled checks and one-off jobs."""

    KHCHECK = "KHCheck"
    KHJOB = "KHJob"


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_time(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class ObjectMeta:
    """The subset of Kubernetes object metadata used by Kuberhealthy resources."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    creation_timestamp: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    _WIRE_NAMES = (
        ("name", "name"),
        ("namespace", "namespace"),
        ("uid", "uid"),
        ("resource_version", "resourceVersion"),
        ("creation_timestamp", "creationTimestamp"),
        ("labels", "labels"),
        ("annotations", "annotations"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form, leaving out empty fields."""
        result: dict[str, Any] = {}
        for attribute, key in self._WIRE_NAMES:
            value = getattr(self, attribute)
            if value:
                result[key] = dict(value) if isinstance(value, dict) else value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ObjectMeta:
        """Build metadata from its API form."""
        data = data or {}
        return cls(
            name=data.get("name") or "",
            namespace=data.get("namespace") or "",
            uid=data.get("uid") or "",
            resource_version=data.get("resourceVersion") or "",
            creation_timestamp=data.get("creationTimestamp") or "",
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
        )


@dataclass
class WorkloadDetails:
    """The current status of a single Kuberhealthy check or job."""

    ok: bool = False
    errors: list[str] = field(default_factory=list)
    run_duration: str = ""
    namespace: str = ""
    node: str = ""
    last_run: datetime | None = None
    authoritative_pod: str = ""
    current_uuid: str = ""
    kh_workload: KHWorkload | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form; the workload kind is kept in memory only."""
        result: dict[str, Any] = {
            "OK": self.ok,
            "Errors": list(self.errors),
            "RunDuration": self.run_duration,
            "Namespace": self.namespace,
            "Node": self.node,
        }
        if self.last_run is not None:
            result["LastRun"] = _format_time(self.last_run)
        result["AuthoritativePod"] = self.authoritative_pod
        result["uuid"] = self.current_uuid
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> WorkloadDetails:
        """Build details from their API form."""
        data = data or {}
        last_run_text = data.get("LastRun")
        return cls(
            ok=bool(data.get("OK", False)),
            errors=list(data.get("Errors") or []),
            run_duration=data.get("RunDuration") or "",
            namespace=data.get("Namespace") or "",
            node=data.get("Node") or "",
            last_run=_parse_time(last_run_text) if last_run_text else None,
            authoritative_pod=data.get("AuthoritativePod") or "",
            current_uuid=data.get("uuid") or "",
        )

    def copy(self) -> WorkloadDetails:
        """Return an independent copy of these details."""
        return replace(self, errors=list(self.errors))


@dataclass
class KuberhealthyState:
    """A khstate resource holding the details of one check or job."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: WorkloadDetails = field(default_factory=WorkloadDetails)
    api_version: str = ""
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form."""
        result: dict[str, Any] = {}
        if self.api_version:
            result["apiVersion"] = self.api_version
        if self.kind:
            result["kind"] = self.kind
        result["metadata"] = self.metadata.to_dict()
        result["spec"] = self.spec.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> KuberhealthyState:
        """Build a state resource from its API form."""
        data = data or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=WorkloadDetails.from_dict(data.get("spec")),
            api_version=data.get("apiVersion") or "",
            kind=data.get("kind") or "",
        )


@dataclass
class KuberhealthyStateList:
    """A list of khstate resources."""

    items: list[KuberhealthyState] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    api_version: str = ""
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the API form."""
        result: dict[str, Any] = {}
        if self.api_version:
            result["apiVersion"] = self.api_version
        if self.kind:
            result["kind"] = self.kind
        result["metadata"] = dict(self.metadata)
        result["items"] = [item.to_dict() for item in self.items]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> KuberhealthyStateList:
        """Build a state list from its API form."""
        data = data or {}
        return cls(
            items=[KuberhealthyState.from_dict(item) for item in data.get("items") or []],
            metadata=dict(data.get("metadata") or {}),
            api_version=data.get("apiVersion") or "",
            kind=data.get("kind") or "",
        )


def new_workload_details(workload_type: KHWorkload | str) -> WorkloadDetails:
    """Create empty details for a workload of the given kind."""
    if not workload_type:
        raise ValueError("cannot create workload details with an empty workload type")
    return WorkloadDetails(errors=[], kh_workload=KHWorkload(workload_type))


def new_kuberhealthy_state(name: str, spec: WorkloadDetails) -> KuberhealthyState:
    """Create a khstate resource with the given name and details."""
    return KuberhealthyState(metadata=ObjectMeta(name=name), spec=spec)