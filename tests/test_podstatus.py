from datetime import datetime, timedelta, timezone

import pytest

from kubehealth.health import Reporter
from kubehealth.kubeclient import KubeAPIError
from kubehealth.podstatus import LABEL_SELECTOR, find_pods_not_running, run_check


def make_pod(name, namespace, phase, created=None):
    metadata = {"name": name, "namespace": namespace}
    if created is not None:
        metadata["creationTimestamp"] = created
    return {"metadata": metadata, "status": {"phase": phase}}


class FakeClient:
    def __init__(self, pods, error=None):
        self.pods = pods
        self.error = error
        self.calls = []

    def list_pods(self, namespace="", label_selector="", field_selector=""):
        self.calls.append((namespace, label_selector, field_selector))
        if self.error is not None:
            raise self.error
        selected = [
            pod for pod in self.pods
            if not namespace or pod["metadata"]["namespace"] == namespace
        ]
        return sorted(
            selected,
            key=lambda pod: (pod["metadata"]["namespace"], pod["metadata"]["name"]),
        )


def _sample_pods():
    return [
        make_pod("foo-pod", "foo", "Pending"),
        make_pod("bar-pod", "bar", "Pending"),
    ]


@pytest.mark.parametrize(
    "namespace, expected",
    [
        ("foo", ["pod: foo-pod in namespace: foo is in pod status phase Pending "]),
        (
            "",
            [
                "pod: bar-pod in namespace: bar is in pod status phase Pending ",
                "pod: foo-pod in namespace: foo is in pod status phase Pending ",
            ],
        ),
    ],
    ids=["single_namespace", "multi_namespace"],
)
def test_find_pods_not_running(namespace, expected):
    client = FakeClient(_sample_pods())
    assert find_pods_not_running(client, namespace, "10m") == expected


def test_uses_environment_defaults(monkeypatch):
    monkeypatch.setenv("TARGET_NAMESPACE", "foo")
    monkeypatch.setenv("SKIP_DURATION", "10m")
    client = FakeClient(_sample_pods())
    result = find_pods_not_running(client)
    assert result == ["pod: foo-pod in namespace: foo is in pod status phase Pending "]
    assert client.calls[0][0] == "foo"


def test_label_selector_excludes_kuberhealthy_pods():
    client = FakeClient([])
    find_pods_not_running(client, "", "10m")
    assert client.calls == [("", LABEL_SELECTOR, "")]
    assert LABEL_SELECTOR == "app!=kuberhealthy-check,source!=kuberhealthy"


def test_young_pods_are_skipped():
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    pods = [
        make_pod("young", "ns", "Failed", "2024-01-01T11:55:00Z"),
        make_pod("old", "ns", "Failed", "2024-01-01T11:00:00Z"),
    ]
    result = find_pods_not_running(FakeClient(pods), "ns", "10m", now=now)
    assert result == ["pod: old in namespace: ns is in pod status phase Failed "]


def test_accepts_timedelta_window():
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    pods = [make_pod("p", "ns", "Unknown", "2024-01-01T11:59:00Z")]
    assert find_pods_not_running(FakeClient(pods), "ns", timedelta(0), now=now) == [
        "pod: p in namespace: ns is in pod status phase Unknown "
    ]
    assert find_pods_not_running(FakeClient(pods), "ns", timedelta(hours=1), now=now) == []


def test_healthy_and_odd_phases_are_not_failures():
    pods = [
        make_pod("a", "ns", "Running"),
        make_pod("b", "ns", "Succeeded"),
        make_pod("c", "ns", "Weird"),
    ]
    assert find_pods_not_running(FakeClient(pods), "ns", "10m") == []


def test_invalid_skip_duration_raises():
    with pytest.raises(ValueError, match="failed to parse skip duration"):
        find_pods_not_running(FakeClient(_sample_pods()), "", "ten minutes")


def test_run_check_reports_failures():
    reporter = Reporter()
    messages = run_check(FakeClient(_sample_pods()), reporter, "bar", "10m")
    assert messages == ["pod: bar-pod in namespace: bar is in pod status phase Pending "]
    assert reporter.last.ok is False
    assert reporter.last.errors == messages


def test_run_check_reports_success():
    reporter = Reporter()
    pods = [make_pod("ok", "ns", "Running")]
    assert run_check(FakeClient(pods), reporter, "ns", "10m") == []
    assert reporter.last.ok is True


def test_run_check_reports_list_error():
    reporter = Reporter()
    client = FakeClient([], error=KubeAPIError("forbidden", 403))
    assert run_check(client, reporter, "ns", "10m") == ["forbidden"]
    assert reporter.last.errors == ["forbidden"]


def test_run_check_reports_bad_skip_duration():
    reporter = Reporter()
    messages = run_check(FakeClient(_sample_pods()), reporter, "", "")
    assert len(messages) == 1
    assert messages[0].startswith("failed to parse skip duration: ")
    assert reporter.last.ok is False