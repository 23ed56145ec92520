import json

import pytest

from kubehealth.resources import (
    CheckConfig,
    JobConfig,
    JobPhase,
    KuberhealthyCheck,
    KuberhealthyCheckList,
    KuberhealthyJob,
    KuberhealthyJobList,
    new_kuberhealthy_check,
    new_kuberhealthy_job,
)

POD_SPEC = {"containers": [{"name": "main", "image": "example/check:1"}]}


def _check_config():
    return CheckConfig(
        run_interval="5m",
        timeout="2m",
        pod_spec=POD_SPEC,
        extra_annotations={"note": "yes"},
        extra_labels={"team": "ops"},
    )


def _job_config(phase=JobPhase.RUNNING):
    return JobConfig(phase=phase, timeout="1m", pod_spec=POD_SPEC, extra_labels={"a": "b"})


def test_job_phase_values():
    assert JobConfig.from_dict({"phase": "Running"}).phase.value == "Running"
    assert JobConfig.from_dict({"phase": "Completed"}).phase.value == "Completed"


def test_check_config_keys():
    assert set(_check_config().to_dict()) == {
        "runInterval",
        "timeout",
        "podSpec",
        "extraAnnotations",
        "extraLabels",
    }


def test_check_config_round_trip():
    config = _check_config()
    assert CheckConfig.from_dict(json.loads(json.dumps(config.to_dict()))) == config


def test_check_config_to_dict_is_a_copy():
    config = _check_config()
    data = config.to_dict()
    data["podSpec"]["containers"][0]["image"] = "changed"
    data["extraLabels"]["team"] = "changed"
    assert config.pod_spec["containers"][0]["image"] == "example/check:1"
    assert config.extra_labels == {"team": "ops"}


def test_check_config_null_maps():
    config = CheckConfig.from_dict({"runInterval": "1m", "extraLabels": None})
    assert config.extra_labels == {}
    assert config.run_interval == "1m"


def test_new_kuberhealthy_check():
    spec = _check_config()
    check = new_kuberhealthy_check("dns", "kuberhealthy", spec)
    assert check.metadata.name == "dns"
    assert check.metadata.namespace == "kuberhealthy"
    assert check.spec == spec


def test_check_round_trip():
    check = new_kuberhealthy_check("dns", "kuberhealthy", _check_config())
    check.api_version = "comcast.github.io/v1"
    check.kind = "KuberhealthyCheck"
    restored = KuberhealthyCheck.from_dict(check.to_dict())
    assert restored == check


def test_check_list_round_trip():
    checks = KuberhealthyCheckList(
        items=[new_kuberhealthy_check(n, "ns", _check_config()) for n in ("a", "b")]
    )
    restored = KuberhealthyCheckList.from_dict(checks.to_dict())
    assert restored == checks
    assert [c.metadata.name for c in restored.items] == ["a", "b"]


def test_job_config_unset_phase_serialises_empty():
    data = _job_config(phase=None).to_dict()
    assert data["phase"] == ""
    assert JobConfig.from_dict(data).phase is None


def test_job_config_phase_parsed():
    assert JobConfig.from_dict({"phase": "Completed"}).phase is JobPhase.COMPLETED


def test_job_config_invalid_phase():
    with pytest.raises(ValueError):
        JobConfig.from_dict({"phase": "Bogus"})


def test_job_config_round_trip():
    config = _job_config()
    assert JobConfig.from_dict(json.loads(json.dumps(config.to_dict()))) == config


def test_new_kuberhealthy_job():
    spec = _job_config()
    job = new_kuberhealthy_job("once", "kuberhealthy", spec)
    assert job.metadata.to_dict() == {"name": "once", "namespace": "kuberhealthy"}
    assert job.spec == spec


def test_job_round_trip():
    job = new_kuberhealthy_job("once", "kuberhealthy", _job_config(JobPhase.COMPLETED))
    assert KuberhealthyJob.from_dict(job.to_dict()) == job


def test_job_list_round_trip():
    jobs = KuberhealthyJobList(
        items=[new_kuberhealthy_job("j", "ns", _job_config())],
        metadata={"resourceVersion": "3"},
    )
    restored = KuberhealthyJobList.from_dict(jobs.to_dict())
    assert restored == jobs
    assert restored.metadata == {"resourceVersion": "3"}