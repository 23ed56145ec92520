import io

import pytest
import requests

from kubehealth.health import State
from kubehealth.metrics import (
    InfluxClient,
    InfluxConfig,
    error_state_metrics,
    generate_metrics,
    write_metric_error,
)
from kubehealth.workloads import WorkloadDetails


def parse_metrics(output):
    metric_map = {}
    for line in output.split("\n"):
        if line == "" or line[0] == "#":
            continue
        name, value = line.split(" ")
        metric_map[name] = value
    return metric_map


def test_empty_state():
    metrics = parse_metrics(generate_metrics(State()))
    assert metrics['kuberhealthy_running{current_master=""}'] == "1"
    assert metrics["kuberhealthy_cluster_state"] == "0"


def test_ok_state():
    metrics = parse_metrics(generate_metrics(State(ok=True)))
    assert metrics['kuberhealthy_running{current_master=""}'] == "1"
    assert metrics["kuberhealthy_cluster_state"] == "1"


def test_not_ok_state():
    metrics = parse_metrics(generate_metrics(State(ok=False)))
    assert metrics["kuberhealthy_cluster_state"] == "0"


def test_state_with_master():
    metrics = parse_metrics(generate_metrics(State(current_master="testMaster")))
    assert metrics['kuberhealthy_running{current_master="testMaster"}'] == "1"
    assert metrics["kuberhealthy_cluster_state"] == "0"


def test_checks_good_and_bad():
    state = State(
        check_details={
            "good": WorkloadDetails(ok=True),
            "bad": WorkloadDetails(ok=False),
            "": WorkloadDetails(ok=True),
        }
    )
    metrics = parse_metrics(generate_metrics(state))
    assert metrics['kuberhealthy_running{current_master=""}'] == "1"
    assert metrics["kuberhealthy_cluster_state"] == "0"
    assert metrics['kuberhealthy_check{check="good",namespace="",status="1",error=""}'] == "1"
    assert metrics['kuberhealthy_check{check="bad",namespace="",status="0",error=""}'] == "0"
    assert metrics['kuberhealthy_check{check="",namespace="",status="1",error=""}'] == "1"
    assert metrics['kuberhealthy_check_duration_seconds{check="good",namespace=""}'] == "0.000000"


def test_check_errors_replace_quotes_but_job_errors_do_not():
    state = State(
        check_details={"c": WorkloadDetails(namespace="ns", errors=['a"b', "c"])},
        job_details={"j": WorkloadDetails(namespace="ns", errors=['a"b'])},
    )
    metrics = parse_metrics(generate_metrics(state))
    assert metrics["kuberhealthy_check{check=\"c\",namespace=\"ns\",status=\"0\",error=\"a'b|c|\"}"] == "0"
    assert metrics['kuberhealthy_job{check="j",namespace="ns",status="0",error="a"b|"}'] == "0"


def test_run_durations():
    state = State(
        check_details={"fast": WorkloadDetails(run_duration="1.5s")},
        job_details={"broken": WorkloadDetails(run_duration="bogus")},
    )
    metrics = parse_metrics(generate_metrics(state))
    assert metrics['kuberhealthy_check_duration_seconds{check="fast",namespace=""}'] == "1.500000"
    assert metrics['kuberhealthy_job_duration_seconds{check="broken",namespace=""}'] == "0.000000"


def test_help_lines_precede_their_samples():
    state = State(job_details={"j": WorkloadDetails(ok=True)})
    lines = generate_metrics(state).splitlines()
    type_index = lines.index("# TYPE kuberhealthy_job gauge")
    assert lines[type_index + 1].startswith('kuberhealthy_job{check="j"')


def test_error_state_metrics():
    lines = error_state_metrics(State(current_master="testMaster")).split("\n")
    assert lines[2] == 'kuberhealthy_running{currentMaster="testMaster"} 0'
    assert lines[2].split(" ")[1] == "0"
    lines = error_state_metrics(State()).split("\n")
    assert lines[2] == 'kuberhealthy_running{currentMaster=""} 0'
    assert lines[2].split(" ")[1] == "0"


@pytest.mark.parametrize("state", [State(current_master="testMaster"), State()])
def test_write_metric_error(state):
    buffer = io.BytesIO()
    write_metric_error(buffer, state)
    assert buffer.getvalue().decode("utf-8") == error_state_metrics(state)


class FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, status_code=204):
        self.status_code = status_code
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return FakeResponse(self.status_code, "boom")


def test_influx_push_line_protocol():
    session = FakeSession()
    client = InfluxClient("khdb", InfluxConfig(url="http://influx.example.com:8086/"), session=session)
    client.push([{"check duration": 1.5}, {"up": True, "count": 3}], {"cluster": "dev", "app": "kh"})
    url, kwargs = session.calls[0]
    assert url == "http://influx.example.com:8086/write"
    assert kwargs["params"] == {"db": "khdb"}
    assert kwargs["data"].decode("utf-8").splitlines() == [
        "check_duration,app=kh,cluster=dev value=1.5",
        "up,app=kh,cluster=dev value=true",
        "count,app=kh,cluster=dev value=3i",
    ]
    assert kwargs["auth"] is None


def test_influx_push_uses_credentials_and_precision():
    session = FakeSession()
    password = "password"
    config = InfluxConfig(url="http://influx.example.com", username="user", password=password, precision="s")
    InfluxClient("khdb", config, session=session).push([{"msg": 'say "hi"'}], {})
    _, kwargs = session.calls[0]
    assert kwargs["auth"] == ("user", password)
    assert kwargs["params"]["precision"] == "s"
    assert kwargs["data"].decode("utf-8") == 'msg value="say \\"hi\\""\n'


def test_influx_push_raises_on_error_status():
    client = InfluxClient("khdb", InfluxConfig(url="http://influx.example.com"), session=FakeSession(500))
    with pytest.raises(requests.HTTPError):
        client.push([{"up": 1}], {})


def test_influx_requires_url():
    with pytest.raises(ValueError):
        InfluxClient("khdb", InfluxConfig(), session=FakeSession())