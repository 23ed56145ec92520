# kubehealth

Health checks for Kubernetes clusters, together with the resource types
that describe them and a Prometheus exporter for their results.

## What is in the package

- **Resource types** (`kubehealth.workloads`, `kubehealth.resources`):
  `KuberhealthyState`, `KuberhealthyCheck`, `KuberhealthyJob`, their list
  types, and `WorkloadDetails`, `CheckConfig`, `JobConfig` and `ObjectMeta`.
  Each converts to and from plain dictionaries with `to_dict()` and
  `from_dict()`. `new_workload_details`, `new_kuberhealthy_state`,
  `new_kuberhealthy_check` and `new_kuberhealthy_job` build new objects.
  The enums `KHWorkload` and `JobPhase` list the workload kinds and job phases.
- **Cluster state** (`kubehealth.health`): `State` holds the results of all
  checks and jobs. `State.to_json()` renders it as indented JSON, and
  `write_http_status_response` writes that JSON to any binary writer.
  `new_state()` returns a healthy, empty state. `Reporter` records the
  outcomes that checks report (`report_success`, `report_failure`) in its
  `reports` list.
- **Metrics** (`kubehealth.metrics`): `generate_metrics` renders a `State`
  in the Prometheus text format. `error_state_metrics` and
  `write_metric_error` produce the output that shows the service itself is
  in error. `InfluxClient` with an `InfluxConfig` pushes metric points to an
  InfluxDB 1.x server over HTTP. It implements the abstract `MetricsClient`.
- **Kubernetes API client** (`kubehealth.kubeclient`):
  `create(kube_config_file)` returns a `KubeClient`. It uses the in-cluster
  service account when one is present and otherwise reads the given
  kubeconfig file. The client lists pods, events, namespaces and resource
  quotas, and fetches single pods. Failures raise `KubeAPIError`, and a
  missing object raises `NotFoundError`.
- **Master election** (`kubehealth.master`): `calculate_master` returns the
  alphabetically first running pod labelled `app=kuberhealthy`.
  `i_am_master` compares that pod with this pod's name.
- **Checks:**
  - `kubehealth.podstatus`: pods older than a skip window that are in
    `Pending`, `Failed` or `Unknown` (`find_pods_not_running`, `run_check`).
  - `kubehealth.podrestarts`: pods with more `BackOff` warning events than
    allowed (`PodRestartsChecker`, `PodRestartsSettings`,
    `settings_from_env`).
  - `kubehealth.network`: opening a TCP or UDP connection to a target
    (`NetworkConnectionChecker`, `split_address`).
  - `kubehealth.resourcequota`: namespaces whose CPU or memory quota usage
    has reached a threshold (`ResourceQuotaSettings`, `parse_settings`,
    `namespace_selected`, `examine_namespace`, `examine_resource_quotas`,
    `run_resource_quota_check`).
- **Helpers:** `kubehealth.durations.parse_duration` reads duration strings
  such as `"10m"` or `"1m30s"` into a `timedelta`.
  `kubehealth.quantity.parse_quantity` and `milli_value` read Kubernetes
  resource quantities such as `"500m"` or `"2Gi"`.

## Installation

```
pip install kubehealth
```

Install the test dependencies with:

```
pip install "kubehealth[test]"
```

## Examples

Render the Prometheus metrics for a fresh state:

```python
from kubehealth.health import new_state
from kubehealth.metrics import generate_metrics

print(generate_metrics(new_state()))
```

Split a connection target into its protocol and address:

```python
from kubehealth.network import split_address

split_address("udp://10.0.0.10:53")   # ("udp", "10.0.0.10:53")
split_address("10.0.0.10:443")        # ("tcp", "10.0.0.10:443")
```

Run the pod status check and look at what it reported:

```python
from kubehealth.health import Reporter
from kubehealth.kubeclient import create
from kubehealth.podstatus import run_check

client = create("/home/me/.kube/config")
reporter = Reporter()
run_check(client, reporter, namespace="default", skip_duration="10m")
print(reporter.last)
```

Find the current master among the running service pods:

```python
from kubehealth.kubeclient import create
from kubehealth.master import calculate_master

client = create("/home/me/.kube/config")
print(calculate_master(client, "kuberhealthy"))
```

### Settings read from the environment

Some functions fall back to environment variables when they are not given
a value:

| Function                                 | Variables                                               |
|------------------------------------------|---------------------------------------------------------|
| `podstatus.find_pods_not_running`        | `TARGET_NAMESPACE`, `SKIP_DURATION`                     |
| `podrestarts.settings_from_env`          | `POD_NAMESPACE`, `MAX_FAILURES_ALLOWED` (default 10)    |
| `resourcequota.parse_settings`           | `DEBUG`, `BLACKLIST`, `WHITELIST`, `THRESHOLD` (default 0.9) |
| `master.calculate_master`, `i_am_master` | `POD_NAMESPACE`, `POD_NAME`                             |

`NetworkConnectionChecker` takes its target, its expected reachability and
its time limit as arguments.

## Generating CRD manifests

`kubehealth-generate-crds` runs `controller-gen` once for each of the check,
job and state API groups. It runs in the `../pkg/apis/khcheck/v1`,
`../pkg/apis/khjob/v1` and `../pkg/apis/khstate/v1` directories, relative to
the current directory, and writes the manifests to `./generated`. The command
stops at the first failure and exits with status 1.

```
kubehealth-generate-crds --controller-gen /usr/local/bin/controller-gen
```

If `--controller-gen` is not given, `controller-gen` is looked up on the
`PATH`. A `--gojsontoyaml` option is accepted but not used.

## What the package does not do

- There are no commands that run the checks. The checks are functions and
  classes that you call from your own code.
- `Reporter` only keeps reports in memory. To send them to a status
  server, subclass it and override `report_success` and `report_failure`.
- There is no HTTP server for the status page or the metrics. The writer
  functions accept any object with a `write(bytes)` method.
- `KubeClient` reads core resources only. It cannot create, update or watch
  check, job or state resources.