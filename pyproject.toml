[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubehealth"
version = "0.1.0"
description = "Cluster health checks, check-state resources and Prometheus metrics for Kubernetes"
requires-python = ">=3.10"
keywords = [
    "kubernetes",
    "health-check",
    "monitoring",
    "prometheus",
    "influxdb",
    "metrics",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
kubehealth-generate-crds = "kubehealth.crdgen:main"

[tool.hatch.build.targets.wheel]
packages = ["kubehealth"]

[tool.pytest.ini_options]
addopts = "-ra"
