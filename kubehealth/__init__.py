"""Kubernetes health checks, check-state resources, metrics export and CRD generation."""

__version__ = "0.1.0"