"""A small client for the parts of the Kubernetes API the checks use."""

from __future__ import annotations

import atexit
import base64
import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests
import yaml

log = logging.getLogger(__name__)

_SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


class KubeAPIError(Exception):
    """A request to the Kubernetes API failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(KubeAPIError):
    """The requested Kubernetes object does not exist."""


class KubeClient:
    """Reads pods, events, namespaces and resource quotas from an API server."""

    def __init__(
        self,
        server: str,
        *,
        token: str | None = None,
        verify: bool | str = True,
        cert: str | tuple[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.server = server.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._session.verify = verify
        if cert:
            self._session.cert = cert
        if auth:
            self._session.auth = auth
        self._headers = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    @staticmethod
    def _error_message(response: Any) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict) and body.get("message"):
            return body["message"]
        return response.text

    def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        try:
            response = self._session.get(
                self.server + path,
                params=params or {},
                headers=self._headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise KubeAPIError(str(exc)) from exc
        if response.status_code == 404:
            raise NotFoundError(self._error_message(response), 404)
        if not 200 <= response.status_code < 300:
            raise KubeAPIError(self._error_message(response), response.status_code)
        return response.json()

    @staticmethod
    def _path(namespace: str, resource: str) -> str:
        if namespace:
            return f"/api/v1/namespaces/{quote(namespace, safe='')}/{resource}"
        return f"/api/v1/{resource}"

    @staticmethod
    def _selectors(label_selector: str = "", field_selector: str = "") -> dict[str, str]:
        params = {}
        if label_selector:
            params["labelSelector"] = label_selector
        if field_selector:
            params["fieldSelector"] = field_selector
        return params

    def list_pods(
        self, namespace: str = "", label_selector: str = "", field_selector: str = ""
    ) -> list[dict[str, Any]]:
        """List pods in a namespace, or in all namespaces when it is empty."""
        body = self._get(self._path(namespace, "pods"), self._selectors(label_selector, field_selector))
        return list(body.get("items") or [])

    def get_pod(self, namespace: str, name: str) -> dict[str, Any]:
        """Fetch one pod; raises NotFoundError when it does not exist."""
        return self._get(f"{self._path(namespace, 'pods')}/{quote(name, safe='')}")

    def list_events(self, namespace: str = "", field_selector: str = "") -> list[dict[str, Any]]:
        """List events in a namespace, or in all namespaces when it is empty."""
        body = self._get(self._path(namespace, "events"), self._selectors(field_selector=field_selector))
        return list(body.get("items") or [])

    def list_namespaces(self) -> list[dict[str, Any]]:
        """List every namespace in the cluster."""
        return list(self._get("/api/v1/namespaces").get("items") or [])

    def list_resource_quotas(self, namespace: str = "") -> list[dict[str, Any]]:
        """List resource quotas in a namespace, or in all namespaces when it is empty."""
        body = self._get(self._path(namespace, "resourcequotas"))
        return list(body.get("items") or [])


def _in_cluster_client() -> KubeClient | None:
    host = os.environ.get("KUBERNETES_SERVICE_HOST")
    port = os.environ.get("KUBERNETES_SERVICE_PORT")
    token_path = _SERVICE_ACCOUNT_DIR / "token"
    if not host or not port or not token_path.is_file():
        return None
    token = token_path.read_text().strip()
    ca_path = _SERVICE_ACCOUNT_DIR / "ca.crt"
    verify: bool | str = str(ca_path) if ca_path.is_file() else True
    if ":" in host:
        host = f"[{host}]"
    return KubeClient(f"https://{host}:{port}", token=token, verify=verify)


def _named(entries: Any, name: str, kind: str) -> dict[str, Any]:
    for entry in entries or []:
        if entry.get("name") == name:
            return entry.get(kind) or {}
    raise ValueError(f"kubeconfig has no {kind} named {name!r}")


def _data_file(encoded: str) -> str:
    handle = tempfile.NamedTemporaryFile(prefix="kubehealth-", delete=False)
    with handle:
        handle.write(base64.b64decode(encoded))
    atexit.register(_remove_file, handle.name)
    return handle.name


def _remove_file(path: str) -> None:
    with contextlib.suppress(OSError):
        os.unlink(path)


def _file_setting(section: dict[str, Any], key: str, base: Path) -> str | None:
    data = section.get(f"{key}-data")
    if data:
        return _data_file(data)
    value = section.get(key)
    if value:
        return str((base / os.path.expanduser(value)).resolve())
    return None


def _from_kubeconfig(kube_config_file: str) -> KubeClient:
    if not kube_config_file:
        raise ValueError("no kubeconfig file given and not running inside a cluster")
    path = Path(kube_config_file).expanduser()
    config = yaml.safe_load(path.read_text()) or {}
    context_name = config.get("current-context")
    if not context_name:
        raise ValueError(f"kubeconfig {path} has no current context")
    context = _named(config.get("contexts"), context_name, "context")
    cluster = _named(config.get("clusters"), context.get("cluster"), "cluster")
    user = _named(config.get("users"), context["user"], "user") if context.get("user") else {}

    server = cluster.get("server")
    if not server:
        raise ValueError(f"cluster {context.get('cluster')!r} has no server")
    base = path.parent

    verify: bool | str = True
    if cluster.get("insecure-skip-tls-verify"):
        verify = False
    else:
        verify = _file_setting(cluster, "certificate-authority", base) or True

    certificate = _file_setting(user, "client-certificate", base)
    key = _file_setting(user, "client-key", base)
    cert = (certificate, key) if certificate and key else certificate

    token = user.get("token")
    if not token and user.get("tokenFile"):
        token = (base / user["tokenFile"]).read_text().strip()

    auth = None
    if user.get("username"):
        auth = (user["username"], user.get("password") or "")

    return KubeClient(server, token=token, verify=verify, cert=cert, auth=auth)


def create(kube_config_file: str) -> KubeClient:
    """Create a client from the in-cluster service account, else from a kubeconfig file."""
    client = _in_cluster_client()
    if client is not None:
        return client
    log.debug("Not running in a cluster, using kubeconfig %s", kube_config_file)
    return _from_kubeconfig(kube_config_file)