"""Desired Deployment manifests for every managed workload.

Each builder is a pure function of the specification and the process
configuration captured for the current pass.  Volumes and mounts are fixed per
workload kind; the reconciler replaces them wholesale when the live object
drifts from these lists.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

from kubeconverge.models.config import ProcessConfig
from kubeconverge.models.spec import ComponentSpec, Specification
from kubeconverge.resources.env import component_env, proxy_env_vars
from kubeconverge.resources.naming import labels_for, resource_name
from kubeconverge.resources.policy import DEX_SERVER, REDIS_HA, SERVER
from kubeconverge.store.base import Manifest

# Workload identifiers; the Deployment is named ``<spec-name>-<identifier>``.
REPO_SERVER = "repo-server"
DEX = "dex-server"
REDIS = "redis"
REDIS_HA_PROXY = "redis-ha-haproxy"
API_SERVER = "server"

DEFAULT_ARGO_IMAGE = "quay.io/argoproj/argocd"
DEFAULT_ARGO_VERSION = "v2.0.5"
DEFAULT_DEX_IMAGE = "ghcr.io/dexidp/dex"
DEFAULT_DEX_VERSION = "v2.28.1"
DEFAULT_REDIS_IMAGE = "redis"
DEFAULT_REDIS_VERSION = "6.2.4-alpine"
DEFAULT_HAPROXY_IMAGE = "haproxy"
DEFAULT_HAPROXY_VERSION = "2.0.25-alpine"

DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_FORMAT = "text"

KNOWN_HOSTS_CONFIGMAP = "argocd-ssh-known-hosts-cm"
TLS_CERTS_CONFIGMAP = "argocd-tls-certs-cm"
GPG_KEYS_CONFIGMAP = "argocd-gpg-keys-cm"
REDIS_HA_CONFIGMAP = "argocd-redis-ha-configmap"
REPO_SERVER_TLS_SECRET = "argocd-repo-server-tls"

DEX_HTTP_PORT = 5556
DEX_GRPC_PORT = 5557
REPO_SERVER_PORT = 8081
REPO_METRICS_PORT = 8084
REDIS_PORT = 6379
SERVER_HTTP_PORT = 8080
SERVER_METRICS_PORT = 8083
HAPROXY_HEALTH_PORT = 8888


def combine_image_tag(image: str, tag: str) -> str:
    """``image:tag``, or ``image@digest`` when *tag* is a digest."""
    if ":" in tag:
        return f"{image}@{tag}"
    if tag:
        return f"{image}:{tag}"
    return image


def _image(component: ComponentSpec, default_image: str, default_version: str) -> str:
    return combine_image_tag(component.image or default_image, component.version or default_version)


def argo_image(spec: Specification) -> str:
    return combine_image_tag(spec.image or DEFAULT_ARGO_IMAGE, spec.version or DEFAULT_ARGO_VERSION)


def dex_image(spec: Specification) -> str:
    return _image(spec.dex, DEFAULT_DEX_IMAGE, DEFAULT_DEX_VERSION)


def redis_image(spec: Specification) -> str:
    return _image(spec.redis, DEFAULT_REDIS_IMAGE, DEFAULT_REDIS_VERSION)


def haproxy_image(spec: Specification) -> str:
    return _image(spec.ha.proxy, DEFAULT_HAPROXY_IMAGE, DEFAULT_HAPROXY_VERSION)


def repo_image(spec: Specification) -> str:
    """The repo server runs the main image unless its own section overrides it."""
    image = spec.repo.image or spec.image or DEFAULT_ARGO_IMAGE
    version = spec.repo.version or spec.version or DEFAULT_ARGO_VERSION
    return combine_image_tag(image, version)


def service_address(spec: Specification, identifier: str, port: int) -> str:
    return f"{resource_name(spec, identifier)}.{spec.namespace}.svc.cluster.local:{port}"


def redis_address(spec: Specification) -> str:
    """The cache endpoint; the HA balancer fronts it when HA is enabled."""
    return service_address(spec, REDIS_HA_PROXY if spec.ha.enabled else REDIS, REDIS_PORT)


# ---------------------------------------------------------------------------
# Fixed volumes and mounts
# ---------------------------------------------------------------------------


def _configmap_volume(name: str, configmap: str) -> dict[str, Any]:
    return {"name": name, "configMap": {"name": configmap}}


def _empty_dir_volume(name: str) -> dict[str, Any]:
    return {"name": name, "emptyDir": {}}


def _tls_secret_volume() -> dict[str, Any]:
    return {"name": REPO_SERVER_TLS_SECRET, "secret": {"secretName": REPO_SERVER_TLS_SECRET, "optional": True}}


def repo_server_default_volumes() -> list[dict[str, Any]]:
    return [
        _configmap_volume("ssh-known-hosts", KNOWN_HOSTS_CONFIGMAP),
        _configmap_volume("tls-certs", TLS_CERTS_CONFIGMAP),
        _configmap_volume("gpg-keys", GPG_KEYS_CONFIGMAP),
        _empty_dir_volume("gpg-keyring"),
        _tls_secret_volume(),
    ]


def repo_server_default_volume_mounts() -> list[dict[str, Any]]:
    return [
        {"name": "ssh-known-hosts", "mountPath": "/app/config/ssh"},
        {"name": "tls-certs", "mountPath": "/app/config/tls"},
        {"name": "gpg-keys", "mountPath": "/app/config/gpg/source"},
        {"name": "gpg-keyring", "mountPath": "/app/config/gpg/keys"},
        {"name": REPO_SERVER_TLS_SECRET, "mountPath": "/app/config/reposerver/tls"},
    ]


def server_default_volumes() -> list[dict[str, Any]]:
    return [
        _configmap_volume("ssh-known-hosts", KNOWN_HOSTS_CONFIGMAP),
        _configmap_volume("tls-certs", TLS_CERTS_CONFIGMAP),
        _tls_secret_volume(),
    ]


def server_default_volume_mounts() -> list[dict[str, Any]]:
    return [
        {"name": "ssh-known-hosts", "mountPath": "/app/config/ssh"},
        {"name": "tls-certs", "mountPath": "/app/config/tls"},
        {"name": REPO_SERVER_TLS_SECRET, "mountPath": "/app/config/server/tls"},
    ]


def _dex_volumes() -> list[dict[str, Any]]:
    return [_empty_dir_volume("static-files")]


def _dex_volume_mounts() -> list[dict[str, Any]]:
    return [{"name": "static-files", "mountPath": "/shared"}]


def _haproxy_volumes() -> list[dict[str, Any]]:
    return [
        _configmap_volume("config-volume", REDIS_HA_CONFIGMAP),
        _empty_dir_volume("shared-socket"),
        _empty_dir_volume("data"),
    ]


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


def _probe(handler: dict[str, Any], initial_delay: int, period: int) -> dict[str, Any]:
    return {**handler, "initialDelaySeconds": initial_delay, "periodSeconds": period}


def _http_probe(path: str, port: int, initial_delay: int, period: int) -> dict[str, Any]:
    return _probe({"httpGet": {"path": path, "port": port}}, initial_delay, period)


def _tcp_probe(port: int, initial_delay: int, period: int) -> dict[str, Any]:
    return _probe({"tcpSocket": {"port": port}}, initial_delay, period)


def _with_resources(container: dict[str, Any], resources: dict[str, Any] | None) -> dict[str, Any]:
    if resources:
        container["resources"] = copy.deepcopy(resources)
    return container


def _deployment(
    spec: Specification,
    identifier: str,
    pod_spec: dict[str, Any],
) -> Manifest:
    name = resource_name(spec, identifier)
    if spec.node_placement is not None:
        if spec.node_placement.node_selector:
            pod_spec["nodeSelector"] = dict(spec.node_placement.node_selector)
        if spec.node_placement.tolerations:
            pod_spec["tolerations"] = copy.deepcopy(spec.node_placement.tolerations)
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": name,
            "namespace": spec.namespace,
            "labels": labels_for(spec, name, identifier),
        },
        "spec": {
            "selector": {"matchLabels": {"app.kubernetes.io/name": name}},
            "template": {
                "metadata": {"labels": {"app.kubernetes.io/name": name}},
                "spec": pod_spec,
            },
        },
    }


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_repo_server(spec: Specification, process: ProcessConfig) -> Manifest:
    container = {
        "name": "argocd-repo-server",
        "image": repo_image(spec),
        "imagePullPolicy": "Always",
        "command": [
            "uid_entrypoint.sh",
            "argocd-repo-server",
            "--redis",
            redis_address(spec),
            "--loglevel",
            spec.repo.log_level or DEFAULT_LOG_LEVEL,
        ],
        "ports": [
            {"name": "server", "containerPort": REPO_SERVER_PORT},
            {"name": "metrics", "containerPort": REPO_METRICS_PORT},
        ],
        "livenessProbe": _tcp_probe(REPO_SERVER_PORT, 5, 10),
        "readinessProbe": _tcp_probe(REPO_SERVER_PORT, 5, 10),
        "env": component_env(spec.repo, process),
        "volumeMounts": repo_server_default_volume_mounts(),
    }
    return _deployment(
        spec,
        REPO_SERVER,
        {
            "containers": [_with_resources(container, spec.repo.resources)],
            "volumes": repo_server_default_volumes(),
        },
    )


def build_dex_server(spec: Specification, process: ProcessConfig) -> Manifest:
    init_container = {
        "name": "copyutil",
        "image": argo_image(spec),
        "imagePullPolicy": "Always",
        "command": ["cp", "-n", "/usr/local/bin/argocd", "/shared/argocd-dex"],
        "env": proxy_env_vars(process),
        "volumeMounts": _dex_volume_mounts(),
    }
    container = {
        "name": "dex",
        "image": dex_image(spec),
        "imagePullPolicy": "Always",
        "command": ["/shared/argocd-dex", "rundex"],
        "ports": [
            {"name": "http", "containerPort": DEX_HTTP_PORT},
            {"name": "grpc", "containerPort": DEX_GRPC_PORT},
        ],
        "env": component_env(spec.dex, process),
        "volumeMounts": _dex_volume_mounts(),
    }
    return _deployment(
        spec,
        DEX,
        {
            "initContainers": [_with_resources(init_container, spec.dex.resources)],
            "containers": [_with_resources(container, spec.dex.resources)],
            "serviceAccountName": resource_name(spec, DEX_SERVER),
            "volumes": _dex_volumes(),
        },
    )


def build_redis(spec: Specification, process: ProcessConfig) -> Manifest:
    container = {
        "name": "redis",
        "image": redis_image(spec),
        "imagePullPolicy": "Always",
        "args": ["--save", "", "--appendonly", "no"],
        "ports": [{"containerPort": REDIS_PORT}],
        "env": component_env(spec.redis, process),
    }
    return _deployment(spec, REDIS, {"containers": [_with_resources(container, spec.redis.resources)]})


def build_redis_ha_proxy(spec: Specification, process: ProcessConfig) -> Manifest:
    init_container = {
        "name": "config-init",
        "image": haproxy_image(spec),
        "imagePullPolicy": "IfNotPresent",
        "command": ["sh", "/readonly/haproxy_init.sh"],
        "env": proxy_env_vars(process),
        "volumeMounts": [
            {"name": "config-volume", "mountPath": "/readonly", "readOnly": True},
            {"name": "data", "mountPath": "/data"},
        ],
    }
    container = {
        "name": "haproxy",
        "image": haproxy_image(spec),
        "imagePullPolicy": "IfNotPresent",
        "ports": [{"name": "redis", "containerPort": REDIS_PORT}],
        "livenessProbe": _http_probe("/healthz", HAPROXY_HEALTH_PORT, 5, 3),
        "env": proxy_env_vars(process),
        "volumeMounts": [
            {"name": "data", "mountPath": "/usr/local/etc/haproxy"},
            {"name": "shared-socket", "mountPath": "/run/haproxy"},
        ],
    }
    return _deployment(
        spec,
        REDIS_HA_PROXY,
        {
            "initContainers": [_with_resources(init_container, spec.ha.proxy.resources)],
            "containers": [_with_resources(container, spec.ha.proxy.resources)],
            "serviceAccountName": resource_name(spec, REDIS_HA),
            "volumes": _haproxy_volumes(),
        },
    )


def server_command(spec: Specification) -> list[str]:
    command = ["argocd-server"]
    if spec.server.insecure:
        command.append("--insecure")
    command += [
        "--staticassets",
        "/shared/app",
        "--dex-server",
        f"http://{service_address(spec, DEX, DEX_HTTP_PORT)}",
        "--repo-server",
        service_address(spec, REPO_SERVER, REPO_SERVER_PORT),
        "--redis",
        redis_address(spec),
        "--loglevel",
        spec.server.log_level or DEFAULT_LOG_LEVEL,
        "--logformat",
        spec.server.log_format or DEFAULT_LOG_FORMAT,
    ]
    return command


def build_server(spec: Specification, process: ProcessConfig) -> Manifest:
    container = {
        "name": "argocd-server",
        "image": argo_image(spec),
        "imagePullPolicy": "Always",
        "command": server_command(spec),
        "ports": [
            {"containerPort": SERVER_HTTP_PORT},
            {"containerPort": SERVER_METRICS_PORT},
        ],
        "livenessProbe": _http_probe("/healthz", SERVER_HTTP_PORT, 3, 30),
        "readinessProbe": _http_probe("/healthz", SERVER_HTTP_PORT, 3, 30),
        "env": component_env(spec.server, process),
        "volumeMounts": server_default_volume_mounts(),
    }
    return _deployment(
        spec,
        API_SERVER,
        {
            "containers": [_with_resources(container, spec.server.resources)],
            "serviceAccountName": resource_name(spec, SERVER),
            "volumes": server_default_volumes(),
        },
    )


WorkloadBuilder = Callable[[Specification, ProcessConfig], Manifest]

# Reconciled in this order.
WORKLOAD_BUILDERS: dict[str, WorkloadBuilder] = {
    REPO_SERVER: build_repo_server,
    DEX: build_dex_server,
    REDIS: build_redis,
    REDIS_HA_PROXY: build_redis_ha_proxy,
    API_SERVER: build_server,
}
