"""Configuration loading from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping

from kubeconverge.models.config import (
    APIConfig,
    ControllerConfig,
    KubeConvergeConfig,
    LogConfig,
    ProcessConfig,
)

# Read verbatim from the process environment, exact case.
HTTP_PROXY_VAR = "HTTP_PROXY"
HTTPS_PROXY_VAR = "HTTPS_PROXY"
NO_PROXY_VAR = "no_proxy"
DISABLE_DEX_VAR = "DISABLE_DEX"
CLUSTER_CONFIG_NAMESPACES_VAR = "ARGOCD_CLUSTER_CONFIG_NAMESPACES"


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBECONVERGE_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return _parse_bool(val)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "t")


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> KubeConvergeConfig:
    """Load configuration from KUBECONVERGE_* environment variables."""
    return KubeConvergeConfig(
        controller=ControllerConfig(
            resync_interval=_env_int("RESYNC_INTERVAL", 300, min_val=10, max_val=86400),
            watch_namespace=_env("WATCH_NAMESPACE", ""),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True),
            port=_env_int("API_PORT", 8081, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )


def capture_process_config(environ: Mapping[str, str] | None = None) -> ProcessConfig:
    """Snapshot the proxy, Dex and cluster-scope settings of the process.

    Called once per reconciliation pass; *environ* defaults to ``os.environ``.
    """
    env = os.environ if environ is None else environ
    namespaces = tuple(ns.strip() for ns in env.get(CLUSTER_CONFIG_NAMESPACES_VAR, "").split(",") if ns.strip())
    return ProcessConfig(
        http_proxy=env.get(HTTP_PROXY_VAR, ""),
        https_proxy=env.get(HTTPS_PROXY_VAR, ""),
        no_proxy=env.get(NO_PROXY_VAR, ""),
        disable_dex=_parse_bool(env.get(DISABLE_DEX_VAR, "")),
        cluster_config_namespaces=namespaces,
    )
