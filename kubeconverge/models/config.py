"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ControllerConfig:
    """Reconciliation loop configuration."""

    resync_interval: int = 300
    watch_namespace: str = ""


@dataclass
class APIConfig:
    """Health and status API configuration."""

    enabled: bool = True
    port: int = 8081


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeConvergeConfig:
    """Top-level kubeconverge configuration, read once at startup."""

    controller: ControllerConfig = field(default_factory=ControllerConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)


@dataclass(frozen=True)
class ProcessConfig:
    """Process environment captured once at the start of every pass.

    Builders receive this value explicitly; nothing below the reconciler
    reads ``os.environ`` during computation.
    """

    http_proxy: str = ""
    https_proxy: str = ""
    no_proxy: str = ""
    disable_dex: bool = False
    cluster_config_namespaces: tuple[str, ...] = ()

    def governs_cluster(self, namespace: str) -> bool:
        """Return True if instances in *namespace* may hold cluster-scoped grants."""
        return "*" in self.cluster_config_namespaces or namespace in self.cluster_config_namespaces
