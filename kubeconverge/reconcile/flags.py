"""Feature flags evaluated once per role or workload into a Presence."""

from __future__ import annotations

from kubeconverge.models.config import ProcessConfig
from kubeconverge.models.results import Presence
from kubeconverge.models.spec import Specification
from kubeconverge.resources.deployments import API_SERVER, DEX, REDIS, REDIS_HA_PROXY, REPO_SERVER
from kubeconverge.resources.policy import OPTIONAL_ROLE


def role_presence(role_id: str, process: ProcessConfig) -> Presence:
    """Only the Dex role can be switched off, through DISABLE_DEX."""
    return Presence.evaluate(not (role_id == OPTIONAL_ROLE and process.disable_dex))


def workload_presence(identifier: str, spec: Specification, process: ProcessConfig) -> Presence:
    if identifier == REPO_SERVER:
        return Presence.evaluate(True, spec.repo.has_overrides())
    if identifier == DEX:
        return Presence.evaluate(not process.disable_dex, spec.dex.has_overrides())
    if identifier == REDIS:
        # The HA balancer and its backing set replace the single cache.
        return Presence.evaluate(not spec.ha.enabled, spec.redis.has_overrides())
    if identifier == REDIS_HA_PROXY:
        return Presence.evaluate(spec.ha.enabled, spec.ha.proxy.has_overrides())
    if identifier == API_SERVER:
        return Presence.evaluate(True, spec.server.has_overrides())
    raise ValueError(f"unknown workload: {identifier}")
