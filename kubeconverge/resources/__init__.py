"""Desired-state builders for every object kubeconverge manages.

Submodules:
    naming       -- Deterministic names, labels, annotations, owner links.
    env          -- Environment merge policy (spec entries, exec timeout, proxies).
    policy       -- Static permission rule sets per role identifier.
    deployments  -- Deployment manifests for the five managed workloads.
    rbac         -- ServiceAccount, Role(Binding) and ClusterRole(Binding) manifests.
"""

from kubeconverge.resources.deployments import WORKLOAD_BUILDERS
from kubeconverge.resources.env import component_env, env_merge, proxy_env_vars
from kubeconverge.resources.naming import cluster_resource_name, resource_name
from kubeconverge.resources.policy import ROLE_IDS, policy_rules_for

__all__ = [
    "ROLE_IDS",
    "WORKLOAD_BUILDERS",
    "cluster_resource_name",
    "component_env",
    "env_merge",
    "policy_rules_for",
    "proxy_env_vars",
    "resource_name",
]
