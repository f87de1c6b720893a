"""Static permission sets per role identifier."""

from __future__ import annotations

import copy
from typing import Any

PolicyRule = dict[str, Any]

APPLICATION_CONTROLLER = "application-controller"
DEX_SERVER = "dex-server"
REDIS_HA = "redis-ha"
SERVER = "server"

# Reconciled in this order.
ROLE_IDS: tuple[str, ...] = (APPLICATION_CONTROLLER, DEX_SERVER, REDIS_HA, SERVER)

# Role whose existence is gated by DISABLE_DEX.
OPTIONAL_ROLE = DEX_SERVER

_NAMESPACED_RULES: dict[str, list[PolicyRule]] = {
    APPLICATION_CONTROLLER: [
        {"apiGroups": ["*"], "resources": ["*"], "verbs": ["*"]},
    ],
    DEX_SERVER: [
        {"apiGroups": [""], "resources": ["secrets", "configmaps"], "verbs": ["get", "list", "watch"]},
    ],
    REDIS_HA: [
        {"apiGroups": [""], "resources": ["endpoints"], "verbs": ["get"]},
    ],
    SERVER: [
        {"apiGroups": ["*"], "resources": ["*"], "verbs": ["get", "delete", "patch"]},
        {
            "apiGroups": ["argoproj.io"],
            "resources": ["applications", "appprojects"],
            "verbs": ["create", "get", "list", "watch", "update", "delete", "patch"],
        },
        {"apiGroups": [""], "resources": ["events"], "verbs": ["create", "list"]},
    ],
}

_CLUSTER_RULES: dict[str, list[PolicyRule]] = {
    APPLICATION_CONTROLLER: [
        {"apiGroups": ["*"], "resources": ["*"], "verbs": ["*"]},
        {"nonResourceURLs": ["*"], "verbs": ["*"]},
    ],
    SERVER: [
        {"apiGroups": ["*"], "resources": ["*"], "verbs": ["get", "list", "watch", "delete", "patch"]},
        {"apiGroups": [""], "resources": ["events"], "verbs": ["list"]},
    ],
}

CLUSTER_ROLE_IDS: tuple[str, ...] = tuple(_CLUSTER_RULES)


def policy_rules_for(role_id: str) -> list[PolicyRule]:
    """Rules granted in every namespace the instance governs."""
    return copy.deepcopy(_NAMESPACED_RULES[role_id])


def cluster_policy_rules_for(role_id: str) -> list[PolicyRule]:
    return copy.deepcopy(_CLUSTER_RULES[role_id])
