"""Desired identity, permission and binding manifests."""

from __future__ import annotations

from kubeconverge.models.spec import Specification
from kubeconverge.resources.naming import (
    LABEL_COMPONENT,
    annotations_for,
    cluster_resource_name,
    labels_for,
    resource_name,
)
from kubeconverge.resources.policy import PolicyRule
from kubeconverge.store.base import Manifest

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"
RBAC_GROUP = "rbac.authorization.k8s.io"


def _metadata(spec: Specification, name: str, role_id: str, namespace: str = "") -> dict[str, object]:
    labels = labels_for(spec, name)
    labels[LABEL_COMPONENT] = role_id
    metadata: dict[str, object] = {"name": name, "labels": labels, "annotations": annotations_for(spec)}
    if namespace:
        metadata["namespace"] = namespace
    return metadata


def service_account(spec: Specification, role_id: str) -> Manifest:
    """Identity for *role_id*; always lives in the specification namespace."""
    name = resource_name(spec, role_id)
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": _metadata(spec, name, role_id, spec.namespace),
    }


def role(spec: Specification, role_id: str, rules: list[PolicyRule], namespace: str) -> Manifest:
    name = resource_name(spec, role_id)
    return {
        "apiVersion": RBAC_API_VERSION,
        "kind": "Role",
        "metadata": _metadata(spec, name, role_id, namespace),
        "rules": rules,
    }


def subjects_for(sa: Manifest) -> list[dict[str, str]]:
    metadata = sa["metadata"]
    return [{"kind": "ServiceAccount", "name": metadata["name"], "namespace": metadata["namespace"]}]


def role_binding(spec: Specification, role_id: str, sa: Manifest, bound_role: Manifest) -> Manifest:
    """``<spec-name>-<roleId>`` in the namespace of *bound_role*."""
    namespace = bound_role["metadata"]["namespace"]
    return {
        "apiVersion": RBAC_API_VERSION,
        "kind": "RoleBinding",
        "metadata": _metadata(spec, resource_name(spec, role_id), role_id, namespace),
        "subjects": subjects_for(sa),
        "roleRef": {"apiGroup": RBAC_GROUP, "kind": "Role", "name": bound_role["metadata"]["name"]},
    }


def cluster_role(spec: Specification, role_id: str, rules: list[PolicyRule]) -> Manifest:
    return {
        "apiVersion": RBAC_API_VERSION,
        "kind": "ClusterRole",
        "metadata": _metadata(spec, cluster_resource_name(spec, role_id), role_id),
        "rules": rules,
    }


def cluster_role_binding(spec: Specification, role_id: str) -> Manifest:
    """Binding of the spec-namespace identity to ``<spec-name>-<spec-namespace>-<roleId>``."""
    name = cluster_resource_name(spec, role_id)
    return {
        "apiVersion": RBAC_API_VERSION,
        "kind": "ClusterRoleBinding",
        "metadata": _metadata(spec, name, role_id),
        "subjects": [{"kind": "ServiceAccount", "name": resource_name(spec, role_id), "namespace": spec.namespace}],
        "roleRef": {"apiGroup": RBAC_GROUP, "kind": "ClusterRole", "name": name},
    }
