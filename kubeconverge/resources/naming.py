"""Deterministic names, labels and ownership links for managed objects.

Every name is a pure function of the specification identity and a role or
workload identifier; nothing here is random or time dependent.
"""

from __future__ import annotations

from kubeconverge.models.spec import Specification
from kubeconverge.store.base import Manifest

# Correlation annotations carried by objects that cannot hold an owner reference.
ANNOTATION_NAME = "argocds.argoproj.io/name"
ANNOTATION_NAMESPACE = "argocds.argoproj.io/namespace"

# Set on a Namespace to place it under the instance living in the label value.
MANAGED_BY_NAMESPACE_LABEL = "argocd.argoproj.io/managed-by"

LABEL_NAME = "app.kubernetes.io/name"
LABEL_PART_OF = "app.kubernetes.io/part-of"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_COMPONENT = "app.kubernetes.io/component"

PART_OF = "argocd"


def resource_name(spec: Specification, identifier: str) -> str:
    """``<spec-name>-<identifier>``: namespaced roles, bindings, identities and workloads."""
    return f"{spec.name}-{identifier}"


def cluster_resource_name(spec: Specification, identifier: str) -> str:
    """``<spec-name>-<spec-namespace>-<identifier>``: unique across namespaces for cluster scope."""
    return f"{spec.name}-{spec.namespace}-{identifier}"


def labels_for(spec: Specification, name: str, component: str = "") -> dict[str, str]:
    labels = {
        LABEL_NAME: name,
        LABEL_PART_OF: PART_OF,
        LABEL_MANAGED_BY: spec.name,
    }
    if component:
        labels[LABEL_COMPONENT] = component
    return labels


def annotations_for(spec: Specification) -> dict[str, str]:
    return {ANNOTATION_NAME: spec.name, ANNOTATION_NAMESPACE: spec.namespace}


def is_annotated_for(spec: Specification, obj: Manifest) -> bool:
    annotations = (obj.get("metadata") or {}).get("annotations") or {}
    return annotations.get(ANNOTATION_NAME) == spec.name and annotations.get(ANNOTATION_NAMESPACE) == spec.namespace


def set_owner_if_colocated(spec: Specification, obj: Manifest) -> bool:
    """Point *obj* at *spec* as its controller when both share a namespace.

    Cluster-scoped objects and objects in other namespaces cannot carry a
    namespaced owner; they are found through their annotations instead.
    Returns True when the owner reference was set.
    """
    metadata = obj.setdefault("metadata", {})
    if metadata.get("namespace", "") != spec.namespace:
        return False
    refs = [ref for ref in metadata.get("ownerReferences") or [] if not ref.get("controller")]
    refs.append(spec.owner_reference())
    metadata["ownerReferences"] = refs
    return True
