"""Abstract object store consumed by the reconciler and the correlator.

Objects are plain Kubernetes manifest dicts.  Implementations must honour
optimistic concurrency: ``update`` with a ``metadata.resourceVersion`` that
is no longer current raises ConflictError, and callers never retry it inline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Manifest = dict[str, Any]

KIND_API_VERSIONS: dict[str, str] = {
    "ArgoCD": "argoproj.io/v1alpha1",
    "Namespace": "v1",
    "Secret": "v1",
    "Service": "v1",
    "ServiceAccount": "v1",
    "Deployment": "apps/v1",
    "Role": "rbac.authorization.k8s.io/v1",
    "RoleBinding": "rbac.authorization.k8s.io/v1",
    "ClusterRole": "rbac.authorization.k8s.io/v1",
    "ClusterRoleBinding": "rbac.authorization.k8s.io/v1",
}

CLUSTER_SCOPED_KINDS = frozenset({"Namespace", "ClusterRole", "ClusterRoleBinding"})


def api_version_for(kind: str) -> str:
    try:
        return KIND_API_VERSIONS[kind]
    except KeyError:
        raise ValueError(f"unsupported kind: {kind}") from None


def object_ref(obj: Manifest) -> tuple[str, str, str]:
    """Return (kind, namespace, name) of a manifest."""
    metadata = obj.get("metadata") or {}
    kind = str(obj.get("kind", ""))
    namespace = "" if kind in CLUSTER_SCOPED_KINDS else str(metadata.get("namespace", ""))
    return kind, namespace, str(metadata.get("name", ""))


def matches_labels(obj: Manifest, selector: dict[str, str] | None) -> bool:
    if not selector:
        return True
    labels = (obj.get("metadata") or {}).get("labels") or {}
    return all(labels.get(k) == v for k, v in selector.items())


class ObjectStore(ABC):
    """Versioned key-value store of typed objects."""

    @abstractmethod
    async def get(self, kind: str, namespace: str, name: str) -> Manifest:
        """Return the object or raise NotFoundError."""

    @abstractmethod
    async def list(
        self,
        kind: str,
        namespace: str = "",
        labels: dict[str, str] | None = None,
    ) -> list[Manifest]:
        """Return every object of *kind* in *namespace* (all when empty) matching *labels*."""

    @abstractmethod
    async def create(self, obj: Manifest) -> Manifest:
        """Persist a new object; AlreadyExistsError or ValidationFailure on rejection."""

    @abstractmethod
    async def update(self, obj: Manifest) -> Manifest:
        """Replace an existing object; ConflictError on a stale resourceVersion."""

    @abstractmethod
    async def delete(self, obj: Manifest) -> None:
        """Delete an object; NotFoundError if it is already gone."""
