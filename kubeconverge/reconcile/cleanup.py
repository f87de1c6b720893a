"""Removal of objects that owner references cannot cascade-delete.

Cluster-scoped objects and objects outside the specification namespace are
linked to their specification only through the correlation annotations, so
when the specification is gone they are found by those annotations and
deleted explicitly.  Objects in the specification namespace are left to the
store's garbage collection.
"""

from __future__ import annotations

from kubeconverge.errors import ReconcileError, StoreError
from kubeconverge.models.results import PassResult
from kubeconverge.models.spec import ObjectKey, Specification
from kubeconverge.observability.logging import get_logger
from kubeconverge.reconcile.apply import delete_if_present
from kubeconverge.resources.naming import is_annotated_for
from kubeconverge.store.base import ObjectStore

_log = get_logger("reconcile.cleanup")

_CLUSTER_KINDS = ("ClusterRoleBinding", "ClusterRole")
_NAMESPACED_KINDS = ("RoleBinding", "Role")


async def cleanup_orphans(store: ObjectStore, key: ObjectKey, result: PassResult) -> int:
    """Delete every annotated object of *key* that has no owner link.

    Bindings go before the rules they reference.  Returns the number of
    objects deleted.
    """
    ref = Specification(name=key.name, namespace=key.namespace)
    deleted = 0
    try:
        for kind in _CLUSTER_KINDS + _NAMESPACED_KINDS:
            for obj in await store.list(kind):
                if not is_annotated_for(ref, obj):
                    continue
                if obj["metadata"].get("namespace", "") == key.namespace:
                    continue
                if await delete_if_present(store, obj, result):
                    deleted += 1
    except StoreError as exc:
        raise ReconcileError("cleanup", exc) from exc
    if deleted:
        _log.info("orphans_deleted", count=deleted)
    return deleted
