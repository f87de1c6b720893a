"""Convergence of the permission chain: identity, rule object, binding.

For every role the steps run strictly in that order.  A store error stops
the remaining steps for the role; whatever was already written stays, and
the next pass completes the chain because every name and every desired
object is deterministic.
"""

from __future__ import annotations

from kubeconverge.errors import NotFoundError, ReconcileError, StoreError
from kubeconverge.models.config import ProcessConfig
from kubeconverge.models.results import PassResult, Presence
from kubeconverge.models.spec import Specification
from kubeconverge.observability.logging import get_logger
from kubeconverge.reconcile import diff
from kubeconverge.reconcile.apply import (
    create_owned,
    delete_if_present,
    record_skipped,
    record_unchanged,
    update_recorded,
)
from kubeconverge.reconcile.flags import role_presence
from kubeconverge.resources import rbac
from kubeconverge.resources.naming import MANAGED_BY_NAMESPACE_LABEL
from kubeconverge.resources.policy import (
    CLUSTER_ROLE_IDS,
    ROLE_IDS,
    PolicyRule,
    cluster_policy_rules_for,
    policy_rules_for,
)
from kubeconverge.store.base import Manifest, ObjectStore

_log = get_logger("reconcile.rbac")


async def governed_namespaces(store: ObjectStore, spec: Specification) -> list[str]:
    """The spec namespace followed by every namespace labelled as managed by it."""
    namespaces = [spec.namespace]
    for ns in await store.list("Namespace", labels={MANAGED_BY_NAMESPACE_LABEL: spec.namespace}):
        name = ns["metadata"]["name"]
        if name not in namespaces:
            namespaces.append(name)
    return namespaces


async def _get_or_none(store: ObjectStore, kind: str, namespace: str, name: str) -> Manifest | None:
    try:
        return await store.get(kind, namespace, name)
    except NotFoundError:
        return None


# ---------------------------------------------------------------------------
# Namespaced chain
# ---------------------------------------------------------------------------


async def reconcile_service_account(
    store: ObjectStore,
    spec: Specification,
    role_id: str,
    presence: Presence,
    result: PassResult,
) -> Manifest:
    """Ensure the identity for *role_id* exists, or is gone when the role is disabled.

    Returns the live object, or the desired one when nothing is persisted.
    """
    desired = rbac.service_account(spec, role_id)
    meta = desired["metadata"]
    live = await _get_or_none(store, "ServiceAccount", meta["namespace"], meta["name"])
    if live is None:
        if not presence.exists:
            record_skipped(desired, result)
            return desired
        return await create_owned(store, spec, desired, result)
    if not presence.exists:
        await delete_if_present(store, live, result)
        return desired
    record_unchanged(live, result)
    return live


async def reconcile_role(
    store: ObjectStore,
    spec: Specification,
    role_id: str,
    rules: list[PolicyRule],
    presence: Presence,
    namespaces: list[str],
    result: PassResult,
) -> list[Manifest]:
    """Ensure a Role carrying *rules* exists in every governed namespace.

    Returns one Role per namespace (desired objects for namespaces where the
    disabled role is absent) so the binding step can visit each of them.
    """
    roles: list[Manifest] = []
    for namespace in namespaces:
        desired = rbac.role(spec, role_id, rules, namespace)
        live = await _get_or_none(store, "Role", namespace, desired["metadata"]["name"])
        if live is None:
            if presence.exists:
                desired = await create_owned(store, spec, desired, result)
            else:
                record_skipped(desired, result)
            roles.append(desired)
            continue
        if not presence.exists:
            await delete_if_present(store, live, result)
            roles.append(desired)
            continue
        changed = diff.converge("Role", live, desired)
        if changed:
            live = await update_recorded(store, live, result, changed)
        else:
            record_unchanged(live, result)
        roles.append(live)
    return roles


async def reconcile_role_binding(
    store: ObjectStore,
    spec: Specification,
    role_id: str,
    rules: list[PolicyRule],
    process: ProcessConfig,
    result: PassResult,
    namespaces: list[str] | None = None,
) -> None:
    """Bind the identity of *role_id* to its Role in every governed namespace."""
    presence = role_presence(role_id, process)
    if namespaces is None:
        namespaces = await governed_namespaces(store, spec)

    sa = await reconcile_service_account(store, spec, role_id, presence, result)
    roles = await reconcile_role(store, spec, role_id, rules, presence, namespaces, result)

    for bound_role in roles:
        desired = rbac.role_binding(spec, role_id, sa, bound_role)
        meta = desired["metadata"]
        live = await _get_or_none(store, "RoleBinding", meta["namespace"], meta["name"])

        if live is None:
            if not presence.exists:
                record_skipped(desired, result)
                continue
            await create_owned(store, spec, desired, result)
            continue

        if not presence.exists:
            await delete_if_present(store, live, result)
            continue

        if live.get("roleRef") != desired["roleRef"]:
            # roleRef is immutable; the binding is recreated by the next pass.
            _log.info(
                "role_binding_role_ref_changed",
                namespace=meta["namespace"],
                name=meta["name"],
                live=live.get("roleRef", {}).get("name"),
                desired=desired["roleRef"]["name"],
            )
            await delete_if_present(store, live, result, ("roleRef",))
            continue

        if live.get("subjects") != desired["subjects"]:
            live["subjects"] = desired["subjects"]
            await update_recorded(store, live, result, ("subjects",))
        else:
            record_unchanged(live, result)


async def reconcile_role_bindings(
    store: ObjectStore,
    spec: Specification,
    process: ProcessConfig,
    result: PassResult,
) -> None:
    """Run the namespaced permission chain for every role.

    Raises:
        ReconcileError: wrapping the first store error; later roles are not
                        attempted in this pass.
    """
    try:
        namespaces = await governed_namespaces(store, spec)
    except StoreError as exc:
        raise ReconcileError("governed namespaces", exc) from exc

    for role_id in ROLE_IDS:
        try:
            await reconcile_role_binding(store, spec, role_id, policy_rules_for(role_id), process, result, namespaces)
        except StoreError as exc:
            raise ReconcileError(f"roleBinding {role_id}", exc) from exc


# ---------------------------------------------------------------------------
# Cluster scope
# ---------------------------------------------------------------------------


async def reconcile_cluster_role(
    store: ObjectStore,
    spec: Specification,
    role_id: str,
    rules: list[PolicyRule],
    process: ProcessConfig,
    result: PassResult,
) -> Manifest | None:
    """Ensure the ClusterRole for *role_id* when the instance may hold cluster grants.

    Returns None, after deleting any live ClusterRole, when it may not.
    """
    desired = rbac.cluster_role(spec, role_id, rules)
    live = await _get_or_none(store, "ClusterRole", "", desired["metadata"]["name"])

    if not process.governs_cluster(spec.namespace):
        if live is not None:
            await delete_if_present(store, live, result)
        return None

    if live is None:
        return await create_owned(store, spec, desired, result)
    changed = diff.converge("ClusterRole", live, desired)
    if changed:
        return await update_recorded(store, live, result, changed)
    record_unchanged(live, result)
    return live


async def reconcile_cluster_role_binding(
    store: ObjectStore,
    spec: Specification,
    role_id: str,
    cluster_role: Manifest | None,
    sa: Manifest,
    result: PassResult,
) -> None:
    """Single ``<spec-name>-<spec-namespace>-<roleId>`` binding for *role_id*.

    A None *cluster_role* removes the binding if it exists.
    """
    desired = rbac.cluster_role_binding(spec, role_id)
    live = await _get_or_none(store, "ClusterRoleBinding", "", desired["metadata"]["name"])

    if cluster_role is None:
        if live is not None:
            await delete_if_present(store, live, result)
        return

    desired["subjects"] = rbac.subjects_for(sa)
    desired["roleRef"]["name"] = cluster_role["metadata"]["name"]

    if live is None:
        await create_owned(store, spec, desired, result)
        return

    if live.get("roleRef") != desired["roleRef"]:
        await delete_if_present(store, live, result, ("roleRef",))
        return

    if live.get("subjects") != desired["subjects"]:
        live["subjects"] = desired["subjects"]
        await update_recorded(store, live, result, ("subjects",))
    else:
        record_unchanged(live, result)


async def reconcile_cluster_role_bindings(
    store: ObjectStore,
    spec: Specification,
    process: ProcessConfig,
    result: PassResult,
) -> None:
    for role_id in CLUSTER_ROLE_IDS:
        try:
            cluster_role = await reconcile_cluster_role(
                store, spec, role_id, cluster_policy_rules_for(role_id), process, result
            )
            sa = rbac.service_account(spec, role_id)
            await reconcile_cluster_role_binding(store, spec, role_id, cluster_role, sa, result)
        except StoreError as exc:
            raise ReconcileError(f"clusterRoleBinding {role_id}", exc) from exc
