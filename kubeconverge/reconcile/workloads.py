"""Generic apply step for the managed Deployments."""

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
from kubeconverge.reconcile.flags import workload_presence
from kubeconverge.resources.deployments import WORKLOAD_BUILDERS
from kubeconverge.store.base import Manifest, ObjectStore

_log = get_logger("reconcile.workloads")


async def apply_workload(
    store: ObjectStore,
    spec: Specification,
    desired: Manifest,
    presence: Presence,
    result: PassResult,
) -> None:
    """Converge one Deployment onto *desired* with at most one write.

    Workloads built from user overrides are flagged as such in *result*.
    """
    meta = desired["metadata"]
    overrides = presence is Presence.PRESENT_WITH_OVERRIDES
    try:
        live = await store.get("Deployment", meta["namespace"], meta["name"])
    except NotFoundError:
        if presence.exists:
            await create_owned(store, spec, desired, result, overrides)
        else:
            record_skipped(desired, result)
        return

    if not presence.exists:
        await delete_if_present(store, live, result)
        return

    changed = diff.converge("Deployment", live, desired)
    if not changed:
        record_unchanged(live, result, overrides)
        return
    _log.debug("workload_drift", name=meta["name"], groups=list(changed), overrides=overrides)
    await update_recorded(store, live, result, changed, overrides)


async def reconcile_workload(
    store: ObjectStore,
    spec: Specification,
    identifier: str,
    process: ProcessConfig,
    result: PassResult,
) -> None:
    presence = workload_presence(identifier, spec, process)
    desired = WORKLOAD_BUILDERS[identifier](spec, process)
    await apply_workload(store, spec, desired, presence, result)


async def reconcile_deployments(
    store: ObjectStore,
    spec: Specification,
    process: ProcessConfig,
    result: PassResult,
) -> None:
    """Converge every managed workload in a fixed order.

    Raises:
        ReconcileError: for the first workload whose store call failed.
    """
    for identifier in WORKLOAD_BUILDERS:
        try:
            await reconcile_workload(store, spec, identifier, process, result)
        except StoreError as exc:
            raise ReconcileError(f"deployment {identifier}", exc) from exc
