"""Periodic resync loop and event intake.

The loop lists every specification in the watched namespace on a fixed
interval and runs one pass per key, sequentially, so there is never more than
one active pass for a key.  Specifications that disappeared since the
previous sweep get one more pass, which runs the orphan cleanup, and are
kept until that pass succeeds.

Passes triggered through the REST API go through ``reconcile_now`` and share
the same lock as the loop.

Events about secondary objects arrive through ``handle_event`` (the REST
intake endpoint) and are routed to their owner by the OwnerCorrelator.
"""

from __future__ import annotations

import asyncio

from kubeconverge.correlate import OwnerCorrelator
from kubeconverge.errors import ReconcileError, StoreError
from kubeconverge.models.results import PassResult
from kubeconverge.models.spec import SPEC_KIND, ObjectKey
from kubeconverge.observability.logging import get_logger
from kubeconverge.reconcile import Reconciler
from kubeconverge.store.base import Manifest, ObjectStore

_log = get_logger("controller")


class ResyncController:
    """Drives the Reconciler from a timer and from correlated events."""

    def __init__(
        self,
        store: ObjectStore,
        reconciler: Reconciler,
        correlator: OwnerCorrelator,
        interval: int = 300,
        watch_namespace: str = "",
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._correlator = correlator
        self._interval = interval
        self._namespace = watch_namespace
        self._known: set[ObjectKey] = set()
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self.ready = False

    def is_ready(self) -> bool:
        return self.ready

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="resync-loop")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _run(self) -> None:
        while True:
            await self.sweep()
            await asyncio.sleep(self._interval)

    async def sweep(self) -> int:
        """Run one pass for every known specification.

        Returns the number of passes that failed.
        """
        try:
            manifests = await self._store.list(SPEC_KIND, namespace=self._namespace)
        except StoreError as exc:
            _log.warning("resync_list_failed", error=str(exc), retryable=exc.retryable)
            return 0

        current = {
            ObjectKey(name=m["metadata"]["name"], namespace=m["metadata"].get("namespace", "")) for m in manifests
        }
        vanished = self._known - current
        keys = sorted(current | vanished, key=str)
        failed = 0
        retry: set[ObjectKey] = set()
        for key in keys:
            if not await self._reconcile(key):
                failed += 1
                if key in vanished:
                    # Cleanup did not finish; keep the key for the next sweep.
                    retry.add(key)
        self._known = current | retry
        self.ready = True
        _log.info("resync_complete", specs=len(current), passes=len(keys), failed=failed)
        return failed

    async def handle_event(self, obj: Manifest) -> ObjectKey | None:
        """Reconcile the owner of a changed secondary object, if it has one."""
        key = await self._correlator.resolve(obj)
        if key is None:
            return None
        await self._reconcile(key)
        return key

    async def reconcile_now(self, key: ObjectKey) -> PassResult:
        """Run one pass for *key* under the lock shared by every pass.

        Raises:
            ReconcileError: when the pass failed.
        """
        async with self._lock:
            return await self._reconciler.reconcile(key)

    async def _reconcile(self, key: ObjectKey) -> bool:
        try:
            await self.reconcile_now(key)
        except ReconcileError:
            # Already logged with its step by the reconciler; the next
            # sweep or event retries it.
            return False
        return True

