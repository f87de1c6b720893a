"""Reconciliation pass for one specification key."""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping

from kubeconverge.config import capture_process_config
from kubeconverge.errors import NotFoundError, ReconcileError, StoreError
from kubeconverge.models.config import ProcessConfig
from kubeconverge.models.results import PassResult
from kubeconverge.models.spec import SPEC_KIND, ObjectKey, Specification
from kubeconverge.observability.logging import bind_pass, get_logger, unbind_pass
from kubeconverge.reconcile.cleanup import cleanup_orphans
from kubeconverge.reconcile.rbac import reconcile_cluster_role_bindings, reconcile_role_bindings
from kubeconverge.reconcile.workloads import reconcile_deployments
from kubeconverge.store.base import ObjectStore

_log = get_logger("reconcile.engine")


class Reconciler:
    """Converges the subordinate objects of one specification per call.

    A pass reads all state fresh, captures the process configuration once,
    and never retries; the scheduler re-runs the key when a pass raises
    ReconcileError.  Calls for different keys share no mutable state apart
    from the history of finished passes.
    """

    def __init__(
        self,
        store: ObjectStore,
        environ: Mapping[str, str] | None = None,
        history_size: int = 100,
    ) -> None:
        self._store = store
        self._environ = environ
        self._history: deque[PassResult] = deque(maxlen=history_size)

    @property
    def history(self) -> list[PassResult]:
        """Finished passes, most recent last."""
        return list(self._history)

    async def reconcile(self, key: ObjectKey) -> PassResult:
        """Run one pass for *key*.

        Raises:
            ReconcileError: when a step failed; earlier steps stay applied.
        """
        result = PassResult(namespace=key.namespace, name=key.name)
        process = capture_process_config(self._environ)
        bind_pass(key.namespace, key.name)
        try:
            await self._run(key, process, result)
        except ReconcileError as exc:
            result.error = str(exc)
            _log.warning(
                "reconcile_failed",
                step=exc.step,
                retryable=exc.retryable,
                error=str(exc.cause),
            )
            raise
        else:
            _log.info("reconcile_complete", spec_found=result.spec_found, writes=len(result.writes))
        finally:
            self._history.append(result)
            unbind_pass()
        return result

    async def _run(self, key: ObjectKey, process: ProcessConfig, result: PassResult) -> None:
        try:
            manifest = await self._store.get(SPEC_KIND, key.namespace, key.name)
        except NotFoundError:
            result.spec_found = False
            await cleanup_orphans(self._store, key, result)
            return
        except StoreError as exc:
            raise ReconcileError("specification", exc) from exc

        try:
            spec = Specification.from_manifest(manifest)
        except StoreError as exc:
            raise ReconcileError("specification", exc) from exc

        await reconcile_role_bindings(self._store, spec, process, result)
        await reconcile_cluster_role_bindings(self._store, spec, process, result)
        await reconcile_deployments(self._store, spec, process, result)
