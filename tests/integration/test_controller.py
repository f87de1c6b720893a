"""Integration tests for the resync loop and event intake."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from kubeconverge.api import create_app
from kubeconverge.controller import ResyncController
from kubeconverge.correlate import OwnerCorrelator
from kubeconverge.errors import ReconcileError, StoreUnavailableError
from kubeconverge.models.spec import ObjectKey
from kubeconverge.reconcile import Reconciler
from kubeconverge.store import MemoryStore
from tests.integration.conftest import SPEC_KEY, SPEC_NAMESPACE, make_namespace, make_spec


async def _delete_spec(store: MemoryStore) -> None:
    manifest = store.peek("ArgoCD", SPEC_NAMESPACE, "argocd")
    assert manifest is not None
    await store.delete(manifest)


def _controller(store: MemoryStore, reconciler: Reconciler, interval: int = 300) -> ResyncController:
    return ResyncController(store, reconciler, OwnerCorrelator(store), interval=interval)


class TestSweep:
    async def test_sweep_reconciles_every_spec(self, store: MemoryStore, reconciler: Reconciler) -> None:
        await store.create(make_namespace("other"))
        await store.create(make_spec(namespace="other", uid="spec-uid-2"))
        controller = _controller(store, reconciler)

        failed = await controller.sweep()

        assert failed == 0
        assert controller.is_ready()
        assert store.peek("Deployment", SPEC_NAMESPACE, "argocd-server") is not None
        assert store.peek("Deployment", "other", "argocd-server") is not None
        assert {(r.namespace, r.name) for r in reconciler.history} == {(SPEC_NAMESPACE, "argocd"), ("other", "argocd")}

    async def test_vanished_spec_gets_cleanup_pass(self, store: MemoryStore, reconciler: Reconciler) -> None:
        controller = _controller(store, reconciler)
        await controller.sweep()
        await _delete_spec(store)

        await controller.sweep()

        assert reconciler.history[-1].spec_found is False
        # Forgotten after its cleanup pass.
        before = len(reconciler.history)
        await controller.sweep()
        assert len(reconciler.history) == before

    async def test_failed_cleanup_is_retried_until_it_succeeds(
        self, store: MemoryStore, reconciler: Reconciler, environ: dict[str, str]
    ) -> None:
        environ["ARGOCD_CLUSTER_CONFIG_NAMESPACES"] = SPEC_NAMESPACE
        controller = _controller(store, reconciler)
        await controller.sweep()
        assert await store.list("ClusterRoleBinding") != []
        await _delete_spec(store)
        store.fail_next("list", "ClusterRoleBinding", StoreUnavailableError("ClusterRoleBinding", "", ""))

        assert await controller.sweep() == 1
        assert await store.list("ClusterRole") != []

        assert await controller.sweep() == 0
        assert await store.list("ClusterRoleBinding") == []
        assert await store.list("ClusterRole") == []
        # Forgotten once its cleanup pass succeeded.
        before = len(reconciler.history)
        await controller.sweep()
        assert len(reconciler.history) == before

    async def test_list_failure_keeps_controller_unready(self, store: MemoryStore, reconciler: Reconciler) -> None:
        store.fail_next("list", "ArgoCD", StoreUnavailableError("ArgoCD", "", "", "connection refused"))
        controller = _controller(store, reconciler)

        failed = await controller.sweep()

        assert failed == 0
        assert not controller.is_ready()
        assert reconciler.history == []

    async def test_failed_pass_is_counted(self, store: MemoryStore, reconciler: Reconciler) -> None:
        store.fail_next("create", "ServiceAccount", StoreUnavailableError("ServiceAccount", SPEC_NAMESPACE, "x"))
        controller = _controller(store, reconciler)

        failed = await controller.sweep()

        assert failed == 1
        assert controller.is_ready()

    async def test_start_and_stop_run_loop(self, store: MemoryStore, reconciler: Reconciler) -> None:
        controller = _controller(store, reconciler, interval=3600)

        await controller.start()
        for _ in range(50):
            if controller.is_ready():
                break
            await asyncio.sleep(0.01)
        await controller.stop()

        assert controller.is_ready()
        assert reconciler.history[0].name == "argocd"


class TestHandleEvent:
    async def test_managed_namespace_event_reconciles_owner(self, store: MemoryStore, reconciler: Reconciler) -> None:
        controller = _controller(store, reconciler)
        namespace = make_namespace("team-a", managed_by=SPEC_NAMESPACE)
        await store.create(namespace)

        key = await controller.handle_event(namespace)

        assert key == SPEC_KEY
        assert store.peek("RoleBinding", "team-a", "argocd-server") is not None

    async def test_uncorrelated_event_runs_nothing(self, store: MemoryStore, reconciler: Reconciler) -> None:
        controller = _controller(store, reconciler)

        key = await controller.handle_event({"kind": "ConfigMap", "metadata": {"name": "x", "namespace": "default"}})

        assert key is None
        assert reconciler.history == []

    async def test_annotated_object_reconciles_named_spec(self, store: MemoryStore, reconciler: Reconciler) -> None:
        controller = _controller(store, reconciler)
        obj = {
            "kind": "ClusterRole",
            "metadata": {
                "name": "argocd-argocd-server",
                "annotations": {
                    "argocds.argoproj.io/name": "argocd",
                    "argocds.argoproj.io/namespace": SPEC_NAMESPACE,
                },
            },
        }

        key = await controller.handle_event(obj)

        assert key == ObjectKey(name="argocd", namespace=SPEC_NAMESPACE)
        assert reconciler.history[-1].spec_found is True


class TestOnDemandPass:
    async def test_api_pass_waits_for_running_pass(self, store: MemoryStore, reconciler: Reconciler) -> None:
        controller = _controller(store, reconciler)
        app = create_app(reconciler=reconciler, controller=controller)
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(transport=transport, base_url="http://kubeconverge") as client:
            async with controller._lock:
                request = asyncio.create_task(client.post("/api/v1/reconcile/argocd/argocd"))
                await asyncio.sleep(0.05)
                assert not request.done()
                assert reconciler.history == []
            resp = await request

        assert resp.status_code == 200
        assert resp.json()["name"] == "argocd"
        assert len(reconciler.history) == 1

    async def test_failed_pass_is_raised_to_caller(self, store: MemoryStore, reconciler: Reconciler) -> None:
        store.fail_next("create", "ServiceAccount", StoreUnavailableError("ServiceAccount", SPEC_NAMESPACE, "x"))
        controller = _controller(store, reconciler)

        with pytest.raises(ReconcileError):
            await controller.reconcile_now(SPEC_KEY)
