"""Shared fixtures for kubeconverge integration tests.

Every test runs full reconciliation passes against a MemoryStore seeded with
an ArgoCD manifest, so writes can be asserted exactly through the store
journal without touching a real cluster.
"""

from __future__ import annotations

from typing import Any

import pytest

from kubeconverge.models.spec import SPEC_API_VERSION, SPEC_KIND, ObjectKey
from kubeconverge.reconcile import Reconciler
from kubeconverge.resources.naming import MANAGED_BY_NAMESPACE_LABEL
from kubeconverge.store import MemoryStore

SPEC_NAME = "argocd"
SPEC_NAMESPACE = "argocd"
SPEC_KEY = ObjectKey(name=SPEC_NAME, namespace=SPEC_NAMESPACE)


# ---------------------------------------------------------------------------
# Manifest factories
# ---------------------------------------------------------------------------


def make_spec(
    name: str = SPEC_NAME,
    namespace: str = SPEC_NAMESPACE,
    uid: str = "spec-uid-1",
    **spec: Any,
) -> dict[str, Any]:
    """ArgoCD manifest with *spec* as its ``spec`` section."""
    return {
        "apiVersion": SPEC_API_VERSION,
        "kind": SPEC_KIND,
        "metadata": {"name": name, "namespace": namespace, "uid": uid},
        "spec": spec,
    }


def make_namespace(name: str, managed_by: str = "") -> dict[str, Any]:
    labels = {MANAGED_BY_NAMESPACE_LABEL: managed_by} if managed_by else {}
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name, "labels": labels}}


def writes_of(store: MemoryStore, since: int = 0, kind: str = "") -> list[tuple[str, str, str, str]]:
    return [w for w in store.writes(since) if not kind or w[1] == kind]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore([make_namespace(SPEC_NAMESPACE), make_spec()])


@pytest.fixture
def environ() -> dict[str, str]:
    """Process environment seen by the reconciler; tests mutate it between passes."""
    return {}


@pytest.fixture
def reconciler(store: MemoryStore, environ: dict[str, str]) -> Reconciler:
    return Reconciler(store, environ=environ)
