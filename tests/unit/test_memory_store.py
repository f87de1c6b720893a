"""Unit tests for the in-process ObjectStore."""

from __future__ import annotations

from typing import Any

import pytest

from kubeconverge.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    ValidationFailure,
)
from kubeconverge.store import MemoryStore


def _config_map(name: str = "settings", namespace: str = "tools", **metadata: Any) -> dict[str, Any]:
    return {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": name, "namespace": namespace, **metadata}}


class TestReadWrite:
    async def test_create_assigns_uid_and_version(self) -> None:
        store = MemoryStore()

        created = await store.create(_config_map())

        assert created["metadata"]["uid"]
        assert created["metadata"]["resourceVersion"]
        assert await store.get("ConfigMap", "tools", "settings") == created

    async def test_returned_objects_are_copies(self) -> None:
        store = MemoryStore([_config_map()])
        obj = await store.get("ConfigMap", "tools", "settings")
        obj["metadata"]["labels"] = {"changed": "yes"}

        assert "labels" not in (await store.get("ConfigMap", "tools", "settings"))["metadata"]

    async def test_get_missing_raises_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            await MemoryStore().get("ConfigMap", "tools", "missing")

    async def test_duplicate_create_raises(self) -> None:
        store = MemoryStore([_config_map()])
        with pytest.raises(AlreadyExistsError):
            await store.create(_config_map())

    async def test_list_filters_namespace_and_labels(self) -> None:
        store = MemoryStore(
            [
                _config_map("a", labels={"team": "x"}),
                _config_map("b", labels={"team": "y"}),
                _config_map("c", namespace="other", labels={"team": "x"}),
            ]
        )

        # Sorted by namespace, then name.
        assert [o["metadata"]["name"] for o in await store.list("ConfigMap")] == ["c", "a", "b"]
        assert [o["metadata"]["name"] for o in await store.list("ConfigMap", namespace="tools")] == ["a", "b"]
        assert [o["metadata"]["name"] for o in await store.list("ConfigMap", labels={"team": "x"})] == ["c", "a"]

    async def test_cluster_scoped_kinds_ignore_namespace(self) -> None:
        store = MemoryStore()
        await store.create({"kind": "ClusterRole", "metadata": {"name": "reader"}})

        assert (await store.get("ClusterRole", "anything", "reader"))["metadata"]["name"] == "reader"


class TestUpdate:
    async def test_stale_version_is_a_conflict(self) -> None:
        store = MemoryStore([_config_map()])
        first = await store.get("ConfigMap", "tools", "settings")
        second = await store.get("ConfigMap", "tools", "settings")
        first["data"] = {"a": "1"}
        await store.update(first)
        second["data"] = {"b": "2"}

        with pytest.raises(ConflictError):
            await store.update(second)

    async def test_update_bumps_version(self) -> None:
        store = MemoryStore([_config_map()])
        obj = await store.get("ConfigMap", "tools", "settings")

        updated = await store.update(obj)

        assert int(updated["metadata"]["resourceVersion"]) > int(obj["metadata"]["resourceVersion"])
        assert updated["metadata"]["uid"] == obj["metadata"]["uid"]

    async def test_update_missing_raises_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            await MemoryStore().update(_config_map())


class TestValidation:
    async def test_namespaced_kind_requires_namespace(self) -> None:
        with pytest.raises(ValidationFailure) as excinfo:
            await MemoryStore().create(_config_map(namespace=""))
        assert excinfo.value.retryable is False

    async def test_name_is_required(self) -> None:
        with pytest.raises(ValidationFailure):
            await MemoryStore().create({"kind": "ClusterRole", "metadata": {}})


class TestGarbageCollection:
    async def test_dependents_collected_recursively(self) -> None:
        store = MemoryStore(
            [
                _config_map("root", uid="root-uid"),
                _config_map("child", uid="child-uid", ownerReferences=[{"kind": "ConfigMap", "uid": "root-uid"}]),
                _config_map("grandchild", ownerReferences=[{"kind": "ConfigMap", "uid": "child-uid"}]),
                _config_map("unrelated"),
            ]
        )
        root = await store.get("ConfigMap", "tools", "root")

        await store.delete(root)

        assert [o["metadata"]["name"] for o in await store.list("ConfigMap")] == ["unrelated"]
        assert store.writes() == [("delete", "ConfigMap", "tools", "root")]
        assert [e[0] for e in store.journal].count("collect") == 2

    async def test_delete_missing_raises_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            await MemoryStore().delete(_config_map())


class TestInjectedFailures:
    async def test_failure_fires_once(self) -> None:
        store = MemoryStore([_config_map()])
        store.fail_next("get", "ConfigMap", StoreUnavailableError("ConfigMap", "tools", "settings"))

        with pytest.raises(StoreUnavailableError):
            await store.get("ConfigMap", "tools", "settings")
        assert (await store.get("ConfigMap", "tools", "settings"))["metadata"]["name"] == "settings"

    async def test_failure_is_scoped_to_verb_and_kind(self) -> None:
        store = MemoryStore([_config_map()])
        store.fail_next("update", "ConfigMap", ConflictError("ConfigMap", "tools", "settings"))

        await store.get("ConfigMap", "tools", "settings")
        await store.list("Secret")
        with pytest.raises(ConflictError):
            await store.update(await store.get("ConfigMap", "tools", "settings"))
