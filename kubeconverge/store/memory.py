"""In-process ObjectStore.

Behaves like the API server for everything the reconciler relies on:
monotonically increasing resourceVersions, stale-write rejection, name
uniqueness per (kind, namespace), and garbage collection of dependents whose
ownerReferences point at a deleted object.  Every write is appended to
``journal`` so callers can assert exactly which writes a pass issued.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from uuid import uuid4

import structlog

from kubeconverge.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationFailure,
)
from kubeconverge.store.base import (
    CLUSTER_SCOPED_KINDS,
    Manifest,
    ObjectStore,
    matches_labels,
    object_ref,
)

_log = structlog.get_logger(component="store.memory")

_Key = tuple[str, str, str]


class MemoryStore(ObjectStore):
    """Dict-backed store keyed by (kind, namespace, name)."""

    def __init__(self, objects: Iterable[Manifest] = ()) -> None:
        self._objects: dict[_Key, Manifest] = {}
        self._version = 0
        # (verb, kind, namespace, name); verb is create/update/delete/collect
        self.journal: list[tuple[str, str, str, str]] = []
        self._failures: dict[tuple[str, str], StoreError] = {}
        for obj in objects:
            self._insert(copy.deepcopy(obj))

    # ------------------------------------------------------------------
    # Test hooks
    # ------------------------------------------------------------------

    def fail_next(self, verb: str, kind: str, error: StoreError) -> None:
        """Make the next *verb* call on *kind* raise *error* instead of running."""
        self._failures[(verb, kind)] = error

    def writes(self, since: int = 0) -> list[tuple[str, str, str, str]]:
        """Journal entries issued by callers (excludes garbage collection)."""
        return [entry for entry in self.journal[since:] if entry[0] != "collect"]

    def peek(self, kind: str, namespace: str, name: str) -> Manifest | None:
        obj = self._objects.get(self._key(kind, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    # ------------------------------------------------------------------
    # ObjectStore
    # ------------------------------------------------------------------

    async def get(self, kind: str, namespace: str, name: str) -> Manifest:
        self._raise_injected("get", kind)
        obj = self._objects.get(self._key(kind, namespace, name))
        if obj is None:
            raise NotFoundError(kind, namespace, name)
        return copy.deepcopy(obj)

    async def list(
        self,
        kind: str,
        namespace: str = "",
        labels: dict[str, str] | None = None,
    ) -> list[Manifest]:
        self._raise_injected("list", kind)
        return [
            copy.deepcopy(obj)
            for (k, ns, _), obj in sorted(self._objects.items())
            if k == kind and (not namespace or ns == namespace) and matches_labels(obj, labels)
        ]

    async def create(self, obj: Manifest) -> Manifest:
        kind, namespace, name = object_ref(obj)
        self._raise_injected("create", kind)
        self._validate(kind, namespace, name)
        if self._key(kind, namespace, name) in self._objects:
            raise AlreadyExistsError(kind, namespace, name)
        stored = copy.deepcopy(obj)
        stored.setdefault("metadata", {}).pop("resourceVersion", None)
        self._insert(stored)
        self.journal.append(("create", kind, namespace, name))
        return copy.deepcopy(stored)

    async def update(self, obj: Manifest) -> Manifest:
        kind, namespace, name = object_ref(obj)
        self._raise_injected("update", kind)
        self._validate(kind, namespace, name)
        key = self._key(kind, namespace, name)
        current = self._objects.get(key)
        if current is None:
            raise NotFoundError(kind, namespace, name)
        sent_version = (obj.get("metadata") or {}).get("resourceVersion")
        current_version = current["metadata"]["resourceVersion"]
        if sent_version and sent_version != current_version:
            raise ConflictError(
                kind,
                namespace,
                name,
                f"resourceVersion {sent_version} is stale (current {current_version})",
            )
        stored = copy.deepcopy(obj)
        stored["metadata"]["uid"] = current["metadata"]["uid"]
        stored["metadata"]["resourceVersion"] = self._next_version()
        self._objects[key] = stored
        self.journal.append(("update", kind, namespace, name))
        return copy.deepcopy(stored)

    async def delete(self, obj: Manifest) -> None:
        kind, namespace, name = object_ref(obj)
        self._raise_injected("delete", kind)
        key = self._key(kind, namespace, name)
        removed = self._objects.pop(key, None)
        if removed is None:
            raise NotFoundError(kind, namespace, name)
        self.journal.append(("delete", kind, namespace, name))
        self._collect(removed["metadata"]["uid"])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _key(kind: str, namespace: str, name: str) -> _Key:
        return (kind, "" if kind in CLUSTER_SCOPED_KINDS else namespace, name)

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _insert(self, obj: Manifest) -> None:
        kind, namespace, name = object_ref(obj)
        metadata = obj.setdefault("metadata", {})
        metadata.setdefault("uid", str(uuid4()))
        metadata["resourceVersion"] = self._next_version()
        self._objects[self._key(kind, namespace, name)] = obj

    def _validate(self, kind: str, namespace: str, name: str) -> None:
        if not kind or not name:
            raise ValidationFailure(kind or "<unknown>", namespace, name, "kind and metadata.name are required")
        if kind not in CLUSTER_SCOPED_KINDS and not namespace:
            raise ValidationFailure(kind, namespace, name, "metadata.namespace is required")

    def _raise_injected(self, verb: str, kind: str) -> None:
        error = self._failures.pop((verb, kind), None)
        if error is not None:
            raise error

    def _collect(self, owner_uid: str) -> None:
        """Delete every object owned by *owner_uid*, recursively."""
        dependents = [
            key
            for key, obj in self._objects.items()
            if any(ref.get("uid") == owner_uid for ref in obj["metadata"].get("ownerReferences") or [])
        ]
        for key in dependents:
            removed = self._objects.pop(key, None)
            if removed is None:
                continue
            _log.debug("garbage_collected", kind=key[0], namespace=key[1], name=key[2])
            self.journal.append(("collect", *key))
            self._collect(removed["metadata"]["uid"])
