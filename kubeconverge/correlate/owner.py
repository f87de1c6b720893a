"""Map a changed secondary object to the specification that owns it.

Strategies are tried in order; the first whose predicate accepts the object
decides the outcome, so at most one key is returned.  Correlation never
raises: store failures are logged and the event is dropped, leaving the
periodic resync of the specification as the backstop.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from kubeconverge.errors import StoreError
from kubeconverge.models.spec import SPEC_KIND, ObjectKey
from kubeconverge.observability.logging import get_logger
from kubeconverge.resources.naming import ANNOTATION_NAME, ANNOTATION_NAMESPACE, MANAGED_BY_NAMESPACE_LABEL
from kubeconverge.store.base import Manifest, ObjectStore

_log = get_logger("correlate")

REPO_SERVER_TLS_SUFFIX = "-repo-server-tls"
REPO_SERVER_SERVICE_SUFFIX = "-repo-server"


@dataclass(frozen=True)
class Strategy:
    name: str
    applies: Callable[[Manifest], bool]
    lookup: Callable[[Manifest], Awaitable[ObjectKey | None]]


def _metadata(obj: Manifest) -> dict[str, Any]:
    return obj.get("metadata") or {}


def _annotations(obj: Manifest) -> dict[str, str]:
    return _metadata(obj).get("annotations") or {}


def _owner_refs(obj: Manifest) -> list[dict[str, Any]]:
    return _metadata(obj).get("ownerReferences") or []


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def has_correlation_annotations(obj: Manifest) -> bool:
    annotations = _annotations(obj)
    return bool(annotations.get(ANNOTATION_NAME)) and bool(annotations.get(ANNOTATION_NAMESPACE))


def is_repo_server_tls_secret(obj: Manifest) -> bool:
    return obj.get("kind") == "Secret" and _metadata(obj).get("name", "").endswith(REPO_SERVER_TLS_SUFFIX)


def is_managed_namespace(obj: Manifest) -> bool:
    labels = _metadata(obj).get("labels") or {}
    return obj.get("kind") == "Namespace" and bool(labels.get(MANAGED_BY_NAMESPACE_LABEL))


# ---------------------------------------------------------------------------
# Correlator
# ---------------------------------------------------------------------------


class OwnerCorrelator:
    """Resolves secondary objects to at most one specification key."""

    def __init__(self, store: ObjectStore) -> None:
        self._store = store
        self.strategies: list[Strategy] = [
            Strategy("direct-annotation", has_correlation_annotations, self._from_annotations),
            Strategy("indirect-secret", is_repo_server_tls_secret, self._from_tls_secret),
            Strategy("namespace-membership", is_managed_namespace, self._from_namespace),
        ]

    async def resolve(self, obj: Manifest) -> ObjectKey | None:
        meta = _metadata(obj)
        for strategy in self.strategies:
            if not strategy.applies(obj):
                continue
            try:
                key = await strategy.lookup(obj)
            except StoreError as exc:
                _log.warning(
                    "correlation_failed",
                    strategy=strategy.name,
                    kind=obj.get("kind", ""),
                    namespace=meta.get("namespace", ""),
                    name=meta.get("name", ""),
                    error=str(exc),
                )
                return None
            _log.debug(
                "correlated",
                strategy=strategy.name,
                kind=obj.get("kind", ""),
                name=meta.get("name", ""),
                target=str(key) if key else None,
            )
            return key
        return None

    async def _from_annotations(self, obj: Manifest) -> ObjectKey | None:
        annotations = _annotations(obj)
        return ObjectKey(name=annotations[ANNOTATION_NAME], namespace=annotations[ANNOTATION_NAMESPACE])

    async def _from_tls_secret(self, obj: Manifest) -> ObjectKey | None:
        """Secret -> owning Service -> owning specification, one hop each.

        A secret created by hand has no owner reference; its name annotation
        is then read against the secret's own namespace.
        """
        namespace = _metadata(obj).get("namespace", "")
        refs = _owner_refs(obj)
        if not refs:
            name = _annotations(obj).get(ANNOTATION_NAME)
            return ObjectKey(name=name, namespace=namespace) if name else None

        for ref in refs:
            if ref.get("kind") != "Service" or not ref.get("name", "").endswith(REPO_SERVER_SERVICE_SUFFIX):
                continue
            service = await self._store.get("Service", namespace, ref["name"])
            for owner in _owner_refs(service):
                if owner.get("kind") == SPEC_KIND:
                    return ObjectKey(name=owner["name"], namespace=namespace)
        return None

    async def _from_namespace(self, obj: Manifest) -> ObjectKey | None:
        """The single specification in the labelled namespace, if exactly one."""
        target = _metadata(obj)["labels"][MANAGED_BY_NAMESPACE_LABEL]
        specs = await self._store.list(SPEC_KIND, namespace=target)
        if len(specs) != 1:
            _log.debug("namespace_owner_ambiguous", namespace=target, candidates=len(specs))
            return None
        meta = specs[0]["metadata"]
        return ObjectKey(name=meta["name"], namespace=meta.get("namespace", target))
