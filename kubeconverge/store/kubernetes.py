"""ObjectStore backed by the kubernetes-asyncio dynamic client.

API errors are translated into the kubeconverge.errors taxonomy so the
reconciler never sees transport-specific exceptions.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio.client import ApiClient  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]
from kubernetes_asyncio.dynamic import DynamicClient  # type: ignore[import-untyped]

from kubeconverge.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
    ValidationFailure,
)
from kubeconverge.store.base import (
    CLUSTER_SCOPED_KINDS,
    Manifest,
    ObjectStore,
    api_version_for,
    object_ref,
)

_log = structlog.get_logger(component="store.kubernetes")


def _api_reason(exc: ApiException) -> str:
    try:
        body = json.loads(exc.body or "{}")
    except (TypeError, ValueError):
        return ""
    return str(body.get("reason", "")) if isinstance(body, dict) else ""


def translate_api_exception(exc: ApiException, kind: str, namespace: str, name: str) -> StoreError:
    """Map an API server error response onto the store error taxonomy."""
    status = exc.status or 0
    detail = str(exc.reason or "")
    if status == 404:
        return NotFoundError(kind, namespace, name, detail)
    if status == 409:
        if _api_reason(exc) == "AlreadyExists":
            return AlreadyExistsError(kind, namespace, name, detail)
        return ConflictError(kind, namespace, name, detail)
    if status in (400, 422):
        return ValidationFailure(kind, namespace, name, detail)
    return StoreUnavailableError(kind, namespace, name, f"HTTP {status}: {detail}")


@contextmanager
def _translated(kind: str, namespace: str, name: str) -> Iterator[None]:
    try:
        yield
    except ApiException as exc:
        raise translate_api_exception(exc, kind, namespace, name) from exc
    except (aiohttp.ClientError, TimeoutError) as exc:
        raise StoreUnavailableError(kind, namespace, name, str(exc)) from exc


class KubernetesStore(ObjectStore):
    """Reads and writes live cluster objects.

    Args:
        api_client: An initialised kubernetes-asyncio ApiClient.  The store
                    does not own it; the application bootstrap closes it.
    """

    def __init__(self, api_client: ApiClient) -> None:
        self._api_client = api_client
        self._dynamic: DynamicClient | None = None
        self._resources: dict[str, Any] = {}

    async def _resource(self, kind: str) -> Any:
        if self._dynamic is None:
            with _translated(kind, "", ""):
                self._dynamic = await DynamicClient(self._api_client)
        resource = self._resources.get(kind)
        if resource is None:
            with _translated(kind, "", ""):
                resource = await self._dynamic.resources.get(api_version=api_version_for(kind), kind=kind)
            self._resources[kind] = resource
        return resource

    @staticmethod
    def _namespace_arg(kind: str, namespace: str) -> str | None:
        return None if kind in CLUSTER_SCOPED_KINDS or not namespace else namespace

    async def get(self, kind: str, namespace: str, name: str) -> Manifest:
        resource = await self._resource(kind)
        with _translated(kind, namespace, name):
            result = await resource.get(name=name, namespace=self._namespace_arg(kind, namespace))
        return result.to_dict()

    async def list(
        self,
        kind: str,
        namespace: str = "",
        labels: dict[str, str] | None = None,
    ) -> list[Manifest]:
        resource = await self._resource(kind)
        selector = ",".join(f"{k}={v}" for k, v in sorted((labels or {}).items())) or None
        with _translated(kind, namespace, ""):
            result = await resource.get(namespace=self._namespace_arg(kind, namespace), label_selector=selector)
        items: list[Manifest] = result.to_dict().get("items") or []
        for item in items:
            # List responses omit per-item kind/apiVersion.
            item.setdefault("kind", kind)
            item.setdefault("apiVersion", api_version_for(kind))
        return items

    async def create(self, obj: Manifest) -> Manifest:
        kind, namespace, name = object_ref(obj)
        resource = await self._resource(kind)
        with _translated(kind, namespace, name):
            result = await resource.create(body=obj, namespace=self._namespace_arg(kind, namespace))
        _log.debug("object_created", kind=kind, namespace=namespace, name=name)
        return result.to_dict()

    async def update(self, obj: Manifest) -> Manifest:
        kind, namespace, name = object_ref(obj)
        resource = await self._resource(kind)
        with _translated(kind, namespace, name):
            result = await resource.replace(body=obj, namespace=self._namespace_arg(kind, namespace))
        _log.debug("object_updated", kind=kind, namespace=namespace, name=name)
        return result.to_dict()

    async def delete(self, obj: Manifest) -> None:
        kind, namespace, name = object_ref(obj)
        resource = await self._resource(kind)
        with _translated(kind, namespace, name):
            await resource.delete(name=name, namespace=self._namespace_arg(kind, namespace))
        _log.debug("object_deleted", kind=kind, namespace=namespace, name=name)
