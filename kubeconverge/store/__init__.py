"""Object store access for kubeconverge.

Submodules:
    base        -- ObjectStore ABC, kind table and manifest helpers.
    memory      -- In-process store with optimistic concurrency and owner GC.
    kubernetes  -- Store backed by the kubernetes-asyncio dynamic client.
"""

from kubeconverge.store.base import (
    CLUSTER_SCOPED_KINDS,
    KIND_API_VERSIONS,
    Manifest,
    ObjectStore,
    api_version_for,
    object_ref,
)
from kubeconverge.store.memory import MemoryStore

__all__ = [
    "CLUSTER_SCOPED_KINDS",
    "KIND_API_VERSIONS",
    "Manifest",
    "MemoryStore",
    "ObjectStore",
    "api_version_for",
    "object_ref",
]
