"""Write helpers shared by the convergence steps."""

from __future__ import annotations

from kubeconverge.errors import NotFoundError
from kubeconverge.models.results import Action, PassResult
from kubeconverge.models.spec import Specification
from kubeconverge.resources.naming import set_owner_if_colocated
from kubeconverge.store.base import Manifest, ObjectStore, object_ref


async def create_owned(
    store: ObjectStore,
    spec: Specification,
    obj: Manifest,
    result: PassResult,
    overrides: bool = False,
) -> Manifest:
    """Create *obj*, owned by *spec* when they share a namespace."""
    set_owner_if_colocated(spec, obj)
    created = await store.create(obj)
    result.record(*object_ref(obj), Action.CREATED, overrides=overrides)
    return created


async def update_recorded(
    store: ObjectStore,
    obj: Manifest,
    result: PassResult,
    changed: tuple[str, ...],
    overrides: bool = False,
) -> Manifest:
    updated = await store.update(obj)
    result.record(*object_ref(obj), Action.UPDATED, changed, overrides)
    return updated


async def delete_if_present(
    store: ObjectStore,
    obj: Manifest,
    result: PassResult,
    changed: tuple[str, ...] = (),
) -> bool:
    """Delete *obj*; an object that is already gone counts as deleted.

    Returns False when there was nothing to delete.
    """
    try:
        await store.delete(obj)
    except NotFoundError:
        return False
    result.record(*object_ref(obj), Action.DELETED, changed)
    return True


def record_unchanged(obj: Manifest, result: PassResult, overrides: bool = False) -> None:
    result.record(*object_ref(obj), Action.UNCHANGED, overrides=overrides)


def record_skipped(obj: Manifest, result: PassResult) -> None:
    result.record(*object_ref(obj), Action.SKIPPED)
