"""Error taxonomy for object store access and reconciliation passes.

StoreError             -- base class for every object store failure.
NotFoundError          -- the object does not exist (expected, not a fault).
AlreadyExistsError     -- create raced with another writer.
ConflictError          -- update carried a stale resourceVersion.
ValidationFailure      -- the object was rejected as malformed; fatal to the pass.
StoreUnavailableError  -- transient transport or server failure.
ReconcileError         -- a store error annotated with the step that failed.

No layer in this package retries.  ``retryable`` tells the external scheduler
whether a later pass has a chance of succeeding.
"""

from __future__ import annotations


class StoreError(Exception):
    """Raised by an ObjectStore when a call cannot be completed."""

    retryable: bool = True

    def __init__(self, kind: str, namespace: str, name: str, detail: str = "") -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.detail = detail
        super().__init__(self._format())

    def _format(self) -> str:
        where = f"{self.kind} {self.namespace}/{self.name}" if self.namespace else f"{self.kind} {self.name}"
        label = type(self).__name__
        return f"{label}: {where}: {self.detail}" if self.detail else f"{label}: {where}"


class NotFoundError(StoreError):
    """The requested object does not (yet) exist."""


class AlreadyExistsError(StoreError):
    """Create was called for a name that is already taken."""


class ConflictError(StoreError):
    """Update was rejected because the caller's resourceVersion is stale."""


class ValidationFailure(StoreError):
    """The object is malformed; writing it again unchanged cannot succeed."""

    retryable = False


class StoreUnavailableError(StoreError):
    """The store could not be reached or answered with a server error."""


class ReconcileError(Exception):
    """Raised when a reconciliation step fails.

    Steps already applied are left in place; names and desired state are
    deterministic, so the next pass picks up where this one stopped.
    """

    def __init__(self, step: str, cause: Exception) -> None:
        super().__init__(f"error reconciling {step}: {cause}")
        self.step = step
        self.cause = cause

    @property
    def retryable(self) -> bool:
        return bool(getattr(self.cause, "retryable", False))
