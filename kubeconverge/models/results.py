"""Outcome records produced by a reconciliation pass."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class Presence(StrEnum):
    """Existence decision for one managed role or workload.

    Computed once from the feature flags at the top of a role's or workload's
    reconciliation and consumed by the generic apply step.
    """

    ABSENT = "absent"
    PRESENT = "present"
    PRESENT_WITH_OVERRIDES = "present_with_overrides"

    @property
    def exists(self) -> bool:
        return self is not Presence.ABSENT

    @classmethod
    def evaluate(cls, enabled: bool, has_overrides: bool = False) -> Presence:
        if not enabled:
            return cls.ABSENT
        return cls.PRESENT_WITH_OVERRIDES if has_overrides else cls.PRESENT


class Action(StrEnum):
    """What a pass did to one managed object."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


_WRITES = frozenset({Action.CREATED, Action.UPDATED, Action.DELETED})


@dataclass(frozen=True)
class ResourceAction:
    kind: str
    namespace: str
    name: str
    action: Action
    changed_fields: tuple[str, ...] = ()
    # Desired state carried user overrides from the specification section.
    overrides: bool = False


@dataclass
class PassResult:
    """Every action taken during one pass for one specification."""

    namespace: str
    name: str
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    actions: list[ResourceAction] = field(default_factory=list)
    spec_found: bool = True
    error: str = ""

    def record(
        self,
        kind: str,
        namespace: str,
        name: str,
        action: Action,
        changed_fields: tuple[str, ...] = (),
        overrides: bool = False,
    ) -> None:
        self.actions.append(ResourceAction(kind, namespace, name, action, changed_fields, overrides))

    @property
    def writes(self) -> list[ResourceAction]:
        return [a for a in self.actions if a.action in _WRITES]

    def to_dict(self) -> dict[str, object]:
        return {
            "namespace": self.namespace,
            "name": self.name,
            "started_at": self.started_at.isoformat(),
            "spec_found": self.spec_found,
            "error": self.error,
            "writes": len(self.writes),
            "actions": [
                {
                    "kind": a.kind,
                    "namespace": a.namespace,
                    "name": a.name,
                    "action": a.action.value,
                    "changed_fields": list(a.changed_fields),
                    "overrides": a.overrides,
                }
                for a in self.actions
            ],
        }
