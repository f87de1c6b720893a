"""Field-group diff policies keyed by (kind, field group).

Each policy pairs an equality check with an apply function that copies the
desired value onto the live object.  REPLACE policies overwrite the whole
group; MERGE policies add missing entries and keep what only the live object
has.  ``converge`` walks the policies registered for a kind in order and
reports which groups it changed, so the caller issues at most one update.

Adding a managed field means registering a policy here; the convergence
control flow does not change.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from kubeconverge.resources.env import env_merge
from kubeconverge.store.base import Manifest


class WriteMode(StrEnum):
    REPLACE = "replace"
    MERGE = "merge"


@dataclass(frozen=True)
class FieldPolicy:
    kind: str
    group: str
    mode: WriteMode
    equal: Callable[[Manifest, Manifest], bool]
    apply: Callable[[Manifest, Manifest], None]


# ---------------------------------------------------------------------------
# Pod template accessors
# ---------------------------------------------------------------------------


def pod_spec(obj: Manifest) -> dict[str, Any]:
    spec = obj.setdefault("spec", {})
    template = spec.setdefault("template", {})
    return template.setdefault("spec", {})


def _containers(obj: Manifest) -> list[dict[str, Any]]:
    """Init containers followed by regular containers."""
    spec = pod_spec(obj)
    return list(spec.get("initContainers") or []) + list(spec.get("containers") or [])


def covers(live: Any, desired: Any) -> bool:
    """True when *live* holds everything *desired* sets.

    Live objects may carry fields the API server defaults (port protocol,
    volume defaultMode, probe thresholds); those do not count as drift.
    """
    if isinstance(desired, dict):
        return isinstance(live, dict) and all(k in live and covers(live[k], v) for k, v in desired.items())
    if isinstance(desired, list):
        return isinstance(live, list) and len(live) == len(desired) and all(map(covers, live, desired))
    return live == desired


def _container_field_equal(field: str) -> Callable[[Manifest, Manifest], bool]:
    """Compare one field across containers; empty and unset are equal."""

    def equal(live: Manifest, desired: Manifest) -> bool:
        live_values = [c.get(field) or None for c in _containers(live)]
        return live_values == [c.get(field) or None for c in _containers(desired)]

    return equal


def _container_field_apply(*fields: str) -> Callable[[Manifest, Manifest], None]:
    def apply(live: Manifest, desired: Manifest) -> None:
        for live_c, desired_c in zip(_containers(live), _containers(desired), strict=True):
            for field in fields:
                if field in desired_c:
                    live_c[field] = copy.deepcopy(desired_c[field])
                else:
                    live_c.pop(field, None)

    return apply


# ---------------------------------------------------------------------------
# Deployment field groups
# ---------------------------------------------------------------------------


def _container_names(obj: Manifest) -> tuple[list[str | None], list[str | None]]:
    spec = pod_spec(obj)
    return (
        [c.get("name") for c in spec.get("initContainers") or []],
        [c.get("name") for c in spec.get("containers") or []],
    )


def _containers_equal(live: Manifest, desired: Manifest) -> bool:
    return _container_names(live) == _container_names(desired)


def _containers_apply(live: Manifest, desired: Manifest) -> None:
    live_spec, desired_spec = pod_spec(live), pod_spec(desired)
    for key in ("initContainers", "containers"):
        if key in desired_spec:
            live_spec[key] = copy.deepcopy(desired_spec[key])
        else:
            live_spec.pop(key, None)


def _ports_probes_equal(live: Manifest, desired: Manifest) -> bool:
    fields = ("ports", "livenessProbe", "readinessProbe", "args")
    return covers(
        [{f: c.get(f) for f in fields} for c in _containers(live)],
        [{f: c.get(f) for f in fields} for c in _containers(desired)],
    )


def _env_value(entry: dict[str, Any]) -> tuple[str, Any]:
    # The API server omits empty values.
    return entry.get("value") or "", entry.get("valueFrom")


def _env_equal(live: Manifest, desired: Manifest) -> bool:
    """Every desired entry is present in live with the same value."""
    for live_c, desired_c in zip(_containers(live), _containers(desired), strict=True):
        live_env = {e["name"]: _env_value(e) for e in live_c.get("env") or []}
        if any(live_env.get(e["name"]) != _env_value(e) for e in desired_c.get("env") or []):
            return False
    return True


def _env_apply(live: Manifest, desired: Manifest) -> None:
    for live_c, desired_c in zip(_containers(live), _containers(desired), strict=True):
        merged = env_merge(live_c.get("env") or [], desired_c.get("env") or [], override=True)
        if merged:
            live_c["env"] = merged


def _volumes_equal(live: Manifest, desired: Manifest) -> bool:
    if not covers(pod_spec(live).get("volumes") or [], pod_spec(desired).get("volumes") or []):
        return False
    return covers(
        [c.get("volumeMounts") or [] for c in _containers(live)],
        [c.get("volumeMounts") or [] for c in _containers(desired)],
    )


def _volumes_apply(live: Manifest, desired: Manifest) -> None:
    live_spec, desired_spec = pod_spec(live), pod_spec(desired)
    if desired_spec.get("volumes"):
        live_spec["volumes"] = copy.deepcopy(desired_spec["volumes"])
    else:
        live_spec.pop("volumes", None)
    _container_field_apply("volumeMounts")(live, desired)


def placement_equal(live: Manifest, desired: Manifest) -> bool:
    """Node selectors compare as maps, tolerations as ordered lists."""
    live_spec, desired_spec = pod_spec(live), pod_spec(desired)
    return (live_spec.get("nodeSelector") or {}) == (desired_spec.get("nodeSelector") or {}) and (
        live_spec.get("tolerations") or []
    ) == (desired_spec.get("tolerations") or [])


def placement_apply(live: Manifest, desired: Manifest) -> None:
    live_spec, desired_spec = pod_spec(live), pod_spec(desired)
    for key in ("nodeSelector", "tolerations"):
        if desired_spec.get(key):
            live_spec[key] = copy.deepcopy(desired_spec[key])
        else:
            live_spec.pop(key, None)


def update_node_placement(live: Manifest, desired: Manifest) -> bool:
    """Overwrite both placement fields of *live* when either differs.

    Returns True when *live* was changed.
    """
    if placement_equal(live, desired):
        return False
    placement_apply(live, desired)
    return True


def _service_account_equal(live: Manifest, desired: Manifest) -> bool:
    return pod_spec(live).get("serviceAccountName") == pod_spec(desired).get("serviceAccountName")


def _service_account_apply(live: Manifest, desired: Manifest) -> None:
    name = pod_spec(desired).get("serviceAccountName")
    if name:
        pod_spec(live)["serviceAccountName"] = name
    else:
        pod_spec(live).pop("serviceAccountName", None)


# ---------------------------------------------------------------------------
# RBAC field groups
# ---------------------------------------------------------------------------


def _rules_equal(live: Manifest, desired: Manifest) -> bool:
    return (live.get("rules") or []) == (desired.get("rules") or [])


def _rules_apply(live: Manifest, desired: Manifest) -> None:
    live["rules"] = copy.deepcopy(desired.get("rules") or [])


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_P = FieldPolicy
_R, _M = WriteMode.REPLACE, WriteMode.MERGE

# Order matters: "containers" replaces the container lists wholesale, after
# which the per-container groups compare like for like.
POLICIES: dict[tuple[str, str], FieldPolicy] = {
    (p.kind, p.group): p
    for p in (
        _P("Deployment", "containers", _R, _containers_equal, _containers_apply),
        _P(
            "Deployment",
            "image",
            _R,
            _container_field_equal("image"),
            _container_field_apply("image", "imagePullPolicy"),
        ),
        _P("Deployment", "command", _R, _container_field_equal("command"), _container_field_apply("command")),
        _P(
            "Deployment",
            "ports_probes",
            _R,
            _ports_probes_equal,
            _container_field_apply("ports", "livenessProbe", "readinessProbe", "args"),
        ),
        _P("Deployment", "resources", _R, _container_field_equal("resources"), _container_field_apply("resources")),
        _P("Deployment", "env", _M, _env_equal, _env_apply),
        _P("Deployment", "volumes", _R, _volumes_equal, _volumes_apply),
        _P("Deployment", "placement", _R, placement_equal, placement_apply),
        _P("Deployment", "service_account", _R, _service_account_equal, _service_account_apply),
        _P("Role", "rules", _R, _rules_equal, _rules_apply),
        _P("ClusterRole", "rules", _R, _rules_equal, _rules_apply),
    )
}


def policies_for(kind: str) -> list[FieldPolicy]:
    return [p for (k, _), p in POLICIES.items() if k == kind]


def converge(kind: str, live: Manifest, desired: Manifest) -> tuple[str, ...]:
    """Apply every differing field group of *desired* onto *live* in place.

    Returns the names of the groups that changed; empty means no write is
    warranted.
    """
    changed = []
    for policy in policies_for(kind):
        if not policy.equal(live, desired):
            policy.apply(live, desired)
            changed.append(policy.group)
    return tuple(changed)
