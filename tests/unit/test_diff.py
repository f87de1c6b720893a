"""Unit tests for the (kind, field group) diff policy table."""

from __future__ import annotations

import copy
from typing import Any

from kubeconverge.models.config import ProcessConfig
from kubeconverge.models.spec import ComponentSpec, NodePlacement, Specification
from kubeconverge.reconcile.diff import (
    POLICIES,
    WriteMode,
    converge,
    covers,
    placement_equal,
    pod_spec,
    policies_for,
    update_node_placement,
)
from kubeconverge.resources.deployments import build_dex_server, build_server

_SPEC = Specification(name="example", namespace="tools", uid="uid-1")


def _server(spec: Specification = _SPEC, process: ProcessConfig | None = None) -> dict[str, Any]:
    return build_server(spec, process or ProcessConfig())


def _with_placement(selector: dict[str, str], tolerations: list[dict[str, Any]]) -> dict[str, Any]:
    spec = Specification(
        name="example",
        namespace="tools",
        node_placement=NodePlacement(node_selector=selector, tolerations=tolerations),
    )
    return _server(spec)


# ---------------------------------------------------------------------------
# covers
# ---------------------------------------------------------------------------


class TestCovers:
    def test_extra_live_keys_are_tolerated(self) -> None:
        assert covers({"containerPort": 80, "protocol": "TCP"}, {"containerPort": 80})

    def test_missing_key_is_drift(self) -> None:
        assert not covers({"containerPort": 80}, {"containerPort": 80, "name": "http"})

    def test_lists_must_match_in_length_and_order(self) -> None:
        assert covers([{"a": 1, "b": 2}], [{"a": 1}])
        assert not covers([{"a": 1}, {"a": 2}], [{"a": 1}])
        assert not covers([{"a": 2}, {"a": 1}], [{"a": 1}, {"a": 2}])

    def test_scalars_compare_equal(self) -> None:
        assert covers("x", "x")
        assert not covers(None, "x")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_deployment_groups_in_order(self) -> None:
        assert [p.group for p in policies_for("Deployment")] == [
            "containers",
            "image",
            "command",
            "ports_probes",
            "resources",
            "env",
            "volumes",
            "placement",
            "service_account",
        ]

    def test_env_is_the_only_merge_group(self) -> None:
        merge = [key for key, p in POLICIES.items() if p.mode is WriteMode.MERGE]
        assert merge == [("Deployment", "env")]

    def test_rbac_rules_registered(self) -> None:
        assert [p.group for p in policies_for("Role")] == ["rules"]
        assert [p.group for p in policies_for("ClusterRole")] == ["rules"]
        assert policies_for("ServiceAccount") == []


# ---------------------------------------------------------------------------
# converge
# ---------------------------------------------------------------------------


class TestConverge:
    def test_identical_reports_nothing(self) -> None:
        live = _server()
        assert converge("Deployment", live, _server()) == ()

    def test_several_groups_reported_once_each(self) -> None:
        live = _server()
        container = pod_spec(live)["containers"][0]
        container["image"] = "old:1"
        container["command"] = ["old"]
        pod_spec(live)["serviceAccountName"] = "default"

        changed = converge("Deployment", live, _server())

        assert changed == ("image", "command", "service_account")
        assert converge("Deployment", live, _server()) == ()

    def test_env_merge_keeps_live_only_entries(self) -> None:
        live = _server()
        pod_spec(live)["containers"][0]["env"] = [{"name": "EXTRA", "value": "1"}]
        desired = _server(process=ProcessConfig(http_proxy="p:1"))

        assert converge("Deployment", live, desired) == ("env",)
        assert pod_spec(live)["containers"][0]["env"] == [
            {"name": "EXTRA", "value": "1"},
            {"name": "HTTP_PROXY", "value": "p:1"},
        ]

    def test_env_desired_value_wins(self) -> None:
        live = _server(process=ProcessConfig(http_proxy="old:1"))
        desired = _server(process=ProcessConfig(http_proxy="new:2"))

        assert converge("Deployment", live, desired) == ("env",)
        assert pod_spec(live)["containers"][0]["env"] == [{"name": "HTTP_PROXY", "value": "new:2"}]

    def test_empty_env_value_omitted_by_server_is_not_drift(self) -> None:
        server = ComponentSpec(env=[{"name": "FOO", "value": ""}])
        spec = Specification(name="example", namespace="tools", server=server)
        live = _server(spec)
        pod_spec(live)["containers"][0]["env"] = [{"name": "FOO"}]

        assert converge("Deployment", live, _server(spec)) == ()

    def test_value_from_is_compared(self) -> None:
        ref = {"secretKeyRef": {"name": "creds", "key": "token"}}
        server = ComponentSpec(env=[{"name": "FOO", "valueFrom": ref}])
        spec = Specification(name="example", namespace="tools", server=server)
        live = _server(spec)
        pod_spec(live)["containers"][0]["env"] = [{"name": "FOO"}]

        assert converge("Deployment", live, _server(spec)) == ("env",)

    def test_container_set_replaced_wholesale(self) -> None:
        live = _server()
        pod_spec(live)["containers"].append({"name": "sidecar", "image": "busybox"})
        desired = _server()

        changed = converge("Deployment", live, desired)

        assert changed[0] == "containers"
        assert pod_spec(live)["containers"] == pod_spec(desired)["containers"]

    def test_init_containers_compared(self) -> None:
        desired = build_dex_server(_SPEC, ProcessConfig(https_proxy="p:2"))
        live = build_dex_server(_SPEC, ProcessConfig())

        assert converge("Deployment", live, desired) == ("env",)
        assert pod_spec(live)["initContainers"][0]["env"] == [{"name": "HTTPS_PROXY", "value": "p:2"}]

    def test_resources_removed_when_unset(self) -> None:
        live = _server()
        pod_spec(live)["containers"][0]["resources"] = {"limits": {"cpu": "2"}}

        assert converge("Deployment", live, _server()) == ("resources",)
        assert "resources" not in pod_spec(live)["containers"][0]

    def test_role_rules_replaced(self) -> None:
        live = {"kind": "Role", "rules": [{"apiGroups": [""], "resources": ["pods"], "verbs": ["*"]}]}
        desired = {"kind": "Role", "rules": [{"apiGroups": [""], "resources": ["secrets"], "verbs": ["get"]}]}

        assert converge("Role", live, desired) == ("rules",)
        assert live["rules"] == desired["rules"]
        assert live["rules"] is not desired["rules"]


# ---------------------------------------------------------------------------
# Node placement
# ---------------------------------------------------------------------------


class TestNodePlacement:
    _TOLERATIONS = [{"key": "a", "operator": "Exists"}, {"key": "b", "operator": "Exists"}]

    def test_identical_is_unchanged(self) -> None:
        live = _with_placement({"zone": "a", "os": "linux"}, self._TOLERATIONS)
        desired = _with_placement({"os": "linux", "zone": "a"}, copy.deepcopy(self._TOLERATIONS))

        assert placement_equal(live, desired)
        assert update_node_placement(live, desired) is False

    def test_selector_difference_is_changed(self) -> None:
        live = _with_placement({"zone": "a"}, self._TOLERATIONS)
        desired = _with_placement({"zone": "b"}, self._TOLERATIONS)

        assert update_node_placement(live, desired) is True
        assert pod_spec(live)["nodeSelector"] == {"zone": "b"}

    def test_toleration_order_matters(self) -> None:
        live = _with_placement({}, self._TOLERATIONS)
        desired = _with_placement({}, list(reversed(self._TOLERATIONS)))

        assert update_node_placement(live, desired) is True
        assert pod_spec(live)["tolerations"] == pod_spec(desired)["tolerations"]

    def test_both_fields_overwritten_together(self) -> None:
        live = _with_placement({"zone": "a"}, self._TOLERATIONS)
        desired = _server()

        assert converge("Deployment", live, desired) == ("placement",)
        assert "nodeSelector" not in pod_spec(live)
        assert "tolerations" not in pod_spec(live)
