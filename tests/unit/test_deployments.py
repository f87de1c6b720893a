"""Unit tests for the Deployment builders."""

from __future__ import annotations

from typing import Any

import pytest

from kubeconverge.models.config import ProcessConfig
from kubeconverge.models.spec import ComponentSpec, HASpec, NodePlacement, Specification
from kubeconverge.resources.deployments import (
    WORKLOAD_BUILDERS,
    build_dex_server,
    build_redis,
    build_redis_ha_proxy,
    build_repo_server,
    build_server,
    combine_image_tag,
    repo_server_default_volumes,
    server_command,
    server_default_volume_mounts,
    server_default_volumes,
)

_PROCESS = ProcessConfig()


def _spec(**kwargs: Any) -> Specification:
    return Specification(name="example", namespace="tools", **kwargs)


def _pod(obj: dict[str, Any]) -> dict[str, Any]:
    return obj["spec"]["template"]["spec"]


class TestImages:
    @pytest.mark.parametrize(
        ("image", "tag", "expected"),
        [
            ("repo/img", "v1", "repo/img:v1"),
            ("repo/img", "sha256:abcd", "repo/img@sha256:abcd"),
            ("repo/img", "", "repo/img"),
        ],
    )
    def test_combine_image_tag(self, image: str, tag: str, expected: str) -> None:
        assert combine_image_tag(image, tag) == expected

    def test_defaults(self) -> None:
        spec = _spec()
        assert _pod(build_server(spec, _PROCESS))["containers"][0]["image"] == "quay.io/argoproj/argocd:v2.0.5"
        assert _pod(build_dex_server(spec, _PROCESS))["containers"][0]["image"] == "ghcr.io/dexidp/dex:v2.28.1"
        assert _pod(build_redis(spec, _PROCESS))["containers"][0]["image"] == "redis:6.2.4-alpine"
        assert _pod(build_redis_ha_proxy(spec, _PROCESS))["containers"][0]["image"] == "haproxy:2.0.25-alpine"

    def test_main_image_drives_server_repo_and_dex_init(self) -> None:
        spec = _spec(image="mirror/argocd", version="v2.2.0")
        expected = "mirror/argocd:v2.2.0"
        assert _pod(build_server(spec, _PROCESS))["containers"][0]["image"] == expected
        assert _pod(build_repo_server(spec, _PROCESS))["containers"][0]["image"] == expected
        assert _pod(build_dex_server(spec, _PROCESS))["initContainers"][0]["image"] == expected

    def test_repo_section_overrides_main_image(self) -> None:
        spec = _spec(image="mirror/argocd", version="v2.2.0", repo=ComponentSpec(version="v2.3.0"))
        assert _pod(build_repo_server(spec, _PROCESS))["containers"][0]["image"] == "mirror/argocd:v2.3.0"


class TestServerCommand:
    def test_peer_addresses(self) -> None:
        command = server_command(_spec())
        assert command == [
            "argocd-server",
            "--staticassets",
            "/shared/app",
            "--dex-server",
            "http://example-dex-server.tools.svc.cluster.local:5556",
            "--repo-server",
            "example-repo-server.tools.svc.cluster.local:8081",
            "--redis",
            "example-redis.tools.svc.cluster.local:6379",
            "--loglevel",
            "info",
            "--logformat",
            "text",
        ]

    def test_insecure_prepended(self) -> None:
        command = server_command(_spec(server=ComponentSpec(insecure=True)))
        assert command[:2] == ["argocd-server", "--insecure"]

    def test_ha_routes_redis_through_balancer(self) -> None:
        command = server_command(_spec(ha=HASpec(enabled=True)))
        assert command[command.index("--redis") + 1] == "example-redis-ha-haproxy.tools.svc.cluster.local:6379"

    def test_log_settings(self) -> None:
        command = server_command(_spec(server=ComponentSpec(log_level="debug", log_format="json")))
        assert command[-4:] == ["--loglevel", "debug", "--logformat", "json"]


class TestBuilders:
    def test_names_and_selectors(self) -> None:
        for identifier, builder in WORKLOAD_BUILDERS.items():
            obj = builder(_spec(), _PROCESS)
            name = f"example-{identifier}"
            assert obj["metadata"]["name"] == name
            assert obj["metadata"]["namespace"] == "tools"
            assert obj["spec"]["selector"]["matchLabels"] == {"app.kubernetes.io/name": name}
            assert obj["spec"]["template"]["metadata"]["labels"] == {"app.kubernetes.io/name": name}

    def test_fixed_volumes(self) -> None:
        repo = _pod(build_repo_server(_spec(), _PROCESS))
        assert repo["volumes"] == repo_server_default_volumes()
        assert len(repo["volumes"]) == 5
        server = _pod(build_server(_spec(), _PROCESS))
        assert server["volumes"] == server_default_volumes()
        assert server["containers"][0]["volumeMounts"] == server_default_volume_mounts()

    def test_tls_secret_volume_is_optional(self) -> None:
        volumes = {v["name"]: v for v in repo_server_default_volumes()}
        assert volumes["argocd-repo-server-tls"]["secret"] == {
            "secretName": "argocd-repo-server-tls",
            "optional": True,
        }

    def test_resources_copied_verbatim(self) -> None:
        resources = {"requests": {"cpu": "250m"}, "limits": {"memory": "1Gi"}}
        dex = _pod(build_dex_server(_spec(dex=ComponentSpec(resources=resources)), _PROCESS))
        assert dex["containers"][0]["resources"] == resources
        assert dex["initContainers"][0]["resources"] == resources
        assert dex["containers"][0]["resources"] is not resources

    def test_no_resources_key_when_unset(self) -> None:
        assert "resources" not in _pod(build_redis(_spec(), _PROCESS))["containers"][0]

    def test_node_placement_copied(self) -> None:
        placement = NodePlacement(node_selector={"zone": "a"}, tolerations=[{"key": "k", "operator": "Exists"}])
        for builder in WORKLOAD_BUILDERS.values():
            pod = _pod(builder(_spec(node_placement=placement), _PROCESS))
            assert pod["nodeSelector"] == {"zone": "a"}
            assert pod["tolerations"] == [{"key": "k", "operator": "Exists"}]

    def test_service_accounts(self) -> None:
        assert _pod(build_server(_spec(), _PROCESS))["serviceAccountName"] == "example-server"
        assert _pod(build_dex_server(_spec(), _PROCESS))["serviceAccountName"] == "example-dex-server"
        assert _pod(build_redis_ha_proxy(_spec(), _PROCESS))["serviceAccountName"] == "example-redis-ha"

    def test_proxies_on_every_container(self) -> None:
        process = ProcessConfig(http_proxy="p:1")
        for builder in WORKLOAD_BUILDERS.values():
            pod = _pod(builder(_spec(), process))
            for container in pod.get("initContainers", []) + pod["containers"]:
                assert {"name": "HTTP_PROXY", "value": "p:1"} in container["env"], container["name"]

    def test_builders_are_pure(self) -> None:
        spec = _spec(server=ComponentSpec(env=[{"name": "A", "value": "1"}]))
        assert build_server(spec, _PROCESS) == build_server(spec, _PROCESS)
        obj = build_server(spec, _PROCESS)
        _pod(obj)["containers"][0]["env"][0]["value"] = "mutated"
        assert spec.server.env[0]["value"] == "1"
