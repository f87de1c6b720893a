"""The ArgoCD specification object and its per-component override sections.

A Specification is parsed from the raw manifest returned by the object store.
Parsing checks only what the builders rely on (types of the override fields);
anything else in the manifest is ignored.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from kubeconverge.errors import ValidationFailure

SPEC_API_VERSION = "argoproj.io/v1alpha1"
SPEC_KIND = "ArgoCD"


@dataclass(frozen=True)
class ObjectKey:
    """A (name, namespace) pair identifying one specification."""

    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class ComponentSpec:
    """Overrides for one managed component.

    Not every field applies to every component: ``insecure`` and
    ``log_format`` are read only for the API server, ``exec_timeout`` only
    for the repo server.
    """

    image: str = ""
    version: str = ""
    env: list[dict[str, Any]] = field(default_factory=list)
    resources: dict[str, Any] | None = None
    log_level: str = ""
    log_format: str = ""
    insecure: bool = False
    exec_timeout: int | None = None

    def has_overrides(self) -> bool:
        return bool(self.image or self.version or self.env or self.resources or self.exec_timeout is not None)


@dataclass
class HASpec:
    """High-availability cache settings."""

    enabled: bool = False
    proxy: ComponentSpec = field(default_factory=ComponentSpec)


@dataclass
class NodePlacement:
    node_selector: dict[str, str] = field(default_factory=dict)
    tolerations: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class Specification:
    """Desired state for one ArgoCD instance."""

    name: str
    namespace: str
    uid: str = ""
    image: str = ""
    version: str = ""
    server: ComponentSpec = field(default_factory=ComponentSpec)
    repo: ComponentSpec = field(default_factory=ComponentSpec)
    dex: ComponentSpec = field(default_factory=ComponentSpec)
    redis: ComponentSpec = field(default_factory=ComponentSpec)
    ha: HASpec = field(default_factory=HASpec)
    node_placement: NodePlacement | None = None

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(name=self.name, namespace=self.namespace)

    def owner_reference(self) -> dict[str, Any]:
        """Controller owner reference pointing at this specification."""
        return {
            "apiVersion": SPEC_API_VERSION,
            "kind": SPEC_KIND,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }

    @classmethod
    def from_manifest(cls, manifest: dict[str, Any]) -> Specification:
        """Parse an ``ArgoCD`` manifest.

        Raises:
            ValidationFailure: if an override section has the wrong shape.
        """
        metadata = manifest.get("metadata") or {}
        name = str(metadata.get("name", ""))
        namespace = str(metadata.get("namespace", ""))
        if not name or not namespace:
            raise ValidationFailure(SPEC_KIND, namespace, name, "metadata.name and metadata.namespace are required")

        parser = _SectionParser(name, namespace)
        raw = parser.mapping(manifest, "spec")
        ha = parser.mapping(raw, "ha")
        placement = raw.get("nodePlacement")

        return cls(
            name=name,
            namespace=namespace,
            uid=str(metadata.get("uid", "")),
            image=parser.string(raw, "image"),
            version=parser.string(raw, "version"),
            server=parser.component(raw, "server"),
            repo=parser.component(raw, "repo"),
            dex=parser.component(raw, "dex"),
            redis=parser.component(raw, "redis"),
            ha=HASpec(
                enabled=parser.boolean(ha, "enabled"),
                proxy=ComponentSpec(
                    image=parser.string(ha, "redisProxyImage"),
                    version=parser.string(ha, "redisProxyVersion"),
                    resources=parser.optional_mapping(ha, "resources"),
                ),
            ),
            node_placement=None if placement is None else parser.placement(raw),
        )


class _SectionParser:
    """Typed field access that reports the offending path on failure."""

    def __init__(self, name: str, namespace: str) -> None:
        self._name = name
        self._namespace = namespace

    def _fail(self, path: str, expected: str) -> ValidationFailure:
        return ValidationFailure(SPEC_KIND, self._namespace, self._name, f"{path}: expected {expected}")

    def mapping(self, raw: dict[str, Any], key: str) -> dict[str, Any]:
        value = raw.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise self._fail(key, "object")
        return value

    def optional_mapping(self, raw: dict[str, Any], key: str) -> dict[str, Any] | None:
        value = raw.get(key)
        if value is None:
            return None
        if not isinstance(value, dict):
            raise self._fail(key, "object")
        return copy.deepcopy(value)

    def string(self, raw: dict[str, Any], key: str) -> str:
        value = raw.get(key, "")
        if value is None:
            return ""
        if not isinstance(value, str):
            raise self._fail(key, "string")
        return value

    def boolean(self, raw: dict[str, Any], key: str) -> bool:
        value = raw.get(key, False)
        if not isinstance(value, bool):
            raise self._fail(key, "boolean")
        return value

    def env(self, raw: dict[str, Any], key: str) -> list[dict[str, Any]]:
        value = raw.get(key) or []
        if not isinstance(value, list):
            raise self._fail(key, "list")
        for entry in value:
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str) or not entry["name"]:
                raise self._fail(key, "list of {name, value} entries")
        return copy.deepcopy(value)

    def component(self, raw: dict[str, Any], key: str) -> ComponentSpec:
        section = self.mapping(raw, key)
        timeout = section.get("execTimeout")
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, int)):
            raise self._fail(f"{key}.execTimeout", "integer")
        insecure = section.get("insecure", False)
        if not isinstance(insecure, bool):
            raise self._fail(f"{key}.insecure", "boolean")
        return ComponentSpec(
            image=self.string(section, "image"),
            version=self.string(section, "version"),
            env=self.env(section, "env"),
            resources=self.optional_mapping(section, "resources"),
            log_level=self.string(section, "logLevel"),
            log_format=self.string(section, "logFormat"),
            insecure=insecure,
            exec_timeout=timeout,
        )

    def placement(self, raw: dict[str, Any]) -> NodePlacement:
        section = self.mapping(raw, "nodePlacement")
        selector = section.get("nodeSelector") or {}
        tolerations = section.get("tolerations") or []
        if not isinstance(selector, dict):
            raise self._fail("nodePlacement.nodeSelector", "object")
        if not isinstance(tolerations, list):
            raise self._fail("nodePlacement.tolerations", "list")
        return NodePlacement(
            node_selector={str(k): str(v) for k, v in selector.items()},
            tolerations=copy.deepcopy(tolerations),
        )
