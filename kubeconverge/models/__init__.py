"""Core data structures for kubeconverge."""

from kubeconverge.models.config import (
    APIConfig,
    ControllerConfig,
    KubeConvergeConfig,
    LogConfig,
    ProcessConfig,
)
from kubeconverge.models.results import Action, PassResult, Presence, ResourceAction
from kubeconverge.models.spec import (
    SPEC_API_VERSION,
    SPEC_KIND,
    ComponentSpec,
    HASpec,
    NodePlacement,
    ObjectKey,
    Specification,
)

__all__ = [
    "APIConfig",
    "Action",
    "ComponentSpec",
    "ControllerConfig",
    "HASpec",
    "KubeConvergeConfig",
    "LogConfig",
    "NodePlacement",
    "ObjectKey",
    "PassResult",
    "Presence",
    "ProcessConfig",
    "ResourceAction",
    "SPEC_API_VERSION",
    "SPEC_KIND",
    "Specification",
]
