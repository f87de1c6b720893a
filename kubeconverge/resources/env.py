"""Environment entries injected into every managed workload.

Merge order for a component's main container:
    1. the entries declared in the specification section;
    2. the exec timeout, which overrides a declared entry of the same name;
    3. proxy settings from the process configuration, which never override.
"""

from __future__ import annotations

from typing import Any

from kubeconverge.config import HTTP_PROXY_VAR, HTTPS_PROXY_VAR, NO_PROXY_VAR
from kubeconverge.models.config import ProcessConfig
from kubeconverge.models.spec import ComponentSpec

EnvVar = dict[str, Any]

EXEC_TIMEOUT_ENV = "ARGOCD_EXEC_TIMEOUT"


def env_merge(existing: list[EnvVar], merge: list[EnvVar], override: bool) -> list[EnvVar]:
    """Merge *merge* into *existing* by entry name.

    Entries of *existing* keep their order; new names are appended in the
    order of *merge*.  A name present in both keeps the existing entry unless
    *override* is set, in which case the merged entry replaces it in place.
    """
    result = [dict(e) for e in existing]
    index = {e["name"]: i for i, e in enumerate(result)}
    for entry in merge:
        position = index.get(entry["name"])
        if position is None:
            index[entry["name"]] = len(result)
            result.append(dict(entry))
        elif override:
            result[position] = dict(entry)
    return result


def proxy_env_vars(process: ProcessConfig, *existing: EnvVar) -> list[EnvVar]:
    """Append the proxy settings that are set in *process* to *existing*.

    Entries already present win.
    """
    proxies = [
        {"name": var, "value": value}
        for var, value in (
            (HTTP_PROXY_VAR, process.http_proxy),
            (HTTPS_PROXY_VAR, process.https_proxy),
            (NO_PROXY_VAR, process.no_proxy),
        )
        if value
    ]
    return env_merge(list(existing), proxies, override=False)


def component_env(component: ComponentSpec, process: ProcessConfig) -> list[EnvVar]:
    """Full environment for a component's main container."""
    env = [dict(e) for e in component.env]
    if component.exec_timeout is not None:
        # The only merge step where the computed value beats a declared one.
        env = env_merge(env, [{"name": EXEC_TIMEOUT_ENV, "value": str(component.exec_timeout)}], override=True)
    return proxy_env_vars(process, *env)
