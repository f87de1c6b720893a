"""Convergence of live objects onto the desired state of a specification.

Submodules:
    engine     -- Reconciler: one pass per specification key.
    rbac       -- Identity, rule object and binding chain, namespaced and cluster scope.
    workloads  -- Deployment apply step gated by Presence.
    diff       -- (kind, field group) diff policy table.
    flags      -- Feature flag evaluation into Presence.
    cleanup    -- Deletion of annotated objects after the specification is gone.
"""

from kubeconverge.reconcile.engine import Reconciler

__all__ = ["Reconciler"]
