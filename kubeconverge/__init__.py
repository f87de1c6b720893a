"""kubeconverge: reconciliation controller for ArgoCD specification objects."""

__version__ = "0.3.0"
