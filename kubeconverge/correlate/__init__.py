"""Event-to-owner correlation for objects without a usable owner reference."""

from kubeconverge.correlate.owner import OwnerCorrelator, Strategy

__all__ = ["OwnerCorrelator", "Strategy"]
