"""Logging helpers shared by every kubeconverge component."""

from kubeconverge.observability.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
