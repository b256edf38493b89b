"""Container management for n8nstack."""

from .compose import ComposeRunner
from .health import HealthChecker

__all__ = ["ComposeRunner", "HealthChecker"]
