"""Operators for a running installation."""

from .maintenance import MaintenanceManager
from .upgrade import Upgrader, validate_version
from .workers import WorkerManager

__all__ = ["MaintenanceManager", "Upgrader", "WorkerManager", "validate_version"]
