"""Configuration management for n8nstack."""

from .environment import EnvironmentConfig, EnvironmentStore
from .settings import CredentialSet, InstallationTarget, InstallPaths, TuningSettings
from .validator import ConfigValidator, TuningLoader

__all__ = [
    "ConfigValidator",
    "CredentialSet",
    "EnvironmentConfig",
    "EnvironmentStore",
    "InstallPaths",
    "InstallationTarget",
    "TuningLoader",
    "TuningSettings",
]
