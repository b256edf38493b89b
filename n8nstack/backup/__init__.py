"""Backup and restore."""

from .manager import BackupArtifact, BackupManager
from .recovery import RecoveryManager

__all__ = ["BackupArtifact", "BackupManager", "RecoveryManager"]
