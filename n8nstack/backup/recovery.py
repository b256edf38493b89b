"""Restore of a backup artifact pair over a running installation."""

import gzip
import logging
import os
import shutil
import tarfile
from typing import Any, Dict, Optional

from ..config import defaults
from ..config.environment import EnvironmentConfig
from ..config.settings import InstallPaths
from ..containers.compose import ComposeRunner
from ..orchestration.sequencer import OrchestrationSequencer
from ..render.topology import build_topology
from ..utils.errors import BackupError
from ..utils.files import FileManager
from .manager import BackupArtifact, BackupManager

logger = logging.getLogger(__name__)


def check_members(tar: tarfile.TarFile, root: str) -> None:
    """
    Refuse archives whose members would land outside ``root``.

    Raises:
        BackupError: On absolute or escaping paths, links leaving root, or device files
    """
    root = os.path.realpath(root)
    for member in tar.getmembers():
        if member.isdev():
            raise BackupError(f"Archive member {member.name} is a device file")

        targets = [member.name]
        if member.issym():
            targets.append(os.path.join(os.path.dirname(member.name), member.linkname))
        elif member.islnk():
            targets.append(member.linkname)

        for name in targets:
            if os.path.isabs(name):
                raise BackupError(f"Archive member {member.name} has an absolute path")
            resolved = os.path.realpath(os.path.join(root, name))
            if os.path.commonpath([root, resolved]) != root:
                raise BackupError(f"Archive member {member.name} points outside {root}")


class RecoveryManager:
    """Replaces the live installation with a backup."""

    def __init__(
        self,
        paths: InstallPaths,
        compose: Optional[ComposeRunner] = None,
        sequencer: Optional[OrchestrationSequencer] = None,
        backups: Optional[BackupManager] = None,
        verbose: bool = False,
    ):
        """
        Initialize recovery manager.

        Args:
            paths: Installation paths
            compose: Compose runner (created when omitted)
            sequencer: Used to wait for the database and to start the topology
            backups: Backup manager locating artifacts
            verbose: Enable verbose output
        """
        self.paths = paths
        self.verbose = verbose
        self.compose = compose or ComposeRunner(paths, verbose=verbose)
        self.sequencer = sequencer or OrchestrationSequencer(paths, compose=self.compose, verbose=verbose)
        self.backups = backups or BackupManager(paths, compose=self.compose, verbose=verbose)
        self.file_manager = FileManager(verbose=verbose)

    def verify(self, timestamp: str) -> BackupArtifact:
        """
        Check that both halves of a backup exist and are readable.

        Raises:
            ValidationError: On a malformed timestamp
            BackupError: If either half is missing or unreadable
        """
        artifact = self.backups.artifact(timestamp)

        if not artifact.complete:
            raise BackupError(
                f"Backup {timestamp} is incomplete, refusing to restore",
                details="Missing: " + ", ".join(artifact.missing),
                suggestions=["Run 'n8nstack list-backups' to see complete backups"],
            )

        if not tarfile.is_tarfile(artifact.files_archive):
            raise BackupError(f"File archive of backup {timestamp} is not a valid tar archive")

        try:
            with tarfile.open(artifact.files_archive, "r:gz") as tar:
                check_members(tar, self.paths.root)
        except (tarfile.TarError, OSError) as e:
            raise BackupError(f"File archive of backup {timestamp} is unreadable", details=str(e)) from e

        return artifact

    def restore(self, timestamp: str) -> Dict[str, Any]:
        """
        Restore a backup. Nothing is touched until both halves are verified.

        Args:
            timestamp: Backup timestamp key

        Returns:
            Dict[str, Any]: Restore report
        """
        artifact = self.verify(timestamp)

        if self.verbose:
            print("Stopping all services")
        self.compose.down()

        self._extract_files(artifact)
        env = EnvironmentConfig.load(self.paths.env_file)

        if self.verbose:
            print("Starting database")
        self.compose.up(services=[defaults.SERVICE_DATABASE])
        self.sequencer.wait_for_services({defaults.SERVICE_DATABASE: 1})

        self._replay_database(env, artifact)

        topology = build_topology(env)
        self.sequencer.start(topology)

        logger.info("Backup %s restored", timestamp)
        return {"timestamp": timestamp, "services": topology.service_names}

    def _extract_files(self, artifact: BackupArtifact) -> None:
        if os.path.isdir(self.paths.app_data_dir):
            shutil.rmtree(self.paths.app_data_dir)

        try:
            with tarfile.open(artifact.files_archive, "r:gz") as tar:
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(self.paths.root, filter="data")
                else:
                    tar.extractall(self.paths.root)
        except (tarfile.TarError, OSError) as e:
            raise BackupError(f"Could not extract {artifact.files_archive}", details=str(e)) from e

        os.chmod(self.paths.env_file, 0o600)
        if os.path.isdir(self.paths.app_data_dir):
            self.file_manager.chown_tree(self.paths.app_data_dir, defaults.APP_UID, defaults.APP_GID)

    def _replay_database(self, env: EnvironmentConfig, artifact: BackupArtifact) -> None:
        with gzip.open(artifact.db_dump, "rb") as f:
            dump = f.read()

        if self.verbose:
            print(f"Replaying database dump into {env.postgres_db}")

        self.compose.exec(
            defaults.SERVICE_DATABASE,
            ["psql", "-U", env.postgres_user, "-d", env.postgres_db, "-v", "ON_ERROR_STOP=1", "-q"],
            input=dump,
            text=False,
        )
