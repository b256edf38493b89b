"""Backup creation, listing and retention for an n8n installation."""

import gzip
import logging
import os
import re
import tarfile
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..config import defaults
from ..config.environment import EnvironmentConfig
from ..config.settings import InstallPaths
from ..containers.compose import ComposeRunner
from ..utils.errors import BackupError, DockerError, ValidationError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
TIMESTAMP_PATTERN = re.compile(r"^\d{8}_\d{6}$")
DB_PREFIX = "n8n_db_"
DB_SUFFIX = ".sql.gz"
FILES_PREFIX = "n8n_files_"
FILES_SUFFIX = ".tar.gz"
ARTIFACT_PATTERN = re.compile(r"^(n8n_db_|n8n_files_)(\d{8}_\d{6})(\.sql\.gz|\.tar\.gz)$")


@dataclass
class BackupArtifact:
    """A database dump and a file archive sharing one timestamp."""

    timestamp: str
    db_dump: str
    files_archive: str

    @property
    def has_db_dump(self) -> bool:
        return os.path.exists(self.db_dump)

    @property
    def has_files_archive(self) -> bool:
        return os.path.exists(self.files_archive)

    @property
    def complete(self) -> bool:
        return self.has_db_dump and self.has_files_archive

    @property
    def missing(self) -> List[str]:
        return [path for path in (self.db_dump, self.files_archive) if not os.path.exists(path)]

    @property
    def size_bytes(self) -> int:
        return sum(os.path.getsize(p) for p in (self.db_dump, self.files_archive) if os.path.exists(p))


def validate_timestamp(timestamp: str) -> str:
    if not TIMESTAMP_PATTERN.match(timestamp or ""):
        raise ValidationError(
            f"Invalid backup timestamp: {timestamp!r}",
            suggestions=["Timestamps look like 20240131_020000", "Run 'n8nstack list-backups' to see them"],
        )
    return timestamp


class BackupManager:
    """Creates and prunes backup artifacts."""

    def __init__(
        self,
        paths: InstallPaths,
        compose: Optional[ComposeRunner] = None,
        retention_days: int = defaults.BACKUP_RETENTION_DAYS,
        clock: Callable[[], datetime] = datetime.now,
        verbose: bool = False,
    ):
        """
        Initialize backup manager.

        Args:
            paths: Installation paths
            compose: Compose runner (created when omitted)
            retention_days: Age after which artifacts are deleted
            clock: Source of the current time
            verbose: Enable verbose output
        """
        self.paths = paths
        self.verbose = verbose
        self.compose = compose or ComposeRunner(paths, verbose=verbose)
        self.retention_days = retention_days
        self.clock = clock

    def artifact(self, timestamp: str) -> BackupArtifact:
        validate_timestamp(timestamp)
        return BackupArtifact(
            timestamp=timestamp,
            db_dump=os.path.join(self.paths.backup_dir, f"{DB_PREFIX}{timestamp}{DB_SUFFIX}"),
            files_archive=os.path.join(self.paths.backup_dir, f"{FILES_PREFIX}{timestamp}{FILES_SUFFIX}"),
        )

    def list_backups(self) -> List[BackupArtifact]:
        """All timestamps with at least one artifact, newest first."""
        if not os.path.isdir(self.paths.backup_dir):
            return []

        timestamps = set()
        for name in os.listdir(self.paths.backup_dir):
            match = ARTIFACT_PATTERN.match(name)
            if match:
                timestamps.add(match.group(2))

        return [self.artifact(ts) for ts in sorted(timestamps, reverse=True)]

    def create(self) -> BackupArtifact:
        """
        Dump the database and archive the installation files.

        Returns:
            BackupArtifact: The created pair

        Raises:
            BackupError: If either half cannot be produced
        """
        env = EnvironmentConfig.load(self.paths.env_file)
        os.makedirs(self.paths.backup_dir, exist_ok=True)
        artifact = self.artifact(self.clock().strftime(TIMESTAMP_FORMAT))

        try:
            self._dump_database(env, artifact.db_dump)
            self._archive_files(artifact.files_archive)
        except (BackupError, DockerError, OSError, tarfile.TarError) as e:
            for path in (artifact.db_dump, artifact.files_archive):
                if os.path.exists(path):
                    os.remove(path)
            if isinstance(e, BackupError):
                raise
            raise BackupError(f"Backup {artifact.timestamp} failed", details=str(e)) from e

        logger.info("Backup %s created (%d bytes)", artifact.timestamp, artifact.size_bytes)
        if self.verbose:
            print(f"Created {artifact.db_dump}")
            print(f"Created {artifact.files_archive}")

        return artifact

    def _dump_database(self, env: EnvironmentConfig, target: str) -> None:
        result = self.compose.exec(
            defaults.SERVICE_DATABASE,
            ["pg_dump", "-U", env.postgres_user, "-d", env.postgres_db, "--clean", "--if-exists"],
            text=False,
        )
        if not result.stdout:
            raise BackupError("Database dump is empty", details=f"pg_dump of {env.postgres_db} returned no data")

        with gzip.open(target, "wb") as f:
            f.write(result.stdout)
        os.chmod(target, 0o600)

    def _archive_files(self, target: str) -> None:
        members = [
            defaults.ENV_FILE_NAME,
            defaults.COMPOSE_FILE_NAME,
            defaults.BOOTSTRAP_SCRIPT_NAME,
            defaults.APP_DATA_DIR_NAME,
        ]
        with tarfile.open(target, "w:gz") as tar:
            for name in members:
                path = os.path.join(self.paths.root, name)
                if os.path.exists(path):
                    tar.add(path, arcname=name)
                else:
                    logger.warning("Not archiving missing path %s", path)
        os.chmod(target, 0o600)

    def prune(self) -> List[str]:
        """
        Delete artifacts older than the retention window.

        Returns:
            List[str]: Deleted paths
        """
        if not os.path.isdir(self.paths.backup_dir):
            return []

        cutoff = self.clock().timestamp() - self.retention_days * 86400
        deleted = []
        for name in sorted(os.listdir(self.paths.backup_dir)):
            if not ARTIFACT_PATTERN.match(name):
                continue
            path = os.path.join(self.paths.backup_dir, name)
            if os.path.getmtime(path) < cutoff:
                os.remove(path)
                deleted.append(path)

        if deleted:
            logger.info("Pruned %d backup artifacts older than %d days", len(deleted), self.retention_days)
        return deleted

    def run(self) -> Dict[str, object]:
        """Create a backup, then apply retention."""
        started = time.monotonic()
        artifact = self.create()
        deleted = self.prune()
        return {
            "artifact": artifact,
            "deleted": deleted,
            "duration_seconds": round(time.monotonic() - started, 1),
        }
