"""Version upgrade of a running installation."""

import logging
import re
from typing import Any, Dict, Optional

from ..backup.manager import BackupManager
from ..config import defaults
from ..config.environment import EnvironmentStore
from ..config.settings import InstallPaths
from ..containers.compose import ComposeRunner
from ..orchestration.sequencer import OrchestrationSequencer
from ..render.emitter import ConfigurationEmitter
from ..render.topology import build_topology
from ..utils.errors import DockerError, ValidationError

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"^(latest|next|\d+\.\d+\.\d+)$")


def validate_version(version: str) -> str:
    version = (version or "").strip()
    if not VERSION_PATTERN.match(version):
        raise ValidationError(
            f"Invalid version: {version!r}",
            suggestions=["Use 'latest', 'next' or a release number such as 1.64.0"],
        )
    return version


class Upgrader:
    """Moves the installation to another application version."""

    def __init__(
        self,
        paths: InstallPaths,
        compose: Optional[ComposeRunner] = None,
        store: Optional[EnvironmentStore] = None,
        emitter: Optional[ConfigurationEmitter] = None,
        backups: Optional[BackupManager] = None,
        sequencer: Optional[OrchestrationSequencer] = None,
        verbose: bool = False,
    ):
        self.paths = paths
        self.verbose = verbose
        self.compose = compose or ComposeRunner(paths, verbose=verbose)
        self.store = store or EnvironmentStore(paths.env_file, verbose=verbose)
        self.emitter = emitter or ConfigurationEmitter(paths, verbose=verbose)
        self.backups = backups or BackupManager(paths, compose=self.compose, verbose=verbose)
        self.sequencer = sequencer or OrchestrationSequencer(paths, compose=self.compose, verbose=verbose)

    def current_version(self) -> str:
        """
        Ask the running application binary for its version.

        Raises:
            DockerError: If the application container does not answer
        """
        result = self.compose.exec(defaults.SERVICE_MAIN, ["n8n", "--version"])
        version = (result.stdout or "").strip().splitlines()
        if not version:
            raise DockerError("The application did not report a version")
        return version[-1].strip()

    def check_connectivity(self) -> bool:
        """Outbound reachability from inside the application container."""
        try:
            result = self.compose.exec(
                defaults.SERVICE_MAIN,
                ["wget", "-q", "--spider", "--timeout=10", defaults.CONNECTIVITY_CHECK_URL],
                check=False,
            )
        except DockerError as e:
            logger.warning("Connectivity check could not run: %s", e.message)
            return False

        if result.returncode != 0:
            logger.warning("The application cannot reach %s", defaults.CONNECTIVITY_CHECK_URL)
            return False
        return True

    def upgrade(self, target: str) -> Dict[str, Any]:
        """
        Back up, switch the version pin, and restart with readiness checks.

        Args:
            target: Release number or 'latest'/'next'

        Returns:
            Dict[str, Any]: Versions before and after, backup timestamp, connectivity
        """
        target = validate_version(target)

        try:
            before = self.current_version()
        except DockerError as e:
            logger.warning("Could not query the current version: %s", e.message)
            before = "unknown"

        backup = self.backups.create()
        if self.verbose:
            print(f"Pre-upgrade backup: {backup.timestamp}")

        env = self.store.load()
        self.compose.down()

        env = self.store.update(env, {"N8N_VERSION": target})
        topology = build_topology(env)
        self.emitter.write_manifest(env, topology)

        self.compose.pull()
        self.sequencer.start(topology)
        self.sequencer.wait_until_ready(env, topology)

        after = self.current_version()
        connectivity = self.check_connectivity()
        self.compose.prune_images()

        logger.info("Upgraded from %s to %s", before, after)
        return {
            "before": before,
            "after": after,
            "target": target,
            "backup": backup.timestamp,
            "connectivity": connectivity,
        }
