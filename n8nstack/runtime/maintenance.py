"""Weekly host cleanup."""

import logging
import os
from typing import Any, Dict, List, Optional

from ..utils.commands import CommandRunner
from ..utils.errors import CommandError

logger = logging.getLogger(__name__)

CLEANUP_COMMANDS: List[List[str]] = [
    ["docker", "container", "prune", "-f", "--filter", "until=168h"],
    ["docker", "image", "prune", "-f", "--filter", "until=168h"],
    ["apt-get", "autoremove", "-y"],
    ["apt-get", "clean"],
    ["journalctl", "--vacuum-time=7d"],
]


class MaintenanceManager:
    """Reclaims disk space from old containers, images, packages and journals."""

    def __init__(self, runner: Optional[CommandRunner] = None, verbose: bool = False):
        self.verbose = verbose
        self.runner = runner or CommandRunner(verbose=verbose)

    def cleanup(self) -> Dict[str, Any]:
        """
        Run every cleanup command, continuing past failures.

        Returns:
            Dict[str, Any]: Completed commands and errors
        """
        result: Dict[str, Any] = {"success": True, "completed": [], "errors": []}
        env = dict(os.environ, DEBIAN_FRONTEND="noninteractive")

        for cmd in CLEANUP_COMMANDS:
            try:
                self.runner.run(cmd, capture_output=True, env=env)
            except CommandError as e:
                logger.warning("Cleanup step failed: %s", e.message)
                result["errors"].append(e.message)
                continue
            result["completed"].append(" ".join(cmd))

        result["success"] = not result["errors"]
        return result
