"""Recurring maintenance jobs in the root crontab."""

import logging
import shlex
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config import defaults
from ..utils.commands import CommandRunner
from ..utils.errors import CommandError

logger = logging.getLogger(__name__)


@dataclass
class ScheduledJob:
    name: str
    schedule: str
    command: str
    log_file: str

    def line(self, marker: str) -> str:
        return f"{self.schedule} {self.command} >> {self.log_file} 2>&1 # {marker}:{self.name}"


def default_jobs(python: str = sys.executable, install_dir: str = defaults.INSTALL_DIR) -> List[ScheduledJob]:
    """Daily backup, weekly cleanup and daily certificate renewal."""
    base = f"{shlex.quote(python)} -m n8nstack"
    if install_dir != defaults.INSTALL_DIR:
        base += f" --install-dir {shlex.quote(install_dir)}"
    return [
        ScheduledJob("backup", defaults.CRON_BACKUP, f"{base} backup", defaults.BACKUP_LOG),
        ScheduledJob("cleanup", defaults.CRON_CLEANUP, f"{base} cleanup", defaults.CLEANUP_LOG),
        ScheduledJob("renew-certificates", defaults.CRON_RENEWAL, f"{base} renew-certificates", defaults.RENEWAL_LOG),
    ]


class SchedulerRegistrar:
    """Owns the crontab lines tagged with its marker and nothing else."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        marker: str = defaults.CRON_MARKER,
        verbose: bool = False,
    ):
        self.verbose = verbose
        self.runner = runner or CommandRunner(verbose=verbose)
        self.marker = marker

    @property
    def tag(self) -> str:
        return f"# {self.marker}:"

    def read_table(self) -> List[str]:
        """Current crontab lines; an absent crontab is empty."""
        result = self.runner.run(["crontab", "-l"], check=False, capture_output=True)
        if result.returncode != 0:
            if "no crontab" in (result.stderr or "").lower():
                return []
            raise CommandError(
                "Could not read the crontab",
                command=["crontab", "-l"],
                returncode=result.returncode,
                stderr=(result.stderr or "").strip() or None,
            )
        return (result.stdout or "").splitlines()

    def owned_lines(self) -> List[str]:
        return [line for line in self.read_table() if self.tag in line]

    def register(self, jobs: Optional[List[ScheduledJob]] = None) -> Dict[str, Any]:
        """
        Replace every owned line with the given jobs.

        Returns:
            Dict[str, Any]: Installed lines and number of replaced lines
        """
        jobs = jobs if jobs is not None else default_jobs()
        current = self.read_table()
        kept = [line for line in current if self.tag not in line]
        new_lines = [job.line(self.marker) for job in jobs]

        table = "\n".join(kept + new_lines) + "\n"
        self.runner.run(["crontab", "-"], input=table, capture_output=True)

        replaced = len(current) - len(kept)
        logger.info("Registered %d scheduled jobs (replaced %d)", len(new_lines), replaced)
        if self.verbose:
            for line in new_lines:
                print(f"cron: {line}")

        return {"installed": new_lines, "replaced": replaced}
