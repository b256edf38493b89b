"""External command execution for n8nstack."""

import logging
import shutil
import subprocess
from typing import Dict, List, Optional, Union

from .errors import CommandError

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs host commands with consistent error handling.

    Every component that touches the host (apt, docker, nginx, certbot,
    crontab) goes through one of these, so tests can substitute a fake.
    """

    def __init__(self, verbose: bool = False, default_timeout: Optional[float] = None):
        self.verbose = verbose
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        input: Optional[Union[str, bytes]] = None,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
        text: bool = True,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        """
        Run a command.

        Args:
            cmd: Command and arguments
            check: Raise CommandError on a non-zero exit status
            capture_output: Capture stdout/stderr instead of inheriting them
            input: Data written to the command's stdin
            timeout: Timeout in seconds (defaults to the runner's default)
            cwd: Working directory
            text: Decode output as text
            env: Replacement environment

        Returns:
            subprocess.CompletedProcess: Completed process

        Raises:
            CommandError: If the command cannot be run, times out, or fails with check=True
        """
        cmd_str = " ".join(cmd)
        logger.debug("Executing: %s", cmd_str)
        if self.verbose:
            print(f"Running: {cmd_str}")

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = subprocess.run(
                cmd,
                capture_output=capture_output,
                input=input,
                timeout=effective_timeout,
                cwd=cwd,
                text=text,
                env=env,
            )
        except FileNotFoundError as e:
            raise CommandError(
                f"Required command not found: {cmd[0]}",
                command=cmd,
                suggestions=[f"Install {cmd[0]} and try again"],
            ) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(f"Command timed out after {effective_timeout}s: {cmd_str}", command=cmd) from e

        if result.returncode != 0 and check:
            stderr = result.stderr if capture_output else None
            if isinstance(stderr, bytes):
                stderr = stderr.decode("utf-8", errors="replace")
            raise CommandError(
                f"Command failed ({result.returncode}): {cmd_str}",
                command=cmd,
                returncode=result.returncode,
                stderr=(stderr or "").strip() or None,
            )

        if result.returncode != 0:
            logger.debug("Command exited with %s: %s", result.returncode, cmd_str)

        return result

    def succeeds(self, cmd: List[str], cwd: Optional[str] = None) -> bool:
        """Return True if the command runs and exits with status 0."""
        try:
            return self.run(cmd, check=False, capture_output=True, cwd=cwd).returncode == 0
        except CommandError:
            return False

    def output(self, cmd: List[str], cwd: Optional[str] = None, check: bool = True) -> str:
        """Run a command and return its stripped stdout."""
        result = self.run(cmd, check=check, capture_output=True, cwd=cwd)
        return (result.stdout or "").strip()

    def which(self, name: str) -> Optional[str]:
        """Locate an executable on PATH."""
        return shutil.which(name)
