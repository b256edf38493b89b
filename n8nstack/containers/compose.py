"""Docker Compose orchestration for n8nstack."""

from typing import Dict, List, Optional, Union

from ..config.settings import InstallPaths
from ..utils.commands import CommandRunner
from ..utils.errors import CommandError, DockerError


class ComposeRunner:
    """Runs docker compose against an installation's manifest."""

    def __init__(self, paths: InstallPaths, runner: Optional[CommandRunner] = None, verbose: bool = False):
        """
        Initialize compose runner.

        Args:
            paths: Installation paths
            runner: Command runner (created when omitted)
            verbose: Enable verbose output
        """
        self.paths = paths
        self.verbose = verbose
        self.runner = runner or CommandRunner(verbose=verbose)
        self._compose_cmd: Optional[List[str]] = None

    @property
    def compose_cmd(self) -> List[str]:
        """Compose v2 plugin if present, else the legacy binary."""
        if self._compose_cmd is None:
            if self.runner.succeeds(["docker", "compose", "version"]):
                self._compose_cmd = ["docker", "compose"]
            elif self.runner.succeeds(["docker-compose", "--version"]):
                self._compose_cmd = ["docker-compose"]
            else:
                raise DockerError(
                    "Docker Compose is not available",
                    suggestions=["Install the docker-compose-plugin package"],
                )
        return self._compose_cmd

    def _base(self) -> List[str]:
        return self.compose_cmd + ["-f", self.paths.compose_file, "--project-directory", self.paths.root]

    def _run(self, args: List[str], **kwargs):
        try:
            return self.runner.run(self._base() + args, cwd=self.paths.root, **kwargs)
        except CommandError as e:
            raise DockerError(e.message, details=e.details) from e

    def up(
        self,
        services: Optional[List[str]] = None,
        scale: Optional[Dict[str, int]] = None,
        no_deps: bool = False,
        force_recreate: bool = False,
        no_recreate: bool = False,
    ) -> None:
        """
        Create and start services in the background.

        Args:
            services: Services to start (all when omitted)
            scale: Replica count per service
            no_deps: Do not start linked services
            force_recreate: Recreate containers even if unchanged
            no_recreate: Keep existing containers
        """
        args = ["up", "-d", "--remove-orphans"]
        if no_deps:
            args.append("--no-deps")
        if force_recreate:
            args.append("--force-recreate")
        if no_recreate:
            args.append("--no-recreate")
        for service, count in (scale or {}).items():
            args.extend(["--scale", f"{service}={count}"])
        args.extend(services or [])
        self._run(args)

    def down(self) -> None:
        """Stop and remove containers (volumes are kept)."""
        self._run(["down"])

    def pull(self, services: Optional[List[str]] = None) -> None:
        self._run(["pull"] + (services or []))

    def container_ids(self, service: str) -> List[str]:
        """IDs of the running containers of a service."""
        result = self._run(["ps", "-q", "--filter", "status=running", service], capture_output=True)
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def running_count(self, service: str) -> int:
        return len(self.container_ids(service))

    def exec(
        self,
        service: str,
        command: List[str],
        input: Optional[Union[str, bytes]] = None,
        check: bool = True,
        text: bool = True,
    ):
        """
        Run a command inside a running service container.

        Returns:
            subprocess.CompletedProcess: Completed process with captured output
        """
        return self._run(["exec", "-T", service] + command, input=input, check=check, capture_output=True, text=text)

    def prune_images(self) -> None:
        """Remove dangling images left behind by pulls."""
        try:
            self.runner.run(["docker", "image", "prune", "-f"], capture_output=True)
        except CommandError as e:
            raise DockerError(e.message, details=e.details) from e
