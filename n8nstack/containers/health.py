"""Container health checking for n8nstack."""

from typing import Any, Dict, List, Optional, Tuple

import docker
from docker.errors import DockerException

from ..utils.errors import DockerError, create_error_suggestions

PROJECT_LABEL = "com.docker.compose.project"
SERVICE_LABEL = "com.docker.compose.service"


class HealthChecker:
    """Reads container health of a compose project through the Docker API."""

    def __init__(self, project: str, client: Optional[Any] = None, verbose: bool = False):
        """
        Initialize health checker.

        Args:
            project: Compose project name
            client: Docker client (created from the environment when omitted)
            verbose: Whether to enable verbose output
        """
        self.project = project
        self.verbose = verbose
        self._client = client

    @property
    def client(self) -> Any:
        """Get Docker client, creating it if necessary."""
        if self._client is None:
            try:
                self._client = docker.from_env()
                self._client.ping()
            except DockerException as e:
                raise DockerError(
                    f"Cannot connect to Docker daemon: {e}",
                    suggestions=create_error_suggestions("docker_not_running"),
                ) from e
        return self._client

    def project_containers(self, service: Optional[str] = None) -> List[Any]:
        """List containers of the project, optionally of one service."""
        labels = [f"{PROJECT_LABEL}={self.project}"]
        if service:
            labels.append(f"{SERVICE_LABEL}={service}")
        try:
            return self.client.containers.list(all=True, filters={"label": labels})
        except DockerException as e:
            raise DockerError(f"Failed to list containers: {e}") from e

    def check_container_health(self, container: Any) -> Dict[str, Any]:
        """
        Check health of a container.

        Args:
            container: Docker container object

        Returns:
            Dict[str, Any]: Health status information
        """
        try:
            container.reload()
        except DockerException as e:
            return {"status": "error", "name": container.name, "error": str(e)}

        state = container.attrs.get("State", {})
        health = state.get("Health")

        if state.get("Status") != "running":
            status = state.get("Status", "unknown")
        elif health is None:
            status = "no_healthcheck"
        else:
            status = health.get("Status", "unknown")

        details = None
        if health and health.get("Log"):
            details = health["Log"][-1].get("Output", "").strip() or None

        return {
            "status": status,
            "name": container.name,
            "service": container.labels.get(SERVICE_LABEL),
            "started_at": state.get("StartedAt"),
            "details": details,
        }

    def service_health(self) -> Dict[str, List[Dict[str, Any]]]:
        """Health of every project container, grouped by service."""
        report: Dict[str, List[Dict[str, Any]]] = {}
        for container in self.project_containers():
            health = self.check_container_health(container)
            report.setdefault(health.get("service") or "unknown", []).append(health)
        return report

    def all_healthy(self, expected: Dict[str, int]) -> Tuple[bool, Dict[str, str]]:
        """
        Check that each service runs its expected number of healthy containers.

        Args:
            expected: Service name to container count

        Returns:
            Tuple[bool, Dict[str, str]]: overall result and a per-service summary
        """
        report = self.service_health()
        summary = {}
        healthy = True

        for service, count in expected.items():
            containers = report.get(service, [])
            ready = [c for c in containers if c["status"] == "healthy"]
            summary[service] = f"{len(ready)}/{count} healthy"
            if len(ready) < count:
                healthy = False

        if self.verbose:
            print("Health: " + ", ".join(f"{k} {v}" for k, v in summary.items()))

        return healthy, summary
