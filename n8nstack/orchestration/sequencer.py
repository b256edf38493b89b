"""Ordered startup and readiness verification of the service topology."""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from ..config import defaults
from ..config.environment import EnvironmentConfig
from ..config.settings import InstallPaths
from ..containers.compose import ComposeRunner
from ..containers.health import HealthChecker
from ..render.topology import ServiceTopology, build_topology
from ..utils.errors import DockerError, ReadinessTimeoutError, create_error_suggestions
from ..utils.retry import poll

logger = logging.getLogger(__name__)


class OrchestrationSequencer:
    """
    Starts services tier by tier and waits for the deployment to be usable.

    Readiness needs two signals. The schema check looks for a table the
    application creates at the end of its own migration; the health check
    requires every expected container to report healthy and the application
    health endpoint to answer. The schema check always runs first.
    """

    def __init__(
        self,
        paths: InstallPaths,
        compose: Optional[ComposeRunner] = None,
        health: Optional[HealthChecker] = None,
        schema_timeout: float = defaults.SCHEMA_TIMEOUT,
        schema_interval: float = defaults.SCHEMA_INTERVAL,
        health_timeout: float = defaults.HEALTH_TIMEOUT,
        health_interval: float = defaults.HEALTH_INTERVAL,
        health_url: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        verbose: bool = False,
    ):
        self.paths = paths
        self.verbose = verbose
        self.compose = compose or ComposeRunner(paths, verbose=verbose)
        self.health = health or HealthChecker(defaults.PROJECT_NAME, verbose=verbose)
        self.schema_timeout = schema_timeout
        self.schema_interval = schema_interval
        self.health_timeout = health_timeout
        self.health_interval = health_interval
        self.health_url = health_url or f"http://127.0.0.1:{defaults.N8N_PORT}{defaults.HEALTH_ENDPOINT}"
        self.sleep = sleep

    def deploy(self, env: EnvironmentConfig) -> Dict[str, Any]:
        """
        Start the topology described by ``env`` and wait until it is ready.

        Returns:
            Dict[str, Any]: Readiness report
        """
        topology = build_topology(env)
        self.start(topology)
        return self.wait_until_ready(env, topology)

    def start(self, topology: ServiceTopology) -> None:
        """Start each dependency tier once the previous tier is healthy."""
        tiers = topology.startup_tiers()
        expected = topology.expected_containers()

        for index, tier in enumerate(tiers):
            scale = {name: expected[name] for name in tier if topology.service(name).replicas is not None}
            if self.verbose:
                print(f"Starting {', '.join(tier)}")
            self.compose.up(services=tier, scale=scale)

            if index < len(tiers) - 1:
                self.wait_for_services({name: expected[name] for name in tier})

    def wait_for_services(self, expected: Dict[str, int], timeout: Optional[float] = None) -> Dict[str, str]:
        """
        Wait until the given services run their expected healthy containers.

        Raises:
            ReadinessTimeoutError: If the bound is exceeded
        """
        summary: Dict[str, str] = {}

        def check() -> bool:
            healthy, report = self.health.all_healthy(expected)
            summary.update(report)
            return healthy

        result = poll(
            check,
            timeout=timeout if timeout is not None else self.health_timeout,
            interval=self.health_interval,
            description=f"health of {', '.join(expected)}",
            sleep=self.sleep,
        )
        if not result.success:
            raise self._timeout(
                f"Services did not become healthy: {', '.join(expected)}",
                details=", ".join(f"{k} {v}" for k, v in summary.items()),
            )
        return summary

    def schema_ready(self, env: EnvironmentConfig) -> bool:
        """True once the application's migration has created its tables."""
        query = f"SELECT to_regclass('public.{defaults.SCHEMA_READY_TABLE}') IS NOT NULL"
        try:
            result = self.compose.exec(
                defaults.SERVICE_DATABASE,
                ["psql", "-U", env.postgres_user, "-d", env.postgres_db, "-tAc", query],
                check=False,
            )
        except DockerError as e:
            logger.debug("Schema probe failed: %s", e.message)
            return False
        return result.returncode == 0 and (result.stdout or "").strip() == "t"

    def endpoint_healthy(self) -> bool:
        try:
            response = requests.get(self.health_url, timeout=5)
        except requests.exceptions.RequestException as e:
            logger.debug("Health endpoint not reachable: %s", e)
            return False
        return response.status_code == 200

    def wait_for_schema(self, env: EnvironmentConfig) -> int:
        if self.verbose:
            print(f"Waiting for database schema (up to {self.schema_timeout:.0f}s)")

        result = poll(
            lambda: self.schema_ready(env),
            timeout=self.schema_timeout,
            interval=self.schema_interval,
            description="database schema",
            sleep=self.sleep,
        )
        if not result.success:
            raise self._timeout(
                f"Database schema was not created within {self.schema_timeout:.0f}s",
                details=f"Table {defaults.SCHEMA_READY_TABLE} never appeared in {env.postgres_db}",
            )
        return result.attempts

    def wait_for_health(self, topology: ServiceTopology) -> Dict[str, str]:
        if self.verbose:
            print(f"Waiting for services to report healthy (up to {self.health_timeout:.0f}s)")

        expected = topology.expected_containers()
        summary: Dict[str, str] = {}

        def check() -> bool:
            healthy, report = self.health.all_healthy(expected)
            summary.update(report)
            return healthy and self.endpoint_healthy()

        result = poll(
            check,
            timeout=self.health_timeout,
            interval=self.health_interval,
            description="service health",
            sleep=self.sleep,
        )
        if not result.success:
            unhealthy: List[str] = [f"{k} {v}" for k, v in summary.items()]
            raise self._timeout(
                f"Services did not report healthy within {self.health_timeout:.0f}s",
                details=", ".join(unhealthy) or None,
            )
        return summary

    def wait_until_ready(self, env: EnvironmentConfig, topology: Optional[ServiceTopology] = None) -> Dict[str, Any]:
        """
        Block until both readiness signals pass.

        Raises:
            ReadinessTimeoutError: If either signal exceeds its bound
        """
        topology = topology or build_topology(env)
        schema_attempts = self.wait_for_schema(env)
        summary = self.wait_for_health(topology)
        logger.info("Deployment ready: %s", summary)
        return {"schema_attempts": schema_attempts, "health": summary}

    def _timeout(self, message: str, details: Optional[str] = None) -> ReadinessTimeoutError:
        return ReadinessTimeoutError(
            message,
            details=details,
            suggestions=create_error_suggestions("readiness_timeout", install_dir=self.paths.root),
        )
