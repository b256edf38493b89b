"""Tests for compose orchestration and container health."""

from unittest.mock import patch

import pytest
from docker.errors import DockerException

from n8nstack.containers import ComposeRunner, HealthChecker
from n8nstack.utils.errors import DockerError, create_error_suggestions


class TestComposeRunner:
    """Test docker compose invocation."""

    @pytest.fixture(autouse=True)
    def _setup(self, fake_runner, install_paths):
        self.runner = fake_runner
        self.paths = install_paths
        self.compose = ComposeRunner(install_paths, runner=fake_runner)

    def test_prefers_compose_plugin(self):
        """Test the v2 plugin is used when available."""
        assert self.compose.compose_cmd == ["docker", "compose"]

    def test_falls_back_to_legacy_binary(self):
        """Test docker-compose is used without the plugin."""
        self.runner.on(["docker", "compose", "version"], returncode=1)

        assert self.compose.compose_cmd == ["docker-compose"]

    def test_missing_compose(self):
        """Test a clear error when compose is not installed."""
        self.runner.on(["docker", "compose", "version"], returncode=1)
        self.runner.on(["docker-compose", "--version"], returncode=1)

        with pytest.raises(DockerError, match="not available"):
            self.compose.compose_cmd

    def test_up_arguments(self):
        """Test up targets the manifest with scale and recreate flags."""
        self.compose.up(services=["n8n-worker"], scale={"n8n-worker": 3}, no_deps=True, no_recreate=True)

        cmd = self.runner.calls[-1]
        assert cmd[:6] == ["docker", "compose", "-f", self.paths.compose_file, "--project-directory", self.paths.root]
        assert cmd[6:] == [
            "up",
            "-d",
            "--remove-orphans",
            "--no-deps",
            "--no-recreate",
            "--scale",
            "n8n-worker=3",
            "n8n-worker",
        ]

    def test_exec_passes_input(self):
        """Test exec runs without a TTY and forwards stdin."""
        self.compose.exec("postgres", ["psql", "-q"], input=b"SELECT 1;", text=False)

        assert self.runner.calls[-1][6:] == ["exec", "-T", "postgres", "psql", "-q"]
        assert self.runner.inputs[-1] == b"SELECT 1;"

    def test_running_count(self):
        """Test running containers are counted from ps output."""
        self.runner.on(["ps", "-q"], stdout="abc\ndef\n\n")

        assert self.compose.running_count("n8n-worker") == 2
        assert self.runner.calls[-1][6:] == ["ps", "-q", "--filter", "status=running", "n8n-worker"]

    def test_failure_becomes_docker_error(self):
        """Test command failures surface as DockerError."""
        self.runner.on(["pull"], returncode=1, stderr="manifest unknown")

        with pytest.raises(DockerError) as exc_info:
            self.compose.pull()

        assert exc_info.value.details == "manifest unknown"


class TestHealthChecker:
    """Test container health checks through the Docker API."""

    def test_all_healthy(self, mock_docker_client, container_factory):
        """Test every expected container healthy."""
        mock_docker_client.containers.list.return_value = [
            container_factory("n8n-postgres", "postgres"),
            container_factory("n8n", "n8n"),
            container_factory("n8n-n8n-worker-1", "n8n-worker"),
            container_factory("n8n-n8n-worker-2", "n8n-worker"),
        ]
        checker = HealthChecker("n8n", client=mock_docker_client)

        healthy, summary = checker.all_healthy({"postgres": 1, "n8n": 1, "n8n-worker": 2})

        assert healthy
        assert summary["n8n-worker"] == "2/2 healthy"
        filters = mock_docker_client.containers.list.call_args.kwargs["filters"]
        assert filters == {"label": ["com.docker.compose.project=n8n"]}

    def test_missing_replica_is_unhealthy(self, mock_docker_client, container_factory):
        """Test fewer healthy containers than expected."""
        mock_docker_client.containers.list.return_value = [
            container_factory("n8n-n8n-worker-1", "n8n-worker"),
            container_factory("n8n-n8n-worker-2", "n8n-worker", health="starting"),
        ]
        checker = HealthChecker("n8n", client=mock_docker_client)

        healthy, summary = checker.all_healthy({"n8n-worker": 2})

        assert not healthy
        assert summary["n8n-worker"] == "1/2 healthy"

    def test_container_status(self, mock_docker_client, container_factory):
        """Test stopped and probe-less containers are reported as such."""
        checker = HealthChecker("n8n", client=mock_docker_client)

        exited = checker.check_container_health(container_factory("n8n", "n8n", status="exited"))
        no_probe = checker.check_container_health(container_factory("n8n", "n8n", health=None))

        assert exited["status"] == "exited"
        assert no_probe["status"] == "no_healthcheck"

    def test_reload_failure(self, mock_docker_client, container_factory):
        """Test a container that vanished reports an error status."""
        container = container_factory("n8n", "n8n")
        container.reload.side_effect = DockerException("gone")

        health = HealthChecker("n8n", client=mock_docker_client).check_container_health(container)

        assert health["status"] == "error"

    def test_daemon_unavailable(self):
        """Test connection failures become DockerError."""
        with patch("docker.from_env", side_effect=DockerException("no socket")):
            with pytest.raises(DockerError, match="Cannot connect") as exc_info:
                HealthChecker("n8n").client

        assert exc_info.value.suggestions == create_error_suggestions("docker_not_running")
