"""Tests for ordered startup and readiness verification."""

import subprocess
from unittest.mock import MagicMock, call, patch

import pytest
import requests

from n8nstack.orchestration import OrchestrationSequencer
from n8nstack.render.topology import build_topology
from n8nstack.utils.errors import DockerError, ReadinessTimeoutError


def _psql(stdout, returncode=0):
    return subprocess.CompletedProcess([], returncode, stdout, "")


class TestOrchestrationSequencer:
    """Test the orchestration sequencer."""

    @pytest.fixture(autouse=True)
    def _setup(self, install_paths, queue_env):
        self.env = queue_env
        self.topology = build_topology(queue_env)
        self.compose = MagicMock()
        self.health = MagicMock()
        self.health.all_healthy.return_value = (True, {"n8n": "1/1 healthy"})
        self.sleeps = []
        self.sequencer = OrchestrationSequencer(
            install_paths,
            compose=self.compose,
            health=self.health,
            schema_timeout=20,
            schema_interval=5,
            health_timeout=20,
            health_interval=5,
            sleep=self.sleeps.append,
        )

    def test_start_follows_tiers(self):
        """Test database and queue start first, then main, then workers with their scale."""
        self.sequencer.start(self.topology)

        assert self.compose.up.call_args_list == [
            call(services=["postgres", "redis"], scale={}),
            call(services=["n8n"], scale={}),
            call(services=["n8n-worker"], scale={"n8n-worker": 1}),
        ]
        waited = [c.args[0] for c in self.health.all_healthy.call_args_list]
        assert waited == [{"postgres": 1, "redis": 1}, {"n8n": 1}]

    def test_start_stops_when_tier_unhealthy(self):
        """Test later tiers are not started when an earlier one never gets healthy."""
        self.health.all_healthy.return_value = (False, {"postgres": "0/1 healthy"})

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            self.sequencer.start(self.topology)

        assert self.compose.up.call_count == 1
        assert "postgres 0/1 healthy" in exc_info.value.details

    def test_schema_ready_query(self):
        """Test the schema probe asks for the migrated table."""
        self.compose.exec.return_value = _psql("t\n")

        assert self.sequencer.schema_ready(self.env)

        service, command = self.compose.exec.call_args.args
        assert service == "postgres"
        assert command[:5] == ["psql", "-U", "postgres", "-d", "n8n"]
        assert "to_regclass('public.workflow_entity')" in command[-1]

    def test_schema_not_ready(self):
        """Test a missing table, a failing psql and an unreachable container."""
        self.compose.exec.return_value = _psql("f\n")
        assert not self.sequencer.schema_ready(self.env)

        self.compose.exec.return_value = _psql("", returncode=2)
        assert not self.sequencer.schema_ready(self.env)

        self.compose.exec.side_effect = DockerError("container not running")
        assert not self.sequencer.schema_ready(self.env)

    def test_schema_timeout(self):
        """Test readiness fails when the schema never appears, without checking health."""
        self.compose.exec.return_value = _psql("f\n")

        with patch("requests.get") as mock_get:
            with pytest.raises(ReadinessTimeoutError) as exc_info:
                self.sequencer.wait_until_ready(self.env, self.topology)

        assert self.compose.exec.call_count == 5
        assert "workflow_entity" in exc_info.value.details
        assert any("docker compose logs" in s for s in exc_info.value.suggestions)
        mock_get.assert_not_called()
        self.health.all_healthy.assert_not_called()

    def test_health_checked_after_schema(self):
        """Test health probes only start once the schema is present."""
        order = []
        schema = iter(["f\n", "t\n"])

        def exec_(*args, **kwargs):
            order.append("schema")
            return _psql(next(schema))

        def healthy(expected):
            order.append("health")
            return True, {}

        self.compose.exec.side_effect = exec_
        self.health.all_healthy.side_effect = healthy

        with patch("requests.get", return_value=MagicMock(status_code=200)):
            result = self.sequencer.wait_until_ready(self.env, self.topology)

        assert order == ["schema", "schema", "health"]
        assert result["schema_attempts"] == 2

    def test_health_requires_endpoint(self):
        """Test healthy containers are not enough while the endpoint fails."""
        self.compose.exec.return_value = _psql("t\n")

        with patch("requests.get", side_effect=requests.exceptions.ConnectionError()):
            with pytest.raises(ReadinessTimeoutError, match="did not report healthy"):
                self.sequencer.wait_until_ready(self.env, self.topology)

    def test_health_expects_all_replicas(self):
        """Test the health check waits for every worker replica."""
        self.compose.exec.return_value = _psql("t\n")
        topology = build_topology(self.env.with_updates({"N8N_WORKER_REPLICAS": 3}))

        with patch("requests.get", return_value=MagicMock(status_code=200)):
            self.sequencer.wait_for_health(topology)

        assert self.health.all_healthy.call_args.args[0]["n8n-worker"] == 3

    def test_deploy(self):
        """Test deploy starts and verifies the topology derived from the environment."""
        self.compose.exec.return_value = _psql("t\n")

        with patch("requests.get", return_value=MagicMock(status_code=200)):
            result = self.sequencer.deploy(self.env)

        assert self.compose.up.call_count == 3
        assert result["schema_attempts"] == 1
