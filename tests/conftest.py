"""Pytest configuration and shared fixtures."""

import os
import subprocess
from unittest.mock import MagicMock

import pytest

from n8nstack.config.environment import EnvironmentStore
from n8nstack.config.settings import CredentialSet, InstallationTarget, InstallPaths, TuningSettings
from n8nstack.render.compose import dump_compose
from n8nstack.render.environment import build_environment
from n8nstack.render.topology import build_topology
from n8nstack.utils.errors import CommandError


def _contains(cmd, pattern):
    """True if ``pattern`` appears as a contiguous run of tokens in ``cmd``."""
    n = len(pattern)
    return any(list(cmd[i : i + n]) == list(pattern) for i in range(len(cmd) - n + 1))


class FakeRunner:
    """Records commands instead of running them.

    Responses are registered with ``on(tokens, ...)``; the most recent
    registration whose tokens appear contiguously in a command wins. A
    response may also be a callable ``(cmd, input) -> CompletedProcess``.
    Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.verbose = False
        self.calls = []
        self.inputs = []
        self.responses = []
        self.executables = {}

    def on(self, tokens, returncode=0, stdout="", stderr="", handler=None, raises=None):
        self.responses.append((tuple(tokens), returncode, stdout, stderr, handler, raises))
        return self

    def run(self, cmd, check=True, capture_output=False, input=None, timeout=None, cwd=None, text=True, env=None):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.inputs.append(input)

        result = None
        for tokens, returncode, stdout, stderr, handler, raises in reversed(self.responses):
            if not _contains(cmd, tokens):
                continue
            if raises is not None:
                raise raises
            if handler is not None:
                result = handler(cmd, input)
            else:
                result = subprocess.CompletedProcess(cmd, returncode, stdout, stderr)
            break

        if result is None:
            result = subprocess.CompletedProcess(cmd, 0, "" if text else b"", "")

        if check and result.returncode != 0:
            raise CommandError(
                f"Command failed ({result.returncode}): {' '.join(cmd)}",
                command=cmd,
                returncode=result.returncode,
                stderr=result.stderr or None,
            )
        return result

    def succeeds(self, cmd, cwd=None):
        try:
            return self.run(cmd, check=False, capture_output=True, cwd=cwd).returncode == 0
        except CommandError:
            return False

    def output(self, cmd, cwd=None, check=True):
        return (self.run(cmd, check=check, capture_output=True, cwd=cwd).stdout or "").strip()

    def which(self, name):
        return self.executables.get(name)

    def called(self, *tokens):
        return [cmd for cmd in self.calls if _contains(cmd, tokens)]


@pytest.fixture
def fake_runner():
    """Command runner that records instead of executing."""
    return FakeRunner()


@pytest.fixture
def install_paths(tmp_path):
    """Installation paths rooted in a temporary directory."""
    return InstallPaths(str(tmp_path / "n8n"))


@pytest.fixture
def target():
    return InstallationTarget(domain="n8n.example.com", email="ops@example.com", server_ip="203.0.113.10")


@pytest.fixture
def credentials():
    return CredentialSet(
        postgres_password="PgSuperUserPassword12345",
        postgres_app_password="PgAppUserPassword1234567",
        encryption_key="a" * 64,
        redis_password="RedisQueuePassword1234567890abcd",
    )


@pytest.fixture
def queue_env(target, credentials):
    """Environment snapshot of a default queue-mode installation."""
    return build_environment(target, credentials, TuningSettings())


@pytest.fixture
def installed(install_paths, queue_env):
    """An installation directory with env file, manifest and data directory."""
    os.makedirs(install_paths.root)
    os.makedirs(install_paths.app_data_dir)
    os.makedirs(install_paths.backup_dir)
    env = EnvironmentStore(install_paths.env_file).create(queue_env)
    with open(install_paths.compose_file, "w", encoding="utf-8") as f:
        f.write(dump_compose(build_topology(env)))
    with open(install_paths.bootstrap_script, "w", encoding="utf-8") as f:
        f.write("#!/bin/bash\n")
    with open(os.path.join(install_paths.app_data_dir, "config"), "w", encoding="utf-8") as f:
        f.write('{"encryptionKey": "abc"}\n')
    return install_paths


@pytest.fixture
def mock_docker_client():
    """Mock Docker client for testing."""
    client = MagicMock()
    client.ping.return_value = True
    client.containers.list.return_value = []
    return client


def make_container(name, service, status="running", health="healthy", started_at="2024-01-01T00:00:00Z"):
    """Mock container as returned by the Docker SDK."""
    container = MagicMock()
    container.name = name
    container.labels = {"com.docker.compose.project": "n8n", "com.docker.compose.service": service}
    state = {"Status": status, "StartedAt": started_at}
    if health is not None:
        state["Health"] = {"Status": health, "Log": [{"Output": f"{health} probe"}]}
    container.attrs = {"State": state}
    return container


@pytest.fixture
def container_factory():
    return make_container
