"""Idempotent host provisioning steps."""

import logging
import os
import tempfile
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..config import defaults
from ..utils.commands import CommandRunner
from ..utils.errors import CommandError, N8nStackError
from ..utils.files import FileManager

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
DOCKER_INSTALL_URL = "https://get.docker.com"


class ProvisioningStep:
    """A host change that checks current state before applying itself."""

    name = "step"

    def __init__(self, runner: CommandRunner, verbose: bool = False):
        self.runner = runner
        self.verbose = verbose

    def is_satisfied(self) -> bool:
        raise NotImplementedError

    def apply(self) -> None:
        raise NotImplementedError

    def apt_install(self, packages: Sequence[str]) -> None:
        env = dict(os.environ, **APT_ENV)
        self.runner.run(["apt-get", "update"], capture_output=True, env=env)
        self.runner.run(["apt-get", "install", "-y"] + list(packages), capture_output=True, env=env)

    def package_installed(self, package: str) -> bool:
        return self.runner.succeeds(["dpkg", "-s", package])


class BasePackagesStep(ProvisioningStep):
    name = "base packages"
    packages = ("curl", "wget", "openssl", "ca-certificates")

    def is_satisfied(self) -> bool:
        return all(self.package_installed(p) for p in self.packages)

    def apply(self) -> None:
        self.apt_install([p for p in self.packages if not self.package_installed(p)])


class DockerEngineStep(ProvisioningStep):
    name = "docker engine"

    def is_satisfied(self) -> bool:
        return self.runner.which("docker") is not None

    def apply(self) -> None:
        response = requests.get(DOCKER_INSTALL_URL, timeout=60)
        response.raise_for_status()

        fd, script = tempfile.mkstemp(prefix="get-docker-", suffix=".sh")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(response.text)
            self.runner.run(["sh", script], capture_output=True)
        finally:
            os.remove(script)

        self.runner.run(["systemctl", "enable", "--now", "docker"], capture_output=True)


class ComposePluginStep(ProvisioningStep):
    name = "docker compose plugin"

    def is_satisfied(self) -> bool:
        return self.runner.succeeds(["docker", "compose", "version"])

    def apply(self) -> None:
        self.apt_install(["docker-compose-plugin"])


class NginxStep(ProvisioningStep):
    name = "nginx"

    def is_satisfied(self) -> bool:
        return self.package_installed("nginx") and self.runner.succeeds(["systemctl", "is-active", "--quiet", "nginx"])

    def apply(self) -> None:
        if not self.package_installed("nginx"):
            self.apt_install(["nginx"])
        self.runner.run(["systemctl", "enable", "--now", "nginx"], capture_output=True)


class CertbotStep(ProvisioningStep):
    name = "certbot"

    def is_satisfied(self) -> bool:
        return self.runner.which("certbot") is not None

    def apply(self) -> None:
        self.apt_install(["certbot"])


class FirewallStep(ProvisioningStep):
    name = "firewall"
    allowed_ports = ("22/tcp", "80/tcp", "443/tcp")

    def status(self) -> str:
        return self.runner.output(["ufw", "status"], check=False)

    def is_satisfied(self) -> bool:
        if self.runner.which("ufw") is None:
            return False
        status = self.status()
        if "Status: active" not in status:
            return False
        return all(port in status for port in self.allowed_ports)

    def apply(self) -> None:
        if self.runner.which("ufw") is None:
            self.apt_install(["ufw"])

        for port in self.allowed_ports:
            self.runner.run(["ufw", "allow", port], capture_output=True)

        if "Status: active" not in self.status():
            self.runner.run(["ufw", "default", "deny", "incoming"], capture_output=True)
            self.runner.run(["ufw", "default", "allow", "outgoing"], capture_output=True)
            self.runner.run(["ufw", "--force", "enable"], capture_output=True)


class OvercommitMemoryStep(ProvisioningStep):
    """Queue engine background saves need memory overcommit enabled."""

    name = "kernel memory overcommit"
    setting = "vm.overcommit_memory = 1"

    def __init__(self, runner: CommandRunner, sysctl_file: str = defaults.SYSCTL_FILE, verbose: bool = False):
        super().__init__(runner, verbose=verbose)
        self.sysctl_file = sysctl_file

    def is_satisfied(self) -> bool:
        if not os.path.exists(self.sysctl_file):
            return False
        with open(self.sysctl_file, "r", encoding="utf-8") as f:
            persisted = self.setting in f.read()
        return persisted and self.runner.output(["sysctl", "-n", "vm.overcommit_memory"], check=False) == "1"

    def apply(self) -> None:
        FileManager(verbose=self.verbose).write_file(self.sysctl_file, self.setting + "\n", mode=0o644)
        self.runner.run(["sysctl", "-p", self.sysctl_file], capture_output=True)


def default_steps(runner: CommandRunner, queue_mode: bool = True, verbose: bool = False) -> List[ProvisioningStep]:
    """Steps a fresh host needs, in order."""
    steps: List[ProvisioningStep] = [
        BasePackagesStep(runner, verbose=verbose),
        DockerEngineStep(runner, verbose=verbose),
        ComposePluginStep(runner, verbose=verbose),
        NginxStep(runner, verbose=verbose),
        CertbotStep(runner, verbose=verbose),
        FirewallStep(runner, verbose=verbose),
    ]
    if queue_mode:
        steps.append(OvercommitMemoryStep(runner, verbose=verbose))
    return steps


class ProvisioningRunner:
    """Applies steps in order, skipping those already satisfied."""

    def __init__(self, steps: List[ProvisioningStep], verbose: bool = False):
        self.steps = steps
        self.verbose = verbose

    def run(self) -> Dict[str, Any]:
        """
        Apply every unsatisfied step.

        Returns:
            Dict[str, Any]: Names of applied and skipped steps
        """
        result: Dict[str, Any] = {"applied": [], "skipped": []}

        for step in self.steps:
            if step.is_satisfied():
                logger.debug("Provisioning step already satisfied: %s", step.name)
                result["skipped"].append(step.name)
                continue

            if self.verbose:
                print(f"Provisioning: {step.name}")
            try:
                step.apply()
            except (CommandError, requests.exceptions.RequestException) as e:
                details: Optional[str] = getattr(e, "details", None) or str(e)
                raise N8nStackError(f"Provisioning step failed: {step.name}", details=details) from e

            logger.info("Provisioning step applied: %s", step.name)
            result["applied"].append(step.name)

        return result
