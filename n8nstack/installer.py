"""End-to-end installation of a fresh host."""

import logging
from typing import Any, Dict, Optional

from .config import defaults
from .config.settings import InstallationTarget, InstallPaths, TuningSettings
from .containers.compose import ComposeRunner
from .orchestration.sequencer import OrchestrationSequencer
from .probe.environment import EnvironmentProbe, ProbeResult
from .provision.steps import ProvisioningRunner, default_steps
from .render.emitter import ConfigurationEmitter
from .scheduler.registrar import SchedulerRegistrar, default_jobs
from .secrets.generator import SecretGenerator
from .ssl.acquirer import CertificateAcquirer
from .utils.commands import CommandRunner

logger = logging.getLogger(__name__)


class Installer:
    """
    Runs the installation in order: probe, provision, secrets, files,
    certificate, startup, scheduled jobs.

    Nothing is rolled back on failure. The probe refuses to run against an
    existing installation directory, so a failed install has to be removed
    by hand before trying again.
    """

    def __init__(
        self,
        paths: Optional[InstallPaths] = None,
        tuning: Optional[TuningSettings] = None,
        runner: Optional[CommandRunner] = None,
        verbose: bool = False,
    ):
        self.paths = paths or InstallPaths(defaults.INSTALL_DIR)
        self.tuning = tuning or TuningSettings()
        self.verbose = verbose
        self.runner = runner or CommandRunner(verbose=verbose)

    def check_host(self, domain: str) -> ProbeResult:
        """
        Run the environment probe and raise on fatal results.

        Returns:
            ProbeResult: Result whose warnings the caller may confirm
        """
        result = EnvironmentProbe(self.paths, runner=self.runner, verbose=self.verbose).run(domain)
        result.raise_for_failures()
        return result

    def provision(self) -> Dict[str, Any]:
        steps = default_steps(self.runner, queue_mode=self.tuning.queue_mode, verbose=self.verbose)
        return ProvisioningRunner(steps, verbose=self.verbose).run()

    def install(self, target: InstallationTarget) -> Dict[str, Any]:
        """
        Install onto a host that passed check_host.

        Args:
            target: Domain, contact e-mail and discovered server address

        Returns:
            Dict[str, Any]: Summary of the installation
        """
        provisioning = self.provision()

        credentials = SecretGenerator(verbose=self.verbose).generate_credential_set()
        emitted = ConfigurationEmitter(self.paths, verbose=self.verbose).emit(target, credentials, self.tuning)
        env = emitted["env"]

        certificate = CertificateAcquirer(
            target,
            runner=self.runner,
            payload_size_max_mb=self.tuning.payload_size_max_mb,
            verbose=self.verbose,
        ).acquire()

        compose = ComposeRunner(self.paths, runner=self.runner, verbose=self.verbose)
        readiness = OrchestrationSequencer(self.paths, compose=compose, verbose=self.verbose).deploy(env)

        schedule = SchedulerRegistrar(runner=self.runner, verbose=self.verbose).register(
            default_jobs(install_dir=self.paths.root)
        )

        logger.info("Installation of %s finished", target.domain)
        return {
            "url": target.base_url,
            "install_dir": self.paths.root,
            "execution_mode": env.execution_mode,
            "worker_replicas": env.worker_replicas,
            "worker_concurrency": env.worker_concurrency,
            "provisioning": provisioning,
            "files_created": emitted["files_created"],
            "certificate": certificate["paths"],
            "readiness": readiness,
            "scheduled_jobs": schedule["installed"],
        }
