"""Configuration emitter: writes the generated files of an installation."""

import os
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from n8nstack import __version__

from ..config import defaults
from ..config.environment import EnvironmentConfig, EnvironmentStore
from ..config.settings import CredentialSet, InstallationTarget, InstallPaths, TuningSettings
from ..utils.errors import ConfigurationError
from ..utils.files import FileManager
from .compose import dump_compose
from .environment import build_environment
from .topology import ServiceTopology, build_topology


class ConfigurationEmitter:
    """Renders the environment file, compose manifest and database bootstrap script."""

    def __init__(self, paths: InstallPaths, verbose: bool = False):
        """
        Initialize the emitter.

        Args:
            paths: Installation paths
            verbose: Enable verbose output
        """
        self.paths = paths
        self.verbose = verbose
        self.file_manager = FileManager(verbose=verbose)
        self.store = EnvironmentStore(paths.env_file, verbose=verbose)

        templates_dir = os.path.join(os.path.dirname(__file__), "..", "templates")
        self.jinja_env = Environment(
            loader=FileSystemLoader(templates_dir),
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    def emit(
        self,
        target: InstallationTarget,
        credentials: CredentialSet,
        tuning: TuningSettings,
    ) -> Dict[str, Any]:
        """
        Write every generated file of a new installation.

        Args:
            target: Domain and contact of the installation
            credentials: Freshly generated secrets
            tuning: Tuning settings

        Returns:
            Dict[str, Any]: Environment snapshot, topology and files written
        """
        if tuning.queue_mode and tuning.worker_replicas < defaults.MIN_WORKER_REPLICAS:
            raise ConfigurationError("Queue mode needs at least one worker replica")

        env = build_environment(target, credentials, tuning)
        topology = build_topology(env)

        os.makedirs(self.paths.root, exist_ok=True)
        env = self.store.create(env)
        files = [self.paths.env_file]

        files.append(self.write_bootstrap_script())
        files.append(self.write_manifest(env, topology))

        os.makedirs(self.paths.app_data_dir, exist_ok=True)
        os.makedirs(self.paths.backup_dir, exist_ok=True)
        try:
            os.chown(self.paths.app_data_dir, defaults.APP_UID, defaults.APP_GID)
        except PermissionError:
            if self.verbose:
                print(f"Could not change ownership of {self.paths.app_data_dir}")

        if self.verbose:
            print(f"Generated {len(files)} files in {self.paths.root}")

        return {"env": env, "topology": topology, "files_created": files}

    def render_bootstrap_script(self) -> str:
        template = self.jinja_env.get_template("init-data.sh.j2")
        return template.render(version=__version__, schema="public")

    def write_bootstrap_script(self) -> str:
        return self.file_manager.write_executable(self.paths.bootstrap_script, self.render_bootstrap_script())

    def write_manifest(self, env: EnvironmentConfig, topology: Optional[ServiceTopology] = None) -> str:
        """
        Write the compose manifest derived from an environment snapshot.

        Args:
            env: Environment snapshot
            topology: Pre-built topology (built from env when omitted)

        Returns:
            str: Path of the manifest
        """
        topology = topology or build_topology(env)
        return self.file_manager.write_file(self.paths.compose_file, dump_compose(topology), mode=0o644)
