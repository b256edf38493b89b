"""Worker fleet scaling and concurrency control."""

import logging
from typing import Any, Dict, Optional

from ..config import defaults
from ..config.environment import EnvironmentConfig, EnvironmentStore
from ..config.settings import InstallPaths
from ..containers.compose import ComposeRunner
from ..render.emitter import ConfigurationEmitter
from ..utils.errors import ValidationError

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Changes the worker replica count and per-worker concurrency.

    Only the worker service is touched: scaling starts or removes worker
    containers without recreating existing ones, and a concurrency change
    recreates the workers alone.
    """

    def __init__(
        self,
        paths: InstallPaths,
        compose: Optional[ComposeRunner] = None,
        store: Optional[EnvironmentStore] = None,
        emitter: Optional[ConfigurationEmitter] = None,
        verbose: bool = False,
    ):
        self.paths = paths
        self.verbose = verbose
        self.compose = compose or ComposeRunner(paths, verbose=verbose)
        self.store = store or EnvironmentStore(paths.env_file, verbose=verbose)
        self.emitter = emitter or ConfigurationEmitter(paths, verbose=verbose)

    def _load_queue_env(self) -> EnvironmentConfig:
        env = self.store.load()
        if not env.queue_mode:
            raise ValidationError(
                f"Workers are only used in queue mode (EXECUTIONS_MODE={env.execution_mode})",
                suggestions=["Set execution_mode: queue in the tuning file for new installations"],
            )
        return env

    def current_replicas(self, env: EnvironmentConfig) -> int:
        """Running worker containers, or the configured count when none run."""
        running = self.compose.running_count(defaults.SERVICE_WORKER)
        return running or env.worker_replicas

    def status(self) -> Dict[str, Any]:
        env = self.store.load()
        running = self.compose.running_count(defaults.SERVICE_WORKER) if env.queue_mode else 0
        return {
            "execution_mode": env.execution_mode,
            "configured_replicas": env.worker_replicas,
            "running_replicas": running,
            "concurrency": env.worker_concurrency,
            "capacity": running * env.worker_concurrency,
        }

    def scale(self, delta: int) -> Dict[str, int]:
        """
        Add or remove worker replicas.

        Args:
            delta: Change in replica count

        Returns:
            Dict[str, int]: Replica count before and after

        Raises:
            ValidationError: If the result would leave no worker
        """
        env = self._load_queue_env()
        before = self.current_replicas(env)
        after = before + delta

        if after < defaults.MIN_WORKER_REPLICAS:
            raise ValidationError(
                f"Cannot go below {defaults.MIN_WORKER_REPLICAS} worker (currently {before})",
                details="Queue mode without workers leaves every execution waiting in the queue",
            )

        env = self.store.update(env, {"N8N_WORKER_REPLICAS": after})
        self.emitter.write_manifest(env)
        self.compose.up(
            services=[defaults.SERVICE_WORKER],
            scale={defaults.SERVICE_WORKER: after},
            no_deps=True,
            no_recreate=True,
        )

        logger.info("Worker replicas changed from %d to %d", before, after)
        return {"before": before, "after": after}

    def add(self) -> Dict[str, int]:
        return self.scale(1)

    def remove(self) -> Dict[str, int]:
        return self.scale(-1)

    def set_concurrency(self, value: Any) -> Dict[str, int]:
        """
        Change how many jobs each worker runs at once.

        Args:
            value: New concurrency (1-20)

        Returns:
            Dict[str, int]: Concurrency before and after, and restarted replicas
        """
        try:
            concurrency = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Concurrency must be a number, got {value!r}")

        if not defaults.MIN_WORKER_CONCURRENCY <= concurrency <= defaults.MAX_WORKER_CONCURRENCY:
            raise ValidationError(
                f"Concurrency must be between {defaults.MIN_WORKER_CONCURRENCY} "
                f"and {defaults.MAX_WORKER_CONCURRENCY}, got {concurrency}"
            )

        env = self._load_queue_env()
        before = env.worker_concurrency
        replicas = self.current_replicas(env)

        env = self.store.update(env, {"N8N_WORKER_CONCURRENCY": concurrency, "N8N_WORKER_REPLICAS": replicas})
        self.emitter.write_manifest(env)
        self.compose.up(
            services=[defaults.SERVICE_WORKER],
            scale={defaults.SERVICE_WORKER: replicas},
            no_deps=True,
            force_recreate=True,
        )

        logger.info("Worker concurrency changed from %d to %d", before, concurrency)
        return {"before": before, "after": concurrency, "replicas": replicas}
