"""Environment file construction."""

from typing import Dict

from ..config import defaults
from ..config.environment import EnvironmentConfig
from ..config.settings import CredentialSet, InstallationTarget, TuningSettings
from ..utils.errors import ConfigurationError


def build_environment(
    target: InstallationTarget,
    credentials: CredentialSet,
    tuning: TuningSettings,
) -> EnvironmentConfig:
    """
    Build the environment file of a new installation.

    Args:
        target: Domain and contact of the installation
        credentials: Freshly generated secrets
        tuning: Tuning settings

    Returns:
        EnvironmentConfig: Snapshot ready to be written by EnvironmentStore
    """
    values: Dict[str, object] = {
        "POSTGRES_USER": defaults.POSTGRES_SUPERUSER,
        "POSTGRES_PASSWORD": credentials.postgres_password,
        "POSTGRES_DB": defaults.POSTGRES_DATABASE,
        "POSTGRES_NON_ROOT_USER": defaults.POSTGRES_APP_USER,
        "POSTGRES_NON_ROOT_PASSWORD": credentials.postgres_app_password,
        "DB_TYPE": "postgresdb",
        "DB_POSTGRESDB_HOST": defaults.SERVICE_DATABASE,
        "DB_POSTGRESDB_PORT": defaults.POSTGRES_CONTAINER_PORT,
        "DB_POSTGRESDB_DATABASE": defaults.POSTGRES_DATABASE,
        "DB_POSTGRESDB_USER": defaults.POSTGRES_APP_USER,
        "DB_POSTGRESDB_PASSWORD": credentials.postgres_app_password,
        "N8N_HOST": target.domain,
        "N8N_PROTOCOL": "https",
        "N8N_PORT": defaults.N8N_PORT,
        "WEBHOOK_URL": target.base_url,
        "N8N_EDITOR_BASE_URL": target.base_url,
        "N8N_ENCRYPTION_KEY": credentials.encryption_key,
        "GENERIC_TIMEZONE": tuning.timezone,
        "TZ": tuning.timezone,
        "NODE_ENV": "production",
        "N8N_PROXY_HOPS": tuning.proxy_hops,
        "EXECUTIONS_MODE": tuning.execution_mode,
    }

    if tuning.queue_mode:
        values.update(
            {
                "QUEUE_BULL_REDIS_HOST": defaults.SERVICE_QUEUE,
                "QUEUE_BULL_REDIS_PORT": defaults.REDIS_PORT,
                "QUEUE_BULL_REDIS_PASSWORD": credentials.redis_password,
                "QUEUE_HEALTH_CHECK_ACTIVE": "true",
                "OFFLOAD_MANUAL_EXECUTIONS_TO_WORKERS": "true",
            }
        )

    values.update(
        {
            "EXECUTIONS_DATA_PRUNE": "true",
            "EXECUTIONS_DATA_MAX_AGE": tuning.execution_max_age_hours,
            "EXECUTIONS_DATA_PRUNE_MAX_COUNT": tuning.execution_max_count,
            "N8N_PAYLOAD_SIZE_MAX": tuning.payload_size_max_mb,
            "N8N_DEFAULT_BINARY_DATA_MODE": tuning.binary_data_mode,
            "N8N_VERSION": tuning.version,
        }
    )

    if tuning.queue_mode:
        values["N8N_WORKER_CONCURRENCY"] = tuning.worker_concurrency
        values["N8N_WORKER_REPLICAS"] = tuning.worker_replicas

    for key, value in tuning.extra_env.items():
        if key in values:
            raise ConfigurationError(f"extra_env cannot override {key}, it is managed by n8nstack")
        if isinstance(value, bool):
            value = "true" if value else "false"
        values[key] = value

    return EnvironmentConfig({k: str(v) for k, v in values.items()})
