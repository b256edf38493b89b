"""Typed installation settings."""

import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from . import defaults


@dataclass(frozen=True)
class InstallPaths:
    """Every file of an installation, derived from its root directory."""

    root: str = defaults.INSTALL_DIR

    @property
    def env_file(self) -> str:
        return os.path.join(self.root, defaults.ENV_FILE_NAME)

    @property
    def compose_file(self) -> str:
        return os.path.join(self.root, defaults.COMPOSE_FILE_NAME)

    @property
    def bootstrap_script(self) -> str:
        return os.path.join(self.root, defaults.BOOTSTRAP_SCRIPT_NAME)

    @property
    def app_data_dir(self) -> str:
        return os.path.join(self.root, defaults.APP_DATA_DIR_NAME)

    @property
    def backup_dir(self) -> str:
        return os.path.join(self.root, defaults.BACKUP_DIR_NAME)

    def exists(self) -> bool:
        return os.path.exists(self.root)


@dataclass(frozen=True)
class InstallationTarget:
    """Operator input captured once at install start."""

    domain: str
    email: str
    server_ip: Optional[str] = None

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}/"


@dataclass(frozen=True)
class CredentialSet:
    """Secrets generated once per installation."""

    postgres_password: str
    postgres_app_password: str
    encryption_key: str
    redis_password: str

    def __repr__(self) -> str:
        return "CredentialSet(<redacted>)"


@dataclass
class TuningSettings:
    """Tuning defaults that shape the environment file and topology."""

    execution_mode: str = "queue"
    worker_concurrency: int = 10
    worker_replicas: int = 1
    execution_max_age_hours: int = 336
    execution_max_count: int = 10000
    payload_size_max_mb: int = 16
    binary_data_mode: str = "filesystem"
    proxy_hops: int = 1
    timezone: str = "UTC"
    version: str = "latest"
    extra_env: Dict[str, str] = field(default_factory=dict)

    @property
    def queue_mode(self) -> bool:
        return self.execution_mode == "queue"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TuningSettings":
        """Build settings from a validated mapping, ignoring unknown keys."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
