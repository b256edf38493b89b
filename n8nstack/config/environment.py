"""Environment file snapshot and its single writer."""

import hashlib
import os
import re
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from ..utils.errors import ConfigurationError
from ..utils.files import FileManager

KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SECTIONS: List[Tuple[str, List[str]]] = [
    (
        "Database",
        [
            "POSTGRES_USER",
            "POSTGRES_PASSWORD",
            "POSTGRES_DB",
            "POSTGRES_NON_ROOT_USER",
            "POSTGRES_NON_ROOT_PASSWORD",
            "DB_TYPE",
            "DB_POSTGRESDB_HOST",
            "DB_POSTGRESDB_PORT",
            "DB_POSTGRESDB_DATABASE",
            "DB_POSTGRESDB_USER",
            "DB_POSTGRESDB_PASSWORD",
        ],
    ),
    (
        "n8n",
        [
            "N8N_HOST",
            "N8N_PROTOCOL",
            "N8N_PORT",
            "WEBHOOK_URL",
            "N8N_EDITOR_BASE_URL",
            "N8N_ENCRYPTION_KEY",
            "GENERIC_TIMEZONE",
            "TZ",
            "NODE_ENV",
            "N8N_PROXY_HOPS",
        ],
    ),
    (
        "Execution mode",
        [
            "EXECUTIONS_MODE",
            "QUEUE_BULL_REDIS_HOST",
            "QUEUE_BULL_REDIS_PORT",
            "QUEUE_BULL_REDIS_PASSWORD",
            "QUEUE_HEALTH_CHECK_ACTIVE",
            "OFFLOAD_MANUAL_EXECUTIONS_TO_WORKERS",
        ],
    ),
    (
        "Execution history",
        [
            "EXECUTIONS_DATA_PRUNE",
            "EXECUTIONS_DATA_MAX_AGE",
            "EXECUTIONS_DATA_PRUNE_MAX_COUNT",
        ],
    ),
    ("Payloads", ["N8N_PAYLOAD_SIZE_MAX", "N8N_DEFAULT_BINARY_DATA_MODE"]),
    ("Runtime control", ["N8N_VERSION", "N8N_WORKER_CONCURRENCY", "N8N_WORKER_REPLICAS"]),
]

# Keys generated by n8nstack; extra_env may not override them.
MANAGED_KEYS = frozenset(key for _, keys in SECTIONS for key in keys)


def _revision(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class EnvironmentConfig(Mapping[str, str]):
    """Immutable snapshot of the installation's environment file.

    Every process builds one of these at startup; changes produce a new
    snapshot and are persisted only through EnvironmentStore.
    """

    def __init__(self, values: Mapping[str, str], revision: Optional[str] = None):
        for key, value in values.items():
            if not KEY_PATTERN.match(key):
                raise ConfigurationError(f"Invalid environment key: {key!r}")
            if "\n" in str(value) or "\r" in str(value):
                raise ConfigurationError(f"Value for {key} must be a single line")
        self._values: Dict[str, str] = {k: str(v) for k, v in values.items()}
        self.revision = revision or _revision(self.render())

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"EnvironmentConfig(keys={len(self._values)}, revision={self.revision[:12]})"

    @classmethod
    def parse(cls, text: str) -> "EnvironmentConfig":
        """Parse KEY=VALUE lines, skipping comments and blank lines."""
        values: Dict[str, str] = {}
        for lineno, raw in enumerate(text.splitlines(), 1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                raise ConfigurationError(f"Malformed environment line {lineno}: {raw!r}")
            key, value = line.split("=", 1)
            key, value = key.strip(), value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                value = value[1:-1]
            values[key] = value
        return cls(values, revision=_revision(text))

    @classmethod
    def load(cls, path: str) -> "EnvironmentConfig":
        if not os.path.exists(path):
            raise ConfigurationError(
                f"Environment file not found: {path}",
                suggestions=["Run 'n8nstack install' first"],
            )
        with open(path, encoding="utf-8") as f:
            return cls.parse(f.read())

    def render(self) -> str:
        """Render the snapshot as an env file, grouped into commented sections."""
        lines = ["# n8n environment - generated by n8nstack", "# Edit with the n8nstack commands only", ""]
        emitted = set()
        for title, keys in SECTIONS:
            present = [k for k in keys if k in self._values]
            if not present:
                continue
            lines.append(f"# {title}")
            for key in present:
                lines.append(f"{key}={self._values[key]}")
                emitted.add(key)
            lines.append("")

        remaining = [k for k in self._values if k not in emitted]
        if remaining:
            lines.append("# Additional settings")
            for key in remaining:
                lines.append(f"{key}={self._values[key]}")
            lines.append("")

        return "\n".join(lines)

    def with_updates(self, changes: Mapping[str, object]) -> "EnvironmentConfig":
        values = dict(self._values)
        values.update({k: str(v) for k, v in changes.items()})
        return EnvironmentConfig(values)

    def _int(self, key: str, default: int) -> int:
        raw = self._values.get(key)
        if raw in (None, ""):
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got {raw!r}")

    @property
    def domain(self) -> str:
        return self._values.get("N8N_HOST", "")

    @property
    def execution_mode(self) -> str:
        return self._values.get("EXECUTIONS_MODE", "regular")

    @property
    def queue_mode(self) -> bool:
        return self.execution_mode == "queue"

    @property
    def version(self) -> str:
        return self._values.get("N8N_VERSION", "latest")

    @property
    def worker_concurrency(self) -> int:
        return self._int("N8N_WORKER_CONCURRENCY", 10)

    @property
    def worker_replicas(self) -> int:
        if not self.queue_mode:
            return 0
        return self._int("N8N_WORKER_REPLICAS", 1)

    @property
    def postgres_user(self) -> str:
        return self._values.get("POSTGRES_USER", "postgres")

    @property
    def postgres_db(self) -> str:
        return self._values.get("POSTGRES_DB", "n8n")


class EnvironmentStore:
    """The only writer of the environment file."""

    def __init__(self, path: str, verbose: bool = False):
        self.path = path
        self.verbose = verbose
        self.file_manager = FileManager(verbose=verbose)

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def load(self) -> EnvironmentConfig:
        return EnvironmentConfig.load(self.path)

    def create(self, config: EnvironmentConfig) -> EnvironmentConfig:
        """
        Write the environment file of a new installation.

        Raises:
            ConfigurationError: If the file already exists; credentials
                in it must never be replaced.
        """
        if self.exists():
            raise ConfigurationError(
                f"Environment file already exists: {self.path}",
                details="Regenerating credentials would make stored workflow credentials unreadable",
            )
        self.file_manager.write_file(self.path, config.render(), mode=0o600)
        return self.load()

    def update(self, snapshot: EnvironmentConfig, changes: Mapping[str, object]) -> EnvironmentConfig:
        """
        Apply changes on top of a snapshot and persist them.

        Args:
            snapshot: Snapshot the caller based its decision on
            changes: Keys to set

        Returns:
            EnvironmentConfig: Snapshot of the written file

        Raises:
            ConfigurationError: If the file changed after the snapshot was read
        """
        current = self.load()
        if current.revision != snapshot.revision:
            raise ConfigurationError(
                f"{self.path} changed since it was read",
                suggestions=["Re-run the command; another operation modified the configuration"],
            )

        updated = current.with_updates(changes)
        self.file_manager.write_file(self.path, updated.render(), mode=0o600)

        if self.verbose:
            print(f"Updated {', '.join(sorted(changes))} in {self.path}")

        return self.load()
