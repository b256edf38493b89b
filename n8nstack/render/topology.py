"""Service topology model and builder."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config import defaults
from ..config.environment import EnvironmentConfig
from ..utils.errors import ConfigurationError


@dataclass
class HealthProbe:
    """Container health probe."""

    test: List[str]
    interval: str = "5s"
    timeout: str = "5s"
    retries: int = 10
    start_period: Optional[str] = None


@dataclass
class LogLimits:
    """json-file log rotation limits."""

    max_size: str = "10m"
    max_file: int = 3


@dataclass
class ServiceSpec:
    """One service of the topology."""

    name: str
    image: str
    container_name: Optional[str] = None
    command: Optional[List[str]] = None
    environment: Dict[str, str] = field(default_factory=dict)
    env_file: List[str] = field(default_factory=list)
    ports: List[str] = field(default_factory=list)
    volumes: List[str] = field(default_factory=list)
    depends_on: Dict[str, str] = field(default_factory=dict)
    healthcheck: Optional[HealthProbe] = None
    networks: List[str] = field(default_factory=list)
    restart: str = "unless-stopped"
    replicas: Optional[int] = None
    stateful: bool = False
    logging: LogLimits = field(default_factory=LogLimits)


@dataclass
class ServiceTopology:
    """Services, volumes and networks of one deployment."""

    name: str
    services: List[ServiceSpec]
    networks: List[str]
    volumes: List[str]

    def service(self, name: str) -> ServiceSpec:
        for service in self.services:
            if service.name == name:
                return service
        raise KeyError(name)

    @property
    def service_names(self) -> List[str]:
        return [s.name for s in self.services]

    @property
    def stateful_services(self) -> List[str]:
        return [s.name for s in self.services if s.stateful]

    def expected_containers(self) -> Dict[str, int]:
        """Number of containers each service should run."""
        return {s.name: (s.replicas if s.replicas is not None else 1) for s in self.services}

    def startup_tiers(self) -> List[List[str]]:
        """
        Group services into start tiers following depends_on edges.

        Every service appears in a later tier than everything it depends on.

        Raises:
            ConfigurationError: On unknown dependencies or cycles
        """
        remaining = {s.name: set(s.depends_on) for s in self.services}
        for name, deps in remaining.items():
            unknown = deps - set(remaining)
            if unknown:
                raise ConfigurationError(f"Service {name} depends on unknown service(s): {', '.join(sorted(unknown))}")

        tiers: List[List[str]] = []
        placed: set = set()
        while remaining:
            tier = [name for name in self.service_names if name in remaining and remaining[name] <= placed]
            if not tier:
                raise ConfigurationError(f"Dependency cycle between services: {', '.join(sorted(remaining))}")
            tiers.append(tier)
            placed.update(tier)
            for name in tier:
                del remaining[name]

        return tiers

    def validate(self) -> List[str]:
        """Return a list of problems with the topology (empty if valid)."""
        errors = []
        for service in self.services:
            if service.stateful and service.healthcheck is None:
                errors.append(f"Stateful service {service.name} has no health probe")
            if service.replicas is not None and service.replicas < 1:
                errors.append(f"Service {service.name} needs at least one replica")
            if not service.stateful:
                for stateful in self.stateful_services:
                    if service.depends_on.get(stateful) != "service_healthy":
                        errors.append(f"Service {service.name} must wait for {stateful} to be healthy")
        try:
            self.startup_tiers()
        except ConfigurationError as e:
            errors.append(e.message)
        return errors


def n8n_image(version: str) -> str:
    return f"{defaults.N8N_IMAGE_REPOSITORY}:{version}"


def _app_healthcheck() -> HealthProbe:
    return HealthProbe(
        test=["CMD-SHELL", f"wget -q --spider http://localhost:{defaults.N8N_PORT}{defaults.HEALTH_ENDPOINT} || exit 1"],
        interval="10s",
        timeout="5s",
        retries=10,
        start_period="30s",
    )


def build_topology(env: EnvironmentConfig) -> ServiceTopology:
    """
    Build the service topology described by an environment snapshot.

    The topology is a pure function of the environment file, so operators
    that change the version pin or replica count simply rebuild it.

    Args:
        env: Environment snapshot

    Returns:
        ServiceTopology: Validated topology

    Raises:
        ConfigurationError: If the resulting topology is inconsistent
    """
    network = defaults.NETWORK_NAME
    image = n8n_image(env.version)
    queue_mode = env.queue_mode

    services: List[ServiceSpec] = [
        ServiceSpec(
            name=defaults.SERVICE_DATABASE,
            image=defaults.POSTGRES_IMAGE,
            container_name="n8n-postgres",
            environment={
                "POSTGRES_USER": "${POSTGRES_USER}",
                "POSTGRES_PASSWORD": "${POSTGRES_PASSWORD}",
                "POSTGRES_DB": "${POSTGRES_DB}",
                "POSTGRES_NON_ROOT_USER": "${POSTGRES_NON_ROOT_USER}",
                "POSTGRES_NON_ROOT_PASSWORD": "${POSTGRES_NON_ROOT_PASSWORD}",
            },
            ports=[f"127.0.0.1:{defaults.POSTGRES_HOST_PORT}:{defaults.POSTGRES_CONTAINER_PORT}"],
            volumes=[
                "db_storage:/var/lib/postgresql/data",
                f"./{defaults.BOOTSTRAP_SCRIPT_NAME}:/docker-entrypoint-initdb.d/{defaults.BOOTSTRAP_SCRIPT_NAME}:ro",
            ],
            healthcheck=HealthProbe(
                test=["CMD-SHELL", "pg_isready -h localhost -U ${POSTGRES_USER} -d ${POSTGRES_DB}"],
            ),
            networks=[network],
            stateful=True,
        )
    ]

    volumes = ["db_storage"]

    if queue_mode:
        services.append(
            ServiceSpec(
                name=defaults.SERVICE_QUEUE,
                image=defaults.REDIS_IMAGE,
                container_name="n8n-redis",
                command=["redis-server", "--requirepass", "${QUEUE_BULL_REDIS_PASSWORD}", "--appendonly", "yes"],
                volumes=["redis_storage:/data"],
                healthcheck=HealthProbe(
                    test=["CMD", "redis-cli", "--no-auth-warning", "-a", "${QUEUE_BULL_REDIS_PASSWORD}", "ping"],
                ),
                networks=[network],
                stateful=True,
            )
        )
        volumes.append("redis_storage")

    stateful_deps = {name: "service_healthy" for name in (s.name for s in services)}
    app_volumes = [f"./{defaults.APP_DATA_DIR_NAME}:/home/node/.n8n"]

    services.append(
        ServiceSpec(
            name=defaults.SERVICE_MAIN,
            image=image,
            container_name="n8n",
            env_file=[defaults.ENV_FILE_NAME],
            ports=[f"127.0.0.1:{defaults.N8N_PORT}:{defaults.N8N_PORT}"],
            volumes=list(app_volumes),
            depends_on=dict(stateful_deps),
            healthcheck=_app_healthcheck(),
            networks=[network],
        )
    )

    if queue_mode:
        worker_deps = dict(stateful_deps)
        # Workers start once the main process has run the migrations
        worker_deps[defaults.SERVICE_MAIN] = "service_healthy"
        services.append(
            ServiceSpec(
                name=defaults.SERVICE_WORKER,
                image=image,
                command=["worker", "--concurrency=${N8N_WORKER_CONCURRENCY}"],
                env_file=[defaults.ENV_FILE_NAME],
                volumes=list(app_volumes),
                depends_on=worker_deps,
                healthcheck=_app_healthcheck(),
                networks=[network],
                replicas=env.worker_replicas,
            )
        )

    topology = ServiceTopology(
        name=defaults.PROJECT_NAME,
        services=services,
        networks=[network],
        volumes=volumes,
    )

    errors = topology.validate()
    if errors:
        raise ConfigurationError("Invalid service topology", details="; ".join(errors))

    return topology
