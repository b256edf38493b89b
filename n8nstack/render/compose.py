"""Docker Compose manifest serialization."""

from typing import Any, Dict

import yaml

from .topology import ServiceSpec, ServiceTopology

HEADER = "# Generated by n8nstack from .env - changes here are overwritten\n"


class _ManifestDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences under their key."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


def _service_to_compose(service: ServiceSpec) -> Dict[str, Any]:
    """Convert a service spec to its compose mapping."""
    compose_service: Dict[str, Any] = {"image": service.image}

    if service.container_name:
        compose_service["container_name"] = service.container_name

    compose_service["restart"] = service.restart

    if service.command:
        compose_service["command"] = list(service.command)

    if service.env_file:
        compose_service["env_file"] = list(service.env_file)

    if service.environment:
        compose_service["environment"] = dict(service.environment)

    if service.ports:
        compose_service["ports"] = list(service.ports)

    if service.volumes:
        compose_service["volumes"] = list(service.volumes)

    if service.depends_on:
        compose_service["depends_on"] = {
            name: {"condition": condition} for name, condition in service.depends_on.items()
        }

    if service.healthcheck:
        probe = service.healthcheck
        healthcheck: Dict[str, Any] = {
            "test": list(probe.test),
            "interval": probe.interval,
            "timeout": probe.timeout,
            "retries": probe.retries,
        }
        if probe.start_period:
            healthcheck["start_period"] = probe.start_period
        compose_service["healthcheck"] = healthcheck

    if service.replicas is not None:
        compose_service["deploy"] = {"replicas": service.replicas}

    compose_service["networks"] = list(service.networks)
    compose_service["logging"] = {
        "driver": "json-file",
        "options": {
            "max-size": service.logging.max_size,
            "max-file": str(service.logging.max_file),
        },
    }

    return compose_service


def to_compose_dict(topology: ServiceTopology) -> Dict[str, Any]:
    """
    Convert a topology to a Docker Compose document.

    Args:
        topology: Service topology

    Returns:
        Dict[str, Any]: Compose document
    """
    return {
        "name": topology.name,
        "volumes": {name: {} for name in topology.volumes},
        "networks": {name: {"driver": "bridge"} for name in topology.networks},
        "services": {service.name: _service_to_compose(service) for service in topology.services},
    }


def dump_compose(topology: ServiceTopology) -> str:
    """Serialize a topology as compose YAML."""
    body = yaml.dump(
        to_compose_dict(topology),
        Dumper=_ManifestDumper,
        default_flow_style=False,
        sort_keys=False,
        indent=2,
    )
    return HEADER + body
