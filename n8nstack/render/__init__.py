"""Generated configuration: environment file, compose manifest, proxy rules."""

from .compose import dump_compose, to_compose_dict
from .emitter import ConfigurationEmitter
from .environment import build_environment
from .proxy import NginxRenderer, ProxySite, build_challenge_site, build_production_site
from .topology import ServiceSpec, ServiceTopology, build_topology

__all__ = [
    "ConfigurationEmitter",
    "NginxRenderer",
    "ProxySite",
    "ServiceSpec",
    "ServiceTopology",
    "build_challenge_site",
    "build_environment",
    "build_production_site",
    "build_topology",
    "dump_compose",
    "to_compose_dict",
]
