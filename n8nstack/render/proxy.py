"""Reverse-proxy routing model, builders and nginx serializer."""

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..config import defaults

SECURITY_HEADERS: List[Tuple[str, str]] = [
    ("Strict-Transport-Security", "max-age=31536000; includeSubDomains"),
    ("X-Frame-Options", "SAMEORIGIN"),
    ("X-Content-Type-Options", "nosniff"),
    ("Referrer-Policy", "strict-origin-when-cross-origin"),
]

STATIC_EXTENSIONS = ("js", "css", "png", "jpg", "jpeg", "gif", "ico", "svg", "woff", "woff2", "ttf", "eot", "map")
API_PREFIXES = ("api", "webhook", "webhook-test", "webhook-waiting", "form", "form-test", "form-waiting")


@dataclass
class RateLimitZone:
    """limit_req_zone declaration."""

    name: str
    rate: str
    size: str = "10m"


@dataclass
class LocationRule:
    """One location block."""

    path: str
    modifier: str = ""
    proxy_pass: Optional[str] = None
    root: Optional[str] = None
    return_code: Optional[int] = None
    return_target: Optional[str] = None
    rate_limit_zone: Optional[str] = None
    burst: int = 0
    timeout: int = 60
    buffering: bool = True
    request_buffering: bool = True
    websocket: bool = False
    ignore_client_abort: bool = False
    expires: Optional[str] = None
    headers: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def match(self) -> str:
        return f"{self.modifier} {self.path}" if self.modifier else self.path


@dataclass
class ServerBlock:
    """One server block."""

    server_name: str
    listen: List[str]
    locations: List[LocationRule]
    ssl_certificate: Optional[str] = None
    ssl_certificate_key: Optional[str] = None
    ssl_options_include: Optional[str] = None
    ssl_dhparam: Optional[str] = None
    client_max_body_size: Optional[str] = None
    headers: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class ProxySite:
    """A complete nginx site file."""

    name: str
    servers: List[ServerBlock]
    zones: List[RateLimitZone] = field(default_factory=list)
    upgrade_map: bool = False

    @property
    def uses_tls(self) -> bool:
        return any(s.ssl_certificate for s in self.servers)


def certificate_paths_for(domain: str, letsencrypt_dir: str = defaults.LETSENCRYPT_DIR) -> Tuple[str, str]:
    """Return (fullchain, privkey) paths for a domain."""
    live = os.path.join(letsencrypt_dir, "live", domain)
    return os.path.join(live, "fullchain.pem"), os.path.join(live, "privkey.pem")


def _challenge_location(webroot: str) -> LocationRule:
    return LocationRule(path="/.well-known/acme-challenge/", modifier="^~", root=webroot)


def build_challenge_site(domain: str, webroot: str = defaults.CERTBOT_WEBROOT) -> ProxySite:
    """
    Build the challenge-serving site.

    Only the ACME challenge path is served; everything else is 404.
    """
    server = ServerBlock(
        server_name=domain,
        listen=["80", "[::]:80"],
        locations=[
            _challenge_location(webroot),
            LocationRule(path="/", return_code=404),
        ],
    )
    return ProxySite(name=defaults.NGINX_SITE_NAME, servers=[server])


def build_production_site(
    domain: str,
    payload_size_max_mb: int = 16,
    upstream_port: int = defaults.N8N_PORT,
    webroot: str = defaults.CERTBOT_WEBROOT,
    letsencrypt_dir: str = defaults.LETSENCRYPT_DIR,
    dhparam_file: str = defaults.DHPARAM_FILE,
    tls_options_file: str = defaults.TLS_OPTIONS_FILE,
) -> ProxySite:
    """
    Build the production site: HTTP redirect plus the TLS routing rules.

    Args:
        domain: Served domain
        payload_size_max_mb: Application payload limit, mirrored as the body size limit
        upstream_port: Loopback port of the application
        webroot: Directory serving ACME challenges for renewals
        letsencrypt_dir: Certificate base directory
        dhparam_file: Diffie-Hellman parameter file
        tls_options_file: Shared TLS policy snippet

    Returns:
        ProxySite: Production site
    """
    upstream = f"http://127.0.0.1:{upstream_port}"
    fullchain, privkey = certificate_paths_for(domain, letsencrypt_dir)

    redirect_server = ServerBlock(
        server_name=domain,
        listen=["80", "[::]:80"],
        locations=[
            _challenge_location(webroot),
            LocationRule(path="/", return_code=301, return_target="https://$host$request_uri"),
        ],
    )

    static_pattern = r"\.(" + "|".join(STATIC_EXTENSIONS) + r")$"
    api_pattern = r"^/(" + "|".join(API_PREFIXES) + r")/"

    locations = [
        # Server-sent events / websocket push channel
        LocationRule(
            path="/rest/push",
            modifier="^~",
            proxy_pass=upstream,
            timeout=86400,
            buffering=False,
            websocket=True,
            ignore_client_abort=True,
        ),
        LocationRule(
            path="/rest/binary-data",
            modifier="^~",
            proxy_pass=upstream,
            rate_limit_zone="n8n_api",
            burst=50,
            timeout=600,
            buffering=False,
            request_buffering=False,
        ),
        LocationRule(
            path=static_pattern,
            modifier="~*",
            proxy_pass=upstream,
            expires="1y",
            headers=SECURITY_HEADERS + [("Cache-Control", "public, immutable")],
        ),
        LocationRule(
            path=api_pattern,
            modifier="~",
            proxy_pass=upstream,
            rate_limit_zone="n8n_api",
            burst=50,
            timeout=300,
        ),
        LocationRule(
            path="/",
            proxy_pass=upstream,
            rate_limit_zone="n8n_general",
            burst=40,
            timeout=60,
            websocket=True,
        ),
    ]

    tls_server = ServerBlock(
        server_name=domain,
        listen=["443 ssl http2", "[::]:443 ssl http2"],
        locations=locations,
        ssl_certificate=fullchain,
        ssl_certificate_key=privkey,
        ssl_options_include=tls_options_file,
        ssl_dhparam=dhparam_file,
        client_max_body_size=f"{payload_size_max_mb}M",
        headers=list(SECURITY_HEADERS),
    )

    return ProxySite(
        name=defaults.NGINX_SITE_NAME,
        servers=[redirect_server, tls_server],
        zones=[
            RateLimitZone(name="n8n_general", rate="20r/s"),
            RateLimitZone(name="n8n_api", rate="50r/s"),
        ],
        upgrade_map=True,
    )


class NginxRenderer:
    """Renders ProxySite objects as nginx configuration text."""

    def __init__(self):
        templates_dir = os.path.join(os.path.dirname(__file__), "..", "templates")
        self.jinja_env = Environment(
            loader=FileSystemLoader(templates_dir),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    def render(self, site: ProxySite) -> str:
        template = self.jinja_env.get_template("nginx-site.conf.j2")
        return template.render(site=site)
