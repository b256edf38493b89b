"""Host inspection run before anything on the host is changed."""

import ipaddress
import logging
import os
import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

import psutil
import requests

from ..config import defaults
from ..config.settings import InstallPaths
from ..utils.commands import CommandRunner
from ..utils.errors import CommandError, PreconditionError, create_error_suggestions

logger = logging.getLogger(__name__)

GB = 1024**3


class CheckStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass
class CheckResult:
    name: str
    status: CheckStatus
    message: str
    suggestions: List[str] = field(default_factory=list)


@dataclass
class ProbeResult:
    """Ordered check results plus the facts discovered along the way."""

    checks: List[CheckResult] = field(default_factory=list)
    server_ip: Optional[str] = None
    resolved_addresses: List[str] = field(default_factory=list)

    def add(self, name: str, status: CheckStatus, message: str, suggestions: Optional[List[str]] = None) -> CheckResult:
        check = CheckResult(name, status, message, suggestions or [])
        self.checks.append(check)
        return check

    @property
    def failures(self) -> List[CheckResult]:
        return [c for c in self.checks if c.status == CheckStatus.FAIL]

    @property
    def warnings(self) -> List[CheckResult]:
        return [c for c in self.checks if c.status == CheckStatus.WARN]

    @property
    def fatal(self) -> bool:
        return bool(self.failures)

    def raise_for_failures(self) -> None:
        """Raise PreconditionError for the first fatal check."""
        if not self.failures:
            return
        first = self.failures[0]
        details = None
        if len(self.failures) > 1:
            details = "; ".join(c.message for c in self.failures[1:])
        raise PreconditionError(first.message, details=details, suggestions=first.suggestions)


class EnvironmentProbe:
    """
    Checks that the host can take a new installation.

    Fatal checks (privilege, OS, existing installation, busy ports, a domain
    that does not resolve) come first. The only side effect, installing a DNS
    lookup tool, happens after those checks have passed.
    """

    def __init__(
        self,
        paths: InstallPaths,
        runner: Optional[CommandRunner] = None,
        os_release_path: str = "/etc/os-release",
        ports: Sequence[int] = (defaults.N8N_PORT, defaults.POSTGRES_HOST_PORT),
        verbose: bool = False,
    ):
        self.paths = paths
        self.verbose = verbose
        self.runner = runner or CommandRunner(verbose=verbose)
        self.os_release_path = os_release_path
        self.ports = tuple(ports)

    def run(self, domain: str) -> ProbeResult:
        """
        Run every check for a target domain.

        Args:
            domain: Domain the installation will serve

        Returns:
            ProbeResult: Check results, discovered public IP and DNS addresses
        """
        result = ProbeResult()

        self.check_privileges(result)
        self.check_os(result)
        self.check_installation_absent(result)
        self.check_ports(result)

        if result.fatal:
            return result

        result.server_ip = self.discover_public_ip()
        self.check_dns(result, domain)
        self.check_resources(result)

        if self.verbose:
            for check in result.checks:
                print(f"[{check.status.value}] {check.name}: {check.message}")

        return result

    def check_privileges(self, result: ProbeResult) -> None:
        if os.geteuid() == 0:
            result.add("privileges", CheckStatus.PASS, "Running as root")
        else:
            result.add(
                "privileges",
                CheckStatus.FAIL,
                "This command must be run as root",
                ["Re-run with sudo"],
            )

    def read_os_release(self) -> Dict[str, str]:
        info: Dict[str, str] = {}
        if not os.path.exists(self.os_release_path):
            return info
        with open(self.os_release_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                info[key] = value.strip().strip('"').strip("'")
        return info

    def check_os(self, result: ProbeResult) -> None:
        info = self.read_os_release()
        families = {info.get("ID", "").lower()} | set(info.get("ID_LIKE", "").lower().split())
        name = info.get("PRETTY_NAME") or info.get("ID") or "unknown"

        if families & set(defaults.SUPPORTED_OS_IDS):
            result.add("os", CheckStatus.PASS, f"Supported operating system: {name}")
        else:
            result.add(
                "os",
                CheckStatus.FAIL,
                f"Unsupported operating system: {name}",
                [f"Use one of: {', '.join(defaults.SUPPORTED_OS_IDS)}"],
            )

    def check_installation_absent(self, result: ProbeResult) -> None:
        if self.paths.exists():
            result.add(
                "installation",
                CheckStatus.FAIL,
                f"Installation directory already exists: {self.paths.root}",
                create_error_suggestions("installation_exists", install_dir=self.paths.root),
            )
        else:
            result.add("installation", CheckStatus.PASS, f"{self.paths.root} is free")

    def listening_ports(self) -> set:
        return {
            conn.laddr.port
            for conn in psutil.net_connections(kind="inet")
            if conn.status == psutil.CONN_LISTEN and conn.laddr
        }

    def check_ports(self, result: ProbeResult) -> None:
        busy = self.listening_ports()
        for port in self.ports:
            if port in busy:
                result.add(
                    f"port {port}",
                    CheckStatus.FAIL,
                    f"Port {port} is already in use",
                    create_error_suggestions("port_in_use"),
                )
            else:
                result.add(f"port {port}", CheckStatus.PASS, f"Port {port} is free")

    def ensure_dns_tool(self) -> bool:
        """Install dig if missing. Returns True when dig is available."""
        if self.runner.which("dig"):
            return True
        try:
            self.runner.run(["apt-get", "install", "-y", "dnsutils"], capture_output=True)
        except CommandError as e:
            logger.warning("Could not install dnsutils: %s", e.message)
            return False
        return self.runner.which("dig") is not None

    def resolve(self, domain: str) -> List[str]:
        """IPv4 addresses the domain resolves to."""
        if self.ensure_dns_tool():
            output = self.runner.output(["dig", "+short", "A", domain], check=False)
            return [line for line in output.splitlines() if _is_ipv4(line.strip())]

        try:
            infos = socket.getaddrinfo(domain, None, socket.AF_INET)
        except socket.gaierror:
            return []
        return sorted({info[4][0] for info in infos})

    def discover_public_ip(self, timeout: int = 10) -> Optional[str]:
        """Best-effort lookup of the host's public IPv4 address."""
        for url in defaults.PUBLIC_IP_URLS:
            try:
                response = requests.get(url, timeout=timeout)
                response.raise_for_status()
            except requests.exceptions.RequestException as e:
                logger.debug("Public IP lookup via %s failed: %s", url, e)
                continue
            address = response.text.strip()
            if _is_ipv4(address):
                return address
        return None

    def check_dns(self, result: ProbeResult, domain: str) -> None:
        addresses = self.resolve(domain)
        result.resolved_addresses = addresses
        server_ip = result.server_ip or "<server ip>"

        if not addresses:
            result.add(
                "dns",
                CheckStatus.FAIL,
                f"{domain} does not resolve",
                create_error_suggestions("dns_unresolved", domain=domain, server_ip=server_ip),
            )
        elif result.server_ip and result.server_ip not in addresses:
            result.add(
                "dns",
                CheckStatus.WARN,
                f"{domain} resolves to {', '.join(addresses)}, not to this server ({result.server_ip})",
                create_error_suggestions("dns_unresolved", domain=domain, server_ip=server_ip),
            )
        else:
            result.add("dns", CheckStatus.PASS, f"{domain} resolves to {', '.join(addresses)}")

    def check_resources(self, result: ProbeResult) -> None:
        cpu_count = psutil.cpu_count() or 0
        if cpu_count < defaults.MIN_CPU_CORES:
            result.add("cpu", CheckStatus.WARN, f"Low CPU count: {cpu_count} (recommended: {defaults.MIN_CPU_CORES}+)")
        else:
            result.add("cpu", CheckStatus.PASS, f"{cpu_count} CPU cores")

        memory_gb = psutil.virtual_memory().total / GB
        if memory_gb < defaults.MIN_MEMORY_GB:
            result.add(
                "memory",
                CheckStatus.WARN,
                f"Low memory: {memory_gb:.1f}GB (recommended: {defaults.MIN_MEMORY_GB:.0f}GB+)",
            )
        else:
            result.add("memory", CheckStatus.PASS, f"{memory_gb:.1f}GB memory")

        free_gb = psutil.disk_usage(_existing_parent(self.paths.root)).free / GB
        if free_gb < defaults.MIN_DISK_GB:
            result.add(
                "disk",
                CheckStatus.WARN,
                f"Low disk space: {free_gb:.1f}GB free (recommended: {defaults.MIN_DISK_GB:.0f}GB+)",
            )
        else:
            result.add("disk", CheckStatus.PASS, f"{free_gb:.1f}GB free disk space")


def _is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def _existing_parent(path: str) -> str:
    path = os.path.abspath(path)
    while not os.path.exists(path):
        parent = os.path.dirname(path)
        if parent == path:
            break
        path = parent
    return path
