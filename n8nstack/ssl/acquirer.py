"""Two-phase certificate acquisition for the reverse proxy."""

import logging
import time
from typing import Any, Callable, Dict, Optional

from ..config import defaults
from ..config.settings import InstallationTarget
from ..render.proxy import ProxySite, build_challenge_site, build_production_site
from ..utils.commands import CommandRunner
from ..utils.errors import SSLError, create_error_suggestions, format_validation_errors
from ..utils.retry import retry
from .letsencrypt import LetsEncryptManager
from .manager import SSLManager
from .nginx import NginxManager

logger = logging.getLogger(__name__)

CHALLENGE = "challenge"
PRODUCTION = "production"


class CertificateAcquirer:
    """
    Moves the proxy from the challenge-serving site to the production site.

    The challenge site answers only the ACME challenge path. The production
    site is written only once a certificate for the domain is on disk and
    valid; any failure before that leaves the challenge site in place, which
    is safe to retry from.
    """

    def __init__(
        self,
        target: InstallationTarget,
        runner: Optional[CommandRunner] = None,
        nginx: Optional[NginxManager] = None,
        letsencrypt: Optional[LetsEncryptManager] = None,
        ssl_manager: Optional[SSLManager] = None,
        payload_size_max_mb: int = 16,
        attempts: int = defaults.CERT_ATTEMPTS,
        retry_delay: float = defaults.CERT_RETRY_DELAY,
        webroot: str = defaults.CERTBOT_WEBROOT,
        sleep: Callable[[float], None] = time.sleep,
        verbose: bool = False,
    ):
        self.target = target
        self.verbose = verbose
        self.runner = runner or CommandRunner(verbose=verbose)
        self.nginx = nginx or NginxManager(runner=self.runner, verbose=verbose)
        self.letsencrypt = letsencrypt or LetsEncryptManager(target.email, runner=self.runner, verbose=verbose)
        self.ssl_manager = ssl_manager or SSLManager(runner=self.runner, verbose=verbose)
        self.payload_size_max_mb = payload_size_max_mb
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.webroot = webroot
        self.sleep = sleep
        self.state: Optional[str] = None

    def challenge_site(self) -> ProxySite:
        return build_challenge_site(self.target.domain, webroot=self.webroot)

    def production_site(self) -> ProxySite:
        return build_production_site(
            self.target.domain,
            payload_size_max_mb=self.payload_size_max_mb,
            webroot=self.webroot,
            letsencrypt_dir=self.letsencrypt.letsencrypt_dir,
            dhparam_file=self.ssl_manager.dhparam_file,
            tls_options_file=self.ssl_manager.tls_options_file,
        )

    def serve_challenge(self) -> None:
        """Install the challenge-serving site."""
        self.nginx.install_site(self.challenge_site())
        self.state = CHALLENGE
        if self.verbose:
            print(f"Serving ACME challenges for {self.target.domain} from {self.webroot}")

    def request_certificate(self) -> Dict[str, str]:
        """
        Request the certificate with bounded retries.

        Returns:
            Dict[str, str]: Paths to the certificate files
        """
        result = retry(
            lambda: self.letsencrypt.obtain_certificate(self.target.domain, webroot=self.webroot),
            attempts=self.attempts,
            delay=self.retry_delay,
            retry_on=(SSLError,),
            description=f"certificate request for {self.target.domain}",
            sleep=self.sleep,
        )

        if not result.success:
            details = getattr(result.error, "details", None) or str(result.error)
            raise SSLError(
                f"Could not obtain a certificate for {self.target.domain} after {result.attempts} attempts "
                f"(server address: {self.target.server_ip or 'unknown'})",
                details=details,
                suggestions=create_error_suggestions(
                    "certificate_failed",
                    domain=self.target.domain,
                    server_ip=self.target.server_ip or "<server ip>",
                ),
            )

        return result.value

    def verify_certificate(self) -> Dict[str, Any]:
        validation = self.letsencrypt.verify_certificate(self.target.domain)
        if not validation["valid"]:
            raise SSLError(
                f"Certificate for {self.target.domain} is not usable",
                details=format_validation_errors(validation["errors"]),
            )
        for warning in validation["warnings"]:
            logger.warning(warning)
        return validation

    def acquire(self) -> Dict[str, Any]:
        """
        Run both phases and leave the proxy in the production state.

        Returns:
            Dict[str, Any]: Certificate paths and validation result
        """
        self.serve_challenge()
        paths = self.request_certificate()
        validation = self.verify_certificate()

        self.ssl_manager.ensure_dhparam()
        self.ssl_manager.ensure_tls_options()

        self.nginx.install_site(self.production_site())
        self.state = PRODUCTION
        logger.info("Reverse proxy for %s switched to TLS", self.target.domain)

        return {"paths": paths, "validation": validation}
