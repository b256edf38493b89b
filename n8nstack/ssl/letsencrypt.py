"""Let's Encrypt integration for automated SSL certificates."""

import logging
import os
from typing import Any, Dict, Optional

from ..config import defaults
from ..render.proxy import certificate_paths_for
from ..utils.commands import CommandRunner
from ..utils.errors import CommandError, SSLError
from .manager import SSLManager

logger = logging.getLogger(__name__)


class LetsEncryptManager:
    """Manages Let's Encrypt SSL certificates through certbot."""

    def __init__(
        self,
        email: Optional[str] = None,
        runner: Optional[CommandRunner] = None,
        staging: bool = False,
        letsencrypt_dir: str = defaults.LETSENCRYPT_DIR,
        verbose: bool = False,
    ):
        """
        Initialize Let's Encrypt manager.

        Args:
            email: Email address for Let's Encrypt registration
            runner: Command runner (created when omitted)
            staging: Use Let's Encrypt staging environment
            letsencrypt_dir: certbot configuration directory
            verbose: Enable verbose output
        """
        self.email = email
        self.staging = staging
        self.verbose = verbose
        self.letsencrypt_dir = letsencrypt_dir
        self.runner = runner or CommandRunner(verbose=verbose)
        self.ssl_manager = SSLManager(runner=self.runner, verbose=verbose)

    def certificate_paths(self, domain: str) -> Dict[str, str]:
        fullchain, privkey = certificate_paths_for(domain, self.letsencrypt_dir)
        return {"fullchain": fullchain, "privkey": privkey}

    def has_certificate(self, domain: str) -> bool:
        return all(os.path.exists(path) for path in self.certificate_paths(domain).values())

    def obtain_certificate(self, domain: str, webroot: str = defaults.CERTBOT_WEBROOT) -> Dict[str, str]:
        """
        Obtain a certificate with the webroot challenge.

        Args:
            domain: Domain name
            webroot: Directory served at /.well-known/acme-challenge/

        Returns:
            Dict[str, str]: Paths to the certificate files
        """
        os.makedirs(webroot, exist_ok=True)

        cmd = [
            "certbot",
            "certonly",
            "--webroot",
            "-w",
            webroot,
            "-d",
            domain,
            "--agree-tos",
            "--non-interactive",
            "--keep-until-expiring",
        ]
        if self.email:
            cmd.extend(["--email", self.email])
        else:
            cmd.append("--register-unsafely-without-email")
        if self.staging:
            cmd.append("--staging")

        if self.verbose:
            print(f"Requesting certificate for {domain}")

        try:
            self.runner.run(cmd, capture_output=True)
        except CommandError as e:
            raise SSLError(f"certbot failed for {domain}", details=e.details) from e

        paths = self.certificate_paths(domain)
        if not self.has_certificate(domain):
            raise SSLError(f"certbot finished but no certificate was found for {domain}")

        logger.info("Certificate obtained for %s", domain)
        return paths

    def verify_certificate(self, domain: str) -> Dict[str, Any]:
        """Validate the issued certificate for a domain."""
        return self.ssl_manager.validate_certificate(self.certificate_paths(domain)["fullchain"], domain)

    def renew_certificates(self) -> str:
        """
        Renew every certificate that is close to expiry.

        nginx is not reloaded here; callers reload it once certbot is done.

        Returns:
            str: certbot output
        """
        cmd = ["certbot", "renew", "--quiet", "--no-random-sleep-on-renew"]

        try:
            result = self.runner.run(cmd, capture_output=True)
        except CommandError as e:
            raise SSLError("Certificate renewal failed", details=e.details) from e

        return result.stdout or ""
