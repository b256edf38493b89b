"""TLS material management: certificate inspection, DH parameters, TLS policy."""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from cryptography import x509
from cryptography.x509.oid import ExtensionOID, NameOID

from ..config import defaults
from ..utils.commands import CommandRunner
from ..utils.errors import CommandError, SSLError
from ..utils.files import FileManager


class SSLManager:
    """Manages TLS files shared by the reverse proxy."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        dhparam_file: str = defaults.DHPARAM_FILE,
        tls_options_file: str = defaults.TLS_OPTIONS_FILE,
        verbose: bool = False,
    ):
        """Initialize SSL manager."""
        self.verbose = verbose
        self.runner = runner or CommandRunner(verbose=verbose)
        self.dhparam_file = dhparam_file
        self.tls_options_file = tls_options_file
        self.file_manager = FileManager(verbose=verbose)

    def validate_certificate(self, cert_path: str, domain: str) -> Dict[str, Any]:
        """
        Validate a PEM certificate for a domain.

        Args:
            cert_path: Path to certificate file
            domain: Domain to validate against

        Returns:
            Dict[str, Any]: Validation results
        """
        validation: Dict[str, Any] = {
            "valid": True,
            "errors": [],
            "warnings": [],
            "cert_info": {},
            "expires_in_days": None,
        }

        if not os.path.exists(cert_path):
            validation["valid"] = False
            validation["errors"].append(f"Certificate file not found: {cert_path}")
            return validation

        with open(cert_path, "rb") as f:
            cert_data = f.read()

        try:
            cert = x509.load_pem_x509_certificate(cert_data)
        except ValueError as e:
            validation["valid"] = False
            validation["errors"].append(f"Invalid certificate format: {e}")
            return validation

        validation["cert_info"] = {
            "subject": cert.subject.rfc4514_string(),
            "issuer": cert.issuer.rfc4514_string(),
            "not_valid_after": cert.not_valid_after_utc.isoformat(),
        }

        expires_in = cert.not_valid_after_utc - datetime.now(timezone.utc)
        validation["expires_in_days"] = expires_in.days

        if expires_in.total_seconds() < 0:
            validation["valid"] = False
            validation["errors"].append("Certificate has expired")
        elif expires_in.days < 30:
            validation["warnings"].append(f"Certificate expires in {expires_in.days} days")

        names = [attr.value for attr in cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)]
        try:
            san = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
            names.extend(san.value.get_values_for_type(x509.DNSName))
        except x509.ExtensionNotFound:
            pass
        validation["cert_info"]["names"] = names

        if domain not in names and f"*.{domain.split('.', 1)[-1]}" not in names:
            validation["valid"] = False
            validation["errors"].append(f"Certificate is not valid for domain: {domain}")

        return validation

    def ensure_dhparam(self, bits: int = defaults.DHPARAM_BITS) -> bool:
        """
        Generate the Diffie-Hellman parameter file if it is missing.

        Returns:
            bool: True if a new file was generated
        """
        if os.path.exists(self.dhparam_file):
            return False

        if self.verbose:
            print(f"Generating {bits}-bit DH parameters (this can take several minutes)")

        os.makedirs(os.path.dirname(self.dhparam_file), exist_ok=True)
        try:
            self.runner.run(["openssl", "dhparam", "-out", self.dhparam_file, str(bits)], capture_output=True)
        except CommandError as e:
            raise SSLError("Failed to generate DH parameters", details=e.details) from e

        return True

    def ensure_tls_options(self, url: str = defaults.TLS_OPTIONS_URL, timeout: int = 30) -> bool:
        """
        Download the shared TLS policy snippet if it is missing.

        Returns:
            bool: True if the snippet was downloaded
        """
        if os.path.exists(self.tls_options_file):
            return False

        try:
            response = requests.get(url, timeout=timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise SSLError(f"Failed to download TLS options from {url}", details=str(e)) from e

        self.file_manager.write_file(self.tls_options_file, response.text, mode=0o644)
        return True
