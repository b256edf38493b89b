"""TLS certificates and reverse proxy management."""

from .acquirer import CertificateAcquirer
from .letsencrypt import LetsEncryptManager
from .manager import SSLManager
from .nginx import NginxManager

__all__ = ["CertificateAcquirer", "LetsEncryptManager", "NginxManager", "SSLManager"]
