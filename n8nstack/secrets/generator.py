"""Secure secret generation for n8n installations."""

import secrets
import string

from ..config.settings import CredentialSet
from ..utils.errors import ValidationError


class SecretGenerator:
    """Generates cryptographically secure secrets for a new installation.

    Passwords are restricted to ASCII letters and digits so they survive
    shell, URL, SQL-literal and env-file quoting unchanged.
    """

    def __init__(self, verbose: bool = False):
        """Initialize secret generator."""
        self.verbose = verbose
        self.alphabet_alphanumeric = string.ascii_letters + string.digits

    def generate_password(self, length: int = 25) -> str:
        """
        Generate a secure alphanumeric password.

        Args:
            length: Password length

        Returns:
            str: Secure password
        """
        if length < 16:
            raise ValidationError("Password length must be at least 16 characters")

        # At least one character from each class
        password = [
            secrets.choice(string.ascii_lowercase),
            secrets.choice(string.ascii_uppercase),
            secrets.choice(string.digits),
        ]
        for _ in range(length - len(password)):
            password.append(secrets.choice(self.alphabet_alphanumeric))

        secrets.SystemRandom().shuffle(password)

        return "".join(password)

    def generate_hex_key(self, num_bytes: int = 32) -> str:
        """
        Generate a hex-encoded random key.

        Args:
            num_bytes: Number of random bytes

        Returns:
            str: Hex string of 2 * num_bytes characters
        """
        if num_bytes < 16:
            raise ValidationError("Keys must carry at least 16 random bytes")

        return secrets.token_hex(num_bytes)

    def generate_credential_set(self) -> CredentialSet:
        """
        Generate the four installation secrets.

        Returns:
            CredentialSet: Database superuser and application passwords,
                application encryption key and queue password
        """
        credentials = CredentialSet(
            postgres_password=self.generate_password(25),
            postgres_app_password=self.generate_password(25),
            encryption_key=self.generate_hex_key(32),
            redis_password=self.generate_password(32),
        )

        if self.verbose:
            print("Generated database, encryption and queue secrets")

        return credentials
