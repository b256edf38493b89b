"""Error handling utilities for n8nstack."""

import sys
import traceback
from typing import List, Optional

import click


class N8nStackError(Exception):
    """Base exception for n8nstack errors."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[list] = None,
    ):
        self.message = message
        self.details = details
        self.suggestions = suggestions or []
        super().__init__(message)


class PreconditionError(N8nStackError):
    """Raised when the host is not fit for installation."""

    pass


class ConfigurationError(N8nStackError):
    """Raised when configuration is invalid or missing."""

    pass


class CommandError(N8nStackError):
    """Raised when an external command fails."""

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        suggestions: Optional[list] = None,
    ):
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, details=stderr or None, suggestions=suggestions)


class DockerError(N8nStackError):
    """Raised when Docker operations fail."""

    pass


class SSLError(N8nStackError):
    """Raised when SSL certificate operations fail."""

    pass


class ReadinessTimeoutError(N8nStackError):
    """Raised when the deployment does not become ready in time."""

    pass


class ValidationError(N8nStackError):
    """Raised when operator input is rejected."""

    pass


class BackupError(N8nStackError):
    """Raised when backup or restore operations fail."""

    pass


class ErrorHandler:
    """Handles and formats errors for user-friendly display."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def handle_error(self, error: Exception, context: Optional[str] = None) -> None:
        """
        Handle and display error with appropriate formatting.

        Args:
            error: Exception to handle
            context: Optional context about when/where error occurred
        """
        if isinstance(error, N8nStackError):
            self._handle_n8nstack_error(error, context)
        else:
            self._handle_generic_error(error, context)

    def _handle_n8nstack_error(self, error: N8nStackError, context: Optional[str]) -> None:
        """Handle n8nstack-specific errors."""
        click.echo(f"✗ {error.message}", err=True)

        if context:
            click.echo(f"Context: {context}", err=True)

        if error.details:
            click.echo(f"Details: {error.details}", err=True)

        if error.suggestions:
            click.echo("\nSuggestions:", err=True)
            for suggestion in error.suggestions:
                click.echo(f"  • {suggestion}", err=True)

        if self.verbose:
            click.echo("\nFull traceback:", err=True)
            traceback.print_exc()

    def _handle_generic_error(self, error: Exception, context: Optional[str]) -> None:
        """Handle generic Python exceptions."""
        error_type = type(error).__name__

        if isinstance(error, FileNotFoundError):
            message = f"File not found: {error}"
            suggestions = [
                "Check that the installation directory exists",
                "Ensure the file exists and is readable",
            ]
        elif isinstance(error, PermissionError):
            message = f"Permission denied: {error}"
            suggestions = [
                "Run the command as root (sudo n8nstack ...)",
            ]
        elif isinstance(error, ConnectionError):
            message = f"Connection failed: {error}"
            suggestions = [
                "Check the server's internet connection",
                "Verify that Docker is running",
            ]
        else:
            message = f"{error_type}: {error}"
            suggestions = []

        click.echo(f"✗ {message}", err=True)

        if context:
            click.echo(f"Context: {context}", err=True)

        if suggestions:
            click.echo("\nSuggestions:", err=True)
            for suggestion in suggestions:
                click.echo(f"  • {suggestion}", err=True)

        if self.verbose:
            click.echo("\nFull traceback:", err=True)
            traceback.print_exc()

    def exit_with_error(self, error: Exception, context: Optional[str] = None, exit_code: int = 1) -> None:
        """Handle error and exit with specified code."""
        self.handle_error(error, context)
        sys.exit(exit_code)


def create_error_suggestions(error_type: str, **kwargs) -> list:
    """
    Create contextual error suggestions based on error type and context.

    Args:
        error_type: Type of error
        **kwargs: Context values (install_dir, domain, server_ip)

    Returns:
        list: List of suggestion strings
    """
    install_dir = kwargs.get("install_dir", "/opt/n8n")
    domain = kwargs.get("domain", "<domain>")
    server_ip = kwargs.get("server_ip", "<server ip>")

    suggestions = {
        "installation_exists": [
            f"An installation already exists in {install_dir}",
            f"Remove it first (docker compose down -v && rm -rf {install_dir}) to reinstall",
            "Use 'n8nstack upgrade' to change the running version instead",
        ],
        "dns_unresolved": [
            f"Create a DNS A record for {domain} pointing to {server_ip}",
            "Wait for DNS propagation and run the installer again",
        ],
        "port_in_use": [
            "Stop the process bound to the port (ss -ltnp shows it)",
            "Check for a previous n8n or PostgreSQL installation",
        ],
        "certificate_failed": [
            f"Verify that {domain} resolves to {server_ip}",
            "Check that ports 80 and 443 are reachable from the internet",
            f"Retry manually: certbot certonly --webroot -w /var/www/certbot -d {domain}",
        ],
        "readiness_timeout": [
            f"cd {install_dir} && docker compose logs n8n",
            f"cd {install_dir} && docker compose logs n8n-worker",
            f"cd {install_dir} && docker compose logs postgres",
        ],
        "docker_not_running": [
            "Start the Docker daemon: systemctl start docker",
            "Check that Docker is installed and accessible",
        ],
    }

    return suggestions.get(error_type, [])


def format_validation_errors(errors: list) -> str:
    """
    Format validation errors for display.

    Args:
        errors: List of validation error messages

    Returns:
        str: Formatted error message
    """
    if not errors:
        return "No validation errors"

    if len(errors) == 1:
        return f"Validation error: {errors[0]}"

    formatted = "Validation errors:\n"
    for i, error in enumerate(errors, 1):
        formatted += f"  {i}. {error}\n"

    return formatted.strip()
