"""Main CLI entry point for n8nstack.

This module provides the command-line interface for n8nstack, which installs
n8n on a single host (PostgreSQL, Redis queue, workers, nginx and Let's
Encrypt) and operates the installation afterwards: backups, restores, worker
scaling, upgrades and scheduled maintenance.
"""

import re
from typing import Optional

import click

from n8nstack import __version__
from n8nstack.config import defaults
from n8nstack.config.settings import InstallPaths
from n8nstack.utils.errors import ErrorHandler, PreconditionError, create_error_suggestions
from n8nstack.utils.logging import setup_logging

DOMAIN_PATTERN = re.compile(r"^(?=.{1,253}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _domain(value: str) -> str:
    value = value.strip().lower()
    if not DOMAIN_PATTERN.match(value):
        raise click.BadParameter(f"'{value}' is not a valid domain name")
    return value


def _email(value: str) -> str:
    value = value.strip()
    if not EMAIL_PATTERN.match(value):
        raise click.BadParameter(f"'{value}' is not a valid e-mail address")
    return value


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--log-file", help="Log to file in addition to console")
@click.option(
    "--install-dir",
    default=defaults.INSTALL_DIR,
    show_default=True,
    help="Installation directory",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_file: Optional[str], install_dir: str) -> None:
    """n8nstack - install and operate a self-hosted n8n.

    Args:
        ctx: Click context object containing shared state
        verbose: Enable verbose output for detailed logging
        log_file: Optional path to log file for additional logging
        install_dir: Directory holding the installation
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["log_file"] = log_file
    ctx.obj["paths"] = InstallPaths(install_dir)
    ctx.obj["error_handler"] = ErrorHandler(verbose=verbose)

    setup_logging(verbose=verbose, log_file=log_file)


@cli.command()
@click.pass_context
def install(ctx: click.Context) -> None:
    """Install n8n on this host.

    Prompts for the domain and the e-mail address used for certificate
    notices, checks the host, then installs packages, generates secrets and
    configuration, obtains a certificate, starts the services and registers
    the scheduled jobs.
    """
    from n8nstack.config.settings import InstallationTarget
    from n8nstack.config.validator import TuningLoader
    from n8nstack.installer import Installer

    verbose = ctx.obj["verbose"]
    paths = ctx.obj["paths"]

    if paths.exists():
        ctx.obj["error_handler"].exit_with_error(
            PreconditionError(
                f"Installation directory already exists: {paths.root}",
                suggestions=create_error_suggestions("installation_exists", install_dir=paths.root),
            ),
            "Installation",
        )

    try:
        tuning = TuningLoader(verbose=verbose).load()
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Loading tuning settings")

    click.echo("n8n installation")
    click.echo("=" * 50)
    domain = click.prompt("Domain name (e.g. n8n.example.com)", value_proc=_domain)
    email = click.prompt("E-mail for certificate notices", value_proc=_email)

    installer = Installer(paths=paths, tuning=tuning, verbose=verbose)

    click.echo("\nChecking host...")
    try:
        probe = installer.check_host(domain)
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Host check")

    for check in probe.checks:
        if check.status.value == "pass" and verbose:
            click.echo(f"  ✓ {check.message}")
    for warning in probe.warnings:
        click.echo(f"  ⚠ {warning.message}")
        for suggestion in warning.suggestions:
            click.echo(f"    • {suggestion}")

    if probe.warnings:
        click.confirm("Continue despite the warnings above?", default=False, abort=True)

    target = InstallationTarget(domain=domain, email=email, server_ip=probe.server_ip)

    click.echo(f"\nInstalling n8n for {domain} into {paths.root}...")
    try:
        summary = installer.install(target)
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Installation")

    click.echo("\n✓ n8n is installed and ready!")
    click.echo(f"\nURL: {summary['url']}")
    click.echo(f"Installation directory: {summary['install_dir']}")
    click.echo(f"Execution mode: {summary['execution_mode']}")
    if summary["execution_mode"] == "queue":
        click.echo(f"Workers: {summary['worker_replicas']} x concurrency {summary['worker_concurrency']}")

    click.echo("\nManagement commands:")
    click.echo("  n8nstack backup                 Create a backup")
    click.echo("  n8nstack restore <timestamp>    Restore a backup")
    click.echo("  n8nstack workers                Manage workers")
    click.echo("  n8nstack upgrade                Upgrade n8n")

    click.echo("\nLogs:")
    click.echo(f"  cd {paths.root} && docker compose logs -f n8n")
    click.echo(f"  cd {paths.root} && docker compose logs -f {defaults.SERVICE_WORKER}")


@cli.command()
@click.pass_context
def backup(ctx: click.Context) -> None:
    """Back up the database and installation files.

    Old backups beyond the retention window are deleted afterwards.
    """
    from n8nstack.backup import BackupManager

    try:
        result = BackupManager(ctx.obj["paths"], verbose=ctx.obj["verbose"]).run()
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Backup")

    artifact = result["artifact"]
    click.echo(f"✓ Backup created: {artifact.timestamp}")
    click.echo(f"  Database: {artifact.db_dump}")
    click.echo(f"  Files: {artifact.files_archive}")
    if result["deleted"]:
        click.echo(f"  Removed {len(result['deleted'])} expired backup files")


@cli.command()
@click.argument("timestamp")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def restore(ctx: click.Context, timestamp: str, yes: bool) -> None:
    """Restore the backup identified by TIMESTAMP.

    All services are stopped, the installation files and database are
    replaced, and the services are started again.
    """
    from n8nstack.backup import RecoveryManager

    recovery = RecoveryManager(ctx.obj["paths"], verbose=ctx.obj["verbose"])

    try:
        artifact = recovery.verify(timestamp)
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Restore")

    click.echo(f"Backup {artifact.timestamp}:")
    click.echo(f"  {artifact.db_dump}")
    click.echo(f"  {artifact.files_archive}")
    click.echo("⚠ This replaces the current database and files. All services will be stopped.")

    if not yes:
        click.confirm("Restore this backup?", default=False, abort=True)

    try:
        recovery.restore(timestamp)
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Restore")

    click.echo(f"✓ Backup {timestamp} restored")


@cli.command("list-backups")
@click.pass_context
def list_backups(ctx: click.Context) -> None:
    """List available backups."""
    from n8nstack.backup import BackupManager

    try:
        backups = BackupManager(ctx.obj["paths"], verbose=ctx.obj["verbose"]).list_backups()
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Listing backups")

    if not backups:
        click.echo("No backups found")
        return

    for artifact in backups:
        if artifact.complete:
            size_mb = artifact.size_bytes / (1024 * 1024)
            click.echo(f"✓ {artifact.timestamp}  {size_mb:.1f} MB")
        else:
            click.echo(f"✗ {artifact.timestamp}  incomplete")


def _print_worker_status(status: dict) -> None:
    click.echo(f"Execution mode: {status['execution_mode']}")
    click.echo(f"Workers running: {status['running_replicas']} (configured: {status['configured_replicas']})")
    click.echo(f"Concurrency per worker: {status['concurrency']}")
    click.echo(f"Total capacity: {status['capacity']} concurrent executions")


@cli.group(invoke_without_command=True, context_settings={"help_option_names": ["-h", "--help"]})
@click.pass_context
def workers(ctx: click.Context) -> None:
    """Manage queue workers.

    Without a sub-command an interactive menu is shown.
    """
    from n8nstack.runtime import WorkerManager

    ctx.obj["workers"] = WorkerManager(ctx.obj["paths"], verbose=ctx.obj["verbose"])

    if ctx.invoked_subcommand is not None:
        return

    manager = ctx.obj["workers"]
    handler = ctx.obj["error_handler"]

    while True:
        click.echo("\nn8n worker manager")
        click.echo("=" * 30)
        click.echo("1) Show status")
        click.echo("2) Add worker")
        click.echo("3) Remove worker")
        click.echo("4) Set concurrency")
        click.echo("5) Quit")
        choice = click.prompt("Choice", type=click.Choice(["1", "2", "3", "4", "5"]), show_choices=False)

        if choice == "5":
            return

        try:
            if choice == "1":
                _print_worker_status(manager.status())
            elif choice == "2":
                result = manager.add()
                click.echo(f"✓ Workers: {result['before']} → {result['after']}")
            elif choice == "3":
                result = manager.remove()
                click.echo(f"✓ Workers: {result['before']} → {result['after']}")
            else:
                value = click.prompt(
                    f"Concurrency ({defaults.MIN_WORKER_CONCURRENCY}-{defaults.MAX_WORKER_CONCURRENCY})", type=int
                )
                result = manager.set_concurrency(value)
                click.echo(f"✓ Concurrency: {result['before']} → {result['after']}")
        except Exception as e:
            handler.handle_error(e, "Worker management")


@workers.command("status")
@click.pass_context
def workers_status(ctx: click.Context) -> None:
    """Show worker status."""
    try:
        status = ctx.obj["workers"].status()
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Worker status")

    _print_worker_status(status)


@workers.command("add")
@click.pass_context
def workers_add(ctx: click.Context) -> None:
    """Add one worker replica."""
    try:
        result = ctx.obj["workers"].add()
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Adding worker")

    click.echo(f"✓ Workers: {result['before']} → {result['after']}")


@workers.command("remove")
@click.pass_context
def workers_remove(ctx: click.Context) -> None:
    """Remove one worker replica (at least one is kept)."""
    try:
        result = ctx.obj["workers"].remove()
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Removing worker")

    click.echo(f"✓ Workers: {result['before']} → {result['after']}")


@workers.command("concurrency")
@click.argument("value", type=int)
@click.pass_context
def workers_concurrency(ctx: click.Context, value: int) -> None:
    """Set the number of jobs each worker runs at once."""
    try:
        result = ctx.obj["workers"].set_concurrency(value)
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Changing concurrency")

    click.echo(f"✓ Concurrency: {result['before']} → {result['after']} ({result['replicas']} workers restarted)")


@cli.command()
@click.option("--version", "target", help="Target version (e.g. 1.64.0 or latest)")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def upgrade(ctx: click.Context, target: Optional[str], yes: bool) -> None:
    """Upgrade n8n to another version.

    A backup is always taken first. The services are stopped, the version
    pin is changed, new images are pulled and the services are started and
    checked for readiness.
    """
    from n8nstack.runtime import Upgrader, validate_version
    from n8nstack.utils.errors import DockerError

    upgrader = Upgrader(ctx.obj["paths"], verbose=ctx.obj["verbose"])

    try:
        current = upgrader.current_version()
    except DockerError:
        current = "unknown"
    click.echo(f"Current version: {current}")

    if target is None:
        target = click.prompt("Target version", default="latest")

    try:
        target = validate_version(target)
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Upgrade")

    if not yes:
        click.confirm(f"Upgrade n8n from {current} to {target}? Services will be restarted", default=False, abort=True)

    click.echo("Creating backup and upgrading...")
    try:
        result = upgrader.upgrade(target)
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Upgrade")

    click.echo(f"✓ Upgraded n8n: {result['before']} → {result['after']}")
    click.echo(f"  Backup: {result['backup']}")
    if not result["connectivity"]:
        click.echo("⚠ n8n cannot reach the internet; check DNS and outbound firewall rules")


@cli.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Show the version of the running n8n."""
    from n8nstack.runtime import Upgrader

    try:
        current = Upgrader(ctx.obj["paths"], verbose=ctx.obj["verbose"]).current_version()
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Version query")

    click.echo(current)


@cli.command("renew-certificates")
@click.pass_context
def renew_certificates(ctx: click.Context) -> None:
    """Renew certificates close to expiry and reload nginx."""
    from n8nstack.ssl import LetsEncryptManager, NginxManager

    verbose = ctx.obj["verbose"]
    try:
        output = LetsEncryptManager(verbose=verbose).renew_certificates()
        NginxManager(verbose=verbose).reload()
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Certificate renewal")

    if output.strip():
        click.echo(output.strip())
    click.echo("✓ Certificate renewal check complete")


@cli.command()
@click.pass_context
def cleanup(ctx: click.Context) -> None:
    """Remove old containers, images, packages and journal entries."""
    from n8nstack.runtime import MaintenanceManager

    try:
        result = MaintenanceManager(verbose=ctx.obj["verbose"]).cleanup()
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Cleanup")

    for command in result["completed"]:
        click.echo(f"✓ {command}")
    for error in result["errors"]:
        click.echo(f"✗ {error}", err=True)

    if not result["success"]:
        ctx.exit(1)


@cli.command()
@click.pass_context
def schedule(ctx: click.Context) -> None:
    """Register the scheduled backup, cleanup and renewal jobs."""
    from n8nstack.scheduler import SchedulerRegistrar, default_jobs

    try:
        result = SchedulerRegistrar(verbose=ctx.obj["verbose"]).register(
            default_jobs(install_dir=ctx.obj["paths"].root)
        )
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Scheduling jobs")

    click.echo(f"✓ {len(result['installed'])} scheduled jobs registered")
    for line in result["installed"]:
        click.echo(f"  {line}")


if __name__ == "__main__":
    cli()
