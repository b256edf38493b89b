"""Test CLI commands."""

import os
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from n8nstack.backup.manager import BackupArtifact
from n8nstack.cli import cli
from n8nstack.config.environment import EnvironmentConfig
from n8nstack.probe import CheckStatus, ProbeResult
from n8nstack.utils.errors import BackupError, PreconditionError, ValidationError


class TestCLICommands:
    """Test CLI command functionality."""

    def setup_method(self):
        """Setup test environment."""
        self.runner = CliRunner()

    def test_cli_version(self):
        """Test CLI version display."""
        result = self.runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "version" in result.output.lower()

    def test_cli_help(self):
        """Test CLI help display."""
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "install and operate a self-hosted n8n" in result.output
        for command in ("install", "backup", "restore", "list-backups", "workers", "upgrade", "schedule"):
            assert command in result.output

    def test_cli_verbose_flag(self):
        """Test verbose flag functionality."""
        result = self.runner.invoke(cli, ["--verbose", "--help"])

        assert result.exit_code == 0

    def test_restore_requires_timestamp(self):
        """Test restore without a timestamp is a usage error."""
        result = self.runner.invoke(cli, ["restore"])

        assert result.exit_code == 2
        assert "TIMESTAMP" in result.output

    def test_workers_concurrency_requires_integer(self):
        """Test a non-numeric concurrency is a usage error."""
        result = self.runner.invoke(cli, ["workers", "concurrency", "ten"])

        assert result.exit_code == 2


class TestRestoreCommand:
    """Test the restore command."""

    def setup_method(self):
        """Setup test environment."""
        self.runner = CliRunner()
        self.artifact = BackupArtifact("20240131_020000", "/b/n8n_db.sql.gz", "/b/n8n_files.tar.gz")

    def test_restore_declined(self):
        """Test declining the confirmation restores nothing."""
        with patch("n8nstack.backup.RecoveryManager") as mock_recovery:
            mock_recovery.return_value.verify.return_value = self.artifact

            result = self.runner.invoke(cli, ["restore", "20240131_020000"], input="n\n")

        assert result.exit_code == 1
        assert "Aborted" in result.output
        mock_recovery.return_value.restore.assert_not_called()

    def test_restore_confirmed(self):
        """Test a confirmed restore."""
        with patch("n8nstack.backup.RecoveryManager") as mock_recovery:
            mock_recovery.return_value.verify.return_value = self.artifact

            result = self.runner.invoke(cli, ["restore", "20240131_020000"], input="y\n")

        assert result.exit_code == 0
        assert "✓ Backup 20240131_020000 restored" in result.output
        mock_recovery.return_value.restore.assert_called_once_with("20240131_020000")

    def test_restore_incomplete_backup(self):
        """Test an incomplete backup fails before the confirmation."""
        with patch("n8nstack.backup.RecoveryManager") as mock_recovery:
            mock_recovery.return_value.verify.side_effect = BackupError(
                "Backup 20240131_020000 is incomplete, refusing to restore"
            )

            result = self.runner.invoke(cli, ["restore", "20240131_020000", "--yes"])

        assert result.exit_code == 1
        assert "incomplete" in result.output
        mock_recovery.return_value.restore.assert_not_called()

    def test_list_backups(self, installed):
        """Test complete and incomplete backups are listed."""
        for name in ("n8n_db_20240101_020000.sql.gz", "n8n_files_20240101_020000.tar.gz", "n8n_db_20240102_020000.sql.gz"):
            with open(os.path.join(installed.backup_dir, name), "wb") as f:
                f.write(b"x" * 10)

        result = self.runner.invoke(cli, ["--install-dir", installed.root, "list-backups"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "✗ 20240102_020000  incomplete"
        assert lines[1].startswith("✓ 20240101_020000")

    def test_list_backups_empty(self, tmp_path):
        """Test the empty listing."""
        result = self.runner.invoke(cli, ["--install-dir", str(tmp_path), "list-backups"])

        assert result.exit_code == 0
        assert "No backups found" in result.output


class TestWorkersCommand:
    """Test the workers command group."""

    def setup_method(self):
        """Setup test environment."""
        self.runner = CliRunner()

    def test_concurrency_out_of_range(self, installed):
        """Test an out-of-range concurrency fails and leaves the configuration alone."""
        revision = EnvironmentConfig.load(installed.env_file).revision

        result = self.runner.invoke(cli, ["--install-dir", installed.root, "workers", "concurrency", "25"])

        assert result.exit_code != 0
        assert "between 1 and 20" in result.output
        assert EnvironmentConfig.load(installed.env_file).revision == revision

    def test_add(self):
        """Test adding a worker."""
        with patch("n8nstack.runtime.WorkerManager") as mock_workers:
            mock_workers.return_value.add.return_value = {"before": 1, "after": 2}

            result = self.runner.invoke(cli, ["workers", "add"])

        assert result.exit_code == 0
        assert "✓ Workers: 1 → 2" in result.output

    def test_remove_last_worker(self):
        """Test removing the last worker fails."""
        with patch("n8nstack.runtime.WorkerManager") as mock_workers:
            mock_workers.return_value.remove.side_effect = ValidationError("Cannot go below 1 worker (currently 1)")

            result = self.runner.invoke(cli, ["workers", "remove"])

        assert result.exit_code == 1
        assert "Cannot go below 1 worker" in result.output

    def test_interactive_menu(self):
        """Test the menu shows status, reports errors and keeps running until quit."""
        with patch("n8nstack.runtime.WorkerManager") as mock_workers:
            manager = mock_workers.return_value
            manager.status.return_value = {
                "execution_mode": "queue",
                "configured_replicas": 2,
                "running_replicas": 2,
                "concurrency": 10,
                "capacity": 20,
            }
            manager.remove.side_effect = ValidationError("Cannot go below 1 worker (currently 1)")
            manager.set_concurrency.return_value = {"before": 10, "after": 15, "replicas": 2}

            result = self.runner.invoke(cli, ["workers"], input="1\n3\n4\n15\n5\n")

        assert result.exit_code == 0
        assert "Total capacity: 20 concurrent executions" in result.output
        assert "Cannot go below 1 worker" in result.output
        assert "✓ Concurrency: 10 → 15" in result.output
        manager.set_concurrency.assert_called_once_with(15)


class TestInstallCommand:
    """Test the install command."""

    @pytest.fixture(autouse=True)
    def _setup(self, tmp_path, monkeypatch):
        self.runner = CliRunner()
        self.root = str(tmp_path / "n8n")
        monkeypatch.setenv("N8NSTACK_TUNING", str(tmp_path / "no-tuning.yml"))

    def _probe(self, warnings=()):
        result = ProbeResult(server_ip="203.0.113.10")
        result.add("privileges", CheckStatus.PASS, "Running as root")
        for message in warnings:
            result.add("memory", CheckStatus.WARN, message)
        return result

    def test_install(self):
        """Test prompts, invalid input and the summary."""
        with patch("n8nstack.installer.Installer") as mock_installer:
            installer = mock_installer.return_value
            installer.check_host.return_value = self._probe()
            installer.install.return_value = {
                "url": "https://n8n.example.com/",
                "install_dir": self.root,
                "execution_mode": "queue",
                "worker_replicas": 1,
                "worker_concurrency": 10,
            }

            result = self.runner.invoke(
                cli,
                ["--install-dir", self.root, "install"],
                input="not a domain\nN8N.example.com\nops@example.com\n",
            )

        assert result.exit_code == 0, result.output
        assert "is not a valid domain name" in result.output
        assert "✓ n8n is installed and ready!" in result.output
        assert "Workers: 1 x concurrency 10" in result.output
        target = installer.install.call_args.args[0]
        assert target.domain == "n8n.example.com"
        assert target.email == "ops@example.com"
        assert target.server_ip == "203.0.113.10"

    def test_install_existing_directory(self):
        """Test an existing installation stops the install."""
        with patch("n8nstack.installer.Installer") as mock_installer:
            mock_installer.return_value.check_host.side_effect = PreconditionError(
                f"Installation directory already exists: {self.root}"
            )

            result = self.runner.invoke(
                cli, ["--install-dir", self.root, "install"], input="n8n.example.com\nops@example.com\n"
            )

        assert result.exit_code == 1
        assert "already exists" in result.output
        mock_installer.return_value.install.assert_not_called()

    def test_install_existing_directory_exits_before_prompting(self):
        """Test a re-run on an installed host exits without asking anything."""
        os.makedirs(self.root)

        with patch("n8nstack.installer.Installer") as mock_installer:
            result = self.runner.invoke(cli, ["--install-dir", self.root, "install"], input="")

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert "Domain name" not in result.output
        mock_installer.assert_not_called()

    def test_install_warnings_declined(self):
        """Test declining after warnings installs nothing."""
        with patch("n8nstack.installer.Installer") as mock_installer:
            mock_installer.return_value.check_host.return_value = self._probe(warnings=["Low memory: 1.0GB"])

            result = self.runner.invoke(
                cli, ["--install-dir", self.root, "install"], input="n8n.example.com\nops@example.com\nn\n"
            )

        assert result.exit_code == 1
        assert "⚠ Low memory: 1.0GB" in result.output
        mock_installer.return_value.install.assert_not_called()


class TestOperationsCommands:
    """Test backup, upgrade, maintenance and scheduling commands."""

    def setup_method(self):
        """Setup test environment."""
        self.runner = CliRunner()

    def test_backup(self):
        """Test the backup summary."""
        artifact = BackupArtifact("20240131_020000", "/b/db.sql.gz", "/b/files.tar.gz")
        with patch("n8nstack.backup.BackupManager") as mock_backups:
            mock_backups.return_value.run.return_value = {"artifact": artifact, "deleted": ["/b/old"], "duration_seconds": 1.0}

            result = self.runner.invoke(cli, ["backup"])

        assert result.exit_code == 0
        assert "✓ Backup created: 20240131_020000" in result.output
        assert "Removed 1 expired backup files" in result.output

    def test_backup_failure(self):
        """Test a failed backup exits non-zero."""
        with patch("n8nstack.backup.BackupManager") as mock_backups:
            mock_backups.return_value.run.side_effect = BackupError("Database dump is empty")

            result = self.runner.invoke(cli, ["backup"])

        assert result.exit_code == 1
        assert "Database dump is empty" in result.output

    def test_upgrade_invalid_version(self):
        """Test an invalid version is rejected before upgrading."""
        with patch("n8nstack.runtime.Upgrader") as mock_upgrader:
            mock_upgrader.return_value.current_version.return_value = "1.63.4"

            result = self.runner.invoke(cli, ["upgrade", "--version", "v2", "--yes"])

        assert result.exit_code == 1
        mock_upgrader.return_value.upgrade.assert_not_called()

    def test_upgrade(self):
        """Test a confirmed upgrade."""
        with patch("n8nstack.runtime.Upgrader") as mock_upgrader:
            upgrader = mock_upgrader.return_value
            upgrader.current_version.return_value = "1.63.4"
            upgrader.upgrade.return_value = {
                "before": "1.63.4",
                "after": "1.64.0",
                "target": "1.64.0",
                "backup": "20240131_020000",
                "connectivity": False,
            }

            result = self.runner.invoke(cli, ["upgrade", "--version", "1.64.0"], input="y\n")

        assert result.exit_code == 0
        assert "✓ Upgraded n8n: 1.63.4 → 1.64.0" in result.output
        assert "cannot reach the internet" in result.output
        upgrader.upgrade.assert_called_once_with("1.64.0")

    def test_cleanup_failure_exit_code(self):
        """Test cleanup exits non-zero when a step failed."""
        with patch("n8nstack.runtime.MaintenanceManager") as mock_maintenance:
            mock_maintenance.return_value.cleanup.return_value = {
                "success": False,
                "completed": ["apt-get clean"],
                "errors": ["Command failed (1): journalctl --vacuum-time=7d"],
            }

            result = self.runner.invoke(cli, ["cleanup"])

        assert result.exit_code == 1
        assert "✓ apt-get clean" in result.output

    def test_renew_certificates(self):
        """Test renewal reloads nginx."""
        with patch("n8nstack.ssl.LetsEncryptManager") as mock_le, patch("n8nstack.ssl.NginxManager") as mock_nginx:
            mock_le.return_value.renew_certificates.return_value = ""

            result = self.runner.invoke(cli, ["renew-certificates"])

        assert result.exit_code == 0
        mock_nginx.return_value.reload.assert_called_once()

    def test_schedule(self):
        """Test scheduling passes the installation directory."""
        with patch("n8nstack.scheduler.SchedulerRegistrar") as mock_registrar:
            mock_registrar.return_value.register.return_value = {"installed": ["a", "b", "c"], "replaced": 0}

            result = self.runner.invoke(cli, ["--install-dir", "/srv/n8n", "schedule"])

        assert result.exit_code == 0
        assert "✓ 3 scheduled jobs registered" in result.output
        jobs = mock_registrar.return_value.register.call_args.args[0]
        assert all("--install-dir /srv/n8n" in job.command for job in jobs)
