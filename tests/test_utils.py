"""Tests for command, retry and file utilities."""

import os
import stat
import subprocess
from unittest.mock import patch

import pytest

from n8nstack.utils.commands import CommandRunner
from n8nstack.utils.errors import CommandError
from n8nstack.utils.files import FileManager
from n8nstack.utils.retry import poll, retry


class TestCommandRunner:
    """Test command execution."""

    def setup_method(self):
        """Setup test environment."""
        self.runner = CommandRunner()

    def test_run_success(self):
        """Test a successful command returns its result."""
        completed = subprocess.CompletedProcess(["true"], 0, "ok\n", "")
        with patch("subprocess.run", return_value=completed) as mock_run:
            result = self.runner.run(["true"], capture_output=True)

        assert result.stdout == "ok\n"
        assert mock_run.call_args.args[0] == ["true"]

    def test_run_failure_raises_with_stderr(self):
        """Test a failing command raises CommandError with stderr."""
        completed = subprocess.CompletedProcess(["false"], 3, "", "boom\n")
        with patch("subprocess.run", return_value=completed):
            with pytest.raises(CommandError) as exc_info:
                self.runner.run(["false"], capture_output=True)

        assert exc_info.value.returncode == 3
        assert exc_info.value.details == "boom"

    def test_run_failure_without_check(self):
        """Test check=False returns the failed result."""
        completed = subprocess.CompletedProcess(["false"], 1, "", "")
        with patch("subprocess.run", return_value=completed):
            assert self.runner.run(["false"], check=False).returncode == 1

    def test_missing_command(self):
        """Test a missing executable is reported as CommandError."""
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(CommandError, match="Required command not found: certbot"):
                self.runner.run(["certbot", "--version"])

    def test_timeout(self):
        """Test a timeout is reported as CommandError."""
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(["sleep"], 1)):
            with pytest.raises(CommandError, match="timed out"):
                self.runner.run(["sleep", "10"], timeout=1)

    def test_succeeds_and_output(self):
        """Test the boolean and stdout helpers."""
        with patch("subprocess.run", return_value=subprocess.CompletedProcess([], 0, " 1 \n", "")):
            assert self.runner.succeeds(["sysctl", "-n", "vm.overcommit_memory"])
            assert self.runner.output(["sysctl", "-n", "vm.overcommit_memory"]) == "1"

        with patch("subprocess.run", side_effect=FileNotFoundError()):
            assert not self.runner.succeeds(["docker", "compose", "version"])


class TestRetry:
    """Test bounded retry and polling."""

    def test_retry_succeeds_after_failures(self):
        """Test the operation is retried until it succeeds."""
        calls = []
        sleeps = []

        def operation():
            calls.append(1)
            if len(calls) < 3:
                raise CommandError("not yet")
            return "done"

        result = retry(operation, attempts=5, delay=30, retry_on=(CommandError,), sleep=sleeps.append)

        assert result.success
        assert result.attempts == 3
        assert result.value == "done"
        assert sleeps == [30, 30]

    def test_retry_exhausted_without_trailing_sleep(self):
        """Test exhaustion returns the last error and does not sleep after the last attempt."""
        sleeps = []

        def operation():
            raise CommandError("always")

        result = retry(operation, attempts=3, delay=5, retry_on=(CommandError,), sleep=sleeps.append)

        assert not result.success
        assert result.attempts == 3
        assert isinstance(result.error, CommandError)
        assert sleeps == [5, 5]

    def test_retry_propagates_unexpected_errors(self):
        """Test exceptions outside retry_on are not retried."""

        def operation():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            retry(operation, attempts=3, delay=0, retry_on=(CommandError,), sleep=lambda s: None)

    def test_poll_is_bounded(self):
        """Test polling stops after timeout // interval + 1 probes."""
        probes = []

        def check():
            probes.append(1)
            return False

        result = poll(check, timeout=20, interval=5, sleep=lambda s: None)

        assert not result.success
        assert len(probes) == 5

    def test_poll_predicate(self):
        """Test polling succeeds on the first truthy probe."""
        values = iter([False, False, True])

        result = poll(lambda: next(values), timeout=60, interval=5, sleep=lambda s: None)

        assert result.success
        assert result.attempts == 3


class TestFileManager:
    """Test file operations."""

    def setup_method(self):
        """Setup test environment."""
        self.file_manager = FileManager()

    def test_write_file_atomic_with_mode(self, tmp_path):
        """Test files are written with the requested mode and no temp files remain."""
        path = tmp_path / "sub" / ".env"

        self.file_manager.write_file(str(path), "A=1\n", mode=0o600)

        assert path.read_text() == "A=1\n"
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert os.listdir(path.parent) == [".env"]

    def test_write_file_replaces_content(self, tmp_path):
        """Test an existing file is replaced."""
        path = tmp_path / "docker-compose.yml"
        path.write_text("old")

        self.file_manager.write_file(str(path), "new")

        assert path.read_text() == "new"

    def test_write_executable(self, tmp_path):
        """Test scripts are made executable."""
        path = tmp_path / "init-data.sh"

        self.file_manager.write_executable(str(path), "#!/bin/bash\n")

        assert os.access(path, os.X_OK)

    def test_chown_tree_counts_paths(self, tmp_path):
        """Test every path of the tree is chowned."""
        (tmp_path / "data" / "nodes").mkdir(parents=True)
        (tmp_path / "data" / "config").write_text("{}")

        with patch("os.chown") as mock_chown:
            changed = self.file_manager.chown_tree(str(tmp_path / "data"), 1000, 1000)

        assert changed == 3
        assert mock_chown.call_count == 3
