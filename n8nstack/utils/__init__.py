"""Utilities for n8nstack."""

from .commands import CommandRunner
from .files import FileManager
from .logging import setup_logging
from .retry import RetryResult, poll, retry

__all__ = ["CommandRunner", "FileManager", "RetryResult", "poll", "retry", "setup_logging"]
