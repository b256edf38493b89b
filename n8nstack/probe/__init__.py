"""Host inspection before installation."""

from .environment import CheckResult, CheckStatus, EnvironmentProbe, ProbeResult

__all__ = ["CheckResult", "CheckStatus", "EnvironmentProbe", "ProbeResult"]
