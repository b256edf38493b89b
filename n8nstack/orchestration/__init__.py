"""Service startup ordering and readiness."""

from .sequencer import OrchestrationSequencer

__all__ = ["OrchestrationSequencer"]
