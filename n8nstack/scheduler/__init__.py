"""Scheduled maintenance jobs."""

from .registrar import ScheduledJob, SchedulerRegistrar, default_jobs

__all__ = ["ScheduledJob", "SchedulerRegistrar", "default_jobs"]
