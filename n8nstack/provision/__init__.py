"""Host provisioning."""

from .steps import ProvisioningRunner, ProvisioningStep, default_steps

__all__ = ["ProvisioningRunner", "ProvisioningStep", "default_steps"]
