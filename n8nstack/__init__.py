"""n8nstack - single-host provisioning and operations for n8n."""

__version__ = "1.0.0"
__author__ = "n8nstack maintainers"
