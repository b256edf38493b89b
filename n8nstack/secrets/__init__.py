"""Secret generation for n8n installations."""

from .generator import SecretGenerator

__all__ = ["SecretGenerator"]
