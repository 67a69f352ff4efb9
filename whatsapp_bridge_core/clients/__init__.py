"""Outbound clients."""

from .api_client import WhatsAppApiClient

__all__ = [
    "WhatsAppApiClient",
]
