"""Credential issuance for outbound WhatsApp API calls."""

from .token_issuer import TokenIssuer, generate_secret

__all__ = [
    "TokenIssuer",
    "generate_secret",
]
