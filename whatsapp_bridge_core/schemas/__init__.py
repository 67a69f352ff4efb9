"""Pydantic schemas for the WhatsApp bridge core."""

from .identity_schema import CallerIdentity, CredentialClaims, VendorAffiliation
from .request_schema import RequestAttempt
from .session_schema import (
    DisconnectedSessionEntry,
    DisconnectResult,
    SessionCreationResult,
    VendorSessionRecord,
)
from .usage_schema import UsageEvent

__all__ = [
    "CallerIdentity",
    "CredentialClaims",
    "DisconnectResult",
    "DisconnectedSessionEntry",
    "RequestAttempt",
    "SessionCreationResult",
    "UsageEvent",
    "VendorAffiliation",
    "VendorSessionRecord",
]
