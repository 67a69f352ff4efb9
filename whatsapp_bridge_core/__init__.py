"""
WhatsApp bridge core.

Signed per-call credentials, a resilient client for the WhatsApp API server
and the per-vendor session lifecycle for a multi-vendor marketplace.
"""

from .auth import TokenIssuer
from .clients import WhatsAppApiClient
from .config import AppConfig, get_config, reset_config, set_config
from .enums import SessionStatus
from .schemas import CallerIdentity, VendorAffiliation
from .services import VendorSessionService

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "CallerIdentity",
    "SessionStatus",
    "TokenIssuer",
    "VendorAffiliation",
    "VendorSessionService",
    "WhatsAppApiClient",
    "get_config",
    "reset_config",
    "set_config",
]
