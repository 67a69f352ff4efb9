"""
Enums used across the whatsapp_bridge_core package.

This module contains enum definitions that are used by multiple modules
to avoid circular import issues.
"""

import enum


class SessionStatus(str, enum.Enum):
    """Lifecycle states of a vendor's WhatsApp connection."""

    NONE = "none"
    INITIALIZING = "initializing"
    QR_READY = "qr_ready"
    AUTHENTICATED = "authenticated"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
