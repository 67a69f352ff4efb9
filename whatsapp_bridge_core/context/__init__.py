"""
Context management for the WhatsApp bridge core.
"""

from .vendor_context import VendorContext, vendor_context

__all__ = [
    "VendorContext",
    "vendor_context",
]
