"""
Vendor context management.

Tracks which vendor the current thread is acting for so that log records
emitted deep inside the API client can be attributed to that vendor.
"""

import threading
from contextlib import contextmanager
from typing import Generator, Optional, Union

from ..exceptions import ErrorCode, ValidationError


class VendorContext:
    """
    Manages the current vendor using thread-local storage.
    """

    _thread_local = threading.local()

    @classmethod
    def set_current_vendor(cls, vendor_id: Union[int, str]) -> None:
        """
        Set the current vendor ID for the execution context.

        Args:
            vendor_id: ID of the vendor

        Raises:
            ValidationError: If vendor_id is empty
        """
        if vendor_id is None or not str(vendor_id).strip():
            raise ValidationError(
                "vendor_id must be a non-empty value",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="vendor_id",
                value=vendor_id,
            )

        cls._thread_local.vendor_id = str(vendor_id).strip()

    @classmethod
    def get_current_vendor_id(cls) -> Optional[str]:
        """Get the current vendor ID, or None if not set."""
        return getattr(cls._thread_local, "vendor_id", None)

    @classmethod
    def clear_current_vendor(cls) -> None:
        """Clear the current vendor ID from the execution context."""
        if hasattr(cls._thread_local, "vendor_id"):
            delattr(cls._thread_local, "vendor_id")


@contextmanager
def vendor_context(vendor_id: Union[int, str]) -> Generator[None, None, None]:
    """
    Context manager for vendor-scoped operations.

    Sets the current vendor for the duration of the block and restores the
    previous one afterward.
    """
    previous_vendor = VendorContext.get_current_vendor_id()
    VendorContext.set_current_vendor(vendor_id)
    try:
        yield
    finally:
        if previous_vendor:
            VendorContext.set_current_vendor(previous_vendor)
        else:
            VendorContext.clear_current_vendor()
