"""Repository layer for data access."""

from .option_repository import OptionRepository
from .session_repository import VendorSessionRepository

__all__ = [
    "OptionRepository",
    "VendorSessionRepository",
]
