"""Utility helpers for the WhatsApp bridge core."""

from .json_utils import dumps, loads
from .logger import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "dumps",
    "get_logger",
    "loads",
]
