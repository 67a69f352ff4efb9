"""
SQLAlchemy models and database management.
"""

from .db_base import JSON, TimestampMixin, UUIDMixin, utc_now
from .db_config import (
    Base,
    DatabaseManager,
    close_db,
    get_db_manager,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_option_models import SiteOption
from .db_vendor_meta_models import VendorMeta

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    # Management
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "SiteOption",
    "VendorMeta",
]
