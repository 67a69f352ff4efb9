"""
Per-vendor key/value attributes.

Session records and disconnect history are stored here, one row per
(vendor_id, meta_key).
"""

from sqlalchemy import Column, Index, String, UniqueConstraint

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class VendorMeta(Base, UUIDMixin, TimestampMixin):
    """A single attribute stored against a vendor."""

    __tablename__ = "vendor_meta"

    vendor_id = Column(String(100), nullable=False)
    meta_key = Column(String(100), nullable=False)
    meta_value = Column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("vendor_id", "meta_key", name="uq_vendor_meta_key"),
        Index("ix_vendor_meta_lookup", "vendor_id", "meta_key"),
    )
