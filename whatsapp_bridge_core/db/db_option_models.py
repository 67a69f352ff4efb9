from sqlalchemy import Column, String

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class SiteOption(Base, UUIDMixin, TimestampMixin):
    """Site-wide named option (signing secret, API call statistics)."""

    __tablename__ = "site_option"

    option_name = Column(String(191), nullable=False, unique=True, index=True)
    option_value = Column(JSON, nullable=True)
