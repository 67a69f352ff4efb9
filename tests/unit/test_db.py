"""Tests for database models and management."""

import pytest
from sqlalchemy.exc import IntegrityError

from whatsapp_bridge_core.config import DatabaseConfig
from whatsapp_bridge_core.db import DatabaseManager, SiteOption, VendorMeta
from whatsapp_bridge_core.db.db_config import get_db_manager
from whatsapp_bridge_core.exceptions import BaseError


class TestModels:
    def test_vendor_meta_unique_per_key(self, db_session):
        db_session.add(VendorMeta(vendor_id="7", meta_key="session_status", meta_value="qr_ready"))
        db_session.commit()

        db_session.add(VendorMeta(vendor_id="7", meta_key="session_status", meta_value="failed"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_json_column_round_trip(self, db_session):
        option = SiteOption(option_name="api_call_stats", option_value={"sessions": {"total": 1}})
        db_session.add(option)
        db_session.commit()
        db_session.expire_all()

        stored = db_session.query(SiteOption).filter_by(option_name="api_call_stats").one()
        assert stored.option_value == {"sessions": {"total": 1}}
        assert stored.id is not None
        assert stored.created_at is not None


class TestDatabaseManager:
    def test_global_manager_initialized(self, db_manager):
        assert get_db_manager() is db_manager

    def test_drop_tables_requires_development_mode(self):
        manager = DatabaseManager(DatabaseConfig(connection_string="sqlite:///:memory:"))
        try:
            with pytest.raises(BaseError):
                manager.drop_tables()
        finally:
            manager.close()
