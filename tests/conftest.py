"""
Shared test fixtures.

Provides an in-memory SQLite database, a fresh AppConfig per test and
common identities.
"""

import pytest
from sqlalchemy.orm import Session

from whatsapp_bridge_core.config import AppConfig, DatabaseConfig, reset_config, set_config
from whatsapp_bridge_core.db import DatabaseManager, import_all_models
from whatsapp_bridge_core.db.db_config import Base, initialize_db
from whatsapp_bridge_core.repositories import OptionRepository, VendorSessionRepository
from whatsapp_bridge_core.schemas import CallerIdentity, VendorAffiliation
from whatsapp_bridge_core.utils.logger import reset_logger


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """SQLite in-memory database configuration for testing."""
    return DatabaseConfig(connection_string="sqlite:///:memory:", echo=False, development_mode=True)


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Database manager with all models registered."""
    import_all_models()
    return initialize_db(db_config)


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Fresh database session and schema for each test.
    """
    Base.metadata.create_all(db_manager.engine)
    session = db_manager.get_session()

    yield session

    session.rollback()
    db_manager.close_session()
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep environment variables from leaking into configuration defaults."""
    for name in (
        "WPWA_API_URL",
        "WPWA_JWT_SECRET",
        "WPWA_SITE_URL",
        "WPWA_CONNECTION_TIMEOUT",
        "WPWA_MAX_RETRIES",
        "WPWA_DEBUG_MODE",
        "WPWA_ALLOW_TRACKING",
        "AzureWebJobsStorage",
        "LOG_LEVEL",
        "DATABASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    reset_logger()
    yield
    reset_config()
    reset_logger()


@pytest.fixture
def app_config() -> AppConfig:
    """Config pointing at a fake API server with a fixed secret."""
    config = AppConfig()
    config.api.base_url = "https://wa.example.test/api/"
    config.security.signing_secret = "test-secret-with-enough-length-for-hs256-signing-0123456789!"
    config.security.issuer = "https://shop.example.test"
    set_config(config)
    return config


@pytest.fixture
def option_repository(db_session) -> OptionRepository:
    return OptionRepository(db_session)


@pytest.fixture
def session_repository(db_session) -> VendorSessionRepository:
    return VendorSessionRepository(db_session)


@pytest.fixture
def vendor_identity() -> CallerIdentity:
    """A vendor user allowed to call the API."""
    return CallerIdentity(
        user_id=42,
        username="acme_owner",
        email="owner@acme.test",
        roles=["wcfm_vendor"],
        vendor=VendorAffiliation(vendor_id=7, store_name="Acme Store"),
    )


@pytest.fixture
def customer_identity() -> CallerIdentity:
    """A user whose roles are not on the allow-list."""
    return CallerIdentity(user_id=99, username="shopper", email="shopper@test", roles=["customer"])
