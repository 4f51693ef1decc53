"""
Test fixtures for the credential broker.

Provides an in-memory SQLite credential store, a per-test broker key and an
in-memory Oracle target, so no test needs a live database.
"""

import pytest
from cryptography.fernet import Fernet
from sqlalchemy.orm import Session

from credential_broker.config import AppConfig, ProvisioningConfig, SecurityConfig, reset_config, set_config
from credential_broker.db import DatabaseConfig, DatabaseManager, import_all_models
from credential_broker.db.db_config import Base, initialize_db
from credential_broker.exceptions import clear_correlation_id
from credential_broker.provisioning import AccountProvisioner
from credential_broker.repositories import CredentialStore
from credential_broker.services import BrokerService, IntentDispatcher
from credential_broker.utils.encryption_utils import SecretCipher
from tests.fixtures.factories import configure_factories
from tests.fixtures.fake_target import FakeTargetConnection


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    return initialize_db(db_config)


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after every test to keep tests
    isolated.
    """
    session = db_manager.get_session()
    Base.metadata.create_all(db_manager.engine)
    configure_factories(session)

    yield session

    session.rollback()
    session.close()
    db_manager.close_session()
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(autouse=True)
def clean_global_state():
    """Keep correlation IDs and global config from leaking between tests."""
    yield
    clear_correlation_id()
    reset_config()


# ==================== BROKER FIXTURES ====================


@pytest.fixture
def broker_key() -> str:
    """A fresh process-wide key per test."""
    return Fernet.generate_key().decode()


@pytest.fixture
def cipher(broker_key) -> SecretCipher:
    return SecretCipher(broker_key)


@pytest.fixture
def store(db_session, cipher) -> CredentialStore:
    return CredentialStore(db_session, cipher)


@pytest.fixture
def provisioning_config() -> ProvisioningConfig:
    return ProvisioningConfig(profile="APPUSERS", role="GSB")


@pytest.fixture
def target() -> FakeTargetConnection:
    """In-memory Oracle target shared by every connection a test opens."""
    return FakeTargetConnection()


@pytest.fixture
def opened_with():
    """Credential-sets the provisioner connected with, in order."""
    return []


@pytest.fixture
def provisioner(provisioning_config, target, opened_with) -> AccountProvisioner:
    def connect(credential_set):
        opened_with.append(credential_set)
        return target

    return AccountProvisioner(provisioning_config, connect=connect)


@pytest.fixture
def service(store, provisioner) -> BrokerService:
    return BrokerService(store, provisioner)


@pytest.fixture
def dispatcher(service) -> IntentDispatcher:
    return IntentDispatcher(service)


@pytest.fixture
def token(store) -> str:
    """Token of a registered target (db1/s1, login u, secret p)."""
    return store.register("db1", "s1", "u", "p")


@pytest.fixture
def app_config(broker_key, provisioning_config) -> AppConfig:
    config = AppConfig(
        security=SecurityConfig(encryption_key=broker_key),
        provisioning=provisioning_config,
    )
    set_config(config)
    return config
