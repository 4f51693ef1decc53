"""
SQLAlchemy models and connection management for the credential store.
"""

from .db_base import EncryptedBinary, TimestampMixin, utc_now
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_db_manager,
    get_development_config,
    get_production_config,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_credential_models import BookmarkRecord, CredentialSetRecord

__all__ = [
    # Base definitions
    "Base",
    "EncryptedBinary",
    "TimestampMixin",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "get_development_config",
    "get_production_config",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "BookmarkRecord",
    "CredentialSetRecord",
]
