"""
Base column types and mixins shared by the credential store models.

Keeps cross-database compatibility between SQLite (development, tests) and
PostgreSQL (production).
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Text
from sqlalchemy.dialects.postgresql import BYTEA
from sqlalchemy.types import TypeDecorator


def utc_now():
    """Return current UTC time with timezone info attached."""
    return datetime.now(timezone.utc)


class EncryptedBinary(TypeDecorator):
    """
    Cross-database encrypted binary type.
    Uses BYTEA for PostgreSQL and Text for SQLite.
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(BYTEA())
        else:
            return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if dialect.name == "postgresql":
            return value
        # Fernet tokens are urlsafe base64, so ascii text round-trips exactly
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("ascii")
        return value

    def process_result_value(self, value, dialect):
        # Encryption/decryption handled by SecretCipher
        return value


class TimestampMixin:
    """Simple mixin for created_at/updated_at timestamps."""

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
