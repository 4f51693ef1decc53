"""
Encryption of stored secrets under the process-wide broker key.

Handles cross-database encryption: PostgreSQL uses pgcrypto so the key never
leaves the query, every other dialect (SQLite in development and tests) uses
Fernet from the cryptography package.
"""

import base64
import binascii
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ..config import SecurityConfig
from ..exceptions import ConfigurationError, DecryptError
from .logger import get_logger

# Fixed salt: the derived key must be identical across processes sharing a store
_KDF_SALT = b"credential_broker.secret"

EncryptedValue = Union[bytes, bytearray, memoryview, str]


def _is_fernet_key(key: bytes) -> bool:
    if len(key) != 44:
        return False
    try:
        return len(base64.urlsafe_b64decode(key)) == 32
    except (binascii.Error, ValueError):
        return False


class SecretCipher:
    """
    Reversible cipher for the secret column, keyed by the process-wide key.

    The key is set once at startup and passed explicitly; rotating it makes
    every previously stored secret undecryptable.
    """

    def __init__(self, key: Optional[str], kdf_iterations: int = 100_000):
        if not key:
            raise ConfigurationError(
                "Broker secret key is not configured", setting="security.encryption_key"
            )
        self._key = key
        self._fernet = Fernet(self._derive_fernet_key(key.encode(), kdf_iterations))

    @classmethod
    def from_config(cls, config: SecurityConfig) -> "SecretCipher":
        return cls(config.encryption_key, kdf_iterations=config.kdf_iterations)

    @staticmethod
    def _derive_fernet_key(key: bytes, iterations: int) -> bytes:
        if _is_fernet_key(key):
            return key
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=_KDF_SALT,
            iterations=iterations,
        )
        return base64.urlsafe_b64encode(kdf.derive(key))

    def encrypt(self, session: Session, value: str) -> bytes:
        """
        Encrypt a secret for storage.

        Args:
            session: Session bound to the credential store
            value: Plaintext secret

        Returns:
            Encrypted bytes
        """
        if session.bind.dialect.name == "postgresql":
            return session.execute(
                text("SELECT pgp_sym_encrypt(:data, :key)"), {"data": value, "key": self._key}
            ).scalar()

        return self._fernet.encrypt(value.encode("utf-8"))

    def decrypt(self, session: Session, encrypted_value: EncryptedValue) -> str:
        """
        Decrypt a stored secret.

        Args:
            session: Session bound to the credential store
            encrypted_value: Value read from the secret column

        Returns:
            Plaintext secret

        Raises:
            DecryptError: If the value cannot be decrypted with the configured key
        """
        if encrypted_value is None or len(encrypted_value) == 0:
            raise DecryptError("Stored secret is empty")

        if isinstance(encrypted_value, memoryview):
            encrypted_value = encrypted_value.tobytes()

        if session.bind.dialect.name == "postgresql":
            try:
                return session.execute(
                    text("SELECT pgp_sym_decrypt(:data, :key)"),
                    {"data": encrypted_value, "key": self._key},
                ).scalar()
            except DBAPIError as e:
                # pgcrypto aborts the transaction on a wrong key
                session.rollback()
                raise DecryptError(cause=e) from e

        if isinstance(encrypted_value, str):
            encrypted_value = encrypted_value.encode("ascii", errors="ignore")

        try:
            return self._fernet.decrypt(bytes(encrypted_value)).decode("utf-8")
        except InvalidToken as e:
            get_logger().debug("Fernet token rejected by configured key")
            raise DecryptError(cause=e) from e
