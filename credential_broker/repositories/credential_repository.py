"""
Credential store: registered credential-sets and the accounts bookmarked under them.

Credential-sets are keyed by a server-generated token. Secrets are encrypted
with the process-wide key on the way in and decrypted only when a caller
resolves the token to open a connection.
"""

from typing import List, NoReturn, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from ..constants import TargetType
from ..db.db_credential_models import BookmarkRecord, CredentialSetRecord
from ..exceptions import BaseError, ErrorCode, RepositoryError, duplicate, missing_field, not_found
from ..schemas.credential_schemas import CredentialSet
from ..utils.encryption_utils import SecretCipher
from ..utils.logger import get_logger
from ..utils.token_utils import generate_token


class CredentialStore:
    """
    Repository for credential-sets and bookmarks.

    Every mutating call commits on success and rolls back on failure, so one
    store can serve one request without leaking half-finished work.
    """

    def __init__(self, session: Session, cipher: SecretCipher):
        self.session = session
        self.cipher = cipher
        self.logger = get_logger()

    # ==================== LOOKUPS ====================

    def _find_by_token(self, token: str) -> Optional[CredentialSetRecord]:
        if not token:
            return None
        return (
            self.session.query(CredentialSetRecord)
            .filter(CredentialSetRecord.token == token)
            .first()
        )

    def _get_record(self, token: str) -> CredentialSetRecord:
        record = self._find_by_token(token)
        if record is None:
            raise not_found("CredentialSet")
        return record

    def _get_token_id(self, token: str) -> int:
        """Resolve a token to the internal row id bookmarks point at."""
        if not token:
            raise not_found("CredentialSet")
        token_id = (
            self.session.query(CredentialSetRecord.id)
            .filter(CredentialSetRecord.token == token)
            .scalar()
        )
        if token_id is None:
            raise not_found("CredentialSet")
        return token_id

    def _is_registered(self, address: str, schema_name: str) -> bool:
        return (
            self.session.query(CredentialSetRecord.id)
            .filter(
                and_(
                    CredentialSetRecord.address == address,
                    CredentialSetRecord.schema_name == schema_name,
                )
            )
            .first()
            is not None
        )

    def _fail(self, action: str, error: Exception, **context) -> NoReturn:
        """Roll back and translate an unexpected failure into a RepositoryError."""
        self.session.rollback()
        if isinstance(error, BaseError):
            raise error
        self.logger.error(
            f"Failed to {action}",
            extra={**context, "error": str(error), "error_type": type(error).__name__},
        )
        raise RepositoryError(
            message=f"Failed to {action}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=error,
            **context,
        ) from error

    @staticmethod
    def _require(**fields: str) -> None:
        for field_name, value in fields.items():
            if not value:
                raise missing_field(field_name)

    # ==================== CREDENTIAL-SETS ====================

    def register(
        self,
        address: str,
        schema_name: str,
        login: str,
        secret: str,
        target_type: TargetType = TargetType.ORACLE,
    ) -> str:
        """
        Register a target database and return a fresh token for it.

        Args:
            address: Target database address
            schema_name: Target schema/database name
            login: Account used to manage the target
            secret: Secret for ``login``; stored encrypted
            target_type: Engine of the target database

        Returns:
            The generated token

        Raises:
            ValidationError: If a field is empty
            DuplicateError: If (address, schema_name) is already registered
            RepositoryError: If persisting fails
        """
        self._require(address=address, schema=schema_name, login=login, secret=secret)

        try:
            if self._is_registered(address, schema_name):
                raise duplicate("CredentialSet", address=address, schema=schema_name)

            token = generate_token(address, schema_name)
            record = CredentialSetRecord(
                token=token,
                target_type=TargetType(target_type).value,
                address=address,
                schema_name=schema_name,
                login=login,
                secret=self.cipher.encrypt(self.session, secret),
            )
            self.session.add(record)
            self.session.commit()

        except Exception as e:
            self._fail("register credential-set", e, address=address, schema=schema_name)

        self.logger.info(
            "Credential-set registered",
            extra={"token_id": record.id, "address": address, "schema": schema_name},
        )
        return token

    def update(self, token: str, address: str, schema_name: str, login: str, secret: str) -> None:
        """
        Replace every field of a registered credential-set; the token is kept.

        Raises:
            ValidationError: If a field is empty
            NotFoundError: If the token is unknown
        """
        self._require(token=token, address=address, schema=schema_name, login=login, secret=secret)

        try:
            record = self._get_record(token)
            record.address = address
            record.schema_name = schema_name
            record.login = login
            record.secret = self.cipher.encrypt(self.session, secret)
            self.session.commit()
        except Exception as e:
            self._fail("update credential-set", e)

        self.logger.info(
            "Credential-set updated",
            extra={"token_id": record.id, "address": address, "schema": schema_name},
        )

    def resolve(self, token: str) -> CredentialSet:
        """
        Resolve a token to its credential-set with the secret decrypted.

        Raises:
            NotFoundError: If the token is unknown
            DecryptError: If the secret cannot be decrypted with the configured key
        """
        record = self._get_record(token)
        secret = self.cipher.decrypt(self.session, record.secret)

        return CredentialSet(
            token=record.token,
            target_type=TargetType(record.target_type),
            address=record.address,
            schema_name=record.schema_name,
            login=record.login,
            secret=secret,
        )

    def unregister(self, token: str) -> None:
        """
        Remove a credential-set and every bookmark under it.

        Raises:
            NotFoundError: If the token is unknown; nothing is deleted
        """
        try:
            record = self._get_record(token)
            token_id = record.id
            self.session.delete(record)
            self.session.commit()
        except Exception as e:
            self._fail("unregister credential-set", e)

        self.logger.info("Credential-set unregistered", extra={"token_id": token_id})

    # ==================== BOOKMARKS ====================

    def bookmark(self, token: str, account_name: str) -> None:
        """
        Record that ``account_name`` was provisioned with ``token``.

        Raises:
            NotFoundError: If the token is unknown
        """
        self._require(name=account_name)

        try:
            token_id = self._get_token_id(token)
            self.session.add(BookmarkRecord(token_id=token_id, account_name=account_name))
            self.session.commit()
        except Exception as e:
            self._fail("bookmark account", e, account_name=account_name)

        self.logger.info(
            "Account bookmarked", extra={"token_id": token_id, "account_name": account_name}
        )

    def unbookmark(self, token: str, account_name: str) -> int:
        """
        Remove the bookmarks of ``account_name`` under ``token``.

        A missing bookmark is not an error, an unknown token is.

        Returns:
            Number of bookmark rows removed

        Raises:
            NotFoundError: If the token is unknown
        """
        self._require(name=account_name)

        try:
            token_id = self._get_token_id(token)
            removed = (
                self.session.query(BookmarkRecord)
                .filter(
                    and_(
                        BookmarkRecord.token_id == token_id,
                        BookmarkRecord.account_name == account_name,
                    )
                )
                .delete(synchronize_session=False)
            )
            self.session.commit()
        except Exception as e:
            self._fail("unbookmark account", e, account_name=account_name)

        self.logger.info(
            "Account unbookmarked",
            extra={"token_id": token_id, "account_name": account_name, "removed": removed},
        )
        return removed

    def list_bookmarks(self, token: str) -> List[str]:
        """
        List account names bookmarked under ``token``, oldest first.

        Raises:
            NotFoundError: If the token is unknown
        """
        token_id = self._get_token_id(token)
        rows = (
            self.session.query(BookmarkRecord.account_name)
            .filter(BookmarkRecord.token_id == token_id)
            .order_by(BookmarkRecord.id)
            .all()
        )
        return [row.account_name for row in rows]
