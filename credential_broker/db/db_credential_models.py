"""
Credential store models.

Just the data structure - the store owns all behavior. Column names follow the
persisted layout shared with existing deployments: a ``tokens`` table keyed by
token with an internal numeric id, and a ``bookmarks`` table pointing at it.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from ..constants import Limits, TableName, TargetType
from .db_base import EncryptedBinary, TimestampMixin
from .db_config import Base


class CredentialSetRecord(Base, TimestampMixin):
    """A registered target database and the credentials used to manage it."""

    __tablename__ = TableName.TOKENS.value

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(Limits.TOKEN_LENGTH), nullable=False, unique=True, index=True)
    target_type = Column("type", String(20), nullable=False, default=TargetType.ORACLE.value)

    address = Column("dbaddr", String(Limits.MAX_ADDRESS_LENGTH), nullable=False)
    schema_name = Column("dbname", String(Limits.MAX_IDENTIFIER_LENGTH), nullable=False)
    login = Column("username", String(Limits.MAX_IDENTIFIER_LENGTH), nullable=False)
    secret = Column("password", EncryptedBinary, nullable=False)  # Encrypted storage

    bookmarks = relationship(
        "BookmarkRecord",
        back_populates="credential_set",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_tokens_target", "dbaddr", "dbname"),)

    def __repr__(self) -> str:
        return (
            f"CredentialSetRecord(id={self.id}, type='{self.target_type}', "
            f"address='{self.address}', schema='{self.schema_name}', secret='***')"
        )


class BookmarkRecord(Base, TimestampMixin):
    """An account provisioned with a credential-set's token."""

    __tablename__ = TableName.BOOKMARKS.value

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_id = Column(
        Integer,
        ForeignKey(f"{TableName.TOKENS.value}.id", ondelete="CASCADE"),
        nullable=False,
    )
    account_name = Column(String(Limits.MAX_IDENTIFIER_LENGTH), nullable=False)

    credential_set = relationship("CredentialSetRecord", back_populates="bookmarks")

    __table_args__ = (Index("ix_bookmarks_lookup", "token_id", "account_name"),)
