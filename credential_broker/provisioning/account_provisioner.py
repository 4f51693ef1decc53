"""
Account provisioning inside a registered Oracle target.

The provisioner owns no state. Each request opens one TargetConnection from a
resolved credential-set, runs its statements and closes it again.
"""

from typing import Callable, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.pool import NullPool

from ..config import ProvisioningConfig
from ..exceptions import (
    AlreadyExistsError,
    ConnectError,
    DropError,
    GrantError,
    ProvisioningError,
)
from ..schemas.credential_schemas import CredentialSet
from ..utils.logger import get_logger
from .saga import Saga
from .statements import OracleStatements, check_identifier, check_secret


def _describe(error: Exception) -> str:
    """Driver error without the statement text, which may carry a secret."""
    original = getattr(error, "orig", None) or error
    return f"{type(original).__name__}: {original}"


class TargetConnection:
    """A single autocommit connection to a target database."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._connection: Optional[Connection] = engine.connect().execution_options(
            isolation_level="AUTOCOMMIT"
        )

    @property
    def closed(self) -> bool:
        return self._connection is None

    def execute(self, statement: str) -> None:
        # DDL goes to the driver untouched; text() would read ':' in a secret as a bind
        self._connection.exec_driver_sql(statement)

    def scalar(self, query: str, **params):
        return self._connection.execute(text(query), params).scalar()

    def close(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._connection = None
            self.engine.dispose()


class AccountProvisioner:
    """
    Creates and drops login accounts together with their tablespaces.

    Args:
        config: Profile, role and sizing applied to new accounts
        connect: Optional factory ``connect(credential_set) -> connection``;
            the returned object needs ``execute``, ``scalar`` and ``close``
    """

    def __init__(
        self,
        config: ProvisioningConfig,
        connect: Optional[Callable[[CredentialSet], TargetConnection]] = None,
    ):
        self.config = config
        self.statements = OracleStatements(config)
        self._connect = connect or self._connect_engine
        self.logger = get_logger()

    def _connect_engine(self, credential_set: CredentialSet) -> TargetConnection:
        host, _, port = credential_set.address.partition(":")
        url = URL.create(
            self.config.driver,
            username=credential_set.login,
            password=credential_set.secret,
            host=host,
            port=int(port) if port else None,
            query={"service_name": credential_set.schema_name},
        )
        return TargetConnection(create_engine(url, poolclass=NullPool))

    # ==================== CONNECTION ====================

    def open(self, credential_set: CredentialSet) -> TargetConnection:
        """
        Connect to the target and probe it.

        Raises:
            ConnectError: If the target is unreachable or rejects the login.
                Neither address nor secret appear in the message.
        """
        connection = None
        try:
            connection = self._connect(credential_set)
            connection.scalar(self.config.probe_sql)
        except Exception as e:
            if connection is not None:
                self.close(connection)
            raise ConnectError(reason=_describe(e)) from None

        self.logger.debug("Target connection opened", extra={"token": credential_set.token[:8]})
        return connection

    def close(self, connection) -> None:
        """Release the connection. Safe to call more than once."""
        if connection is None:
            return
        try:
            connection.close()
        except Exception as e:
            self.logger.warning(
                "Could not close target connection", extra={"error": _describe(e)}
            )

    # ==================== LOOKUPS ====================

    def _count(self, connection, query: str, name: str) -> int:
        try:
            return int(connection.scalar(query, name=self.statements.catalog_name(name)) or 0)
        except Exception as e:
            raise ProvisioningError(
                f"could not query data dictionary for ({name})", reason=_describe(e)
            ) from None

    def account_exists(self, connection, name: str) -> bool:
        check_identifier(name)
        return self._count(connection, OracleStatements.USER_EXISTS, name) > 0

    def tablespace_exists(self, connection, name: str) -> bool:
        check_identifier(name)
        return self._count(connection, OracleStatements.TABLESPACE_EXISTS, name) > 0

    # ==================== CREATE ====================

    def create_account(
        self,
        connection,
        name: str,
        secret: str,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> None:
        """
        Create tablespace, login and role grant for ``name``.

        Raises:
            ValidationError: If name or secret is empty or unsafe
            AlreadyExistsError: If the tablespace or account already exists
            ProvisioningError: If a step fails; the tablespace was dropped again
            GrantError: If the grant fails; account and tablespace are kept
            CompensationError: If undoing the login or tablespace after a failure failed
        """
        check_identifier(name)
        check_secret(secret)

        def create_tablespace():
            if self.tablespace_exists(connection, name):
                raise AlreadyExistsError(
                    f"could not create tablespace ({name}): tablespace already exists",
                    account_name=name,
                )
            try:
                connection.execute(self.statements.create_tablespace(name))
            except Exception as e:
                raise ProvisioningError(
                    f"could not create tablespace ({name})", account_name=name, reason=_describe(e)
                ) from None

        def drop_tablespace():
            connection.execute(OracleStatements.drop_tablespace(name))

        def create_user():
            if self.account_exists(connection, name):
                raise AlreadyExistsError(
                    f"could not create user ({name}): user already exists", account_name=name
                )
            try:
                connection.execute(self.statements.create_user(name, secret))
            except Exception as e:
                raise ProvisioningError(
                    f"could not create user ({name})", account_name=name, reason=_describe(e)
                ) from None

        def drop_user():
            connection.execute(OracleStatements.drop_user(name))

        def grant_role():
            try:
                connection.execute(self.statements.grant_role(name))
            except Exception as e:
                raise GrantError(
                    f"could not grant role {self.config.role} to {name}",
                    account_name=name,
                    reason=_describe(e),
                ) from None

        saga = Saga(f"create_account:{name}")
        saga.step("tablespace", create_tablespace, compensation=drop_tablespace)
        saga.step("user", create_user, compensation=drop_user)
        saga.step("grant", grant_role, unwind=False)
        saga.run(should_abort)

        self.logger.info(
            "Account created", extra={"account_name": name, "role": self.config.role}
        )

    # ==================== DROP ====================

    def drop_account(self, connection, name: str) -> None:
        """
        Drop the login, then its tablespace.

        Raises:
            ValidationError: If name is empty or unsafe
            DropError: ``stage="account"`` when the login could not be dropped
                (tablespace untouched), ``stage="tablespace"`` when the login is
                gone but its tablespace is orphaned
        """
        check_identifier(name)

        try:
            connection.execute(OracleStatements.drop_user(name))
        except Exception as e:
            raise DropError(
                f"could not drop user ({name})",
                account_name=name,
                stage="account",
                reason=_describe(e),
            ) from None

        try:
            connection.execute(OracleStatements.drop_tablespace(name, including_contents=True))
        except Exception as e:
            raise DropError(
                f"could not drop tablespace ({name})",
                account_name=name,
                stage="tablespace",
                reason=_describe(e),
            ) from None

        self.logger.info("Account dropped", extra={"account_name": name})
