"""
Oracle DDL for account provisioning.

Identifiers cannot be bound as parameters in DDL, so every name is checked
against a strict pattern before it is interpolated.
"""

import re

from ..config import ProvisioningConfig
from ..exceptions import missing_field, validation_failed

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_$#]{0,127}$")


def check_identifier(name: str, field: str = "name") -> str:
    if not name:
        raise missing_field(field)
    if not IDENTIFIER_PATTERN.match(name):
        raise validation_failed(field, name, "must be a plain Oracle identifier")
    return name


def check_secret(secret: str, field: str = "secret") -> str:
    if not secret:
        raise missing_field(field)
    if '"' in secret:
        # Never echo the secret back
        raise validation_failed(field, "***", "must not contain double quotes")
    return secret


class OracleStatements:
    """Builds the statements issued against an Oracle target."""

    TABLESPACE_EXISTS = "SELECT COUNT(*) FROM dba_tablespaces WHERE tablespace_name = :name"
    USER_EXISTS = "SELECT COUNT(*) FROM dba_users WHERE username = :name"

    def __init__(self, config: ProvisioningConfig):
        self.config = config

    @staticmethod
    def catalog_name(name: str) -> str:
        """Unquoted identifiers are stored uppercase in the data dictionary."""
        return name.upper()

    def create_tablespace(self, name: str) -> str:
        return (
            f"CREATE BIGFILE TABLESPACE {name} "
            f"DATAFILE SIZE {self.config.initial_size} "
            f"AUTOEXTEND ON NEXT {self.config.autoextend_next}"
        )

    def create_user(self, name: str, secret: str) -> str:
        return (
            f"CREATE USER {name} PROFILE {self.config.profile} "
            f"DEFAULT TABLESPACE {name} "
            f'IDENTIFIED BY "{secret}" '
            f"ACCOUNT UNLOCK QUOTA UNLIMITED ON {name}"
        )

    def grant_role(self, name: str) -> str:
        return f"GRANT {self.config.role} TO {name}"

    @staticmethod
    def drop_tablespace(name: str, including_contents: bool = False) -> str:
        statement = f"DROP TABLESPACE {name}"
        if including_contents:
            statement += " INCLUDING CONTENTS AND DATAFILES"
        return statement

    @staticmethod
    def drop_user(name: str) -> str:
        return f"DROP USER {name}"
