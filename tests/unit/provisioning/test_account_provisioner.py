"""
Tests for AccountProvisioner against the in-memory Oracle target.
"""

from unittest.mock import MagicMock, patch

import pytest

from credential_broker.exceptions import (
    AlreadyExistsError,
    CompensationError,
    ConnectError,
    DropError,
    FlowCancelledError,
    GrantError,
    ProvisioningError,
    ValidationError,
)
from credential_broker.provisioning import AccountProvisioner, TargetConnection
from credential_broker.schemas import CredentialSet
from tests.fixtures.fake_target import TargetFailure


@pytest.fixture
def credential_set():
    return CredentialSet(
        token="t" * 64, address="db1:1521", schema_name="s1", login="system", secret="manager"
    )


@pytest.fixture
def connection(provisioner, credential_set):
    return provisioner.open(credential_set)


class TestOpen:
    def test_open_probes_the_target(self, provisioner, credential_set, target, opened_with):
        connection = provisioner.open(credential_set)

        assert connection is target
        assert opened_with == [credential_set]
        assert target.queries == ["SELECT 1 FROM DUAL"]

    def test_probe_failure_is_a_connect_error(self, provisioner, credential_set, target):
        target.fail_on("SELECT 1", TargetFailure("ORA-12541: TNS:no listener at db1:1521"))

        with pytest.raises(ConnectError) as exc_info:
            provisioner.open(credential_set)

        assert "db1" not in exc_info.value.message
        assert "manager" not in exc_info.value.message
        assert target.closed

    def test_connect_failure_is_a_connect_error(self, provisioning_config, credential_set):
        def refuse(_):
            raise TargetFailure("ORA-01017: invalid username/password")

        with pytest.raises(ConnectError):
            AccountProvisioner(provisioning_config, connect=refuse).open(credential_set)

    def test_close_is_idempotent(self, provisioner, connection, target):
        provisioner.close(connection)
        provisioner.close(connection)
        provisioner.close(None)
        assert target.close_calls == 2


class TestCreateAccount:
    def test_creates_tablespace_user_and_grant(self, provisioner, connection, target):
        provisioner.create_account(connection, "alice", "pw")

        assert target.statements == [
            "CREATE BIGFILE TABLESPACE alice DATAFILE SIZE 100M AUTOEXTEND ON NEXT 100M",
            'CREATE USER alice PROFILE APPUSERS DEFAULT TABLESPACE alice IDENTIFIED BY "pw" '
            "ACCOUNT UNLOCK QUOTA UNLIMITED ON alice",
            "GRANT GSB TO alice",
        ]
        assert "ALICE" in target.tablespaces
        assert provisioner.account_exists(connection, "alice")
        assert target.grants["ALICE"] == {"GSB"}

    @pytest.mark.parametrize("name,secret", [("", "pw"), ("alice", ""), ("1alice", "pw")])
    def test_validation_happens_before_any_statement(
        self, provisioner, connection, target, name, secret
    ):
        with pytest.raises(ValidationError):
            provisioner.create_account(connection, name, secret)
        assert target.statements == []

    def test_existing_tablespace(self, provisioner, connection, target):
        target.tablespaces.add("BOB")

        with pytest.raises(AlreadyExistsError) as exc_info:
            provisioner.create_account(connection, "bob", "pw")

        assert exc_info.value.status_code == 409
        assert target.statements == []
        assert not provisioner.account_exists(connection, "bob")
        assert "BOB" in target.tablespaces

    def test_existing_user_drops_new_tablespace(self, provisioner, connection, target):
        target.users.add("CAROL")

        with pytest.raises(AlreadyExistsError):
            provisioner.create_account(connection, "carol", "pw")

        assert "CAROL" not in target.tablespaces
        assert target.statements[-1] == "DROP TABLESPACE carol"

    def test_user_failure_leaves_no_orphaned_tablespace(self, provisioner, connection, target):
        target.fail_on("CREATE USER")

        with pytest.raises(ProvisioningError) as exc_info:
            provisioner.create_account(connection, "alice", "pw")

        assert exc_info.value.message == "could not create user (alice)"
        assert "ALICE" not in target.tablespaces

        # A retry gets past the tablespace step again
        target.heal("CREATE USER")
        provisioner.create_account(connection, "alice", "pw")
        assert provisioner.account_exists(connection, "alice")

    def test_user_failure_does_not_leak_the_secret(self, provisioner, connection, target):
        target.fail_on("CREATE USER", TargetFailure('failed: IDENTIFIED BY "hunter2"'))

        with pytest.raises(ProvisioningError) as exc_info:
            provisioner.create_account(connection, "alice", "hunter2")

        assert exc_info.value.cause is None
        assert exc_info.value.__cause__ is None

    def test_failed_cleanup_is_a_compensation_error(self, provisioner, connection, target):
        target.fail_on("CREATE USER").fail_on("DROP TABLESPACE")

        with pytest.raises(CompensationError) as exc_info:
            provisioner.create_account(connection, "alice", "pw")

        assert isinstance(exc_info.value.original_error, ProvisioningError)
        assert "ALICE" in target.tablespaces

    def test_grant_failure_keeps_account_and_tablespace(self, provisioner, connection, target):
        target.fail_on("GRANT")

        with pytest.raises(GrantError) as exc_info:
            provisioner.create_account(connection, "alice", "pw")

        assert exc_info.value.message == "could not grant role GSB to alice"
        assert "ALICE" in target.users
        assert "ALICE" in target.tablespaces

    def test_cancel_before_grant_drops_user_and_tablespace(self, provisioner, connection, target):
        checks = iter([False, False, True])

        with pytest.raises(FlowCancelledError):
            provisioner.create_account(connection, "alice", "pw", should_abort=lambda: next(checks))

        assert "ALICE" not in target.users
        assert "ALICE" not in target.tablespaces
        assert target.statements[-2:] == ["DROP USER alice", "DROP TABLESPACE alice"]
        assert "GRANT GSB TO alice" not in target.statements

    def test_dictionary_query_failure(self, provisioner, connection, target):
        target.fail_on("SELECT COUNT(*) FROM dba_tablespaces")

        with pytest.raises(ProvisioningError):
            provisioner.create_account(connection, "alice", "pw")
        assert target.statements == []


class TestDropAccount:
    def test_drops_user_then_tablespace(self, provisioner, connection, target):
        provisioner.create_account(connection, "alice", "pw")
        target.statements.clear()

        provisioner.drop_account(connection, "alice")

        assert target.statements == [
            "DROP USER alice",
            "DROP TABLESPACE alice INCLUDING CONTENTS AND DATAFILES",
        ]
        assert not target.users
        assert not target.tablespaces

    def test_user_drop_failure_leaves_tablespace(self, provisioner, connection, target):
        provisioner.create_account(connection, "alice", "pw")
        target.fail_on("DROP USER")

        with pytest.raises(DropError) as exc_info:
            provisioner.drop_account(connection, "alice")

        assert exc_info.value.context["stage"] == "account"
        assert target.statements[-1] == "DROP USER alice"
        assert "ALICE" in target.tablespaces

    def test_tablespace_drop_failure_is_reported(self, provisioner, connection, target):
        provisioner.create_account(connection, "alice", "pw")
        target.fail_on("DROP TABLESPACE")

        with pytest.raises(DropError) as exc_info:
            provisioner.drop_account(connection, "alice")

        assert exc_info.value.context["stage"] == "tablespace"
        assert "ALICE" not in target.users
        assert "ALICE" in target.tablespaces

    def test_unknown_account(self, provisioner, connection):
        with pytest.raises(DropError):
            provisioner.drop_account(connection, "ghost")

    def test_requires_name(self, provisioner, connection, target):
        with pytest.raises(ValidationError):
            provisioner.drop_account(connection, "")
        assert target.statements == []


class TestEngineConnection:
    """The default connect path builds a NullPool engine from the credential-set."""

    @patch("credential_broker.provisioning.account_provisioner.create_engine")
    def test_url_from_credential_set(self, mock_create_engine, provisioning_config, credential_set):
        engine = MagicMock()
        mock_create_engine.return_value = engine

        connection = AccountProvisioner(provisioning_config).open(credential_set)

        url = mock_create_engine.call_args.args[0]
        assert url.drivername == "oracle+oracledb"
        assert url.username == "system"
        assert url.password == "manager"
        assert url.host == "db1"
        assert url.port == 1521
        assert url.query["service_name"] == "s1"
        assert isinstance(connection, TargetConnection)

        raw = engine.connect.return_value.execution_options.return_value
        engine.connect.return_value.execution_options.assert_called_once_with(
            isolation_level="AUTOCOMMIT"
        )
        assert raw.execute.called

    def test_target_connection_passes_ddl_untouched(self):
        engine = MagicMock()
        raw = engine.connect.return_value.execution_options.return_value
        connection = TargetConnection(engine)

        connection.execute('CREATE USER a IDENTIFIED BY "p:w"')
        raw.exec_driver_sql.assert_called_once_with('CREATE USER a IDENTIFIED BY "p:w"')

        connection.close()
        connection.close()
        raw.close.assert_called_once()
        engine.dispose.assert_called_once()
        assert connection.closed
