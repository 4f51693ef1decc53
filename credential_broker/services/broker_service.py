"""
Broker service: resolves tokens, provisions accounts and keeps bookmarks in step.

Create flow: resolving -> connecting -> provisioning -> bookmarking -> done,
with a compensating drop when bookmarking fails after the account exists.
Drop flow: resolving -> connecting -> provisioning -> bookmarking -> done,
where a failed unbookmark only adds a warning.
"""

from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..config import AppConfig, get_config
from ..constants import FlowState, OperationStatus, TargetType
from ..context.operation_context import operation
from ..exceptions import BaseError, BookmarkError, CompensationError, FlowCancelledError, missing_field
from ..provisioning.account_provisioner import AccountProvisioner
from ..provisioning.statements import check_identifier, check_secret
from ..repositories.credential_repository import CredentialStore
from ..schemas.credential_schemas import CredentialSet, FlowOutcome
from ..utils.encryption_utils import SecretCipher
from ..utils.logger import get_logger


class _FlowTrail:
    """States visited by one request, attached to outcomes and errors."""

    def __init__(self, account_name: str):
        self.account_name = account_name
        self.states: List[FlowState] = [FlowState.IDLE]

    @property
    def current(self) -> FlowState:
        return self.states[-1]

    def enter(self, state: FlowState) -> None:
        self.states.append(state)

    def annotate(self, error: BaseError) -> None:
        error.add_context(flow_states=[state.value for state in self.states])

    def outcome(self, message: str, warnings: Optional[List[str]] = None) -> FlowOutcome:
        self.enter(FlowState.DONE)
        return FlowOutcome(
            status=OperationStatus.SUCCESS,
            success=True,
            account_name=self.account_name,
            message=message,
            states=list(self.states),
            warnings=warnings or [],
        )


class BrokerService:
    """Composes the credential store and the account provisioner."""

    def __init__(self, store: CredentialStore, provisioner: AccountProvisioner):
        self.store = store
        self.provisioner = provisioner
        self.logger = get_logger()

    @classmethod
    def from_config(
        cls,
        session: Session,
        config: Optional[AppConfig] = None,
        connect: Optional[Callable[[CredentialSet], object]] = None,
    ) -> "BrokerService":
        """Wire a service for one request session from the application config."""
        config = config or get_config()
        store = CredentialStore(session, SecretCipher.from_config(config.security))
        return cls(store, AccountProvisioner(config.provisioning, connect=connect))

    @staticmethod
    def _check_abort(trail: _FlowTrail, should_abort: Optional[Callable[[], bool]]) -> None:
        if should_abort is not None and should_abort():
            raise FlowCancelledError(account_name=trail.account_name, state=trail.current.value)

    # ==================== CREDENTIAL-SETS ====================

    @operation()
    def register(
        self,
        address: str,
        schema_name: str,
        login: str,
        secret: str,
        target_type: TargetType = TargetType.ORACLE,
    ) -> str:
        return self.store.register(address, schema_name, login, secret, target_type)

    @operation()
    def update(self, token: str, address: str, schema_name: str, login: str, secret: str) -> None:
        self.store.update(token, address, schema_name, login, secret)

    @operation()
    def unregister(self, token: str) -> None:
        if not token:
            raise missing_field("token")
        self.store.unregister(token)

    # ==================== ACCOUNTS ====================

    @operation()
    def create_account(
        self,
        token: str,
        name: str,
        secret: str,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> FlowOutcome:
        """
        Provision ``name`` in the target registered under ``token`` and bookmark it.

        ``should_abort`` is checked before each step up to provisioning. Once the
        account exists the bookmark is always attempted, so a cancellation never
        leaves an untracked account behind.

        Raises:
            ValidationError: Missing or unsafe token, name or secret
            NotFoundError: Unknown token
            DecryptError / ConnectError: Target unusable
            AlreadyExistsError / ProvisioningError / GrantError: From the provisioner
            BookmarkError: Bookmarking failed; the account was dropped again
            CompensationError: Bookmarking failed and so did the drop
            FlowCancelledError: ``should_abort`` returned true
        """
        if not token:
            raise missing_field("token")
        check_identifier(name)
        check_secret(secret)

        trail = _FlowTrail(name)
        try:
            self._check_abort(trail, should_abort)
            trail.enter(FlowState.RESOLVING)
            credential_set = self.store.resolve(token)

            self._check_abort(trail, should_abort)
            trail.enter(FlowState.CONNECTING)
            connection = self.provisioner.open(credential_set)

            try:
                trail.enter(FlowState.PROVISIONING)
                self.provisioner.create_account(connection, name, secret, should_abort)

                trail.enter(FlowState.BOOKMARKING)
                try:
                    self.store.bookmark(token, name)
                except Exception as e:
                    trail.enter(FlowState.COMPENSATING)
                    self.logger.warning(
                        "Bookmarking failed, dropping account again",
                        extra={"account_name": name, "error_type": type(e).__name__},
                    )
                    try:
                        self.provisioner.drop_account(connection, name)
                    except Exception as drop_error:
                        raise CompensationError(
                            f"could not drop {name} after bookmarking failed",
                            original_error=e,
                            cause=drop_error,
                            account_name=name,
                        ) from drop_error
                    raise BookmarkError(
                        "could not bookmark account", cause=e, account_name=name
                    ) from e
            finally:
                self.provisioner.close(connection)

        except BaseError as e:
            trail.annotate(e)
            raise

        return trail.outcome(f"user {name} created")

    @operation()
    def drop_account(
        self,
        token: str,
        name: str,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> FlowOutcome:
        """
        Drop ``name`` from the target registered under ``token`` and remove its bookmark.

        A failed drop leaves the bookmark alone. A failed unbookmark after a
        successful drop still succeeds, with a warning on the outcome.
        """
        if not token:
            raise missing_field("token")
        check_identifier(name)

        trail = _FlowTrail(name)
        warnings: List[str] = []
        try:
            self._check_abort(trail, should_abort)
            trail.enter(FlowState.RESOLVING)
            credential_set = self.store.resolve(token)

            self._check_abort(trail, should_abort)
            trail.enter(FlowState.CONNECTING)
            connection = self.provisioner.open(credential_set)

            try:
                self._check_abort(trail, should_abort)
                trail.enter(FlowState.PROVISIONING)
                self.provisioner.drop_account(connection, name)
            finally:
                self.provisioner.close(connection)

            trail.enter(FlowState.BOOKMARKING)
            try:
                self.store.unbookmark(token, name)
            except Exception as e:
                self.logger.warning(
                    "Account dropped but its bookmark remains",
                    extra={"account_name": name, "error_type": type(e).__name__},
                )
                warnings.append(f"{name} removed, but could not remove its bookmark")

        except BaseError as e:
            trail.annotate(e)
            raise

        return trail.outcome(f"user {name} removed", warnings)
