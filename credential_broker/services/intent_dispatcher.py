"""
Maps transport intents onto the broker service.

The transport hands over an intent name and its decoded payload and returns
the resulting BrokerResponse to its caller verbatim.
"""

from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from ..constants import Intent
from ..exceptions import BaseError, ConnectError, DecryptError, missing_field, validation_failed
from ..schemas.credential_schemas import (
    BrokerResponse,
    CreateAccountRequest,
    DropAccountRequest,
    IntentRequest,
    RegisterRequest,
    UnregisterRequest,
    UpdateRequest,
)
from ..utils.logger import get_logger
from .broker_service import BrokerService

# Public names reported in "<field> is missing"
_FIELD_LABELS = {"schema_name": "schema"}

INTERNAL_ERROR_MESSAGE = "internal server error"


def _require(request: IntentRequest, *fields: str) -> None:
    missing = request.first_missing(*fields)
    if missing:
        raise missing_field(_FIELD_LABELS.get(missing, missing))


class IntentDispatcher:
    """Validates intent payloads, runs them and builds response envelopes."""

    def __init__(self, service: BrokerService):
        self.service = service
        self.logger = get_logger()
        self._handlers = {
            Intent.REGISTER: self._register,
            Intent.UPDATE: self._update,
            Intent.UNREGISTER: self._unregister,
            Intent.CREATE_ACCOUNT: self._create_account,
            Intent.DROP_ACCOUNT: self._drop_account,
        }

    def dispatch(
        self,
        intent_name: str,
        payload: Optional[Dict[str, Any]],
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> BrokerResponse:
        """
        Run one intent.

        Args:
            intent_name: One of the ``Intent`` values
            payload: Decoded request body
            should_abort: Cancellation probe for account flows

        Returns:
            BrokerResponse with status code and JSON-ready body
        """
        try:
            try:
                intent = Intent(intent_name)
            except ValueError:
                raise validation_failed("intent", intent_name, "unknown intent") from None

            if not isinstance(payload, dict):
                raise validation_failed("payload", type(payload).__name__, "malformed request")

            return self._handlers[intent](payload, should_abort)

        except BaseError as e:
            return self._error_response(e)
        except PydanticValidationError as e:
            error = validation_failed("payload", "", "malformed request", cause=e)
            return self._error_response(error)
        except Exception as e:
            self.logger.exception(
                f"Unhandled error in intent {intent_name}",
                extra={"intent": intent_name, "error_type": type(e).__name__},
            )
            return BrokerResponse(status_code=500, body={"error": {"message": INTERNAL_ERROR_MESSAGE}})

    @staticmethod
    def _error_response(error: BaseError) -> BrokerResponse:
        if isinstance(error, (ConnectError, DecryptError)):
            # Infrastructure details stay in the logs
            body = {
                "error": {
                    "id": error.error_id,
                    "code": error.error_code.value,
                    "message": INTERNAL_ERROR_MESSAGE,
                }
            }
        else:
            body = error.to_dict()
        return BrokerResponse(status_code=error.status_code, body=body)

    # ==================== HANDLERS ====================

    def _register(self, payload, should_abort) -> BrokerResponse:
        request = RegisterRequest.model_validate(payload)
        _require(request, "address", "schema_name", "login", "secret")
        token = self.service.register(
            request.address, request.schema_name, request.login, request.secret
        )
        return BrokerResponse(status_code=201, body={"token": token})

    def _update(self, payload, should_abort) -> BrokerResponse:
        request = UpdateRequest.model_validate(payload)
        _require(request, "token", "address", "schema_name", "login", "secret")
        self.service.update(
            request.token, request.address, request.schema_name, request.login, request.secret
        )
        return BrokerResponse(status_code=200, body={"message": "token updated"})

    def _unregister(self, payload, should_abort) -> BrokerResponse:
        request = UnregisterRequest.model_validate(payload)
        _require(request, "token")
        self.service.unregister(request.token)
        return BrokerResponse(status_code=200, body={"message": "token deleted"})

    def _create_account(self, payload, should_abort) -> BrokerResponse:
        request = CreateAccountRequest.model_validate(payload)
        _require(request, "token", "name", "secret")
        outcome = self.service.create_account(
            request.token, request.name, request.secret, should_abort=should_abort
        )
        return BrokerResponse(status_code=201, body={"message": outcome.message})

    def _drop_account(self, payload, should_abort) -> BrokerResponse:
        request = DropAccountRequest.model_validate(payload)
        _require(request, "token", "name")
        outcome = self.service.drop_account(request.token, request.name, should_abort=should_abort)
        body: Dict[str, Any] = {"message": outcome.message}
        if outcome.warnings:
            body["warnings"] = outcome.warnings
        return BrokerResponse(status_code=200, body=body)
