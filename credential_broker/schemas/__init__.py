from .credential_schemas import (
    BrokerResponse,
    CreateAccountRequest,
    CredentialSet,
    DropAccountRequest,
    FlowOutcome,
    RegisterRequest,
    UnregisterRequest,
    UpdateRequest,
)

__all__ = [
    "BrokerResponse",
    "CreateAccountRequest",
    "CredentialSet",
    "DropAccountRequest",
    "FlowOutcome",
    "RegisterRequest",
    "UnregisterRequest",
    "UpdateRequest",
]
