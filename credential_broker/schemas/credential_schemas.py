"""
Pydantic schemas for credential-sets and the intents that manage them.

Intent schemas accept both the broker's field names and the legacy wire keys
(``dbaddr``, ``dbname``, ``username``, ``password``).
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..constants import FlowState, OperationStatus, TargetType


class BaseBrokerSchema(BaseModel):
    """Base schema for all broker payloads."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore",
    )


class CredentialSet(BaseBrokerSchema):
    """A resolved credential-set with its secret decrypted."""

    token: str
    target_type: TargetType = TargetType.ORACLE
    address: str
    schema_name: str
    login: str
    secret: str = Field(repr=False)


# ==================== INTENTS ====================


def _address_field():
    return Field(default="", validation_alias=AliasChoices("address", "dbaddr"))


def _schema_field():
    return Field(default="", validation_alias=AliasChoices("schema_name", "schema", "dbname"))


def _login_field():
    return Field(default="", validation_alias=AliasChoices("login", "username"))


def _secret_field():
    return Field(default="", repr=False, validation_alias=AliasChoices("secret", "password"))


class IntentRequest(BaseBrokerSchema):
    """
    Base for intent payloads.

    Fields default to empty strings so the broker, not pydantic, reports which
    required field is missing.
    """

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    def first_missing(self, *fields: str) -> Optional[str]:
        """Return the first of ``fields`` that is empty, if any."""
        for field_name in fields:
            if not getattr(self, field_name):
                return field_name
        return None


class RegisterRequest(IntentRequest):
    address: str = _address_field()
    schema_name: str = _schema_field()
    login: str = _login_field()
    secret: str = _secret_field()


class UpdateRequest(RegisterRequest):
    token: str = ""


class UnregisterRequest(IntentRequest):
    token: str = ""


class CreateAccountRequest(IntentRequest):
    token: str = ""
    name: str = Field(default="", validation_alias=AliasChoices("name", "username"))
    secret: str = _secret_field()


class DropAccountRequest(IntentRequest):
    token: str = ""
    name: str = Field(default="", validation_alias=AliasChoices("name", "username"))


# ==================== RESULTS ====================


class FlowOutcome(BaseModel):
    """Terminal result of a create/drop account flow."""

    status: OperationStatus
    success: bool
    account_name: str
    message: str
    states: List[FlowState] = Field(default_factory=list, description="States visited in order")
    warnings: List[str] = Field(default_factory=list)
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BrokerResponse(BaseModel):
    """What the transport layer returns verbatim to its caller."""

    status_code: int
    body: Dict[str, Any]
