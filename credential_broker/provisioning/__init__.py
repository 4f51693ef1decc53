"""Account provisioning in target databases."""

from .account_provisioner import AccountProvisioner, TargetConnection
from .saga import Saga, SagaStep
from .statements import OracleStatements, check_identifier, check_secret

__all__ = [
    "AccountProvisioner",
    "OracleStatements",
    "Saga",
    "SagaStep",
    "TargetConnection",
    "check_identifier",
    "check_secret",
]
