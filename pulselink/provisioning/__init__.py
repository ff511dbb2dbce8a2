from .coordinator import ProvisioningCoordinator
from .issuer import AccountIssuer, HttpAccountIssuer, InMemoryAccountIssuer
from .models import (
    DeletionCheck,
    DeletionReport,
    IssuedAccount,
    ProvisionedSenior,
    ProvisioningStage,
)

__all__ = [
    "ProvisioningCoordinator",
    "AccountIssuer",
    "HttpAccountIssuer",
    "InMemoryAccountIssuer",
    "DeletionCheck",
    "DeletionReport",
    "IssuedAccount",
    "ProvisionedSenior",
    "ProvisioningStage",
]
