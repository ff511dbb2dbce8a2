"""
Error types shared by the stores, the provisioning saga and the health gateway.

Validation and permission errors are raised before any side effect and are
never retried. Provisioning errors are raised after at least one saga step has
committed and carry enough context (stage, profile id, account id) for a
caller to decide between retrying the whole call and a manual cleanup.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .provisioning.models import ProvisioningStage


class PulseLinkError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(PulseLinkError, ValueError):
    code = "validation_error"


class PermissionDeniedError(PulseLinkError, PermissionError):
    code = "permission_denied"


class NotFoundError(PulseLinkError, LookupError):
    code = "not_found"


class ProvisioningError(PulseLinkError):
    """A saga step failed after earlier steps were committed."""

    code = "provisioning_failed"

    def __init__(
        self,
        message: str = "",
        *,
        stage: Optional["ProvisioningStage"] = None,
        profile_id: Optional[str] = None,
        account_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.profile_id = profile_id
        self.account_id = account_id

    @property
    def orphaned_profile(self) -> bool:
        return bool(self.profile_id)


class ExternalServiceError(ProvisioningError):
    """The account issuer failed or answered without a truthy ``success``."""

    code = "external_service_error"
