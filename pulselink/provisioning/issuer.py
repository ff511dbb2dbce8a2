"""
External account issuer.

The issuer owns login credentials for virtual senior accounts. The
production implementation calls two callable-function endpoints over HTTP;
the in-memory one backs tests and local runs.
"""

from __future__ import annotations

import logging
import secrets
import string
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ..errors import ExternalServiceError
from ..identity.codec import IdentityCodec
from .models import IssuedAccount, ProvisioningStage

logger = logging.getLogger(__name__)

PASSWORD_LENGTH = 8
_PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


class AccountIssuer(ABC):
    @abstractmethod
    async def create(self, senior_id: str, name: str, password: str) -> IssuedAccount:
        """Create the login account for ``senior_id``.

        Args:
            senior_id: Identity of the senior profile
            name: Display name of the senior
            password: Requested password; empty lets the issuer generate one

        Raises:
            ExternalServiceError: the issuer failed or reported no success
        """

    @abstractmethod
    async def delete(self, senior_id: str) -> bool:
        """Revoke the account; True when the issuer reported success."""


def _unwrap(body: Any) -> Dict[str, Any]:
    # Callable functions wrap their return value in {"result": ...}
    if isinstance(body, dict) and isinstance(body.get("result"), dict):
        return body["result"]
    if isinstance(body, dict):
        return body
    return {}


class HttpAccountIssuer(AccountIssuer):
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _call(self, function: str, data: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{function}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                resp = await client.post(url, json={"data": data}, headers=self._headers())
                resp.raise_for_status()
                return _unwrap(resp.json())
        except httpx.HTTPStatusError as e:
            logger.error("Account issuer %s returned %s", function, e.response.status_code)
            raise ExternalServiceError(
                f"{function} failed with HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Account issuer %s unreachable: %s", function, e)
            raise ExternalServiceError(f"{function} failed: {e}") from e

    async def create(self, senior_id: str, name: str, password: str) -> IssuedAccount:
        result = await self._call(
            "createSeniorAccount",
            {"seniorId": senior_id, "name": name, "password": password or ""},
        )
        if not result.get("success"):
            raise ExternalServiceError("Account issuer did not report success")
        account = IssuedAccount(
            account_id=str(result.get("accountId") or result.get("uid") or ""),
            email=str(result.get("email") or ""),
            password=str(result.get("password") or ""),
        )
        logger.info("Issued account %s for %s", account.account_id, senior_id)
        return account

    async def delete(self, senior_id: str) -> bool:
        result = await self._call("deleteSeniorAccount", {"seniorId": senior_id})
        return bool(result.get("success"))


class InMemoryAccountIssuer(AccountIssuer):
    def __init__(self, codec: Optional[IdentityCodec] = None):
        self.codec = codec or IdentityCodec()
        self.accounts: Dict[str, IssuedAccount] = {}

    async def create(self, senior_id: str, name: str, password: str) -> IssuedAccount:
        if senior_id in self.accounts:
            raise ExternalServiceError(
                f"Account for {senior_id} already exists",
                stage=ProvisioningStage.PROFILE_CREATED,
                profile_id=senior_id,
            )
        account = IssuedAccount(
            account_id=uuid.uuid4().hex,
            email=self.codec.derive_address(senior_id),
            password=password or generate_password(),
        )
        self.accounts[senior_id] = account
        return account

    async def delete(self, senior_id: str) -> bool:
        # Missing accounts count as revoked
        self.accounts.pop(senior_id, None)
        return True
