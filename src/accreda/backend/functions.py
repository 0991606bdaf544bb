"""Client for the hosted backend functions.

Invokes named functions over HTTP (``POST {base_url}/functions/v1/{name}``)
with the project API key. Functions used by Accreda:

- send-email: templated transactional email
- create-checkout-session: Stripe checkout for a plan upgrade
- cancel-stripe-subscription: cancel a paid plan
- send-support-email: support contact relay
- send-validator: validator invitation email with token link
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from accreda.config.app_config import BackendConfig, load_app_config

logger = structlog.get_logger(__name__)


class FunctionInvocationError(Exception):
    """Error calling a hosted function."""

    def __init__(self, name: str, message: str, status_code: int | None = None):
        self.name = name
        self.status_code = status_code
        super().__init__(f"Function '{name}' failed: {message}")


@dataclass
class FunctionsConfig:
    """Configuration for the functions client."""

    functions_url: str
    api_key: str | None = None
    timeout: float = 15.0

    @classmethod
    def from_backend(cls, backend: BackendConfig) -> FunctionsConfig:
        return cls(
            functions_url=backend.functions_url,
            api_key=backend.get_api_key(),
            timeout=backend.timeout,
        )


class FunctionsClient:
    """Async client for hosted functions.

    Args:
        config: Endpoint configuration. Defaults to the app config.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        config: FunctionsConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or FunctionsConfig.from_backend(load_app_config().backend)
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
            headers["apikey"] = self.config.api_key
        return headers

    async def invoke(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        """Invoke a function and return its JSON body.

        Raises:
            FunctionInvocationError: On transport errors, non-2xx status or a
                body that is not JSON
        """
        url = f"{self.config.functions_url}/{name}"
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.config.timeout
            ) as client:
                response = await client.post(url, json=body, headers=self._headers())
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FunctionInvocationError(
                name, e.response.text or "HTTP error", e.response.status_code
            ) from e
        except httpx.RequestError as e:
            raise FunctionInvocationError(name, str(e)) from e

        logger.debug("functions.invoked", name=name, status=response.status_code)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise FunctionInvocationError(name, "Invalid JSON response", response.status_code) from e

    async def send_email(self, to: str, subject: str, html: str, sender: str) -> dict[str, Any]:
        return await self.invoke(
            "send-email", {"to": to, "subject": subject, "html": html, "from": sender}
        )

    async def create_checkout_session(
        self, user_id: str, email: str, tier: str
    ) -> dict[str, Any]:
        return await self.invoke(
            "create-checkout-session", {"userId": user_id, "email": email, "tier": tier}
        )

    async def cancel_subscription(self, user_id: str, subscription_id: str) -> dict[str, Any]:
        return await self.invoke(
            "cancel-stripe-subscription",
            {"userId": user_id, "subscriptionId": subscription_id},
        )

    async def send_support_email(
        self, name: str, email: str, subject: str, message: str
    ) -> dict[str, Any]:
        return await self.invoke(
            "send-support-email",
            {"name": name, "email": email, "subject": subject, "message": message},
        )

    async def send_validator_invite(
        self,
        validator_id: str,
        email: str,
        token: str,
        eit_name: str,
        skill_name: str,
    ) -> dict[str, Any]:
        return await self.invoke(
            "send-validator",
            {
                "validatorId": validator_id,
                "email": email,
                "token": token,
                "eitName": eit_name,
                "skillName": skill_name,
            },
        )
