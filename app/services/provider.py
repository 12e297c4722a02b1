"""
Messaging provider capability.

The messaging protocol itself lives in a separate bridge process; RelayGate
talks to it over HTTP. Readiness is reported as an explicit ProviderStatus
value instead of a shared flag.
"""
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from app.errors import ProviderError

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProviderStatus:
    """Provider readiness snapshot."""
    ready: bool
    detail: str | None = None


READY = ProviderStatus(ready=True)


class MessagingProvider(Protocol):
    async def send(self, target: str, body: str, options: dict[str, Any]) -> str:
        """Send a message and return the provider's message handle."""
        ...

    async def status(self) -> ProviderStatus:
        ...


class HttpMessagingProvider:
    """MessagingProvider backed by the messaging bridge's REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"x-api-key": self.api_key} if self.api_key else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport
        )

    async def send(self, target: str, body: str, options: dict[str, Any]) -> str:
        payload = {**options, "number": target, "message": body}
        try:
            async with self._client() as client:
                response = await client.post("/send-message", json=payload)
        except httpx.TimeoutException as e:
            raise ProviderError(f"Send timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{type(e).__name__}: {e}") from e

        if response.status_code == 503:
            raise ProviderError("Provider not ready")
        if response.status_code == 429:
            raise ProviderError("Provider rate limited")
        if not 200 <= response.status_code < 300:
            raise ProviderError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        return str(data.get("messageId") or data.get("id") or "")

    async def status(self) -> ProviderStatus:
        try:
            async with self._client() as client:
                response = await client.get("/health")
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("provider_status_unavailable", error=str(e))
            return ProviderStatus(ready=False, detail=str(e))

        if response.status_code != 200:
            return ProviderStatus(ready=False, detail=f"HTTP {response.status_code}")
        if not data.get("ready"):
            return ProviderStatus(ready=False, detail="client not ready")
        return READY
