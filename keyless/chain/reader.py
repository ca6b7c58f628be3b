"""Account resource reads from a fullnode REST API."""

import logging
from typing import Any, Protocol, Self

import httpx

from keyless.core.settings import REQUEST_TIMEOUT_SECONDS_DEFAULT, KeylessSettings

_logger = logging.getLogger(__name__)


class ResourceReader(Protocol):
    """Reads the ``data`` of a Move resource stored under an account."""

    async def get_account_resource(
        self, address: str, resource_type: str
    ) -> dict[str, Any]: ...


class FullnodeResourceReader:
    """``ResourceReader`` backed by ``GET /accounts/{addr}/resource/{type}``."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS_DEFAULT,
        ledger_version: int | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ledger_version = ledger_version

    @classmethod
    def from_settings(
        cls, settings: KeylessSettings, client: httpx.AsyncClient | None = None
    ) -> Self:
        return cls(
            settings.get_fullnode_url(),
            client=client,
            timeout=settings.request_timeout_seconds,
        )

    async def get_account_resource(
        self, address: str, resource_type: str
    ) -> dict[str, Any]:
        url = f"{self._base_url}/accounts/{address}/resource/{resource_type}"
        params = {}
        if self._ledger_version is not None:
            params["ledger_version"] = str(self._ledger_version)
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            e.add_note(f"while reading {resource_type} at {address}")
            _logger.warning("Resource read failed for %s at %s: %s", resource_type, address, e)
            raise
        return response.json()["data"]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
