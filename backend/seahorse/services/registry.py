"""
Provider Registry Clients

Read-only access to the on-chain registry of data providers. The agent only
ever lists providers and reads their data items; administrative mutations
live elsewhere.
"""

import base64
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from seahorse.config import Settings, settings as default_settings
from seahorse.exceptions import ProviderFetchError, RegistryUnavailableError

logger = logging.getLogger(__name__)


class ProviderRegistry(ABC):
    """
    Abstract read-only provider registry.

    Implementations return raw JSON-like payloads; validation happens at the
    ingestion boundary.
    """

    @abstractmethod
    async def get_all_providers(self) -> List[Dict[str, Any]]:
        """Return every registered provider."""
        pass

    @abstractmethod
    async def get_provider_data(self, provider_id: str) -> List[Dict[str, Any]]:
        """Return the data items published by one provider."""
        pass


class NearProviderRegistry(ProviderRegistry):
    """
    Registry backed by a NEAR smart contract.

    Issues `call_function` view queries over JSON-RPC; view calls are free
    and need no signing.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_id: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.contract_id = contract_id
        self.timeout = timeout
        self._transport = transport

    async def view(self, method: str, args: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a view method on the registry contract.

        Args:
            method: Contract method name.
            args: JSON-serialisable method arguments.

        Returns:
            The decoded JSON return value.
        """
        args_base64 = base64.b64encode(json.dumps(args or {}).encode("utf-8")).decode("ascii")
        payload = {
            "jsonrpc": "2.0",
            "id": "seahorse",
            "method": "query",
            "params": {
                "request_type": "call_function",
                "finality": "final",
                "account_id": self.contract_id,
                "method_name": method,
                "args_base64": args_base64,
            },
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()

        if body.get("error"):
            raise RuntimeError(f"RPC error calling {method}: {body['error']}")

        result = body.get("result") or {}
        if result.get("error"):
            raise RuntimeError(f"Contract error calling {method}: {result['error']}")

        raw = bytes(result.get("result", [])).decode("utf-8")
        logger.debug(f"View {method} returned {len(raw)} bytes")
        return json.loads(raw) if raw else None

    async def get_all_providers(self) -> List[Dict[str, Any]]:
        try:
            return await self.view("get_all_providers")
        except (httpx.HTTPError, RuntimeError, ValueError) as e:
            raise RegistryUnavailableError(f"Provider registry unreachable: {e}") from e

    async def get_provider_data(self, provider_id: str) -> List[Dict[str, Any]]:
        try:
            return await self.view("get_provider_data", {"providerId": provider_id})
        except (httpx.HTTPError, RuntimeError, ValueError) as e:
            raise ProviderFetchError(f"Failed to read data for {provider_id}: {e}", provider_id) from e


class InMemoryProviderRegistry(ProviderRegistry):
    """
    Registry held in process memory.

    Used for local development and tests.
    """

    def __init__(
        self,
        providers: Optional[List[Dict[str, Any]]] = None,
        data: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    ) -> None:
        self._providers = list(providers or [])
        self._data = dict(data or {})

    async def get_all_providers(self) -> List[Dict[str, Any]]:
        return list(self._providers)

    async def get_provider_data(self, provider_id: str) -> List[Dict[str, Any]]:
        return list(self._data.get(provider_id, []))


def create_provider_registry(config: Optional[Settings] = None) -> ProviderRegistry:
    """
    Factory function to create a provider registry.

    Raises:
        ValueError: If the configured backend is not supported.
    """
    config = config or default_settings

    if config.registry_backend == "near":
        return NearProviderRegistry(
            rpc_url=config.near_rpc_url,
            contract_id=config.registry_contract_id,
            timeout=config.provider_fetch_timeout,
        )
    elif config.registry_backend == "memory":
        return InMemoryProviderRegistry()
    else:
        raise ValueError(f"Unsupported registry backend: {config.registry_backend}")
