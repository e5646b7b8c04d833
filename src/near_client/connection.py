"""
Connection: the network id, network client and key provider an account uses.
"""

from __future__ import annotations
from typing import Any, Dict, Mapping, Optional

from .config import ClientConfig, ProviderConfig, RetryConfig, WaitPolicy
from .providers.json_rpc import JsonRpcProvider
from .providers.provider import NetworkClient
from .signers.signer import InMemorySigner, KeyProvider


def _get_provider(config: Any) -> NetworkClient:
    if not isinstance(config, Mapping):
        return config
    provider_type = config.get("type")
    if provider_type == "JsonRpcProvider":
        args: Dict[str, Any] = dict(config.get("args") or {})
        url = args.pop("url", None)
        if url is not None:
            return JsonRpcProvider(ProviderConfig.from_url(url, **args))
        return JsonRpcProvider(ProviderConfig(**args))
    raise ValueError(f"Unknown provider type {provider_type}")


def _get_signer(config: Any) -> KeyProvider:
    if not isinstance(config, Mapping):
        return config
    signer_type = config.get("type")
    if signer_type == "InMemorySigner":
        return InMemorySigner(config["keyStore"])
    raise ValueError(f"Unknown signer type {signer_type}")


class Connection:
    """
    Connects accounts to a network through a provider and a signer.

    Attributes:
        network_id: Network the keys belong to, e.g. ``"testnet"``
        provider: Network client used for every RPC call
        signer: Key provider that signs transaction hashes
        retry: Broadcast retry parameters
        wait: Confirmation wait policy
    """

    def __init__(self, network_id: str, provider: NetworkClient, signer: KeyProvider,
                 retry: Optional[RetryConfig] = None, wait: Optional[WaitPolicy] = None):
        self.network_id = network_id
        self.provider = provider
        self.signer = signer
        self.retry = retry or RetryConfig()
        self.wait = wait or WaitPolicy()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> Connection:
        """
        Build a connection from a mapping.

        ``provider`` and ``signer`` are either ready objects or typed specs::

            {
                "network_id": "testnet",
                "provider": {"type": "JsonRpcProvider", "args": {"url": "https://rpc.testnet.near.org"}},
                "signer": {"type": "InMemorySigner", "keyStore": key_store},
            }

        Raises:
            ValueError: For an unknown provider or signer type
        """
        retry = config.get("retry") or RetryConfig()
        wait = config.get("wait") or WaitPolicy()
        return cls(
            network_id=config.get("network_id") or config["networkId"],
            provider=_get_provider(config["provider"]),
            signer=_get_signer(config["signer"]),
            retry=retry if isinstance(retry, RetryConfig) else RetryConfig(**retry),
            wait=wait if isinstance(wait, WaitPolicy) else WaitPolicy(**wait),
        )

    @classmethod
    def from_client_config(cls, config: ClientConfig, signer: KeyProvider) -> Connection:
        """Build a connection with a :class:`JsonRpcProvider` for ``config.provider``."""
        return cls(config.network_id, JsonRpcProvider(config.provider), signer, config.retry, config.wait)

    async def close(self) -> None:
        await self.provider.close()

    def __repr__(self) -> str:
        return f"Connection(network_id={self.network_id!r}, provider={self.provider!r})"
