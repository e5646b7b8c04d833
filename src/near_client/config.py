"""
Client configuration.

Plain dataclasses for the network endpoints, the broadcast retry policy and
the confirmation wait policy. Retry parameters are configuration, never
hard-coded in the pipeline.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

# Well-known endpoints
WELL_KNOWN_ENDPOINTS: Dict[str, str] = {
    "mainnet": "https://rpc.mainnet.near.org",
    "testnet": "https://rpc.testnet.near.org",
    "local": "http://127.0.0.1:3030",
}

# Values accepted by the ``tx`` RPC method's ``wait_until`` parameter.
WAIT_UNTIL_VALUES = (
    "NONE",
    "INCLUDED",
    "EXECUTED_OPTIMISTIC",
    "INCLUDED_FINAL",
    "EXECUTED",
    "FINAL",
)


@dataclass
class ProviderConfig:
    """Configuration for the JSON-RPC provider."""

    endpoints: List[str]
    timeout: float = 30.0
    headers: Dict[str, str] = field(default_factory=dict)
    user_agent: str = "near-client-python/0.3.0"

    def __post_init__(self):
        if isinstance(self.endpoints, str):
            self.endpoints = [self.endpoints]
        if not self.endpoints:
            raise ValueError("At least one endpoint is required")
        self.endpoints = [WELL_KNOWN_ENDPOINTS.get(e.lower(), e) for e in self.endpoints]

    @classmethod
    def from_url(cls, url: Union[str, List[str]], **kwargs) -> ProviderConfig:
        """Build from one endpoint, a list of endpoints, or a well-known network name."""
        return cls(endpoints=[url] if isinstance(url, str) else list(url), **kwargs)


@dataclass
class RetryConfig:
    """
    Broadcast retry parameters.

    Defaults follow the network retry profile: 5 attempts, exponential
    backoff from 1 s doubling up to 30 s, with 10% jitter.
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0
    factor: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def to_policy(self):
        """Build the retry policy these parameters describe."""
        from .recovery.retry import ExponentialBackoff
        return ExponentialBackoff(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            factor=self.factor,
            jitter=self.jitter,
            jitter_factor=self.jitter_factor,
        )


@dataclass
class WaitPolicy:
    """
    How long to wait for a broadcast transaction to reach a terminal status.

    Attributes:
        timeout: Deadline in seconds for the whole polling loop
        poll_interval: Delay between status polls
        wait_until: Execution stage the node should wait for on each poll
    """

    timeout: float = 60.0
    poll_interval: float = 1.0
    wait_until: str = "EXECUTED_OPTIMISTIC"

    def __post_init__(self):
        if self.wait_until not in WAIT_UNTIL_VALUES:
            raise ValueError(f"wait_until must be one of {WAIT_UNTIL_VALUES}, got {self.wait_until!r}")
        if self.timeout < 0 or self.poll_interval < 0:
            raise ValueError("timeout and poll_interval must be non-negative")


@dataclass
class ClientConfig:
    """Everything needed to talk to one network."""

    network_id: str
    provider: ProviderConfig
    retry: RetryConfig = field(default_factory=RetryConfig)
    wait: WaitPolicy = field(default_factory=WaitPolicy)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ClientConfig:
        """
        Build from a plain mapping, e.g. parsed JSON or TOML.

        ``node_url`` may be given instead of ``provider`` for a single endpoint.
        """
        provider = data.get("provider")
        if provider is None:
            node_url = data.get("node_url") or data.get("network_id")
            if node_url is None:
                raise ValueError("Either 'provider' or 'node_url' is required")
            provider_config = ProviderConfig.from_url(node_url)
        elif isinstance(provider, ProviderConfig):
            provider_config = provider
        else:
            provider_config = ProviderConfig(**provider)

        retry = data.get("retry") or {}
        wait = data.get("wait") or {}
        return cls(
            network_id=data["network_id"],
            provider=provider_config,
            retry=retry if isinstance(retry, RetryConfig) else RetryConfig(**retry),
            wait=wait if isinstance(wait, WaitPolicy) else WaitPolicy(**wait),
        )

    @classmethod
    def for_network(cls, network_id: str, endpoint: Optional[str] = None) -> ClientConfig:
        """Defaults for a well-known network."""
        return cls(network_id=network_id, provider=ProviderConfig.from_url(endpoint or network_id))
