"""
JSON-RPC provider over aiohttp.

Holds an ordered list of endpoints and talks to the first one until a
transport-level failure, then rotates to the next. Every failure is raised
as an :class:`RpcError` tagged with its :class:`RpcErrorKind`.
"""

from __future__ import annotations
import asyncio
import base64
import itertools
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp
import base58

from ..config import ProviderConfig
from ..crypto.ed25519 import PublicKey
from ..runtime.errors import RpcError, RpcErrorKind, error_from_response
from ..tx.codec import decode_signed_transaction
from .provider import NetworkClient
from .types import AccessKeyInfo, AccessKeyView

logger = logging.getLogger(__name__)

# Kinds that say something about the endpoint rather than the request.
_ROTATE_ON = {
    RpcErrorKind.TIMEOUT,
    RpcErrorKind.CONNECTION,
    RpcErrorKind.SERVER_ERROR,
    RpcErrorKind.RATE_LIMITED,
    RpcErrorKind.NOT_SYNCED,
}

# Earliest stage at which send_tx has validated the transaction.
BROADCAST_WAIT_UNTIL = "INCLUDED"


class JsonRpcProvider(NetworkClient):
    """
    NEAR JSON-RPC client.

    Example:
        ```python
        async with JsonRpcProvider(ProviderConfig.from_url("testnet")) as provider:
            block_hash = await provider.get_latest_block_hash()
        ```
    """

    def __init__(self, config: Optional[ProviderConfig] = None, *, url: Optional[str] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize the provider.

        Args:
            config: Provider configuration
            url: Single endpoint, used when no config is given
            session: Externally owned session to reuse
        """
        if config is None:
            if url is None:
                raise ValueError("Either config or url is required")
            config = ProviderConfig.from_url(url)
        self.config = config
        self._endpoint_index = 0
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)

    @property
    def endpoint(self) -> str:
        """Endpoint currently in use."""
        return self.config.endpoints[self._endpoint_index]

    def _rotate_endpoint(self) -> None:
        if len(self.config.endpoints) > 1:
            previous = self.endpoint
            self._endpoint_index = (self._endpoint_index + 1) % len(self.config.endpoints)
            logger.warning(f"Switching RPC endpoint from {previous} to {self.endpoint}")

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            headers = {"Content-Type": "application/json", "User-Agent": self.config.user_agent}
            headers.update(self.config.headers)
            self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if owned by this provider."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    # =========================================================================
    # Low-level RPC
    # =========================================================================

    async def _post(self, payload: Dict[str, Any]) -> tuple:
        """POST one request body; returns ``(http_status, decoded_json)``."""
        session = await self._get_session()
        async with session.post(self.endpoint, json=payload) as response:
            text = await response.text()
            try:
                body = json.loads(text) if text else {}
            except json.JSONDecodeError:
                body = {"error": {"message": text or response.reason or "Empty response"}}
            return response.status, body

    async def send_json_rpc(self, method: str, params: Any) -> Any:
        """
        Make a JSON-RPC 2.0 call.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            ``result`` member of the response

        Raises:
            RpcError: If the call fails at any level
        """
        endpoint = self.endpoint
        request = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            status, body = await self._post(request)
        except asyncio.TimeoutError as e:
            self._rotate_endpoint()
            raise RpcError(f"Request to {endpoint} timed out", RpcErrorKind.TIMEOUT, cause=e)
        except aiohttp.ClientError as e:
            self._rotate_endpoint()
            raise RpcError(f"HTTP request failed: {e}", RpcErrorKind.CONNECTION, cause=e)

        if not isinstance(body, dict):
            raise RpcError(f"Invalid JSON-RPC response: {body!r}", RpcErrorKind.PARSE_ERROR, payload=body)

        error = error_from_response(body, status)
        if error is not None:
            if error.rpc_kind in _ROTATE_ON:
                self._rotate_endpoint()
            logger.debug(f"{method} failed: {error}")
            raise error

        result = body.get("result")
        # Some queries report failures inside a successful response.
        if isinstance(result, dict) and "error" in result and method == "query":
            raise error_from_response({"error": {"message": result["error"], "data": result["error"]}})
        return result

    # =========================================================================
    # NetworkClient
    # =========================================================================

    async def query(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self.send_json_rpc("query", params)

    async def query_access_key(self, account_id: str, public_key: PublicKey) -> AccessKeyView:
        result = await self.query({
            "request_type": "view_access_key",
            "finality": "optimistic",
            "account_id": account_id,
            "public_key": str(public_key),
        })
        return AccessKeyView.from_rpc(result)

    async def query_access_key_list(self, account_id: str) -> List[AccessKeyInfo]:
        result = await self.query({
            "request_type": "view_access_key_list",
            "finality": "optimistic",
            "account_id": account_id,
        })
        return [AccessKeyInfo.from_rpc(entry) for entry in result.get("keys", [])]

    async def block(self, finality: str = "final") -> Dict[str, Any]:
        return await self.send_json_rpc("block", {"finality": finality})

    async def get_latest_block_hash(self, finality: str = "final") -> bytes:
        block = await self.block(finality)
        try:
            return base58.b58decode(block["header"]["hash"])
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"Malformed block response: {e}", RpcErrorKind.PARSE_ERROR, payload=block, cause=e)

    async def broadcast_transaction(self, signed_bytes: bytes) -> str:
        """
        Send a signed transaction with ``send_tx``.

        The node answers once the transaction is validated and included, so
        nonce, signature and balance rejections come back as tagged errors.
        The hash is computed locally when the response does not carry it.
        """
        encoded = base64.b64encode(signed_bytes).decode("ascii")
        result = await self.send_json_rpc("send_tx", {
            "signed_tx_base64": encoded,
            "wait_until": BROADCAST_WAIT_UNTIL,
        })
        transaction = result.get("transaction") if isinstance(result, dict) else None
        if isinstance(transaction, dict) and transaction.get("hash"):
            return transaction["hash"]
        return decode_signed_transaction(signed_bytes).hash_b58

    async def get_transaction_status(self, tx_hash: str, sender_id: str,
                                     wait_until: str = "EXECUTED_OPTIMISTIC") -> Optional[Dict[str, Any]]:
        try:
            return await self.send_json_rpc("tx", {
                "tx_hash": tx_hash,
                "sender_account_id": sender_id,
                "wait_until": wait_until,
            })
        except RpcError as e:
            if e.rpc_kind is RpcErrorKind.UNKNOWN_TRANSACTION:
                return None
            raise

    def __repr__(self) -> str:
        return f"JsonRpcProvider(endpoints={self.config.endpoints!r})"
