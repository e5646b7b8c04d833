"""
Broadcasting signed transactions and waiting for their outcome.

The submitter never re-signs: a retry re-sends the exact same bytes, so the
network sees at most one transaction no matter how many broadcasts it took.
"""

from __future__ import annotations
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from ..config import WaitPolicy
from ..recovery.retry import RetryPolicy, create_network_retry_policy
from ..runtime.errors import (
    ErrorClass,
    ErrorContext,
    ErrorHandler,
    NetworkFatalError,
    NetworkTransientError,
    PendingTimeout,
    RetryExhaustedError,
    RpcError,
    RpcErrorKind,
)
from .transaction import SignedTransaction

logger = logging.getLogger(__name__)


class SubmissionState(Enum):
    """Caller-visible stages of one transaction."""
    BUILDING = "building"
    SIGNED = "signed"
    BROADCASTING = "broadcasting"
    RETRYING = "retrying"
    PENDING = "pending"
    FINAL_SUCCESS = "final_success"
    FINAL_FAILURE = "final_failure"
    REJECTED = "rejected"
    RETRY_EXHAUSTED = "retry_exhausted"
    PENDING_TIMEOUT = "pending_timeout"


StateListener = Callable[[str, SubmissionState], None]


def is_final(result: Any) -> bool:
    """Whether a ``tx`` result carries a terminal top-level status."""
    if not isinstance(result, dict):
        return False
    status = result.get("status")
    return isinstance(status, dict) and ("SuccessValue" in status or "Failure" in status)


def _untagged_transient(error: BaseException, context: ErrorContext) -> NetworkTransientError:
    kind = RpcErrorKind.TIMEOUT if isinstance(error, asyncio.TimeoutError) else RpcErrorKind.CONNECTION
    return NetworkTransientError(str(error) or type(error).__name__, kind, cause=error, context=context)


class Submitter:
    """
    Broadcasts signed transactions with retry and polls them to completion.

    Concurrent :meth:`submit` calls for the same signed transaction share
    one in-flight task and therefore one outcome.
    """

    def __init__(self, network_client, retry_policy: Optional[RetryPolicy] = None,
                 wait_policy: Optional[WaitPolicy] = None, *,
                 state_listener: Optional[StateListener] = None, sleep=None):
        self.network_client = network_client
        self.retry_policy = retry_policy or create_network_retry_policy()
        self.wait_policy = wait_policy or WaitPolicy()
        self.state_listener = state_listener
        self._sleep = sleep or asyncio.sleep
        self._in_flight: Dict[Tuple[str, str], Dict[str, Any]] = {}

    def _transition(self, tx_hash: str, state: SubmissionState) -> None:
        logger.debug(f"Transaction {tx_hash}: {state.value}")
        if self.state_listener is not None:
            self.state_listener(tx_hash, state)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def submit(self, signed: SignedTransaction) -> Dict[str, Any]:
        """
        Broadcast a signed transaction and wait for its final outcome.

        Returns:
            The raw ``tx`` result with a terminal status

        Raises:
            NetworkFatalError: The network rejected the transaction
            RetryExhaustedError: Every broadcast attempt failed transiently
            PendingTimeout: No terminal status before the wait deadline
        """
        key = (signed.hash_b58, signed.signature.to_string())
        entry = self._in_flight.get(key)
        if entry is None:
            task = asyncio.ensure_future(self._submit(signed))
            entry = {"task": task, "waiters": 0}
            self._in_flight[key] = entry

            def _done(t: asyncio.Future, entry=entry) -> None:
                if self._in_flight.get(key) is entry:
                    del self._in_flight[key]
                if not t.cancelled():
                    t.exception()

            task.add_done_callback(_done)
        else:
            logger.debug(f"Joining in-flight submission of {key[0]}")

        task = entry["task"]
        entry["waiters"] += 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Only the last waiter tears the shared task down.
            if entry["waiters"] == 1 and not task.done():
                task.cancel()
            raise
        finally:
            entry["waiters"] -= 1

    async def _submit(self, signed: SignedTransaction) -> Dict[str, Any]:
        tx_hash = signed.hash_b58
        sender_id = signed.sender_id
        context = ErrorContext(tx_hash)
        signed_bytes = signed.encode()
        transient_failures = 0
        self._transition(tx_hash, SubmissionState.SIGNED)

        async def attempt() -> str:
            nonlocal transient_failures
            if transient_failures:
                self._transition(tx_hash, SubmissionState.RETRYING)
            self._transition(tx_hash, SubmissionState.BROADCASTING)
            try:
                return await self.network_client.broadcast_transaction(signed_bytes)
            except RpcError as e:
                if e.error_class is ErrorClass.TRANSIENT:
                    transient_failures += 1
                    raise NetworkTransientError.promote(e, context)
                raise
            except (asyncio.TimeoutError, OSError) as e:
                transient_failures += 1
                raise _untagged_transient(e, context)

        try:
            await self.retry_policy.execute(attempt, context=context)
        except RetryExhaustedError:
            self._transition(tx_hash, SubmissionState.RETRY_EXHAUSTED)
            raise
        except RpcError as e:
            if ErrorHandler.should_wait_for_tx(e):
                logger.info(f"Transaction {tx_hash} already known to the network, polling for its outcome")
            elif ErrorHandler.is_invalid_nonce(e) and transient_failures:
                landed = await self._landed(tx_hash, sender_id)
                if landed is None:
                    self._transition(tx_hash, SubmissionState.REJECTED)
                    raise NetworkFatalError.promote(e, context)
                logger.info(f"Transaction {tx_hash} landed during an earlier attempt")
                if is_final(landed):
                    self._final(tx_hash, landed)
                    return landed
            else:
                self._transition(tx_hash, SubmissionState.REJECTED)
                raise NetworkFatalError.promote(e, context)

        return await self.wait_for_outcome(tx_hash, sender_id)

    async def _landed(self, tx_hash: str, sender_id: str) -> Optional[Dict[str, Any]]:
        """Probe once for our own transaction after an ambiguous nonce rejection."""
        try:
            return await self.network_client.get_transaction_status(
                tx_hash, sender_id, self.wait_policy.wait_until)
        except RpcError as e:
            logger.debug(f"Probe for {tx_hash} failed: {e}")
            return None

    def _final(self, tx_hash: str, result: Dict[str, Any]) -> None:
        failed = "Failure" in result["status"]
        self._transition(tx_hash, SubmissionState.FINAL_FAILURE if failed else SubmissionState.FINAL_SUCCESS)

    async def wait_for_outcome(self, tx_hash: str, sender_id: str,
                               timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Poll until the transaction has a terminal status.

        Can be called again after :class:`PendingTimeout` to keep waiting.

        Raises:
            PendingTimeout: If the deadline passes first
            NetworkFatalError: If the status query is rejected
        """
        timeout = self.wait_policy.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        context = ErrorContext(tx_hash)
        self._transition(tx_hash, SubmissionState.PENDING)

        while True:
            try:
                # A single poll may not outlive the deadline.
                result = await asyncio.wait_for(
                    self.network_client.get_transaction_status(tx_hash, sender_id, self.wait_policy.wait_until),
                    timeout=max(deadline - loop.time(), 0),
                )
            except RpcError as e:
                if not ErrorHandler.is_retryable(e):
                    raise NetworkFatalError.promote(e, context)
                logger.debug(f"Status poll for {tx_hash} failed transiently: {e}")
                result = None
            except (asyncio.TimeoutError, OSError) as e:
                logger.debug(f"Status poll for {tx_hash} failed transiently: {e}")
                result = None

            if is_final(result):
                self._final(tx_hash, result)
                return result

            remaining = deadline - loop.time()
            if remaining <= 0:
                self._transition(tx_hash, SubmissionState.PENDING_TIMEOUT)
                raise PendingTimeout(tx_hash, sender_id, timeout)
            await self._sleep(min(self.wait_policy.poll_interval, remaining))
