"""
Account: the caller-facing entry point for sending transactions.

``send_transaction`` runs the whole pipeline for one transaction: reserve a
nonce, fetch a recent block hash, sign, submit, and resolve the outcome
graph into a verdict.
"""

from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .connection import Connection
from .crypto.ed25519 import PublicKey
from .providers.types import AccessKeyInfo
from .runtime.errors import (
    ErrorClass,
    ErrorHandler,
    NetworkFatalError,
    NetworkTransientError,
    NonceConflictError,
    RpcError,
    SigningError,
)
from .tx.actions import (
    AccessKey,
    AddKey,
    CreateAccount,
    DelegateAction,
    DeleteAccount,
    DeleteKey,
    DeployContract,
    FullAccessPermission,
    FunctionCall,
    FunctionCallPermission,
    SignedDelegateAction,
    Stake,
    Transfer,
    full_access_key,
    function_call_access_key,
)
from .tx.codec import validate_account_id
from .tx.execute import Submitter
from .tx.nonce import NonceAllocator
from .tx.outcome import FinalExecutionOutcome, OutcomeResolver
from .tx.signing import TransactionSigner
from .tx.transaction import Transaction
from .utils.logging import log_outcome_logs_and_failures

logger = logging.getLogger(__name__)

# 30 Tgas
DEFAULT_FUNCTION_CALL_GAS = 30_000_000_000_000

# Method a multisig contract exposes to its own function-call keys.
MULTISIG_HAS_METHOD = "add_request_and_confirm"


class Account:
    """
    An account on the network, acting through a :class:`Connection`.

    Example:
        ```python
        account = Account(connection, "alice.testnet")
        outcome = await account.transfer("bob.testnet", 10**24)
        outcome.raise_for_status()
        ```
    """

    def __init__(self, connection: Connection, account_id: str, *,
                 nonce_allocator: Optional[NonceAllocator] = None,
                 submitter: Optional[Submitter] = None,
                 resolver: Optional[OutcomeResolver] = None):
        validate_account_id(account_id)
        self.connection = connection
        self.account_id = account_id
        self.nonces = nonce_allocator or NonceAllocator(connection.provider)
        self.submitter = submitter or Submitter(
            connection.provider,
            connection.retry.to_policy(),
            connection.wait,
        )
        self.resolver = resolver or OutcomeResolver()
        self.signer = TransactionSigner(connection.signer, connection.network_id)

    @property
    def provider(self):
        return self.connection.provider

    async def get_public_key(self) -> PublicKey:
        """Public key the connection's signer holds for this account."""
        public_key = await self.connection.signer.get_public_key(self.account_id, self.connection.network_id)
        if public_key is None:
            raise SigningError(
                f"No key for {self.account_id} in {self.connection.network_id}",
                {"accountId": self.account_id, "networkId": self.connection.network_id},
            )
        return public_key

    @staticmethod
    async def _network_call(awaitable):
        """Await a network client call, surfacing failures as transient or fatal."""
        try:
            return await awaitable
        except (NetworkTransientError, NetworkFatalError):
            raise
        except RpcError as e:
            if e.error_class is ErrorClass.TRANSIENT:
                raise NetworkTransientError.promote(e)
            raise NetworkFatalError.promote(e)

    # =========================================================================
    # Transactions
    # =========================================================================

    async def send_transaction(self, receiver_id: str, actions: Sequence[Any], *,
                               nonce: Optional[int] = None,
                               block_hash: Optional[Union[bytes, str]] = None) -> FinalExecutionOutcome:
        """
        Sign and send a transaction, then wait for its final outcome.

        Args:
            receiver_id: Account the actions apply to
            actions: Actions, executed in order
            nonce: Explicit nonce; bypasses the nonce cache
            block_hash: Explicit recent block hash; skips the block lookup

        Returns:
            The final outcome; check ``verdict`` or call ``raise_for_status()``

        Raises:
            EncodingError: A field violates a protocol limit
            SigningError: The signer cannot sign for this account
            NonceConflictError: The nonce was rejected again after a refresh,
                or an explicit nonce was rejected
            NetworkFatalError: The network rejected the transaction
            NetworkTransientError: A lookup before broadcast failed transiently
            RetryExhaustedError: Every broadcast attempt failed transiently
            PendingTimeout: The transaction did not finish before the deadline
        """
        public_key = await self.get_public_key()
        explicit_nonce = nonce is not None

        for attempt in (1, 2):
            tx_nonce = nonce if explicit_nonce else await self._network_call(
                self.nonces.reserve(self.account_id, public_key))
            recent_block_hash = block_hash if block_hash is not None else await self._network_call(
                self.provider.get_latest_block_hash("final"))

            transaction = Transaction(
                signer_id=self.account_id,
                public_key=public_key,
                nonce=tx_nonce,
                receiver_id=receiver_id,
                block_hash=recent_block_hash,
                actions=tuple(actions),
            )
            signed = await self.signer.sign(transaction)

            try:
                raw = await self.submitter.submit(signed)
            except NetworkFatalError as e:
                if not ErrorHandler.is_invalid_nonce(e):
                    raise
                await self.nonces.invalidate(self.account_id, public_key)
                if explicit_nonce or attempt == 2:
                    raise NonceConflictError(
                        f"Nonce {tx_nonce} rejected for {self.account_id}",
                        self.account_id,
                        str(public_key),
                        {"nonce": tx_nonce, "explicit": explicit_nonce},
                        e,
                        e.context,
                    )
                logger.warning(f"Nonce {tx_nonce} rejected for {self.account_id}, retrying with a fresh nonce")
                continue

            outcome, _ = self.resolver.resolve(raw)
            log_outcome_logs_and_failures(receiver_id, outcome)
            return outcome

    async def transfer(self, receiver_id: str, amount: int) -> FinalExecutionOutcome:
        return await self.send_transaction(receiver_id, [Transfer(deposit=amount)])

    async def function_call(self, contract_id: str, method_name: str,
                            args: Union[Dict[str, Any], bytes, None] = None,
                            gas: int = DEFAULT_FUNCTION_CALL_GAS, deposit: int = 0) -> FinalExecutionOutcome:
        """Call a contract method; dict ``args`` are sent as JSON."""
        if args is None:
            args = {}
        raw_args = args if isinstance(args, bytes) else json.dumps(args).encode("utf-8")
        action = FunctionCall(method_name=method_name, args=raw_args, gas=gas, deposit=deposit)
        return await self.send_transaction(contract_id, [action])

    async def create_account(self, new_account_id: str, public_key: Union[PublicKey, str],
                             amount: int) -> FinalExecutionOutcome:
        actions = [
            CreateAccount(),
            Transfer(deposit=amount),
            AddKey(public_key=public_key, access_key=full_access_key()),
        ]
        return await self.send_transaction(new_account_id, actions)

    async def delete_account(self, beneficiary_id: str) -> FinalExecutionOutcome:
        return await self.send_transaction(self.account_id, [DeleteAccount(beneficiary_id=beneficiary_id)])

    async def deploy_contract(self, code: bytes) -> FinalExecutionOutcome:
        return await self.send_transaction(self.account_id, [DeployContract(code=code)])

    async def add_key(self, public_key: Union[PublicKey, str], contract_id: Optional[str] = None,
                      method_names: Sequence[str] = (), allowance: Optional[int] = None) -> FinalExecutionOutcome:
        """Add a full access key, or a function-call key when ``contract_id`` is given."""
        if contract_id is None:
            access_key = full_access_key()
        else:
            access_key = function_call_access_key(contract_id, tuple(method_names), allowance)
        return await self.send_transaction(self.account_id, [AddKey(public_key=public_key, access_key=access_key)])

    async def delete_key(self, public_key: Union[PublicKey, str]) -> FinalExecutionOutcome:
        return await self.send_transaction(self.account_id, [DeleteKey(public_key=public_key)])

    async def stake(self, public_key: Union[PublicKey, str], amount: int) -> FinalExecutionOutcome:
        return await self.send_transaction(self.account_id, [Stake(stake=amount, public_key=public_key)])

    async def sign_delegate(self, receiver_id: str, actions: Sequence[Any],
                            max_block_height: int) -> SignedDelegateAction:
        """
        Sign actions for a relayer to submit on this account's behalf.

        The delegate action consumes a nonce from the same access key as
        ordinary transactions.
        """
        public_key = await self.get_public_key()
        nonce = await self._network_call(self.nonces.reserve(self.account_id, public_key))
        delegate_action = DelegateAction(
            sender_id=self.account_id,
            receiver_id=receiver_id,
            actions=tuple(actions),
            nonce=nonce,
            max_block_height=max_block_height,
            public_key=public_key,
        )
        return await self.signer.sign_delegate_action(delegate_action)

    # =========================================================================
    # Access keys
    # =========================================================================

    async def get_access_keys(self) -> List[AccessKeyInfo]:
        return await self._network_call(self.provider.query_access_key_list(self.account_id))

    def access_key_matches_transaction(self, access_key: Union[AccessKey, AccessKeyInfo],
                                       receiver_id: str, actions: Sequence[Any]) -> bool:
        """
        Whether a key is allowed to sign these actions for ``receiver_id``.

        Full access keys match everything. A function-call key matches only
        its own receiver, only zero-deposit function calls, and only its
        allow-listed methods (an empty list allows any method). A key for
        this account's multisig ``add_request_and_confirm`` method matches
        any transaction.
        """
        if isinstance(access_key, AccessKeyInfo):
            access_key = access_key.access_key
        permission = access_key.permission
        if isinstance(permission, FullAccessPermission):
            return True
        if not isinstance(permission, FunctionCallPermission):
            return False

        allowed_methods = permission.method_names
        if permission.receiver_id == self.account_id and MULTISIG_HAS_METHOD in allowed_methods:
            return True
        if permission.receiver_id != receiver_id or not actions:
            return False
        for action in actions:
            if not isinstance(action, FunctionCall) or action.deposit != 0:
                return False
            if allowed_methods and action.method_name not in allowed_methods:
                return False
        return True

    async def access_key_for_transaction(self, receiver_id: str, actions: Sequence[Any],
                                         local_key: Optional[PublicKey] = None) -> Optional[AccessKeyInfo]:
        """
        The access key the local signer can use for this transaction, if any.

        Args:
            receiver_id: Receiver of the intended transaction
            actions: Intended actions
            local_key: Key to check; defaults to the signer's key for this account
        """
        if local_key is None:
            local_key = await self.connection.signer.get_public_key(self.account_id, self.connection.network_id)
            if local_key is None:
                return None
        for info in await self.get_access_keys():
            if info.public_key == local_key and self.access_key_matches_transaction(info, receiver_id, actions):
                return info
        return None

    def __repr__(self) -> str:
        return f"Account({self.account_id!r})"
