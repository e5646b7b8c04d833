"""
Transaction types, encoding and signing.

The submission machinery lives in :mod:`near_client.tx.execute` and
:mod:`near_client.tx.outcome`; they depend on the network client types and
are imported from their modules directly.
"""

from .actions import (
    AccessKey,
    Action,
    AddKey,
    CreateAccount,
    Delegate,
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
from .codec import (
    decode_signed_transaction,
    decode_transaction,
    encode_delegate_action,
    encode_signed_transaction,
    encode_transaction,
    hash_delegate_action,
    hash_transaction,
    is_valid_account_id,
    validate_account_id,
)
from .nonce import NonceAllocator
from .signing import TransactionSigner
from .transaction import SignedTransaction, Transaction

__all__ = [
    "AccessKey",
    "Action",
    "AddKey",
    "CreateAccount",
    "Delegate",
    "DelegateAction",
    "DeleteAccount",
    "DeleteKey",
    "DeployContract",
    "FullAccessPermission",
    "FunctionCall",
    "FunctionCallPermission",
    "SignedDelegateAction",
    "Stake",
    "Transfer",
    "full_access_key",
    "function_call_access_key",
    "decode_signed_transaction",
    "decode_transaction",
    "encode_delegate_action",
    "encode_signed_transaction",
    "encode_transaction",
    "hash_delegate_action",
    "hash_transaction",
    "is_valid_account_id",
    "validate_account_id",
    "NonceAllocator",
    "TransactionSigner",
    "SignedTransaction",
    "Transaction",
]
