"""
NEAR Python client

Construct, sign, submit and confirm NEAR Protocol transactions over
JSON-RPC, with per access key nonce management, retrying broadcast and
receipt graph resolution.
"""

# Errors
from .runtime.errors import (
    RpcErrorKind,
    ErrorClass,
    NearError,
    EncodingError,
    SigningError,
    NonceConflictError,
    RpcError,
    NetworkTransientError,
    NetworkFatalError,
    ReceiptFailure,
    RetryExhaustedError,
    PendingTimeout,
)

# Keys and signing
from .crypto import KeyPair, KeyType, PublicKey, Signature
from .keys import InMemoryKeyStore, KeyStore
from .signers import InMemorySigner, KeyProvider

# Transactions
from .tx import *

# Network
from .providers import JsonRpcProvider, NetworkClient

# Pipeline
from .tx.execute import Submitter, SubmissionState
from .tx.outcome import FinalExecutionOutcome, OutcomeResolver
from .recovery import ExponentialBackoff, RetryPolicy
from .config import ClientConfig, ProviderConfig, RetryConfig, WaitPolicy

# Caller-facing surface
from .connection import Connection
from .account import Account

__version__ = "0.3.0"
__all__ = [
    "RpcErrorKind",
    "ErrorClass",
    "NearError",
    "EncodingError",
    "SigningError",
    "NonceConflictError",
    "RpcError",
    "NetworkTransientError",
    "NetworkFatalError",
    "ReceiptFailure",
    "RetryExhaustedError",
    "PendingTimeout",
    "KeyPair",
    "KeyType",
    "PublicKey",
    "Signature",
    "InMemoryKeyStore",
    "KeyStore",
    "InMemorySigner",
    "KeyProvider",
    "JsonRpcProvider",
    "NetworkClient",
    "Submitter",
    "SubmissionState",
    "FinalExecutionOutcome",
    "OutcomeResolver",
    "ExponentialBackoff",
    "RetryPolicy",
    "ClientConfig",
    "ProviderConfig",
    "RetryConfig",
    "WaitPolicy",
    "Connection",
    "Account",
    "__version__",
]
