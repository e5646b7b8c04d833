"""
NEAR client error model

This module provides the error taxonomy for the transaction pipeline. Every
failure a caller can observe is one of the classes below, each carrying a
machine-readable kind, structured details and the underlying cause.
"""

from __future__ import annotations
import asyncio
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple


class RpcErrorKind(str, Enum):
    """Machine-readable kinds attached to network client failures."""

    # Transport / node health
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    SERVER_ERROR = "serverError"
    RATE_LIMITED = "rateLimited"
    NOT_SYNCED = "notSynced"
    SHARD_CONGESTED = "shardCongested"
    UNKNOWN_TRANSACTION = "unknownTransaction"

    # Duplicate submission
    ALREADY_KNOWN = "alreadyKnown"

    # Transaction rejected by the network
    INVALID_NONCE = "invalidNonce"
    INVALID_SIGNATURE = "invalidSignature"
    NOT_ENOUGH_BALANCE = "notEnoughBalance"
    ACCOUNT_NOT_FOUND = "accountNotFound"
    ACCESS_KEY_NOT_FOUND = "accessKeyNotFound"
    ACTION_ERROR = "actionError"
    EXPIRED = "expired"
    INVALID_TRANSACTION = "invalidTransaction"

    # Request problems
    PARSE_ERROR = "parseError"
    UNKNOWN = "unknown"


class ErrorClass(Enum):
    """How the submitter reacts to a failure."""

    TRANSIENT = "transient"
    ALREADY_EXISTS = "alreadyExists"
    FATAL = "fatal"


ERROR_CLASSES: Dict[RpcErrorKind, ErrorClass] = {
    RpcErrorKind.TIMEOUT: ErrorClass.TRANSIENT,
    RpcErrorKind.CONNECTION: ErrorClass.TRANSIENT,
    RpcErrorKind.SERVER_ERROR: ErrorClass.TRANSIENT,
    RpcErrorKind.RATE_LIMITED: ErrorClass.TRANSIENT,
    RpcErrorKind.NOT_SYNCED: ErrorClass.TRANSIENT,
    RpcErrorKind.SHARD_CONGESTED: ErrorClass.TRANSIENT,
    RpcErrorKind.UNKNOWN_TRANSACTION: ErrorClass.TRANSIENT,
    RpcErrorKind.ALREADY_KNOWN: ErrorClass.ALREADY_EXISTS,
    RpcErrorKind.INVALID_NONCE: ErrorClass.FATAL,
    RpcErrorKind.INVALID_SIGNATURE: ErrorClass.FATAL,
    RpcErrorKind.NOT_ENOUGH_BALANCE: ErrorClass.FATAL,
    RpcErrorKind.ACCOUNT_NOT_FOUND: ErrorClass.FATAL,
    RpcErrorKind.ACCESS_KEY_NOT_FOUND: ErrorClass.FATAL,
    RpcErrorKind.ACTION_ERROR: ErrorClass.FATAL,
    RpcErrorKind.EXPIRED: ErrorClass.FATAL,
    RpcErrorKind.INVALID_TRANSACTION: ErrorClass.FATAL,
    RpcErrorKind.PARSE_ERROR: ErrorClass.FATAL,
    RpcErrorKind.UNKNOWN: ErrorClass.FATAL,
}

_unclassified = set(RpcErrorKind) - set(ERROR_CLASSES)
if _unclassified:
    raise RuntimeError(f"RpcErrorKind values without a class: {sorted(k.name for k in _unclassified)}")


class ErrorContext:
    """Where an error happened, when it is tied to a transaction."""

    def __init__(self, transaction_hash: Optional[str] = None):
        self.transaction_hash = transaction_hash

    def __repr__(self) -> str:
        return f"ErrorContext(transaction_hash={self.transaction_hash!r})"


class NearError(Exception):
    """
    Base class for all client errors.

    Provides structured error information: a kind callers can branch on,
    free-form details, the underlying cause and an optional transaction
    context.
    """

    error_type = "NearError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 cause: Optional[BaseException] = None, context: Optional[ErrorContext] = None):
        """
        Initialize an error.

        Args:
            message: Error message
            details: Additional error details
            cause: Underlying exception that caused this error
            context: Transaction the error relates to, if any
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause
        self.context = context

    @property
    def kind(self) -> str:
        return self.error_type

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"[{self.kind}] {self.message}"]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result: Dict[str, Any] = {
            "type": self.error_type,
            "kind": str(self.kind),
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        if self.context and self.context.transaction_hash:
            result["transactionHash"] = self.context.transaction_hash
        return result


class EncodingError(NearError):
    """A transaction field violates its size or range constraint."""

    error_type = "EncodingError"


class SigningError(NearError):
    """The key provider could not produce a signature."""

    error_type = "SigningError"


class NonceConflictError(NearError):
    """The network rejected our nonce again after a cache refresh."""

    error_type = "NonceConflictError"

    def __init__(self, message: str, account_id: str, public_key: str,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[BaseException] = None,
                 context: Optional[ErrorContext] = None):
        super().__init__(message, details, cause, context)
        self.account_id = account_id
        self.public_key = public_key


class RpcError(NearError):
    """
    Failure reported by a network client.

    ``kind`` is an :class:`RpcErrorKind`; ``payload`` is the network's
    original error object, kept untouched.
    """

    error_type = "RpcError"

    def __init__(self, message: str, kind: RpcErrorKind = RpcErrorKind.UNKNOWN,
                 payload: Any = None, details: Optional[Dict[str, Any]] = None,
                 cause: Optional[BaseException] = None, context: Optional[ErrorContext] = None):
        super().__init__(message, details, cause, context)
        self.rpc_kind = kind
        self.payload = payload

    @property
    def kind(self) -> RpcErrorKind:
        return self.rpc_kind

    @property
    def error_class(self) -> ErrorClass:
        return ERROR_CLASSES[self.rpc_kind]

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.rpc_kind.value
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    @classmethod
    def promote(cls, error: RpcError, context: Optional[ErrorContext] = None) -> RpcError:
        """Re-wrap a tagged error as this class, keeping kind, payload and cause chain."""
        return cls(
            error.message,
            kind=error.rpc_kind,
            payload=error.payload,
            details=error.details,
            cause=error,
            context=context or error.context,
        )


class NetworkTransientError(RpcError):
    """Failure expected to clear up on retry."""

    error_type = "NetworkTransientError"


class NetworkFatalError(RpcError):
    """Rejection that retrying cannot fix."""

    error_type = "NetworkFatalError"


class ReceiptFailure(NearError):
    """
    Application-level failure found in the outcome graph.

    Carries the failing node's error payload and its position: the receipt
    id, its depth below the transaction outcome and the ids on the path to it.
    """

    error_type = "ReceiptFailure"

    def __init__(self, error_kind: str, payload: Any, receipt_id: str, depth: int,
                 path: Tuple[str, ...] = (), context: Optional[ErrorContext] = None):
        message = f"{error_kind} in outcome {receipt_id} (depth {depth}): {format_failure(payload)}"
        super().__init__(message, {"receiptId": receipt_id, "depth": depth}, None, context)
        self.error_kind = error_kind
        self.payload = payload
        self.receipt_id = receipt_id
        self.depth = depth
        self.path = tuple(path)

    @property
    def kind(self) -> str:
        return self.error_kind


class RetryExhaustedError(NearError):
    """All broadcast attempts failed with transient errors."""

    error_type = "RetryExhaustedError"

    def __init__(self, attempts: int, last_error: Optional[BaseException],
                 context: Optional[ErrorContext] = None):
        super().__init__(
            f"Gave up after {attempts} attempts. Last error: {last_error}",
            {"attempts": attempts},
            last_error,
            context,
        )
        self.attempts = attempts
        self.last_error = last_error


class PendingTimeout(NearError):
    """No terminal status before the deadline; the transaction may still land."""

    error_type = "PendingTimeout"

    def __init__(self, transaction_hash: str, sender_id: str, timeout: float):
        super().__init__(
            f"Transaction {transaction_hash} still pending after {timeout:.1f}s",
            {"senderId": sender_id, "timeout": timeout},
            None,
            ErrorContext(transaction_hash),
        )
        self.transaction_hash = transaction_hash
        self.sender_id = sender_id
        self.timeout = timeout


# ---------------------------------------------------------------------------
# Parsing network error bodies
# ---------------------------------------------------------------------------

_CAUSE_KINDS: Dict[str, RpcErrorKind] = {
    "TIMEOUT_ERROR": RpcErrorKind.TIMEOUT,
    "INTERNAL_ERROR": RpcErrorKind.SERVER_ERROR,
    "UNAVAILABLE_SHARD": RpcErrorKind.SERVER_ERROR,
    "NO_SYNCED_BLOCKS": RpcErrorKind.NOT_SYNCED,
    "NOT_SYNCED_YET": RpcErrorKind.NOT_SYNCED,
    "UNKNOWN_BLOCK": RpcErrorKind.NOT_SYNCED,
    "UNKNOWN_CHUNK": RpcErrorKind.NOT_SYNCED,
    "TOO_MANY_REQUESTS": RpcErrorKind.RATE_LIMITED,
    "UNKNOWN_TRANSACTION": RpcErrorKind.UNKNOWN_TRANSACTION,
    "UNKNOWN_ACCOUNT": RpcErrorKind.ACCOUNT_NOT_FOUND,
    "UNKNOWN_ACCESS_KEY": RpcErrorKind.ACCESS_KEY_NOT_FOUND,
    "ALREADY_KNOWN": RpcErrorKind.ALREADY_KNOWN,
    "TRANSACTION_ALREADY_KNOWN": RpcErrorKind.ALREADY_KNOWN,
    "PARSE_ERROR": RpcErrorKind.PARSE_ERROR,
    "REQUEST_VALIDATION_ERROR": RpcErrorKind.PARSE_ERROR,
    "METHOD_NOT_FOUND": RpcErrorKind.PARSE_ERROR,
}

_INVALID_TX_KINDS: Dict[str, RpcErrorKind] = {
    "InvalidNonce": RpcErrorKind.INVALID_NONCE,
    "NonceTooLarge": RpcErrorKind.INVALID_NONCE,
    "InvalidSignature": RpcErrorKind.INVALID_SIGNATURE,
    "NotEnoughBalance": RpcErrorKind.NOT_ENOUGH_BALANCE,
    "LackBalanceForState": RpcErrorKind.NOT_ENOUGH_BALANCE,
    "SignerDoesNotExist": RpcErrorKind.ACCOUNT_NOT_FOUND,
    "InvalidSignerId": RpcErrorKind.ACCOUNT_NOT_FOUND,
    "InvalidReceiverId": RpcErrorKind.ACCOUNT_NOT_FOUND,
    "Expired": RpcErrorKind.EXPIRED,
    "ActionsValidation": RpcErrorKind.ACTION_ERROR,
    "ShardCongested": RpcErrorKind.SHARD_CONGESTED,
    "ShardStuck": RpcErrorKind.SHARD_CONGESTED,
}

# Legacy nodes send a bare string in ``error.data``.
_LEGACY_MESSAGES: List[Tuple[str, RpcErrorKind]] = [
    ("already known", RpcErrorKind.ALREADY_KNOWN),
    ("already processed", RpcErrorKind.ALREADY_KNOWN),
    ("timeout", RpcErrorKind.TIMEOUT),
    ("access key", RpcErrorKind.ACCESS_KEY_NOT_FOUND),
    ("does not exist while viewing", RpcErrorKind.ACCOUNT_NOT_FOUND),
    ("doesn't exist", RpcErrorKind.UNKNOWN_TRANSACTION),
]


def first_key(value: Any) -> Optional[str]:
    """Name of a serde-style enum value: the first key of a dict, or the string itself."""
    if isinstance(value, dict) and value:
        return next(iter(value))
    if isinstance(value, str):
        return value
    return None


def failure_kind(payload: Any) -> str:
    """
    Most specific error name inside an execution failure payload.

    ``{"ActionError": {"index": 0, "kind": {"FunctionCallError": {...}}}}``
    yields ``"FunctionCallError"``; ``{"InvalidTxError": {"InvalidNonce": ...}}``
    yields ``"InvalidNonce"``.
    """
    if not isinstance(payload, dict):
        return str(payload) if payload is not None else "UnknownError"
    if "ActionError" in payload:
        action_error = payload["ActionError"] or {}
        kind = first_key(action_error.get("kind")) if isinstance(action_error, dict) else None
        return kind or "ActionError"
    if "InvalidTxError" in payload:
        return first_key(payload["InvalidTxError"]) or "InvalidTxError"
    return first_key(payload) or "UnknownError"


def format_failure(payload: Any) -> str:
    """Human readable one-line rendering of a failure payload."""
    if isinstance(payload, dict) and "ActionError" in payload:
        action_error = payload["ActionError"] or {}
        kind = action_error.get("kind")
        index = action_error.get("index")
        inner = kind.get(first_key(kind)) if isinstance(kind, dict) else None
        where = f"action #{index}" if index is not None else "action"
        if inner:
            return f"{where}: {inner}"
        return f"{where}: {first_key(kind)}"
    return str(payload)


def _find_tx_error(data: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(data, dict):
        return None
    if "TxExecutionError" in data:
        return data["TxExecutionError"]
    if "InvalidTxError" in data or "ActionError" in data:
        return data
    return None


def _kind_from_tx_error(tx_error: Dict[str, Any]) -> RpcErrorKind:
    if "ActionError" in tx_error:
        return RpcErrorKind.ACTION_ERROR
    invalid = tx_error.get("InvalidTxError")
    name = first_key(invalid)
    if name == "InvalidAccessKeyError":
        if first_key(invalid[name]) == "AccessKeyNotFound":
            return RpcErrorKind.ACCESS_KEY_NOT_FOUND
        return RpcErrorKind.INVALID_TRANSACTION
    if name in _INVALID_TX_KINDS:
        return _INVALID_TX_KINDS[name]
    return RpcErrorKind.INVALID_TRANSACTION


def _kind_from_http_status(status: Optional[int]) -> Optional[RpcErrorKind]:
    if status is None or status == 200:
        return None
    if status == 408:
        return RpcErrorKind.TIMEOUT
    if status == 429:
        return RpcErrorKind.RATE_LIMITED
    if status >= 500:
        return RpcErrorKind.SERVER_ERROR
    return None


def error_from_response(response: Dict[str, Any], http_status: Optional[int] = None) -> Optional[RpcError]:
    """
    Create a tagged error from a JSON-RPC response body.

    Args:
        response: Decoded JSON-RPC response
        http_status: HTTP status code the body arrived with

    Returns:
        RpcError tagged with the most specific kind, or None if no error
    """
    if "error" not in response:
        status_kind = _kind_from_http_status(http_status)
        if status_kind is None:
            return None
        return RpcError(f"HTTP {http_status}", status_kind, details={"httpStatus": http_status})

    error_data = response["error"]
    if not isinstance(error_data, dict):
        return RpcError(str(error_data), _kind_from_http_status(http_status) or RpcErrorKind.UNKNOWN,
                        payload=error_data)

    message = error_data.get("message", "Unknown error")
    data = error_data.get("data")
    cause = error_data.get("cause") or {}
    cause_name = cause.get("name") if isinstance(cause, dict) else None
    details: Dict[str, Any] = {}
    if "code" in error_data:
        details["code"] = error_data["code"]
    if cause_name:
        details["cause"] = cause_name
    if http_status is not None:
        details["httpStatus"] = http_status

    payload = data if data is not None else error_data
    if isinstance(data, str) and data:
        message = f"{message}: {data}"

    tx_error = _find_tx_error(data)
    if tx_error is None and isinstance(cause, dict):
        tx_error = _find_tx_error(cause.get("info"))
    if tx_error is not None:
        kind = _kind_from_tx_error(tx_error)
        payload = tx_error
    elif cause_name == "INVALID_TRANSACTION":
        kind = RpcErrorKind.INVALID_TRANSACTION
    elif cause_name in _CAUSE_KINDS:
        kind = _CAUSE_KINDS[cause_name]
    else:
        kind = _kind_from_http_status(http_status) or RpcErrorKind.UNKNOWN
        if kind is RpcErrorKind.UNKNOWN and isinstance(data, str):
            lowered = data.lower()
            for needle, candidate in _LEGACY_MESSAGES:
                if needle in lowered:
                    kind = candidate
                    break

    return RpcError(message, kind, payload=payload, details=details)


class ErrorHandler:
    """
    Utility class for handling and categorizing errors.
    """

    @staticmethod
    def classify(error: BaseException) -> ErrorClass:
        """
        Decide how the submitter reacts to an error.

        Tagged network errors go through :data:`ERROR_CLASSES`. Untagged
        socket-level failures are transient; anything else is fatal.
        """
        if isinstance(error, RpcError):
            return ERROR_CLASSES[error.rpc_kind]
        if isinstance(error, (asyncio.TimeoutError, ConnectionError, OSError)):
            return ErrorClass.TRANSIENT
        return ErrorClass.FATAL

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """Check if an error is retryable."""
        return ErrorHandler.classify(error) is ErrorClass.TRANSIENT

    @staticmethod
    def should_wait_for_tx(error: BaseException) -> bool:
        """Check if we should poll for the transaction instead of failing."""
        return ErrorHandler.classify(error) is ErrorClass.ALREADY_EXISTS

    @staticmethod
    def is_invalid_nonce(error: BaseException) -> bool:
        return isinstance(error, RpcError) and error.rpc_kind is RpcErrorKind.INVALID_NONCE


__all__ = [
    "RpcErrorKind",
    "ErrorClass",
    "ERROR_CLASSES",
    "ErrorContext",
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
    "error_from_response",
    "failure_kind",
    "format_failure",
    "first_key",
    "ErrorHandler",
]
