"""Runtime helpers for the NEAR Python client"""

from .errors import (
    RpcErrorKind,
    ErrorClass,
    ErrorContext,
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
    ErrorHandler,
    error_from_response,
)

__all__ = [
    "RpcErrorKind",
    "ErrorClass",
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
    "ErrorHandler",
    "error_from_response",
]
