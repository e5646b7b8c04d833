from .mocks import MockNetworkClient
from .factories import (
    BLOCK_HASH,
    mk_key_pair,
    mk_transaction,
    mk_function_call,
    mk_outcome,
    mk_final_result,
    success_value,
    function_call_failure,
    rpc_error_body,
    invalid_nonce_body,
)

__all__ = [
    "MockNetworkClient",
    "BLOCK_HASH",
    "mk_key_pair",
    "mk_transaction",
    "mk_function_call",
    "mk_outcome",
    "mk_final_result",
    "success_value",
    "function_call_failure",
    "rpc_error_body",
    "invalid_nonce_body",
]
