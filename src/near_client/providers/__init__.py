"""
Network clients and the typed views they return.
"""

from .provider import NetworkClient
from .json_rpc import JsonRpcProvider
from .types import (
    AccessKeyInfo,
    AccessKeyView,
    ExecutionOutcome,
    ExecutionOutcomeWithId,
    ExecutionStatus,
    StatusKind,
)

__all__ = [
    "NetworkClient",
    "JsonRpcProvider",
    "AccessKeyInfo",
    "AccessKeyView",
    "ExecutionOutcome",
    "ExecutionOutcomeWithId",
    "ExecutionStatus",
    "StatusKind",
]
