"""
Typed views over JSON-RPC results.

The node returns plain JSON; these dataclasses pick out the fields the
transaction pipeline reads and keep the rest untouched in ``raw``.
"""

from __future__ import annotations
import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..crypto.ed25519 import PublicKey
from ..tx.actions import AccessKey, FullAccessPermission, FunctionCallPermission


class StatusKind(Enum):
    """Shape of an execution status."""
    SUCCESS_VALUE = "SuccessValue"
    SUCCESS_RECEIPT_ID = "SuccessReceiptId"
    FAILURE = "Failure"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ExecutionStatus:
    """
    Status of one outcome node.

    ``value`` holds the decoded return bytes for ``SuccessValue``;
    ``receipt_id`` the follow-up receipt for ``SuccessReceiptId``;
    ``failure`` the network's error payload for ``Failure``.
    """
    kind: StatusKind
    value: Optional[bytes] = None
    receipt_id: Optional[str] = None
    failure: Any = None

    @classmethod
    def from_rpc(cls, status: Any) -> ExecutionStatus:
        if isinstance(status, dict):
            if "SuccessValue" in status:
                encoded = status["SuccessValue"] or ""
                return cls(StatusKind.SUCCESS_VALUE, value=base64.b64decode(encoded))
            if "SuccessReceiptId" in status:
                return cls(StatusKind.SUCCESS_RECEIPT_ID, receipt_id=status["SuccessReceiptId"])
            if "Failure" in status:
                return cls(StatusKind.FAILURE, failure=status["Failure"])
        return cls(StatusKind.UNKNOWN)

    @property
    def is_failure(self) -> bool:
        return self.kind is StatusKind.FAILURE

    @property
    def is_success(self) -> bool:
        return self.kind in (StatusKind.SUCCESS_VALUE, StatusKind.SUCCESS_RECEIPT_ID)


@dataclass(frozen=True)
class ExecutionOutcome:
    """One node of the outcome graph."""
    status: ExecutionStatus
    logs: List[str] = field(default_factory=list)
    receipt_ids: List[str] = field(default_factory=list)
    executor_id: str = ""
    gas_burnt: int = 0
    tokens_burnt: int = 0

    @classmethod
    def from_rpc(cls, outcome: Dict[str, Any]) -> ExecutionOutcome:
        return cls(
            status=ExecutionStatus.from_rpc(outcome.get("status")),
            logs=list(outcome.get("logs") or []),
            receipt_ids=list(outcome.get("receipt_ids") or []),
            executor_id=outcome.get("executor_id", ""),
            gas_burnt=int(outcome.get("gas_burnt") or 0),
            tokens_burnt=int(outcome.get("tokens_burnt") or 0),
        )


@dataclass(frozen=True)
class ExecutionOutcomeWithId:
    """An outcome node plus its transaction or receipt id."""
    id: str
    outcome: ExecutionOutcome
    block_hash: Optional[str] = None

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> ExecutionOutcomeWithId:
        return cls(
            id=data["id"],
            outcome=ExecutionOutcome.from_rpc(data.get("outcome") or {}),
            block_hash=data.get("block_hash"),
        )


def permission_from_rpc(permission: Any):
    """Convert an RPC permission (``"FullAccess"`` or ``{"FunctionCall": {...}}``)."""
    if permission == "FullAccess" or (isinstance(permission, dict) and "FullAccess" in permission):
        return FullAccessPermission()
    if isinstance(permission, dict) and "FunctionCall" in permission:
        body = permission["FunctionCall"] or {}
        allowance = body.get("allowance")
        return FunctionCallPermission(
            allowance=int(allowance) if allowance is not None else None,
            receiver_id=body["receiver_id"],
            method_names=tuple(body.get("method_names") or ()),
        )
    raise ValueError(f"Unrecognized access key permission: {permission!r}")


@dataclass(frozen=True)
class AccessKeyView:
    """Result of ``view_access_key``: the key's last used nonce and permission."""
    nonce: int
    permission: Any
    block_hash: Optional[str] = None
    block_height: Optional[int] = None

    @classmethod
    def from_rpc(cls, result: Dict[str, Any]) -> AccessKeyView:
        return cls(
            nonce=int(result["nonce"]),
            permission=permission_from_rpc(result.get("permission", "FullAccess")),
            block_hash=result.get("block_hash"),
            block_height=result.get("block_height"),
        )

    def to_access_key(self) -> AccessKey:
        return AccessKey(nonce=self.nonce, permission=self.permission)


@dataclass(frozen=True)
class AccessKeyInfo:
    """One entry of ``view_access_key_list``."""
    public_key: PublicKey
    access_key: AccessKey

    @classmethod
    def from_rpc(cls, entry: Dict[str, Any]) -> AccessKeyInfo:
        view = AccessKeyView.from_rpc(entry["access_key"])
        return cls(public_key=PublicKey.from_string(entry["public_key"]), access_key=view.to_access_key())
