"""
Outcome resolution.

A transaction's effect is spread over a graph of receipts: the transaction
outcome points at receipts, each receipt outcome at further receipts. A
transaction only succeeded if every node did, so the resolver visits the
whole graph and reports the first failing node.
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from ..providers.types import ExecutionOutcomeWithId, ExecutionStatus, StatusKind
from ..runtime.errors import ErrorContext, ReceiptFailure, failure_kind

logger = logging.getLogger(__name__)

# Depth reported for receipts that no path from the transaction outcome reaches.
DETACHED_DEPTH = -1


@dataclass(frozen=True)
class Success:
    """Every node succeeded; ``value`` is the transaction's return value, if any."""
    value: Optional[bytes] = None

    @property
    def is_success(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """At least one node failed; ``error`` locates the first one."""
    error: ReceiptFailure

    @property
    def is_success(self) -> bool:
        return False


Verdict = Union[Success, Failure]


@dataclass(frozen=True)
class VisitedNode:
    """Position of one node in the traversal."""
    outcome: ExecutionOutcomeWithId
    depth: int
    path: Tuple[str, ...]


@dataclass
class FinalExecutionOutcome:
    """
    Fully materialized result of a transaction.

    Attributes:
        status: Top-level status reported by the network
        transaction: Raw transaction as echoed by the network
        transaction_outcome: Root node of the outcome graph
        receipts_outcome: Receipt nodes in network-reported order
        traversal: Nodes in the order the resolver visited them
        logs: Logs of every node, flattened in traversal order
        verdict: Success or Failure for the whole graph
        raw: The untouched RPC result
    """
    status: ExecutionStatus
    transaction: Dict[str, Any]
    transaction_outcome: ExecutionOutcomeWithId
    receipts_outcome: List[ExecutionOutcomeWithId]
    traversal: List[VisitedNode] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)
    verdict: Optional[Verdict] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def transaction_hash(self) -> str:
        return self.transaction_outcome.id

    @property
    def traversal_order(self) -> List[str]:
        return [node.outcome.id for node in self.traversal]

    @property
    def is_success(self) -> bool:
        return self.verdict is not None and self.verdict.is_success

    @property
    def failure(self) -> Optional[ReceiptFailure]:
        return self.verdict.error if isinstance(self.verdict, Failure) else None

    @property
    def value(self) -> Optional[bytes]:
        return self.verdict.value if isinstance(self.verdict, Success) else None

    def raise_for_status(self) -> FinalExecutionOutcome:
        """Raise the :class:`ReceiptFailure` if the transaction failed."""
        if isinstance(self.verdict, Failure):
            raise self.verdict.error
        return self

    def json_value(self) -> Any:
        """Return value decoded as JSON, or the raw bytes if it is not JSON."""
        value = self.value
        if not value:
            return None
        try:
            return json.loads(value)
        except (ValueError, UnicodeDecodeError):
            return value


class OutcomeResolver:
    """Walks the receipt graph of a final execution outcome."""

    def resolve(self, raw: Dict[str, Any]) -> Tuple[FinalExecutionOutcome, Verdict]:
        """
        Resolve a raw ``tx`` result into an outcome and its verdict.

        Nodes are visited depth first, children in the order the network
        lists them. Receipts reported but not reachable from the transaction
        outcome are visited afterwards in reported order.
        """
        root = ExecutionOutcomeWithId.from_rpc(raw["transaction_outcome"])
        receipts = [ExecutionOutcomeWithId.from_rpc(r) for r in raw.get("receipts_outcome") or []]
        status = ExecutionStatus.from_rpc(raw.get("status"))

        by_id: Dict[str, ExecutionOutcomeWithId] = {}
        for receipt in receipts:
            by_id.setdefault(receipt.id, receipt)

        visited = set()
        traversal: List[VisitedNode] = []
        stack: List[VisitedNode] = [VisitedNode(root, 0, (root.id,))]
        while stack:
            node = stack.pop()
            if node.outcome.id in visited:
                continue
            visited.add(node.outcome.id)
            traversal.append(node)
            for receipt_id in reversed(node.outcome.outcome.receipt_ids):
                child = by_id.get(receipt_id)
                if child is not None and receipt_id not in visited:
                    stack.append(VisitedNode(child, node.depth + 1, node.path + (receipt_id,)))

        for receipt in receipts:
            if receipt.id not in visited:
                visited.add(receipt.id)
                logger.debug(f"Receipt {receipt.id} is not reachable from transaction {root.id}")
                traversal.append(VisitedNode(receipt, DETACHED_DEPTH, (receipt.id,)))

        logs: List[str] = []
        first_failure: Optional[VisitedNode] = None
        for node in traversal:
            logs.extend(node.outcome.outcome.logs)
            if first_failure is None and node.outcome.outcome.status.is_failure:
                first_failure = node

        context = ErrorContext(root.id)
        verdict: Verdict
        if first_failure is not None:
            payload = first_failure.outcome.outcome.status.failure
            verdict = Failure(ReceiptFailure(
                failure_kind(payload),
                payload,
                first_failure.outcome.id,
                first_failure.depth,
                first_failure.path,
                context,
            ))
        elif status.is_failure:
            verdict = Failure(ReceiptFailure(
                failure_kind(status.failure), status.failure, root.id, 0, (root.id,), context,
            ))
        elif status.kind is StatusKind.SUCCESS_VALUE:
            verdict = Success(status.value)
        else:
            root_status = root.outcome.status
            verdict = Success(root_status.value if root_status.kind is StatusKind.SUCCESS_VALUE else None)

        outcome = FinalExecutionOutcome(
            status=status,
            transaction=raw.get("transaction") or {},
            transaction_outcome=root,
            receipts_outcome=receipts,
            traversal=traversal,
            logs=logs,
            verdict=verdict,
            raw=raw,
        )
        return outcome, verdict
